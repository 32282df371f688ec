"""Shared fixtures: synthetic classifiers built with the codec encoder."""

import pytest

from movescore.engine.classifier_codec import (
    FORMAT_VERSION_WITH_AC_AND_DIR_SETTINGS,
    UNSET,
    ClassifierData,
    CustomizationFlags,
    MeasureSet,
    encode,
)
from movescore.engine.measure_extractor import MeasureId


def build_classifier(**overrides) -> ClassifierData:
    """
    One-part Naive Bayes classifier on AccelNormAvg_NP, mean 1.0,
    thresholds low=1.0 / high=3.5. Any field can be overridden.
    """
    fields = dict(
        name="TestMove",
        format_version=FORMAT_VERSION_WITH_AC_AND_DIR_SETTINGS,
        duration=0.1,
        stat_dist_low_threshold=1.0,
        stat_dist_high_threshold=3.5,
        auto_correlation_threshold=UNSET,
        direction_impact_factor=UNSET,
        measures_set=MeasureSet.of(MeasureId.ACCEL_NORM_AVG_NP),
        customization_flags=CustomizationFlags.NONE,
        scoring_algorithm_type=1,
        means=(1.0,),
        inverted_covariances=(1.0,),
        energy_means=(),
        song_name="TestSong",
        measure_set_name="Default",
    )
    fields.update(overrides)
    return ClassifierData(**fields)


@pytest.fixture
def make_classifier():
    """Factory returning a ClassifierData."""
    return build_classifier


@pytest.fixture
def make_classifier_bytes():
    """Factory returning encoded classifier bytes."""
    def factory(big_endian=False, **overrides) -> bytes:
        return encode(build_classifier(**overrides), big_endian=big_endian)
    return factory


def constant_samples(count, ax, ay=0.0, az=0.0):
    """`count` samples evenly spread over progress 0..1."""
    return [(i / (count - 1), ax, ay, az) for i in range(count)]
