"""Movement energy compared with the classifier's expectations."""

import logging
from typing import Sequence, Tuple

from movescore.engine.measure_extractor import MeasureId, MeasureResult

logger = logging.getLogger(__name__)


ENERGY_UNAVAILABLE = -1.0


def energy_means_from_results(results: Sequence[MeasureResult], energy_required: bool) -> Tuple[float, ...]:
    """
    Average each energy measure over its parts.

    Returns an empty tuple when the classifier carries no energy data, and
    zeros when energy was required but no measure captured anything.
    """
    if not results:
        return (0.0, 0.0) if energy_required else ()

    norm_values = [r.value for r in results if r.measure_id == MeasureId.ACCEL_NORM_AVG_NP]
    dev_values = [r.value for r in results if r.measure_id == MeasureId.ACCEL_DEV_NORM_AVG_NP]
    norm_avg = sum(norm_values) / len(norm_values) if norm_values else 0.0
    dev_avg = sum(dev_values) / len(dev_values) if dev_values else 0.0
    return norm_avg, dev_avg


def _clamp_ratio(ratio: float) -> float:
    return min(max(ratio, 0.0), 1.0)


def energy_amount(energy_means: Sequence[float], dev_norm_ratio: float = 0.1) -> float:
    """
    Absolute movement energy.

    The acceleration norm average counts from 1 g (gravity alone is no
    movement); `dev_norm_ratio` blends in the derivative norm average.
    """
    if len(energy_means) < 2:
        logger.warning("Energy amount requested but energy means results are missing")
        return ENERGY_UNAVAILABLE
    ratio = _clamp_ratio(dev_norm_ratio)
    norm_above_gravity = max(0.0, energy_means[0] - 1.0)
    return (1.0 - ratio) * norm_above_gravity + ratio * energy_means[1]


def energy_factor(
    energy_means: Sequence[float],
    classifier_energy_means: Sequence[float],
    dev_norm_ratio: float = 0.5,
) -> float:
    """Performed energy relative to the classifier's, 1.0 meaning as expected."""
    if len(energy_means) < 2:
        logger.warning("Energy factor requested but energy means results are missing")
        return ENERGY_UNAVAILABLE
    if len(classifier_energy_means) < 2:
        logger.warning("Energy factor requested but the classifier lacks energy data")
        return ENERGY_UNAVAILABLE
    ratio = _clamp_ratio(dev_norm_ratio)

    norm_factor = 0.0
    if classifier_energy_means[0] != 0:
        norm_factor = energy_means[0] / classifier_energy_means[0]
    dev_factor = 0.0
    if classifier_energy_means[1] != 0:
        dev_factor = energy_means[1] / classifier_energy_means[1]
    return (1.0 - ratio) * norm_factor + ratio * dev_factor
