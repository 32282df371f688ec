"""
Binary classifier (.msm) codec.

A classifier file describes the expected accelerometer signature of one
choreography move. Layout (offsets in bytes, file-native endianness):

    0    endianness marker (int32, == 1 when read in file order)
    4    format version (uint32, 5..8)
    8    move name      char[64]
    72   song name      char[64]
    136  measure set    char[64]
    200  duration (f32)
    204  stat dist low threshold (f32)
    208  stat dist high threshold (f32)
    212  autocorrelation threshold (f32)   -- version >= 7 only
    216  direction impact factor (f32)     -- version >= 7 only
    220  measures set bitfield (uint64)
    228  customization flags (uint32)
    232  scoring algorithm type (int32, |value| = measure count)
    236  energy means count (uint32)
    240  sub-classifiers count (uint32, unused)
    244  means, inverted covariances, energy means (f32 each)

Versions 5 and 6 lack the two fields at 212-219, so every position after
them is shifted back by a constant 8 bytes.
"""

import logging
import struct
from dataclasses import dataclass
from enum import Enum, IntFlag
from typing import Iterator, Tuple

import numpy as np

from movescore.engine.errors import (
    InvalidClassifierError,
    SizeMismatchError,
    TruncatedDataError,
    UnsupportedVersionError,
)

logger = logging.getLogger(__name__)


# Format versions
FORMAT_VERSION_FORCE_10_PARTS = 5
FORMAT_VERSION_WITHOUT_AC_AND_DIR_SETTINGS = 6
FORMAT_VERSION_WITH_AC_AND_DIR_SETTINGS = 7
FORMAT_VERSION_SUBCLASSIFIERS_SUPPORT = 8

FORMAT_VERSION_LATEST_OFFICIAL = FORMAT_VERSION_WITH_AC_AND_DIR_SETTINGS
FORMAT_VERSION_MIN = FORMAT_VERSION_FORCE_10_PARTS
FORMAT_VERSION_MAX = FORMAT_VERSION_SUBCLASSIFIERS_SUPPORT

# Fixed header positions
POS_ENDIANNESS = 0
POS_FORMAT_VERSION = 4
POS_MOVE_NAME = 8
POS_SONG_NAME = 72
POS_MEASURE_SET_NAME = 136
POS_DURATION = 200
POS_STAT_DIST_LOW = 204
POS_STAT_DIST_HIGH = 208
POS_AUTO_CORRELATION_THRESHOLD = 212
POS_DIRECTION_IMPACT_FACTOR = 216

# Positions for a version 7+ layout; older versions subtract the compat offset
POS_MEASURES_SET = 220
POS_CUSTOMIZATION_FLAGS = 228
POS_SCORING_ALGORITHM_TYPE = 232
POS_ENERGY_MEANS_COUNT = 236
POS_SUBCLASSIFIERS_COUNT = 240
HEADER_SIZE = 244

NAME_LENGTH = 64
FLOAT_SIZE = 4
COMPAT_OFFSET_WITHOUT_AC_AND_DIR = 2 * FLOAT_SIZE

# Value meaning "not set in the file, use the session default"
UNSET = -1.0

MEASURES_SET_BITS = 64


class CustomizationFlags(IntFlag):
    """Per-classifier switches stored in the file header."""
    NONE = 0
    IGNORE_PARTS_DIRECTION = 1 << 0
    IGNORE_AUTO_CORRELATION = 1 << 1


class ScoringAlgorithm(Enum):
    """Statistical distance flavour, selected by the sign of the scoring type."""
    NAIVE_BAYES = "naive_bayes"    # diagonal covariance
    MAHALANOBIS = "mahalanobis"    # full covariance, packed upper triangle


@dataclass(frozen=True)
class MeasureSet:
    """Fixed-width 64-bit set of measure ids."""
    bits: int = 0

    def __post_init__(self):
        if not 0 <= self.bits < (1 << MEASURES_SET_BITS):
            raise ValueError(f"Measures set does not fit in {MEASURES_SET_BITS} bits: {self.bits:#x}")

    @classmethod
    def of(cls, *measure_ids: int) -> "MeasureSet":
        bits = 0
        for measure_id in measure_ids:
            bits |= 1 << int(measure_id)
        return cls(bits)

    def __contains__(self, measure_id: int) -> bool:
        return bool(self.bits >> int(measure_id) & 1)

    def __iter__(self) -> Iterator[int]:
        return (i for i in range(MEASURES_SET_BITS) if i in self)

    def __or__(self, other: "MeasureSet") -> "MeasureSet":
        return MeasureSet(self.bits | other.bits)

    def __bool__(self) -> bool:
        return self.bits != 0


def inverted_covariances_count(scoring_algorithm_type: int) -> int:
    """Diagonal: one value per measure; full: packed upper triangle."""
    n = abs(scoring_algorithm_type)
    if scoring_algorithm_type > 0:
        return n
    return n * (n + 1) // 2


def compat_offset(format_version: int) -> int:
    """Bytes missing before the bitfield for a given format version."""
    if format_version in (FORMAT_VERSION_FORCE_10_PARTS, FORMAT_VERSION_WITHOUT_AC_AND_DIR_SETTINGS):
        return COMPAT_OFFSET_WITHOUT_AC_AND_DIR
    if format_version in (FORMAT_VERSION_WITH_AC_AND_DIR_SETTINGS, FORMAT_VERSION_SUBCLASSIFIERS_SUPPORT):
        return 0
    raise UnsupportedVersionError(format_version)


def header_size(format_version: int) -> int:
    return HEADER_SIZE - compat_offset(format_version)


@dataclass(frozen=True)
class ClassifierHeader:
    """Header fields of a classifier file, without the float payload."""
    format_version: int
    big_endian: bool
    name: str
    song_name: str
    measure_set_name: str
    duration: float
    stat_dist_low_threshold: float
    stat_dist_high_threshold: float
    auto_correlation_threshold: float
    direction_impact_factor: float
    measures_set: MeasureSet
    customization_flags: CustomizationFlags
    scoring_algorithm_type: int
    energy_means_count: int
    subclassifiers_count: int

    @property
    def measure_count(self) -> int:
        return abs(self.scoring_algorithm_type)

    @property
    def inverted_covariances_count(self) -> int:
        return inverted_covariances_count(self.scoring_algorithm_type)

    @property
    def header_size(self) -> int:
        return header_size(self.format_version)

    @property
    def expected_size(self) -> int:
        floats = self.measure_count + self.inverted_covariances_count + self.energy_means_count
        return self.header_size + FLOAT_SIZE * floats


@dataclass(frozen=True)
class ClassifierData:
    """
    Immutable classifier decoded from file bytes.

    Decoded once and shared read-only between any number of sessions.
    """
    name: str
    format_version: int
    duration: float
    stat_dist_low_threshold: float
    stat_dist_high_threshold: float
    auto_correlation_threshold: float
    direction_impact_factor: float
    measures_set: MeasureSet
    customization_flags: CustomizationFlags
    scoring_algorithm_type: int
    means: Tuple[float, ...]
    inverted_covariances: Tuple[float, ...]
    energy_means: Tuple[float, ...] = ()
    song_name: str = ""
    measure_set_name: str = ""
    subclassifiers_count: int = 0

    @property
    def measure_count(self) -> int:
        return abs(self.scoring_algorithm_type)

    @property
    def algorithm(self) -> ScoringAlgorithm:
        if self.scoring_algorithm_type > 0:
            return ScoringAlgorithm.NAIVE_BAYES
        return ScoringAlgorithm.MAHALANOBIS

    @property
    def energy_computation_required(self) -> bool:
        return len(self.energy_means) > 0

    @property
    def ignores_parts_direction(self) -> bool:
        return bool(self.customization_flags & CustomizationFlags.IGNORE_PARTS_DIRECTION)

    @property
    def ignores_auto_correlation(self) -> bool:
        return bool(self.customization_flags & CustomizationFlags.IGNORE_AUTO_CORRELATION)


class _Reader:
    """Struct reads at absolute offsets in the file's byte order."""

    def __init__(self, data: bytes, big_endian: bool):
        self.data = data
        self.order = ">" if big_endian else "<"

    def read(self, fmt: str, offset: int):
        return struct.unpack_from(self.order + fmt, self.data, offset)[0]

    def string(self, offset: int) -> str:
        raw = self.data[offset:offset + NAME_LENGTH]
        return raw.split(b"\x00", 1)[0].decode("ascii", errors="replace")

    def floats(self, offset: int, count: int) -> Tuple[float, ...]:
        dtype = np.dtype(np.float32).newbyteorder(self.order)
        values = np.frombuffer(self.data, dtype=dtype, count=count, offset=offset)
        return tuple(float(v) for v in values)


def is_big_endian(data: bytes) -> bool:
    """The marker reads as 1 in little-endian order only for little-endian files."""
    if len(data) < 4:
        return True
    return struct.unpack_from("<i", data, POS_ENDIANNESS)[0] != 1


def peek_format_version(data: bytes) -> int:
    if len(data) < POS_FORMAT_VERSION + 4:
        raise TruncatedDataError(f"Classifier data too short to hold a format version ({len(data)} bytes)")
    return _Reader(data, is_big_endian(data)).read("I", POS_FORMAT_VERSION)


def read_header(data: bytes) -> ClassifierHeader:
    """Parse header fields only; the payload size is not validated."""
    data = bytes(data)
    big_endian = is_big_endian(data)
    version = peek_format_version(data)
    if not FORMAT_VERSION_MIN <= version <= FORMAT_VERSION_MAX:
        raise UnsupportedVersionError(version)

    offset = compat_offset(version)
    if len(data) < HEADER_SIZE - offset:
        raise TruncatedDataError(
            f"Classifier data too short for version {version}: "
            f"{len(data)} < {HEADER_SIZE - offset} bytes"
        )

    reader = _Reader(data, big_endian)
    if version >= FORMAT_VERSION_WITH_AC_AND_DIR_SETTINGS:
        auto_correlation_threshold = reader.read("f", POS_AUTO_CORRELATION_THRESHOLD)
        direction_impact_factor = reader.read("f", POS_DIRECTION_IMPACT_FACTOR)
    else:
        auto_correlation_threshold = UNSET
        direction_impact_factor = UNSET

    return ClassifierHeader(
        format_version=version,
        big_endian=big_endian,
        name=reader.string(POS_MOVE_NAME),
        song_name=reader.string(POS_SONG_NAME),
        measure_set_name=reader.string(POS_MEASURE_SET_NAME),
        duration=reader.read("f", POS_DURATION),
        stat_dist_low_threshold=reader.read("f", POS_STAT_DIST_LOW),
        stat_dist_high_threshold=reader.read("f", POS_STAT_DIST_HIGH),
        auto_correlation_threshold=auto_correlation_threshold,
        direction_impact_factor=direction_impact_factor,
        measures_set=MeasureSet(reader.read("Q", POS_MEASURES_SET - offset)),
        customization_flags=CustomizationFlags(reader.read("I", POS_CUSTOMIZATION_FLAGS - offset)),
        scoring_algorithm_type=reader.read("i", POS_SCORING_ALGORITHM_TYPE - offset),
        energy_means_count=reader.read("I", POS_ENERGY_MEANS_COUNT - offset),
        subclassifiers_count=reader.read("I", POS_SUBCLASSIFIERS_COUNT - offset),
    )


def decode(data: bytes) -> ClassifierData:
    """
    Decode and validate classifier file bytes.

    Raises:
        TruncatedDataError: buffer shorter than its version's header
        UnsupportedVersionError: format version outside 5..8
        InvalidClassifierError: scoring algorithm type is 0
        SizeMismatchError: byte length disagrees with the header counts
    """
    data = bytes(data)
    header = read_header(data)

    if header.scoring_algorithm_type == 0:
        raise InvalidClassifierError("Scoring algorithm type is 0, nothing to score")

    if len(data) != header.expected_size:
        raise SizeMismatchError(header.expected_size, len(data))

    reader = _Reader(data, header.big_endian)
    offset = header.header_size
    means = reader.floats(offset, header.measure_count)
    offset += FLOAT_SIZE * header.measure_count
    inverted_covariances = reader.floats(offset, header.inverted_covariances_count)
    offset += FLOAT_SIZE * header.inverted_covariances_count
    energy_means = reader.floats(offset, header.energy_means_count)

    classifier = ClassifierData(
        name=header.name,
        format_version=header.format_version,
        duration=header.duration,
        stat_dist_low_threshold=header.stat_dist_low_threshold,
        stat_dist_high_threshold=header.stat_dist_high_threshold,
        auto_correlation_threshold=header.auto_correlation_threshold,
        direction_impact_factor=header.direction_impact_factor,
        measures_set=header.measures_set,
        customization_flags=header.customization_flags,
        scoring_algorithm_type=header.scoring_algorithm_type,
        means=means,
        inverted_covariances=inverted_covariances,
        energy_means=energy_means,
        song_name=header.song_name,
        measure_set_name=header.measure_set_name,
        subclassifiers_count=header.subclassifiers_count,
    )
    logger.info(
        f"Decoded classifier '{classifier.name}' v{classifier.format_version} "
        f"({'big' if header.big_endian else 'little'}-endian, {classifier.algorithm.value}, "
        f"{classifier.measure_count} measures, {len(energy_means)} energy means)"
    )
    return classifier


def encode(classifier: ClassifierData, big_endian: bool = False) -> bytes:
    """Serialize a classifier to the file layout of its format version."""
    version = classifier.format_version
    offset = compat_offset(version)
    if len(classifier.means) != classifier.measure_count:
        raise ValueError(
            f"Expected {classifier.measure_count} means, got {len(classifier.means)}"
        )
    expected_inv_cov = inverted_covariances_count(classifier.scoring_algorithm_type)
    if len(classifier.inverted_covariances) != expected_inv_cov:
        raise ValueError(
            f"Expected {expected_inv_cov} inverted covariances, got {len(classifier.inverted_covariances)}"
        )

    order = ">" if big_endian else "<"
    buffer = bytearray(HEADER_SIZE - offset)

    def put(fmt: str, position: int, value) -> None:
        struct.pack_into(order + fmt, buffer, position, value)

    def put_name(position: int, text: str) -> None:
        raw = text.encode("ascii")[:NAME_LENGTH - 1]
        buffer[position:position + len(raw)] = raw

    put("i", POS_ENDIANNESS, 1)
    put("I", POS_FORMAT_VERSION, version)
    put_name(POS_MOVE_NAME, classifier.name)
    put_name(POS_SONG_NAME, classifier.song_name)
    put_name(POS_MEASURE_SET_NAME, classifier.measure_set_name)
    put("f", POS_DURATION, classifier.duration)
    put("f", POS_STAT_DIST_LOW, classifier.stat_dist_low_threshold)
    put("f", POS_STAT_DIST_HIGH, classifier.stat_dist_high_threshold)
    if version >= FORMAT_VERSION_WITH_AC_AND_DIR_SETTINGS:
        put("f", POS_AUTO_CORRELATION_THRESHOLD, classifier.auto_correlation_threshold)
        put("f", POS_DIRECTION_IMPACT_FACTOR, classifier.direction_impact_factor)
    put("Q", POS_MEASURES_SET - offset, classifier.measures_set.bits)
    put("I", POS_CUSTOMIZATION_FLAGS - offset, int(classifier.customization_flags))
    put("i", POS_SCORING_ALGORITHM_TYPE - offset, classifier.scoring_algorithm_type)
    put("I", POS_ENERGY_MEANS_COUNT - offset, len(classifier.energy_means))
    put("I", POS_SUBCLASSIFIERS_COUNT - offset, classifier.subclassifiers_count)

    dtype = np.dtype(np.float32).newbyteorder(order)
    payload = np.array(
        list(classifier.means) + list(classifier.inverted_covariances) + list(classifier.energy_means),
        dtype=dtype,
    )
    return bytes(buffer) + payload.tobytes()
