"""
Part-scoped measure capture.

The move's progress range is split into N analysis parts (a small safety
margin is left out at both ends). For every wished measure kind and every
part, a measure node reads one averaged signal and keeps the value that
signal had at the end of the part.
"""

import logging
import math
from dataclasses import dataclass
from enum import IntEnum
from functools import lru_cache
from typing import Dict, List, Tuple

from movescore.engine.classifier_codec import FORMAT_VERSION_FORCE_10_PARTS, MeasureSet
from movescore.engine.signal_graph import GraphLayout, SignalGraph, SignalId, build_layout

logger = logging.getLogger(__name__)


class MeasureId(IntEnum):
    AX_DEV_AVG_DIR_NP = 50
    AY_DEV_AVG_DIR_NP = 51
    AZ_DEV_AVG_DIR_NP = 52
    ACCEL_NORM_AVG_NP = 56
    ACCEL_DEV_NORM_AVG_NP = 61


MEASURE_ID_COUNT = 62

DIRECTIONAL_MEASURE_IDS = frozenset({
    MeasureId.AX_DEV_AVG_DIR_NP,
    MeasureId.AY_DEV_AVG_DIR_NP,
    MeasureId.AZ_DEV_AVG_DIR_NP,
})

# Measures the energy analysis needs, scored or not
ENERGY_MEASURES = MeasureSet.of(MeasureId.ACCEL_NORM_AVG_NP, MeasureId.ACCEL_DEV_NORM_AVG_NP)

# Every measure kind is split into parts and reads one averaged signal
MEASURE_SOURCES: Dict[MeasureId, SignalId] = {
    MeasureId.ACCEL_NORM_AVG_NP: SignalId.ACCEL_NORM_AVG_NP,
    MeasureId.ACCEL_DEV_NORM_AVG_NP: SignalId.ACCEL_DEV_NORM_AVG_NP,
    MeasureId.AX_DEV_AVG_DIR_NP: SignalId.AX_DEV_AVG_DIR_NP,
    MeasureId.AY_DEV_AVG_DIR_NP: SignalId.AY_DEV_AVG_DIR_NP,
    MeasureId.AZ_DEV_AVG_DIR_NP: SignalId.AZ_DEV_AVG_DIR_NP,
}

PART_SAFETY_MARGIN = 0.01667
ACCEL_SAMPLES_MIN_COUNT_PER_PART_AT_30_FPS = 2.49
FORCED_PARTS_COUNT = 10


def compute_parts_count(format_version: int, duration: float) -> int:
    """Number of analysis parts for a classifier."""
    if format_version == FORMAT_VERSION_FORCE_10_PARTS:
        return FORCED_PARTS_COUNT
    return max(1, math.floor(duration * 30.0 / ACCEL_SAMPLES_MIN_COUNT_PER_PART_AT_30_FPS))


def part_bounds(part_index: int, parts_count: int) -> Tuple[float, float]:
    """[start, end) progress window of a 1-indexed part."""
    part_duration = (1.0 - 2.0 * PART_SAFETY_MARGIN) / parts_count
    start = PART_SAFETY_MARGIN + part_duration * (part_index - 1)
    return start, start + part_duration


@dataclass(frozen=True)
class MeasureNode:
    index: int
    measure_id: MeasureId
    part_index: int
    source: int      # signal index in the graph layout
    progress: int    # progress ratio signal index
    start: float
    end: float
    used_for_scoring: bool
    used_for_energy: bool

    @property
    def is_directional(self) -> bool:
        return self.measure_id in DIRECTIONAL_MEASURE_IDS


@dataclass(frozen=True)
class MeasureResult:
    """Value of one measure captured when the move stopped."""
    measure_id: MeasureId
    value: float
    part_index: int

    @property
    def is_directional(self) -> bool:
        return self.measure_id in DIRECTIONAL_MEASURE_IDS


@dataclass(frozen=True)
class AnalysisLayout:
    """Signal graph and measure nodes for one (measures set, parts count) key."""
    measures_set: MeasureSet
    parts_count: int
    energy_required: bool
    graph: GraphLayout
    measures: Tuple[MeasureNode, ...]


def _wished_measures(measures_set: MeasureSet, energy_required: bool) -> List[Tuple[int, bool, bool]]:
    """(measure id, used for scoring, used for energy), scored ones first."""
    wished = []
    for measure_id in range(MEASURE_ID_COUNT):
        if measure_id in measures_set:
            wished.append((measure_id, True, energy_required and measure_id in ENERGY_MEASURES))
    if energy_required:
        for measure_id in range(MEASURE_ID_COUNT):
            if measure_id in ENERGY_MEASURES and measure_id not in measures_set:
                wished.append((measure_id, False, True))
    return wished


@lru_cache(maxsize=64)
def build_analysis_layout(measures_set: MeasureSet, parts_count: int, energy_required: bool) -> AnalysisLayout:
    """Built once per key and shared read-only by every session using it."""
    if parts_count < 1:
        raise ValueError(f"parts_count must be >= 1, got {parts_count}")

    wished = [
        (MeasureId(measure_id), scoring, energy)
        for measure_id, scoring, energy in _wished_measures(measures_set, energy_required)
        if measure_id in MEASURE_SOURCES
    ]
    graph = build_layout(MEASURE_SOURCES[measure_id] for measure_id, _, _ in wished)
    progress = graph.index(SignalId.BASE_PROGRESS_RATIO)

    measures: List[MeasureNode] = []
    for measure_id, scoring, energy in wished:
        source = graph.index(MEASURE_SOURCES[measure_id])
        for part_index in range(1, parts_count + 1):
            start, end = part_bounds(part_index, parts_count)
            measures.append(MeasureNode(
                index=len(measures),
                measure_id=measure_id,
                part_index=part_index,
                source=source,
                progress=progress,
                start=start,
                end=end,
                used_for_scoring=scoring,
                used_for_energy=energy,
            ))

    logger.debug(
        f"Built analysis layout: bitfield={measures_set.bits:#x}, parts={parts_count}, "
        f"energy={energy_required}, signals={len(graph.nodes)}, measures={len(measures)}"
    )
    return AnalysisLayout(
        measures_set=measures_set,
        parts_count=parts_count,
        energy_required=energy_required,
        graph=graph,
        measures=tuple(measures),
    )


class MeasureExtractor:
    """
    Captures part-scoped measure values from a SignalGraph.

    While the progress ratio is inside a part's [start, end) window the
    measure follows its source signal. The first sample at or after `end`
    performs one last capture, after which the measure stops updating.
    """

    def __init__(self, layout: AnalysisLayout):
        self.layout = layout
        self.reset()

    def reset(self) -> None:
        n = len(self.layout.measures)
        self._values: List[float] = [0.0] * n
        self._in_part: List[bool] = [False] * n

    def update(self, graph: SignalGraph) -> None:
        for node in self.layout.measures:
            progress_ratio = graph.value_at(node.progress)
            if node.start <= progress_ratio < node.end:
                self._values[node.index] = graph.value_at(node.source)
                self._in_part[node.index] = True
            elif progress_ratio >= node.end and self._in_part[node.index]:
                self._values[node.index] = graph.value_at(node.source)
                self._in_part[node.index] = False

    def value(self, node: MeasureNode) -> float:
        return self._values[node.index]

    def scoring_results(self) -> List[MeasureResult]:
        return [
            MeasureResult(node.measure_id, self._values[node.index], node.part_index)
            for node in self.layout.measures if node.used_for_scoring
        ]

    def energy_results(self) -> List[MeasureResult]:
        return [
            MeasureResult(node.measure_id, self._values[node.index], node.part_index)
            for node in self.layout.measures if node.used_for_energy
        ]
