"""
Backwards-move detection.

Every part contributes a 3-D vector of directional deviation averages. The
vector is compared with the classifier means twice, as performed and with
its sign inverted: a part whose inverted vector is closer to the means than
the performed one was most likely danced the wrong way round.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from movescore.engine.classifier_codec import ClassifierData
from movescore.engine.measure_extractor import MeasureId, MeasureResult

logger = logging.getLogger(__name__)


_AXIS_OF = {
    MeasureId.AX_DEV_AVG_DIR_NP: 0,
    MeasureId.AY_DEV_AVG_DIR_NP: 1,
    MeasureId.AZ_DEV_AVG_DIR_NP: 2,
}


@dataclass
class _PartVectors:
    results: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    means: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    inverted_covariances: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])

    def distance(self, sign: float) -> float:
        sqr_distance = sum(
            (sign * r - m) ** 2 * ic
            for r, m, ic in zip(self.results, self.means, self.inverted_covariances)
        )
        return math.sqrt(max(0.0, sqr_distance / 3.0))


@dataclass(frozen=True)
class DirectionAnalysis:
    """Per-part distances of the performed and of the inverted move."""
    performed: List[float]
    inverted: List[float]
    ignored: bool = False

    @property
    def parts_count(self) -> int:
        return len(self.performed)

    @property
    def right_count(self) -> int:
        return sum(1 for p, i in zip(self.performed, self.inverted) if i > p)

    @property
    def wrong_count(self) -> int:
        return sum(1 for p, i in zip(self.performed, self.inverted) if i < p)

    def sure_right_ratio(self) -> float:
        ratio = self.right_count / self.parts_count if self.parts_count else 0.0
        return -ratio if self.ignored else ratio

    def sure_wrong_ratio(self) -> float:
        ratio = self.wrong_count / self.parts_count if self.parts_count else 0.0
        return -ratio if self.ignored else ratio

    def tendency_impact(self, impact_factor: float) -> float:
        """In [-factor, factor]; positive when the move was done the right way."""
        if not self.parts_count:
            return 0.0
        return (self.right_count - self.wrong_count) / self.parts_count * impact_factor


def analyze_direction(
    results: Sequence[MeasureResult],
    classifier: ClassifierData,
    parts_count: int,
    ignored: bool = False,
) -> Optional[DirectionAnalysis]:
    """
    Build the per-part direction distances from the scoring measure results.

    The classifier means and inverted covariances are read at the same
    position as the measure result. Returns None when the results do not
    hold exactly three directional measures per part or do not fit the
    classifier arrays.
    """
    parts = [_PartVectors() for _ in range(parts_count)]
    directional_count = 0

    for index, result in enumerate(results):
        axis = _AXIS_OF.get(result.measure_id)
        if axis is None:
            continue
        directional_count += 1
        part_index = result.part_index - 1
        if (not 0 <= part_index < parts_count
                or index >= len(classifier.means)
                or index >= len(classifier.inverted_covariances)):
            logger.warning(
                f"Direction measure {result.measure_id.name} part {result.part_index} "
                f"does not fit classifier '{classifier.name}'"
            )
            return None
        part = parts[part_index]
        part.results[axis] = result.value
        part.means[axis] = classifier.means[index]
        part.inverted_covariances[axis] = classifier.inverted_covariances[index]

    if directional_count != 3 * parts_count:
        logger.debug(
            f"Direction analysis needs {3 * parts_count} directional measures, got {directional_count}"
        )
        return None

    return DirectionAnalysis(
        performed=[part.distance(1.0) for part in parts],
        inverted=[part.distance(-1.0) for part in parts],
        ignored=ignored,
    )
