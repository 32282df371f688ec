"""
One-call scoring of a recorded move.

Takes timestamped accelerometer samples, normalizes time into a progress
ratio and runs a full ScoreSession over them.
"""

import logging
import math
from dataclasses import asdict, dataclass
from typing import Iterable, Optional, Sequence, Tuple, Union

from movescore.config import get_settings
from movescore.engine.autocorrelation import AC_NO_REFERENCE
from movescore.engine.classifier_codec import ClassifierData
from movescore.engine.energy_analyzer import ENERGY_UNAVAILABLE
from movescore.engine.score_session import ScoreSession

logger = logging.getLogger(__name__)


# (timestamp in ms, ax, ay, az), accelerations in g
TimedSample = Tuple[float, float, float, float]

MIN_SAMPLES = 2


@dataclass
class MoveScoreResult:
    valid: bool
    ratio_score: float = 0.0
    percentage_score: float = 0.0
    statistical_distance: float = math.inf
    energy_amount: float = ENERGY_UNAVAILABLE
    energy_factor: float = ENERGY_UNAVAILABLE
    direction_tendency: float = 0.0
    shake_validation_time: float = AC_NO_REFERENCE
    parts_count: int = 0
    samples_used: int = 0
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def to_progress_samples(samples: Iterable[TimedSample]) -> Sequence[Tuple[float, float, float, float]]:
    """Sort by timestamp and map time onto [0, 1]."""
    ordered = sorted(samples, key=lambda s: s[0])
    if len(ordered) < 2:
        return []
    t0 = ordered[0][0]
    span = ordered[-1][0] - t0
    if span <= 0:
        return []
    return [((t - t0) / span, ax, ay, az) for t, ax, ay, az in ordered]


def score_move(
    classifier: Union[bytes, bytearray, ClassifierData],
    samples: Iterable[TimedSample],
    game_move_duration: float,
    settings=None,
    session: Optional[ScoreSession] = None,
) -> MoveScoreResult:
    """
    Score one move attempt.

    Invalid classifiers raise DecodeError. Too few samples, or a window
    shorter than the minimum move duration, give an invalid result with
    zero score instead of raising.
    """
    if settings is None:
        settings = get_settings()
    if session is None:
        session = ScoreSession.from_settings(settings)

    samples = list(samples)
    if len(samples) < MIN_SAMPLES:
        logger.warning(f"Move rejected: {len(samples)} samples, at least {MIN_SAMPLES} needed")
        return MoveScoreResult(valid=False, samples_used=len(samples), reason="too_few_samples")

    timestamps = [s[0] for s in samples]
    window_ms = max(timestamps) - min(timestamps)
    if window_ms < settings.min_move_duration_ms:
        logger.warning(f"Move rejected: {window_ms:.0f}ms window is shorter than {settings.min_move_duration_ms:.0f}ms")
        return MoveScoreResult(valid=False, samples_used=len(samples), reason="move_too_short")

    session.start_move_analysis(classifier, game_move_duration)
    try:
        used = 0
        for progress, ax, ay, az in to_progress_samples(samples):
            session.update(progress, ax, ay, az)
            used += 1
        session.stop_move_analysis()
    except Exception:
        session.abandon()
        raise

    direction_tendency = 0.0
    if session.can_compute_direction_tendency():
        direction_tendency = session.direction_tendency_impact()

    result = MoveScoreResult(
        valid=not session.insufficient_data,
        ratio_score=session.ratio_score(),
        percentage_score=session.percentage_score(),
        statistical_distance=session.statistical_distance(),
        energy_amount=session.energy_amount(settings.energy_amount_damping),
        energy_factor=session.energy_factor(settings.energy_factor_damping),
        direction_tendency=direction_tendency,
        shake_validation_time=session.autocorrelation_validation_time(
            settings.auto_correlation_step_shift, settings.auto_correlation_max_shift
        ),
        parts_count=session.parts_count,
        samples_used=used,
        reason="too_few_samples" if session.insufficient_data else None,
    )
    logger.info(
        f"Scored move '{session.classifier.name}': {result.percentage_score:.1f}% "
        f"(distance {result.statistical_distance:.3f}, shake {result.shake_validation_time:.2f})"
    )
    return result
