"""
Move analysis session.

A ScoreSession drives one player's move attempts, one at a time:

    session = ScoreSession(default_low=1.0, default_high=3.5)
    session.start_move_analysis(classifier_bytes, game_move_duration=2.0)
    for progress, ax, ay, az in samples:
        session.update(progress, ax, ay, az)
    session.stop_move_analysis()
    score = session.ratio_score()

Queries are valid once the move is stopped, until the next start.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

from movescore.engine import energy_analyzer, statistical_scorer
from movescore.engine.autocorrelation import AC_IGNORED, AutoCorrelationAnalyzer
from movescore.engine.classifier_codec import UNSET, ClassifierData, CustomizationFlags, decode
from movescore.engine.direction_analyzer import DirectionAnalysis, analyze_direction
from movescore.engine.errors import InvalidClassifierError, StateError
from movescore.engine.measure_extractor import (
    AnalysisLayout,
    MeasureExtractor,
    MeasureResult,
    build_analysis_layout,
    compute_parts_count,
)
from movescore.engine.signal_graph import HUGE_NEGATIVE_VALUE, SignalGraph, SignalId
from movescore.engine.signal_smoother import SignalSmoother

logger = logging.getLogger(__name__)


STAT_DIST_LOW_THRESHOLD_MIN = 0.4
STAT_DIST_LOW_THRESHOLD_MAX = 1.4
STAT_DIST_HIGH_THRESHOLD_MIN = 1.5
STAT_DIST_HIGH_THRESHOLD_MAX = 6.0
AUTO_CORRELATION_THRESHOLD_MIN = 0.5
AUTO_CORRELATION_THRESHOLD_MAX = 1.3
DIRECTION_IMPACT_FACTOR_MIN = 0.0
DIRECTION_IMPACT_FACTOR_MAX = 1.0

DEFAULT_AC_STEP_SHIFT = 0.05
DEFAULT_AC_MAX_SHIFT = 0.5

# fewer graph updates than this make the move unscorable
MIN_GRAPH_UPDATES = 2


class SessionState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(frozen=True)
class SessionThresholds:
    """Effective per-move thresholds after defaults, modifiers and clamping."""
    stat_dist_low: float
    stat_dist_high: float
    auto_correlation: float
    direction_impact_factor: float


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


@dataclass
class TuningModifiers:
    low_distance_threshold: float = 0.0
    high_distance_threshold: float = 0.0
    shake_sensitivity: float = 0.0
    direction_sensitivity: float = 0.0


class ScoreSession:
    """
    Idle -> Running -> Stopped state machine wiring the engine components.

    Not thread-safe: one owner drives start/update/stop/queries sequentially.
    Independent sessions share nothing mutable and can run in parallel.
    """

    def __init__(
        self,
        default_low: float = UNSET,
        default_high: float = UNSET,
        default_auto_correlation: float = UNSET,
        default_direction_factor: float = UNSET,
        smoothing_frequency: float = -1.0,
    ):
        self.default_low = default_low
        self.default_high = default_high
        self.default_auto_correlation = default_auto_correlation
        self.default_direction_factor = default_direction_factor
        self.modifiers = TuningModifiers()

        self._smoother = SignalSmoother(smoothing_frequency)
        self._state = SessionState.IDLE
        self._layout: Optional[AnalysisLayout] = None
        self._graph: Optional[SignalGraph] = None
        self._extractor: Optional[MeasureExtractor] = None
        self._auto_correlation = AutoCorrelationAnalyzer()
        self._classifier: Optional[ClassifierData] = None
        self._thresholds: Optional[SessionThresholds] = None
        self._flags = CustomizationFlags.NONE
        self._game_move_duration = 0.0
        self._clear_results()

    @classmethod
    def from_settings(cls, settings) -> "ScoreSession":
        return cls(
            default_low=settings.default_stat_dist_low_threshold,
            default_high=settings.default_stat_dist_high_threshold,
            default_auto_correlation=settings.default_auto_correlation_threshold,
            default_direction_factor=settings.default_direction_impact_factor,
            smoothing_frequency=settings.signal_smoothing_frequency,
        )

    def _clear_results(self) -> None:
        self._measure_results: List[MeasureResult] = []
        self._energy_means: Tuple[float, ...] = ()
        self._distance: Optional[float] = None
        self._direction: Optional[DirectionAnalysis] = None
        self._direction_computed = False
        self._graph_updates = 0
        self._insufficient_data = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def smoothing_frequency(self) -> float:
        return self._smoother.frequency

    # Tuning modifiers, applied at the next start

    def modify_low_distance_threshold(self, modifier: float) -> None:
        self.modifiers.low_distance_threshold = modifier

    def modify_high_distance_threshold(self, modifier: float) -> None:
        self.modifiers.high_distance_threshold = modifier

    def modify_shake_sensitivity(self, modifier: float) -> None:
        self.modifiers.shake_sensitivity = modifier

    def modify_direction_sensitivity(self, modifier: float) -> None:
        self.modifiers.direction_sensitivity = modifier

    # Lifecycle

    def start_move_analysis(
        self,
        classifier: Union[bytes, bytearray, ClassifierData],
        game_move_duration: float,
    ) -> None:
        """
        Begin analysing a move.

        Raises:
            StateError: a move is already running (call abandon() first)
            DecodeError: classifier bytes are invalid, or it scores nothing
        """
        if self._state is SessionState.RUNNING:
            raise StateError("A move is already running; stop or abandon it first")

        if not isinstance(classifier, ClassifierData):
            classifier = decode(classifier)
        if not classifier.measures_set:
            raise InvalidClassifierError(f"Classifier '{classifier.name}' has an empty measures set")

        parts_count = compute_parts_count(classifier.format_version, classifier.duration)
        layout = build_analysis_layout(
            classifier.measures_set, parts_count, classifier.energy_computation_required
        )
        if layout is not self._layout:
            logger.debug(f"Rebuilding signal graph for '{classifier.name}' ({parts_count} parts)")
            self._layout = layout
            self._graph = SignalGraph(layout.graph)
            self._extractor = MeasureExtractor(layout)
        else:
            self._graph.reset()
            self._extractor.reset()

        self._classifier = classifier
        self._game_move_duration = game_move_duration
        self._flags = classifier.customization_flags
        self._thresholds = self._effective_thresholds(classifier)
        self._smoother.start(game_move_duration)
        self._auto_correlation.reset()
        self._clear_results()

        self._state = SessionState.RUNNING
        logger.info(
            f"Started move '{classifier.name}': {parts_count} parts, "
            f"game duration {game_move_duration:.3f}s, thresholds {self._thresholds}"
        )

    def _effective_thresholds(self, classifier: ClassifierData) -> SessionThresholds:
        def pick(file_value: float, default: float) -> float:
            return default if file_value == UNSET else file_value

        low = pick(classifier.stat_dist_low_threshold, self.default_low)
        low = _clamp(low + self.modifiers.low_distance_threshold,
                     STAT_DIST_LOW_THRESHOLD_MIN, STAT_DIST_LOW_THRESHOLD_MAX)

        high = pick(classifier.stat_dist_high_threshold, self.default_high)
        high = _clamp(high + self.modifiers.high_distance_threshold,
                      STAT_DIST_HIGH_THRESHOLD_MIN, STAT_DIST_HIGH_THRESHOLD_MAX)

        auto_correlation = pick(classifier.auto_correlation_threshold, self.default_auto_correlation)
        auto_correlation += self.modifiers.shake_sensitivity * (
            AUTO_CORRELATION_THRESHOLD_MIN - AUTO_CORRELATION_THRESHOLD_MAX
        )
        auto_correlation = _clamp(auto_correlation, AUTO_CORRELATION_THRESHOLD_MIN, AUTO_CORRELATION_THRESHOLD_MAX)
        if auto_correlation == AUTO_CORRELATION_THRESHOLD_MAX:
            self._flags |= CustomizationFlags.IGNORE_AUTO_CORRELATION

        direction = pick(classifier.direction_impact_factor, self.default_direction_factor)
        direction = _clamp(direction + self.modifiers.direction_sensitivity,
                           DIRECTION_IMPACT_FACTOR_MIN, DIRECTION_IMPACT_FACTOR_MAX)
        if direction == DIRECTION_IMPACT_FACTOR_MIN:
            self._flags |= CustomizationFlags.IGNORE_PARTS_DIRECTION

        return SessionThresholds(low, high, auto_correlation, direction)

    def update(self, progress_ratio: float, ax: float, ay: float, az: float) -> bool:
        """Feed one sample (accelerations in g); returns whether the graph was updated."""
        if self._state is not SessionState.RUNNING:
            raise StateError(f"update() called while {self._state.value}; start a move first")
        return self._smoother.feed(progress_ratio, ax, ay, az, self._update_graph)

    def _update_graph(self, progress_ratio: float, ax: float, ay: float, az: float) -> None:
        self._graph_updates += 1
        self._graph.update(progress_ratio, ax, ay, az)
        self._extractor.update(self._graph)
        if self._game_move_duration > 0 and SignalId.ACCEL_NORM in self._layout.graph:
            self._auto_correlation.add_sample(
                progress_ratio * self._game_move_duration,
                self._graph.value(SignalId.ACCEL_NORM),
            )

    def stop_move_analysis(self) -> None:
        if self._state is not SessionState.RUNNING:
            raise StateError(f"stop_move_analysis() called while {self._state.value}")
        self._measure_results = self._extractor.scoring_results()
        self._energy_means = energy_analyzer.energy_means_from_results(
            self._extractor.energy_results(), self._layout.energy_required
        )
        self._insufficient_data = self._graph_updates < MIN_GRAPH_UPDATES
        if self._insufficient_data:
            logger.warning(
                f"Move '{self._classifier.name}' stopped after {self._graph_updates} graph updates, "
                f"at least {MIN_GRAPH_UPDATES} needed to score it"
            )
        self._state = SessionState.STOPPED
        logger.info(
            f"Stopped move '{self._classifier.name}': {len(self._measure_results)} measure results, "
            f"{len(self._auto_correlation)} autocorrelation samples"
        )

    def abandon(self) -> None:
        """Drop the current move, whatever its state."""
        if self._state is not SessionState.IDLE:
            logger.debug(f"Abandoning move in state {self._state.value}")
        self._clear_results()
        self._state = SessionState.IDLE

    # Queries

    def _require_stopped(self, query: str) -> None:
        if self._state is not SessionState.STOPPED:
            raise StateError(f"{query} is only valid after stop_move_analysis(), session is {self._state.value}")

    def statistical_distance(self) -> float:
        self._require_stopped("statistical_distance()")
        if self._insufficient_data:
            logger.warning("Statistical distance requested for a move with insufficient data")
            return math.inf
        if self._distance is None:
            self._distance = statistical_scorer.statistical_distance(self._measure_results, self._classifier)
        return self._distance

    def ratio_score(self) -> float:
        distance = self.statistical_distance()
        if self._insufficient_data or distance < 0:
            return 0.0
        return statistical_scorer.ratio_score(
            distance, self._thresholds.stat_dist_low, self._thresholds.stat_dist_high
        )

    def percentage_score(self) -> float:
        return 100.0 * self.ratio_score()

    def energy_amount(self, dev_norm_ratio: float = 0.1) -> float:
        self._require_stopped("energy_amount()")
        if self._insufficient_data:
            logger.warning("Energy amount requested for a move with insufficient data")
            return energy_analyzer.ENERGY_UNAVAILABLE
        return energy_analyzer.energy_amount(self._energy_means, dev_norm_ratio)

    def energy_factor(self, dev_norm_ratio: float = 0.5) -> float:
        self._require_stopped("energy_factor()")
        if self._insufficient_data:
            logger.warning("Energy factor requested for a move with insufficient data")
            return energy_analyzer.ENERGY_UNAVAILABLE
        return energy_analyzer.energy_factor(self._energy_means, self._classifier.energy_means, dev_norm_ratio)

    def can_compute_direction_tendency(self, dont_compute_if_ignored: bool = True) -> bool:
        """Run the per-part direction analysis; False when it cannot be done."""
        self._require_stopped("can_compute_direction_tendency()")
        ignored = bool(self._flags & CustomizationFlags.IGNORE_PARTS_DIRECTION)
        if dont_compute_if_ignored and ignored:
            return False
        analysis = analyze_direction(
            self._measure_results, self._classifier, self._layout.parts_count, ignored=ignored
        )
        if analysis is None:
            return False
        self._direction = analysis
        self._direction_computed = True
        return True

    def direction_tendency_impact(self) -> float:
        self._require_stopped("direction_tendency_impact()")
        if not self._direction_computed:
            return 0.0
        return self._direction.tendency_impact(self._thresholds.direction_impact_factor)

    def sure_right_direction_ratio(self) -> float:
        self._require_stopped("sure_right_direction_ratio()")
        if not self._direction_computed:
            return 0.0
        return self._direction.sure_right_ratio()

    def sure_wrong_direction_ratio(self) -> float:
        self._require_stopped("sure_wrong_direction_ratio()")
        if not self._direction_computed:
            return 0.0
        return self._direction.sure_wrong_ratio()

    def autocorrelation_validation_time(
        self,
        step_shift: float = DEFAULT_AC_STEP_SHIFT,
        max_shift: float = DEFAULT_AC_MAX_SHIFT,
        threshold: Optional[float] = None,
        dont_compute_if_ignored: bool = True,
    ) -> float:
        """
        Shift (s) at which the move looks like shaking, or a negative code:
        -6 ignored, -7 no usable signal, -8 signal too short, -9 not shaking.
        """
        self._require_stopped("autocorrelation_validation_time()")
        ignored = bool(self._flags & CustomizationFlags.IGNORE_AUTO_CORRELATION)
        if dont_compute_if_ignored and ignored:
            return AC_IGNORED
        if threshold is None:
            threshold = self._thresholds.auto_correlation
        return self._auto_correlation.validation_time(step_shift, max_shift, threshold, ignored=ignored)

    # Introspection

    @property
    def classifier(self) -> Optional[ClassifierData]:
        return self._classifier

    @property
    def customization_flags(self) -> CustomizationFlags:
        return self._flags

    @property
    def thresholds(self) -> Optional[SessionThresholds]:
        return self._thresholds

    @property
    def analysis_layout(self) -> Optional[AnalysisLayout]:
        return self._layout

    @property
    def insufficient_data(self) -> bool:
        """True once a stopped move turned out to have too few samples to score."""
        return self._insufficient_data

    @property
    def parts_count(self) -> int:
        return self._layout.parts_count if self._layout else 0

    @property
    def measure_results(self) -> List[MeasureResult]:
        self._require_stopped("measure_results")
        return list(self._measure_results)

    @property
    def energy_means_results(self) -> Tuple[float, ...]:
        self._require_stopped("energy_means_results")
        return self._energy_means

    def signal_value(self, signal_id: SignalId) -> float:
        if self._graph is None:
            return HUGE_NEGATIVE_VALUE
        return self._graph.value(signal_id)
