"""
Motion scoring engine.

ENGINE COMPONENTS:
1. ClassifierCodec: binary classifier decoding, validation and encoding
2. SignalGraph: incremental derivative / norm / average signals
3. MeasureExtractor: part-scoped measure capture
4. StatisticalScorer: Naive Bayes or Mahalanobis distance, ratio score
5. EnergyAnalyzer: movement energy amount and factor
6. AutoCorrelationAnalyzer: shake detection
7. DirectionAnalyzer: backwards-move detection
8. SignalSmoother: optional fixed-frequency resampling
9. ScoreSession: Idle/Running/Stopped orchestration of all of the above

Usage:
    from movescore.engine import ScoreSession

    session = ScoreSession(default_low=1.0, default_high=3.5)
    session.start_move_analysis(classifier_bytes, game_move_duration=2.0)
    for progress, ax, ay, az in samples:
        session.update(progress, ax, ay, az)
    session.stop_move_analysis()
    print(session.percentage_score())
"""

from movescore.engine.errors import (
    MoveScoreError, DecodeError, TruncatedDataError, UnsupportedVersionError,
    SizeMismatchError, InvalidClassifierError, StateError,
)
from movescore.engine.classifier_codec import (
    ClassifierData, ClassifierHeader, CustomizationFlags, MeasureSet,
    ScoringAlgorithm, decode, encode, read_header, peek_format_version,
)
from movescore.engine.signal_graph import SignalGraph, SignalId, SignalKind, build_layout
from movescore.engine.measure_extractor import (
    MeasureExtractor, MeasureId, MeasureResult, build_analysis_layout, compute_parts_count,
)
from movescore.engine.statistical_scorer import statistical_distance, ratio_score
from movescore.engine.energy_analyzer import energy_amount, energy_factor
from movescore.engine.autocorrelation import AutoCorrelationAnalyzer
from movescore.engine.direction_analyzer import DirectionAnalysis, analyze_direction
from movescore.engine.signal_smoother import SignalSmoother
from movescore.engine.score_session import ScoreSession, SessionState, SessionThresholds
from movescore.engine.move_scorer import MoveScoreResult, score_move

__all__ = [
    # Errors
    "MoveScoreError",
    "DecodeError",
    "TruncatedDataError",
    "UnsupportedVersionError",
    "SizeMismatchError",
    "InvalidClassifierError",
    "StateError",

    # Classifier files
    "ClassifierData",
    "ClassifierHeader",
    "CustomizationFlags",
    "MeasureSet",
    "ScoringAlgorithm",
    "decode",
    "encode",
    "read_header",
    "peek_format_version",

    # Signals and measures
    "SignalGraph",
    "SignalId",
    "SignalKind",
    "build_layout",
    "MeasureExtractor",
    "MeasureId",
    "MeasureResult",
    "build_analysis_layout",
    "compute_parts_count",

    # Analysis
    "statistical_distance",
    "ratio_score",
    "energy_amount",
    "energy_factor",
    "AutoCorrelationAnalyzer",
    "DirectionAnalysis",
    "analyze_direction",
    "SignalSmoother",

    # Orchestration
    "ScoreSession",
    "SessionState",
    "SessionThresholds",
    "MoveScoreResult",
    "score_move",
]
