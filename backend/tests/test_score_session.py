"""Tests for the move analysis state machine."""

import logging
import math

import pytest

from movescore.engine.autocorrelation import AC_IGNORED, AC_NO_REFERENCE
from movescore.engine.classifier_codec import (
    FORMAT_VERSION_WITHOUT_AC_AND_DIR_SETTINGS,
    CustomizationFlags,
    MeasureSet,
)
from movescore.engine.errors import InvalidClassifierError, SizeMismatchError, StateError
from movescore.engine.measure_extractor import MeasureId
from movescore.engine.score_session import ScoreSession, SessionState
from movescore.engine.signal_graph import SignalId

from conftest import constant_samples

AXES = (MeasureId.AX_DEV_AVG_DIR_NP, MeasureId.AY_DEV_AVG_DIR_NP, MeasureId.AZ_DEV_AVG_DIR_NP)


def run_move(session, classifier, samples, game_move_duration=2.0):
    session.start_move_analysis(classifier, game_move_duration)
    for sample in samples:
        session.update(*sample)
    session.stop_move_analysis()
    return session


class TestScoring:
    def test_perfect_match_scores_one(self, make_classifier_bytes):
        session = run_move(ScoreSession(), make_classifier_bytes(), constant_samples(10, 1.0))
        assert session.statistical_distance() == pytest.approx(0.0)
        assert session.ratio_score() == 1.0
        assert session.percentage_score() == 100.0

    def test_threshold_boundary(self, make_classifier_bytes):
        session = run_move(ScoreSession(), make_classifier_bytes(), constant_samples(10, 4.0))
        assert session.statistical_distance() == pytest.approx(3.0)
        assert session.ratio_score() == pytest.approx(0.2)

    def test_accepts_decoded_classifier(self, make_classifier):
        session = run_move(ScoreSession(), make_classifier(), constant_samples(10, 1.0))
        assert session.ratio_score() == 1.0

    def test_measure_results(self, make_classifier_bytes):
        session = run_move(ScoreSession(), make_classifier_bytes(), constant_samples(10, 2.0))
        results = session.measure_results
        assert len(results) == 1
        assert results[0].measure_id == MeasureId.ACCEL_NORM_AVG_NP
        assert results[0].value == pytest.approx(2.0)
        assert session.parts_count == 1
        assert session.signal_value(SignalId.ACCEL_NORM) == pytest.approx(2.0)
        assert session.signal_value(SignalId.AX_DEV) < -1e30

    def test_consecutive_moves_do_not_leak(self, make_classifier_bytes):
        session = ScoreSession()
        data = make_classifier_bytes()
        run_move(session, data, constant_samples(10, 4.0))
        run_move(session, data, constant_samples(10, 1.0))
        assert session.ratio_score() == 1.0


class TestDegenerateInputs:
    def test_single_sample(self, make_classifier_bytes):
        session = run_move(ScoreSession(), make_classifier_bytes(), [(0.5, 1.0, 0.0, 0.0)])
        assert session.insufficient_data
        assert session.statistical_distance() == math.inf
        assert session.ratio_score() == 0.0
        assert session.percentage_score() == 0.0
        assert session.autocorrelation_validation_time(0.05, 0.5) == AC_NO_REFERENCE
        assert session.energy_factor() == -1.0
        assert session.energy_amount() == -1.0

    def test_no_samples(self, make_classifier_bytes, caplog):
        data = make_classifier_bytes(energy_means=(1.0, 2.0))
        with caplog.at_level(logging.WARNING, logger="movescore.engine.score_session"):
            session = run_move(ScoreSession(), data, [])
        assert "graph updates" in caplog.text
        assert session.statistical_distance() == math.inf
        assert session.ratio_score() == 0.0
        assert session.energy_amount() == -1.0
        assert session.energy_factor() == -1.0
        assert session.autocorrelation_validation_time() == AC_NO_REFERENCE

    def test_two_samples_are_enough(self, make_classifier_bytes):
        session = run_move(
            ScoreSession(), make_classifier_bytes(), [(0.25, 1.0, 0.0, 0.0), (0.75, 1.0, 0.0, 0.0)]
        )
        assert not session.insufficient_data
        assert session.statistical_distance() == pytest.approx(0.0)
        assert session.ratio_score() == 1.0

    def test_next_move_clears_insufficient_flag(self, make_classifier_bytes):
        session = ScoreSession()
        data = make_classifier_bytes()
        run_move(session, data, [])
        run_move(session, data, constant_samples(10, 1.0))
        assert not session.insufficient_data
        assert session.ratio_score() == 1.0

    def test_empty_measures_set(self, make_classifier_bytes):
        with pytest.raises(InvalidClassifierError):
            ScoreSession().start_move_analysis(make_classifier_bytes(measures_set=MeasureSet(0)), 2.0)

    def test_bad_bytes_never_start(self, make_classifier_bytes):
        session = ScoreSession()
        with pytest.raises(SizeMismatchError):
            session.start_move_analysis(make_classifier_bytes() + b"\x00", 2.0)
        assert session.state is SessionState.IDLE


class TestLifecycle:
    def test_update_before_start(self):
        with pytest.raises(StateError):
            ScoreSession().update(0.0, 1.0, 0.0, 0.0)

    def test_query_while_running(self, make_classifier_bytes):
        session = ScoreSession()
        session.start_move_analysis(make_classifier_bytes(), 2.0)
        with pytest.raises(StateError):
            session.ratio_score()
        with pytest.raises(StateError):
            session.measure_results

    def test_start_while_running(self, make_classifier_bytes):
        session = ScoreSession()
        session.start_move_analysis(make_classifier_bytes(), 2.0)
        with pytest.raises(StateError):
            session.start_move_analysis(make_classifier_bytes(), 2.0)

        session.abandon()
        assert session.state is SessionState.IDLE
        session.start_move_analysis(make_classifier_bytes(), 2.0)
        assert session.state is SessionState.RUNNING

    def test_stop_twice(self, make_classifier_bytes):
        session = run_move(ScoreSession(), make_classifier_bytes(), constant_samples(3, 1.0))
        with pytest.raises(StateError):
            session.stop_move_analysis()

    def test_restart_after_stop(self, make_classifier_bytes):
        session = run_move(ScoreSession(), make_classifier_bytes(), constant_samples(3, 1.0))
        session.start_move_analysis(make_classifier_bytes(), 2.0)
        assert session.state is SessionState.RUNNING
        with pytest.raises(StateError):
            session.statistical_distance()


class TestThresholds:
    def test_file_values_win(self, make_classifier_bytes):
        session = ScoreSession(default_low=0.5, default_high=2.0)
        session.start_move_analysis(make_classifier_bytes(), 2.0)
        assert session.thresholds.stat_dist_low == 1.0
        assert session.thresholds.stat_dist_high == 3.5

    def test_defaults_for_unset_values(self, make_classifier_bytes):
        session = ScoreSession(default_low=0.8, default_high=2.5, default_auto_correlation=0.9)
        data = make_classifier_bytes(stat_dist_low_threshold=-1.0, stat_dist_high_threshold=-1.0)
        session.start_move_analysis(data, 2.0)
        assert session.thresholds.stat_dist_low == pytest.approx(0.8)
        assert session.thresholds.stat_dist_high == pytest.approx(2.5)
        assert session.thresholds.auto_correlation == pytest.approx(0.9)

    def test_old_format_uses_defaults(self, make_classifier_bytes):
        session = ScoreSession(default_direction_factor=0.25)
        data = make_classifier_bytes(format_version=FORMAT_VERSION_WITHOUT_AC_AND_DIR_SETTINGS)
        session.start_move_analysis(data, 2.0)
        assert session.thresholds.direction_impact_factor == pytest.approx(0.25)

    def test_modifiers_and_clamping(self, make_classifier_bytes):
        session = ScoreSession()
        session.modify_low_distance_threshold(1.0)
        session.modify_high_distance_threshold(-10.0)
        session.start_move_analysis(make_classifier_bytes(), 2.0)
        assert session.thresholds.stat_dist_low == 1.4
        assert session.thresholds.stat_dist_high == 1.5

    def test_unset_everything_clamps_to_minimums(self, make_classifier_bytes):
        session = ScoreSession()
        session.start_move_analysis(make_classifier_bytes(), 2.0)
        assert session.thresholds.auto_correlation == 0.5
        assert session.thresholds.direction_impact_factor == 0.0
        assert session.customization_flags & CustomizationFlags.IGNORE_PARTS_DIRECTION

    def test_max_shake_threshold_ignores_autocorrelation(self, make_classifier_bytes):
        session = ScoreSession()
        session.modify_shake_sensitivity(-1.0)
        run_move(session, make_classifier_bytes(auto_correlation_threshold=0.5), constant_samples(10, 1.0))
        assert session.thresholds.auto_correlation == pytest.approx(1.3)
        assert session.customization_flags & CustomizationFlags.IGNORE_AUTO_CORRELATION
        assert session.autocorrelation_validation_time() == AC_IGNORED


class TestEnergy:
    def test_energy_from_extra_measures(self, make_classifier_bytes):
        data = make_classifier_bytes(energy_means=(1.0, 2.0))
        session = run_move(ScoreSession(), data, constant_samples(10, 2.0))
        assert session.energy_means_results == pytest.approx((2.0, 0.0))
        assert session.energy_amount(0.1) == pytest.approx(0.9)
        assert session.energy_factor(0.5) == pytest.approx(1.0)
        # energy-only measures are not scored
        assert len(session.measure_results) == 1


class TestDirection:
    @pytest.fixture
    def direction_bytes(self, make_classifier_bytes):
        return make_classifier_bytes(
            measures_set=MeasureSet.of(*AXES),
            scoring_algorithm_type=3,
            means=(2.0, 0.0, 0.0),
            inverted_covariances=(1.0, 1.0, 1.0),
            direction_impact_factor=0.5,
        )

    def ramp(self, slope):
        return [(i / 9, slope * i / 9, 0.0, 0.0) for i in range(10)]

    def test_right_way_round(self, direction_bytes):
        session = run_move(ScoreSession(), direction_bytes, self.ramp(2.0))
        assert session.can_compute_direction_tendency()
        assert session.sure_right_direction_ratio() == 1.0
        assert session.direction_tendency_impact() == pytest.approx(0.5)
        assert session.statistical_distance() == math.inf
        assert session.ratio_score() == 0.0

    def test_backwards(self, direction_bytes):
        session = run_move(ScoreSession(), direction_bytes, self.ramp(-2.0))
        assert session.can_compute_direction_tendency()
        assert session.sure_wrong_direction_ratio() == 1.0
        assert session.direction_tendency_impact() == pytest.approx(-0.5)

    def test_ignored_direction(self, make_classifier_bytes):
        data = make_classifier_bytes(
            measures_set=MeasureSet.of(*AXES),
            scoring_algorithm_type=3,
            means=(2.0, 0.0, 0.0),
            inverted_covariances=(1.0, 1.0, 1.0),
            direction_impact_factor=0.5,
            customization_flags=CustomizationFlags.IGNORE_PARTS_DIRECTION,
        )
        session = run_move(ScoreSession(), data, self.ramp(2.0))
        assert not session.can_compute_direction_tendency()
        assert session.direction_tendency_impact() == 0.0
        assert session.can_compute_direction_tendency(dont_compute_if_ignored=False)
        assert session.sure_right_direction_ratio() == -1.0

    def test_no_directional_measures(self, make_classifier_bytes):
        session = run_move(ScoreSession(default_direction_factor=1.0), make_classifier_bytes(), constant_samples(5, 1.0))
        assert not session.can_compute_direction_tendency()
        assert session.sure_right_direction_ratio() == 0.0


class TestSmoothing:
    def test_update_reports_graph_updates(self, make_classifier_bytes):
        session = ScoreSession(smoothing_frequency=10.0)
        session.start_move_analysis(make_classifier_bytes(), 1.0)
        assert not session.update(0.05, 1.0, 0.0, 0.0)
        assert session.update(0.15, 1.0, 0.0, 0.0)


class TestLayouts:
    """Moves with several parts, and switching classifiers within one session."""

    @pytest.fixture
    def multi_part_bytes(self, make_classifier_bytes):
        # v7, 2.0s: floor(2.0 * 30 / 2.49) = 24 parts
        return make_classifier_bytes(
            duration=2.0, scoring_algorithm_type=24, means=(1.0,) * 24, inverted_covariances=(1.0,) * 24
        )

    @pytest.fixture
    def mahalanobis_bytes(self, make_classifier_bytes):
        return make_classifier_bytes(
            measures_set=MeasureSet.of(MeasureId.ACCEL_NORM_AVG_NP, MeasureId.ACCEL_DEV_NORM_AVG_NP),
            scoring_algorithm_type=-2,
            means=(1.0, 0.0),
            inverted_covariances=(1.0, 0.0, 1.0),
        )

    def test_multi_part_move(self, multi_part_bytes):
        session = run_move(ScoreSession(), multi_part_bytes, constant_samples(241, 1.0))
        assert session.parts_count == 24
        results = session.measure_results
        assert [r.part_index for r in results] == list(range(1, 25))
        assert all(r.value == pytest.approx(1.0) for r in results)
        assert session.ratio_score() == 1.0

    def test_multi_part_partial_mismatch(self, multi_part_bytes):
        # only the second half of the move is off by 4 g
        samples = [(p, 1.0 if p < 0.5 else 5.0, 0.0, 0.0) for p, _, _, _ in constant_samples(241, 0.0)]
        session = run_move(ScoreSession(), multi_part_bytes, samples)
        assert 0.0 < session.statistical_distance() < 4.0

    def test_mahalanobis_move(self, mahalanobis_bytes):
        session = run_move(ScoreSession(), mahalanobis_bytes, constant_samples(10, 2.0))
        assert len(session.measure_results) == 2
        # deviations (1, 0) over two used measures
        assert session.statistical_distance() == pytest.approx(math.sqrt(0.5))

    def test_rebuild_on_classifier_change(self, make_classifier_bytes, multi_part_bytes, mahalanobis_bytes):
        session = ScoreSession()
        run_move(session, make_classifier_bytes(), constant_samples(10, 4.0))
        single_part_layout = session.analysis_layout

        run_move(session, multi_part_bytes, constant_samples(241, 1.0))
        assert session.analysis_layout is not single_part_layout
        assert session.parts_count == 24
        assert session.ratio_score() == 1.0

        run_move(session, mahalanobis_bytes, constant_samples(10, 2.0))
        assert session.parts_count == 1
        assert len(session.measure_results) == 2

        run_move(session, make_classifier_bytes(), constant_samples(10, 1.0))
        assert session.analysis_layout is single_part_layout
        assert session.ratio_score() == 1.0

    def test_same_classifier_resets_graph(self, make_classifier_bytes):
        session = ScoreSession()
        data = make_classifier_bytes()
        run_move(session, data, constant_samples(10, 4.0))
        layout = session.analysis_layout
        assert session.signal_value(SignalId.ACCEL_NORM) == pytest.approx(4.0)

        session.start_move_analysis(data, 2.0)
        assert session.analysis_layout is layout
        assert session.signal_value(SignalId.ACCEL_NORM) == 0.0
