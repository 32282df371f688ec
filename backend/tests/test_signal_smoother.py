"""Tests for optional sample resampling."""

import pytest

from movescore.engine.signal_smoother import SignalSmoother


class Sink:
    def __init__(self):
        self.samples = []

    def __call__(self, progress, ax, ay, az):
        self.samples.append((progress, ax, ay, az))


@pytest.fixture
def sink():
    return Sink()


class TestSignalSmoother:
    def test_disabled_forwards_everything(self, sink):
        smoother = SignalSmoother(-1.0)
        smoother.start(1.0)
        assert smoother.feed(0.3, 1.0, 2.0, 3.0, sink)
        assert sink.samples == [(0.3, 1.0, 2.0, 3.0)]

    def test_disabled_without_move_duration(self, sink):
        smoother = SignalSmoother(10.0)
        smoother.start(0.0)
        assert not smoother.active
        assert smoother.feed(0.3, 1.0, 0.0, 0.0, sink)

    def test_bucket_average(self, sink):
        smoother = SignalSmoother(10.0)
        smoother.start(1.0)
        assert not smoother.feed(0.05, 1.0, 0.0, 2.0, sink)
        assert not smoother.feed(0.08, 3.0, 0.0, 4.0, sink)
        assert smoother.feed(0.12, 5.0, 0.0, 0.0, sink)

        progress, ax, ay, az = sink.samples[0]
        assert progress == pytest.approx(0.05)
        assert (ax, ay, az) == (2.0, 0.0, 3.0)
        assert smoother.next_progress == pytest.approx(0.2)
        assert smoother.active

    def test_sparse_input_cancels_smoothing(self, sink):
        smoother = SignalSmoother(10.0)
        smoother.start(1.0)
        smoother.feed(0.05, 1.0, 0.0, 0.0, sink)
        assert smoother.feed(0.35, 7.0, 0.0, 0.0, sink)
        assert sink.samples == [(0.35, 7.0, 0.0, 0.0)]
        assert not smoother.active

        smoother.feed(0.4, 8.0, 0.0, 0.0, sink)
        assert sink.samples[-1] == (0.4, 8.0, 0.0, 0.0)

    def test_empty_bucket_cancels_smoothing(self, sink):
        smoother = SignalSmoother(10.0)
        smoother.start(1.0)
        smoother.feed(0.15, 1.0, 0.0, 0.0, sink)
        assert sink.samples == [(0.15, 1.0, 0.0, 0.0)]
        assert not smoother.active

    def test_restart_reenables(self, sink):
        smoother = SignalSmoother(10.0)
        smoother.start(1.0)
        smoother.feed(0.9, 1.0, 0.0, 0.0, sink)
        smoother.start(1.0)
        assert smoother.active
