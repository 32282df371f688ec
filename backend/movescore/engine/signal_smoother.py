"""Optional resampling of incoming samples to a fixed frequency."""

import logging
import math
from typing import Callable

logger = logging.getLogger(__name__)


SampleSink = Callable[[float, float, float, float], None]


class SignalSmoother:
    """
    Averages raw samples into fixed-size progress buckets.

    A frequency <= 0 (or an unknown move duration) forwards every sample
    unchanged. Smoothing cancels itself for the rest of the move as soon as
    the input turns out to be sparser than the bucket size.
    """

    def __init__(self, frequency: float = -1.0):
        self.frequency = frequency
        self.start(0.0)

    def start(self, game_move_duration: float) -> None:
        self.game_move_duration = game_move_duration
        if self.frequency > 0 and game_move_duration > 0:
            self.next_progress = 1.0 / (game_move_duration * self.frequency)
            self.current_frequency = self.frequency
        else:
            self.next_progress = math.inf
            self.current_frequency = -1.0
        self._reset_bucket()

    def _reset_bucket(self) -> None:
        self._count = 0
        self._sum_x = 0.0
        self._sum_y = 0.0
        self._sum_z = 0.0

    @property
    def active(self) -> bool:
        return self.current_frequency > 0

    def feed(self, progress_ratio: float, ax: float, ay: float, az: float, sink: SampleSink) -> bool:
        """Push one raw sample; returns True when `sink` was called."""
        if not self.active:
            sink(progress_ratio, ax, ay, az)
            return True

        updated = False
        if progress_ratio > self.next_progress:
            step = 1.0 / (self.game_move_duration * self.current_frequency)
            if progress_ratio > self.next_progress + step or self._count == 0:
                logger.debug(f"Signal smoothing cancelled at progress {progress_ratio:.3f}")
                self.current_frequency = -1.0
                sink(progress_ratio, ax, ay, az)
            else:
                sink(
                    self.next_progress - 0.5 * step,
                    self._sum_x / self._count,
                    self._sum_y / self._count,
                    self._sum_z / self._count,
                )
                self.next_progress += step
                self._reset_bucket()
            updated = True

        if self.active:
            self._count += 1
            self._sum_x += ax
            self._sum_y += ay
            self._sum_z += az
        return updated
