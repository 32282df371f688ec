"""
Shake detection through autocorrelation of the acceleration norm.

A player shaking the controller rhythmically instead of dancing produces an
acceleration norm that strongly resembles itself after a short time shift.
The validation time is the first shift at which the normalized
autocorrelation, after having gone negative, rises back above a threshold.
"""

import logging
from typing import List

import numpy as np

logger = logging.getLogger(__name__)


# Error sentinels of validation_time(); all negative
AC_IGNORED = -6.0
AC_NO_REFERENCE = -7.0
AC_SHIFT_FAILED = -8.0
AC_NOT_VALIDATED = -9.0

INTEGRAL_ERROR = -1.0
MAX_SHIFT_TOLERANCE = 0.001


class AutoCorrelationAnalyzer:
    """Collects (time, accel norm) samples for one move and analyzes them."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self._times: List[float] = []
        self._norms: List[float] = []
        self._norms_sum = 0.0
        self._centered = False
        self._cache_times = None
        self._cache_norms = None

    def __len__(self) -> int:
        return len(self._times)

    def add_sample(self, time: float, accel_norm: float) -> None:
        if self._centered:
            raise RuntimeError("Cannot add samples after the signal has been centered")
        self._times.append(time)
        self._norms.append(accel_norm)
        self._norms_sum += accel_norm

    def center(self) -> None:
        """Subtract the mean accel norm; only done once."""
        if self._centered or not self._norms:
            return
        offset = self._norms_sum / len(self._norms)
        self._norms = [norm - offset for norm in self._norms]
        self._centered = True
        self._cache_times = None

    def _arrays(self):
        if self._cache_times is None or len(self._cache_times) != len(self._times):
            self._cache_times = np.asarray(self._times, dtype=np.float64)
            self._cache_norms = np.asarray(self._norms, dtype=np.float64)
        return self._cache_times, self._cache_norms

    def normalized_integral(self, time_shift: float) -> float:
        """
        Trapezoidal integral of norm(t) * norm(t + shift), divided by the
        integrated time span. Returns -1 when fewer than 2 sample pairs exist.
        """
        n = len(self._times)
        if n < 2:
            return INTEGRAL_ERROR
        times, norms = self._arrays()

        shift_index = 0
        if time_shift > 0.0:
            # first sample strictly after the shift, never the last one
            later = np.nonzero(times[:n - 1] > time_shift)[0]
            shift_index = int(later[0]) if len(later) else n - 1
            if shift_index >= n - 1:
                return INTEGRAL_ERROR

        pairs = n - shift_index
        products = norms[:pairs] * norms[shift_index:]
        mid_times = 0.5 * (times[:pairs] + times[shift_index:])

        deltas = np.diff(mid_times)
        trapezoids = 0.5 * (products[:-1] + products[1:]) * deltas
        forward = deltas > 0
        total_time = float(np.sum(deltas[forward]))
        if total_time == 0:
            return 0.0
        return float(np.sum(trapezoids[forward])) / total_time

    def validation_time(
        self,
        step_shift: float,
        max_shift: float,
        ratio_threshold: float,
        ignored: bool = False,
    ) -> float:
        """
        Scan time shifts step_shift, 2*step_shift, ... up to max_shift.

        Returns the first shift where the running minimum ratio is negative
        and the current ratio exceeds `ratio_threshold` (negated when
        `ignored`), or a negative sentinel when nothing validates.
        """
        if step_shift <= 0:
            raise ValueError(f"step_shift must be positive, got {step_shift}")
        if ratio_threshold == -1.0:
            return AC_IGNORED

        self.center()

        reference = self.normalized_integral(0.0)
        if reference == INTEGRAL_ERROR or reference == 0.0:
            logger.warning(f"Autocorrelation has no usable reference integral ({len(self)} samples)")
            return AC_NO_REFERENCE

        min_ratio = float("inf")
        permissive_max_shift = max_shift + MAX_SHIFT_TOLERANCE
        time_shift = step_shift
        while time_shift < permissive_max_shift:
            integral = self.normalized_integral(time_shift)
            if integral == INTEGRAL_ERROR:
                logger.debug(f"Autocorrelation shift {time_shift:.3f}s exceeds the recorded signal")
                return AC_SHIFT_FAILED
            ratio = integral / reference
            min_ratio = min(min_ratio, ratio)
            if min_ratio < 0.0 and ratio > ratio_threshold:
                return -time_shift if ignored else time_shift
            time_shift += step_shift

        return AC_NOT_VALIDATED
