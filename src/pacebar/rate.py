# -*- coding: utf-8 -*-
"""
Pacebar – Exponential moving average of throughput.
Copyright (c) 2025 The pacebar authors
Licensed under the MIT License.
"""

from typing import Optional

__all__ = ['RateEstimator']


class RateEstimator:
    """
    Smoothed rate from a stream of (delta_count, delta_time) observations.

    rate = smoothing * (delta_count / delta_time) + (1 - smoothing) * previous

    The first observation seeds the estimate with the raw instantaneous rate.
    Observations with no elapsed time are ignored; a negative count (the
    counter moved backwards) clears the estimate so it is reseeded.
    """

    def __init__(self, smoothing: float = 0.3):
        if not 0.0 < smoothing <= 1.0:
            raise ValueError("smoothing must be in (0.0, 1.0]")
        self._smoothing = smoothing
        self._rate: Optional[float] = None

    @property
    def smoothing(self) -> float:
        return self._smoothing

    @property
    def rate(self) -> float:
        """Units per second, 0.0 until the first observation"""
        return self._rate if self._rate is not None else 0.0

    @property
    def seeded(self) -> bool:
        return self._rate is not None

    def reset(self):
        self._rate = None

    def observe(self, delta_count: float, delta_time: float) -> float:
        if delta_count < 0:
            self._rate = None
            return 0.0

        if delta_time <= 0:
            return self.rate

        instant = delta_count / delta_time
        if self._rate is None:
            self._rate = instant
        else:
            self._rate = self._smoothing * instant + (1.0 - self._smoothing) * self._rate
        return self._rate

    def __repr__(self):
        return f'{type(self).__name__}(smoothing={self._smoothing!r}, rate={self.rate:.3f})'
