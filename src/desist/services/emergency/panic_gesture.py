"""
Panic Gesture Detector

Recognises a burst of rapid taps (by default 5 within 3 seconds) as a
panic trigger. Taps are timed on the monotonic clock.
"""

import time
from collections import deque
from typing import Callable, Optional


class PanicGestureDetector:
    """
    Sliding-window tap counter.

    Usage:
        detector = PanicGestureDetector(tap_count=5, window_seconds=3.0)
        if detector.register_tap():
            core.trigger_emergency(TriggerSource.GESTURE)
    """

    def __init__(
        self,
        tap_count: int = 5,
        window_seconds: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if tap_count < 1:
            raise ValueError("tap_count must be >= 1")
        self._tap_count = tap_count
        self._window = window_seconds
        self._clock = clock
        self._taps: deque[float] = deque()

    @property
    def pending_taps(self) -> int:
        return len(self._taps)

    def register_tap(self, at: Optional[float] = None) -> bool:
        """
        Record a tap.

        Returns:
            True when this tap completes the gesture (the window resets)
        """
        now = self._clock() if at is None else at
        self._taps.append(now)
        while self._taps and now - self._taps[0] > self._window:
            self._taps.popleft()

        if len(self._taps) >= self._tap_count:
            self._taps.clear()
            return True
        return False

    def reset(self) -> None:
        self._taps.clear()
