"""Pacing of emulated frames against wall-clock time."""

from __future__ import annotations

import time
from typing import Callable, Optional

_MILLISECONDS_PER_SECOND = 1000
_MICROSECONDS_PER_SECOND = 1_000_000
_NS_PER_US = 1000
_NS_PER_MS = 1_000_000


class FrameLimiter:
    """Runs frames at a fixed rate and reports the measured frame rate."""

    def __init__(
        self,
        fps: float = 60.0,
        *,
        clock: Callable[[], int] = time.monotonic_ns,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self.frames_per_second = fps
        self.reset(fps)

    def reset(self, fps: Optional[float] = None) -> None:
        """Restart timing, optionally at a new target frame rate."""
        if fps is None:
            fps = self.frames_per_second
        self._frame_count = 0
        self._frame_duration_us = int(_MICROSECONDS_PER_SECOND / fps)
        self.frames_per_second = fps
        self._fast_forward = False
        now = self._clock()
        self._timestamp_target = now
        self._timestamp_fps_update = now

    @property
    def fast_forward(self) -> bool:
        """Whether frames run unthrottled."""
        return self._fast_forward

    @fast_forward.setter
    def fast_forward(self, value: bool) -> None:
        if self._fast_forward != value:
            self._fast_forward = value
            if not value:
                self._timestamp_target = self._clock()

    def run(
        self,
        frame_advance: Callable[[], None],
        update_fps: Callable[[float], None],
    ) -> None:
        """Advance one frame, report the rate once a second, then wait."""
        if not self._fast_forward:
            self._timestamp_target += self._frame_duration_us * _NS_PER_US

        frame_advance()
        self._frame_count += 1

        now = self._clock()
        delta_ms = (now - self._timestamp_fps_update) // _NS_PER_MS
        if delta_ms >= _MILLISECONDS_PER_SECOND:
            update_fps(self._frame_count * float(_MILLISECONDS_PER_SECOND) / delta_ms)
            self._frame_count = 0
            self._timestamp_fps_update = self._clock()

        if not self._fast_forward:
            remaining = self._timestamp_target - self._clock()
            if remaining > 0:
                self._sleep(remaining / 1e9)