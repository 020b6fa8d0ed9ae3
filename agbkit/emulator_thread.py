"""Background thread that drives an emulator core at real-time speed."""

from __future__ import annotations

import enum
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from agbkit.frame_limiter import FrameLimiter

NUMBER_OF_INPUT_SUBFRAMES = 4
CYCLES_PER_SECOND = 16777216
CYCLES_PER_FRAME = 280896
CYCLES_PER_SUBFRAME = CYCLES_PER_FRAME // NUMBER_OF_INPUT_SUBFRAMES


class Core(Protocol):
    """What the thread needs from an emulator core."""

    def run(self, cycles: int) -> None: ...

    def reset(self) -> None: ...

    def set_key_status(self, key: Any, pressed: bool) -> None: ...


class _MessageType(enum.Enum):
    RESET = enum.auto()
    SET_KEY_STATUS = enum.auto()


@dataclass(frozen=True)
class _Message:
    type: _MessageType
    key: Any = None
    pressed: bool = False


class EmulatorThread:
    """Runs a core on its own thread and forwards input to it safely."""

    def __init__(self, frame_limiter: Optional[FrameLimiter] = None) -> None:
        self._frame_limiter = frame_limiter or FrameLimiter()
        self._frame_limiter.reset(CYCLES_PER_SECOND / float(CYCLES_PER_SUBFRAME))
        self._queue: deque[_Message] = deque()
        self._queue_lock = threading.Lock()
        self._core: Optional[Core] = None
        self._thread: Optional[threading.Thread] = None
        self._running = threading.Event()
        self.paused = False
        self.frame_rate_callback: Callable[[float], None] = lambda fps: None
        self.per_frame_callback: Callable[[], None] = lambda: None

    def __enter__(self) -> "EmulatorThread":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    @property
    def running(self) -> bool:
        """Whether the thread is running."""
        return self._running.is_set()

    @property
    def fast_forward(self) -> bool:
        """Whether frames run without throttling."""
        return self._frame_limiter.fast_forward

    @fast_forward.setter
    def fast_forward(self, enabled: bool) -> None:
        self._frame_limiter.fast_forward = enabled

    def start(self, core: Core) -> None:
        """Start running ``core`` on a new thread."""
        if self.running:
            raise RuntimeError("Started an emulator thread which was already running")
        self._core = core
        self._running.set()
        self._thread = threading.Thread(
            target=self._main, name="emulator", daemon=True
        )
        self._thread.start()

    def stop(self) -> Optional[Core]:
        """Stop the thread and hand back the core."""
        if self.running:
            self._running.clear()
            if self._thread is not None and self._thread is not threading.current_thread():
                self._thread.join()
        core, self._core = self._core, None
        return core

    def reset(self) -> None:
        """Ask the core to reset."""
        self._push_message(_Message(_MessageType.RESET))

    def set_key_status(self, key: Any, pressed: bool) -> None:
        """Tell the core that ``key`` was pressed or released."""
        self._push_message(_Message(_MessageType.SET_KEY_STATUS, key, bool(pressed)))

    def _main(self) -> None:
        limiter = self._frame_limiter
        limiter.reset()
        while self._running.is_set():
            self._process_messages()
            limiter.run(self._advance, self._report_fps)
        # Handle anything still queued before exiting.
        self._process_messages()

    def _advance(self) -> None:
        if not self.paused:
            self.per_frame_callback()
            self._core.run(CYCLES_PER_SUBFRAME)

    def _report_fps(self, fps: float) -> None:
        real_fps = 0.0 if self.paused else fps / NUMBER_OF_INPUT_SUBFRAMES
        self.frame_rate_callback(real_fps)

    def _push_message(self, message: _Message) -> None:
        if not self.running:
            return
        if threading.current_thread() is self._thread:
            # Messages from callbacks on the emulator thread need no queueing.
            self._process_message(message)
        else:
            with self._queue_lock:
                self._queue.append(message)

    def _process_messages(self) -> None:
        with self._queue_lock:
            while self._queue:
                self._process_message(self._queue.popleft())

    def _process_message(self, message: _Message) -> None:
        if message.type is _MessageType.RESET:
            self._core.reset()
        elif message.type is _MessageType.SET_KEY_STATUS:
            self._core.set_key_status(message.key, message.pressed)
        else:
            raise AssertionError(f"unhandled message type: {message.type}")