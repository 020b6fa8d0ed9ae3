"""The four cartridge-bus hardware timers and a cycle scheduler that drives them."""

from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Callable, Optional

REG_TMXCNT_L = 0
REG_TMXCNT_H = 2

_TICKS_SHIFT = (0, 6, 8, 10)
_TICKS_MASK = (0, 0x3F, 0xFF, 0x3FF)

_PRIORITY_OVERFLOW = 0
_PRIORITY_WRITE_RELOAD = 1
_PRIORITY_WRITE_CONTROL = 2


@dataclass(eq=False)
class Event:
    """A callback due at a given cycle timestamp."""

    timestamp: int
    priority: int
    sequence: int
    callback: Callable[[], None]
    cancelled: bool = False

    def __lt__(self, other: "Event") -> bool:
        return (self.timestamp, self.priority, self.sequence) < (
            other.timestamp,
            other.priority,
            other.sequence,
        )


class Scheduler:
    """Runs callbacks at cycle timestamps as emulated time advances."""

    def __init__(self) -> None:
        self.timestamp_now = 0
        self._heap: list[Event] = []
        self._sequence = itertools.count()

    def add(self, delay: int, callback: Callable[[], None]) -> Event:
        """Run ``callback`` ``delay`` cycles from now."""
        return self._add(delay, callback, 0)

    def _add(self, delay: int, callback: Callable[[], None], priority: int) -> Event:
        # Events due at the same cycle run in ascending priority order.
        event = Event(self.timestamp_now + delay, priority, next(self._sequence), callback)
        heapq.heappush(self._heap, event)
        return event

    def cancel(self, event: Optional[Event]) -> None:
        """Keep ``event`` from running; None is ignored."""
        if event is not None:
            event.cancelled = True

    def advance(self, cycles: int) -> None:
        """Move time forward by ``cycles``, running every event that falls due."""
        if cycles < 0:
            raise ValueError("cannot advance by a negative number of cycles")
        target = self.timestamp_now + cycles
        while self._heap and self._heap[0].timestamp <= target:
            event = heapq.heappop(self._heap)
            if event.cancelled:
                continue
            self.timestamp_now = event.timestamp
            event.callback()
        self.timestamp_now = target


@dataclass
class _Channel:
    id: int
    reload: int = 0
    counter: int = 0
    pending_reload: int = 0
    pending_control: int = 0
    frequency: int = 0
    cascade: bool = False
    interrupt: bool = False
    enable: bool = False
    running: bool = False
    shift: int = 0
    mask: int = 0
    timestamp_started: int = 0
    event_overflow: Optional[Event] = field(default=None, repr=False)


class Timer:
    """Four 16-bit timers with prescalers, cascading and overflow interrupts."""

    def __init__(
        self,
        scheduler: Scheduler,
        raise_irq: Optional[Callable[[int], None]] = None,
        on_apu_overflow: Optional[Callable[[int, int], None]] = None,
    ) -> None:
        self._scheduler = scheduler
        self._raise_irq = raise_irq
        self._on_apu_overflow = on_apu_overflow
        self._channels: list[_Channel] = []
        self.reset()

    def reset(self) -> None:
        """Return every channel to its power-on state."""
        for channel in self._channels:
            self._scheduler.cancel(channel.event_overflow)
        self._channels = [_Channel(id=chan_id) for chan_id in range(4)]

    def read_byte(self, chan_id: int, offset: int) -> int:
        """Read one byte of a channel's registers."""
        channel = self._channels[chan_id]
        if offset == REG_TMXCNT_L:
            return self._read_counter(channel) & 0xFF
        if offset == REG_TMXCNT_L | 1:
            return self._read_counter(channel) >> 8
        if offset == REG_TMXCNT_H:
            return self._read_control(channel)
        return 0

    def read_half(self, chan_id: int, offset: int) -> int:
        """Read the counter (offset 0) or control (offset 2) register."""
        channel = self._channels[chan_id]
        if offset == REG_TMXCNT_L:
            return self._read_counter(channel)
        if offset == REG_TMXCNT_H:
            return self._read_control(channel)
        return 0

    def read_word(self, chan_id: int) -> int:
        """Read control and counter as one 32-bit value."""
        channel = self._channels[chan_id]
        return (self._read_control(channel) << 16) | self._read_counter(channel)

    def write_byte(self, chan_id: int, offset: int, value: int) -> None:
        """Write one byte of a channel's registers."""
        channel = self._channels[chan_id]
        value &= 0xFF
        if offset == REG_TMXCNT_L:
            self._write_reload(channel, (channel.pending_reload & 0xFF00) | value)
        elif offset == REG_TMXCNT_L | 1:
            self._write_reload(channel, (channel.pending_reload & 0x00FF) | (value << 8))
        elif offset == REG_TMXCNT_H:
            self._write_control(channel, value)

    def write_half(self, chan_id: int, offset: int, value: int) -> None:
        """Write the reload (offset 0) or control (offset 2) register."""
        channel = self._channels[chan_id]
        if offset == REG_TMXCNT_L:
            self._write_reload(channel, value)
        elif offset == REG_TMXCNT_H:
            self._write_control(channel, value)

    def write_word(self, chan_id: int, value: int) -> None:
        """Write reload (low half) and control (high half) together."""
        channel = self._channels[chan_id]
        self._write_reload(channel, value & 0xFFFF)
        self._write_control(channel, (value >> 16) & 0xFFFF)

    def _read_counter(self, channel: _Channel) -> int:
        counter = channel.counter
        # A running timer has ticked since its counter was last stored.
        if channel.running:
            counter += self._counter_delta(channel)
        return counter & 0xFFFF

    def _read_control(self, channel: _Channel) -> int:
        return (
            channel.frequency
            | (4 if channel.cascade else 0)
            | (64 if channel.interrupt else 0)
            | (128 if channel.enable else 0)
        )

    def _write_reload(self, channel: _Channel, value: int) -> None:
        channel.pending_reload = value & 0xFFFF
        self._scheduler._add(
            1,
            lambda: self._on_reload_written(channel.id),
            _PRIORITY_WRITE_RELOAD,
        )

    def _write_control(self, channel: _Channel, value: int) -> None:
        channel.pending_control = value & 0xFFFF
        self._scheduler._add(
            1,
            lambda: self._on_control_written(channel.id),
            _PRIORITY_WRITE_CONTROL,
        )

    def _on_reload_written(self, chan_id: int) -> None:
        channel = self._channels[chan_id]
        channel.reload = channel.pending_reload

    def _on_control_written(self, chan_id: int) -> None:
        channel = self._channels[chan_id]
        enable_previous = channel.enable
        value = channel.pending_control

        if channel.running:
            self._stop_channel(channel)

        channel.frequency = value & 3
        channel.interrupt = bool(value & 64)
        channel.enable = bool(value & 128)
        if channel.id != 0:
            channel.cascade = bool(value & 4)

        channel.shift = _TICKS_SHIFT[channel.frequency]
        channel.mask = _TICKS_MASK[channel.frequency]

        if not channel.enable:
            return

        # Cycles elapsed since the last prescaler tick.
        prescaler_offset = self._scheduler.timestamp_now & channel.mask

        if enable_previous:
            if not channel.cascade:
                self._start_channel(channel, prescaler_offset)
        elif channel.cascade:
            channel.counter = channel.reload
        elif channel.counter == 0xFFFF and prescaler_offset == 0:
            # Loading the reload value takes a cycle, during which the
            # counter may still tick and overflow.
            self._start_channel(channel, 0)
        else:
            channel.counter = channel.reload
            self._start_channel(channel, prescaler_offset - 1)

    def _counter_delta(self, channel: _Channel) -> int:
        elapsed = self._scheduler.timestamp_now - channel.timestamp_started
        return (elapsed >> channel.shift) & 0xFFFFFFFF

    def _start_channel(self, channel: _Channel, cycle_offset: int) -> None:
        cycles = ((0x10000 - channel.counter) << channel.shift) - cycle_offset
        channel.running = True
        channel.timestamp_started = self._scheduler.timestamp_now - cycle_offset
        channel.event_overflow = self._scheduler._add(
            cycles,
            lambda: self._on_overflow(channel.id),
            _PRIORITY_OVERFLOW,
        )

    def _stop_channel(self, channel: _Channel) -> None:
        channel.counter = (channel.counter + self._counter_delta(channel)) & 0xFFFFFFFF
        if channel.counter >= 0x10000:
            self._reload_cascade_and_request_irq(channel)
        self._scheduler.cancel(channel.event_overflow)
        channel.event_overflow = None
        channel.running = False

    def _reload_cascade_and_request_irq(self, channel: _Channel) -> None:
        channel.counter = channel.reload

        if channel.interrupt and self._raise_irq is not None:
            self._raise_irq(channel.id)

        if channel.id <= 1 and self._on_apu_overflow is not None:
            self._on_apu_overflow(channel.id, 1)

        if channel.id != 3:
            following = self._channels[channel.id + 1]
            if following.enable and following.cascade:
                following.counter += 1
                if following.counter == 0x10000:
                    self._reload_cascade_and_request_irq(following)

    def _on_overflow(self, chan_id: int) -> None:
        channel = self._channels[chan_id]
        self._reload_cascade_and_request_irq(channel)
        self._start_channel(channel, 0)