"""Cartridge GPIO port and the devices wired to it: RTC and solar sensor."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

log = logging.getLogger(__name__)


class GPIODevice:
    """A device on the four-pin GPIO port."""

    def __init__(self) -> None:
        self._port_directions = 0

    def set_port_directions(self, value: int) -> None:
        """Set pin directions; a set bit marks a pin driven by the console."""
        self._port_directions = value & 15

    def is_output(self, pin: int) -> bool:
        """Whether the console drives ``pin``."""
        return bool((self._port_directions >> pin) & 1)

    def reset(self) -> None:
        """Return the device to its power-on state."""

    def read(self) -> int:
        """Return the pin levels driven by the device."""
        return 0

    def write(self, value: int) -> None:
        """Receive the pin levels driven by the console."""


class GPIO:
    """The GPIO port registers mapped into cartridge ROM space."""

    class Register(enum.IntEnum):
        DATA = 0xC4
        DIRECTION = 0xC6
        CONTROL = 0xC8

    def __init__(self) -> None:
        self.devices: list[GPIODevice] = []
        self.reset()

    def reset(self) -> None:
        """Reset the port and every attached device."""
        self.allow_reads = False
        self.port_data = 0
        self.rd_mask = 0b1111
        self.wr_mask = 0b0000
        for device in self.devices:
            device.reset()
            device.set_port_directions(0)

    def attach(self, device: GPIODevice) -> None:
        """Wire a device to the port."""
        self.devices.append(device)

    def read(self, address: int) -> int:
        """Read a port register; reads return 0 until enabled."""
        if not self.allow_reads:
            return 0
        if address == GPIO.Register.DATA:
            value = 0
            for device in self.devices:
                value |= device.read()
            self.port_data &= self.wr_mask
            self.port_data |= self.rd_mask & value
            return value
        if address == GPIO.Register.DIRECTION:
            return self.rd_mask
        if address == GPIO.Register.CONTROL:
            return 1 if self.allow_reads else 0
        return 0

    def write(self, address: int, value: int) -> None:
        """Write a port register."""
        if address == GPIO.Register.DATA:
            self.port_data &= self.rd_mask
            self.port_data |= self.wr_mask & value
            for device in self.devices:
                device.write(self.port_data)
        elif address == GPIO.Register.DIRECTION:
            value &= 15
            self.rd_mask = ~value & 15
            self.wr_mask = value
            for device in self.devices:
                device.set_port_directions(value)
        elif address == GPIO.Register.CONTROL:
            self.allow_reads = bool(value & 1)


_REG_FORCE_RESET = 0
_REG_DATE_TIME = 2
_REG_FORCE_IRQ = 3
_REG_CONTROL = 4
_REG_TIME = 6
_ARGUMENT_COUNT = (0, 0, 7, 0, 1, 0, 3, 0)


def _to_bcd(value: int) -> int:
    result = 0
    shift = 0
    while value:
        result |= (value % 10) << shift
        value //= 10
        shift += 4
    return result


class _RTCState(enum.Enum):
    COMMAND = 0
    RECEIVING = 1
    SENDING = 2
    COMPLETE = 3


@dataclass
class _RTCControl:
    unknown1: bool = False
    per_minute_irq: bool = False
    unknown2: bool = False
    mode_24h: bool = False
    poweroff: bool = False


class RTC(GPIODevice):
    """Serial real-time clock answering date, time and control commands."""

    class Port(enum.IntEnum):
        SCK = 0
        SIO = 1
        CS = 2

    def __init__(
        self,
        raise_irq: Optional[Callable[[], None]] = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        super().__init__()
        self._raise_irq = raise_irq
        self._now = now
        self._reg = _REG_FORCE_RESET
        self.reset()

    def reset(self) -> None:
        """Clear the serial state and restore the default control register."""
        self._current_bit = 0
        self._current_byte = 0
        self._data = 0
        self._buffer = [0] * 7
        self._sck = 0
        self._sio = 0
        self._cs = 0
        self._state = _RTCState.COMPLETE
        # Some games refuse to boot unless 24-hour mode is on.
        self.control = _RTCControl(mode_24h=True)

    def read(self) -> int:
        """Return the SIO level while the chip is selected."""
        return (self._sio & self._cs) << RTC.Port.SIO

    def write(self, value: int) -> None:
        """Latch the pins and act on chip-select and clock edges."""
        old_sck = self._sck
        old_cs = self._cs

        if self.is_output(RTC.Port.CS):
            self._cs = (value >> RTC.Port.CS) & 1
        else:
            log.error("RTC: CS port should be set to 'output' but configured as 'input'.")

        if self.is_output(RTC.Port.SCK):
            self._sck = (value >> RTC.Port.SCK) & 1
        else:
            log.error("RTC: SCK port should be set to 'output' but configured as 'input'.")

        if self.is_output(RTC.Port.SIO):
            self._sio = (value >> RTC.Port.SIO) & 1

        if not self._cs:
            return

        if not old_cs:
            self._state = _RTCState.COMMAND
            self._current_bit = 0
            self._current_byte = 0
            return

        if not old_sck and self._sck:
            if self._state == _RTCState.COMMAND:
                self._receive_command_sio()
            elif self._state == _RTCState.RECEIVING:
                self._receive_buffer_sio()
            elif self._state == _RTCState.SENDING:
                self._transmit_buffer_sio()

    def _read_sio(self) -> bool:
        self._data &= ~(1 << self._current_bit) & 0xFF
        self._data |= self._sio << self._current_bit
        self._current_bit += 1
        if self._current_bit == 8:
            self._current_bit = 0
            return True
        return False

    def _receive_command_sio(self) -> None:
        if not self._read_sio():
            return

        data = self._data
        if (data >> 4) == 6:
            data = ((data << 4) | (data >> 4)) & 0xFF
            data = ((data & 0x33) << 2) | ((data & 0xCC) >> 2)
            data = ((data & 0x55) << 1) | ((data & 0xAA) >> 1)
            self._data = data
            log.debug("RTC: received command in REV format, data=0x%X", data)
        elif (data & 15) != 6:
            log.error("RTC: received command in unknown format, data=0x%X", data)
            return

        self._reg = (data >> 4) & 7
        self._current_bit = 0
        self._current_byte = 0

        has_arguments = _ARGUMENT_COUNT[self._reg] > 0
        if data & 0x80:
            self._read_register()
            self._state = _RTCState.SENDING if has_arguments else _RTCState.COMPLETE
        elif has_arguments:
            self._state = _RTCState.RECEIVING
        else:
            self._write_register()
            self._state = _RTCState.COMPLETE

    def _receive_buffer_sio(self) -> None:
        count = _ARGUMENT_COUNT[self._reg]
        if self._current_byte < count and self._read_sio():
            self._buffer[self._current_byte] = self._data
            self._current_byte += 1
            if self._current_byte == count:
                self._write_register()
                self._state = _RTCState.COMPLETE

    def _transmit_buffer_sio(self) -> None:
        self._sio = self._buffer[self._current_byte] & 1
        self._buffer[self._current_byte] >>= 1
        self._current_bit += 1
        if self._current_bit == 8:
            self._current_bit = 0
            self._current_byte += 1
            if self._current_byte == _ARGUMENT_COUNT[self._reg]:
                self._state = _RTCState.COMPLETE

    def _adjust_hour(self, hour: int) -> int:
        if not self.control.mode_24h and hour >= 12:
            return (hour - 12) | 64
        return hour

    def _read_register(self) -> None:
        if self._reg == _REG_CONTROL:
            control = self.control
            self._buffer[0] = (
                (2 if control.unknown1 else 0)
                | (8 if control.per_minute_irq else 0)
                | (32 if control.unknown2 else 0)
                | (64 if control.mode_24h else 0)
                | (128 if control.poweroff else 0)
            )
        elif self._reg == _REG_DATE_TIME:
            now = self._now()
            self._buffer[:] = [
                _to_bcd(now.year - 2000),
                _to_bcd(now.month),
                _to_bcd(now.day),
                _to_bcd((now.weekday() + 1) % 7),
                _to_bcd(self._adjust_hour(now.hour)),
                _to_bcd(now.minute),
                _to_bcd(now.second),
            ]
        elif self._reg == _REG_TIME:
            now = self._now()
            self._buffer[0] = _to_bcd(self._adjust_hour(now.hour))
            self._buffer[1] = _to_bcd(now.minute)
            self._buffer[2] = _to_bcd(now.second)

    def _write_register(self) -> None:
        if self._reg == _REG_CONTROL:
            value = self._buffer[0]
            self.control.unknown1 = bool(value & 2)
            self.control.per_minute_irq = bool(value & 8)
            self.control.unknown2 = bool(value & 32)
            self.control.mode_24h = bool(value & 64)
            if self.control.per_minute_irq:
                log.error("RTC: enabled the unimplemented per-minute IRQ.")
        elif self._reg == _REG_FORCE_RESET:
            self.control = _RTCControl()
        elif self._reg == _REG_FORCE_IRQ:
            if self._raise_irq is not None:
                self._raise_irq()
        else:
            log.error("RTC: unhandled register write: %d", self._reg)


class SolarSensor(GPIODevice):
    """Light sensor read by counting clock pulses until a flag trips."""

    class Pin(enum.IntEnum):
        CLK = 0
        RST = 1
        CS = 2
        FLG = 3

    def __init__(self) -> None:
        super().__init__()
        self.reset()

    def reset(self) -> None:
        """Clear the counter and restore the default light level."""
        self._old_clk = False
        self.counter = 0
        self.set_light_level(0x60)

    def read(self) -> int:
        """Raise the flag pin once the counter passes the light threshold."""
        return (1 << SolarSensor.Pin.FLG) if self.counter > self._current_level else 0

    def write(self, value: int) -> None:
        """Reset the counter or count a falling clock edge."""
        clk = bool(value & (1 << SolarSensor.Pin.CLK)) and self.is_output(SolarSensor.Pin.CLK)
        rst = bool(value & (1 << SolarSensor.Pin.RST)) and self.is_output(SolarSensor.Pin.RST)
        if rst:
            self.counter = 0
        elif self._old_clk and not clk:
            self.counter += 1
        self._old_clk = clk

    def set_light_level(self, level: int) -> None:
        """Set the light level, 0 dark to 255 brightest."""
        self._current_level = 255 - (level & 0xFF)