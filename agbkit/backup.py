"""Cartridge save memory: battery-backed SRAM, FLASH and serial EEPROM."""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

PathLike = Union[str, Path]
Schedule = Callable[[int, Callable[[], None]], object]


class BackupFile:
    """A save file held in memory and written through to disk."""

    def __init__(self, path: PathLike, data: bytearray) -> None:
        self.path = Path(path)
        self.data = data

    @classmethod
    def open_or_create(
        cls, path: PathLike, valid_sizes: Iterable[int], default_size: int
    ) -> "BackupFile":
        """Load ``path`` when its size is valid, otherwise create a blank save.

        A blank save has ``default_size`` bytes, all 0xFF.
        """
        path = Path(path)
        valid = tuple(valid_sizes)
        if default_size not in valid:
            raise ValueError(f"default size {default_size} is not one of {valid}")
        if path.is_file() and path.stat().st_size in valid:
            data = bytearray(path.read_bytes())
            if len(data) in valid:
                return cls(path, data)
        backup = cls(path, bytearray(b"\xff" * default_size))
        backup.flush()
        return backup

    @property
    def size(self) -> int:
        """Number of bytes in the save."""
        return len(self.data)

    def read(self, index: int) -> int:
        """Return the byte at ``index``."""
        return self.data[index]

    def write(self, index: int, value: int) -> None:
        """Store one byte at ``index``."""
        self.data[index] = value & 0xFF
        self._persist(index, index + 1)

    def fill(self, start: int, length: int, value: int) -> None:
        """Set ``length`` bytes from ``start`` to ``value``."""
        end = start + length
        if start < 0 or end > len(self.data):
            raise IndexError(f"range {start}..{end} outside of save of {len(self.data)} bytes")
        self.data[start:end] = bytes([value & 0xFF]) * length
        self._persist(start, end)

    def flush(self) -> None:
        """Write the whole save to disk."""
        self.path.write_bytes(bytes(self.data))

    def _persist(self, start: int, end: int) -> None:
        if not self.path.is_file() or self.path.stat().st_size != len(self.data):
            self.flush()
            return
        with self.path.open("r+b") as stream:
            stream.seek(start)
            stream.write(bytes(self.data[start:end]))


class _EEPROMState(enum.IntFlag):
    ACCEPT_COMMAND = 1
    READ_MODE = 2
    WRITE_MODE = 4
    GET_ADDRESS = 8
    READING = 16
    DUMMY_NIBBLE = 32
    WRITING = 64
    EAT_DUMMY = 128
    BUSY = 256


_EEPROM_ADDR_BITS = (6, 14)
_EEPROM_SAVE_SIZE = (512, 8192)
_EEPROM_WRITE_CYCLES = 101400


class EEPROM:
    """Serial EEPROM of 512 bytes or 8 KiB, accessed one bit at a time."""

    class Size(enum.IntEnum):
        SIZE_4K = 0
        SIZE_64K = 1
        DETECT = 2

    def __init__(
        self,
        save_path: PathLike,
        size: "EEPROM.Size" = Size.DETECT,
        schedule: Optional[Schedule] = None,
    ) -> None:
        self.save_path = Path(save_path)
        self.size = EEPROM.Size(size)
        self._schedule = schedule
        self.reset()

    def reset(self) -> None:
        """Return to the command-accepting state and (re)open the save file."""
        self._state = _EEPROMState.ACCEPT_COMMAND
        self._address = 0
        self._reset_serial_buffer()

        if self.size == EEPROM.Size.DETECT:
            self.size = EEPROM.Size.SIZE_64K
            self._detect_size = True
        else:
            self._detect_size = False

        self.file = BackupFile.open_or_create(
            self.save_path, _EEPROM_SAVE_SIZE, _EEPROM_SAVE_SIZE[self.size]
        )
        if self.file.size == _EEPROM_SAVE_SIZE[0]:
            self.size = EEPROM.Size.SIZE_4K
        else:
            self.size = EEPROM.Size.SIZE_64K

    def _reset_serial_buffer(self) -> None:
        self._serial_buffer = 0
        self._transmitted_bits = 0

    def read(self, address: int) -> int:
        """Clock one bit out of the chip."""
        state = self._state
        if state & _EEPROMState.READING:
            if state & _EEPROMState.DUMMY_NIBBLE:
                self._transmitted_bits += 1
                if self._transmitted_bits == 4:
                    self._state &= ~_EEPROMState.DUMMY_NIBBLE
                    self._reset_serial_buffer()
                return 0

            bit = self._transmitted_bits % 8
            index = self._transmitted_bits // 8

            self._transmitted_bits += 1
            if self._transmitted_bits == 64:
                self._state = _EEPROMState.ACCEPT_COMMAND
                self._reset_serial_buffer()

            return (self.file.read(self._address + index) >> (7 - bit)) & 1

        return 0 if state & _EEPROMState.BUSY else 1

    def write(self, address: int, value: int) -> None:
        """Clock one bit into the chip."""
        state = self._state
        if state & (_EEPROMState.READING | _EEPROMState.BUSY):
            return

        value &= 1
        self._serial_buffer = (self._serial_buffer << 1) | value
        self._transmitted_bits += 1

        if state == _EEPROMState.ACCEPT_COMMAND and self._transmitted_bits == 2:
            if self._serial_buffer == 2:
                self._state = (
                    _EEPROMState.WRITE_MODE
                    | _EEPROMState.GET_ADDRESS
                    | _EEPROMState.WRITING
                    | _EEPROMState.EAT_DUMMY
                )
            elif self._serial_buffer == 3:
                self._state = (
                    _EEPROMState.READ_MODE | _EEPROMState.GET_ADDRESS | _EEPROMState.EAT_DUMMY
                )
            self._reset_serial_buffer()
        elif state & _EEPROMState.GET_ADDRESS:
            if self._transmitted_bits == _EEPROM_ADDR_BITS[self.size]:
                self._address = (self._serial_buffer * 8) & 0x1FFF
                if state & _EEPROMState.WRITE_MODE:
                    self.file.fill(self._address, 8, 0)
                self._state &= ~_EEPROMState.GET_ADDRESS
                self._reset_serial_buffer()
        elif state & _EEPROMState.WRITING:
            bit = (self._transmitted_bits - 1) % 8
            index = (self._transmitted_bits - 1) // 8
            current = self.file.read(self._address + index)
            self.file.write(self._address + index, current | (value << (7 - bit)))
            if self._transmitted_bits == 64:
                self._state &= ~_EEPROMState.WRITING
                self._reset_serial_buffer()
        elif state & _EEPROMState.EAT_DUMMY:
            self._state &= ~_EEPROMState.EAT_DUMMY
            if self._state & _EEPROMState.READ_MODE:
                self._state |= _EEPROMState.READING | _EEPROMState.DUMMY_NIBBLE
            elif self._state & _EEPROMState.WRITE_MODE:
                # Programming takes roughly 6 ms, during which the chip is busy.
                self._state = _EEPROMState.BUSY
                if self._schedule is None:
                    self.on_ready_after_write()
                else:
                    self._schedule(_EEPROM_WRITE_CYCLES, self.on_ready_after_write)
            self._reset_serial_buffer()

    def set_size_hint(self, size: "EEPROM.Size") -> None:
        """Fix the chip size when it is still being detected."""
        if not self._detect_size:
            return
        size = EEPROM.Size(size)
        if size == EEPROM.Size.DETECT:
            raise ValueError("size hint must be a concrete size")
        nbytes = _EEPROM_SAVE_SIZE[size]
        self.size = size
        self._detect_size = False
        if self.file.size != nbytes:
            self.file = BackupFile.open_or_create(self.save_path, (nbytes,), nbytes)

    def on_ready_after_write(self) -> None:
        """Finish the programming delay after a block write."""
        self._state = _EEPROMState.ACCEPT_COMMAND


_FLASH_SAVE_SIZE = (65536, 131072)


class _FlashCommand(enum.IntEnum):
    READ_CHIP_ID = 0x90
    FINISH_CHIP_ID = 0xF0
    ERASE = 0x80
    ERASE_CHIP = 0x10
    ERASE_SECTOR = 0x30
    WRITE_BYTE = 0xA0
    SELECT_BANK = 0xB0


class Flash:
    """FLASH memory of 64 KiB or 128 KiB driven by command sequences."""

    class Size(enum.IntEnum):
        SIZE_64K = 0
        SIZE_128K = 1

    def __init__(self, save_path: PathLike, size: "Flash.Size" = Size.SIZE_64K) -> None:
        self.save_path = Path(save_path)
        self.size = Flash.Size(size)
        self.reset()

    def reset(self) -> None:
        """Clear the command state and (re)open the save file."""
        self.current_bank = 0
        self._phase = 0
        self._enable_chip_id = False
        self._enable_erase = False
        self._enable_write = False
        self._enable_select = False

        self.file = BackupFile.open_or_create(
            self.save_path, _FLASH_SAVE_SIZE, _FLASH_SAVE_SIZE[self.size]
        )
        if self.file.size == _FLASH_SAVE_SIZE[0]:
            self.size = Flash.Size.SIZE_64K
        else:
            self.size = Flash.Size.SIZE_128K

    def _physical(self, address: int) -> int:
        return (self.current_bank << 16) | address

    def read(self, address: int) -> int:
        """Return a byte, or the chip identifier while ID mode is on."""
        address &= 0xFFFF
        if self._enable_chip_id and address < 2:
            if self.size == Flash.Size.SIZE_128K:
                return 0xC2 if address == 0 else 0x09
            return 0xBF if address == 0 else 0xD4
        return self.file.read(self._physical(address))

    def write(self, address: int, value: int) -> None:
        """Feed one step of a command sequence to the chip."""
        if self._phase == 0:
            if address == 0x0E005555 and value == 0xAA:
                self._phase = 1
        elif self._phase == 1:
            if address == 0x0E002AAA and value == 0x55:
                self._phase = 2
        elif self._phase == 2:
            self._handle_command(address, value)
        elif self._phase == 3:
            self._handle_extended(address, value)

    def _handle_command(self, address: int, value: int) -> None:
        if address == 0x0E005555:
            if value == _FlashCommand.READ_CHIP_ID:
                self._enable_chip_id = True
                self._phase = 0
            elif value == _FlashCommand.FINISH_CHIP_ID:
                self._enable_chip_id = False
                self._phase = 0
            elif value == _FlashCommand.ERASE:
                self._enable_erase = True
                self._phase = 0
            elif value == _FlashCommand.ERASE_CHIP:
                if self._enable_erase:
                    self.file.fill(0, _FLASH_SAVE_SIZE[self.size], 0xFF)
                    self._enable_erase = False
                self._phase = 0
            elif value == _FlashCommand.WRITE_BYTE:
                self._enable_write = True
                self._phase = 3
            elif value == _FlashCommand.SELECT_BANK:
                if self.size == Flash.Size.SIZE_128K:
                    self._enable_select = True
                    self._phase = 3
                else:
                    self._phase = 0
        elif (
            self._enable_erase
            and (address & ~0xF000) == 0x0E000000
            and value == _FlashCommand.ERASE_SECTOR
        ):
            base = address & 0xF000
            self.file.fill(self._physical(base), 0x1000, 0xFF)
            self._enable_erase = False
            self._phase = 0

    def _handle_extended(self, address: int, value: int) -> None:
        if self._enable_write:
            self.file.write(self._physical(address & 0xFFFF), value)
            self._enable_write = False
        elif self._enable_select and address == 0x0E000000:
            self.current_bank = value & 1
            self._enable_select = False
        self._phase = 0


_SRAM_SIZE = 32768


class SRAM:
    """32 KiB battery-backed static RAM."""

    def __init__(self, save_path: PathLike) -> None:
        self.save_path = Path(save_path)
        self.reset()

    def reset(self) -> None:
        """(Re)open the save file."""
        self.file = BackupFile.open_or_create(self.save_path, (_SRAM_SIZE,), _SRAM_SIZE)

    def read(self, address: int) -> int:
        """Return the byte at ``address``, mirrored every 32 KiB."""
        return self.file.read(address & 0x7FFF)

    def write(self, address: int, value: int) -> None:
        """Store a byte at ``address``, mirrored every 32 KiB."""
        self.file.write(address & 0x7FFF, value)