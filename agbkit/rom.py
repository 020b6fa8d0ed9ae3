"""Loading of cartridge ROM images with their save memory and GPIO devices."""

from __future__ import annotations

import logging
import re
import tarfile
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Callable, Optional, Union

from agbkit.backup import EEPROM, SRAM, Flash, Schedule
from agbkit.bios import BadImageError, CannotFindFileError, CannotOpenFileError
from agbkit.game_db import BackupType, GameInfo, GPIODeviceType, lookup
from agbkit.gpio import GPIO, RTC, SolarSensor

log = logging.getLogger(__name__)

PathLike = Union[str, Path]
Backup = Union[SRAM, Flash, EEPROM]

MAX_ROM_SIZE = 32 * 1024 * 1024
HEADER_SIZE = 0xC0
GAME_CODE_OFFSET = 0xAC
GAME_CODE_LENGTH = 4

_ROM_EXTENSIONS = (".gba", ".GBA")

_SIGNATURES: dict[bytes, BackupType] = {
    b"EEPROM_V": BackupType.EEPROM_DETECT,
    b"SRAM_V": BackupType.SRAM,
    b"SRAM_F_V": BackupType.SRAM,
    b"FLASH_V": BackupType.FLASH_64,
    b"FLASH512_V": BackupType.FLASH_64,
    b"FLASH1M_V": BackupType.FLASH_128,
}
_SIGNATURE_PATTERN = re.compile(
    b"(?=(" + b"|".join(re.escape(sig) for sig in _SIGNATURES) + b"))"
)


@dataclass
class Rom:
    """A loaded cartridge: image, save memory, GPIO port and address mask."""

    data: bytes
    backup: Optional[Backup]
    gpio: Optional[GPIO]
    mask: int


def round_size_to_power_of_two(size: int) -> int:
    """Return the smallest power of two not below ``size``."""
    pot_size = 1
    while pot_size < size:
        pot_size *= 2
    return pot_size


def get_game_info(data: bytes) -> GameInfo:
    """Look up the database entry for the game code in the ROM header."""
    code = bytes(data[GAME_CODE_OFFSET:GAME_CODE_OFFSET + GAME_CODE_LENGTH])
    return lookup(code)


def detect_backup_type(data: bytes) -> BackupType:
    """Find the save-library signature at a word-aligned offset in the image."""
    for match in _SIGNATURE_PATTERN.finditer(data):
        if match.start() % 4 == 0:
            return _SIGNATURES[match.group(1)]
    return BackupType.DETECT


def create_backup(
    save_path: PathLike,
    backup_type: BackupType,
    schedule: Optional[Schedule] = None,
) -> Optional[Backup]:
    """Create the save memory for ``backup_type``, or None when there is none."""
    if backup_type == BackupType.SRAM:
        return SRAM(save_path)
    if backup_type == BackupType.FLASH_64:
        return Flash(save_path, Flash.Size.SIZE_64K)
    if backup_type == BackupType.FLASH_128:
        return Flash(save_path, Flash.Size.SIZE_128K)
    if backup_type == BackupType.EEPROM_4:
        return EEPROM(save_path, EEPROM.Size.SIZE_4K, schedule)
    if backup_type == BackupType.EEPROM_64:
        return EEPROM(save_path, EEPROM.Size.SIZE_64K, schedule)
    if backup_type == BackupType.EEPROM_DETECT:
        return EEPROM(save_path, EEPROM.Size.DETECT, schedule)
    return None


def _is_rom_name(name: str) -> bool:
    return PurePosixPath(name).suffix in _ROM_EXTENSIONS


def _read_from_archive(path: Path) -> Optional[bytes]:
    """Return the first ROM in a zip or tar archive.

    Returns None when ``path`` is not a readable archive and raises
    BadImageError when it is one but holds no ROM.
    """
    try:
        if zipfile.is_zipfile(path):
            with zipfile.ZipFile(path) as archive:
                for info in archive.infolist():
                    if not info.is_dir() and _is_rom_name(info.filename):
                        return archive.read(info)
            raise BadImageError(f"no ROM found in archive: {path}")
        if tarfile.is_tarfile(path):
            with tarfile.open(path) as archive:
                for member in archive:
                    if member.isfile() and _is_rom_name(member.name):
                        stream = archive.extractfile(member)
                        if stream is not None:
                            with stream:
                                return stream.read()
            raise BadImageError(f"no ROM found in archive: {path}")
    except (OSError, zipfile.BadZipFile, tarfile.TarError):
        return None
    return None


def read_rom_file(path: PathLike) -> bytes:
    """Read a ROM image, taking it out of a zip or tar archive if needed."""
    path = Path(path)
    if not path.exists():
        raise CannotFindFileError(f"cannot find file: {path}")
    if path.is_dir():
        raise CannotOpenFileError(f"is a directory: {path}")

    data = _read_from_archive(path)
    if data is not None:
        return data

    try:
        return path.read_bytes()
    except OSError as ex:
        raise CannotOpenFileError(f"cannot open file: {path}") from ex


def load_rom(
    path: PathLike,
    save_path: Optional[PathLike] = None,
    backup_type: BackupType = BackupType.DETECT,
    force_gpio: GPIODeviceType = GPIODeviceType.NONE,
    schedule: Optional[Schedule] = None,
    raise_irq: Optional[Callable[[], None]] = None,
) -> Rom:
    """Load a cartridge image and set up its save memory and GPIO devices.

    The save file defaults to the ROM path with a ``.sav`` extension.
    """
    path = Path(path)
    save_path = path.with_suffix(".sav") if save_path is None else Path(save_path)

    data = read_rom_file(path)
    size = len(data)
    if size < HEADER_SIZE or size > MAX_ROM_SIZE:
        raise BadImageError(f"ROM size of {size} bytes is out of range: {path}")

    game_info = get_game_info(data)

    if backup_type == BackupType.DETECT:
        if game_info.backup_type != BackupType.DETECT:
            backup_type = game_info.backup_type
        else:
            backup_type = detect_backup_type(data)
            if backup_type == BackupType.DETECT:
                log.warning("ROMLoader: failed to detect backup type!")
                backup_type = BackupType.SRAM

    backup = create_backup(save_path, backup_type, schedule)

    gpio: Optional[GPIO] = None
    gpio_devices = game_info.gpio | force_gpio
    if gpio_devices != GPIODeviceType.NONE:
        gpio = GPIO()
        if gpio_devices & GPIODeviceType.RTC:
            gpio.attach(RTC(raise_irq))
        if gpio_devices & GPIODeviceType.SOLAR_SENSOR:
            gpio.attach(SolarSensor())

    mask = MAX_ROM_SIZE - 1
    if game_info.mirror:
        mask = round_size_to_power_of_two(size) - 1

    return Rom(data=bytes(data), backup=backup, gpio=gpio, mask=mask)