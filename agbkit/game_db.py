"""Known cartridge overrides keyed by the four-character game code."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Union


class BackupType(enum.Enum):
    """Kind of save memory found on a cartridge."""

    DETECT = "detect"
    NONE = "none"
    SRAM = "sram"
    FLASH_64 = "flash64"
    FLASH_128 = "flash128"
    EEPROM_4 = "eeprom512"
    EEPROM_64 = "eeprom8192"
    EEPROM_DETECT = "eeprom_detect"


class GPIODeviceType(enum.IntFlag):
    """Devices wired to the cartridge GPIO port."""

    NONE = 0
    RTC = 1
    SOLAR_SENSOR = 2


@dataclass(frozen=True)
class GameInfo:
    """Per-game overrides for save type, GPIO devices and ROM mirroring."""

    backup_type: BackupType = BackupType.DETECT
    gpio: GPIODeviceType = GPIODeviceType.NONE
    mirror: bool = False


_B = BackupType
_G = GPIODeviceType
_RTC_SOLAR = _G.RTC | _G.SOLAR_SENSOR


def _info(
    backup_type: BackupType,
    gpio: GPIODeviceType = GPIODeviceType.NONE,
    mirror: bool = False,
) -> GameInfo:
    return GameInfo(backup_type, gpio, mirror)


# EEPROM sizes in this table are best guesses.
_ENTRIES: dict[str, GameInfo] = {
    "ALFP": _info(_B.EEPROM_64),
    "ALGP": _info(_B.EEPROM_64),
    "AROP": _info(_B.EEPROM_64),
    "AR8e": _info(_B.EEPROM_64),
    "AXVE": _info(_B.FLASH_128, _G.RTC),
    "AXPE": _info(_B.FLASH_128, _G.RTC),
    "AX4P": _info(_B.FLASH_128),
    "A2YE": _info(_B.NONE),
    "BDBP": _info(_B.EEPROM_64),
    "BM5P": _info(_B.FLASH_64),
    "BPEE": _info(_B.FLASH_128, _G.RTC),
    "BY6P": _info(_B.SRAM),
    "B24E": _info(_B.FLASH_128),
    "FADE": _info(_B.EEPROM_4, mirror=True),
    "FBME": _info(_B.EEPROM_4, mirror=True),
    "FDKE": _info(_B.EEPROM_4, mirror=True),
    "FDME": _info(_B.EEPROM_4, mirror=True),
    "FEBE": _info(_B.EEPROM_64, mirror=True),
    "FICE": _info(_B.EEPROM_4, mirror=True),
    "FLBE": _info(_B.EEPROM_64, mirror=True),
    "FMRE": _info(_B.EEPROM_4, mirror=True),
    "FP7E": _info(_B.EEPROM_4, mirror=True),
    "FSME": _info(_B.EEPROM_4, mirror=True),
    "FXVE": _info(_B.EEPROM_4, mirror=True),
    "FZLE": _info(_B.EEPROM_64, mirror=True),
    "KYGP": _info(_B.EEPROM_64),
    "U3IP": _info(_B.DETECT, _RTC_SOLAR),
    "U32P": _info(_B.DETECT, _RTC_SOLAR),
    "AGFE": _info(_B.FLASH_64, _G.RTC),
    "AGSE": _info(_B.FLASH_64, _G.RTC),
    "ALFE": _info(_B.EEPROM_64),
    "ALGE": _info(_B.EEPROM_64),
    "AX4E": _info(_B.FLASH_128),
    "BDBE": _info(_B.EEPROM_64),
    "BG3E": _info(_B.EEPROM_64),
    "BLFE": _info(_B.EEPROM_64),
    "BPRE": _info(_B.FLASH_128),
    "BPGE": _info(_B.FLASH_128),
    "BT4E": _info(_B.EEPROM_64),
    "BUFE": _info(_B.EEPROM_64),
    "BYGE": _info(_B.SRAM),
    "KYGE": _info(_B.EEPROM_64),
    "PSAE": _info(_B.FLASH_128),
    "U3IE": _info(_B.DETECT, _RTC_SOLAR),
    "U32E": _info(_B.DETECT, _RTC_SOLAR),
    "ALFJ": _info(_B.EEPROM_64),
    "AXPJ": _info(_B.FLASH_128, _G.RTC),
    "AXVJ": _info(_B.FLASH_128, _G.RTC),
    "AX4J": _info(_B.FLASH_128),
    "BFTJ": _info(_B.FLASH_128),
    "BGWJ": _info(_B.FLASH_128),
    "BKAJ": _info(_B.FLASH_128, _G.RTC),
    "BPEJ": _info(_B.FLASH_128, _G.RTC),
    "BPGJ": _info(_B.FLASH_128),
    "BPRJ": _info(_B.FLASH_128),
    "BDKJ": _info(_B.EEPROM_64),
    "BR4J": _info(_B.DETECT, _G.RTC),
    "FSRJ": _info(_B.EEPROM_64, mirror=True),
    "FGZJ": _info(_B.EEPROM_4, mirror=True),
    "FMBJ": _info(_B.EEPROM_4, mirror=True),
    "FCLJ": _info(_B.EEPROM_4, mirror=True),
    "FBFJ": _info(_B.EEPROM_4, mirror=True),
    "FWCJ": _info(_B.EEPROM_4, mirror=True),
    "FDMJ": _info(_B.EEPROM_4, mirror=True),
    "FDDJ": _info(_B.EEPROM_4, mirror=True),
    "FTBJ": _info(_B.EEPROM_4, mirror=True),
    "FMKJ": _info(_B.EEPROM_4, mirror=True),
    "FTWJ": _info(_B.EEPROM_4, mirror=True),
    "FGGJ": _info(_B.EEPROM_4, mirror=True),
    "FM2J": _info(_B.EEPROM_4, mirror=True),
    "FNMJ": _info(_B.EEPROM_4, mirror=True),
    "FMRJ": _info(_B.EEPROM_64, mirror=True),
    "FPTJ": _info(_B.EEPROM_64, mirror=True),
    "FLBJ": _info(_B.EEPROM_64, mirror=True),
    "FFMJ": _info(_B.EEPROM_4, mirror=True),
    "FTKJ": _info(_B.EEPROM_4, mirror=True),
    "FTUJ": _info(_B.EEPROM_4, mirror=True),
    "FADJ": _info(_B.EEPROM_4, mirror=True),
    "FSDJ": _info(_B.EEPROM_64, mirror=True),
    "KHPJ": _info(_B.EEPROM_64),
    "KYGJ": _info(_B.EEPROM_64),
    "PSAJ": _info(_B.FLASH_128),
    "U3IJ": _info(_B.DETECT, _RTC_SOLAR),
    "U32J": _info(_B.DETECT, _RTC_SOLAR),
    "U33J": _info(_B.DETECT, _RTC_SOLAR),
    "AXPF": _info(_B.FLASH_128, _G.RTC),
    "AXVF": _info(_B.FLASH_128, _G.RTC),
    "BPEF": _info(_B.FLASH_128, _G.RTC),
    "BPGF": _info(_B.FLASH_128),
    "BPRF": _info(_B.FLASH_128),
    "AXPI": _info(_B.FLASH_128, _G.RTC),
    "AXVI": _info(_B.FLASH_128, _G.RTC),
    "BPEI": _info(_B.FLASH_128, _G.RTC),
    "BPGI": _info(_B.FLASH_128),
    "BPRI": _info(_B.FLASH_128),
    "AXPD": _info(_B.FLASH_128, _G.RTC),
    "AXVD": _info(_B.FLASH_128, _G.RTC),
    "BPED": _info(_B.FLASH_128, _G.RTC),
    "BPGD": _info(_B.FLASH_128),
    "BPRD": _info(_B.FLASH_128),
    "AXPS": _info(_B.FLASH_128, _G.RTC),
    "AXVS": _info(_B.FLASH_128, _G.RTC),
    "BPES": _info(_B.FLASH_128, _G.RTC),
    "BPGS": _info(_B.FLASH_128),
    "BPRS": _info(_B.FLASH_128),
    "A9DP": _info(_B.EEPROM_4),
    "AAOJ": _info(_B.EEPROM_4),
    "BGDP": _info(_B.EEPROM_4),
    "BGDE": _info(_B.EEPROM_4),
    "BJBE": _info(_B.EEPROM_4),
    "BJBJ": _info(_B.EEPROM_4),
    "ALUP": _info(_B.EEPROM_4),
    "ALUE": _info(_B.EEPROM_4),
    "BL8E": _info(_B.EEPROM_4),
}

GAME_DB: Mapping[str, GameInfo] = MappingProxyType(_ENTRIES)


def lookup(game_code: Union[str, bytes]) -> GameInfo:
    """Return the overrides for a game code, or defaults when it is unknown."""
    if isinstance(game_code, (bytes, bytearray)):
        game_code = bytes(game_code).decode("latin-1")
    return GAME_DB.get(game_code, GameInfo())