"""Frontend configuration stored as a TOML file."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Union

import tomlkit
from tomlkit.exceptions import TOMLKitError

from agbkit.game_db import BackupType

log = logging.getLogger(__name__)

PathLike = Union[str, Path]


class Filter(enum.Enum):
    """Texture filter used when presenting the screen."""

    NEAREST = "nearest"
    LINEAR = "linear"
    SHARP = "sharp"
    XBRZ = "xbrz"
    LCD1X = "lcd1x"


class ColorCorrection(enum.Enum):
    """Colour correction applied to the screen output."""

    NONE = "none"
    HIGAN = "higan"
    AGB = "agb"


class Interpolation(enum.Enum):
    """Audio resampling algorithm."""

    COSINE = "cosine"
    CUBIC = "cubic"
    SINC_64 = "sinc64"
    SINC_128 = "sinc128"
    SINC_256 = "sinc256"


_SAVE_TYPES: dict[str, BackupType] = {
    "detect": BackupType.DETECT,
    "none": BackupType.NONE,
    "sram": BackupType.SRAM,
    "flash64": BackupType.FLASH_64,
    "flash128": BackupType.FLASH_128,
    "eeprom512": BackupType.EEPROM_4,
    "eeprom8192": BackupType.EEPROM_64,
}
_SAVE_TYPE_NAMES: dict[BackupType, str] = {v: k for k, v in _SAVE_TYPES.items()}

_FILTERS: dict[str, Filter] = {f.value: f for f in Filter}
_COLOR_CORRECTIONS: dict[str, ColorCorrection] = {c.value: c for c in ColorCorrection}
_RESAMPLERS: dict[str, Interpolation] = {i.value: i for i in Interpolation}

_KNOWN_SECTIONS = frozenset({"general", "cartridge", "video", "audio"})


@dataclass
class CartridgeConfig:
    """Cartridge hardware overrides."""

    backup_type: BackupType = BackupType.DETECT
    force_rtc: bool = True
    force_solar_sensor: bool = False
    solar_sensor_level: int = 23


@dataclass
class VideoConfig:
    """Screen presentation settings."""

    filter: Filter = Filter.LINEAR
    color: ColorCorrection = ColorCorrection.AGB
    lcd_ghosting: bool = True


@dataclass
class AudioConfig:
    """Audio output settings."""

    interpolation: Interpolation = Interpolation.COSINE
    volume: int = 100
    mp2k_hle_enable: bool = False
    mp2k_hle_cubic: bool = True
    mp2k_hle_force_reverb: bool = True


def _find_or(table: Mapping[str, Any], key: str, kind: type, default: Any) -> Any:
    value = table.get(key, default)
    if kind is int and isinstance(value, bool):
        return default
    return value if isinstance(value, kind) else default


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data[name]
    return value if isinstance(value, Mapping) else {}


def _table(doc: Any, name: str) -> Any:
    if not isinstance(doc.get(name), dict):
        doc[name] = tomlkit.table()
    return doc[name]


@dataclass
class PlatformConfig:
    """All frontend settings, loadable from and savable to TOML."""

    bios_path: str = "bios.bin"
    skip_bios: bool = False
    save_folder: str = ""
    cartridge: CartridgeConfig = field(default_factory=CartridgeConfig)
    video: VideoConfig = field(default_factory=VideoConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    custom: dict[str, Any] = field(default_factory=dict)

    def load(self, path: PathLike) -> None:
        """Read settings from ``path``; create the file when it is missing."""
        path = Path(path)
        if not path.exists():
            self.save(path)
            return

        try:
            data = tomlkit.parse(path.read_text(encoding="utf-8")).unwrap()
        except (OSError, ValueError, TOMLKitError) as ex:
            log.error("Config: error while parsing TOML configuration: %s", ex)
            return

        if "general" in data:
            general = _section(data, "general")
            self.bios_path = _find_or(general, "bios_path", str, "bios.bin")
            self.skip_bios = _find_or(general, "bios_skip", bool, False)
            self.save_folder = _find_or(general, "save_folder", str, "")

        if "cartridge" in data:
            cartridge = _section(data, "cartridge")
            save_type = _find_or(cartridge, "save_type", str, "detect")
            if save_type in _SAVE_TYPES:
                self.cartridge.backup_type = _SAVE_TYPES[save_type]
            else:
                log.warning(
                    "Config: backup type '%s' is not valid, defaulting to auto-detect.",
                    save_type,
                )
                self.cartridge.backup_type = BackupType.DETECT
            self.cartridge.force_rtc = _find_or(cartridge, "force_rtc", bool, False)
            self.cartridge.force_solar_sensor = _find_or(
                cartridge, "force_solar_sensor", bool, False
            )
            self.cartridge.solar_sensor_level = (
                _find_or(cartridge, "solar_sensor_level", int, 156) & 0xFF
            )

        if "video" in data:
            video = _section(data, "video")
            filter_name = _find_or(video, "filter", str, "nearest")
            if filter_name in _FILTERS:
                self.video.filter = _FILTERS[filter_name]
            color_name = _find_or(video, "color_correction", str, "ags")
            if color_name in _COLOR_CORRECTIONS:
                self.video.color = _COLOR_CORRECTIONS[color_name]
            self.video.lcd_ghosting = _find_or(video, "lcd_ghosting", bool, True)

        if "audio" in data:
            audio = _section(data, "audio")
            resampler = _find_or(audio, "resampler", str, "cosine")
            if resampler in _RESAMPLERS:
                self.audio.interpolation = _RESAMPLERS[resampler]
            else:
                log.warning(
                    "Config: unknown resampling algorithm: %s (defaulting to cosine).",
                    resampler,
                )
                self.audio.interpolation = Interpolation.COSINE
            self.audio.volume = _find_or(audio, "volume", int, 100)
            self.audio.mp2k_hle_enable = _find_or(audio, "mp2k_hle_enable", bool, False)
            self.audio.mp2k_hle_cubic = _find_or(audio, "mp2k_hle_cubic", bool, True)
            self.audio.mp2k_hle_force_reverb = _find_or(
                audio, "mp2k_hle_force_reverb", bool, True
            )

        self.load_custom_data(data)

    def save(self, path: PathLike) -> None:
        """Write settings to ``path``, keeping comments of an existing file."""
        path = Path(path)
        if path.exists():
            try:
                doc = tomlkit.parse(path.read_text(encoding="utf-8"))
            except (OSError, ValueError, TOMLKitError) as ex:
                log.error("Config: error while parsing TOML configuration: %s", ex)
                return
        else:
            doc = tomlkit.document()

        general = _table(doc, "general")
        general["bios_path"] = self.bios_path
        general["bios_skip"] = self.skip_bios
        general["save_folder"] = self.save_folder

        cartridge = _table(doc, "cartridge")
        cartridge["save_type"] = _SAVE_TYPE_NAMES.get(self.cartridge.backup_type, "")
        cartridge["force_rtc"] = self.cartridge.force_rtc
        cartridge["force_solar_sensor"] = self.cartridge.force_solar_sensor
        cartridge["solar_sensor_level"] = self.cartridge.solar_sensor_level

        video = _table(doc, "video")
        video["filter"] = self.video.filter.value
        video["color_correction"] = self.video.color.value
        video["lcd_ghosting"] = self.video.lcd_ghosting

        audio = _table(doc, "audio")
        audio["resampler"] = self.audio.interpolation.value
        audio["volume"] = self.audio.volume
        audio["mp2k_hle_enable"] = self.audio.mp2k_hle_enable
        audio["mp2k_hle_cubic"] = self.audio.mp2k_hle_cubic
        audio["mp2k_hle_force_reverb"] = self.audio.mp2k_hle_force_reverb

        self.save_custom_data(doc)

        path.write_text(tomlkit.dumps(doc), encoding="utf-8")

    def load_custom_data(self, data: Mapping[str, Any]) -> None:
        """Keep top-level entries that are not built-in settings in ``custom``.

        Subclasses may override this to read extra settings.
        """
        self.custom = {
            key: value for key, value in data.items() if key not in _KNOWN_SECTIONS
        }

    def save_custom_data(self, data: Any) -> None:
        """Add entries from ``custom`` that the document does not already hold.

        Subclasses may override this to write extra settings.
        """
        for key, value in self.custom.items():
            if key not in _KNOWN_SECTIONS and key not in data:
                data[key] = value