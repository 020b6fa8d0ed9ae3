"""Loading of the system BIOS image."""

from __future__ import annotations

from pathlib import Path
from typing import Union

BIOS_SIZE = 0x4000


class LoadError(Exception):
    """A file could not be loaded."""


class CannotFindFileError(LoadError):
    """The file does not exist."""


class CannotOpenFileError(LoadError):
    """The file exists but could not be opened."""


class BadImageError(LoadError):
    """The file contents are not a valid image."""


def load_bios(path: Union[str, Path]) -> bytes:
    """Return the BIOS image at ``path``, which must be exactly 16 KiB."""
    path = Path(path)
    if not path.exists():
        raise CannotFindFileError(f"cannot find file: {path}")
    if path.is_dir():
        raise CannotOpenFileError(f"is a directory: {path}")
    if path.stat().st_size != BIOS_SIZE:
        raise BadImageError(f"BIOS image must be {BIOS_SIZE} bytes: {path}")
    try:
        with path.open("rb") as stream:
            data = stream.read(BIOS_SIZE)
    except OSError as ex:
        raise CannotOpenFileError(f"cannot open file: {path}") from ex
    return data