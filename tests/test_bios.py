import pytest

from agbkit.bios import (
    BIOS_SIZE,
    BadImageError,
    CannotFindFileError,
    CannotOpenFileError,
    LoadError,
    load_bios,
)


def test_loads_valid_image(tmp_path):
    image = bytes(i & 0xFF for i in range(BIOS_SIZE))
    path = tmp_path / "bios.bin"
    path.write_bytes(image)
    assert load_bios(path) == image


def test_accepts_string_path(tmp_path):
    path = tmp_path / "bios.bin"
    path.write_bytes(b"\x01" * BIOS_SIZE)
    assert load_bios(str(path)) == b"\x01" * BIOS_SIZE


def test_sixteen_kib_image_is_accepted(tmp_path):
    path = tmp_path / "bios.bin"
    path.write_bytes(b"\xaa" * 0x4000)
    assert len(load_bios(path)) == 0x4000


def test_missing_file(tmp_path):
    with pytest.raises(CannotFindFileError):
        load_bios(tmp_path / "absent.bin")


def test_directory(tmp_path):
    with pytest.raises(CannotOpenFileError):
        load_bios(tmp_path)


@pytest.mark.parametrize("size", [0, BIOS_SIZE - 1, BIOS_SIZE + 1])
def test_wrong_size(tmp_path, size):
    path = tmp_path / "bios.bin"
    path.write_bytes(b"\x00" * size)
    with pytest.raises(BadImageError):
        load_bios(path)


def test_errors_share_base_class(tmp_path):
    with pytest.raises(LoadError):
        load_bios(tmp_path / "absent.bin")