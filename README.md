# agbkit

Building blocks for a handheld console emulator front end and the hardware
found on its cartridges.

## Modules

- `agbkit.game_db`: a read-only table `GAME_DB` of known four-character game
  codes with their save type, GPIO devices and ROM mirroring. `lookup(code)`
  accepts `str` or `bytes` and returns a `GameInfo` (defaults for unknown
  codes). Also defines the `BackupType` enum and the `GPIODeviceType` flags.
- `agbkit.config`: `PlatformConfig`, a dataclass with `bios_path`,
  `skip_bios`, `save_folder` and the nested `cartridge` (`CartridgeConfig`),
  `video` (`VideoConfig`) and `audio` (`AudioConfig`) settings.
  `load(path)` reads a TOML file (and writes the defaults if the file is
  missing); `save(path)` writes it back, keeping comments of an existing file.
  Top-level tables other than `general`, `cartridge`, `video` and `audio` are
  kept in `custom`; subclasses may override `load_custom_data` and
  `save_custom_data`. Unknown save types and resamplers fall back to
  auto-detect and cosine, with a logged warning; parse errors are logged and
  leave the settings unchanged.
- `agbkit.frame_limiter`: `FrameLimiter(fps=60.0)`. `run(frame_advance,
  update_fps)` advances one frame, reports the measured frame rate about once a
  second and sleeps until the frame is due. `fast_forward` turns the throttle
  off; `reset(fps)` restarts timing. The clock and sleep functions can be
  passed in.
- `agbkit.bios`: `load_bios(path)` returns a 16 KiB BIOS image as `bytes`, or
  raises `CannotFindFileError`, `CannotOpenFileError` or `BadImageError` (all
  subclasses of `LoadError`).
- `agbkit.backup`: cartridge save memory stored in a `BackupFile`, which keeps
  the save in memory and writes every change through to disk:
  - `SRAM(save_path)`: 32 KiB, mirrored every 32 KiB.
  - `Flash(save_path, Flash.Size.SIZE_64K | Flash.Size.SIZE_128K)`: command
    sequences for chip ID, chip and sector erase, byte write and bank select.
  - `EEPROM(save_path, EEPROM.Size.SIZE_4K | SIZE_64K | DETECT, schedule)`:
    the bit-serial protocol; after a block write the chip stays busy until
    `on_ready_after_write` runs (scheduled 101400 cycles later through
    `schedule(delay, callback)` when given, at once otherwise).
    `set_size_hint` fixes a size that is still being detected.
  An existing save file of a valid size is loaded; otherwise a blank one,
  filled with 0xFF, is created.
- `agbkit.gpio`: the cartridge GPIO port `GPIO` (data, direction and control
  registers at `GPIO.Register.DATA`, `DIRECTION` and `CONTROL`) with the
  devices `RTC` (serial real-time clock with control, date/time and time
  registers, reading the host clock) and `SolarSensor` (light level 0 to 255
  via `set_light_level`). Custom devices subclass `GPIODevice`.
- `agbkit.rom`: `load_rom(path, save_path=None, backup_type=BackupType.DETECT,
  force_gpio=GPIODeviceType.NONE, schedule=None, raise_irq=None)` reads a ROM
  image (plain, or the first `.gba` file inside a zip or tar archive), picks
  the save type from the game database or from the save-library signature in
  the image (falling back to SRAM), creates the save memory and GPIO devices
  and returns a `Rom` with `data`, `backup`, `gpio` and `mask`. The save file
  defaults to the ROM path with a `.sav` extension. The helpers
  `read_rom_file`, `get_game_info`, `detect_backup_type`, `create_backup` and
  `round_size_to_power_of_two` are public too.
- `agbkit.emulator_thread`: `EmulatorThread` runs a core on a background
  thread in sub-frames of 70224 cycles, paced by a `FrameLimiter`. `start(core)`
  and `stop()` (which returns the core) control it, and it can be used as a
  context manager. `reset()` and `set_key_status(key, pressed)` are passed to
  the core between sub-frames. `paused`, `fast_forward`,
  `frame_rate_callback` and `per_frame_callback` can be set. A core is any
  object with `run(cycles)`, `reset()` and `set_key_status(key, pressed)`.
- `agbkit.timer`: the four 16-bit hardware timers (`Timer`) with prescalers,
  cascading, overflow interrupts (`raise_irq(channel)`) and overflow
  notifications for channels 0 and 1 (`on_apu_overflow(channel, 1)`), driven
  by a cycle `Scheduler` (`add`, `cancel`, `advance`). Register writes take
  effect one cycle later.

## Installation

```
pip install .
```

## Examples

Look up a game:

```python
from agbkit.game_db import BackupType, GPIODeviceType, lookup

info = lookup("BPEE")
assert info.backup_type is BackupType.FLASH_128
assert info.gpio == GPIODeviceType.RTC
```

Load and save the configuration:

```python
from agbkit.config import PlatformConfig

config = PlatformConfig()
config.load("config.toml")   # writes the defaults if the file does not exist
config.audio.volume = 80
config.save("config.toml")
```

Use FLASH save memory:

```python
from agbkit.backup import Flash

flash = Flash("game.sav", Flash.Size.SIZE_64K)
for address, value in ((0x0E005555, 0xAA), (0x0E002AAA, 0x55), (0x0E005555, 0xA0)):
    flash.write(address, value)
flash.write(0x0E000010, 0x42)
assert flash.read(0x0E000010) == 0x42
```

Run a timer:

```python
from agbkit.timer import Scheduler, Timer

scheduler = Scheduler()
overflows = []
timer = Timer(scheduler, raise_irq=overflows.append)
timer.write_half(0, 0, 0xFF00)        # reload value
timer.write_half(0, 2, 0x80 | 0x40)   # enable, interrupt on overflow
scheduler.advance(1000)
print(overflows, hex(timer.read_half(0, 0)))
```

## What the package does not do

There is no processor, memory bus, video or sound emulation and no emulator
core: `EmulatorThread` drives whatever core object it is given. There are no
video or audio output devices, no save states, and no command-line program.
ROM images are read plain or from zip and tar archives only.

## Tests

```
pip install .[test]
pytest
```