"""Handheld console platform pieces: game database, configuration, frame pacing, BIOS and ROM loading, cartridge save memory and GPIO devices, timers and an emulator thread."""

__version__ = "0.1.0"

__all__ = [
    "backup",
    "bios",
    "config",
    "emulator_thread",
    "frame_limiter",
    "game_db",
    "gpio",
    "rom",
    "timer",
]