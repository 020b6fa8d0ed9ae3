[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "agbkit"
version = "0.1.0"
description = "Handheld console platform pieces: game database, TOML configuration, frame pacing, BIOS and ROM loading, cartridge save memory and GPIO devices, hardware timers and an emulator thread"
requires-python = ">=3.10"
keywords = ["emulator", "gba", "cartridge", "eeprom", "flash", "sram", "rtc", "timer"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
]
dependencies = [
    "tomlkit",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["agbkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
