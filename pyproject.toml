[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gbromkit"
version = "0.1.0"
description = "Game Boy ROM header fixing and PNG-to-tile graphics conversion tools"
requires-python = ">=3.10"
dependencies = [
    "pillow",
]
keywords = ["game boy", "gameboy", "rom", "header", "checksum", "mbc", "tiles", "graphics", "homebrew"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems",
    "Topic :: Multimedia :: Graphics :: Graphics Conversion",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
gbromkit-fix = "gbromkit.fix:main"
gbromkit-gfx = "gbromkit.gfx:main"

[tool.hatch.build.targets.wheel]
packages = ["gbromkit"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
