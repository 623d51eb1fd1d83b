[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "snaproll"
version = "0.1.0"
description = "Roll a live ZFS dataset forward to the state of a snapshot from 'zfs diff' output, preserving hard links."
requires-python = ">=3.10"
dependencies = []
keywords = ["zfs", "snapshot", "roll-forward", "restore", "backup", "hard-links"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Archiving :: Backup",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
snaproll = "snaproll.roll_forward:main"

[tool.hatch.build.targets.wheel]
packages = ["snaproll"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
