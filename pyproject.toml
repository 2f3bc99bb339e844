[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xv6fs"
version = "0.1.0"
description = "A small Unix-style file system: on-disk format, buffer cache, redo log, inodes, pipes, console and an image builder"
requires-python = ">=3.10"
dependencies = []
keywords = ["filesystem", "inode", "buffer-cache", "journaling", "disk-image", "unix"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
xv6fs-mkfs = "xv6fs.mkfs:main"
xv6fs-grep = "xv6fs.grep:main"

[tool.hatch.build.targets.wheel]
packages = ["xv6fs"]

[tool.hatch.build.targets.sdist]
include = ["xv6fs", "tests", "pyproject.toml", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
