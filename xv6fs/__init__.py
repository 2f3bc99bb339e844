"""A small Unix-style file system: disk layout, buffer cache, log, inodes, pipes and tools."""

__version__ = "0.1.0"