"""Open files: a shared table of reference-counted file objects."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .disk import KernelPanic
from .fs import FsError, Inode
from .layout import BSIZE, LOGSIZE, NFILE, Stat
from .pipe import Pipe

# Write a few blocks per transaction so one write never overflows the log:
# leave room for the inode, an indirect block, allocation blocks and two
# blocks of slop for unaligned writes.
_MAX_WRITE = ((LOGSIZE - 1 - 1 - 2) // 2) * BSIZE


class FileKind(Enum):
    NONE = 0
    PIPE = 1
    INODE = 2


@dataclass(eq=False)
class File:
    """One open file; shared by every descriptor that refers to it."""

    kind: FileKind = FileKind.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Optional[Pipe] = None
    ip: Optional[Inode] = None
    off: int = 0


class FileTable:
    """The system-wide table of open files."""

    def __init__(self, fs=None, nfile: int = NFILE):
        self.fs = fs
        self._files = [File() for _ in range(nfile)]
        self._lock = threading.Lock()

    def alloc(self) -> File:
        """Take a free file object with one reference."""
        with self._lock:
            for f in self._files:
                if f.ref == 0:
                    f.ref = 1
                    return f
        raise FsError("file table is full")

    def dup(self, f: File) -> File:
        """Add a reference to ``f``."""
        with self._lock:
            if f.ref < 1:
                raise KernelPanic("filedup")
            f.ref += 1
        return f

    def close(self, f: File) -> None:
        """Drop a reference; release what the file holds when it was the last."""
        with self._lock:
            if f.ref < 1:
                raise KernelPanic("fileclose")
            f.ref -= 1
            if f.ref > 0:
                return
            kind, pipe, ip, writable = f.kind, f.pipe, f.ip, f.writable
            f.kind = FileKind.NONE
            f.pipe = None
            f.ip = None
            f.readable = False
            f.writable = False
            f.off = 0

        if kind is FileKind.PIPE:
            pipe.close(writable)
        elif kind is FileKind.INODE:
            with self.fs.log.transaction():
                self.fs.iput(ip)

    def stat(self, f: File) -> Stat:
        """Metadata of the inode behind ``f``."""
        if f.kind is not FileKind.INODE:
            raise FsError("only inode files have metadata")
        self.fs.ilock(f.ip)
        try:
            return self.fs.stati(f.ip)
        finally:
            self.fs.iunlock(f.ip)

    def read(self, f: File, n: int) -> bytes:
        """Read up to ``n`` bytes from the file's current offset."""
        if not f.readable:
            raise FsError("file is not open for reading")
        if f.kind is FileKind.PIPE:
            return f.pipe.read(n)
        if f.kind is FileKind.INODE:
            self.fs.ilock(f.ip)
            try:
                data = self.fs.readi(f.ip, f.off, n)
                f.off += len(data)
            finally:
                self.fs.iunlock(f.ip)
            return data
        raise KernelPanic("fileread")

    def write(self, f: File, data) -> int:
        """Write all of ``data`` at the file's current offset."""
        if not f.writable:
            raise FsError("file is not open for writing")
        data = bytes(data)
        if f.kind is FileKind.PIPE:
            return f.pipe.write(data)
        if f.kind is FileKind.INODE:
            done = 0
            while done < len(data):
                chunk = data[done : done + _MAX_WRITE]
                with self.fs.log.transaction():
                    self.fs.ilock(f.ip)
                    try:
                        written = self.fs.writei(f.ip, chunk, f.off)
                        if written > 0:
                            f.off += written
                    finally:
                        self.fs.iunlock(f.ip)
                if written != len(chunk):
                    raise KernelPanic("short filewrite")
                done += written
            return len(data)
        raise KernelPanic("filewrite")

    def pipe_alloc(self) -> tuple[File, File]:
        """Make a pipe; return its read end and its write end."""
        reader = self.alloc()
        try:
            writer = self.alloc()
        except FsError:
            self.close(reader)
            raise
        pipe = Pipe()
        reader.kind = FileKind.PIPE
        reader.readable = True
        reader.writable = False
        reader.pipe = pipe
        writer.kind = FileKind.PIPE
        writer.readable = False
        writer.writable = True
        writer.pipe = pipe
        return reader, writer