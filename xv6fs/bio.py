"""Buffer cache of disk blocks.

A buffer returned by :meth:`BufferCache.read` is held by one user until it is
passed back to :meth:`BufferCache.release`; another reader of the same block
waits until then.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import IntFlag

from .disk import KernelPanic
from .layout import BSIZE, NBUF


class BufFlags(IntFlag):
    BUSY = 0x1  # buffer is locked by some user
    VALID = 0x2  # buffer has been read from disk
    DIRTY = 0x4  # buffer needs to be written to disk


def _flag_property(bit: BufFlags, doc: str) -> property:
    def get(self) -> bool:
        return bool(self.flags & bit)

    def set_(self, on: bool) -> None:
        self.flags = (self.flags | bit) if on else (self.flags & ~bit)

    return property(get, set_, doc=doc)


@dataclass(eq=False)
class Buf:
    """A cached copy of one disk block."""

    dev: int = -1
    blockno: int = 0
    flags: BufFlags = BufFlags(0)
    data: bytearray = field(default_factory=lambda: bytearray(BSIZE))

    busy = _flag_property(BufFlags.BUSY, "Held by a user.")
    valid = _flag_property(BufFlags.VALID, "Holds the block's contents.")
    dirty = _flag_property(BufFlags.DIRTY, "Must be written to disk.")


class BufferCache:
    """A fixed set of buffers kept in most-recently-used order."""

    def __init__(self, disk, nbuf=NBUF):
        self.disk = disk
        self._cond = threading.Condition()
        self._bufs = [Buf() for _ in range(nbuf)]  # most recently used first

    def _get(self, dev: int, blockno: int) -> Buf:
        with self._cond:
            while True:
                cached = next(
                    (b for b in self._bufs if b.dev == dev and b.blockno == blockno),
                    None,
                )
                if cached is None:
                    break
                if not cached.busy:
                    cached.busy = True
                    return cached
                self._cond.wait()

            # Recycle the least recently used buffer that is neither held
            # nor waiting for the log to commit it.
            for b in reversed(self._bufs):
                if not b.busy and not b.dirty:
                    b.dev = dev
                    b.blockno = blockno
                    b.flags = BufFlags.BUSY
                    return b
        raise KernelPanic("bget: no buffers")

    def read(self, dev: int, blockno: int) -> Buf:
        """Return a held buffer with the contents of the block."""
        buf = self._get(dev, blockno)
        if not buf.valid:
            self.disk.rw(buf)
        return buf

    def write(self, buf: Buf) -> None:
        """Write a held buffer's contents to disk."""
        if not buf.busy:
            raise KernelPanic("bwrite")
        buf.dirty = True
        self.disk.rw(buf)

    def release(self, buf: Buf) -> None:
        """Give back a held buffer and make it the most recently used."""
        if not buf.busy:
            raise KernelPanic("brelse")
        with self._cond:
            self._bufs.remove(buf)
            self._bufs.insert(0, buf)
            buf.busy = False
            self._cond.notify_all()