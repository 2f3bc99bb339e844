"""A disk held entirely in memory."""

from __future__ import annotations

from pathlib import Path

from .layout import BSIZE, ROOTDEV


class KernelPanic(RuntimeError):
    """An unrecoverable inconsistency was detected."""


class MemDisk:
    """Stores the blocks of one device in a byte array."""

    def __init__(self, image=b"", dev=ROOTDEV):
        self._image = bytearray(image)
        self.dev = dev
        self.disksize = len(self._image) // BSIZE

    @classmethod
    def from_file(cls, path, dev=ROOTDEV) -> "MemDisk":
        return cls(Path(path).read_bytes(), dev)

    def rw(self, buf) -> None:
        """Sync ``buf`` with the disk.

        A dirty buffer is written and becomes clean; otherwise the block is read.
        Either way the buffer ends up valid.
        """
        if not buf.busy:
            raise KernelPanic("iderw: buf not busy")
        if buf.valid and not buf.dirty:
            raise KernelPanic("iderw: nothing to do")
        if buf.dev != self.dev:
            raise KernelPanic(f"iderw: request not for disk {self.dev}")
        if not 0 <= buf.blockno < self.disksize:
            raise KernelPanic("iderw: block out of range")

        start = buf.blockno * BSIZE
        block = slice(start, start + BSIZE)
        if buf.dirty:
            buf.dirty = False
            self._image[block] = buf.data
        else:
            buf.data[:] = self._image[block]
        buf.valid = True

    def image(self) -> bytes:
        return bytes(self._image)

    def save(self, path) -> None:
        Path(path).write_bytes(self._image)