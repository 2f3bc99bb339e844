"""Write-ahead redo log that makes groups of block writes atomic.

File system calls bracket their work with :meth:`Log.begin_op` and
:meth:`Log.end_op`; the blocks they change are committed together once no
call is outstanding.  On disk the log is a header block holding a count and
the home block numbers, followed by copies of those blocks.
"""

from __future__ import annotations

import struct
import threading
from contextlib import contextmanager
from typing import Iterator

from .bio import Buf, BufferCache
from .disk import KernelPanic
from .layout import BSIZE, LOGSIZE, MAXOPBLOCKS, Superblock

_COUNT = struct.Struct("<i")


class Log:
    """The log of one device."""

    def __init__(self, cache: BufferCache, dev: int, sb: Superblock):
        if _COUNT.size * (LOGSIZE + 1) >= BSIZE:
            raise KernelPanic("initlog: too big logheader")
        self.cache = cache
        self.dev = dev
        self.start = sb.logstart
        self.size = sb.nlog
        self.outstanding = 0  # file system calls in progress
        self.committing = False
        self.blocks: list[int] = []  # home block numbers logged so far
        self._cond = threading.Condition()
        self.recover()

    @contextmanager
    def _block(self, blockno: int) -> Iterator[Buf]:
        buf = self.cache.read(self.dev, blockno)
        try:
            yield buf
        finally:
            self.cache.release(buf)

    def _read_head(self) -> None:
        with self._block(self.start) as buf:
            (n,) = _COUNT.unpack_from(buf.data)
            self.blocks = list(struct.unpack_from(f"<{n}i", buf.data, _COUNT.size))

    def _write_head(self) -> None:
        """Write the header; with a non-empty log this is the commit point."""
        with self._block(self.start) as buf:
            n = len(self.blocks)
            struct.pack_into(f"<i{n}i", buf.data, 0, n, *self.blocks)
            self.cache.write(buf)

    def _install(self) -> None:
        """Copy committed blocks from the log to their home locations."""
        for tail, home in enumerate(self.blocks):
            with self._block(self.start + tail + 1) as logged, self._block(home) as dst:
                dst.data[:] = logged.data
                self.cache.write(dst)

    def _write_log(self) -> None:
        """Copy modified blocks from the cache into the log area."""
        for tail, home in enumerate(self.blocks):
            with self._block(self.start + tail + 1) as to, self._block(home) as src:
                to.data[:] = src.data
                self.cache.write(to)

    def _commit(self) -> None:
        if self.blocks:
            self._write_log()
            self._write_head()
            self._install()
            self.blocks = []
            self._write_head()

    def recover(self) -> None:
        """Finish any transaction that was committed but not installed."""
        self._read_head()
        self._install()
        self.blocks = []
        self._write_head()

    def begin_op(self) -> None:
        """Start a file system call, waiting while the log might overflow."""
        with self._cond:
            while (
                self.committing
                or len(self.blocks) + (self.outstanding + 1) * MAXOPBLOCKS > LOGSIZE
            ):
                self._cond.wait()
            self.outstanding += 1

    def end_op(self) -> None:
        """End a file system call; the last one out commits."""
        with self._cond:
            self.outstanding -= 1
            if self.committing:
                raise KernelPanic("log.committing")
            do_commit = self.outstanding == 0
            if do_commit:
                self.committing = True
            else:
                self._cond.notify_all()

        if do_commit:
            try:
                self._commit()
            finally:
                with self._cond:
                    self.committing = False
                    self._cond.notify_all()

    @contextmanager
    def transaction(self) -> Iterator["Log"]:
        """Bracket a file system call with begin_op and end_op."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()

    def write(self, buf: Buf) -> None:
        """Record a modified buffer and pin it in the cache until commit."""
        with self._cond:
            if len(self.blocks) >= LOGSIZE or len(self.blocks) >= self.size - 1:
                raise KernelPanic("too big a transaction")
            if self.outstanding < 1:
                raise KernelPanic("log_write outside of trans")
            if buf.blockno not in self.blocks:
                self.blocks.append(buf.blockno)
            buf.dirty = True