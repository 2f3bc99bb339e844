"""A bounded in-memory pipe between one reading end and one writing end."""

from __future__ import annotations

import threading

PIPESIZE = 512


class PipeClosedError(BrokenPipeError):
    """The read end is closed while the writer still has data to deliver."""


class Pipe:
    """A byte channel that holds at most ``size`` unread bytes.

    A writer that finds the buffer full waits for a reader; a reader that
    finds it empty waits for a writer, unless the write end is closed.
    """

    def __init__(self, size: int = PIPESIZE):
        if size < 1:
            raise ValueError("a pipe must hold at least one byte")
        self.size = size
        self.readopen = True
        self.writeopen = True
        self._buffer = bytearray()
        self._cond = threading.Condition()

    def write(self, data) -> int:
        """Write all of ``data``, waiting for room as needed."""
        data = bytes(data)
        written = 0
        with self._cond:
            while written < len(data):
                while len(self._buffer) == self.size:
                    if not self.readopen:
                        raise PipeClosedError("pipe read end is closed")
                    self._cond.notify_all()
                    self._cond.wait()
                room = self.size - len(self._buffer)
                chunk = data[written : written + room]
                self._buffer += chunk
                written += len(chunk)
            self._cond.notify_all()
        return len(data)

    def read(self, n: int) -> bytes:
        """Return up to ``n`` bytes; empty once the writer has gone and all is read."""
        with self._cond:
            while not self._buffer and self.writeopen:
                self._cond.wait()
            count = max(n, 0)
            chunk = bytes(self._buffer[:count])
            del self._buffer[:count]
            self._cond.notify_all()
        return chunk

    def close(self, writable: bool) -> None:
        """Close the write end if ``writable``, otherwise the read end."""
        with self._cond:
            if writable:
                self.writeopen = False
            else:
                self.readopen = False
            self._cond.notify_all()