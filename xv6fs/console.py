"""Console line discipline: echo, line editing and line-at-a-time reads."""

from __future__ import annotations

import io
import threading
from typing import Callable, Iterable, Optional, Union

INPUT_BUF = 128
BACKSPACE = 0x100


def control(x: str) -> int:
    """Code of Control-``x``."""
    return ord(x) - ord("@")


_NEWLINE = ord("\n")


class Console:
    """Collects typed characters into lines and echoes them to ``output``."""

    def __init__(self, output=None, on_procdump: Optional[Callable[[], None]] = None):
        self.output = io.StringIO() if output is None else output
        self.on_procdump = on_procdump
        self._buf = bytearray(INPUT_BUF)
        self._r = 0  # read index
        self._w = 0  # write index
        self._e = 0  # edit index
        self._cond = threading.Condition()

    def putc(self, c: Union[int, str]) -> None:
        """Echo one character; BACKSPACE erases the previous one."""
        if isinstance(c, str):
            c = ord(c)
        if c == BACKSPACE:
            self.output.write("\b \b")
        else:
            self.output.write(chr(c))

    def interrupt(self, chars: Iterable[Union[int, str]]) -> None:
        """Handle typed characters; a negative code ends the input early."""
        procdump = False
        with self._cond:
            for c in chars:
                if isinstance(c, str):
                    c = ord(c)
                if c < 0:
                    break
                if c == control("P"):
                    procdump = True
                elif c == control("U"):
                    while (
                        self._e != self._w
                        and self._buf[(self._e - 1) % INPUT_BUF] != _NEWLINE
                    ):
                        self._e -= 1
                        self.putc(BACKSPACE)
                elif c in (control("H"), 0x7F):
                    if self._e != self._w:
                        self._e -= 1
                        self.putc(BACKSPACE)
                elif c != 0 and self._e - self._r < INPUT_BUF:
                    if c == ord("\r"):
                        c = _NEWLINE
                    self._buf[self._e % INPUT_BUF] = c & 0xFF
                    self._e += 1
                    self.putc(c)
                    if (
                        c == _NEWLINE
                        or c == control("D")
                        or self._e == self._r + INPUT_BUF
                    ):
                        self._w = self._e
                        self._cond.notify_all()
        if procdump and self.on_procdump is not None:
            self.on_procdump()

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes, stopping after a newline; empty at Control-D."""
        out = bytearray()
        with self._cond:
            while len(out) < n:
                while self._r == self._w:
                    self._cond.wait()
                c = self._buf[self._r % INPUT_BUF]
                self._r += 1
                if c == control("D"):
                    if out:
                        # Keep the ^D so the next read returns nothing.
                        self._r -= 1
                    break
                out.append(c)
                if c == _NEWLINE:
                    break
        return bytes(out)

    def write(self, data) -> int:
        """Echo every byte of ``data``."""
        if isinstance(data, str):
            data = data.encode("latin-1")
        data = bytes(data)
        with self._cond:
            for b in data:
                self.putc(b)
        return len(data)