"""Minimal formatted output: %d, %x, %p, %s and, for user programs, %c."""

from __future__ import annotations

from typing import Iterator

from .disk import KernelPanic

_UPPER = "0123456789ABCDEF"
_LOWER = "0123456789abcdef"
_MASK = 0xFFFFFFFF


def format_int(x: int, base: int = 10, signed: bool = True, digits: str = _UPPER) -> str:
    """Render ``x`` as a 32-bit integer, two's complement when unsigned."""
    if not 2 <= base <= len(digits):
        raise ValueError(f"base must be between 2 and {len(digits)}")
    value = x & _MASK
    negative = signed and bool(value & 0x80000000)
    if negative:
        value = -value & _MASK
    out = []
    while True:
        value, d = divmod(value, base)
        out.append(digits[d])
        if value == 0:
            break
    if negative:
        out.append("-")
    return "".join(reversed(out))


def _render(fmt: str, args: tuple, digits: str, with_char: bool) -> str:
    pending: Iterator = iter(args)

    def take():
        try:
            return next(pending)
        except StopIteration:
            raise TypeError("not enough arguments for format string") from None

    out = []
    chars = iter(fmt)
    for c in chars:
        if c != "%":
            out.append(c)
            continue
        spec = next(chars, None)
        if spec is None:
            break
        if spec == "d":
            out.append(format_int(take(), 10, True, digits))
        elif spec in "xp":
            out.append(format_int(take(), 16, False, digits))
        elif spec == "s":
            s = take()
            out.append("(null)" if s is None else str(s))
        elif spec == "c" and with_char:
            ch = take()
            out.append(chr(ch & 0xFF) if isinstance(ch, int) else str(ch)[:1])
        elif spec == "%":
            out.append("%")
        else:
            # Unknown sequences are shown as they are to draw attention.
            out.append("%" + spec)
    return "".join(out)


def sprintf(fmt: str, *args) -> str:
    """Format as user programs do: upper-case hex, and %c for characters."""
    return _render(fmt, args, _UPPER, True)


def kformat(fmt: str, *args) -> str:
    """Format as the kernel console does: lower-case hex, no %c."""
    if fmt is None:
        raise KernelPanic("null fmt")
    return _render(fmt, args, _LOWER, False)