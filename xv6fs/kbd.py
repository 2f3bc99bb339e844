"""PC keyboard scan code decoding."""

from __future__ import annotations

from enum import IntFlag
from typing import Iterable

NO = 0


class Modifier(IntFlag):
    SHIFT = 1 << 0
    CTL = 1 << 1
    ALT = 1 << 2
    CAPSLOCK = 1 << 3
    NUMLOCK = 1 << 4
    SCROLLLOCK = 1 << 5
    E0ESC = 1 << 6


# Special key codes.
KEY_HOME = 0xE0
KEY_END = 0xE1
KEY_UP = 0xE2
KEY_DN = 0xE3
KEY_LF = 0xE4
KEY_RT = 0xE5
KEY_PGUP = 0xE6
KEY_PGDN = 0xE7
KEY_INS = 0xE8
KEY_DEL = 0xE9


def _ctl(ch: str) -> int:
    return (ord(ch) - ord("@")) & 0xFF


_SHIFTCODE = {
    0x1D: Modifier.CTL,
    0x2A: Modifier.SHIFT,
    0x36: Modifier.SHIFT,
    0x38: Modifier.ALT,
    0x9D: Modifier.CTL,
    0xB8: Modifier.ALT,
}

_TOGGLECODE = {
    0x3A: Modifier.CAPSLOCK,
    0x45: Modifier.NUMLOCK,
    0x46: Modifier.SCROLLLOCK,
}

_NAVIGATION = {
    0xC8: KEY_UP,
    0xD0: KEY_DN,
    0xC9: KEY_PGUP,
    0xD1: KEY_PGDN,
    0xCB: KEY_LF,
    0xCD: KEY_RT,
    0x97: KEY_HOME,
    0xCF: KEY_END,
    0xD2: KEY_INS,
    0xD3: KEY_DEL,
}

_KEYPAD = (
    "\x00 \x00\x00\x00\x00\x00\x00"
    "\x00\x00\x00\x00\x00\x00\x007"
    "89-456+1"
    "230.\x00\x00\x00\x00"
)

_NORMAL_HEAD = (
    "\x00\x1b123456"
    "7890-=\b\t"
    "qwertyui"
    "op[]\n\x00as"
    "dfghjkl;"
    "'`\x00\\zxcv"
    "bnm,./\x00*" + _KEYPAD
)

_SHIFT_HEAD = (
    "\x00\x1b!@#$%^"
    "&*()_+\b\t"
    "QWERTYUI"
    "OP{}\n\x00AS"
    "DFGHJKL:"
    '"~\x00|ZXCV'
    "BNM<>?\x00*" + _KEYPAD
)

_CTL_HEAD = [
    *[NO] * 16,
    *(_ctl(c) for c in "QWERTYUI"),
    _ctl("O"), _ctl("P"), NO, NO, ord("\r"), NO, _ctl("A"), _ctl("S"),
    *(_ctl(c) for c in "DFGHJKL"), NO,
    NO, NO, NO, _ctl("\\"), *(_ctl(c) for c in "ZXCV"),
    _ctl("B"), _ctl("N"), _ctl("M"), NO, NO, _ctl("/"), NO, NO,
]


def _table(head: list[int], specials: dict[int, int]) -> tuple[int, ...]:
    table = [NO] * 256
    table[: len(head)] = head
    for code, value in specials.items():
        table[code] = value
    return tuple(table)


_NORMALMAP = _table(
    [ord(c) for c in _NORMAL_HEAD], {0x9C: ord("\n"), 0xB5: ord("/"), **_NAVIGATION}
)
_SHIFTMAP = _table(
    [ord(c) for c in _SHIFT_HEAD], {0x9C: ord("\n"), 0xB5: ord("/"), **_NAVIGATION}
)
_CTLMAP = _table(_CTL_HEAD, {0x9C: ord("\r"), 0xB5: _ctl("/"), **_NAVIGATION})

_CHARCODE = (_NORMALMAP, _SHIFTMAP, _CTLMAP, _CTLMAP)


class Keyboard:
    """Tracks modifier state and turns scan codes into character codes."""

    def __init__(self):
        self._shift = 0

    @property
    def modifiers(self) -> Modifier:
        return Modifier(self._shift)

    def feed(self, data: int) -> int:
        """Process one scan code; return its character code, or 0 for none."""
        data &= 0xFF
        if data == 0xE0:
            self._shift |= Modifier.E0ESC
            return 0
        if data & 0x80:
            # Key released.
            if not self._shift & Modifier.E0ESC:
                data &= 0x7F
            self._shift &= ~(int(_SHIFTCODE.get(data, 0)) | Modifier.E0ESC)
            return 0
        if self._shift & Modifier.E0ESC:
            # The previous code was an E0 escape.
            data |= 0x80
            self._shift &= ~Modifier.E0ESC

        self._shift |= int(_SHIFTCODE.get(data, 0))
        self._shift ^= int(_TOGGLECODE.get(data, 0))
        c = _CHARCODE[self._shift & (Modifier.CTL | Modifier.SHIFT)][data]
        if self._shift & Modifier.CAPSLOCK:
            if ord("a") <= c <= ord("z"):
                c += ord("A") - ord("a")
            elif ord("A") <= c <= ord("Z"):
                c += ord("a") - ord("A")
        return c

    def decode(self, scancodes: Iterable[int]) -> list[int]:
        """Character codes produced by a sequence of scan codes."""
        return [c for c in map(self.feed, scancodes) if c]