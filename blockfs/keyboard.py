"""Decoding of PC keyboard scan codes into characters."""

from __future__ import annotations

from typing import Iterable

SHIFT = 1 << 0
CTL = 1 << 1
ALT = 1 << 2
CAPSLOCK = 1 << 3
NUMLOCK = 1 << 4
SCROLLLOCK = 1 << 5
E0ESC = 1 << 6

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


def ctrl(ch: str) -> int:
    """Code produced by Control plus ``ch``."""
    return (ord(ch) - ord("@")) & 0xFF


def _table(prefix: str | list[int], extra: dict[int, int]) -> list[int]:
    codes = [ord(c) for c in prefix] if isinstance(prefix, str) else list(prefix)
    table = codes + [0] * (256 - len(codes))
    for code, value in extra.items():
        table[code] = value
    return table


_KEYPAD = "\0" * 13 + "789-456+1230."
_SPECIAL = {
    0xC8: KEY_UP, 0xD0: KEY_DN, 0xC9: KEY_PGUP, 0xD1: KEY_PGDN,
    0xCB: KEY_LF, 0xCD: KEY_RT, 0x97: KEY_HOME, 0xCF: KEY_END,
    0xD2: KEY_INS, 0xD3: KEY_DEL,
}

_SHIFTCODE = _table([], {0x1D: CTL, 0x2A: SHIFT, 0x36: SHIFT, 0x38: ALT,
                         0x9D: CTL, 0xB8: ALT})
_TOGGLECODE = _table([], {0x3A: CAPSLOCK, 0x45: NUMLOCK, 0x46: SCROLLLOCK})

_NORMAL = _table(
    "\0\x1b1234567890-=\b\tqwertyuiop[]\n\0asdfghjkl;'`\0\\zxcvbnm,./\0*\0 "
    + _KEYPAD,
    {0x9C: ord("\n"), 0xB5: ord("/"), **_SPECIAL},
)
_SHIFTED = _table(
    "\0\x1b!@#$%^&*()_+\b\tQWERTYUIOP{}\n\0ASDFGHJKL:\"~\0|ZXCVBNM<>?\0*\0 "
    + _KEYPAD,
    {0x9C: ord("\n"), 0xB5: ord("/"), **_SPECIAL},
)
_CONTROL = _table(
    [0] * 16
    + [ctrl(c) for c in "QWERTYUIOP"] + [0, 0, ord("\r"), 0, ctrl("A"), ctrl("S")]
    + [ctrl(c) for c in "DFGHJKL"] + [0, 0, 0, 0, ctrl("\\")]
    + [ctrl(c) for c in "ZXCVBNM"] + [0, 0, ctrl("/"), 0, 0],
    {0x9C: ord("\r"), 0xB5: ctrl("/"), **_SPECIAL},
)
_CHARCODE = (_NORMAL, _SHIFTED, _CONTROL, _CONTROL)


class Keyboard:
    """Tracks modifier state across scan codes."""

    def __init__(self) -> None:
        self.shift = 0

    def feed(self, scancode: int) -> int:
        """Process one scan code; return the character code, or 0 for none."""
        data = scancode & 0xFF
        if data == 0xE0:
            self.shift |= E0ESC
            return 0
        if data & 0x80:
            if not self.shift & E0ESC:
                data &= 0x7F
            self.shift &= ~(_SHIFTCODE[data] | E0ESC)
            return 0
        if self.shift & E0ESC:
            data |= 0x80
            self.shift &= ~E0ESC

        self.shift |= _SHIFTCODE[data]
        self.shift ^= _TOGGLECODE[data]
        c = _CHARCODE[self.shift & (CTL | SHIFT)][data]
        if self.shift & CAPSLOCK:
            if ord("a") <= c <= ord("z"):
                c -= 32
            elif ord("A") <= c <= ord("Z"):
                c += 32
        return c

    def decode(self, scancodes: Iterable[int]) -> str:
        """Decode a sequence of scan codes into the text they type."""
        return "".join(chr(c) for c in map(self.feed, scancodes) if c)