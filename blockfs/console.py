"""Console: a text-mode screen, a serial echo and a line-edited input buffer."""

from __future__ import annotations

import io
import threading
from typing import Any, Callable, Iterable, TextIO

from .layout import FsPanic

BACKSPACE = 0x100
INPUT_BUF = 128
COLS = 80
ROWS = 25
_ATTR = 0x0700


def _ctrl(ch: str) -> int:
    return ord(ch) - ord("@")


def _code(c: int | str) -> int:
    return ord(c) if isinstance(c, str) else c


class CgaScreen:
    """An 80x25 character screen with a cursor that scrolls at row 24."""

    def __init__(self) -> None:
        self.cells = [0] * (COLS * ROWS)
        self.pos = 0

    def putc(self, c: int | str) -> None:
        c = _code(c)
        pos = self.pos
        if c == ord("\n"):
            pos += COLS - pos % COLS
        elif c == BACKSPACE:
            if pos > 0:
                pos -= 1
        else:
            self.cells[pos] = (c & 0xFF) | _ATTR
            pos += 1

        if pos < 0 or pos > ROWS * COLS:
            raise FsPanic("pos under/overflow")

        if pos // COLS >= 24:
            self.cells[0:23 * COLS] = self.cells[COLS:24 * COLS]
            pos -= COLS
            self.cells[pos:24 * COLS] = [0] * (24 * COLS - pos)

        self.pos = pos
        self.cells[pos] = ord(" ") | _ATTR

    def text(self) -> str:
        """The visible text, trailing blanks removed."""
        rows = (
            "".join(chr(cell & 0xFF) if cell & 0xFF else " "
                    for cell in self.cells[start:start + COLS]).rstrip()
            for start in range(0, len(self.cells), COLS)
        )
        return "\n".join(rows).rstrip("\n")


def _kformat(fmt: str, args: tuple[Any, ...]) -> str:
    out: list[str] = []
    values = iter(args)
    chars = iter(fmt)
    for c in chars:
        if c != "%":
            out.append(c)
            continue
        c = next(chars, "")
        if not c:
            break
        if c == "d":
            v = next(values) & 0xFFFFFFFF
            out.append(str(v - (1 << 32) if v & 0x80000000 else v))
        elif c in "xp":
            out.append(f"{next(values) & 0xFFFFFFFF:x}")
        elif c == "s":
            s = next(values)
            out.append("(null)" if s is None else str(s))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
    return "".join(out)


class Console:
    """Output goes to the screen and a serial stream; input is edited a line at a time."""

    def __init__(self, serial: TextIO | None = None, screen: CgaScreen | None = None,
                 procdump: Callable[[], None] | None = None) -> None:
        self.serial = serial if serial is not None else io.StringIO()
        self.screen = screen if screen is not None else CgaScreen()
        self.procdump = procdump
        self._buf = bytearray(INPUT_BUF)
        self.r = 0  # read index
        self.w = 0  # write index
        self.e = 0  # edit index
        self._cond = threading.Condition(threading.RLock())

    def putc(self, c: int | str) -> None:
        c = _code(c)
        if c == BACKSPACE:
            self.serial.write("\b \b")
        else:
            self.serial.write(chr(c))
        self.screen.putc(c)

    def interrupt(self, chars: Iterable[int | str]) -> None:
        """Handle typed characters: editing keys, echo, and line completion."""
        doprocdump = False
        with self._cond:
            for c in map(_code, chars):
                if c == _ctrl("P"):
                    doprocdump = True
                elif c == _ctrl("U"):
                    while self.e != self.w and self._buf[(self.e - 1) % INPUT_BUF] != ord("\n"):
                        self.e -= 1
                        self.putc(BACKSPACE)
                elif c in (_ctrl("H"), 0x7F):
                    if self.e != self.w:
                        self.e -= 1
                        self.putc(BACKSPACE)
                elif c != 0 and self.e - self.r < INPUT_BUF:
                    c = ord("\n") if c == ord("\r") else c
                    self._buf[self.e % INPUT_BUF] = c & 0xFF
                    self.e += 1
                    self.putc(c)
                    if c in (ord("\n"), _ctrl("D")) or self.e == self.r + INPUT_BUF:
                        self.w = self.e
                        self._cond.notify_all()
        if doprocdump and self.procdump is not None:
            self.procdump()

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes, stopping after a newline; ^D marks end of input."""
        out = bytearray()
        with self._cond:
            while len(out) < n:
                while self.r == self.w:
                    self._cond.wait()
                c = self._buf[self.r % INPUT_BUF]
                self.r += 1
                if c == _ctrl("D"):
                    if out:
                        # Keep ^D so the next read returns nothing.
                        self.r -= 1
                    break
                out.append(c)
                if c == ord("\n"):
                    break
        return bytes(out)

    def write(self, data: bytes) -> int:
        with self._cond:
            for byte in bytes(data):
                self.putc(byte)
        return len(data)

    def cprintf(self, fmt: str, *args: Any) -> None:
        """Print with %d, %x, %p, %s and %% conversions."""
        if fmt is None:
            raise FsPanic("null fmt")
        with self._cond:
            for ch in _kformat(fmt, args):
                self.putc(ch)