import io

import pytest

from blockfs.console import BACKSPACE, CgaScreen, Console
from blockfs.layout import FsPanic


def test_screen_shows_text():
    screen = CgaScreen()
    for ch in "hi":
        screen.putc(ch)
    assert screen.text() == "hi"


def test_screen_newline_moves_to_next_row():
    screen = CgaScreen()
    for ch in "a\nb":
        screen.putc(ch)
    assert screen.text() == "a\nb"


def test_screen_backspace_erases():
    screen = CgaScreen()
    screen.putc("a")
    screen.putc("b")
    screen.putc(BACKSPACE)
    assert screen.text() == "a"


def test_screen_scrolls():
    screen = CgaScreen()
    for i in range(30):
        for ch in f"L{i}\n":
            screen.putc(ch)
    lines = screen.text().splitlines()
    assert lines[-1] == "L29"
    assert "L0" not in lines
    assert len(lines) < 25


def test_line_input_and_echo():
    serial = io.StringIO()
    con = Console(serial=serial)
    con.interrupt("abc\n")
    assert con.read(10) == b"abc\n"
    assert serial.getvalue() == "abc\n"
    assert con.screen.text() == "abc"


def test_carriage_return_becomes_newline():
    con = Console()
    con.interrupt("ab\r")
    assert con.read(10) == b"ab\n"


def test_backspace_edits_line():
    serial = io.StringIO()
    con = Console(serial=serial)
    con.interrupt("ab\x7fc\n")
    assert con.read(10) == b"ac\n"
    assert "\b \b" in serial.getvalue()


def test_kill_line():
    con = Console()
    con.interrupt("abc\x15d\n")
    assert con.read(10) == b"d\n"


def test_eof_after_partial_line():
    con = Console()
    con.interrupt("ab\x04")
    assert con.read(10) == b"ab"
    assert con.read(10) == b""


def test_read_stops_at_newline():
    con = Console()
    con.interrupt("ab\ncd\n")
    assert con.read(10) == b"ab\n"
    assert con.read(10) == b"cd\n"


def test_short_reads():
    con = Console()
    con.interrupt("abcd\n")
    assert con.read(2) == b"ab"
    assert con.read(10) == b"cd\n"


def test_procdump_called():
    calls = []
    con = Console(procdump=lambda: calls.append(1))
    con.interrupt("\x10")
    assert calls == [1]


def test_cprintf_conversions():
    serial = io.StringIO()
    con = Console(serial=serial)
    con.cprintf("%d %x %s %%", -5, 255, "hi")
    assert serial.getvalue() == "-5 ff hi %"


def test_cprintf_null_and_unknown():
    serial = io.StringIO()
    con = Console(serial=serial)
    con.cprintf("%s %q", None)
    assert serial.getvalue() == "(null) %q"


def test_write_returns_length():
    con = Console()
    assert con.write(b"xy") == 2
    assert con.screen.text() == "xy"