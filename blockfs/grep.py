"""A small grep supporting only the ^ . * $ operators."""

from __future__ import annotations

import sys
from typing import Iterable, Iterator, TextIO


def match(pattern: str, text: str) -> bool:
    """Search for ``pattern`` anywhere in ``text``."""
    if pattern.startswith("^"):
        return _match_here(pattern, 1, text, 0)
    return any(_match_here(pattern, 0, text, j) for j in range(len(text) + 1))


def _match_here(re: str, i: int, text: str, j: int) -> bool:
    while True:
        if i == len(re):
            return True
        if i + 1 < len(re) and re[i + 1] == "*":
            return _match_star(re[i], re, i + 2, text, j)
        if re[i] == "$" and i + 1 == len(re):
            return j == len(text)
        if j < len(text) and (re[i] == "." or re[i] == text[j]):
            i, j = i + 1, j + 1
            continue
        return False


def _match_star(c: str, re: str, i: int, text: str, j: int) -> bool:
    while True:
        if _match_here(re, i, text, j):
            return True
        if j < len(text) and (text[j] == c or c == "."):
            j += 1
        else:
            return False


def grep(pattern: str, stream: Iterable[str]) -> Iterator[str]:
    """Yield the newline-terminated lines of ``stream`` that match."""
    for line in stream:
        if line.endswith("\n") and match(pattern, line[:-1]):
            yield line


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if not args:
        sys.stderr.write("usage: grep pattern [file ...]\n")
        return 1
    pattern, paths = args[0], args[1:]
    if not paths:
        sys.stdout.writelines(grep(pattern, sys.stdin))
        return 0
    for path in paths:
        try:
            handle: TextIO = open(path, newline="")
        except OSError:
            sys.stdout.write(f"grep: cannot open {path}\n")
            return 1
        with handle:
            sys.stdout.writelines(grep(pattern, handle))
    return 0