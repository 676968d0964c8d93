"""A minimal printf understanding %d, %x, %p, %s, %c and %%."""

from __future__ import annotations

from typing import Any, TextIO


def _signed32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def format_string(fmt: str, *args: Any) -> str:
    """Format ``fmt`` with ``args``; each conversion consumes one argument."""
    out: list[str] = []
    values = iter(args)
    pending = False
    for c in fmt:
        if not pending:
            if c == "%":
                pending = True
            else:
                out.append(c)
            continue
        pending = False
        if c == "d":
            out.append(str(_signed32(next(values))))
        elif c in "xp":
            out.append(f"{next(values) & 0xFFFFFFFF:X}")
        elif c == "s":
            s = next(values)
            out.append("(null)" if s is None else str(s))
        elif c == "c":
            v = next(values)
            out.append(v[:1] if isinstance(v, str) else chr(v & 0xFF))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
    return "".join(out)


def fprintf(stream: TextIO, fmt: str, *args: Any) -> None:
    """Write the formatted text to ``stream``."""
    stream.write(format_string(fmt, *args))