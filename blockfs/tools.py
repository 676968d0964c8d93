"""ls, cat and echo working on a file-system image."""

from __future__ import annotations

import errno
import shutil
import sys
from contextlib import contextmanager
from typing import Iterable, Iterator

from .disk import BufferCache, MemoryDisk
from .fs import FileSystem, Inode, Stat
from .layout import DIRENT_SIZE, DIRSIZ, DirEntry, InodeType

_PATHBUF = 512
_CHUNK = 512


def _not_found(path: str) -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, "cannot open", path)


@contextmanager
def _opened(fs: FileSystem, path: str) -> Iterator[Inode]:
    """Hold a reference to the inode at ``path`` for the duration of the block."""
    with fs.log.transaction():
        ip = fs.namei(path)
    if ip is None:
        raise _not_found(path)
    try:
        yield ip
    finally:
        with fs.log.transaction():
            fs.iput(ip)


def _stat(fs: FileSystem, path: str) -> Stat | None:
    try:
        with _opened(fs, path) as ip, ip:
            return ip.stat()
    except FileNotFoundError:
        return None


def fmtname(path: str) -> str:
    """The last path element, blank-padded to DIRSIZ characters."""
    name = path.rsplit("/", 1)[-1]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def _line(path: str, st: Stat) -> str:
    return f"{fmtname(path)} {st.type} {st.ino} {st.size}"


def ls(fs: FileSystem, path: str) -> list[str]:
    """List ``path``: one line per file, or one per entry of a directory.

    Raises FileNotFoundError if ``path`` does not exist and ValueError if
    a directory path is too long to extend with an entry name.
    """
    lines: list[str] = []
    with _opened(fs, path) as ip:
        with ip:
            st = ip.stat()
        if st.type == InodeType.FILE:
            lines.append(_line(path, st))
        elif st.type == InodeType.DIR:
            if len(path) + 1 + DIRSIZ + 1 > _PATHBUF:
                raise ValueError("ls: path too long")
            off = 0
            while True:
                with ip:
                    raw = ip.read(off, DIRENT_SIZE) if off < ip.size else b""
                if len(raw) != DIRENT_SIZE:
                    break
                off += DIRENT_SIZE
                de = DirEntry.unpack(raw)
                if de.inum == 0:
                    continue
                full = f"{path}/{de.name}"
                entry = _stat(fs, full)
                if entry is None:
                    lines.append(f"ls: cannot stat {full}")
                else:
                    lines.append(_line(full, entry))
    return lines


def cat(fs: FileSystem, paths: Iterable[str]) -> Iterator[bytes]:
    """Yield the contents of each path in turn, a block at a time.

    Raises FileNotFoundError on reaching a path that does not exist.
    """
    for path in paths:
        with _opened(fs, path) as ip:
            off = 0
            while True:
                with ip:
                    data = ip.read(off, _CHUNK)
                if not data:
                    break
                off += len(data)
                yield data


def echo(args: Iterable[str]) -> str:
    """The arguments separated by blanks and ended by a newline."""
    words = list(args)
    return " ".join(words) + "\n" if words else ""


def _load(image_path: str) -> FileSystem:
    with open(image_path, "rb") as handle:
        image = handle.read()
    return FileSystem(BufferCache(MemoryDisk(image)))


_USAGE = "usage: tools echo args... | ls image [path ...] | cat image [path ...]\n"


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if not args:
        sys.stderr.write(_USAGE)
        return 1
    command, rest = args[0], args[1:]
    if command == "echo":
        sys.stdout.write(echo(rest))
        return 0
    if command not in ("ls", "cat") or not rest:
        sys.stderr.write(_USAGE)
        return 1
    try:
        fs = _load(rest[0])
    except OSError as exc:
        sys.stderr.write(f"{rest[0]}: {exc.strerror}\n")
        return 1
    paths = rest[1:]

    if command == "ls":
        for path in paths or ["."]:
            try:
                lines = ls(fs, path)
            except FileNotFoundError:
                sys.stderr.write(f"ls: cannot open {path}\n")
                continue
            except ValueError:
                sys.stdout.write("ls: path too long\n")
                continue
            for line in lines:
                sys.stdout.write(line + "\n")
        return 0

    sys.stdout.flush()
    out = sys.stdout.buffer
    if not paths:
        shutil.copyfileobj(sys.stdin.buffer, out)
        out.flush()
        return 0
    try:
        for chunk in cat(fs, paths):
            out.write(chunk)
    except FileNotFoundError as exc:
        out.flush()
        sys.stdout.write(f"cat: cannot open {exc.filename}\n")
        return 1
    out.flush()
    return 0