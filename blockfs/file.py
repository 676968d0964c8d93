"""Open files: reference-counted handles onto pipes and inodes."""

from __future__ import annotations

import errno
from dataclasses import dataclass
from enum import Enum

from .fs import Inode, Stat
from .layout import BSIZE, FsPanic
from .pipe import Pipe

NFILE = 100


class FileType(Enum):
    NONE = 0
    PIPE = 1
    INODE = 2


@dataclass(eq=False)
class File:
    """An open file; shared by every descriptor that refers to it."""

    type: FileType = FileType.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Pipe | None = None
    ip: Inode | None = None
    off: int = 0

    def _reset(self) -> None:
        self.type = FileType.NONE
        self.ref = 0
        self.readable = self.writable = False
        self.pipe = None
        self.ip = None
        self.off = 0

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes from the current offset."""
        if not self.readable:
            raise PermissionError("file not open for reading")
        if self.type is FileType.PIPE and self.pipe is not None:
            return self.pipe.read(n)
        if self.type is FileType.INODE and self.ip is not None:
            with self.ip:
                data = self.ip.read(self.off, n)
                self.off += len(data)
            return data
        raise FsPanic("fileread")

    def write(self, data: bytes) -> int:
        """Write ``data`` at the current offset; return the number of bytes written."""
        if not self.writable:
            raise PermissionError("file not open for writing")
        if self.type is FileType.PIPE and self.pipe is not None:
            return self.pipe.write(data)
        if self.type is FileType.INODE and self.ip is not None:
            ip = self.ip
            log = ip.fs.log
            # Stay inside one transaction's block budget: inode, indirect,
            # bitmap, and two blocks of slop for unaligned writes.
            chunk_size = ((log.maxopblocks - 1 - 1 - 2) // 2) * BSIZE
            payload = bytes(data)
            written = 0
            while written < len(payload):
                chunk = payload[written:written + chunk_size]
                with log.transaction(), ip:
                    r = ip.write(chunk, self.off)
                    self.off += r
                if r != len(chunk):
                    raise FsPanic("short filewrite")
                written += r
            return len(payload)
        raise FsPanic("filewrite")

    def stat(self) -> Stat:
        """Metadata of the underlying inode."""
        if self.type is not FileType.INODE or self.ip is None:
            raise ValueError("not an inode file")
        with self.ip:
            return self.ip.stat()


class FileTable:
    """A fixed pool of open-file structures."""

    def __init__(self, nfile: int = NFILE) -> None:
        self._files = [File() for _ in range(nfile)]

    def alloc(self) -> File:
        """Return a free file structure with one reference."""
        f = next((f for f in self._files if f.ref == 0), None)
        if f is None:
            raise OSError(errno.ENFILE, "file table full")
        f.ref = 1
        return f

    def dup(self, f: File) -> File:
        if f.ref < 1:
            raise FsPanic("filedup")
        f.ref += 1
        return f

    def close(self, f: File) -> None:
        """Drop a reference; release the pipe end or inode with the last one."""
        if f.ref < 1:
            raise FsPanic("fileclose")
        f.ref -= 1
        if f.ref > 0:
            return
        ftype, pipe, ip, writable = f.type, f.pipe, f.ip, f.writable
        f._reset()
        if ftype is FileType.PIPE and pipe is not None:
            pipe.close(writable)
        elif ftype is FileType.INODE and ip is not None:
            with ip.fs.log.transaction():
                ip.fs.iput(ip)

    def open_pipe(self) -> tuple[File, File]:
        """Create a pipe and return its (read end, write end)."""
        reader = self.alloc()
        try:
            writer = self.alloc()
        except OSError:
            self.close(reader)
            raise
        pipe = Pipe()
        reader.type = writer.type = FileType.PIPE
        reader.pipe = writer.pipe = pipe
        reader.readable, reader.writable = True, False
        writer.readable, writer.writable = False, True
        return reader, writer