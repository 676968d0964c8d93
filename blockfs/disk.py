"""An in-memory disk and the buffer cache that sits in front of it."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from .layout import BSIZE, FsPanic


class MemoryDisk:
    """A disk whose blocks live in memory; serves device 1."""

    dev = 1

    def __init__(self, image: int | bytes | bytearray = 0):
        if isinstance(image, int):
            self.image = bytearray(image * BSIZE)
        else:
            self.image = bytearray(image)
        self.nblocks = len(self.image) // BSIZE

    def _check(self, blockno: int) -> None:
        if not 0 <= blockno < self.nblocks:
            raise FsPanic("iderw: block out of range")

    def read_block(self, blockno: int) -> bytes:
        self._check(blockno)
        return bytes(self.image[blockno * BSIZE:(blockno + 1) * BSIZE])

    def write_block(self, blockno: int, data: bytes) -> None:
        self._check(blockno)
        if len(data) != BSIZE:
            raise ValueError(f"block must be {BSIZE} bytes")
        self.image[blockno * BSIZE:(blockno + 1) * BSIZE] = data

    def sync(self, buf: "Buffer") -> None:
        """Write a dirty buffer out, or read an invalid one in."""
        if not buf.lock.locked():
            raise FsPanic("iderw: buf not locked")
        if buf.valid and not buf.dirty:
            raise FsPanic("iderw: nothing to do")
        if buf.dev != self.dev:
            raise FsPanic("iderw: request not for disk 1")
        if buf.dirty:
            self.write_block(buf.blockno, bytes(buf.data))
            buf.dirty = False
        else:
            buf.data[:] = self.read_block(buf.blockno)
        buf.valid = True


@dataclass(eq=False)
class Buffer:
    """A cached copy of one disk block."""

    dev: int | None = None
    blockno: int | None = None
    data: bytearray = field(default_factory=lambda: bytearray(BSIZE))
    valid: bool = False
    dirty: bool = False
    refcnt: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class BufferCache:
    """A fixed set of buffers kept in most-recently-used order."""

    def __init__(self, disk: MemoryDisk, nbuf: int = 30):
        self.disk = disk
        self._lock = threading.Lock()
        self._bufs = [Buffer() for _ in range(nbuf)]  # MRU first

    def _get(self, dev: int, blockno: int) -> Buffer:
        with self._lock:
            found = next(
                (b for b in self._bufs if b.dev == dev and b.blockno == blockno), None
            )
            if found is not None:
                found.refcnt += 1
            else:
                # Dirty buffers are pinned by the log even with refcnt 0.
                found = next(
                    (b for b in reversed(self._bufs) if b.refcnt == 0 and not b.dirty),
                    None,
                )
                if found is None:
                    raise FsPanic("bget: no buffers")
                found.dev, found.blockno = dev, blockno
                found.valid = found.dirty = False
                found.refcnt = 1
        found.lock.acquire()
        return found

    def read(self, dev: int, blockno: int) -> Buffer:
        """Return a locked buffer holding the block's contents."""
        buf = self._get(dev, blockno)
        if not buf.valid:
            self.disk.sync(buf)
        return buf

    def write(self, buf: Buffer) -> None:
        """Write a locked buffer's contents to disk."""
        if not buf.lock.locked():
            raise FsPanic("bwrite")
        buf.dirty = True
        self.disk.sync(buf)

    def release(self, buf: Buffer) -> None:
        """Unlock a buffer and make it most recently used once unreferenced."""
        if not buf.lock.locked():
            raise FsPanic("brelse")
        buf.lock.release()
        with self._lock:
            buf.refcnt -= 1
            if buf.refcnt == 0:
                self._bufs.remove(buf)
                self._bufs.insert(0, buf)