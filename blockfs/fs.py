"""Inodes, directories and path names on top of the buffer cache and log."""

from __future__ import annotations

import struct
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Protocol

from .disk import Buffer, BufferCache
from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    DIRENT_SIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DirEntry,
    DiskInode,
    FsPanic,
    InodeType,
    SuperBlock,
    bitmap_block,
    inode_block,
)
from .log import Log

ROOTDEV = 1
NDEV = 10
NINODE = 50

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class Device(Protocol):
    """Read and write handlers for a device inode."""

    def read(self, ip: "Inode", n: int) -> bytes: ...

    def write(self, ip: "Inode", data: bytes) -> int: ...


@dataclass
class Stat:
    """Metadata about an inode."""

    dev: int
    ino: int
    type: int
    nlink: int
    size: int


class Inode:
    """In-memory copy of an inode, shared by everyone who refers to it."""

    def __init__(self, fs: "FileSystem") -> None:
        self.fs = fs
        self.dev = 0
        self.inum = 0
        self.ref = 0
        self.valid = False
        self.type = 0
        self.major = 0
        self.minor = 0
        self.nlink = 0
        self.size = 0
        self.addrs = [0] * (NDIRECT + 1)
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"Inode(dev={self.dev}, inum={self.inum}, ref={self.ref}, type={self.type})"

    def __enter__(self) -> "Inode":
        self.lock()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.unlock()

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    def _disk_offset(self) -> int:
        return (self.inum % IPB) * DINODE_SIZE

    def lock(self) -> None:
        """Lock the inode, reading it from disk if necessary."""
        if self.ref < 1:
            raise FsPanic("ilock")
        self._lock.acquire()
        if not self.valid:
            with self.fs._block(inode_block(self.inum, self.fs.sb)) as bp:
                off = self._disk_offset()
                din = DiskInode.unpack(bytes(bp.data[off:off + DINODE_SIZE]))
            self.type = din.type
            self.major = din.major
            self.minor = din.minor
            self.nlink = din.nlink
            self.size = din.size
            self.addrs = list(din.addrs)
            self.valid = True
            if self.type == 0:
                self._lock.release()
                raise FsPanic("ilock: no type")

    def unlock(self) -> None:
        if not self._lock.locked() or self.ref < 1:
            raise FsPanic("iunlock")
        self._lock.release()

    def update(self) -> None:
        """Copy the in-memory inode to disk; must be inside a transaction."""
        din = DiskInode(self.type, self.major, self.minor, self.nlink, self.size,
                        list(self.addrs))
        with self.fs._block(inode_block(self.inum, self.fs.sb)) as bp:
            off = self._disk_offset()
            bp.data[off:off + DINODE_SIZE] = din.pack()
            self.fs.log.log_write(bp)

    def truncate(self) -> None:
        """Free all content blocks and set the size to zero."""
        fs = self.fs
        for i, addr in enumerate(self.addrs[:NDIRECT]):
            if addr:
                fs.bfree(addr)
                self.addrs[i] = 0
        indirect = self.addrs[NDIRECT]
        if indirect:
            with fs._block(indirect) as bp:
                entries = _INDIRECT.unpack_from(bp.data)
            for addr in entries:
                if addr:
                    fs.bfree(addr)
            fs.bfree(indirect)
            self.addrs[NDIRECT] = 0
        self.size = 0
        self.update()

    def stat(self) -> Stat:
        return Stat(self.dev, self.inum, self.type, self.nlink, self.size)

    def _bmap(self, bn: int) -> int:
        """Disk block holding block ``bn`` of the content, allocated if missing."""
        fs = self.fs
        if bn < NDIRECT:
            if self.addrs[bn] == 0:
                self.addrs[bn] = fs.balloc()
            return self.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if self.addrs[NDIRECT] == 0:
                self.addrs[NDIRECT] = fs.balloc()
            with fs._block(self.addrs[NDIRECT]) as bp:
                (addr,) = struct.unpack_from("<I", bp.data, bn * 4)
                if addr == 0:
                    addr = fs.balloc()
                    struct.pack_into("<I", bp.data, bn * 4, addr)
                    fs.log.log_write(bp)
            return addr
        raise FsPanic("bmap: out of range")

    def _device(self, op: str) -> Device:
        dev = self.fs.devsw.get(self.major) if 0 <= self.major < NDEV else None
        if dev is None or not hasattr(dev, op):
            raise ValueError(f"no {op} handler for device {self.major}")
        return dev

    def read(self, off: int, n: int) -> bytes:
        """Read up to ``n`` bytes at ``off``; the caller holds the lock."""
        if self.type == InodeType.DEV:
            return self._device("read").read(self, n)
        if off < 0 or n < 0 or off > self.size:
            raise ValueError("read offset out of range")
        n = min(n, self.size - off)
        out = bytearray()
        while len(out) < n:
            with self.fs._block(self._bmap(off // BSIZE)) as bp:
                start = off % BSIZE
                m = min(n - len(out), BSIZE - start)
                out += bp.data[start:start + m]
            off += m
        return bytes(out)

    def write(self, data: bytes, off: int) -> int:
        """Write ``data`` at ``off``; the caller holds the lock and a transaction."""
        if self.type == InodeType.DEV:
            return self._device("write").write(self, bytes(data))
        n = len(data)
        if off < 0 or off > self.size:
            raise ValueError("write offset out of range")
        if off + n > MAXFILE * BSIZE:
            raise ValueError("write past maximum file size")
        tot = 0
        while tot < n:
            with self.fs._block(self._bmap(off // BSIZE)) as bp:
                start = off % BSIZE
                m = min(n - tot, BSIZE - start)
                bp.data[start:start + m] = data[tot:tot + m]
                self.fs.log.log_write(bp)
            tot += m
            off += m
        if n > 0 and off > self.size:
            self.size = off
            self.update()
        return n


def skipelem(path: str) -> tuple[str, str] | None:
    """Split off the first path element: ``(name, rest)``, or None if there is none.

    ``rest`` has no leading slashes; names are cut to DIRSIZ characters.
    """
    stripped = path.lstrip("/")
    if not stripped:
        return None
    name, _, rest = stripped.partition("/")
    return name[:DIRSIZ], rest.lstrip("/")


def _same_name(a: str, b: str) -> bool:
    return a.encode()[:DIRSIZ] == b.encode()[:DIRSIZ]


class FileSystem:
    """A file system on one device: block and inode allocation, directories, paths."""

    def __init__(self, cache: BufferCache, dev: int = ROOTDEV, ninode: int = NINODE,
                 logsize: int = 30, maxopblocks: int = 10) -> None:
        self.cache = cache
        self.dev = dev
        self.devsw: dict[int, Device] = {}
        self._icache_lock = threading.Lock()
        self._inodes = [Inode(self) for _ in range(ninode)]
        with self._block(1) as bp:
            self.sb = SuperBlock.unpack(bytes(bp.data))
        self.log = Log(cache, dev, self.sb.logstart, self.sb.nlog, logsize, maxopblocks)

    @contextmanager
    def _block(self, blockno: int) -> Iterator[Buffer]:
        buf = self.cache.read(self.dev, blockno)
        try:
            yield buf
        finally:
            self.cache.release(buf)

    def _bzero(self, bno: int) -> None:
        with self._block(bno) as bp:
            bp.data[:] = bytes(BSIZE)
            self.log.log_write(bp)

    def balloc(self) -> int:
        """Allocate a zeroed disk block and return its number."""
        size = self.sb.size
        for b in range(0, size, BPB):
            found = None
            with self._block(bitmap_block(b, self.sb)) as bp:
                for bi in range(min(BPB, size - b)):
                    m = 1 << (bi % 8)
                    if not bp.data[bi // 8] & m:
                        bp.data[bi // 8] |= m
                        self.log.log_write(bp)
                        found = b + bi
                        break
            if found is not None:
                self._bzero(found)
                return found
        raise FsPanic("balloc: out of blocks")

    def bfree(self, b: int) -> None:
        """Mark disk block ``b`` free."""
        with self._block(bitmap_block(b, self.sb)) as bp:
            bi = b % BPB
            m = 1 << (bi % 8)
            if not bp.data[bi // 8] & m:
                raise FsPanic("freeing free block")
            bp.data[bi // 8] &= ~m & 0xFF
            self.log.log_write(bp)

    def ialloc(self, itype: int) -> Inode:
        """Allocate an inode of type ``itype``; returned unlocked and referenced."""
        for inum in range(1, self.sb.ninodes):
            with self._block(inode_block(inum, self.sb)) as bp:
                off = (inum % IPB) * DINODE_SIZE
                if DiskInode.unpack(bytes(bp.data[off:off + DINODE_SIZE])).type != 0:
                    continue
                bp.data[off:off + DINODE_SIZE] = DiskInode(type=int(itype)).pack()
                self.log.log_write(bp)
            return self.iget(inum)
        raise FsPanic("ialloc: no inodes")

    def iget(self, inum: int) -> Inode:
        """Return the cached inode for ``inum``, neither locked nor read."""
        with self._icache_lock:
            empty = None
            for ip in self._inodes:
                if ip.ref > 0 and ip.dev == self.dev and ip.inum == inum:
                    ip.ref += 1
                    return ip
                if empty is None and ip.ref == 0:
                    empty = ip
            if empty is None:
                raise FsPanic("iget: no inodes")
            empty.dev = self.dev
            empty.inum = inum
            empty.ref = 1
            empty.valid = False
            return empty

    def idup(self, ip: Inode) -> Inode:
        with self._icache_lock:
            ip.ref += 1
        return ip

    def iput(self, ip: Inode) -> None:
        """Drop a reference; free the inode on disk if it was the last and unlinked."""
        ip._lock.acquire()
        try:
            if ip.valid and ip.nlink == 0:
                with self._icache_lock:
                    r = ip.ref
                if r == 1:
                    ip.truncate()
                    ip.type = 0
                    ip.update()
                    ip.valid = False
        finally:
            ip._lock.release()
        with self._icache_lock:
            ip.ref -= 1

    def _iunlockput(self, ip: Inode) -> None:
        ip.unlock()
        self.iput(ip)

    def dirlookup(self, dp: Inode, name: str) -> tuple[Inode, int] | None:
        """Find ``name`` in directory ``dp``: ``(inode, byte offset)`` or None."""
        if dp.type != InodeType.DIR:
            raise FsPanic("dirlookup not DIR")
        for off in range(0, dp.size, DIRENT_SIZE):
            raw = dp.read(off, DIRENT_SIZE)
            if len(raw) != DIRENT_SIZE:
                raise FsPanic("dirlookup read")
            de = DirEntry.unpack(raw)
            if de.inum != 0 and _same_name(name, de.name):
                return self.iget(de.inum), off
        return None

    def dirlink(self, dp: Inode, name: str, inum: int) -> None:
        """Add the entry ``(name, inum)`` to directory ``dp``."""
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FileExistsError(name)
        off = 0
        while off < dp.size:
            raw = dp.read(off, DIRENT_SIZE)
            if len(raw) != DIRENT_SIZE:
                raise FsPanic("dirlink read")
            if DirEntry.unpack(raw).inum == 0:
                break
            off += DIRENT_SIZE
        if dp.write(DirEntry(inum, name).pack(), off) != DIRENT_SIZE:
            raise FsPanic("dirlink")

    def _namex(self, path: str, parent: bool,
               cwd: Inode | None) -> tuple[Inode, str] | None:
        if path.startswith("/") or cwd is None:
            ip = self.iget(ROOTINO)
        else:
            ip = self.idup(cwd)
        name = ""
        rest = path
        while (elem := skipelem(rest)) is not None:
            name, rest = elem
            ip.lock()
            if ip.type != InodeType.DIR:
                self._iunlockput(ip)
                return None
            if parent and rest == "":
                ip.unlock()
                return ip, name
            found = self.dirlookup(ip, name)
            self._iunlockput(ip)
            if found is None:
                return None
            ip = found[0]
        if parent:
            self.iput(ip)
            return None
        return ip, name

    def namei(self, path: str, cwd: Inode | None = None) -> Inode | None:
        """Inode for ``path``; relative paths start at ``cwd`` (the root if None)."""
        found = self._namex(path, False, cwd)
        return None if found is None else found[0]

    def nameiparent(self, path: str, cwd: Inode | None = None) -> tuple[Inode, str] | None:
        """Inode of the parent directory of ``path`` and the final element."""
        return self._namex(path, True, cwd)