"""Build a file system image holding a root directory and a set of files."""

from __future__ import annotations

import os
import struct
import sys
from typing import Iterable

from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DirEntry,
    DiskInode,
    InodeType,
    SuperBlock,
    inode_block,
)

FSSIZE = 1000
NINODES = 200
LOGSIZE = 30

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")

# Layout: [ boot block | sb block | log | inode blocks | free bit map | data blocks ]


class ImageBuilder:
    """Lays out a fresh image and appends files to its root directory."""

    def __init__(self, fssize: int = FSSIZE, ninodes: int = NINODES,
                 nlog: int = LOGSIZE) -> None:
        self.fssize = fssize
        self.nbitmap = fssize // BPB + 1
        self.ninodeblocks = ninodes // IPB + 1
        self.nlog = nlog
        self.nmeta = 2 + nlog + self.ninodeblocks + self.nbitmap
        self.nblocks = fssize - self.nmeta
        if self.nblocks <= 0:
            raise ValueError("image too small for its metadata")
        self.sb = SuperBlock(
            size=fssize, nblocks=self.nblocks, ninodes=ninodes, nlog=nlog,
            logstart=2, inodestart=2 + nlog,
            bmapstart=2 + nlog + self.ninodeblocks,
        )
        self.image = bytearray(fssize * BSIZE)
        self.freeinode = 1
        self.freeblock = self.nmeta
        self._finished = False

        self._wsect(1, self.sb.pack().ljust(BSIZE, b"\0"))
        self.rootino = self.ialloc(InodeType.DIR)
        if self.rootino != ROOTINO:
            raise AssertionError("root inode must be the first allocated")
        for name in (".", ".."):
            self.iappend(self.rootino, DirEntry(self.rootino, name).pack())

    def _rsect(self, sec: int) -> bytes:
        return bytes(self.image[sec * BSIZE:(sec + 1) * BSIZE])

    def _wsect(self, sec: int, data: bytes) -> None:
        if len(data) != BSIZE:
            raise ValueError(f"sector must be {BSIZE} bytes")
        self.image[sec * BSIZE:(sec + 1) * BSIZE] = data

    def _rinode(self, inum: int) -> DiskInode:
        off = (inum % IPB) * DINODE_SIZE
        return DiskInode.unpack(self._rsect(inode_block(inum, self.sb))[off:off + DINODE_SIZE])

    def _winode(self, inum: int, din: DiskInode) -> None:
        bn = inode_block(inum, self.sb)
        block = bytearray(self._rsect(bn))
        off = (inum % IPB) * DINODE_SIZE
        block[off:off + DINODE_SIZE] = din.pack()
        self._wsect(bn, bytes(block))

    def _alloc_block(self) -> int:
        if self.freeblock >= self.fssize:
            raise ValueError("image out of blocks")
        b = self.freeblock
        self.freeblock += 1
        return b

    def ialloc(self, itype: int) -> int:
        """Allocate the next inode with one link; return its number."""
        if self.freeinode >= self.sb.ninodes:
            raise ValueError("image out of inodes")
        inum = self.freeinode
        self.freeinode += 1
        self._winode(inum, DiskInode(type=int(itype), nlink=1, size=0))
        return inum

    def iappend(self, inum: int, data: bytes) -> None:
        """Append ``data`` to inode ``inum``, allocating blocks as needed."""
        din = self._rinode(inum)
        off = din.size
        payload = bytes(data)
        pos = 0
        while pos < len(payload):
            fbn = off // BSIZE
            if fbn >= MAXFILE:
                raise ValueError("file too large")
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._alloc_block()
                x = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._alloc_block()
                indirect = list(_INDIRECT.unpack(self._rsect(din.addrs[NDIRECT])))
                if indirect[fbn - NDIRECT] == 0:
                    indirect[fbn - NDIRECT] = self._alloc_block()
                    self._wsect(din.addrs[NDIRECT], _INDIRECT.pack(*indirect))
                x = indirect[fbn - NDIRECT]
            n1 = min(len(payload) - pos, (fbn + 1) * BSIZE - off)
            block = bytearray(self._rsect(x))
            start = off - fbn * BSIZE
            block[start:start + n1] = payload[pos:pos + n1]
            self._wsect(x, bytes(block))
            pos += n1
            off += n1
        din.size = off
        self._winode(inum, din)

    def add_file(self, name: str, data: bytes) -> int:
        """Add a file to the root directory; a leading underscore is dropped."""
        if "/" in name:
            raise ValueError(f"file name may not contain '/': {name}")
        if name.startswith("_"):
            name = name[1:]
        inum = self.ialloc(InodeType.FILE)
        self.iappend(self.rootino, DirEntry(inum, name).pack())
        self.iappend(inum, data)
        return inum

    def finish(self) -> bytes:
        """Round the root directory up to whole blocks, write the bitmap, return the image."""
        if not self._finished:
            din = self._rinode(self.rootino)
            din.size = (din.size // BSIZE + 1) * BSIZE
            self._winode(self.rootino, din)

            used = self.freeblock
            if used >= BPB:
                raise ValueError("too many blocks for one bitmap block")
            bitmap = bytearray(BSIZE)
            for i in range(used):
                bitmap[i // 8] |= 1 << (i % 8)
            self._wsect(self.sb.bmapstart, bytes(bitmap))
            self._finished = True
        return bytes(self.image)


def build_image(files: Iterable[tuple[str, bytes]], fssize: int = FSSIZE,
                ninodes: int = NINODES, nlog: int = LOGSIZE) -> bytes:
    """Build an image holding ``files``, given as (name, contents) pairs."""
    builder = ImageBuilder(fssize, ninodes, nlog)
    for name, data in files:
        builder.add_file(name, data)
    return builder.finish()


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if not args:
        sys.stderr.write("Usage: mkfs fs.img files...\n")
        return 1
    target, paths = args[0], args[1:]
    builder = ImageBuilder()
    print(f"nmeta {builder.nmeta} (boot, super, log blocks {builder.nlog} "
          f"inode blocks {builder.ninodeblocks}, bitmap blocks {builder.nbitmap}) "
          f"blocks {builder.nblocks} total {builder.fssize}")
    for path in paths:
        try:
            with open(path, "rb") as handle:
                data = handle.read()
        except OSError as exc:
            sys.stderr.write(f"{path}: {exc.strerror}\n")
            return 1
        builder.add_file(os.path.basename(path), data)
    print(f"balloc: first {builder.freeblock} blocks have been allocated")
    image = builder.finish()
    print(f"balloc: write bitmap block at sector {builder.sb.bmapstart}")
    try:
        with open(target, "wb") as out:
            out.write(image)
    except OSError as exc:
        sys.stderr.write(f"{target}: {exc.strerror}\n")
        return 1
    return 0