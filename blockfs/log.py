"""A redo log that makes groups of block writes atomic."""

from __future__ import annotations

import struct
import threading
from contextlib import contextmanager
from typing import Iterator

from .disk import Buffer, BufferCache
from .layout import BSIZE, FsPanic


class LogFullError(FsPanic):
    """A transaction touched more blocks than the log can hold."""


class Log:
    """Header block at ``start`` followed by ``size - 1`` logged block copies."""

    def __init__(self, cache: BufferCache, dev: int, start: int, size: int,
                 logsize: int = 30, maxopblocks: int = 10):
        if (1 + logsize) * 4 >= BSIZE:
            raise FsPanic("initlog: too big logheader")
        self.cache = cache
        self.dev = dev
        self.start = start
        self.size = size
        self.logsize = logsize
        self.maxopblocks = maxopblocks
        self.outstanding = 0
        self.committing = False
        self.blocks: list[int] = []
        self._cond = threading.Condition()
        self.recover()

    def _read_head(self) -> None:
        buf = self.cache.read(self.dev, self.start)
        (n,) = struct.unpack_from("<i", buf.data)
        self.blocks = list(struct.unpack_from(f"<{n}i", buf.data, 4))
        self.cache.release(buf)

    def _write_head(self) -> None:
        buf = self.cache.read(self.dev, self.start)
        n = len(self.blocks)
        struct.pack_into(f"<i{n}i", buf.data, 0, n, *self.blocks)
        self.cache.write(buf)
        self.cache.release(buf)

    def _copy_blocks(self, to_home: bool) -> None:
        for tail, home in enumerate(self.blocks):
            logbuf = self.cache.read(self.dev, self.start + tail + 1)
            homebuf = self.cache.read(self.dev, home)
            src, dst = (logbuf, homebuf) if to_home else (homebuf, logbuf)
            dst.data[:] = src.data
            self.cache.write(dst)
            self.cache.release(src if to_home else homebuf)
            self.cache.release(dst if to_home else logbuf)

    def recover(self) -> None:
        """Install any committed transaction and clear the log."""
        self._read_head()
        self._copy_blocks(to_home=True)
        self.blocks = []
        self._write_head()

    def _commit(self) -> None:
        if self.blocks:
            self._copy_blocks(to_home=False)
            self._write_head()
            self._copy_blocks(to_home=True)
            self.blocks = []
            self._write_head()

    def begin_op(self) -> None:
        with self._cond:
            while self.committing or (
                len(self.blocks) + (self.outstanding + 1) * self.maxopblocks > self.logsize
            ):
                self._cond.wait()
            self.outstanding += 1

    def end_op(self) -> None:
        with self._cond:
            self.outstanding -= 1
            if self.committing:
                raise FsPanic("log.committing")
            do_commit = self.outstanding == 0
            if do_commit:
                self.committing = True
            else:
                self._cond.notify_all()
        if do_commit:
            try:
                self._commit()
            finally:
                with self._cond:
                    self.committing = False
                    self._cond.notify_all()

    @contextmanager
    def transaction(self) -> Iterator["Log"]:
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()

    def log_write(self, buf: Buffer) -> None:
        """Record a modified buffer in the current transaction and pin it."""
        n = len(self.blocks)
        if n >= self.logsize or n >= self.size - 1:
            raise LogFullError("too big a transaction")
        if self.outstanding < 1:
            raise FsPanic("log_write outside of trans")
        with self._cond:
            if buf.blockno not in self.blocks:
                self.blocks.append(buf.blockno)
            buf.dirty = True