"""A bounded in-memory pipe between a writer and a reader."""

from __future__ import annotations

import threading

PIPESIZE = 512


class Pipe:
    """A ring buffer with blocking reads and writes.

    ``nread`` and ``nwrite`` count the bytes ever read and written.
    """

    def __init__(self, size: int = PIPESIZE) -> None:
        if size <= 0:
            raise ValueError("pipe size must be positive")
        self.size = size
        self._data = bytearray(size)
        self.nread = 0
        self.nwrite = 0
        self.readopen = True
        self.writeopen = True
        self._cond = threading.Condition()

    @property
    def closed(self) -> bool:
        """True once both ends have been closed."""
        return not self.readopen and not self.writeopen

    def write(self, data: bytes) -> int:
        """Write all of ``data``, waiting for room; return its length.

        Raises BrokenPipeError if the buffer is full and the read end is closed.
        """
        payload = bytes(data)
        with self._cond:
            for byte in payload:
                while self.nwrite == self.nread + self.size:
                    if not self.readopen:
                        raise BrokenPipeError("pipe has no reader")
                    self._cond.notify_all()
                    self._cond.wait()
                self._data[self.nwrite % self.size] = byte
                self.nwrite += 1
            self._cond.notify_all()
        return len(payload)

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes, waiting while the pipe is empty and a writer remains."""
        if n < 0:
            raise ValueError("negative read size")
        with self._cond:
            while self.nread == self.nwrite and self.writeopen:
                self._cond.wait()
            count = min(n, self.nwrite - self.nread)
            start = self.nread % self.size
            first = self._data[start:start + count]
            out = bytes(first) + bytes(self._data[:count - len(first)])
            self.nread += count
            self._cond.notify_all()
        return out

    def close(self, writable: bool) -> None:
        """Close the write end if ``writable``, otherwise the read end."""
        with self._cond:
            if writable:
                self.writeopen = False
            else:
                self.readopen = False
            self._cond.notify_all()