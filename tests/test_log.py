import struct

import pytest

from blockfs.disk import BufferCache, MemoryDisk
from blockfs.layout import BSIZE, FsPanic
from blockfs.log import Log, LogFullError


def make(size=31, nblocks=64):
    disk = MemoryDisk(nblocks)
    cache = BufferCache(disk)
    return disk, cache, Log(cache, 1, 2, size)


def modify(log, cache, blockno, payload):
    b = cache.read(1, blockno)
    b.data[:len(payload)] = payload
    log.log_write(b)
    cache.release(b)


def test_transaction_commits_to_home():
    disk, cache, log = make()
    with log.transaction():
        modify(log, cache, 40, b"hello")
        assert disk.read_block(40)[:5] == bytes(5)
    assert disk.read_block(40)[:5] == b"hello"
    assert log.blocks == []
    assert struct.unpack_from("<i", disk.read_block(2))[0] == 0


def test_absorption():
    _, cache, log = make()
    log.begin_op()
    modify(log, cache, 40, b"a")
    modify(log, cache, 40, b"b")
    assert log.blocks == [40]
    log.end_op()


def test_write_outside_transaction():
    _, cache, log = make()
    b = cache.read(1, 40)
    with pytest.raises(FsPanic):
        log.log_write(b)


def test_too_big_transaction():
    _, cache, log = make(size=4)
    log.begin_op()
    for blockno in (40, 41, 42):
        modify(log, cache, blockno, b"x")
    b = cache.read(1, 43)
    with pytest.raises(LogFullError):
        log.log_write(b)


def test_recovery_installs_committed_blocks():
    disk = MemoryDisk(64)
    header = bytearray(BSIZE)
    struct.pack_into("<ii", header, 0, 1, 50)
    disk.write_block(2, bytes(header))
    disk.write_block(3, b"\x09" * BSIZE)
    Log(BufferCache(disk), 1, 2, 31)
    assert disk.read_block(50) == b"\x09" * BSIZE
    assert struct.unpack_from("<i", disk.read_block(2))[0] == 0