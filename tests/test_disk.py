import pytest

from blockfs.disk import Buffer, BufferCache, MemoryDisk
from blockfs.layout import BSIZE, FsPanic


def test_memory_disk_round_trip():
    disk = MemoryDisk(4)
    disk.write_block(2, b"\x07" * BSIZE)
    assert disk.read_block(2) == b"\x07" * BSIZE
    assert disk.read_block(1) == bytes(BSIZE)
    assert MemoryDisk(bytes(disk.image)).read_block(2) == b"\x07" * BSIZE


def test_memory_disk_out_of_range():
    with pytest.raises(FsPanic):
        MemoryDisk(2).read_block(2)


def test_sync_requires_lock():
    disk = MemoryDisk(2)
    with pytest.raises(FsPanic):
        disk.sync(Buffer(dev=1, blockno=0))


def test_sync_wrong_device():
    disk = MemoryDisk(2)
    buf = Buffer(dev=0, blockno=0)
    buf.lock.acquire()
    with pytest.raises(FsPanic):
        disk.sync(buf)


def test_cache_write_and_reread():
    disk = MemoryDisk(8)
    cache = BufferCache(disk, nbuf=3)
    b = cache.read(1, 5)
    b.data[:3] = b"abc"
    cache.write(b)
    cache.release(b)
    assert disk.read_block(5)[:3] == b"abc"
    again = cache.read(1, 5)
    assert again is b
    assert again.data[:3] == b"abc"
    cache.release(again)


def test_cache_exhaustion():
    cache = BufferCache(MemoryDisk(8), nbuf=2)
    cache.read(1, 0)
    cache.read(1, 1)
    with pytest.raises(FsPanic):
        cache.read(1, 2)


def test_dirty_buffer_not_recycled():
    cache = BufferCache(MemoryDisk(8), nbuf=1)
    b = cache.read(1, 0)
    b.dirty = True
    cache.release(b)
    with pytest.raises(FsPanic):
        cache.read(1, 1)


def test_release_unlocked_buffer():
    cache = BufferCache(MemoryDisk(8), nbuf=1)
    b = cache.read(1, 0)
    cache.release(b)
    with pytest.raises(FsPanic):
        cache.release(b)
    with pytest.raises(FsPanic):
        cache.write(b)