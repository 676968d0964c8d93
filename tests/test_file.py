import pytest

from blockfs.disk import BufferCache, MemoryDisk
from blockfs.file import File, FileTable, FileType
from blockfs.fs import FileSystem
from blockfs.layout import FsPanic, InodeType
from blockfs.mkfs import build_image


@pytest.fixture
def fs():
    image = build_image([("README", b"hello world\n")])
    return FileSystem(BufferCache(MemoryDisk(image)))


def open_inode(table, fs, path, readable=True, writable=False):
    f = table.alloc()
    f.type = FileType.INODE
    f.ip = fs.namei(path)
    f.readable = readable
    f.writable = writable
    return f


def test_read_advances_offset(fs):
    f = open_inode(FileTable(), fs, "/README")
    assert f.read(5) == b"hello"
    assert f.read(100) == b" world\n"
    assert f.read(10) == b""


def test_stat_of_inode_file(fs):
    f = open_inode(FileTable(), fs, "/README")
    st = f.stat()
    assert st.size == len(b"hello world\n")
    assert st.type == InodeType.FILE


def test_write_requires_writable(fs):
    f = open_inode(FileTable(), fs, "/README")
    with pytest.raises(PermissionError):
        f.write(b"x")


def test_read_requires_readable(fs):
    f = open_inode(FileTable(), fs, "/README", readable=False, writable=True)
    with pytest.raises(PermissionError):
        f.read(1)


def test_large_write_round_trip(fs):
    table = FileTable()
    f = open_inode(table, fs, "/README", writable=True)
    data = bytes(range(256)) * 16
    assert f.write(data) == len(data)
    assert f.off == len(data)
    f.off = 0
    assert f.read(len(data) + 10) == data
    assert f.stat().size == len(data)


def test_alloc_exhaustion():
    table = FileTable(nfile=2)
    table.alloc()
    table.alloc()
    with pytest.raises(OSError):
        table.alloc()


def test_dup_and_close_counts():
    table = FileTable()
    f = table.alloc()
    assert table.dup(f) is f
    assert f.ref == 2
    table.close(f)
    assert f.ref == 1
    table.close(f)
    assert f.ref == 0 and f.type is FileType.NONE
    with pytest.raises(FsPanic):
        table.close(f)
    with pytest.raises(FsPanic):
        table.dup(f)


def test_close_inode_drops_reference(fs):
    table = FileTable()
    f = open_inode(table, fs, "/README")
    ip = f.ip
    before = ip.ref
    table.close(f)
    assert ip.ref == before - 1


def test_pipe_ends(fs):
    table = FileTable()
    reader, writer = table.open_pipe()
    assert writer.write(b"abc") == 3
    assert reader.read(10) == b"abc"
    with pytest.raises(PermissionError):
        reader.write(b"x")
    with pytest.raises(PermissionError):
        writer.read(1)
    table.close(writer)
    assert reader.read(10) == b""


def test_open_pipe_releases_on_failure():
    table = FileTable(nfile=1)
    with pytest.raises(OSError):
        table.open_pipe()
    f = table.alloc()
    assert f.ref == 1


def test_stat_of_pipe_rejected():
    reader, _ = FileTable().open_pipe()
    with pytest.raises(ValueError):
        reader.stat()


def test_unopened_file_read_panics():
    f = File(readable=True)
    with pytest.raises(FsPanic):
        f.read(1)