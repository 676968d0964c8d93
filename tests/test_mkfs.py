import pytest

from blockfs.disk import BufferCache, MemoryDisk
from blockfs.fs import FileSystem
from blockfs.layout import BSIZE, DIRENT_SIZE, ROOTINO, DirEntry, InodeType, SuperBlock
from blockfs.mkfs import ImageBuilder, build_image, main


def mount(image):
    return FileSystem(BufferCache(MemoryDisk(image)))


def test_file_round_trip_and_underscore_stripped():
    fs = mount(build_image([("_cat", b"data")]))
    ip = fs.namei("/cat")
    assert ip is not None
    with ip:
        assert ip.read(0, ip.size) == b"data"
        assert ip.type == InodeType.FILE
    assert fs.namei("/_cat") is None


def test_superblock_layout():
    builder = ImageBuilder(fssize=600, ninodes=100, nlog=20)
    image = builder.finish()
    sb = SuperBlock.unpack(image[BSIZE:2 * BSIZE])
    assert sb.size == 600
    assert sb.nlog == 20
    assert sb.logstart == 2
    assert sb.inodestart == 2 + 20
    assert sb.bmapstart > sb.inodestart
    assert sb.nblocks + builder.nmeta == 600
    assert len(image) == 600 * BSIZE


def test_root_directory_entries():
    fs = mount(build_image([("a", b"1"), ("b", b"22")]))
    root = fs.namei("/")
    with root:
        assert root.inum == ROOTINO
        assert root.size % BSIZE == 0
        raw = root.read(0, root.size)
    entries = [DirEntry.unpack(raw[off:off + DIRENT_SIZE])
               for off in range(0, len(raw), DIRENT_SIZE)]
    assert [e.name for e in entries if e.inum] == [".", "..", "a", "b"]


def test_bitmap_marks_used_blocks():
    builder = ImageBuilder()
    builder.add_file("f", b"x" * 3000)
    image = builder.finish()
    start = builder.sb.bmapstart * BSIZE
    bitmap = image[start:start + BSIZE]
    used = builder.freeblock
    assert used > builder.nmeta
    bits = [bool(bitmap[b // 8] & (1 << (b % 8))) for b in range(used + 1)]
    assert bits == [True] * used + [False]


def test_large_file_uses_indirect_block():
    data = bytes(range(256)) * 41 + b"tail"
    fs = mount(build_image([("big", data)]))
    ip = fs.namei("/big")
    with ip:
        assert ip.size == len(data)
        assert ip.read(0, ip.size) == data
        assert ip.addrs[-1] != 0


def test_slash_in_name_rejected():
    with pytest.raises(ValueError):
        ImageBuilder().add_file("a/b", b"")


def test_out_of_inodes():
    builder = ImageBuilder(ninodes=3)
    builder.ialloc(InodeType.FILE)
    with pytest.raises(ValueError):
        builder.ialloc(InodeType.FILE)


def test_finish_is_stable():
    builder = ImageBuilder()
    builder.add_file("x", b"abc")
    first = builder.finish()
    second = builder.finish()
    assert first == second
    assert len(first) == builder.sb.size * BSIZE
    ip = mount(second).namei("/x")
    with ip:
        assert ip.read(0, ip.size) == b"abc"


def test_main_writes_image(tmp_path, capsys):
    src = tmp_path / "notes"
    src.write_bytes(b"some notes\n")
    img = tmp_path / "fs.img"
    assert main([str(img), str(src)]) == 0
    image = img.read_bytes()
    assert len(image) % BSIZE == 0
    ip = mount(image).namei("/notes")
    with ip:
        assert ip.read(0, ip.size) == b"some notes\n"
    assert "balloc" in capsys.readouterr().out


def test_main_usage():
    assert main([]) == 1


def test_main_missing_input(tmp_path):
    assert main([str(tmp_path / "fs.img"), str(tmp_path / "absent")]) == 1