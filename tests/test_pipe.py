import threading

import pytest

from blockfs.pipe import PIPESIZE, Pipe


def test_round_trip():
    p = Pipe()
    assert p.write(b"hello") == 5
    assert p.read(100) == b"hello"


def test_partial_reads_keep_order():
    p = Pipe()
    p.write(b"hello")
    assert p.read(2) == b"he"
    assert p.read(10) == b"llo"
    assert p.nread == p.nwrite


def test_read_after_writer_closed_returns_empty():
    p = Pipe()
    p.write(b"ab")
    p.close(True)
    assert p.read(10) == b"ab"
    assert p.read(10) == b""


def test_write_to_full_pipe_without_reader_raises():
    p = Pipe()
    p.close(False)
    with pytest.raises(BrokenPipeError):
        p.write(b"x" * (PIPESIZE + 1))


def test_writer_blocks_until_reader_drains():
    p = Pipe()
    data = bytes(range(256)) * 8
    t = threading.Thread(target=p.write, args=(data,))
    t.start()
    got = bytearray()
    while len(got) < len(data):
        got += p.read(300)
    t.join(timeout=5)
    assert bytes(got) == data
    assert not t.is_alive()


def test_reader_blocks_until_data_arrives():
    p = Pipe()
    result = []

    def reader():
        result.append(p.read(10))

    t = threading.Thread(target=reader)
    t.start()
    written = p.write(b"late")
    t.join(timeout=5)
    assert written == 4
    assert result == [b"late"]
    assert p.nread == 4
    assert p.nwrite == 4


def test_wraparound_preserves_bytes():
    p = Pipe(size=8)
    p.write(b"abcdef")
    assert p.read(5) == b"abcde"
    p.write(b"ghijk")
    assert p.read(10) == b"fghijk"


def test_closing_both_ends():
    p = Pipe()
    p.close(True)
    assert not p.closed
    p.close(False)
    assert p.closed


def test_negative_read_rejected():
    with pytest.raises(ValueError):
        Pipe().read(-1)