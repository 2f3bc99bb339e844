import threading

import pytest

from xv6fs.pipe import PIPESIZE, Pipe, PipeClosedError


def test_write_then_read_round_trip():
    pipe = Pipe()
    assert pipe.write(b"hello") == 5
    assert pipe.read(100) == b"hello"


def test_read_returns_at_most_n_bytes():
    pipe = Pipe()
    pipe.write(b"abcdef")
    assert pipe.read(2) == b"ab"
    assert pipe.read(10) == b"cdef"


def test_default_size_is_source_value():
    assert Pipe().size == PIPESIZE == 512


def test_read_after_writer_closed_returns_empty():
    pipe = Pipe()
    pipe.write(b"x")
    pipe.close(writable=True)
    assert pipe.read(5) == b"x"
    assert pipe.read(5) == b""


def test_write_to_full_pipe_without_reader_raises():
    pipe = Pipe(size=2)
    pipe.close(writable=False)
    with pytest.raises(PipeClosedError):
        pipe.write(b"12345")


def test_small_write_after_reader_closed_fits_buffer():
    pipe = Pipe(size=4)
    pipe.close(writable=False)
    assert pipe.write(b"ab") == 2


def test_invalid_size_rejected():
    with pytest.raises(ValueError):
        Pipe(size=0)


def test_large_write_blocks_until_reader_drains():
    pipe = Pipe(size=4)
    payload = bytes(range(40))
    result = {}

    def writer():
        result["n"] = pipe.write(payload)

    thread = threading.Thread(target=writer)
    thread.start()
    received = bytearray()
    while len(received) < len(payload):
        received += pipe.read(3)
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert bytes(received) == payload
    assert result["n"] == len(payload)


def test_blocked_reader_wakes_on_writer_close():
    pipe = Pipe()
    result = {}

    def reader():
        result["data"] = pipe.read(10)

    thread = threading.Thread(target=reader)
    thread.start()
    pipe.close(writable=True)
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert result["data"] == b""
    assert pipe.read(10) == b""