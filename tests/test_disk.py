import pytest

from xv6fs.bio import Buf, BufFlags
from xv6fs.disk import KernelPanic, MemDisk
from xv6fs.layout import BSIZE


def _image():
    image = bytearray(4 * BSIZE)
    image[BSIZE : 2 * BSIZE] = bytes([7]) * BSIZE
    return image


def test_read_fills_buffer_and_marks_valid():
    disk = MemDisk(_image())
    buf = Buf(dev=1, blockno=1, flags=BufFlags.BUSY)
    disk.rw(buf)
    assert bytes(buf.data) == bytes([7]) * BSIZE
    assert buf.valid and not buf.dirty


def test_write_updates_image_and_clears_dirty():
    disk = MemDisk(_image())
    buf = Buf(dev=1, blockno=2, flags=BufFlags.BUSY | BufFlags.DIRTY)
    buf.data[:3] = b"abc"
    disk.rw(buf)
    assert disk.image()[2 * BSIZE : 2 * BSIZE + 3] == b"abc"
    assert buf.valid and not buf.dirty


def test_disksize_counts_whole_blocks():
    disk = MemDisk(bytes(3 * BSIZE + 10))
    assert disk.disksize == 3


def test_not_busy_panics():
    disk = MemDisk(_image())
    with pytest.raises(KernelPanic, match="not busy"):
        disk.rw(Buf(dev=1, blockno=0))


def test_nothing_to_do_panics():
    disk = MemDisk(_image())
    buf = Buf(dev=1, blockno=0, flags=BufFlags.BUSY | BufFlags.VALID)
    with pytest.raises(KernelPanic, match="nothing to do"):
        disk.rw(buf)


def test_wrong_device_panics():
    disk = MemDisk(_image())
    with pytest.raises(KernelPanic, match="not for disk"):
        disk.rw(Buf(dev=0, blockno=0, flags=BufFlags.BUSY))


def test_out_of_range_panics():
    disk = MemDisk(_image())
    with pytest.raises(KernelPanic, match="out of range"):
        disk.rw(Buf(dev=1, blockno=disk.disksize, flags=BufFlags.BUSY))


def test_save_and_from_file_round_trip(tmp_path):
    path = tmp_path / "fs.img"
    MemDisk(_image()).save(path)
    loaded = MemDisk.from_file(path)
    assert loaded.image() == bytes(_image())
    assert loaded.dev == 1