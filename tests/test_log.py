import struct
import threading

import pytest

from xv6fs.bio import BufferCache
from xv6fs.disk import KernelPanic, MemDisk
from xv6fs.layout import BSIZE, LOGSIZE, Superblock
from xv6fs.log import Log

NBLOCKS = 100


def _superblock(nlog=LOGSIZE):
    return Superblock(
        size=NBLOCKS,
        nblocks=NBLOCKS - 40,
        ninodes=16,
        nlog=nlog,
        logstart=2,
        inodestart=2 + nlog,
        bmapstart=4 + nlog,
    )


def _make(image=None, nlog=LOGSIZE):
    sb = _superblock(nlog)
    if image is None:
        image = bytearray(NBLOCKS * BSIZE)
        image[BSIZE : BSIZE + len(sb.pack())] = sb.pack()
    disk = MemDisk(image)
    cache = BufferCache(disk)
    return disk, cache, Log(cache, 1, sb), sb


def _block(disk, blockno):
    return disk.image()[blockno * BSIZE : (blockno + 1) * BSIZE]


def test_commit_installs_block_and_clears_header():
    disk, cache, log, sb = _make()
    with log.transaction():
        buf = cache.read(1, 50)
        buf.data[:5] = b"hello"
        log.write(buf)
        cache.release(buf)
    assert _block(disk, 50)[:5] == b"hello"
    assert struct.unpack_from("<i", _block(disk, sb.logstart))[0] == 0
    assert log.blocks == []


def test_home_block_untouched_before_commit():
    disk, cache, log, _ = _make()
    with log.transaction():
        buf = cache.read(1, 50)
        buf.data[:5] = b"hello"
        log.write(buf)
        cache.release(buf)
        assert _block(disk, 50) == bytes(BSIZE)
        assert buf.dirty


def test_repeated_writes_are_absorbed():
    _, cache, log, _ = _make()
    with log.transaction():
        for _ in range(3):
            buf = cache.read(1, 60)
            log.write(buf)
            cache.release(buf)
        assert log.blocks == [60]


def test_write_outside_transaction_panics():
    _, cache, log, _ = _make()
    buf = cache.read(1, 50)
    with pytest.raises(KernelPanic, match="outside of trans"):
        log.write(buf)


def test_transaction_larger_than_log_panics():
    _, cache, log, sb = _make(nlog=4)
    with log.transaction():
        for blockno in range(50, 50 + sb.nlog - 1):
            buf = cache.read(1, blockno)
            log.write(buf)
            cache.release(buf)
        buf = cache.read(1, 70)
        with pytest.raises(KernelPanic, match="too big a transaction"):
            log.write(buf)
        cache.release(buf)


def test_recover_installs_committed_transaction():
    sb = _superblock()
    image = bytearray(NBLOCKS * BSIZE)
    struct.pack_into("<ii", image, sb.logstart * BSIZE, 1, 60)
    payload = b"recovered"
    image[(sb.logstart + 1) * BSIZE : (sb.logstart + 1) * BSIZE + len(payload)] = payload
    disk, _, log, _ = _make(image)
    assert _block(disk, 60)[: len(payload)] == payload
    assert struct.unpack_from("<i", _block(disk, sb.logstart))[0] == 0
    assert log.blocks == []


def test_empty_log_recovers_to_nothing():
    disk, _, log, sb = _make()
    assert log.blocks == []
    assert _block(disk, 50) == bytes(BSIZE)
    assert struct.unpack_from("<i", _block(disk, sb.logstart))[0] == 0


def test_begin_op_waits_when_log_could_overflow():
    _, _, log, _ = _make()
    for _ in range(3):
        log.begin_op()
    entered = threading.Event()

    def worker():
        log.begin_op()
        entered.set()

    thread = threading.Thread(target=worker, daemon=True)
    thread.start()
    assert not entered.wait(0.2)
    log.end_op()
    assert entered.wait(2)
    thread.join(2)
    assert log.outstanding == 3
    for _ in range(3):
        log.end_op()
    assert log.outstanding == 0
    assert not log.committing