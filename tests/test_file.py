import pytest

from xv6fs.disk import KernelPanic, MemDisk
from xv6fs.file import FileKind, FileTable
from xv6fs.fs import FileSystem, FsError
from xv6fs.layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    FSSIZE,
    IPB,
    LOGSIZE,
    NDIRECT,
    ROOTINO,
    SUPERBLOCK_SIZE,
    Dinode,
    Dirent,
    FileType,
    Superblock,
    iblock,
)

NINODES = 200


def make_disk():
    nlog = LOGSIZE
    ninodeblocks = NINODES // IPB + 1
    nbitmap = FSSIZE // BPB + 1
    nmeta = 2 + nlog + ninodeblocks + nbitmap
    sb = Superblock(
        size=FSSIZE,
        nblocks=FSSIZE - nmeta,
        ninodes=NINODES,
        nlog=nlog,
        logstart=2,
        inodestart=2 + nlog,
        bmapstart=2 + nlog + ninodeblocks,
    )
    image = bytearray(FSSIZE * BSIZE)
    image[BSIZE : BSIZE + SUPERBLOCK_SIZE] = sb.pack()

    root_block = nmeta
    entries = Dirent(ROOTINO, ".").pack() + Dirent(ROOTINO, "..").pack()
    image[root_block * BSIZE : root_block * BSIZE + len(entries)] = entries
    addrs = [0] * (NDIRECT + 1)
    addrs[0] = root_block
    root = Dinode(type=FileType.DIR, nlink=1, size=len(entries), addrs=addrs)
    at = iblock(ROOTINO, sb) * BSIZE + (ROOTINO % IPB) * DINODE_SIZE
    image[at : at + DINODE_SIZE] = root.pack()

    for b in range(root_block + 1):
        image[sb.bmapstart * BSIZE + b // 8] |= 1 << (b % 8)
    return MemDisk(bytes(image))


@pytest.fixture
def fs():
    return FileSystem(make_disk())


@pytest.fixture
def table(fs):
    return FileTable(fs)


def open_new_file(fs, table, name="data"):
    with fs.log.transaction():
        ip = fs.ialloc(FileType.FILE)
        fs.ilock(ip)
        ip.nlink = 1
        fs.iupdate(ip)
        root = fs.root()
        fs.ilock(root)
        fs.dirlink(root, name, ip.inum)
        fs.iunlockput(root)
        fs.iunlock(ip)
    f = table.alloc()
    f.kind = FileKind.INODE
    f.ip = ip
    f.readable = True
    f.writable = True
    return f


def test_alloc_dup_close_reference_counts():
    table = FileTable(nfile=3)
    f = table.alloc()
    assert f.ref == 1
    assert table.dup(f) is f
    assert f.ref == 2
    table.close(f)
    assert f.ref == 1
    table.close(f)
    assert f.ref == 0


def test_table_exhaustion_raises():
    table = FileTable(nfile=2)
    table.alloc()
    table.alloc()
    with pytest.raises(FsError):
        table.alloc()


def test_closed_slot_is_reused():
    table = FileTable(nfile=1)
    f = table.alloc()
    table.close(f)
    assert table.alloc() is f


def test_close_unreferenced_file_panics():
    table = FileTable(nfile=1)
    f = table.alloc()
    table.close(f)
    with pytest.raises(KernelPanic):
        table.close(f)
    with pytest.raises(KernelPanic):
        table.dup(f)


def test_pipe_round_trip_through_table():
    table = FileTable(nfile=4)
    reader, writer = table.pipe_alloc()
    assert table.write(writer, b"through the pipe") == 16
    assert table.read(reader, 100) == b"through the pipe"


def test_pipe_ends_are_one_way():
    table = FileTable(nfile=4)
    reader, writer = table.pipe_alloc()
    with pytest.raises(FsError):
        table.read(writer, 1)
    with pytest.raises(FsError):
        table.write(reader, b"x")


def test_closing_pipe_writer_gives_end_of_file():
    table = FileTable(nfile=4)
    reader, writer = table.pipe_alloc()
    table.write(writer, b"ab")
    table.close(writer)
    assert table.read(reader, 10) == b"ab"
    assert table.read(reader, 10) == b""


def test_pipe_alloc_without_room_releases_first_end():
    table = FileTable(nfile=1)
    with pytest.raises(FsError):
        table.pipe_alloc()
    assert table.alloc().ref == 1


def test_stat_of_pipe_raises():
    table = FileTable(nfile=4)
    reader, _ = table.pipe_alloc()
    with pytest.raises(FsError):
        table.stat(reader)


def test_inode_write_read_round_trip(fs, table):
    f = open_new_file(fs, table)
    assert table.write(f, b"hello world") == 11
    assert f.off == 11
    f.off = 0
    assert table.read(f, 100) == b"hello world"
    assert table.stat(f).size == 11


def test_large_write_spans_several_transactions(fs, table):
    f = open_new_file(fs, table)
    payload = bytes(i % 251 for i in range(7000))
    assert table.write(f, payload) == len(payload)
    f.off = 0
    assert table.read(f, 10000) == payload
    st = table.stat(f)
    assert st.size == len(payload)
    assert st.type == FileType.FILE


def test_data_survives_reopen_by_name(fs, table):
    f = open_new_file(fs, table, "kept")
    table.write(f, b"persist")
    table.close(f)
    ip = fs.namei("/kept")
    fs.ilock(ip)
    try:
        assert fs.readi(ip, 0, 100) == b"persist"
    finally:
        fs.iunlock(ip)


def test_read_only_inode_file_rejects_write(fs, table):
    f = open_new_file(fs, table)
    f.writable = False
    with pytest.raises(FsError):
        table.write(f, b"x")