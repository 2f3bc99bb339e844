"""On-disk layout of the file system and the limits it is built around."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum

NOFILE = 16  # open files per process
NFILE = 100  # open files per system
NINODE = 50  # maximum number of active inodes
NDEV = 10  # maximum major device number
ROOTDEV = 1  # device number of the file system root disk
MAXARG = 32  # max exec arguments
MAXOPBLOCKS = 10  # max number of blocks any FS operation writes
LOGSIZE = MAXOPBLOCKS * 3  # max data blocks in the on-disk log
NBUF = MAXOPBLOCKS * 3  # size of the disk block cache
FSSIZE = 1000  # size of the file system in blocks

ROOTINO = 1  # root i-number
BSIZE = 512  # block size

NDIRECT = 12
NINDIRECT = BSIZE // 4
MAXFILE = NDIRECT + NINDIRECT

DIRSIZ = 14

_SUPERBLOCK = struct.Struct("<7I")
_DINODE = struct.Struct(f"<4hI{NDIRECT + 1}I")
_DIRENT = struct.Struct(f"<H{DIRSIZ}s")

SUPERBLOCK_SIZE = _SUPERBLOCK.size
DINODE_SIZE = _DINODE.size
DIRENT_SIZE = _DIRENT.size

IPB = BSIZE // DINODE_SIZE  # inodes per block
BPB = BSIZE * 8  # bitmap bits per block


class FileType(IntEnum):
    """Kinds of inode; a free inode has type 0."""

    DIR = 1
    FILE = 2
    DEV = 3


@dataclass
class Superblock:
    """Describes the disk layout."""

    size: int = 0  # size of file system image (blocks)
    nblocks: int = 0  # number of data blocks
    ninodes: int = 0  # number of inodes
    nlog: int = 0  # number of log blocks
    logstart: int = 0  # block number of first log block
    inodestart: int = 0  # block number of first inode block
    bmapstart: int = 0  # block number of first free map block

    def pack(self) -> bytes:
        return _SUPERBLOCK.pack(
            self.size,
            self.nblocks,
            self.ninodes,
            self.nlog,
            self.logstart,
            self.inodestart,
            self.bmapstart,
        )

    @classmethod
    def unpack(cls, data) -> "Superblock":
        return cls(*_SUPERBLOCK.unpack_from(data))


@dataclass
class Dinode:
    """On-disk inode."""

    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))

    def pack(self) -> bytes:
        if len(self.addrs) != NDIRECT + 1:
            raise ValueError(f"an inode holds exactly {NDIRECT + 1} addresses")
        return _DINODE.pack(
            self.type, self.major, self.minor, self.nlink, self.size, *self.addrs
        )

    @classmethod
    def unpack(cls, data) -> "Dinode":
        type_, major, minor, nlink, size, *addrs = _DINODE.unpack_from(data)
        return cls(type_, major, minor, nlink, size, list(addrs))


@dataclass
class Dirent:
    """Directory entry; names longer than DIRSIZ are cut short."""

    inum: int = 0
    name: str = ""

    def pack(self) -> bytes:
        return _DIRENT.pack(self.inum, self.name.encode("latin-1"))

    @classmethod
    def unpack(cls, data) -> "Dirent":
        inum, raw = _DIRENT.unpack_from(data)
        return cls(inum, raw.split(b"\0", 1)[0].decode("latin-1"))


@dataclass
class Stat:
    """Metadata reported about a file."""

    type: int = 0
    dev: int = 0
    ino: int = 0
    nlink: int = 0
    size: int = 0


def iblock(inum: int, sb: Superblock) -> int:
    """Block containing inode ``inum``."""
    return inum // IPB + sb.inodestart


def bblock(b: int, sb: Superblock) -> int:
    """Block of the free map containing the bit for block ``b``."""
    return b // BPB + sb.bmapstart