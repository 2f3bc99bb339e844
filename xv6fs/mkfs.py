"""Build a file system image holding a set of files in its root directory."""

from __future__ import annotations

import struct
import sys
from collections.abc import Mapping
from pathlib import Path

from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    FSSIZE,
    IPB,
    LOGSIZE,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    Dinode,
    Dirent,
    FileType,
    Superblock,
    iblock,
)

NINODES = 200

# Disk layout:
# [ boot block | super block | log | inode blocks | free bit map | data blocks ]
NBITMAP = FSSIZE // (BSIZE * 8) + 1
NINODEBLOCKS = NINODES // IPB + 1
NLOG = LOGSIZE
NMETA = 2 + NLOG + NINODEBLOCKS + NBITMAP  # boot, super, log, inode, bitmap
NBLOCKS = FSSIZE - NMETA  # data blocks

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class ImageBuilder:
    """Lays out a fresh image with an empty root directory and adds files to it."""

    def __init__(self):
        self.sb = Superblock(
            size=FSSIZE,
            nblocks=NBLOCKS,
            ninodes=NINODES,
            nlog=NLOG,
            logstart=2,
            inodestart=2 + NLOG,
            bmapstart=2 + NLOG + NINODEBLOCKS,
        )
        self._image = bytearray(FSSIZE * BSIZE)
        self.freeinode = 1
        self.freeblock = NMETA  # the first block that can be allocated
        self._finished = False

        self._wsect(1, self.sb.pack())

        self.rootino = self.ialloc(FileType.DIR)
        if self.rootino != ROOTINO:
            raise RuntimeError("root directory did not get the root inode number")
        for name in (".", ".."):
            self.iappend(self.rootino, Dirent(self.rootino, name).pack())

    # Sectors and inodes.

    def _check_sector(self, sec: int) -> slice:
        if not 0 <= sec < FSSIZE:
            raise ValueError(f"sector {sec} is outside the image")
        return slice(sec * BSIZE, (sec + 1) * BSIZE)

    def _rsect(self, sec: int) -> bytearray:
        return bytearray(self._image[self._check_sector(sec)])

    def _wsect(self, sec: int, data) -> None:
        block = bytes(data).ljust(BSIZE, b"\0")
        if len(block) != BSIZE:
            raise ValueError("a sector holds exactly one block")
        self._image[self._check_sector(sec)] = block

    def _inode_offset(self, inum: int) -> int:
        return iblock(inum, self.sb) * BSIZE + (inum % IPB) * DINODE_SIZE

    def _rinode(self, inum: int) -> Dinode:
        off = self._inode_offset(inum)
        return Dinode.unpack(self._image[off : off + DINODE_SIZE])

    def _winode(self, inum: int, din: Dinode) -> None:
        off = self._inode_offset(inum)
        self._image[off : off + DINODE_SIZE] = din.pack()

    def _alloc_block(self) -> int:
        if self.freeblock >= FSSIZE:
            raise ValueError("image is out of blocks")
        b = self.freeblock
        self.freeblock += 1
        return b

    def _check_open(self) -> None:
        if self._finished:
            raise RuntimeError("image already finished")

    # Public interface.

    def ialloc(self, type_) -> int:
        """Allocate the next inode with the given type and one link."""
        self._check_open()
        if self.freeinode >= NINODES:
            raise ValueError("image is out of inodes")
        inum = self.freeinode
        self.freeinode += 1
        self._winode(inum, Dinode(type=int(type_), nlink=1, size=0))
        return inum

    def iappend(self, inum: int, data) -> None:
        """Append ``data`` to the contents of inode ``inum``."""
        self._check_open()
        din = self._rinode(inum)
        view = memoryview(bytes(data))
        off = din.size
        pos = 0
        while pos < len(view):
            fbn = off // BSIZE
            if fbn >= MAXFILE:
                raise ValueError("file exceeds the maximum file size")
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._alloc_block()
                x = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._alloc_block()
                indirect = list(_INDIRECT.unpack(self._rsect(din.addrs[NDIRECT])))
                if indirect[fbn - NDIRECT] == 0:
                    indirect[fbn - NDIRECT] = self._alloc_block()
                    self._wsect(din.addrs[NDIRECT], _INDIRECT.pack(*indirect))
                x = indirect[fbn - NDIRECT]
            n1 = min(len(view) - pos, (fbn + 1) * BSIZE - off)
            block = self._rsect(x)
            start = off - fbn * BSIZE
            block[start : start + n1] = view[pos : pos + n1]
            self._wsect(x, block)
            pos += n1
            off += n1
        din.size = off
        self._winode(inum, din)

    def add_file(self, name: str, data) -> int:
        """Add a file to the root directory; a leading underscore is dropped."""
        self._check_open()
        if "/" in name:
            raise ValueError(f"file name {name!r} may not contain '/'")
        if name.startswith("_"):
            name = name[1:]
        inum = self.ialloc(FileType.FILE)
        self.iappend(self.rootino, Dirent(inum, name).pack())
        self.iappend(inum, data)
        return inum

    def finish(self) -> bytes:
        """Fix the root directory size, write the free bitmap, return the image."""
        if not self._finished:
            din = self._rinode(self.rootino)
            din.size = (din.size // BSIZE + 1) * BSIZE
            self._winode(self.rootino, din)

            used = self.freeblock
            if used >= BPB:
                raise ValueError("used blocks do not fit in one bitmap block")
            bitmap = bytearray(BSIZE)
            for i in range(used):
                bitmap[i // 8] |= 1 << (i % 8)
            self._wsect(self.sb.bmapstart, bitmap)
            self._finished = True
        return bytes(self._image)


def build_image(files) -> bytes:
    """Image holding ``files``: a mapping or pairs of name and contents."""
    builder = ImageBuilder()
    items = files.items() if isinstance(files, Mapping) else files
    for name, data in items:
        builder.add_file(name, data)
    return builder.finish()


def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print("Usage: mkfs fs.img files...", file=sys.stderr)
        return 1
    out, names = args[0], args[1:]

    builder = ImageBuilder()
    print(
        f"nmeta {NMETA} (boot, super, log blocks {NLOG} inode blocks "
        f"{NINODEBLOCKS}, bitmap blocks {NBITMAP}) blocks {NBLOCKS} total {FSSIZE}"
    )
    for name in names:
        if "/" in name:
            print(f"mkfs: {name}: name may not contain '/'", file=sys.stderr)
            return 1
        try:
            data = Path(name).read_bytes()
        except OSError as exc:
            print(f"{name}: {exc.strerror}", file=sys.stderr)
            return 1
        try:
            builder.add_file(name, data)
        except ValueError as exc:
            print(f"mkfs: {name}: {exc}", file=sys.stderr)
            return 1

    print(f"balloc: first {builder.freeblock} blocks have been allocated")
    image = builder.finish()
    print(f"balloc: write bitmap block at sector {builder.sb.bmapstart}")
    try:
        Path(out).write_bytes(image)
    except OSError as exc:
        print(f"{out}: {exc.strerror}", file=sys.stderr)
        return 1
    return 0