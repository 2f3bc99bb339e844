"""Inodes, directories and path names on top of the log and buffer cache.

Every operation that may change the disk must run inside a log transaction
(``with fs.log.transaction(): ...``); that includes :meth:`FileSystem.iput`,
which frees an inode once its last link and last reference are gone.

An inode returned by the cache is referenced but unlocked.
:meth:`FileSystem.ilock` reads it from disk if necessary and gives the caller
exclusive use of its fields and contents until :meth:`FileSystem.iunlock`.
"""

from __future__ import annotations

import struct
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional, Protocol

from .bio import Buf, BufferCache
from .disk import KernelPanic
from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    DIRENT_SIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDEV,
    NDIRECT,
    NINDIRECT,
    NINODE,
    ROOTDEV,
    ROOTINO,
    Dinode,
    Dirent,
    FileType,
    Stat,
    Superblock,
    bblock,
    iblock,
)

_ADDR = struct.Struct("<I")


class FsError(Exception):
    """A file system request that cannot be carried out."""


class Device(Protocol):
    """A character device reached through an inode of type DEV."""

    def read(self, n: int) -> bytes:
        """Return up to ``n`` bytes."""
        ...

    def write(self, data: bytes) -> int:
        """Consume ``data`` and return the number of bytes taken."""
        ...


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode plus cache book-keeping."""

    dev: int = 0
    inum: int = 0
    ref: int = 0
    busy: bool = False  # locked by some user
    valid: bool = False  # fields below have been read from disk
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))


def skipelem(path: str) -> Optional[tuple[str, str]]:
    """Split off the first element of ``path``.

    Returns ``(rest, name)``, where ``rest`` has no leading slashes and
    ``name`` is cut to DIRSIZ characters, or None if there is no element.
    """
    path = path.lstrip("/")
    if not path:
        return None
    name, _, rest = path.partition("/")
    return rest.lstrip("/"), name[:DIRSIZ]


def namecmp(s: str, t: str) -> int:
    """Compare two directory entry names on their first DIRSIZ characters."""
    a, b = s[:DIRSIZ], t[:DIRSIZ]
    return (a > b) - (a < b)


class FileSystem:
    """The file system stored on one device."""

    def __init__(self, disk, dev=ROOTDEV):
        self.disk = disk
        self.dev = dev
        self.cache = BufferCache(disk)
        with self._block(1) as buf:
            self.sb = Superblock.unpack(buf.data)
        self.log = self._make_log()
        self._icache = threading.Condition()
        self._inodes = [Inode() for _ in range(NINODE)]
        self._devices: dict[int, Device] = {}

    def _make_log(self):
        from .log import Log

        return Log(self.cache, self.dev, self.sb)

    def __repr__(self) -> str:
        sb = self.sb
        return (
            f"FileSystem(size={sb.size}, nblocks={sb.nblocks}, "
            f"ninodes={sb.ninodes}, nlog={sb.nlog}, logstart={sb.logstart}, "
            f"inodestart={sb.inodestart}, bmapstart={sb.bmapstart})"
        )

    @contextmanager
    def _block(self, blockno: int) -> Iterator[Buf]:
        buf = self.cache.read(self.dev, blockno)
        try:
            yield buf
        finally:
            self.cache.release(buf)

    def register_device(self, major: int, device: Device) -> None:
        """Route reads and writes of DEV inodes with this major number."""
        if not 0 <= major < NDEV:
            raise ValueError(f"major device number must be below {NDEV}")
        self._devices[major] = device

    # Blocks.

    def _bzero(self, blockno: int) -> None:
        with self._block(blockno) as buf:
            buf.data[:] = bytes(BSIZE)
            self.log.write(buf)

    def _balloc(self) -> int:
        """Allocate a zeroed disk block."""
        for base in range(0, self.sb.size, BPB):
            with self._block(bblock(base, self.sb)) as buf:
                found = None
                for bi in range(min(BPB, self.sb.size - base)):
                    mask = 1 << (bi % 8)
                    if not buf.data[bi // 8] & mask:
                        buf.data[bi // 8] |= mask
                        self.log.write(buf)
                        found = base + bi
                        break
            if found is not None:
                self._bzero(found)
                return found
        raise KernelPanic("balloc: out of blocks")

    def _bfree(self, b: int) -> None:
        with self._block(bblock(b, self.sb)) as buf:
            bi = b % BPB
            mask = 1 << (bi % 8)
            if not buf.data[bi // 8] & mask:
                raise KernelPanic("freeing free block")
            buf.data[bi // 8] &= ~mask & 0xFF
            self.log.write(buf)

    # Inodes.

    def _dinode_offset(self, inum: int) -> int:
        return (inum % IPB) * DINODE_SIZE

    def _iget(self, dev: int, inum: int) -> Inode:
        """Find or make the cache entry for an inode; neither locks nor reads it."""
        with self._icache:
            empty = None
            for ip in self._inodes:
                if ip.ref > 0 and ip.dev == dev and ip.inum == inum:
                    ip.ref += 1
                    return ip
                if empty is None and ip.ref == 0:
                    empty = ip
            if empty is None:
                raise KernelPanic("iget: no inodes")
            empty.dev = dev
            empty.inum = inum
            empty.ref = 1
            empty.busy = False
            empty.valid = False
            return empty

    def root(self) -> Inode:
        """Return a reference to the root directory."""
        return self._iget(self.dev, ROOTINO)

    def ialloc(self, type_: int) -> Inode:
        """Allocate an inode of the given type on disk."""
        for inum in range(1, self.sb.ninodes):
            with self._block(iblock(inum, self.sb)) as buf:
                off = self._dinode_offset(inum)
                din = Dinode.unpack(buf.data[off : off + DINODE_SIZE])
                if din.type != 0:
                    continue
                buf.data[off : off + DINODE_SIZE] = Dinode(type=int(type_)).pack()
                self.log.write(buf)
            return self._iget(self.dev, inum)
        raise KernelPanic("ialloc: no inodes")

    def iupdate(self, ip: Inode) -> None:
        """Copy a modified in-memory inode to disk."""
        with self._block(iblock(ip.inum, self.sb)) as buf:
            off = self._dinode_offset(ip.inum)
            din = Dinode(ip.type, ip.major, ip.minor, ip.nlink, ip.size, list(ip.addrs))
            buf.data[off : off + DINODE_SIZE] = din.pack()
            self.log.write(buf)

    def idup(self, ip: Inode) -> Inode:
        """Take another reference to ``ip``."""
        with self._icache:
            ip.ref += 1
        return ip

    def ilock(self, ip: Optional[Inode]) -> None:
        """Lock an inode, reading it from disk if necessary."""
        if ip is None or ip.ref < 1:
            raise KernelPanic("ilock")
        with self._icache:
            while ip.busy:
                self._icache.wait()
            ip.busy = True

        if not ip.valid:
            with self._block(iblock(ip.inum, self.sb)) as buf:
                off = self._dinode_offset(ip.inum)
                din = Dinode.unpack(buf.data[off : off + DINODE_SIZE])
            ip.type = din.type
            ip.major = din.major
            ip.minor = din.minor
            ip.nlink = din.nlink
            ip.size = din.size
            ip.addrs = list(din.addrs)
            ip.valid = True
            if ip.type == 0:
                raise KernelPanic("ilock: no type")

    def iunlock(self, ip: Optional[Inode]) -> None:
        if ip is None or not ip.busy or ip.ref < 1:
            raise KernelPanic("iunlock")
        with self._icache:
            ip.busy = False
            self._icache.notify_all()

    def iput(self, ip: Inode) -> None:
        """Drop a reference; free the inode if it was the last and has no links."""
        with self._icache:
            free = ip.ref == 1 and ip.valid and ip.nlink == 0
            if free:
                if ip.busy:
                    raise KernelPanic("iput busy")
                ip.busy = True
        if free:
            self._itrunc(ip)
            ip.type = 0
            self.iupdate(ip)
        with self._icache:
            if free:
                ip.busy = False
                ip.valid = False
                self._icache.notify_all()
            ip.ref -= 1

    def iunlockput(self, ip: Inode) -> None:
        self.iunlock(ip)
        self.iput(ip)

    # Inode contents.

    def _bmap(self, ip: Inode, bn: int) -> int:
        """Disk block holding block ``bn`` of the inode, allocated if missing."""
        if bn < NDIRECT:
            if ip.addrs[bn] == 0:
                ip.addrs[bn] = self._balloc()
            return ip.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if ip.addrs[NDIRECT] == 0:
                ip.addrs[NDIRECT] = self._balloc()
            with self._block(ip.addrs[NDIRECT]) as buf:
                (addr,) = _ADDR.unpack_from(buf.data, bn * 4)
                if addr == 0:
                    addr = self._balloc()
                    _ADDR.pack_into(buf.data, bn * 4, addr)
                    self.log.write(buf)
            return addr
        raise KernelPanic("bmap: out of range")

    def _itrunc(self, ip: Inode) -> None:
        """Discard the contents of an inode."""
        for i in range(NDIRECT):
            if ip.addrs[i]:
                self._bfree(ip.addrs[i])
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            with self._block(ip.addrs[NDIRECT]) as buf:
                entries = struct.unpack_from(f"<{NINDIRECT}I", buf.data)
            for addr in entries:
                if addr:
                    self._bfree(addr)
            self._bfree(ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.iupdate(ip)

    def stati(self, ip: Inode) -> Stat:
        return Stat(type=ip.type, dev=ip.dev, ino=ip.inum, nlink=ip.nlink, size=ip.size)

    def _device(self, ip: Inode) -> Device:
        device = self._devices.get(ip.major)
        if not 0 <= ip.major < NDEV or device is None:
            raise FsError(f"no device with major number {ip.major}")
        return device

    def readi(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to ``n`` bytes at ``off``; fewer at the end of the file."""
        if ip.type == FileType.DEV:
            device = self._device(ip)
            self.iunlock(ip)
            try:
                return bytes(device.read(n))
            finally:
                self.ilock(ip)

        if off < 0 or n < 0 or off > ip.size:
            raise FsError("read outside the file")
        n = min(n, ip.size - off)

        out = bytearray()
        while len(out) < n:
            with self._block(self._bmap(ip, off // BSIZE)) as buf:
                start = off % BSIZE
                m = min(n - len(out), BSIZE - start)
                out += buf.data[start : start + m]
            off += m
        return bytes(out)

    def writei(self, ip: Inode, data: bytes, off: int) -> int:
        """Write ``data`` at ``off``, growing the file if needed."""
        if ip.type == FileType.DEV:
            device = self._device(ip)
            self.iunlock(ip)
            try:
                return device.write(bytes(data))
            finally:
                self.ilock(ip)

        n = len(data)
        if off < 0 or off > ip.size:
            raise FsError("write starts beyond the end of the file")
        if off + n > MAXFILE * BSIZE:
            raise FsError("write would exceed the maximum file size")

        view = memoryview(bytes(data))
        tot = 0
        while tot < n:
            with self._block(self._bmap(ip, off // BSIZE)) as buf:
                start = off % BSIZE
                m = min(n - tot, BSIZE - start)
                buf.data[start : start + m] = view[tot : tot + m]
                self.log.write(buf)
            tot += m
            off += m

        if n > 0 and off > ip.size:
            ip.size = off
            self.iupdate(ip)
        return n

    # Directories.

    def _entries(self, dp: Inode) -> Iterator[tuple[int, Dirent]]:
        for off in range(0, dp.size, DIRENT_SIZE):
            raw = self.readi(dp, off, DIRENT_SIZE)
            if len(raw) != DIRENT_SIZE:
                raise KernelPanic("dirlink read")
            yield off, Dirent.unpack(raw)

    def dirlookup(self, dp: Inode, name: str) -> Optional[tuple[Inode, int]]:
        """Find ``name`` in a locked directory: ``(inode, offset)`` or None."""
        if dp.type != FileType.DIR:
            raise KernelPanic("dirlookup not DIR")
        for off, de in self._entries(dp):
            if de.inum != 0 and namecmp(name, de.name) == 0:
                return self._iget(dp.dev, de.inum), off
        return None

    def dirlink(self, dp: Inode, name: str, inum: int) -> None:
        """Add the entry ``(name, inum)`` to a locked directory."""
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FsError(f"{name!r} already exists")

        off = next((o for o, de in self._entries(dp) if de.inum == 0), dp.size)
        entry = Dirent(inum, name[:DIRSIZ]).pack()
        if self.writei(dp, entry, off) != DIRENT_SIZE:
            raise KernelPanic("dirlink")

    # Paths.

    def _namex(self, path: str, parent: bool, cwd: Optional[Inode]):
        if path.startswith("/") or cwd is None:
            ip = self._iget(self.dev, ROOTINO)
        else:
            ip = self.idup(cwd)

        name = ""
        while (step := skipelem(path)) is not None:
            path, name = step
            self.ilock(ip)
            if ip.type != FileType.DIR:
                self.iunlockput(ip)
                return None
            if parent and path == "":
                self.iunlock(ip)
                return ip, name
            found = self.dirlookup(ip, name)
            if found is None:
                self.iunlockput(ip)
                return None
            self.iunlockput(ip)
            ip = found[0]

        if parent:
            self.iput(ip)
            return None
        return ip, name

    def namei(self, path: str, cwd: Optional[Inode] = None) -> Optional[Inode]:
        """Return a reference to the inode named by ``path``, or None."""
        found = self._namex(path, False, cwd)
        return None if found is None else found[0]

    def nameiparent(
        self, path: str, cwd: Optional[Inode] = None
    ) -> Optional[tuple[Inode, str]]:
        """Return the parent directory of ``path`` and the final element."""
        return self._namex(path, True, cwd)