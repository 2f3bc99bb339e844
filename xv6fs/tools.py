"""Small file utilities: cat, echo and ls."""

from __future__ import annotations

from typing import Iterable, Optional

from .fs import FsError
from .layout import DIRENT_SIZE, DIRSIZ, Dirent, FileType, Stat
from .printf import sprintf

_CHUNK = 512
_PATH_MAX = 512


def cat(streams: Iterable, out) -> int:
    """Copy every stream to ``out`` in turn; return the number of items copied."""
    total = 0
    for stream in streams:
        while chunk := stream.read(_CHUNK):
            out.write(chunk)
            total += len(chunk)
    return total


def echo(args: Iterable[str]) -> str:
    """The arguments separated by spaces and ended by a newline; empty if none."""
    args = list(args)
    return " ".join(args) + "\n" if args else ""


def fmtname(path: str) -> str:
    """Final element of ``path``, padded with blanks to DIRSIZ characters."""
    name = path[path.rfind("/") + 1 :]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def _stat(fs, path: str) -> Optional[Stat]:
    with fs.log.transaction():
        ip = fs.namei(path)
        if ip is None:
            return None
        fs.ilock(ip)
        try:
            return fs.stati(ip)
        finally:
            fs.iunlockput(ip)


def _dir_names(fs, path: str) -> list[str]:
    names = []
    with fs.log.transaction():
        ip = fs.namei(path)
        if ip is None:
            raise FsError(f"ls: cannot open {path}")
        fs.ilock(ip)
        try:
            for off in range(0, ip.size, DIRENT_SIZE):
                raw = fs.readi(ip, off, DIRENT_SIZE)
                if len(raw) != DIRENT_SIZE:
                    break
                de = Dirent.unpack(raw)
                if de.inum != 0:
                    names.append(de.name)
        finally:
            fs.iunlockput(ip)
    return names


def _line(path: str, st: Stat) -> str:
    return sprintf("%s %d %d %d", fmtname(path), st.type, st.ino, st.size)


def ls(fs, path: str) -> list[str]:
    """Listing lines for a file, or for each entry of a directory."""
    st = _stat(fs, path)
    if st is None:
        raise FsError(f"ls: cannot open {path}")

    if st.type == FileType.FILE:
        return [_line(path, st)]
    if st.type != FileType.DIR:
        return []
    if len(path) + 1 + DIRSIZ + 1 > _PATH_MAX:
        return ["ls: path too long"]

    lines = []
    for name in _dir_names(fs, path):
        child = f"{path}/{name}"
        child_st = _stat(fs, child)
        if child_st is None:
            lines.append(f"ls: cannot stat {child}")
            continue
        lines.append(_line(child, child_st))
    return lines