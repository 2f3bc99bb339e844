# xv6fs

A model of a small Unix-style file system in plain Python, with no
third-party dependencies. It covers the layers from a raw disk image up to a
few user-level tools.

| Module          | What it provides                                                    |
|-----------------|---------------------------------------------------------------------|
| `xv6fs.layout`  | On-disk structures `Superblock`, `Dinode`, `Dirent`, plus `Stat`, `FileType`, `iblock`, `bblock` and the size limits (`BSIZE`, `FSSIZE`, `NDIRECT`, `MAXFILE`, ...) |
| `xv6fs.disk`    | `MemDisk`, one device's blocks held in memory, loadable with `from_file` and written out with `save`; `KernelPanic` |
| `xv6fs.bio`     | `BufferCache`, a most-recently-used cache of blocks, with `Buf` and `BufFlags` |
| `xv6fs.log`     | `Log`, a redo log grouping block writes into atomic transactions (`transaction()` context manager) |
| `xv6fs.fs`      | `FileSystem`: inode cache, block allocation, reading and writing inodes, directories, `namei` / `nameiparent`; `FsError`, `skipelem`, `namecmp` |
| `xv6fs.pipe`    | `Pipe`, a bounded byte pipe; `PipeClosedError`                      |
| `xv6fs.file`    | `FileTable` and `File`: reference-counted open files over inodes and pipes |
| `xv6fs.console` | `Console`: echo, line editing with ^U, ^H / DEL, ^D and ^P, line-at-a-time reads |
| `xv6fs.kbd`     | `Keyboard`: decodes PC scan codes into character codes, tracking `Modifier` state |
| `xv6fs.printf`  | `sprintf` (`%d %x %p %s %c`, upper-case hex), `kformat` (no `%c`, lower-case hex), `format_int` |
| `xv6fs.mkfs`    | `ImageBuilder` and `build_image` for creating fresh disk images     |
| `xv6fs.grep`    | The `^ . * $` matcher (`match`, `match_here`, `match_star`) and `grep` |
| `xv6fs.tools`   | `cat`, `echo`, `fmtname` and `ls`                                   |

Conditions the file system treats as fatal raise `KernelPanic`; requests
that simply cannot be carried out raise `FsError`, and writing to a pipe
whose read end is closed raises `PipeClosedError`.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Command-line tools

Build a disk image holding some files in its root directory (a leading `_`
in a file name is dropped inside the image; names may not contain `/`):

```
xv6fs-mkfs fs.img README notes.txt
```

Print the lines of standard input or of files that match a pattern:

```
xv6fs-grep 'a.*b$' notes.txt
```

Both commands return exit status 1 on a usage error or a file that cannot be
opened.

## Using the library

Build an image:

```python
from xv6fs.mkfs import ImageBuilder

builder = ImageBuilder()
builder.add_file("hello.txt", b"hello, world\n")
image = builder.finish()
```

`build_image({"hello.txt": b"hello, world\n"})` does the same in one call.

Mount it on an in-memory disk and look around:

```python
from xv6fs.disk import MemDisk
from xv6fs.fs import FileSystem
from xv6fs.tools import ls

disk = MemDisk(image, 1)
fs = FileSystem(disk, 1)
for line in ls(fs, "/"):
    print(line)
```

Read a file through the inode layer. Operations that may change the disk run
inside a log transaction:

```python
with fs.log.transaction():
    ip = fs.namei("/hello.txt")
    fs.ilock(ip)
    data = fs.readi(ip, 0, ip.size)
    fs.iunlockput(ip)
```

Mounting a `FileSystem` replays any transaction that was committed to the
log but not yet copied to its home blocks, so an image written with
`MemDisk.save` is brought back to a consistent state when it is mounted
again.

Pipes through the file table:

```python
from xv6fs.file import FileTable

table = FileTable(fs)
reader, writer = table.pipe_alloc()
table.write(writer, b"abc")
table.read(reader, 3)   # b"abc"
```

Console and keyboard:

```python
from xv6fs.console import Console
from xv6fs.kbd import Keyboard

console = Console()
console.interrupt("hi\n")
console.read(10)                 # b"hi\n"; the echo is in console.output
Keyboard().decode([0x2A, 0x1E])  # [65], shift + 'a'
```

Formatting and matching:

```python
from xv6fs.printf import sprintf, kformat
from xv6fs.grep import match

sprintf("%d %x", -1, 255)   # "-1 FF"
kformat("%x", 255)          # "ff"
match("^ab*c$", "abbbc")    # True
match("x.z", "axyz")        # True
```

## What it does not do

There are no processes, no scheduler and no system-call layer: nothing opens
a file by path, creates or removes files or directories, or makes links.
New files get onto an image through `ImageBuilder`; after mounting, changes
are made with the inode-level calls (`ialloc`, `writei`, `dirlink`, ...) on
`FileSystem`. Devices are reached only through objects registered with
`FileSystem.register_device`; there is no disk or keyboard hardware behind
`MemDisk` and `Keyboard`. `cat`, `echo` and `ls` are library functions
without commands of their own.