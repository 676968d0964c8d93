# blockfs

`blockfs` is a small file system that lives in a byte image made of 512-byte
blocks. It comes with a builder for fresh images, read-only `ls` and `cat`
tools for images, a tiny `grep`, and a console and keyboard model.

## Layers

- **On-disk format** (`blockfs.layout`): `SuperBlock`, `DiskInode` and
  `DirEntry` pack to and unpack from their little-endian on-disk form.
  `inode_block` and `bitmap_block` find the block that holds an inode or a
  bitmap bit. `InodeType` lists the inode kinds (`FREE`, `DIR`, `FILE`,
  `DEV`).
- **Disk and buffer cache** (`blockfs.disk`): `MemoryDisk` holds an image in
  memory and serves device 1. `BufferCache` has a fixed number of `Buffer`s
  (30 by default). `read` returns a locked buffer, `write` writes it out
  and `release` unlocks it. When a buffer is needed, the cache reuses the
  least recently released buffer that is neither referenced nor dirty.
- **Log** (`blockfs.log`): `Log` groups block writes into transactions
  (`begin_op`/`end_op`, or the `transaction()` context manager). It commits
  when the last outstanding operation ends. `recover()` installs a
  committed transaction that is still in the log. `log_write` raises
  `LogFullError` when a transaction touches more blocks than the log holds.
- **Inodes, directories and paths** (`blockfs.fs`): `FileSystem` allocates
  and frees blocks (`balloc`, `bfree`) and inodes (`ialloc`, `iget`,
  `idup`, `iput`). It looks up and adds directory entries (`dirlookup`,
  `dirlink`) and resolves paths (`namei`, `nameiparent`). An `Inode` is
  locked with `lock`/`unlock` or a `with` block. It supports `read`,
  `write`, `truncate`, `update` and `stat`. Device inodes forward reads
  and writes to handlers in `FileSystem.devsw`.
- **Open files and pipes** (`blockfs.file`, `blockfs.pipe`): `FileTable`
  hands out reference-counted `File`s (`alloc`, `dup`, `close`,
  `open_pipe`). `Pipe` is a bounded byte channel with blocking reads and
  writes. Writing to a full pipe whose read end is closed raises
  `BrokenPipeError`.
- **Console and keyboard** (`blockfs.console`, `blockfs.keyboard`):
  `Console` echoes output to a serial text stream and to an 80x25
  `CgaScreen`. It keeps a line-edited input buffer: `interrupt` feeds
  typed characters and `read` returns a line at a time. Ctrl-U kills the
  line, backspace deletes a character, Ctrl-D marks end of input, and
  Ctrl-P calls an optional `procdump` callback. `Keyboard` turns PC scan
  codes into characters and handles Shift, Ctrl and Caps Lock.

Internal inconsistencies raise `FsPanic`. Examples are freeing a free
block, running out of inodes or using a buffer that is not locked.

## Installing

```
pip install .
```

Python 3.10 or later is required. There are no runtime dependencies.

## Building an image

```
blockfs-mkfs fs.img README notes.txt
```

This writes an image of 1000 blocks with room for 200 inodes and a 30-block
log. It contains a root directory holding each named host file under its
base name. A leading underscore is dropped from each name, so `_cat` is
stored as `cat`. From Python, use `build_image(files)` with
`(name, contents)` pairs, or `ImageBuilder` for finer control.

## Listing and reading an image

```
blockfs-tools ls fs.img /
blockfs-tools cat fs.img /README
blockfs-tools echo hello world
```

`ls` prints one line per entry: the name padded to 14 characters, then the
type, the inode number and the size. With no path it lists the root. `cat`
with no path copies standard input. The same functions take a mounted
`FileSystem`:

```python
from blockfs.disk import BufferCache, MemoryDisk
from blockfs.fs import FileSystem
from blockfs.mkfs import build_image
from blockfs.tools import cat, ls

image = build_image([("hello.txt", b"hi\n")])
fs = FileSystem(BufferCache(MemoryDisk(image)))
print("\n".join(ls(fs, "/")))
print(b"".join(cat(fs, ["/hello.txt"])))   # b'hi\n'
```

## Changing an image from Python

Changes go through the inode layer inside a log transaction:

```python
from blockfs.layout import InodeType

with fs.log.transaction():
    ip = fs.ialloc(InodeType.FILE)
    with ip:
        ip.nlink = 1
        ip.update()
        ip.write(b"data", 0)
    root = fs.namei("/")
    with root:
        fs.dirlink(root, "new.txt", ip.inum)
    fs.iput(root)
    fs.iput(ip)
```

`MemoryDisk.image` holds the resulting bytes.

## Searching text

```
blockfs-grep 'ab*c$' notes.txt
```

`blockfs-grep` supports only `^`, `.`, `*` and `$`. It reads standard
input when no file is given. It prints only matching lines that end in a
newline. The matcher can also be used on its own:

```python
from blockfs.grep import match

match("^ab*c$", "abbbc")   # True
match("^ab*c$", "xabc")    # False
```

## Formatting output

`blockfs.printf.format_string` understands `%d`, `%x`, `%p` (uppercase
hex), `%s`, `%c` and `%%`. Any other `%` sequence is printed unchanged.
`fprintf` writes the result to a stream.

```python
from blockfs.printf import format_string

format_string("%s has %d blocks", "root", 3)   # 'root has 3 blocks'
```

## What it does not do

- There is no command that creates directories, links or removes files in
  an image. `blockfs-tools` only lists and reads. Other changes need the
  Python API shown above.
- Images are not mounted on the host operating system.
- The console and keyboard are models driven from Python. They do not
  attach to a real terminal.

## Running the tests

```
pip install .[test]
pytest
```