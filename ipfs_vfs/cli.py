"""
ipfs-vfs command line.

Commands: cat, ls, stat, add, mount.

Usage:
    ipfs-vfs cat ipfs://QmHash/readme.md
    ipfs-vfs ls ipfs://QmHash --long
    ipfs-vfs add notes.txt
    ipfs-vfs mount /mnt/ipfs --root ipfs://QmHash
"""

import argparse
import logging
import os
import sys
from argparse import Namespace
from typing import Optional

from . import registry
from .config import DEFAULT_HOST, get_config_path, load_config
from .dispatcher import StatFlag
from .filesystem import IpfsFileSystem
from .paths import SCHEME_SEPARATOR, join_uri
from .stream import CHUNK_SIZE, MODE_READ, MODE_WRITE

log = logging.getLogger(__name__)


# --- ANSI formatting helpers ---

def _supports_color() -> bool:
    """Check if terminal supports ANSI colors."""
    if os.environ.get("NO_COLOR"):
        return False
    if not hasattr(sys.stdout, "isatty") or not sys.stdout.isatty():
        return False
    return True


_COLOR = _supports_color()


def _bold(text: str) -> str:
    return f"\033[1m{text}\033[0m" if _COLOR else text


def _red(text: str) -> str:
    return f"\033[31m{text}\033[0m" if _COLOR else text


def _format_size(size: int) -> str:
    for unit in ("B", "K", "M", "G"):
        if size < 1024 or unit == "G":
            return f"{size}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return str(size)


def _filesystem(args: Namespace) -> IpfsFileSystem:
    """Register the ipfs:// handler from CLI flags and the config file."""
    config = load_config(
        cli_host=getattr(args, "host", None),
        cli_timeout=getattr(args, "timeout", None),
    )
    return registry.register(config=config)


# --- Commands ---

def cmd_cat(args: Namespace) -> None:
    """Stream a file's contents to stdout."""
    fs = _filesystem(args)
    handle = fs.open(args.uri, MODE_READ)
    if handle is False:
        sys.exit(1)

    out = sys.stdout.buffer
    try:
        while not fs.eof(handle):
            chunk = fs.read(handle, CHUNK_SIZE)
            if not chunk:
                break
            out.write(chunk)
    finally:
        fs.close(handle)
    out.flush()


def cmd_ls(args: Namespace) -> None:
    """List a directory, optionally with kind and size."""
    fs = _filesystem(args)
    cursor = fs.opendir(args.uri)
    if cursor is False:
        sys.exit(1)

    try:
        while True:
            name = fs.readdir(cursor)
            if name is None:
                break
            if not args.long:
                print(name)
                continue
            record = fs.stat(join_uri(args.uri, name), StatFlag.QUIET)
            if record is False:
                print(f"  {'?':>8}  {_red(name)}")
            elif record.is_dir:
                print(f"  {'-':>8}  {_bold(name + '/')}")
            else:
                print(f"  {_format_size(record.size):>8}  {name}")
    finally:
        fs.closedir(cursor)


def cmd_stat(args: Namespace) -> None:
    """Print kind, size and mode of a path."""
    fs = _filesystem(args)
    record = fs.stat(args.uri)
    if record is False:
        sys.exit(1)

    kind = "directory" if record.is_dir else "file"
    print(f"  {_bold(args.uri)}")
    print(f"  type: {kind}")
    print(f"  size: {record.size}")
    print(f"  mode: {record.mode:o}")


def cmd_add(args: Namespace) -> None:
    """Add local files (or stdin) to the store and print their hashes."""
    fs = _filesystem(args)
    failures = 0

    for path in args.files:
        name = "stdin" if path == "-" else os.path.basename(path)
        uri = f"{registry.DEFAULT_SCHEME}{SCHEME_SEPARATOR}{name}"
        handle = fs.open(uri, MODE_WRITE)
        if handle is False:
            failures += 1
            continue
        try:
            source = sys.stdin.buffer if path == "-" else open(path, "rb")
            try:
                while True:
                    chunk = source.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    fs.write(handle, chunk)
            finally:
                if source is not sys.stdin.buffer:
                    source.close()

            if fs.flush(handle):
                print(f"{handle.content_id or '?'}  {path}")
            else:
                print(f"{_red('FAILED')}  {path}", file=sys.stderr)
                failures += 1
        except OSError as e:
            print(f"{_red('FAILED')}  {path}: {e}", file=sys.stderr)
            failures += 1
        finally:
            fs.close(handle)

    if failures:
        sys.exit(1)


def cmd_mount(args: Namespace) -> None:
    """Mount the store (or one directory of it) read-only via FUSE."""
    mountpoint = os.path.realpath(args.mountpoint)
    if not os.path.isdir(mountpoint):
        print(f"Error: {mountpoint} is not a directory")
        sys.exit(1)

    # Late import to avoid pulling in pyfuse3 for non-mount commands
    from .fuse_ops import run_mount

    fs = _filesystem(args)
    if args.root and not fs.is_dir(args.root):
        print(f"Error: {args.root} is not a directory in the store")
        sys.exit(1)

    run_mount(fs, mountpoint, root_uri=args.root, debug=args.debug)


# --- Entry point ---

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ipfs-vfs",
        description="Browse, read and add IPFS content through filesystem primitives",
    )
    parser.add_argument(
        "--host",
        default=None,
        help=f"IPFS daemon API URL (default: config file or {DEFAULT_HOST})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Request timeout in seconds (default: 30)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("cat", help="Print a file")
    p.add_argument("uri", help="ipfs:// path of the file")
    p.set_defaults(func=cmd_cat)

    p = sub.add_parser("ls", help="List a directory")
    p.add_argument("uri", help="ipfs:// path of the directory")
    p.add_argument("--long", "-l", action="store_true", help="Show size and kind")
    p.set_defaults(func=cmd_ls)

    p = sub.add_parser("stat", help="Show metadata of a path")
    p.add_argument("uri", help="ipfs:// path")
    p.set_defaults(func=cmd_stat)

    p = sub.add_parser("add", help="Add files to the store")
    p.add_argument("files", nargs="+", help="Local files, or - for stdin")
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("mount", help="Mount read-only via FUSE")
    p.add_argument("mountpoint", help="Directory to mount the filesystem")
    p.add_argument(
        "--root",
        default=None,
        help="ipfs:// directory to mount (default: whole store, names are hashes)",
    )
    p.set_defaults(func=cmd_mount)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    log.debug(f"Config file: {get_config_path()}")

    try:
        args.func(args)
    finally:
        registry.unregister()


if __name__ == "__main__":
    main()
