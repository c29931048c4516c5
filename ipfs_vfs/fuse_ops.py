"""
Read-only FUSE mount of the IPFS store.

Hierarchy:
- /                 - Either a given ipfs://<cid> directory, or the "whole
                      store": names looked up at the root are resolved as
                      content identifiers and the root itself is not listable.
- /<name>/...       - Children as reported by the daemon's ls.

Files are served from seekable read sessions; content under a content
identifier never changes, so the kernel may keep its page cache. Every
mutation fails with EROFS.

Handlers call the blocking session layer directly: one daemon request at a
time, in line with the synchronous session model.
"""

import errno
import itertools
import logging
import os
import stat
import time
from typing import Optional

import pyfuse3
import trio

from .directory import DirectoryCursor
from .errors import (
    InvalidURI, IpfsError, IsADirectory, NotFound, UnsupportedMode, UnsupportedOperation,
)
from .filesystem import IpfsFileSystem
from .models import InodeEntry, LookupStatus, StatRecord
from .paths import SCHEME_SEPARATOR, join_uri
from .stream import MODE_READ, StreamSession

log = logging.getLogger(__name__)


def errno_for(error: IpfsError) -> int:
    """errno value for a session-layer failure."""
    if isinstance(error, NotFound):
        return errno.ENOENT
    if isinstance(error, IsADirectory):
        return errno.EISDIR
    if isinstance(error, UnsupportedOperation):
        return errno.EROFS
    if isinstance(error, (UnsupportedMode, InvalidURI)):
        return errno.EINVAL
    return errno.EIO


class IpfsFuseOperations(pyfuse3.Operations):
    """pyfuse3 operations backed by an IpfsFileSystem."""

    ROOT_INODE = pyfuse3.ROOT_INODE

    def __init__(self, fs: IpfsFileSystem, root_uri: Optional[str] = None):
        super().__init__()
        self._fs = fs
        self.root_uri = root_uri.rstrip("/") if root_uri else None

        self._inodes: dict[int, InodeEntry] = {
            self.ROOT_INODE: InodeEntry(name="", uri=self.root_uri, parent=None, is_dir=True),
        }
        self._next_inode = 100  # Dynamic inodes start here
        self._fh_counter = itertools.count(1)
        self._sessions: dict[int, StreamSession] = {}
        self._listings: dict[int, tuple[int, list[str]]] = {}

    # ── Attributes ──────────────────────────────────────────────────

    def _make_attr(self, inode: int, record: StatRecord) -> pyfuse3.EntryAttributes:
        attr = pyfuse3.EntryAttributes()
        attr.st_ino = inode
        attr.st_mode = record.mode
        attr.st_nlink = 2 if record.is_dir else 1
        attr.st_size = record.size
        now_ns = int(time.time() * 1e9)
        attr.st_atime_ns = now_ns
        attr.st_mtime_ns = now_ns
        attr.st_ctime_ns = now_ns
        attr.st_uid = os.getuid()
        attr.st_gid = os.getgid()
        return attr

    def _root_record(self) -> StatRecord:
        if self.root_uri is None:
            # Traversable but not listable: names are content identifiers.
            return StatRecord(mode=stat.S_IFDIR | 0o111)
        return self._resolve(self.root_uri)

    def _resolve(self, uri: str) -> StatRecord:
        """Stat a URI or raise the matching FUSEError."""
        try:
            result = self._fs.lookup(uri)
        except IpfsError as e:
            raise pyfuse3.FUSEError(errno_for(e))
        if result.status is LookupStatus.FOUND:
            return result.record
        if result.status is LookupStatus.ABSENT:
            raise pyfuse3.FUSEError(errno.ENOENT)
        log.error(f"stat {uri} failed: {result.error}")
        raise pyfuse3.FUSEError(errno.EIO)

    def _child_uri(self, parent: InodeEntry, name: str) -> str:
        if parent.uri is None:
            return f"{self._fs.scheme}{SCHEME_SEPARATOR}{name}"
        return join_uri(parent.uri, name)

    def _child_inode(self, parent_inode: int, name: str, uri: str, record: StatRecord) -> int:
        """Get or create the inode for a child, refreshing its cached kind/size."""
        for inode, entry in self._inodes.items():
            if entry.parent == parent_inode and entry.name == name:
                entry.is_dir = record.is_dir
                entry.size = record.size
                return inode
        inode = self._next_inode
        self._next_inode += 1
        self._inodes[inode] = InodeEntry(
            name=name, uri=uri, parent=parent_inode,
            is_dir=record.is_dir, size=record.size,
        )
        return inode

    async def getattr(self, inode: int, ctx: pyfuse3.RequestContext = None) -> pyfuse3.EntryAttributes:
        entry = self._inodes.get(inode)
        if entry is None:
            raise pyfuse3.FUSEError(errno.ENOENT)
        if inode == self.ROOT_INODE:
            return self._make_attr(inode, self._root_record())
        return self._make_attr(inode, self._resolve(entry.uri))

    async def lookup(self, parent_inode: int, name: bytes, ctx: pyfuse3.RequestContext = None) -> pyfuse3.EntryAttributes:
        """Look up a directory entry by name."""
        name_str = name.decode("utf-8")
        log.debug(f"lookup: parent={parent_inode}, name={name_str}")

        parent = self._inodes.get(parent_inode)
        if parent is None:
            raise pyfuse3.FUSEError(errno.ENOENT)
        if name_str == ".":
            return await self.getattr(parent_inode, ctx)
        if name_str == "..":
            return await self.getattr(parent.parent or self.ROOT_INODE, ctx)

        uri = self._child_uri(parent, name_str)
        record = self._resolve(uri)
        inode = self._child_inode(parent_inode, name_str, uri, record)
        return self._make_attr(inode, record)

    # ── Directories ─────────────────────────────────────────────────

    async def opendir(self, inode: int, ctx: pyfuse3.RequestContext) -> int:
        entry = self._inodes.get(inode)
        if entry is None:
            raise pyfuse3.FUSEError(errno.ENOENT)
        if not entry.is_dir:
            raise pyfuse3.FUSEError(errno.ENOTDIR)
        if entry.uri is None:
            raise pyfuse3.FUSEError(errno.EPERM)

        try:
            cursor = DirectoryCursor.open(self._fs.client, entry.uri)
        except IpfsError as e:
            log.error(f"ls {entry.uri} failed: {e}")
            raise pyfuse3.FUSEError(errno_for(e))
        try:
            names = list(cursor)
        finally:
            cursor.close()

        fh = next(self._fh_counter)
        self._listings[fh] = (inode, names)
        return fh

    async def readdir(self, fh: int, start_id: int, token: pyfuse3.ReaddirToken) -> None:
        """Emit the listing captured at opendir, one stat per child."""
        listing = self._listings.get(fh)
        if listing is None:
            return
        parent_inode, names = listing
        parent = self._inodes[parent_inode]

        for idx, name in enumerate(names):
            if idx < start_id:
                continue
            uri = self._child_uri(parent, name)
            try:
                record = self._resolve(uri)
            except pyfuse3.FUSEError:
                log.debug(f"readdir: skipping {uri}, no longer resolvable")
                continue
            inode = self._child_inode(parent_inode, name, uri, record)
            attr = self._make_attr(inode, record)
            if not pyfuse3.readdir_reply(token, name.encode("utf-8"), attr, idx + 1):
                break

    async def releasedir(self, fh: int) -> None:
        self._listings.pop(fh, None)

    # ── Files ───────────────────────────────────────────────────────

    async def open(self, inode: int, flags: int, ctx: pyfuse3.RequestContext) -> pyfuse3.FileInfo:
        entry = self._inodes.get(inode)
        if entry is None or entry.uri is None:
            raise pyfuse3.FUSEError(errno.ENOENT)
        if flags & (os.O_WRONLY | os.O_RDWR):
            raise pyfuse3.FUSEError(errno.EROFS)
        if entry.is_dir:
            raise pyfuse3.FUSEError(errno.EISDIR)

        options = self._fs.config.session_options(seekable=True)
        try:
            session = StreamSession.open(self._fs.client, entry.uri, MODE_READ, options)
        except IpfsError as e:
            log.error(f"open {entry.uri} failed: {e}")
            raise pyfuse3.FUSEError(errno_for(e))

        fh = next(self._fh_counter)
        self._sessions[fh] = session
        fi = pyfuse3.FileInfo(fh=fh)
        fi.keep_cache = True  # Content under a content identifier never changes
        return fi

    async def read(self, fh: int, off: int, size: int) -> bytes:
        session = self._sessions.get(fh)
        if session is None:
            raise pyfuse3.FUSEError(errno.EBADF)
        try:
            if session.tell() != off and not session.seek(off):
                raise pyfuse3.FUSEError(errno.EIO)
            return session.read(size)
        except IpfsError as e:
            log.error(f"read {session.uri} failed: {e}")
            raise pyfuse3.FUSEError(errno_for(e))

    async def release(self, fh: int) -> None:
        session = self._sessions.pop(fh, None)
        if session is not None:
            session.close()

    # ── Read-only refusals ──────────────────────────────────────────

    async def create(self, parent_inode, name, mode, flags, ctx):
        raise pyfuse3.FUSEError(errno.EROFS)

    async def write(self, fh, off, buf):
        raise pyfuse3.FUSEError(errno.EROFS)

    async def mkdir(self, parent_inode, name, mode, ctx):
        raise pyfuse3.FUSEError(errno.EROFS)

    async def unlink(self, parent_inode, name, ctx):
        raise pyfuse3.FUSEError(errno.EROFS)

    async def rmdir(self, parent_inode, name, ctx):
        raise pyfuse3.FUSEError(errno.EROFS)

    async def rename(self, parent_inode_old, name_old, parent_inode_new, name_new, flags, ctx):
        raise pyfuse3.FUSEError(errno.EROFS)

    async def setattr(self, inode, attr, fields, fh, ctx):
        raise pyfuse3.FUSEError(errno.EROFS)

    # ── Lifecycle ───────────────────────────────────────────────────

    async def statfs(self, ctx: pyfuse3.RequestContext) -> pyfuse3.StatvfsData:
        s = pyfuse3.StatvfsData()
        s.f_bsize = 4096
        s.f_frsize = 4096
        s.f_files = len(self._inodes)
        s.f_namemax = 255
        return s

    async def destroy(self) -> None:
        """Close any sessions the kernel did not release before unmount."""
        log.info(f"Destroying filesystem, closing {len(self._sessions)} open session(s)")
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()
        self._listings.clear()


def run_mount(fs: IpfsFileSystem, mountpoint: str, root_uri: Optional[str] = None,
              debug: bool = False) -> None:
    """Mount and block until unmounted."""
    operations = IpfsFuseOperations(fs, root_uri=root_uri)

    fuse_options = set(pyfuse3.default_options)
    fuse_options.add("fsname=ipfs-vfs")
    fuse_options.add("ro")
    if debug:
        fuse_options.add("debug")

    log.info(f"Mounting {root_uri or 'IPFS store'} at {mountpoint}")
    log.info(f"Daemon: {fs.config.daemon_host}")

    pyfuse3.init(operations, mountpoint, fuse_options)
    try:
        trio.run(pyfuse3.main)
    except KeyboardInterrupt:
        log.info("Interrupted, unmounting...")
    finally:
        pyfuse3.close(unmount=True)
        log.info("Unmounted")
