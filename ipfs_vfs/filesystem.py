"""
Filesystem-primitive surface over the IPFS daemon.

IpfsFileSystem is what callers hold: open/read/write/seek/flush/close on
sessions, stat/exists on paths, opendir/readdir on directories. Every
session-layer failure is routed through the dispatcher, so results are
values, False, or a zeroed StatRecord; no IpfsError escapes.

Store objects are immutable: rename, unlink, rmdir, mkdir, truncate and
metadata writes always fail.
"""

import logging
import os
from typing import Optional, Union

from .api_client import IpfsClient
from .config import Configuration
from .directory import DirectoryCursor
from .dispatcher import StatFlag, call, dispatch
from .errors import IpfsError, NotFound, TransportFailure, UnsupportedOperation
from .metadata import lookup_stat
from .models import LookupStatus, StatLookup, StatRecord
from .paths import SCHEME_SEPARATOR
from .stream import MODE_READ, MODE_WRITE, StreamSession

log = logging.getLogger(__name__)


def _unsupported(operation: str) -> UnsupportedOperation:
    return UnsupportedOperation(f"{operation}() is not supported for IPFS resources.")


def _session(handle) -> StreamSession:
    """The handle as a StreamSession; a failed open() passes False here."""
    if not isinstance(handle, StreamSession):
        raise UnsupportedOperation(f"Not an open IPFS stream: {handle!r}")
    return handle


class IpfsFileSystem:
    """Filesystem view of one IPFS daemon."""

    def __init__(self, config: Optional[Configuration] = None,
                 client: Optional[IpfsClient] = None, scheme: str = "ipfs"):
        self.config = config or Configuration()
        self.client = client or IpfsClient(self.config)
        self.scheme = scheme

    # ── Streams ──────────────────────────────────────────────────────

    def open(self, uri: str, mode: str = MODE_READ, flags: int = StatFlag.NONE,
             seekable: Optional[bool] = None,
             timeout: Optional[float] = None) -> Union[StreamSession, bool]:
        """Open a session; False on failure (silently with StatFlag.QUIET)."""
        options = self.config.session_options(seekable=seekable, timeout=timeout)
        return call(lambda: StreamSession.open(self.client, uri, mode, options), flags)

    def read(self, handle: StreamSession, count: int = -1,
             flags: int = StatFlag.NONE) -> Union[bytes, bool]:
        return call(lambda: _session(handle).read(count), flags)

    def write(self, handle: StreamSession, data: bytes) -> Union[int, bool]:
        return call(lambda: _session(handle).write(data))

    def seek(self, handle: StreamSession, offset: int, whence: int = os.SEEK_SET) -> bool:
        return call(lambda: _session(handle).seek(offset, whence))

    def tell(self, handle: StreamSession) -> Union[int, bool]:
        return call(lambda: _session(handle).tell())

    def eof(self, handle: StreamSession) -> bool:
        return call(lambda: _session(handle).eof())

    def flush(self, handle: StreamSession) -> bool:
        """Commit a write session. False in read mode or if the daemon refuses."""
        return call(lambda: _session(handle).flush())

    def close(self, handle: StreamSession) -> bool:
        """Release a session. False if the handle is not an open stream."""
        if not isinstance(handle, StreamSession):
            return False
        handle.close()
        return True

    def fstat(self, handle: StreamSession) -> Union[StatRecord, bool]:
        return call(lambda: _session(handle).stat())

    def set_timeout(self, handle: StreamSession, seconds: float) -> bool:
        return isinstance(handle, StreamSession) and handle.set_timeout(seconds)

    def lock(self, handle: StreamSession, operation: int = 0) -> bool:
        return isinstance(handle, StreamSession) and handle.lock(operation)

    def truncate(self, handle: StreamSession, size: int = 0, flags: int = StatFlag.NONE) -> bool:
        return call(lambda: _session(handle).truncate(size), flags)

    # ── Metadata ─────────────────────────────────────────────────────

    def lookup(self, uri: str) -> StatLookup:
        """Raw Found/Absent/Failed outcome. Raises InvalidURI for bad paths."""
        return lookup_stat(self.client, uri)

    def stat(self, uri: str, flags: int = StatFlag.NONE) -> Union[StatRecord, bool]:
        """Metadata for a path, or a falsy result chosen by flags."""
        try:
            result = self.lookup(uri)
        except IpfsError as e:
            return dispatch(e, flags)
        if result.status is LookupStatus.FOUND:
            return result.record
        if result.status is LookupStatus.ABSENT:
            return dispatch(NotFound(f"The file '{uri}' does not exist."), flags)
        return dispatch(result.error, flags)

    def exists(self, uri: str) -> bool:
        record = self.stat(uri, StatFlag.QUIET)
        return record is not False and record.exists

    def is_dir(self, uri: str) -> bool:
        record = self.stat(uri, StatFlag.QUIET)
        return record is not False and record.is_dir

    def is_file(self, uri: str) -> bool:
        record = self.stat(uri, StatFlag.QUIET)
        return record is not False and record.is_file

    # ── Directories ──────────────────────────────────────────────────

    def opendir(self, uri: str, flags: int = StatFlag.NONE) -> Union[DirectoryCursor, bool]:
        return call(lambda: DirectoryCursor.open(self.client, uri), flags)

    def readdir(self, cursor: DirectoryCursor) -> Optional[str]:
        """Next child name, or None at the end of the listing or for a non-cursor."""
        if not isinstance(cursor, DirectoryCursor):
            return None
        return cursor.next()

    def rewinddir(self, cursor: DirectoryCursor) -> bool:
        def _rewind():
            if not isinstance(cursor, DirectoryCursor):
                raise UnsupportedOperation(f"Not an open IPFS directory: {cursor!r}")
            cursor.rewind()
            return True
        return call(_rewind)

    def closedir(self, cursor: DirectoryCursor) -> bool:
        if not isinstance(cursor, DirectoryCursor):
            return False
        cursor.close()
        return True

    def listdir(self, uri: str, flags: int = StatFlag.NONE) -> Union[list[str], bool]:
        cursor = self.opendir(uri, flags)
        if cursor is False:
            return False
        try:
            return list(cursor)
        finally:
            cursor.close()

    # ── Whole-object helpers ─────────────────────────────────────────

    def read_bytes(self, uri: str, flags: int = StatFlag.NONE) -> Union[bytes, bool]:
        """Full contents of a file."""
        handle = self.open(uri, MODE_READ, flags)
        if handle is False:
            return False
        try:
            return call(handle.read, flags)
        finally:
            handle.close()

    def write_bytes(self, data: bytes, uri: Optional[str] = None,
                    flags: int = StatFlag.NONE) -> Union[str, bool]:
        """Add data as a new object; returns its content identifier or False."""
        uri = uri or f"{self.scheme}{SCHEME_SEPARATOR}"
        handle = self.open(uri, MODE_WRITE, flags)
        if handle is False:
            return False
        try:
            handle.write(data)
            committed = handle.flush()
        except IpfsError as e:
            return dispatch(e, flags)
        finally:
            handle.close()
        if not committed:
            return dispatch(TransportFailure(f"The daemon did not store {uri}"), flags)
        return handle.content_id or True

    # ── Unsupported mutations ────────────────────────────────────────

    def rename(self, path_from: str, path_to: str, flags: int = StatFlag.NONE) -> bool:
        return dispatch(_unsupported("rename"), flags)

    def unlink(self, uri: str, flags: int = StatFlag.NONE) -> bool:
        return dispatch(_unsupported("unlink"), flags)

    def rmdir(self, uri: str, flags: int = StatFlag.NONE) -> bool:
        return dispatch(_unsupported("rmdir"), flags)

    def mkdir(self, uri: str, mode: int = 0o777, flags: int = StatFlag.NONE) -> bool:
        # An empty directory's hash could never be extended afterwards.
        return dispatch(_unsupported("mkdir"), flags)

    def set_metadata(self, uri: str, option: str, value=None, flags: int = StatFlag.NONE) -> bool:
        """touch/chmod/chown equivalents."""
        return dispatch(_unsupported("set_metadata"), flags)

    # ── Lifecycle ────────────────────────────────────────────────────

    def close_client(self) -> None:
        self.client.close()
