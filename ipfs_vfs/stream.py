"""
Stream sessions: open/read/write/seek/flush/close over the IPFS daemon.

Read sessions stream the body of a cat request. Write sessions never touch
the daemon until flush(): data accumulates in a local buffer and is sent as
a single multipart add, so the object either exists in full or not at all.

State machine:

    CLOSED -> OPENING -> READABLE | WRITABLE -> CLOSED
"""

import enum
import io
import logging
import os
from typing import Optional

import httpx

from .api_client import IpfsClient, decode_response
from .config import SessionOptions
from .errors import (
    DecodeFailure, IsADirectory, NotFound, TransportFailure,
    UnsupportedMode, UnsupportedOperation,
)
from .metadata import lookup_stat, response_size, session_stat
from .models import LookupStatus, StatRecord
from .paths import split_uri, to_store_path

log = logging.getLogger(__name__)

MODE_READ = "r"
MODE_WRITE = "w"
MODE_CREATE = "x"
SUPPORTED_MODES = (MODE_READ, MODE_WRITE, MODE_CREATE)

# Upper bound for a single chunk pulled from a remote body.
CHUNK_SIZE = 64 * 1024


def normalize_mode(mode: str) -> str:
    """Drop binary/text suffixes and reject anything but r, w, x."""
    normalized = mode.rstrip("bt")
    if normalized not in SUPPORTED_MODES:
        raise UnsupportedMode(f"Mode not supported: {mode}. Use 'r', 'w' or 'x'.")
    return normalized


# ── Byte sources ──────────────────────────────────────────────────────


class ByteSource:
    """Common interface of remote bodies and local buffers."""

    size: Optional[int] = None

    def seekable(self) -> bool:
        return False

    def read(self, count: int = -1) -> bytes:
        raise UnsupportedOperation(f"{type(self).__name__} is not readable")

    def write(self, data: bytes) -> int:
        raise UnsupportedOperation(f"{type(self).__name__} is not writable")

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        raise UnsupportedOperation(f"{type(self).__name__} is not seekable")

    def tell(self) -> int:
        raise NotImplementedError

    def eof(self) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        pass


class ResponseBody(ByteSource):
    """Forward-only view of a streamed HTTP response body."""

    def __init__(self, response: httpx.Response):
        self._response = response
        self._chunks = response.iter_bytes(CHUNK_SIZE)
        self._pending = b""
        self._position = 0
        self._exhausted = False
        self.size = response_size(response)

    def _fill(self, count: int) -> None:
        while len(self._pending) < count and not self._exhausted:
            try:
                self._pending += next(self._chunks)
            except StopIteration:
                self._exhausted = True
            except httpx.HTTPError as e:
                raise TransportFailure(f"Reading response body failed: {e}") from e

    def read(self, count: int = -1) -> bytes:
        if count is None or count < 0:
            self._fill(float("inf"))
            count = len(self._pending)
        else:
            self._fill(count)
        data, self._pending = self._pending[:count], self._pending[count:]
        self._position += len(data)
        return data

    def tell(self) -> int:
        return self._position

    def eof(self) -> bool:
        if self._pending:
            return False
        self._fill(1)
        return not self._pending

    def close(self) -> None:
        self._response.close()


class CachingBody(ByteSource):
    """Seekable wrapper that copies a remote body into memory as it is read.

    Each remote byte is fetched once; re-reads and seeks are served locally.
    Seeking relative to the end drains the remote body.
    """

    def __init__(self, remote: ResponseBody):
        self._remote = remote
        self._cache = io.BytesIO()
        self._position = 0

    @property
    def size(self) -> Optional[int]:
        if self._remote.size is not None:
            return self._remote.size
        if self._remote.eof():
            return self._cached
        return None

    @property
    def _cached(self) -> int:
        return self._cache.getbuffer().nbytes

    def _load_to(self, end: float) -> None:
        while self._cached < end and not self._remote.eof():
            wanted = CHUNK_SIZE if end == float("inf") else int(end) - self._cached
            chunk = self._remote.read(wanted)
            self._cache.seek(0, os.SEEK_END)
            self._cache.write(chunk)

    def seekable(self) -> bool:
        return True

    def read(self, count: int = -1) -> bytes:
        if count is None or count < 0:
            self._load_to(float("inf"))
        else:
            self._load_to(self._position + count)
        self._cache.seek(self._position)
        data = self._cache.read(count if count is not None else -1)
        self._position += len(data)
        return data

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        if whence == os.SEEK_SET:
            target = offset
        elif whence == os.SEEK_CUR:
            target = self._position + offset
        elif whence == os.SEEK_END:
            self._load_to(float("inf"))
            target = self._cached + offset
        else:
            raise ValueError(f"Invalid whence: {whence}")
        if target < 0:
            raise ValueError(f"Negative seek position {target}")
        self._position = target
        return target

    def tell(self) -> int:
        return self._position

    def eof(self) -> bool:
        if self._position < self._cached:
            return False
        return self._remote.eof()

    def close(self) -> None:
        self._remote.close()
        self._cache.close()


class LocalBuffer(ByteSource):
    """In-memory, seekable write target."""

    def __init__(self, initial: bytes = b""):
        self._buffer = io.BytesIO(initial)

    @property
    def size(self) -> int:
        return self._buffer.getbuffer().nbytes

    def seekable(self) -> bool:
        return True

    def read(self, count: int = -1) -> bytes:
        return self._buffer.read(count)

    def write(self, data: bytes) -> int:
        return self._buffer.write(data)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        return self._buffer.seek(offset, whence)

    def tell(self) -> int:
        return self._buffer.tell()

    def eof(self) -> bool:
        return self._buffer.tell() >= self.size

    def getvalue(self) -> bytes:
        return self._buffer.getvalue()

    def close(self) -> None:
        self._buffer.close()


# ── Session ───────────────────────────────────────────────────────────


class SessionState(enum.Enum):
    CLOSED = "closed"
    OPENING = "opening"
    READABLE = "readable"
    WRITABLE = "writable"


class StreamSession:
    """One open handle on a virtual URI. Not shared between callers."""

    def __init__(self, client: IpfsClient, uri: str, mode: str,
                 options: Optional[SessionOptions] = None):
        self._client = client
        self.uri = uri
        self.mode = mode
        self.options = options or SessionOptions()
        self.state = SessionState.CLOSED
        self._source: Optional[ByteSource] = None
        self._size: Optional[int] = None
        # Content identifier reported by the daemon after a successful flush.
        self.content_id: Optional[str] = None

    @classmethod
    def open(cls, client: IpfsClient, uri: str, mode: str,
             options: Optional[SessionOptions] = None) -> "StreamSession":
        """Open a session. Raises IpfsError subclasses on failure."""
        split_uri(uri)
        session = cls(client, uri, normalize_mode(mode), options)
        session.state = SessionState.OPENING
        if session.mode == MODE_READ:
            session._open_read()
        else:
            session._open_write()
        return session

    def _open_read(self) -> None:
        lookup = lookup_stat(self._client, self.uri, self.options.timeout)
        if lookup.status is LookupStatus.FAILED:
            raise lookup.error
        if lookup.status is LookupStatus.ABSENT:
            raise NotFound(f"The file '{self.uri}' does not exist.")
        if lookup.record.is_dir:
            raise IsADirectory(f"Can not open a directory: {self.uri}")

        response = self._client.cat(to_store_path(self.uri), timeout=self.options.timeout)
        body = ResponseBody(response)
        self._size = body.size if body.size is not None else lookup.record.size
        self._source = CachingBody(body) if self.options.seekable else body
        self.state = SessionState.READABLE
        log.debug(f"Opened {self.uri} for reading ({self._size} bytes)")

    def _open_write(self) -> None:
        # Writes always produce a new content identifier, so there is nothing
        # to validate remotely.
        self._source = LocalBuffer()
        self.state = SessionState.WRITABLE
        log.debug(f"Opened {self.uri} for writing")

    def _require_open(self) -> ByteSource:
        if self._source is None or self.state is SessionState.CLOSED:
            raise UnsupportedOperation(f"Session for {self.uri} is closed")
        return self._source

    @property
    def writable(self) -> bool:
        return self.mode != MODE_READ

    @property
    def seekable(self) -> bool:
        return self._source is not None and self._source.seekable()

    @property
    def size(self) -> Optional[int]:
        if self._source is not None and self._source.size is not None:
            return self._source.size
        return self._size

    def read(self, count: int = -1) -> bytes:
        """Up to count bytes from the current position; b"" at end of data."""
        return self._require_open().read(count)

    def write(self, data: bytes) -> int:
        source = self._require_open()
        if not self.writable:
            raise UnsupportedOperation(f"{self.uri} is open read-only")
        return source.write(data)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> bool:
        source = self._require_open()
        if not source.seekable():
            return False
        try:
            source.seek(offset, whence)
        except ValueError as e:
            log.debug(f"seek({offset}, {whence}) on {self.uri} rejected: {e}")
            return False
        return True

    def tell(self) -> int:
        return self._require_open().tell()

    def eof(self) -> bool:
        return self._require_open().eof()

    def flush(self) -> bool:
        """Commit the buffered write as one add request.

        Returns False in read mode and when the daemon does not answer 2xx.
        Transport failures propagate as TransportFailure.
        """
        source = self._require_open()
        if not self.writable:
            return False
        if source.seekable():
            source.seek(0)
        content = source.read()

        response = self._client.add(content, timeout=self.options.timeout)
        if not response.is_success:
            log.info(f"add for {self.uri} rejected with status {response.status_code}")
            return False

        self.content_id = _added_hash(response)
        log.info(f"Committed {len(content)} bytes from {self.uri} as {self.content_id}")
        return True

    def truncate(self, size: int = 0) -> bool:
        raise UnsupportedOperation("truncate() is not supported for IPFS resources.")

    def set_timeout(self, seconds: float) -> bool:
        """Per-session request timeout, used by the next daemon call."""
        self.options.timeout = seconds
        return True

    def lock(self, operation: int = 0) -> bool:
        """Advisory locks are meaningless for immutable objects; always granted."""
        return True

    def stat(self) -> StatRecord:
        return session_stat(self.size, writable=self.writable)

    def close(self) -> None:
        """Release the byte source. Does not flush."""
        if self._source is not None:
            self._source.close()
            self._source = None
        self.state = SessionState.CLOSED

    def __enter__(self) -> "StreamSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def _added_hash(response: httpx.Response) -> Optional[str]:
    """Hash field of an add reply, if the body carries one."""
    try:
        data = decode_response(response)
    except DecodeFailure as e:
        log.debug(f"add reply carried no readable hash: {e}")
        return None
    return data.get("Hash") if isinstance(data, dict) else None
