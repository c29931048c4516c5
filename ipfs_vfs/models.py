"""Data models for the IPFS virtual filesystem."""

import enum
import stat
from dataclasses import dataclass, field, fields
from typing import Optional

from .errors import DecodeFailure, IpfsError

# Store objects are immutable: files are read-only, directories read+traverse.
FILE_MODE = stat.S_IFREG | 0o444
DIR_MODE = stat.S_IFDIR | 0o555
# Open write sessions report a writable regular file.
WRITE_SESSION_MODE = stat.S_IFREG | 0o644

KIND_FILE = "file"
KIND_DIRECTORY = "directory"


@dataclass
class StatRecord:
    """Fixed-shape metadata, modeled on POSIX stat.

    A record with mode 0 is the empty template returned for missing objects.
    """
    device: int = 0
    inode: int = 0
    mode: int = 0
    links: int = 0
    uid: int = 0
    gid: int = 0
    rdev: int = 0
    size: int = 0
    atime: int = 0
    mtime: int = 0
    ctime: int = 0
    block_size: int = -1
    blocks: int = -1

    @classmethod
    def zero(cls) -> "StatRecord":
        return cls()

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)

    @property
    def is_file(self) -> bool:
        return stat.S_ISREG(self.mode)

    @property
    def exists(self) -> bool:
        return self.mode != 0

    # os.stat_result-style aliases
    @property
    def st_mode(self) -> int:
        return self.mode

    @property
    def st_size(self) -> int:
        return self.size

    def as_tuple(self) -> tuple[int, ...]:
        """Values in POSIX stat order (dev, ino, mode, nlink, ...)."""
        return tuple(getattr(self, f.name) for f in fields(self))


def build_stat(size: int, kind: str) -> StatRecord:
    """Record for a store object of the given kind ("file" or "directory")."""
    if kind == KIND_DIRECTORY:
        mode = DIR_MODE
    elif kind == KIND_FILE:
        mode = FILE_MODE
    else:
        raise DecodeFailure(f"Unknown object type: {kind!r}")
    return StatRecord(mode=mode, size=max(0, int(size)))


class LookupStatus(enum.Enum):
    FOUND = "found"
    ABSENT = "absent"
    FAILED = "failed"


@dataclass
class StatLookup:
    """Outcome of a metadata request: found, absent, or failed.

    Absent and failed lookups still carry the zero template so callers that
    need a record shape can use it directly.
    """
    status: LookupStatus
    record: StatRecord = field(default_factory=StatRecord.zero)
    error: Optional[IpfsError] = None

    @classmethod
    def found(cls, record: StatRecord) -> "StatLookup":
        return cls(LookupStatus.FOUND, record)

    @classmethod
    def absent(cls, error: Optional[IpfsError] = None) -> "StatLookup":
        return cls(LookupStatus.ABSENT, error=error)

    @classmethod
    def failed(cls, error: IpfsError) -> "StatLookup":
        return cls(LookupStatus.FAILED, error=error)

    @property
    def is_found(self) -> bool:
        return self.status is LookupStatus.FOUND


def parse_stat_body(data) -> StatRecord:
    """Narrow view of a files/stat reply: only Size and Type are read."""
    if not isinstance(data, dict):
        raise DecodeFailure("files/stat reply is not a JSON object")
    try:
        size = int(data["Size"])
        kind = data["Type"]
    except (KeyError, TypeError, ValueError) as e:
        raise DecodeFailure(f"Malformed files/stat reply: {e}") from e
    return build_stat(size, kind)


def parse_link_names(data) -> list[str]:
    """Narrow view of an ls reply: Objects[0].Links[].Name, in daemon order."""
    try:
        links = data["Objects"][0]["Links"]
        # go-ipfs sends null instead of [] for empty directories
        return [link["Name"] for link in links or []]
    except (KeyError, IndexError, TypeError) as e:
        raise DecodeFailure(f"Malformed ls reply: {e}") from e


@dataclass
class InodeEntry:
    """Row of the FUSE inode table: a virtual URI and where it hangs."""
    name: str
    uri: Optional[str]
    parent: Optional[int]
    is_dir: bool = False
    size: int = 0
