"""
IPFS content as a hierarchical filesystem.

    from ipfs_vfs import register

    fs = register(host="http://127.0.0.1:5001")
    handle = fs.open("ipfs://QmHash/readme.md")
    if handle is not False:
        data = fs.read(handle)
        fs.close(handle)

open() returns False when the path cannot be opened, so check the result
before using the session as a context manager.

The FUSE mount lives in ipfs_vfs.fuse_ops (install the "fuse" extra).
"""

from .config import Configuration, SessionOptions
from .directory import DirectoryCursor
from .dispatcher import StatFlag
from .errors import (
    DaemonError, DecodeFailure, InvalidURI, IpfsError, IsADirectory, NotFound,
    TransportFailure, UnsupportedMode, UnsupportedOperation,
)
from .filesystem import IpfsFileSystem
from .models import StatLookup, StatRecord
from .registry import get_filesystem, register, unregister
from .stream import StreamSession

__all__ = [
    "Configuration",
    "SessionOptions",
    "DirectoryCursor",
    "StatFlag",
    "DaemonError",
    "DecodeFailure",
    "InvalidURI",
    "IpfsError",
    "IsADirectory",
    "NotFound",
    "TransportFailure",
    "UnsupportedMode",
    "UnsupportedOperation",
    "IpfsFileSystem",
    "StatLookup",
    "StatRecord",
    "get_filesystem",
    "register",
    "unregister",
    "StreamSession",
]
