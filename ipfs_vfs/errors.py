"""Exception hierarchy for the IPFS virtual filesystem.

Everything raised inside the session layer derives from IpfsError so the
dispatcher can translate it into the quiet/loud filesystem contract.
"""

from typing import Optional


class IpfsError(Exception):
    """Base class for all session-layer failures."""


class InvalidURI(IpfsError, ValueError):
    """The path is not a scheme://... virtual URI."""


class NotFound(IpfsError):
    """The daemon has no object at the requested path."""


class IsADirectory(IpfsError):
    """A directory was opened as a file."""


class UnsupportedMode(IpfsError):
    """Open mode outside r, w and x."""


class UnsupportedOperation(IpfsError):
    """Mutation the immutable store cannot perform."""


class TransportFailure(IpfsError):
    """Network error, timeout or error reply from the daemon."""


class DaemonError(TransportFailure):
    """The daemon answered with an HTTP error status."""

    def __init__(self, status_code: int, message: str, path: Optional[str] = None):
        self.status_code = status_code
        self.message = message
        self.path = path
        where = f" ({path})" if path else ""
        super().__init__(f"IPFS daemon returned {status_code}{where}: {message}")


class DecodeFailure(IpfsError):
    """The daemon reply was not the JSON shape we expect."""
