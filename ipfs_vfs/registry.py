"""
Process-wide registration of virtual URI schemes.

register() is called once at startup, before any session exists. It builds
the Configuration and the one HTTP client, and maps the scheme to an
IpfsFileSystem. Registering the same scheme again replaces the handler.
"""

import logging
from typing import Optional

from .api_client import IpfsClient
from .config import DEFAULT_HOST, Configuration, with_overrides
from .dispatcher import StatFlag
from .filesystem import IpfsFileSystem
from .paths import SCHEME_SEPARATOR, scheme_of

log = logging.getLogger(__name__)

DEFAULT_SCHEME = "ipfs"

_handlers: dict[str, IpfsFileSystem] = {}


def register(scheme: str = DEFAULT_SCHEME, host: str = DEFAULT_HOST,
             http_options: Optional[dict] = None,
             config: Optional[Configuration] = None,
             client: Optional[IpfsClient] = None,
             **session_defaults) -> IpfsFileSystem:
    """Install the handler for scheme:// URIs.

    session_defaults may set seekable and stat_method for every session.
    """
    if config is None:
        config = Configuration(daemon_host=host, http_options=http_options or {})
    if session_defaults:
        config = with_overrides(config, **session_defaults)

    previous = _handlers.pop(scheme, None)
    if previous is not None:
        log.info(f"Replacing {scheme}{SCHEME_SEPARATOR} handler ({previous.config.daemon_host})")
        previous.close_client()

    fs = IpfsFileSystem(config, client=client, scheme=scheme)
    _handlers[scheme] = fs
    log.debug(f"Registered {scheme}{SCHEME_SEPARATOR} -> {config.daemon_host}")
    return fs


def unregister(scheme: str = DEFAULT_SCHEME) -> bool:
    """Remove a handler. Returns True if one was installed."""
    fs = _handlers.pop(scheme, None)
    if fs is None:
        return False
    fs.close_client()
    return True


def registered_schemes() -> list[str]:
    return sorted(_handlers)


def get_filesystem(uri_or_scheme: str) -> IpfsFileSystem:
    """Handler for a scheme name or a full virtual URI. KeyError if none."""
    scheme = scheme_of(uri_or_scheme) if SCHEME_SEPARATOR in uri_or_scheme else uri_or_scheme
    try:
        return _handlers[scheme]
    except KeyError:
        raise KeyError(f"No handler registered for {scheme}{SCHEME_SEPARATOR}") from None


def open(uri: str, mode: str = "r", flags: int = StatFlag.NONE, **options):
    """Open a virtual URI with whichever handler owns its scheme."""
    return get_filesystem(uri).open(uri, mode, flags, **options)


def stat(uri: str, flags: int = StatFlag.NONE):
    return get_filesystem(uri).stat(uri, flags)


def exists(uri: str) -> bool:
    return get_filesystem(uri).exists(uri)
