"""
Stat records for store objects.

Two ways of telling files from directories:

- files/stat (default): one request, authoritative Size and Type.
- cat-probe (legacy, for daemons without files/stat): HEAD cat looking for
  X-Content-Length, falling back to a streamed GET; a directory shows up
  as a daemon error with a fixed message.

Absence is a normal outcome (StatLookup.absent), never an exception.
"""

import logging
from typing import Optional

from .api_client import IpfsClient
from .config import STAT_CAT_PROBE
from .errors import DaemonError, IpfsError
from .models import (
    KIND_DIRECTORY, KIND_FILE, WRITE_SESSION_MODE, FILE_MODE,
    StatLookup, StatRecord, build_stat, parse_stat_body,
)
from .paths import to_absolute_store_path, to_store_path

log = logging.getLogger(__name__)

CONTENT_LENGTH_HEADER = "X-Content-Length"
DIRECTORY_MESSAGE = "this dag node is a directory"


def lookup_stat(client: IpfsClient, uri: str, timeout: Optional[float] = None) -> StatLookup:
    """Stat a virtual URI with the method the client's configuration selects."""
    if client.config.stat_method == STAT_CAT_PROBE:
        return probe_stat(client, uri, timeout)
    return files_stat(client, uri, timeout)


def files_stat(client: IpfsClient, uri: str, timeout: Optional[float] = None) -> StatLookup:
    """One files/stat round-trip. Never retries."""
    path = to_absolute_store_path(uri)
    try:
        data = client.files_stat(path, timeout)
        record = parse_stat_body(data)
    except DaemonError as e:
        log.debug(f"files/stat {path}: {e.message}")
        return StatLookup.absent(e)
    except IpfsError as e:
        return StatLookup.failed(e)
    return StatLookup.found(record)


def probe_stat(client: IpfsClient, uri: str, timeout: Optional[float] = None) -> StatLookup:
    """Legacy size/kind detection through the cat endpoint."""
    path = to_store_path(uri)
    try:
        size = _probe_size(client, path, timeout)
    except DaemonError as e:
        if e.message == DIRECTORY_MESSAGE:
            return StatLookup.found(build_stat(0, KIND_DIRECTORY))
        return StatLookup.absent(e)
    except IpfsError as e:
        return StatLookup.failed(e)
    return StatLookup.found(build_stat(size or 0, KIND_FILE))


def _probe_size(client: IpfsClient, path: str, timeout: Optional[float] = None):
    """Object size from HEAD if it carries the length header, else from GET."""
    try:
        head = client.cat_head(path, timeout)
        if CONTENT_LENGTH_HEADER in head.headers:
            return int(head.headers[CONTENT_LENGTH_HEADER])
    except DaemonError as e:
        # Some daemons refuse HEAD; only the GET reply is conclusive.
        log.debug(f"HEAD cat {path} refused ({e.status_code}), retrying with GET")

    response = client.cat(path, timeout)
    try:
        return response_size(response)
    finally:
        response.close()


def response_size(response):
    """Advertised body size, or None if the daemon does not say."""
    for header in (CONTENT_LENGTH_HEADER, "Content-Length"):
        value = response.headers.get(header)
        if value is not None:
            try:
                return int(value)
            except ValueError:
                continue
    return None


def session_stat(size, writable: bool = False) -> StatRecord:
    """fstat-style record for an open session."""
    return StatRecord(mode=WRITE_SESSION_MODE if writable else FILE_MODE, size=max(0, size or 0))
