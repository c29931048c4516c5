"""HTTP API client for the IPFS daemon."""

import logging
from typing import Optional

import httpx

from .config import Configuration
from .errors import DaemonError, DecodeFailure, TransportFailure

log = logging.getLogger(__name__)

API_PREFIX = "/api/v0"

# httpx.Client keyword arguments we accept from Configuration.http_options
_CLIENT_OPTIONS = ("timeout", "verify", "trust_env", "proxy", "headers", "cert", "transport")


class IpfsClient:
    """Synchronous HTTP client for the daemon's /api/v0 surface.

    Owns one httpx.Client for its whole lifetime. Network failures and error
    replies are raised as TransportFailure / DaemonError; malformed JSON as
    DecodeFailure.
    """

    def __init__(self, config: Configuration, transport: Optional[httpx.BaseTransport] = None):
        self.config = config
        self.api_url = config.daemon_host

        options = {k: v for k, v in config.http_options.items() if k in _CLIENT_OPTIONS}
        if options.get("proxy") is None:
            options.pop("proxy", None)
        if transport is not None:
            options["transport"] = transport
        self._client = httpx.Client(base_url=self.api_url, **options)

    def _send(self, method: str, op: str, params: Optional[dict] = None,
              files: Optional[dict] = None, stream: bool = False,
              timeout: Optional[float] = None) -> httpx.Response:
        """Send one request; transport errors become TransportFailure."""
        extra = {} if timeout is None else {"timeout": timeout}
        request = self._client.build_request(
            method, f"{API_PREFIX}/{op}", params=params, files=files, **extra
        )
        log.debug(f"{method} {request.url}")
        try:
            return self._client.send(request, stream=stream)
        except httpx.HTTPError as e:
            raise TransportFailure(f"{method} {op} failed: {e}") from e

    def _raise_for_status(self, response: httpx.Response, path: Optional[str] = None) -> None:
        """Raise DaemonError for non-2xx replies, closing streamed bodies."""
        if response.is_success:
            return
        try:
            response.read()
            message = _error_message(response)
        except httpx.HTTPError as e:
            log.debug(f"Error body from {response.request.url} unreadable: {e}")
            message = response.reason_phrase
        finally:
            response.close()
        raise DaemonError(response.status_code, message, path)

    def _get_json(self, op: str, path: str, timeout: Optional[float] = None) -> dict:
        response = self._send("GET", op, params={"arg": path}, timeout=timeout)
        self._raise_for_status(response, path)
        return decode_response(response)

    def cat(self, path: str, timeout: Optional[float] = None) -> httpx.Response:
        """Streamed GET /cat. The caller owns (and must close) the response."""
        response = self._send("GET", "cat", params={"arg": path}, stream=True, timeout=timeout)
        self._raise_for_status(response, path)
        return response

    def cat_head(self, path: str, timeout: Optional[float] = None) -> httpx.Response:
        """HEAD /cat, used by the legacy size probe."""
        response = self._send("HEAD", "cat", params={"arg": path}, timeout=timeout)
        self._raise_for_status(response, path)
        return response

    def add(self, content: bytes, timeout: Optional[float] = None) -> httpx.Response:
        """Multipart POST /add with a single "file" field.

        The status is not checked here; callers decide what counts as a commit.
        """
        return self._send("POST", "add", files={"file": ("file", content)}, timeout=timeout)

    def ls(self, path: str, timeout: Optional[float] = None) -> dict:
        return self._get_json("ls", path, timeout)

    def files_stat(self, path: str, timeout: Optional[float] = None) -> dict:
        return self._get_json("files/stat", path, timeout)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()


def decode_response(response: httpx.Response) -> dict:
    """Decode a JSON API reply."""
    try:
        return response.json()
    except ValueError as e:
        raise DecodeFailure(f"Invalid JSON from {response.request.url}: {e}") from e


def _error_message(response: httpx.Response) -> str:
    """Daemon error text: the JSON Message field when present, else raw body."""
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(data, dict) and data.get("Message"):
        return str(data["Message"])
    return response.text[:200]
