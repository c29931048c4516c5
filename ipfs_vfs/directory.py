"""Restartable directory cursor over one ls reply."""

import logging
from typing import Iterator, Optional

from .api_client import IpfsClient
from .models import parse_link_names
from .paths import to_store_path

log = logging.getLogger(__name__)


class DirectoryCursor:
    """Ordered child names of one directory, in the order the daemon sent them.

    rewind() does not reset an index; it issues a fresh ls and rebuilds the
    cursor, so a second traversal may see different children.
    """

    def __init__(self, client: IpfsClient, uri: str, names: list[str]):
        self._client = client
        self.uri = uri
        self._names = names
        self._index = 0
        self.closed = False

    @classmethod
    def open(cls, client: IpfsClient, uri: str) -> "DirectoryCursor":
        """List a directory. Raises on transport or decode failure."""
        return cls(client, uri, cls._fetch(client, uri))

    @staticmethod
    def _fetch(client: IpfsClient, uri: str) -> list[str]:
        path = to_store_path(uri)
        names = parse_link_names(client.ls(path))
        log.debug(f"ls {path}: {len(names)} entries")
        return names

    def next(self) -> Optional[str]:
        """The next child name, or None once the listing is exhausted."""
        if self.closed or self._index >= len(self._names):
            return None
        name = self._names[self._index]
        self._index += 1
        return name

    def rewind(self) -> None:
        """Re-list the directory and start over.

        On failure the cursor is left empty rather than holding the old names.
        """
        self._names = []
        self._index = 0
        self._names = self._fetch(self._client, self.uri)
        self.closed = False

    def close(self) -> None:
        self._names = []
        self._index = 0
        self.closed = True

    def __iter__(self) -> Iterator[str]:
        while True:
            name = self.next()
            if name is None:
                return
            yield name

    def __len__(self) -> int:
        return len(self._names)
