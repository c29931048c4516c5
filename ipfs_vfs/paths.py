"""Translation between ipfs:// virtual URIs and daemon store paths."""

from .errors import InvalidURI

SCHEME_SEPARATOR = "://"
STORE_PREFIX = "/ipfs/"

# Trimmed from both ends of a target, forward and back slashes alike.
_SLASHES = "/\\"


def split_uri(uri: str) -> tuple[str, str]:
    """Split a virtual URI into (scheme, rest). Raises InvalidURI."""
    if not isinstance(uri, str) or SCHEME_SEPARATOR not in uri:
        raise InvalidURI(f"Not a virtual URI: {uri!r}")
    scheme, rest = uri.split(SCHEME_SEPARATOR, 1)
    if not scheme:
        raise InvalidURI(f"Missing scheme in {uri!r}")
    return scheme, rest


def scheme_of(uri: str) -> str:
    return split_uri(uri)[0]


def to_store_path(uri: str) -> str:
    """Content identifier plus subpath, as used in cat/ls query strings.

    ipfs://QmHash/docs/ -> QmHash/docs
    """
    _, rest = split_uri(uri)
    return rest.strip(_SLASHES)


def to_absolute_store_path(uri: str) -> str:
    """Absolute daemon path for files/stat.

    ipfs://QmHash/docs -> /ipfs/QmHash/docs
    """
    _, rest = split_uri(uri.strip(_SLASHES))
    return f"{STORE_PREFIX}{rest.strip(_SLASHES)}"


def join_uri(uri: str, name: str) -> str:
    """Append a child name to a virtual URI."""
    scheme, rest = split_uri(uri)
    rest = rest.rstrip(_SLASHES)
    return f"{scheme}{SCHEME_SEPARATOR}{rest}/{name.strip(_SLASHES)}"
