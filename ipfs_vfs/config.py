"""
Configuration management for ipfs-vfs.

Process-wide settings are a single frozen Configuration built at
registration time. Sessions may shadow seekable/timeout for their own
lifetime through SessionOptions.

Config file: ~/.config/ipfs-vfs/config.json

    {
      "daemon_host": "http://127.0.0.1:5001",
      "http": {"timeout": 30, "verify": true},
      "seekable": false,
      "stat_method": "files-stat"
    }

Resolution (highest -> lowest): CLI flags, config file, defaults.
"""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

log = logging.getLogger(__name__)

DEFAULT_HOST = "http://127.0.0.1:5001"
DEFAULT_TIMEOUT = 30.0

STAT_FILES_STAT = "files-stat"
STAT_CAT_PROBE = "cat-probe"
STAT_METHODS = (STAT_FILES_STAT, STAT_CAT_PROBE)

# Certificate verification on, and no proxy picked up from the environment
# unless one is configured explicitly.
DEFAULT_HTTP_OPTIONS: dict[str, Any] = {
    "timeout": DEFAULT_TIMEOUT,
    "verify": True,
    "trust_env": False,
    "proxy": None,
}


def merge_http_options(options: Optional[dict] = None) -> dict[str, Any]:
    """Overlay caller options on the secure defaults."""
    merged = dict(DEFAULT_HTTP_OPTIONS)
    if options:
        merged.update(options)
    return merged


@dataclass(frozen=True)
class Configuration:
    """Process-wide settings, read by every session and never mutated."""
    daemon_host: str = DEFAULT_HOST
    http_options: dict = field(default_factory=merge_http_options)
    seekable: bool = False
    stat_method: str = STAT_FILES_STAT

    def __post_init__(self):
        if self.stat_method not in STAT_METHODS:
            raise ValueError(
                f"Unknown stat_method {self.stat_method!r}, expected one of {STAT_METHODS}"
            )
        object.__setattr__(self, "daemon_host", self.daemon_host.rstrip("/"))
        object.__setattr__(self, "http_options", merge_http_options(self.http_options))

    @property
    def timeout(self) -> float:
        return self.http_options.get("timeout", DEFAULT_TIMEOUT)

    def session_options(self, seekable: Optional[bool] = None,
                        timeout: Optional[float] = None) -> "SessionOptions":
        """Session settings with per-open overrides applied."""
        return SessionOptions(
            seekable=self.seekable if seekable is None else seekable,
            timeout=self.timeout if timeout is None else timeout,
        )


@dataclass
class SessionOptions:
    """Per-session overrides; live only as long as the session."""
    seekable: bool = False
    timeout: float = DEFAULT_TIMEOUT


# --- Path helpers ---

def get_config_dir() -> Path:
    """Get ipfs-vfs config directory (~/.config/ipfs-vfs/)."""
    xdg_config = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(xdg_config) / "ipfs-vfs"


def get_config_path() -> Path:
    return get_config_dir() / "config.json"


# --- Reading ---

def read_config_file(path: Optional[Path] = None) -> Optional[dict]:
    """Read config.json. Returns None if missing or unreadable."""
    path = path or get_config_path()
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError) as e:
        log.warning(f"Could not read ipfs-vfs config at {path}: {e}")
        return None
    if not isinstance(data, dict):
        log.warning(f"Ignoring ipfs-vfs config at {path}: top level is not an object")
        return None
    return data


def load_config(
    cli_host: Optional[str] = None,
    cli_timeout: Optional[float] = None,
    cli_seekable: Optional[bool] = None,
    path: Optional[Path] = None,
) -> Configuration:
    """Build the Configuration from CLI flags, the config file and defaults."""
    data = read_config_file(path) or {}

    http_options = dict(_typed(data, "http", dict, {}))
    timeout = http_options.get("timeout")
    if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, (int, float))):
        log.warning(f"Ignoring http timeout {timeout!r} in ipfs-vfs config, using {DEFAULT_TIMEOUT}")
        del http_options["timeout"]
    if cli_timeout is not None:
        http_options["timeout"] = cli_timeout

    stat_method = data.get("stat_method", STAT_FILES_STAT)
    if not isinstance(stat_method, str) or stat_method not in STAT_METHODS:
        log.warning(f"Unknown stat_method {stat_method!r} in config, using {STAT_FILES_STAT}")
        stat_method = STAT_FILES_STAT

    seekable = _typed(data, "seekable", bool, False) if cli_seekable is None else cli_seekable

    return Configuration(
        daemon_host=cli_host or _typed(data, "daemon_host", str, "") or DEFAULT_HOST,
        http_options=http_options,
        seekable=bool(seekable),
        stat_method=stat_method,
    )


def with_overrides(config: Configuration, **changes) -> Configuration:
    """Copy of a Configuration with some fields replaced."""
    return replace(config, **changes)


def _typed(data: dict, key: str, expected: type, default):
    """Config value if it has the expected type, else default with a warning."""
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, expected):
        log.warning(
            f"Ignoring {key!r} in ipfs-vfs config: expected {expected.__name__}, "
            f"got {type(value).__name__}"
        )
        return default
    return value
