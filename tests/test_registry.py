"""Tests for scheme registration."""

from unittest.mock import patch

import pytest

from ipfs_vfs import registry
from ipfs_vfs.config import DEFAULT_HOST, Configuration
from ipfs_vfs.filesystem import IpfsFileSystem

from tests.helpers import ABOUT, ROOT


class TestRegister:

    def test_defaults(self):
        fs = registry.register()
        assert isinstance(fs, IpfsFileSystem)
        assert fs.scheme == "ipfs"
        assert fs.config.daemon_host == DEFAULT_HOST
        assert registry.registered_schemes() == ["ipfs"]

    def test_host_and_http_options(self):
        fs = registry.register("ipfs", "http://node:5001/", {"timeout": 4})
        assert fs.config.daemon_host == "http://node:5001"
        assert fs.config.timeout == 4
        assert fs.config.http_options["trust_env"] is False

    def test_session_defaults(self):
        fs = registry.register(seekable=True)
        assert fs.config.seekable is True

    def test_explicit_config(self):
        config = Configuration(daemon_host="http://other:5001")
        assert registry.register(config=config).config is config

    def test_reregistering_replaces_and_closes(self):
        first = registry.register(host="http://a:5001")
        with patch.object(first, "close_client") as close_client:
            second = registry.register(host="http://b:5001")
        close_client.assert_called_once()
        assert registry.get_filesystem("ipfs") is second

    def test_several_schemes(self):
        registry.register("ipfs")
        registry.register("ipfs-local", "http://localhost:5002")
        assert registry.registered_schemes() == ["ipfs", "ipfs-local"]
        assert registry.get_filesystem("ipfs-local://QmX").config.daemon_host == "http://localhost:5002"


class TestUnregister:

    def test_unregister(self):
        registry.register()
        assert registry.unregister() is True
        assert registry.registered_schemes() == []

    def test_unregister_unknown(self):
        assert registry.unregister("nothing") is False


class TestLookup:

    def test_unknown_scheme(self):
        with pytest.raises(KeyError):
            registry.get_filesystem("ipfs://QmRoot")

    def test_module_level_helpers(self, config, client):
        registry.register(config=config, client=client)
        assert registry.exists(f"{ROOT}/about")
        assert registry.stat(ROOT).is_dir
        handle = registry.open(f"{ROOT}/about", "rb")
        try:
            assert handle.read() == ABOUT
        finally:
            handle.close()
