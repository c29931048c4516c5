"""
Pytest fixtures for ipfs-vfs tests.

Clients and filesystems are wired to an in-memory FakeDaemon through
httpx.MockTransport. The default store is:

    QmRoot/            directory
    QmRoot/about       file
    QmRoot/contact     file
    QmRoot/help        file
"""

import httpx
import pytest

from ipfs_vfs import registry
from ipfs_vfs.api_client import IpfsClient
from ipfs_vfs.config import Configuration
from ipfs_vfs.filesystem import IpfsFileSystem
from tests.helpers import ABOUT, FakeDaemon


@pytest.fixture
def daemon() -> FakeDaemon:
    d = FakeDaemon()
    d.add_dir("QmRoot", ["about", "contact", "help"])
    d.add_file("QmRoot/about", ABOUT)
    d.add_file("QmRoot/contact", b"mail@example.org\n")
    d.add_file("QmRoot/help", b"Read the docs.\n")
    return d


@pytest.fixture
def config() -> Configuration:
    return Configuration(daemon_host="http://ipfs.test:5001")


@pytest.fixture
def client(daemon, config):
    c = IpfsClient(config, transport=httpx.MockTransport(daemon.handler))
    yield c
    c.close()


@pytest.fixture
def fs(config, client) -> IpfsFileSystem:
    return IpfsFileSystem(config, client=client)


@pytest.fixture
def make_client(daemon):
    """Factory for clients of the fake daemon with non-default Configuration."""
    clients = []

    def _make(**config_fields) -> IpfsClient:
        config = Configuration(daemon_host="http://ipfs.test:5001", **config_fields)
        c = IpfsClient(config, transport=httpx.MockTransport(daemon.handler))
        clients.append(c)
        return c

    yield _make
    for c in clients:
        c.close()


@pytest.fixture(autouse=True)
def clean_registry():
    """Drop handlers a test registered so schemes never leak between tests."""
    yield
    for scheme in registry.registered_schemes():
        registry.unregister(scheme)
