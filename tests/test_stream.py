"""Tests for stream sessions: reads, seeks and atomic commits."""

import os

import pytest

from ipfs_vfs.config import SessionOptions
from ipfs_vfs.errors import (
    IsADirectory, NotFound, TransportFailure, UnsupportedMode, UnsupportedOperation,
)
from ipfs_vfs.models import FILE_MODE, WRITE_SESSION_MODE
from ipfs_vfs.stream import SessionState, StreamSession, normalize_mode

from tests.helpers import ABOUT, ROOT, added_payload


def open_session(client, uri=f"{ROOT}/about", mode="r", seekable=False):
    return StreamSession.open(client, uri, mode, SessionOptions(seekable=seekable))


class TestNormalizeMode:

    @pytest.mark.parametrize("mode,expected", [
        ("r", "r"), ("rb", "r"), ("rt", "r"), ("wb", "w"), ("x", "x"),
    ])
    def test_accepted(self, mode, expected):
        assert normalize_mode(mode) == expected

    @pytest.mark.parametrize("mode", ["a", "r+", "w+", "ab", ""])
    def test_rejected(self, mode):
        with pytest.raises(UnsupportedMode):
            normalize_mode(mode)


class TestOpen:
    """Open validates the target before returning a session."""

    def test_read_session_state(self, client):
        session = open_session(client)
        assert session.state is SessionState.READABLE
        assert session.size == len(ABOUT)
        session.close()

    def test_not_found(self, client):
        with pytest.raises(NotFound):
            open_session(client, f"{ROOT}/missing")

    def test_directory(self, client):
        with pytest.raises(IsADirectory):
            open_session(client, ROOT)

    def test_unsupported_mode_makes_no_request(self, client, daemon):
        with pytest.raises(UnsupportedMode):
            open_session(client, mode="a")
        assert daemon.requests == []

    def test_daemon_unreachable(self, client, daemon):
        daemon.offline = True
        with pytest.raises(TransportFailure):
            open_session(client)

    def test_write_open_is_local(self, client, daemon):
        session = open_session(client, "ipfs://new-file", mode="w")
        assert session.state is SessionState.WRITABLE
        assert daemon.requests == []
        session.close()


class TestRead:

    def test_read_all_then_eof(self, client):
        with open_session(client) as session:
            assert session.read() == ABOUT
            assert session.eof()
            assert session.read(10) == b""

    def test_chunked_reads(self, client):
        with open_session(client) as session:
            first = session.read(6)
            rest = session.read(1000)
            assert first == b"About "
            assert first + rest == ABOUT
            assert session.tell() == len(ABOUT)

    def test_not_eof_before_end(self, client):
        with open_session(client) as session:
            session.read(3)
            assert not session.eof()

    def test_write_refused_in_read_mode(self, client):
        with open_session(client) as session:
            with pytest.raises(UnsupportedOperation):
                session.write(b"nope")

    def test_flush_is_false_in_read_mode(self, client, daemon):
        with open_session(client) as session:
            assert session.flush() is False
        assert daemon.calls("add") == []


class TestSeek:
    """Only seekable sessions move backwards; each remote byte is fetched once."""

    def test_not_seekable_by_default(self, client):
        with open_session(client) as session:
            session.read(4)
            assert session.seek(0) is False
            assert session.tell() == 4

    def test_seekable_rereads_from_cache(self, client, daemon):
        with open_session(client, seekable=True) as session:
            head = session.read(5)
            assert session.seek(0)
            assert session.read(5) == head
            assert session.read() == ABOUT[5:]
        assert len([r for r in daemon.calls("cat") if r.method == "GET"]) == 1

    def test_seek_forward_then_back(self, client):
        with open_session(client, seekable=True) as session:
            assert session.seek(17)
            assert session.read(8) == b"We store"
            assert session.seek(-8, os.SEEK_CUR)
            assert session.read(2) == b"We"

    def test_seek_from_end(self, client):
        with open_session(client, seekable=True) as session:
            assert session.seek(-9, os.SEEK_END)
            assert session.read() == b"forever.\n"
            assert session.eof()

    def test_negative_position_rejected(self, client):
        with open_session(client, seekable=True) as session:
            assert session.seek(-1) is False
            assert session.tell() == 0


class TestWrite:
    """Write sessions commit as one add on flush."""

    def test_flush_commits_all_writes_once(self, client, daemon):
        session = open_session(client, "ipfs://notes.txt", mode="w")
        session.write(b"hello ")
        session.write(b"world")
        assert daemon.calls("add") == []
        assert session.flush() is True
        assert len(daemon.calls("add")) == 1
        assert added_payload(daemon.added[0]) == b"hello world"
        assert session.content_id == "QmNewObject"
        session.close()

    def test_refused_commit(self, client, daemon):
        daemon.add_status = 500
        session = open_session(client, "ipfs://notes.txt", mode="x")
        session.write(b"data")
        assert session.flush() is False
        assert session.content_id is None
        assert daemon.added == []
        session.close()

    def test_transport_failure_propagates(self, client, daemon):
        session = open_session(client, "ipfs://notes.txt", mode="w")
        session.write(b"data")
        daemon.offline = True
        with pytest.raises(TransportFailure):
            session.flush()
        assert daemon.added == []
        session.close()

    def test_close_does_not_flush(self, client, daemon):
        session = open_session(client, "ipfs://notes.txt", mode="w")
        session.write(b"lost")
        session.close()
        assert daemon.calls("add") == []

    def test_write_session_is_seekable(self, client):
        session = open_session(client, "ipfs://notes.txt", mode="w")
        session.write(b"abc")
        assert session.seekable
        assert session.seek(0)
        session.close()


class TestSessionMisc:

    def test_truncate_unsupported(self, client):
        with open_session(client) as session:
            with pytest.raises(UnsupportedOperation):
                session.truncate(0)

    def test_lock_always_granted(self, client):
        with open_session(client) as session:
            assert session.lock() is True

    def test_set_timeout_is_per_session(self, client):
        options = SessionOptions()
        with StreamSession.open(client, f"{ROOT}/about", "r", options) as session:
            assert session.set_timeout(2.5) is True
            assert session.options.timeout == 2.5
        assert SessionOptions().timeout == 30

    def test_stat(self, client):
        with open_session(client) as session:
            record = session.stat()
            assert record.mode == FILE_MODE
            assert record.size == len(ABOUT)
        writer = open_session(client, "ipfs://new", mode="w")
        writer.write(b"12345")
        assert writer.stat().mode == WRITE_SESSION_MODE
        assert writer.stat().size == 5
        writer.close()

    def test_close_is_idempotent(self, client):
        session = open_session(client)
        session.close()
        session.close()
        assert session.state is SessionState.CLOSED

    def test_closed_session_refuses_io(self, client):
        session = open_session(client)
        session.close()
        with pytest.raises(UnsupportedOperation):
            session.read()
