"""Tests for stat records and daemon reply views."""

import stat

import pytest

from ipfs_vfs.errors import DecodeFailure
from ipfs_vfs.models import (
    DIR_MODE, FILE_MODE, LookupStatus, StatLookup, StatRecord,
    build_stat, parse_link_names, parse_stat_body,
)


class TestStatRecord:
    """Tests for the fixed-shape metadata record."""

    def test_zero_template(self):
        record = StatRecord.zero()
        assert record.mode == 0
        assert record.size == 0
        assert record.block_size == -1
        assert record.blocks == -1
        assert not record.exists

    def test_as_tuple_in_posix_order(self):
        record = StatRecord(mode=FILE_MODE, size=7)
        values = record.as_tuple()
        assert len(values) == 13
        assert values[2] == FILE_MODE
        assert values[7] == 7

    def test_st_aliases(self):
        record = StatRecord(mode=DIR_MODE, size=0)
        assert record.st_mode == DIR_MODE
        assert record.st_size == 0


class TestBuildStat:
    """Mode bits encode the object kind."""

    def test_directory_bits(self):
        record = build_stat(0, "directory")
        assert record.is_dir
        assert not record.is_file
        assert stat.S_IMODE(record.mode) == 0o555

    def test_file_bits_are_read_only(self):
        record = build_stat(12, "file")
        assert record.is_file
        assert not record.is_dir
        assert stat.S_IMODE(record.mode) == 0o444
        assert record.size == 12

    def test_negative_size_clamped(self):
        assert build_stat(-5, "file").size == 0

    def test_unknown_kind(self):
        with pytest.raises(DecodeFailure):
            build_stat(1, "symlink")


class TestParseStatBody:

    def test_reads_size_and_type(self):
        record = parse_stat_body({"Size": 42, "Type": "file", "Blocks": 1, "Hash": "Qm"})
        assert record.size == 42
        assert record.is_file

    def test_missing_type(self):
        with pytest.raises(DecodeFailure):
            parse_stat_body({"Size": 1})

    def test_not_an_object(self):
        with pytest.raises(DecodeFailure):
            parse_stat_body(["Size", 1])


class TestParseLinkNames:

    def test_names_in_daemon_order(self):
        data = {"Objects": [{"Links": [{"Name": "z"}, {"Name": "a"}, {"Name": "m"}]}]}
        assert parse_link_names(data) == ["z", "a", "m"]

    def test_null_links_is_empty(self):
        assert parse_link_names({"Objects": [{"Hash": "Qm", "Links": None}]}) == []

    def test_no_objects(self):
        with pytest.raises(DecodeFailure):
            parse_link_names({"Objects": []})

    def test_missing_name(self):
        with pytest.raises(DecodeFailure):
            parse_link_names({"Objects": [{"Links": [{"Hash": "Qm"}]}]})


class TestStatLookup:

    def test_found(self):
        record = build_stat(1, "file")
        lookup = StatLookup.found(record)
        assert lookup.is_found
        assert lookup.record is record

    def test_absent_carries_zero_template(self):
        lookup = StatLookup.absent()
        assert lookup.status is LookupStatus.ABSENT
        assert lookup.record == StatRecord.zero()

    def test_failed_keeps_error(self):
        error = DecodeFailure("bad")
        lookup = StatLookup.failed(error)
        assert lookup.status is LookupStatus.FAILED
        assert lookup.error is error
        assert not lookup.is_found
