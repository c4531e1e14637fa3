"""Tests for the history formatter."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from medregistry.domain.history import build_history_report, format_history, format_timestamp
from medregistry.domain.ports import KeyModification, MalformedRecordError

TS = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def modification(tx_id, value, is_delete=False, ts=TS):
    return KeyModification(tx_id=tx_id, value=value, timestamp=ts, is_delete=is_delete)


class TestFormatTimestamp:
    """Test suite for timestamp rendering."""

    def test_utc(self):
        assert format_timestamp(TS) == "2024-01-02 03:04:05.000000 +0000 UTC"

    def test_naive_is_treated_as_utc(self):
        assert format_timestamp(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02 03:04:05.000000 +0000 UTC"

    def test_other_zone_converted(self):
        cairo = timezone(timedelta(hours=2))
        ts = datetime(2024, 1, 2, 5, 4, 5, 123456, tzinfo=cairo)
        assert format_timestamp(ts) == "2024-01-02 03:04:05.123456 +0000 UTC"


class TestHistoryReport:
    """Test suite for building history reports."""

    def test_preserves_ledger_order(self):
        mods = [
            modification("tx-1", b'{"Name": "ali"}'),
            modification("tx-2", b'{"Name": "ali hassan"}'),
            modification("tx-3", b'{"Name": "ali hassan"}'),
        ]
        entries = build_history_report(mods)
        assert [e.tx_id for e in entries] == ["tx-1", "tx-2", "tx-3"]
        # no deduplication of identical values
        assert entries[1].value == entries[2].value == {"Name": "ali hassan"}

    def test_delete_reports_null(self):
        entries = build_history_report([
            modification("tx-1", b'{"ID": 1}'),
            modification("tx-2", None, is_delete=True),
        ])
        assert entries[0].is_delete == "false"
        assert entries[1].value is None
        assert entries[1].is_delete == "true"

    def test_consumes_generator_once(self):
        generator = (modification(f"tx-{i}", b"{}") for i in range(3))
        assert len(build_history_report(generator)) == 3
        assert list(generator) == []

    def test_empty_history(self):
        assert build_history_report(iter([])) == []
        assert json.loads(format_history(iter([]))) == []

    def test_invalid_json_value(self):
        with pytest.raises(MalformedRecordError, match="tx-9"):
            build_history_report([modification("tx-9", b"\xff\xfe")])


class TestFormatHistory:
    """Test suite for the serialized history payload."""

    def test_output_shape(self):
        payload = format_history([
            modification("tx-1", b'{"ID": 1, "Name": "ali"}'),
            modification("tx-2", None, is_delete=True),
        ])
        report = json.loads(payload)
        assert report == [
            {
                "TxId": "tx-1",
                "Value": {"ID": 1, "Name": "ali"},
                "Timestamp": "2024-01-02 03:04:05.000000 +0000 UTC",
                "IsDelete": "false",
            },
            {
                "TxId": "tx-2",
                "Value": None,
                "Timestamp": "2024-01-02 03:04:05.000000 +0000 UTC",
                "IsDelete": "true",
            },
        ]
