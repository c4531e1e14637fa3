"""Tests for the in-memory ledger adapter."""

import pytest

from medregistry.adapters.ledger import InMemoryLedger
from medregistry.domain.ports import BackingStoreError, ConflictError, InvalidArgumentError
from tests.conftest import START


class TestInMemoryLedger:
    """Test suite for InMemoryLedger."""

    def test_uncommitted_writes_are_invisible(self, ledger):
        stub = ledger.begin_transaction()
        stub.put_state("k", b"v")
        assert stub.get_state("k") is None
        assert ledger.read_committed("k") == (None, 0)

        ledger.commit(stub)
        assert ledger.read_committed("k") == (b"v", 1)

    def test_history_records_each_commit(self, ledger):
        for value in (b"a", b"b"):
            stub = ledger.begin_transaction()
            stub.put_state("k", value)
            ledger.commit(stub)

        history = list(ledger.history("k"))
        assert [m.value for m in history] == [b"a", b"b"]
        assert [m.tx_id for m in history] == ["tx-1", "tx-2"]
        assert history[0].timestamp == START
        assert not any(m.is_delete for m in history)

    def test_history_of_unknown_key(self, ledger):
        assert ledger.history("missing") is None

    def test_delete_records_tombstone(self, ledger):
        stub = ledger.begin_transaction()
        stub.put_state("k", b"a")
        ledger.commit(stub)
        stub = ledger.begin_transaction()
        stub.delete_state("k")
        ledger.commit(stub)

        assert ledger.read_committed("k") == (None, 2)
        last = list(ledger.history("k"))[-1]
        assert last.is_delete and last.value is None

    def test_read_conflict(self, ledger):
        first = ledger.begin_transaction()
        second = ledger.begin_transaction()
        first.get_state("k")
        second.get_state("k")
        first.put_state("k", b"1")
        second.put_state("k", b"2")

        ledger.commit(first)
        with pytest.raises(ConflictError) as exc_info:
            ledger.commit(second)
        assert exc_info.value.details["key"] == "k"
        assert ledger.read_committed("k") == (b"1", 1)

    def test_blind_writes_do_not_conflict(self, ledger):
        first = ledger.begin_transaction()
        second = ledger.begin_transaction()
        first.put_state("k", b"1")
        second.put_state("k", b"2")
        ledger.commit(first)
        ledger.commit(second)
        assert ledger.read_committed("k") == (b"2", 2)

    def test_commit_is_atomic(self, ledger):
        stub = ledger.begin_transaction()
        stub.get_state("a")
        stub.put_state("a", b"1")
        stub.put_state("b", b"2")

        other = ledger.begin_transaction()
        other.put_state("a", b"x")
        ledger.commit(other)

        with pytest.raises(ConflictError):
            ledger.commit(stub)
        assert ledger.read_committed("b") == (None, 0)

    def test_finished_transaction_rejected(self, ledger):
        stub = ledger.begin_transaction()
        ledger.commit(stub)
        with pytest.raises(BackingStoreError):
            ledger.commit(stub)
        with pytest.raises(BackingStoreError):
            stub.put_state("k", b"v")

    def test_discarded_transaction_rejected(self, ledger):
        stub = ledger.begin_transaction()
        stub.put_state("k", b"v")
        stub.discard()
        stub.discard()

        assert stub.write_set == {}
        with pytest.raises(BackingStoreError):
            ledger.commit(stub)
        assert ledger.read_committed("k") == (None, 0)
        assert ledger.history("k") is None

    def test_foreign_transaction_rejected(self, ledger):
        stub = InMemoryLedger().begin_transaction()
        with pytest.raises(BackingStoreError):
            ledger.commit(stub)

    def test_empty_value_rejected(self, ledger):
        stub = ledger.begin_transaction()
        with pytest.raises(InvalidArgumentError):
            stub.put_state("k", b"")
        with pytest.raises(InvalidArgumentError):
            stub.put_state("", b"v")

    def test_partial_composite_scan_is_ordered(self, ledger):
        stub = ledger.begin_transaction()
        for attr in ("b", "a", "c"):
            stub.put_state(stub.create_composite_key("idx", ["t", attr]), b"\x00")
        stub.put_state(stub.create_composite_key("other", ["t", "a"]), b"\x00")
        ledger.commit(stub)

        reader = ledger.begin_transaction()
        keys = [key for key, _ in reader.get_state_by_partial_composite_key("idx", ["t"])]
        assert keys == [reader.create_composite_key("idx", ["t", a]) for a in ("a", "b", "c")]

    def test_default_factories(self):
        ledger = InMemoryLedger()
        first, second = ledger.begin_transaction(), ledger.begin_transaction()
        assert first.tx_id != second.tx_id
        assert first.tx_timestamp.tzinfo is not None
