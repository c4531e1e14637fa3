"""Ledger Transaction Stub.

A LedgerTransaction is the LedgerStub handed to one operation invocation. It
records the version of every key it reads and buffers every write; the owning
LedgerPort validates the read set and applies the write set at commit.

Reads always see committed state, never the transaction's own pending writes.
"""

import logging
from datetime import datetime
from typing import Iterator, Optional, Tuple, TYPE_CHECKING

from medregistry.domain.keys import create_composite_key
from medregistry.domain.ports import (
    BackingStoreError,
    InvalidArgumentError,
    KeyModification,
    LedgerStub,
)

if TYPE_CHECKING:
    from medregistry.domain.ports import LedgerPort

logger = logging.getLogger(__name__)


class LedgerTransaction(LedgerStub):
    """Read-set/write-set transaction over a LedgerPort.

    Parameters:
        ledger: The ledger that created this transaction and will commit it
        tx_id: Transaction identifier recorded in key history
        tx_timestamp: Transaction timestamp (UTC) recorded in key history
    """

    def __init__(self, ledger: 'LedgerPort', tx_id: str, tx_timestamp: datetime):
        self.ledger = ledger
        self._tx_id = tx_id
        self._tx_timestamp = tx_timestamp
        self._read_set: dict[str, int] = {}
        # None marks a delete
        self._write_set: dict[str, Optional[bytes]] = {}
        self._finished = False

    @property
    def tx_id(self) -> str:
        return self._tx_id

    @property
    def tx_timestamp(self) -> datetime:
        return self._tx_timestamp

    @property
    def read_set(self) -> dict[str, int]:
        return dict(self._read_set)

    @property
    def write_set(self) -> dict[str, Optional[bytes]]:
        return dict(self._write_set)

    @property
    def finished(self) -> bool:
        return self._finished

    def mark_finished(self) -> None:
        self._finished = True

    def discard(self) -> None:
        if not self._finished:
            logger.debug(f"Discarding transaction {self._tx_id} ({len(self._write_set)} buffered writes)")
        self._write_set.clear()
        self.mark_finished()

    def _check_open(self, operation: str) -> None:
        if self._finished:
            raise BackingStoreError(
                f"Transaction {self._tx_id} is already finished",
                operation=operation
            )

    @staticmethod
    def _check_key(key: str) -> None:
        if not isinstance(key, str) or not key:
            raise InvalidArgumentError("ledger key must be a non-empty string")

    def get_state(self, key: str) -> Optional[bytes]:
        self._check_open("get_state")
        self._check_key(key)
        value, version = self.ledger.read_committed(key)
        # keep the first observed version; a later re-read must not mask a conflict
        self._read_set.setdefault(key, version)
        return value

    def put_state(self, key: str, value: bytes) -> None:
        self._check_open("put_state")
        self._check_key(key)
        if not value:
            raise InvalidArgumentError(f"value for key {key!r} must be non-empty; use delete_state to remove a key")
        self._write_set[key] = bytes(value)

    def delete_state(self, key: str) -> None:
        self._check_open("delete_state")
        self._check_key(key)
        self._write_set[key] = None

    def create_composite_key(self, object_type: str, attributes: list[str]) -> str:
        return create_composite_key(object_type, attributes)

    def get_history_for_key(self, key: str) -> Optional[Iterator[KeyModification]]:
        self._check_open("get_history_for_key")
        self._check_key(key)
        return self.ledger.history(key)

    def get_state_by_partial_composite_key(
        self,
        object_type: str,
        attributes: list[str]
    ) -> Iterator[Tuple[str, bytes]]:
        self._check_open("get_state_by_partial_composite_key")
        prefix = create_composite_key(object_type, attributes)
        return self.ledger.scan_prefix(prefix)


def ensure_committable(ledger: 'LedgerPort', stub: LedgerStub) -> LedgerTransaction:
    """Check stub is an open transaction created by ledger.

    Raises:
        BackingStoreError: If stub belongs to another ledger or was already finished
    """
    if not isinstance(stub, LedgerTransaction) or stub.ledger is not ledger:
        raise BackingStoreError("Transaction was not created by this ledger", operation="commit")
    if stub.finished:
        raise BackingStoreError(f"Transaction {stub.tx_id} is already finished", operation="commit")
    return stub
