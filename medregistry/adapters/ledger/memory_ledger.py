"""In-Memory Ledger Adapter.

This adapter implements the LedgerPort contract with plain dictionaries. It is
used for tests and for ephemeral runs, and simulates the optimistic concurrency
control of a real ledger: a commit fails with ConflictError when any key the
transaction read has been written by another transaction since.
"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional, Tuple

from medregistry.adapters.ledger.transaction import LedgerTransaction, ensure_committable
from medregistry.domain.ports import (
    ConflictError,
    KeyModification,
    LedgerPort,
    LedgerStub,
)

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_tx_id() -> str:
    return uuid.uuid4().hex


class InMemoryLedger(LedgerPort):
    """Dictionary-backed ledger with per-key versions and history.

    Parameters:
        clock: Callable returning the timestamp for new transactions (UTC)
        tx_id_factory: Callable returning a fresh transaction id

    Example Usage:
        ```python
        ledger = InMemoryLedger()
        dispatcher = RegistryDispatcher(ledger)
        dispatcher.invoke("createPatient", ["1", "Ali", "Cairo"])
        ```
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        tx_id_factory: Optional[Callable[[], str]] = None
    ):
        self._clock = clock or _utc_now
        self._tx_id_factory = tx_id_factory or _new_tx_id
        self._values: dict[str, bytes] = {}
        self._versions: dict[str, int] = {}
        self._history: dict[str, list[KeyModification]] = {}
        self._lock = threading.Lock()

    def begin_transaction(self) -> LedgerStub:
        return LedgerTransaction(self, self._tx_id_factory(), self._clock())

    def read_committed(self, key: str) -> Tuple[Optional[bytes], int]:
        with self._lock:
            return self._values.get(key), self._versions.get(key, 0)

    def history(self, key: str) -> Optional[Iterator[KeyModification]]:
        with self._lock:
            modifications = self._history.get(key)
            if modifications is None:
                return None
            snapshot = list(modifications)
        return iter(snapshot)

    def scan_prefix(self, prefix: str) -> Iterator[Tuple[str, bytes]]:
        with self._lock:
            matches = sorted(
                (key, value) for key, value in self._values.items() if key.startswith(prefix)
            )
        return iter(matches)

    def commit(self, stub: LedgerStub) -> None:
        transaction = ensure_committable(self, stub)

        with self._lock:
            for key, read_version in transaction.read_set.items():
                current_version = self._versions.get(key, 0)
                if current_version != read_version:
                    transaction.mark_finished()
                    raise ConflictError(
                        f"MVCC read conflict on key {key!r}: read version {read_version}, "
                        f"committed version {current_version}",
                        operation="commit",
                        details={"key": key, "tx_id": transaction.tx_id}
                    )

            for key, value in transaction.write_set.items():
                self._versions[key] = self._versions.get(key, 0) + 1
                if value is None:
                    self._values.pop(key, None)
                else:
                    self._values[key] = value
                self._history.setdefault(key, []).append(KeyModification(
                    tx_id=transaction.tx_id,
                    value=value,
                    timestamp=transaction.tx_timestamp,
                    is_delete=value is None,
                ))

            transaction.mark_finished()

        logger.debug(f"Committed transaction {transaction.tx_id} ({len(transaction.write_set)} writes)")
