"""DuckDB Ledger Adapter.

This adapter implements the LedgerPort contract on DuckDB so the registry can
persist to a local file. Current values live in ``world_state``; every committed
write appends a row to ``key_history``.

Keys are stored hex-encoded: composite keys contain U+0000, and fixed-width
lowercase hex preserves the byte ordering needed for prefix scans.

Architecture:
    - Implements LedgerPort (Hexagonal Architecture)
    - Commits run inside one DuckDB transaction and roll back on any failure
    - Read-set validation against per-key versions gives optimistic concurrency
"""

import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Iterator, Optional, Tuple

import duckdb

from medregistry.adapters.ledger.transaction import LedgerTransaction, ensure_committable
from medregistry.domain.ports import (
    BackingStoreError,
    ConflictError,
    KeyModification,
    LedgerPort,
    LedgerStub,
)
from medregistry.infrastructure.config_manager import LedgerConfig, LedgerType

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MICROSECOND = timedelta(microseconds=1)


def _encode_key(key: str) -> str:
    return key.encode("utf-8").hex()


def _decode_key(key_hex: str) -> str:
    return bytes.fromhex(key_hex).decode("utf-8")


def _to_micros(ts: datetime) -> int:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return (ts - _EPOCH) // _ONE_MICROSECOND


def _from_micros(micros: int) -> datetime:
    return _EPOCH + timedelta(microseconds=micros)


class DuckDBLedger(LedgerPort):
    """DuckDB implementation of LedgerPort.

    Parameters:
        ledger_config: LedgerConfig from the configuration manager (preferred)
        db_path: Path to DuckDB database file (or ':memory:')
        clock: Callable returning the timestamp for new transactions (UTC)

    Example Usage:
        ```python
        from medregistry.infrastructure.config_manager import get_ledger_config

        ledger = DuckDBLedger(ledger_config=get_ledger_config())
        dispatcher = RegistryDispatcher(ledger)
        ```
    """

    def __init__(
        self,
        ledger_config: Optional[LedgerConfig] = None,
        db_path: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        if ledger_config:
            if ledger_config.ledger_type != LedgerType.DUCKDB:
                raise BackingStoreError(
                    f"LedgerConfig type '{ledger_config.ledger_type.value}' does not match DuckDB ledger",
                    operation="__init__"
                )
            self.db_path = ledger_config.get_db_path()
        else:
            self.db_path = db_path or ":memory:"

        if self.db_path != ":memory:":
            db_path_obj = Path(self.db_path)
            if not db_path_obj.parent.exists():
                raise BackingStoreError(
                    f"Database directory does not exist: {db_path_obj.parent}",
                    operation="__init__"
                )

        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._initialized = False
        # one connection shared by all transactions; DuckDB connections are not thread-safe
        self._lock = threading.RLock()

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        """Get or create the DuckDB connection, initializing the schema once."""
        if self._connection is None:
            try:
                self._connection = duckdb.connect(self.db_path)
                logger.info(f"Connected to DuckDB ledger: {self.db_path}")
            except duckdb.Error as e:
                raise BackingStoreError(
                    f"Failed to connect to DuckDB: {str(e)}",
                    operation="connect",
                    details={"db_path": self.db_path}
                ) from e
        if not self._initialized:
            self._initialize_schema(self._connection)
        return self._connection

    def _initialize_schema(self, conn: duckdb.DuckDBPyConnection) -> None:
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS world_state (
                    key_hex VARCHAR PRIMARY KEY,
                    value BLOB,
                    version BIGINT NOT NULL
                )
            """)
            # append-only
            conn.execute("""
                CREATE TABLE IF NOT EXISTS key_history (
                    key_hex VARCHAR NOT NULL,
                    version BIGINT NOT NULL,
                    tx_id VARCHAR NOT NULL,
                    value BLOB,
                    is_delete BOOLEAN NOT NULL,
                    tx_timestamp_us BIGINT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_key_history_key ON key_history(key_hex)")
        except duckdb.Error as e:
            raise BackingStoreError(
                f"Failed to initialize ledger schema: {str(e)}",
                operation="initialize_schema"
            ) from e
        self._initialized = True
        logger.info("Ledger schema initialized successfully")

    def begin_transaction(self) -> LedgerStub:
        return LedgerTransaction(self, uuid.uuid4().hex, self._clock())

    def read_committed(self, key: str) -> Tuple[Optional[bytes], int]:
        with self._lock:
            try:
                row = self._get_connection().execute(
                    "SELECT value, version FROM world_state WHERE key_hex = ?",
                    [_encode_key(key)]
                ).fetchone()
            except duckdb.Error as e:
                raise BackingStoreError(
                    f"Failed to read key: {str(e)}",
                    operation="get_state",
                    details={"key": key}
                ) from e
        if row is None:
            return None, 0
        value = bytes(row[0]) if row[0] is not None else None
        return value, row[1]

    def history(self, key: str) -> Optional[Iterator[KeyModification]]:
        with self._lock:
            try:
                rows = self._get_connection().execute(
                    """
                    SELECT tx_id, value, is_delete, tx_timestamp_us
                    FROM key_history
                    WHERE key_hex = ?
                    ORDER BY version
                    """,
                    [_encode_key(key)]
                ).fetchall()
            except duckdb.Error as e:
                raise BackingStoreError(
                    f"Failed to read key history: {str(e)}",
                    operation="get_history_for_key",
                    details={"key": key}
                ) from e
        if not rows:
            return None
        return (
            KeyModification(
                tx_id=tx_id,
                value=bytes(value) if value is not None else None,
                timestamp=_from_micros(ts_us),
                is_delete=is_delete,
            )
            for tx_id, value, is_delete, ts_us in rows
        )

    def scan_prefix(self, prefix: str) -> Iterator[Tuple[str, bytes]]:
        with self._lock:
            try:
                rows = self._get_connection().execute(
                    """
                    SELECT key_hex, value
                    FROM world_state
                    WHERE starts_with(key_hex, ?) AND value IS NOT NULL
                    ORDER BY key_hex
                    """,
                    [_encode_key(prefix)]
                ).fetchall()
            except duckdb.Error as e:
                raise BackingStoreError(
                    f"Failed to scan keys: {str(e)}",
                    operation="get_state_by_partial_composite_key",
                    details={"prefix": prefix}
                ) from e
        return ((_decode_key(key_hex), bytes(value)) for key_hex, value in rows)

    def commit(self, stub: LedgerStub) -> None:
        transaction = ensure_committable(self, stub)

        with self._lock:
            conn = self._get_connection()
            try:
                conn.begin()
                for key, read_version in transaction.read_set.items():
                    current_version = self._current_version(conn, key)
                    if current_version != read_version:
                        raise ConflictError(
                            f"MVCC read conflict on key {key!r}: read version {read_version}, "
                            f"committed version {current_version}",
                            operation="commit",
                            details={"key": key, "tx_id": transaction.tx_id}
                        )

                ts_us = _to_micros(transaction.tx_timestamp)
                for key, value in transaction.write_set.items():
                    key_hex = _encode_key(key)
                    current_version = self._current_version(conn, key)
                    new_version = current_version + 1
                    if current_version == 0:
                        conn.execute(
                            "INSERT INTO world_state (key_hex, value, version) VALUES (?, ?, ?)",
                            [key_hex, value, new_version]
                        )
                    else:
                        conn.execute(
                            "UPDATE world_state SET value = ?, version = ? WHERE key_hex = ?",
                            [value, new_version, key_hex]
                        )
                    conn.execute(
                        """
                        INSERT INTO key_history (key_hex, version, tx_id, value, is_delete, tx_timestamp_us)
                        VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        [key_hex, new_version, transaction.tx_id, value, value is None, ts_us]
                    )
                conn.commit()
            except ConflictError:
                conn.rollback()
                raise
            except duckdb.Error as e:
                conn.rollback()
                logger.error(f"Failed to commit transaction {transaction.tx_id}: {str(e)}", exc_info=True)
                raise BackingStoreError(
                    f"Failed to commit transaction: {str(e)}",
                    operation="commit",
                    details={"tx_id": transaction.tx_id}
                ) from e
            finally:
                transaction.mark_finished()

        logger.debug(f"Committed transaction {transaction.tx_id} ({len(transaction.write_set)} writes)")

    @staticmethod
    def _current_version(conn: duckdb.DuckDBPyConnection, key: str) -> int:
        row = conn.execute(
            "SELECT version FROM world_state WHERE key_hex = ?",
            [_encode_key(key)]
        ).fetchone()
        return row[0] if row else 0

    def close(self) -> None:
        """Close the DuckDB connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
                self._initialized = False
                logger.info("DuckDB ledger connection closed")
