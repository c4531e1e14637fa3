"""Domain Ports - Abstract Contracts for the Ledger.

This module defines the Port interfaces (abstract contracts) that ledger adapters
must implement, together with the Result type and the error taxonomy used by the
registry operations.

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Adapters (in-memory, DuckDB, ...) implement these ports
    - Registry operations only ever see a LedgerStub bound to one transaction
    - Concurrency control is owned by the LedgerPort (optimistic, validated at commit)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Optional, Generic, TypeVar, Union, Tuple

# Type variable for Result generic
T = TypeVar('T')


# ============================================================================
# Result Type for Success/Failure Communication
# ============================================================================

@dataclass(frozen=True)
class Result(Generic[T]):
    """Result type for communicating success or failure without exceptions.

    The dispatcher converts every operation outcome into a Result so that
    callers never have to catch domain exceptions.

    Attributes:
        success: True if the operation succeeded, False otherwise
        value: The successful result value (only present if success=True)
        error: Error message (only present if success=False)
        error_type: Error category (InvalidArgument, NotFound, ...)
        error_details: Additional error context (function, tx_id, ...)

    Example:
        ```python
        result = dispatcher.invoke("getPatientbyID", ["1"])
        if result.is_success():
            patient = decode_patient(result.value)
        else:
            print(result.error_type, result.error)
        ```
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_details: Optional[dict] = None

    @classmethod
    def success_result(cls, value: T) -> 'Result[T]':
        """Create a successful result.

        Parameters:
            value: The successful result value

        Returns:
            Result: Success result with the value
        """
        return cls(
            success=True,
            value=value,
            error=None,
            error_type=None,
            error_details=None
        )

    @classmethod
    def failure_result(
        cls,
        error: Union[str, Exception],
        error_type: Optional[str] = None,
        error_details: Optional[dict] = None
    ) -> 'Result[T]':
        """Create a failure result.

        Parameters:
            error: Error message or exception
            error_type: Error category; derived from the exception when omitted
            error_details: Additional context

        Returns:
            Result: Failure result with error information
        """
        error_message = str(error) if isinstance(error, Exception) else error
        if error_type is None:
            if isinstance(error, RegistryError):
                error_type = error.error_type
            elif isinstance(error, Exception):
                error_type = type(error).__name__
            else:
                error_type = "UnknownError"

        return cls(
            success=False,
            value=None,
            error=error_message,
            error_type=error_type,
            error_details=error_details or {}
        )

    def is_success(self) -> bool:
        """Check if result is successful."""
        return self.success

    def is_failure(self) -> bool:
        """Check if result is a failure."""
        return not self.success


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class RegistryError(Exception):
    """Base exception for all registry errors.

    Attributes:
        error_type: Stable category name reported in failure Results
        details: Additional error details (ids, keys, argument positions)
    """

    error_type = "RegistryError"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.details = details or {}


class InvalidArgumentError(RegistryError):
    """Raised on a wrong argument count, an empty argument or an unparsable id."""

    error_type = "InvalidArgument"


class AlreadyExistsError(RegistryError):
    """Raised when creating a record whose key is already present."""

    error_type = "AlreadyExists"


class NotFoundError(RegistryError):
    """Raised when a record (or its version history) does not exist."""

    error_type = "NotFound"


class AlreadyAssociatedError(RegistryError):
    """Raised when a disease is assigned twice to the same patient."""

    error_type = "AlreadyAssociated"


class MalformedRecordError(RegistryError):
    """Raised when stored bytes cannot be decoded into the expected record shape."""

    error_type = "MalformedRecord"


class BackingStoreError(RegistryError):
    """Raised when the ledger fails for transport or storage reasons.

    Attributes:
        operation: The ledger operation that failed (get_state, commit, ...)
    """

    error_type = "BackingStoreError"

    def __init__(self, message: str, operation: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, details)
        self.operation = operation


class ConflictError(BackingStoreError):
    """Raised at commit when a key read by the transaction changed since it was read."""

    error_type = "Conflict"


class UnknownOperationError(RegistryError):
    """Raised by the dispatcher for an operation name it does not route."""

    error_type = "UnknownOperation"


# ============================================================================
# Ledger Types
# ============================================================================

@dataclass(frozen=True)
class KeyModification:
    """One version of a key as recorded by the ledger.

    Attributes:
        tx_id: Identifier of the transaction that wrote this version
        value: Value written, or None for a delete
        timestamp: Commit timestamp of the transaction (UTC)
        is_delete: True when this version is a tombstone
    """
    tx_id: str
    value: Optional[bytes]
    timestamp: datetime
    is_delete: bool = False


class LedgerStub(ABC):
    """Transactional view of the ledger handed to one operation invocation.

    Reads see committed state and are recorded in the read set; writes are
    buffered and only become visible when the owning LedgerPort commits the
    transaction. A stub is used for exactly one invocation.
    """

    @property
    @abstractmethod
    def tx_id(self) -> str:
        """Identifier of the current transaction."""
        pass

    @property
    @abstractmethod
    def tx_timestamp(self) -> datetime:
        """Timestamp assigned to the current transaction (UTC)."""
        pass

    @abstractmethod
    def get_state(self, key: str) -> Optional[bytes]:
        """Return the committed value of key, or None when absent.

        Raises:
            BackingStoreError: On transport/storage failure (never on absence)
        """
        pass

    @abstractmethod
    def put_state(self, key: str, value: bytes) -> None:
        """Buffer a write of value under key.

        Raises:
            InvalidArgumentError: If value is empty (empty values mean delete)
        """
        pass

    @abstractmethod
    def delete_state(self, key: str) -> None:
        """Buffer a delete of key; the commit records a tombstone in its history."""
        pass

    @abstractmethod
    def create_composite_key(self, object_type: str, attributes: list[str]) -> str:
        """Build a composite key from an object type and ordered attributes."""
        pass

    @abstractmethod
    def get_history_for_key(self, key: str) -> Optional[Iterator[KeyModification]]:
        """Return the version history of key, oldest first.

        Returns:
            A lazy iterator of KeyModification, or None when the ledger knows
            the key was never written.
        """
        pass

    @abstractmethod
    def get_state_by_partial_composite_key(
        self,
        object_type: str,
        attributes: list[str]
    ) -> Iterator[Tuple[str, bytes]]:
        """Iterate (key, value) pairs whose composite key starts with the given parts."""
        pass

    def discard(self) -> None:
        """Abandon the transaction; buffered writes are dropped and further use fails.

        Safe to call after a commit. The default does nothing.
        """
        pass


class LedgerPort(ABC):
    """Abstract contract for the ledger backing store.

    Key Principles:
        - Atomic commit: a transaction's write set is applied entirely or not at all
        - Optimistic concurrency: commit fails with ConflictError if any key in the
          read set changed version after it was read
        - Every committed write appends one KeyModification to the key's history

    Example Usage:
        ```python
        ledger = InMemoryLedger()
        stub = ledger.begin_transaction()
        stub.put_state("Patient-1", b'{...}')
        ledger.commit(stub)
        ```
    """

    @abstractmethod
    def begin_transaction(self) -> LedgerStub:
        """Open a new transaction and return its stub."""
        pass

    @abstractmethod
    def commit(self, stub: LedgerStub) -> None:
        """Validate and apply the stub's write set.

        Raises:
            ConflictError: If a key in the read set changed since it was read
            BackingStoreError: If the write set could not be persisted
        """
        pass

    @abstractmethod
    def read_committed(self, key: str) -> Tuple[Optional[bytes], int]:
        """Return (value, version) of key; version is 0 for a never-written key."""
        pass

    @abstractmethod
    def history(self, key: str) -> Optional[Iterator[KeyModification]]:
        """Return the committed history of key, or None if never written."""
        pass

    @abstractmethod
    def scan_prefix(self, prefix: str) -> Iterator[Tuple[str, bytes]]:
        """Iterate committed (key, value) pairs whose key starts with prefix, ordered by key."""
        pass

    def close(self) -> None:
        """Release resources held by the ledger (optional)."""
        return None
