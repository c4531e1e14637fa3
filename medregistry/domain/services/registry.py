"""Registry Operations.

This module implements the eight registry operations on top of a LedgerStub.
Each operation validates its string arguments completely before touching the
ledger, then performs a read-decode-modify-encode-write cycle.

Architecture:
    - Every operation has the signature ``(stub, args) -> Optional[bytes]``
    - Failures are raised as RegistryError subclasses; the dispatcher turns them
      into failure Results
    - No locking: concurrent writers are arbitrated by the ledger at commit, so
      every operation is safe to retry from scratch
"""

import logging
import re
from typing import Iterator, Optional, Sequence

from medregistry.domain.history import format_history
from medregistry.domain.keys import (
    DISEASE_INDEX_NAME,
    DISEASE_INDEX_TYPE,
    INDEX_SENTINEL,
    PATIENT_INDEX_NAME,
    PATIENT_INDEX_TYPE,
    disease_index_key,
    disease_key,
    patient_index_key,
    patient_key,
    split_composite_key,
)
from medregistry.domain.ports import (
    AlreadyAssociatedError,
    AlreadyExistsError,
    InvalidArgumentError,
    LedgerStub,
    NotFoundError,
)
from medregistry.domain.records import (
    INT64_MAX,
    INT64_MIN,
    Disease,
    Operation,
    Patient,
    decode_disease,
    decode_patient,
    encode_record,
)

logger = logging.getLogger(__name__)

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_ORDINALS = {1: "1st", 2: "2nd", 3: "3rd"}


def _ordinal(position: int) -> str:
    return _ORDINALS.get(position, f"{position}th")


# ============================================================================
# Argument Validation
# ============================================================================

def require_arg_count(args: Sequence[str], expected: int) -> None:
    if len(args) != expected:
        raise InvalidArgumentError(
            f"Incorrect number of arguments. Expecting {expected}",
            details={"expected": expected, "received": len(args)}
        )


def require_non_empty(args: Sequence[str], field_names: Sequence[str]) -> None:
    """Check every argument is a non-empty string.

    Parameters:
        args: Raw arguments, already count-checked against field_names
        field_names: Human-readable name of each positional argument
    """
    for position, (arg, field) in enumerate(zip(args, field_names), start=1):
        if not isinstance(arg, str) or len(arg) == 0:
            raise InvalidArgumentError(
                f"{field}: {_ordinal(position)} argument must be a non-empty string",
                details={"field": field, "position": position}
            )


def parse_int64(value: str, field: str, position: int) -> int:
    """Parse a base-10 signed 64-bit integer.

    Only an optional sign followed by ASCII digits is accepted; whitespace
    (including a trailing newline) and digit separators are rejected.

    Raises:
        InvalidArgumentError: If value is not a decimal integer in int64 range
    """
    message = f"{field}: {_ordinal(position)} argument must be a numeric 64bit of string"
    if not _INT_PATTERN.fullmatch(value):
        raise InvalidArgumentError(message, details={"field": field, "position": position, "value": value})
    parsed = int(value)
    if parsed < INT64_MIN or parsed > INT64_MAX:
        raise InvalidArgumentError(message, details={"field": field, "position": position, "value": value})
    return parsed


def validate_args(
    args: Sequence[str],
    field_names: Sequence[str],
    numeric_positions: Sequence[int] = (0,)
) -> list:
    """Run the shared validation sequence: count, non-empty, numeric parse.

    Parameters:
        args: Raw string arguments
        field_names: Name of each expected argument, in order
        numeric_positions: Zero-based positions holding int64 ids

    Returns:
        list: Arguments with numeric positions converted to int
    """
    require_arg_count(args, len(field_names))
    require_non_empty(args, field_names)

    parsed = list(args)
    for index in numeric_positions:
        parsed[index] = parse_int64(args[index], field_names[index], index + 1)
    return parsed


# ============================================================================
# Registry
# ============================================================================

class PatientRegistry:
    """Patient and disease registry operations.

    Example Usage:
        ```python
        registry = PatientRegistry()
        stub = ledger.begin_transaction()
        registry.create_patient(stub, ["1", "Ali", "Cairo"])
        ledger.commit(stub)
        ```
    """

    @staticmethod
    def _now(stub: LedgerStub) -> int:
        return int(stub.tx_timestamp.timestamp())

    @staticmethod
    def _load_patient(stub: LedgerStub, key: str) -> Patient:
        data = stub.get_state(key)
        if data is None:
            raise NotFoundError("patient does not exist", details={"key": key})
        return decode_patient(data, key)

    @staticmethod
    def _load_disease(stub: LedgerStub, key: str) -> Disease:
        data = stub.get_state(key)
        if data is None:
            raise NotFoundError("Disease does not exist", details={"key": key})
        return decode_disease(data, key)

    def create_patient(self, stub: LedgerStub, args: Sequence[str]) -> Optional[bytes]:
        """Create a patient. Args: ID, Name, Address."""
        patient_id, name, address = validate_args(args, ("ID", "Name", "Address"))
        logger.info(f"- start create patient {patient_id}")

        key = patient_key(patient_id)
        if stub.get_state(key) is not None:
            raise AlreadyExistsError(f"This patient already exists: {key}", details={"key": key})

        now = self._now(stub)
        patient = Patient(id=patient_id, name=name, address=address, created_at=now, updated_at=now)
        stub.put_state(key, encode_record(patient))
        # the index entry goes in the same transaction as the record
        stub.put_state(patient_index_key(patient_id), INDEX_SENTINEL)

        logger.info(f"- end create patient {patient_id}")
        return None

    def update_patient_data(self, stub: LedgerStub, args: Sequence[str]) -> Optional[bytes]:
        """Overwrite a patient's name and address. Args: ID, Name, Address."""
        patient_id, name, address = validate_args(args, ("ID", "Name", "Address"))
        logger.info(f"- start update patient {patient_id}")

        key = patient_key(patient_id)
        patient = self._load_patient(stub, key)
        patient.name = name.lower()
        patient.address = address.lower()
        patient.touch(self._now(stub))
        stub.put_state(key, encode_record(patient))

        logger.info(f"- end update patient {patient_id}")
        return None

    def add_patient_history(self, stub: LedgerStub, args: Sequence[str]) -> Optional[bytes]:
        """Append an operation to a patient's history. Args: ID, History."""
        patient_id, description = validate_args(args, ("ID", "History"))
        logger.info(f"- start add history to patient {patient_id}")

        key = patient_key(patient_id)
        patient = self._load_patient(stub, key)
        now = self._now(stub)
        patient.history.append(Operation(description=description, created_at=now))
        patient.touch(now)
        stub.put_state(key, encode_record(patient))

        logger.info(f"- end add history to patient {patient_id} ({len(patient.history)} entries)")
        return None

    def get_patient_by_id(self, stub: LedgerStub, args: Sequence[str]) -> Optional[bytes]:
        """Return the stored patient bytes verbatim. Args: ID."""
        (patient_id,) = validate_args(args, ("ID",))
        key = patient_key(patient_id)
        data = stub.get_state(key)
        if data is None:
            raise NotFoundError("patient does not exist", details={"key": key})
        logger.debug(f"- end get patient {patient_id}")
        return data

    def get_patient_history_by_id(self, stub: LedgerStub, args: Sequence[str]) -> Optional[bytes]:
        """Return the JSON history report of a patient key. Args: ID."""
        (patient_id,) = validate_args(args, ("ID",))
        key = patient_key(patient_id)
        modifications = stub.get_history_for_key(key)
        if modifications is None:
            raise NotFoundError("patient does not exist", details={"key": key})
        # an empty iterator is a valid report with zero entries
        return format_history(modifications)

    def create_disease(self, stub: LedgerStub, args: Sequence[str]) -> Optional[bytes]:
        """Create a disease. Args: ID, Name, Description."""
        disease_id, name, description = validate_args(args, ("ID", "Name", "Description"))
        logger.info(f"- start create disease {disease_id}")

        key = disease_key(disease_id)
        if stub.get_state(key) is not None:
            raise AlreadyExistsError(f"This Disease already exists: {key}", details={"key": key})

        disease = Disease(id=disease_id, name=name, description=description)
        stub.put_state(key, encode_record(disease))
        stub.put_state(disease_index_key(disease_id), INDEX_SENTINEL)

        logger.info(f"- end create disease {disease_id}")
        return None

    def get_disease_by_id(self, stub: LedgerStub, args: Sequence[str]) -> Optional[bytes]:
        """Return the stored disease bytes verbatim. Args: ID."""
        (disease_id,) = validate_args(args, ("ID",))
        key = disease_key(disease_id)
        data = stub.get_state(key)
        if data is None:
            raise NotFoundError("Disease does not exist", details={"key": key})
        return data

    def assign_disease_to_patient(self, stub: LedgerStub, args: Sequence[str]) -> Optional[bytes]:
        """Embed a disease snapshot in a patient. Args: PatientID, DiseaseID."""
        patient_id, disease_id = validate_args(args, ("PatientID", "DiseaseID"), numeric_positions=(0, 1))
        logger.info(f"- start assign disease {disease_id} to patient {patient_id}")

        key = patient_key(patient_id)
        patient = self._load_patient(stub, key)
        disease = self._load_disease(stub, disease_key(disease_id))

        if patient.has_disease(disease.id):
            raise AlreadyAssociatedError(
                f"This Patient:{patient.id}-{patient.name} already have this Disease:{disease.id}-{disease.name}",
                details={"patient_id": patient.id, "disease_id": disease.id}
            )

        patient.diseases.append(disease.model_copy(deep=True))
        patient.touch(self._now(stub))
        stub.put_state(key, encode_record(patient))

        logger.info(f"- end assign disease {disease_id} to patient {patient_id}")
        return None


# ============================================================================
# Index Enumeration
# ============================================================================

def _iter_index_ids(stub: LedgerStub, index_name: str, index_type: str) -> Iterator[int]:
    for key, _ in stub.get_state_by_partial_composite_key(index_name, [index_type]):
        _, attributes = split_composite_key(key)
        yield int(attributes[1])


def iter_patient_ids(stub: LedgerStub) -> Iterator[int]:
    """Yield every indexed patient id, in index key order (lexicographic on the decimal id)."""
    return _iter_index_ids(stub, PATIENT_INDEX_NAME, PATIENT_INDEX_TYPE)


def iter_disease_ids(stub: LedgerStub) -> Iterator[int]:
    """Yield every indexed disease id, in index key order (lexicographic on the decimal id)."""
    return _iter_index_ids(stub, DISEASE_INDEX_NAME, DISEASE_INDEX_TYPE)
