"""Key Codec.

Derives primary keys and secondary-index composite keys for registry records.
All functions are pure: equal ids always produce equal keys.

Primary keys are namespace-prefixed ("Patient-1", "Disease-1") so a patient and a
disease may share a numeric id. Index keys use the composite key layout
``\\x00<object_type>\\x00<attr>\\x00...`` which keeps them out of the primary
key space and makes them range-scannable by prefix.
"""

from typing import Iterable

from medregistry.domain.ports import InvalidArgumentError

PATIENT_KEY_PREFIX = "Patient-"
DISEASE_KEY_PREFIX = "Disease-"

PATIENT_INDEX_NAME = "patient~ID"
PATIENT_INDEX_TYPE = "patient"
DISEASE_INDEX_NAME = "Disease~ID"
DISEASE_INDEX_TYPE = "Disease"

COMPOSITE_KEY_NAMESPACE = "\x00"
MIN_UNICODE_RUNE = "\x00"

# Index entries carry no payload; an empty value would read as a delete.
INDEX_SENTINEL = b"\x00"


def patient_key(patient_id: int) -> str:
    return f"{PATIENT_KEY_PREFIX}{patient_id}"


def disease_key(disease_id: int) -> str:
    return f"{DISEASE_KEY_PREFIX}{disease_id}"


def _validate_component(component: str) -> None:
    if not isinstance(component, str):
        raise InvalidArgumentError(f"composite key component must be a string, got {type(component).__name__}")
    if MIN_UNICODE_RUNE in component:
        raise InvalidArgumentError(
            f"composite key component {component!r} must not contain U+0000",
            details={"component": component}
        )


def create_composite_key(object_type: str, attributes: Iterable[str]) -> str:
    """Build a composite key.

    Parameters:
        object_type: Leading component, usually the index name
        attributes: Ordered components to range query on

    Returns:
        str: ``\\x00`` + object_type + ``\\x00`` + each attribute followed by ``\\x00``

    Raises:
        InvalidArgumentError: If object_type is empty or any component contains U+0000
    """
    if not object_type:
        raise InvalidArgumentError("composite key object type must be a non-empty string")
    _validate_component(object_type)

    key = COMPOSITE_KEY_NAMESPACE + object_type + MIN_UNICODE_RUNE
    for attribute in attributes:
        _validate_component(attribute)
        key += attribute + MIN_UNICODE_RUNE
    return key


def split_composite_key(key: str) -> tuple[str, list[str]]:
    """Split a composite key back into (object_type, attributes)."""
    if not key.startswith(COMPOSITE_KEY_NAMESPACE):
        raise InvalidArgumentError(f"not a composite key: {key!r}")

    parts = key[len(COMPOSITE_KEY_NAMESPACE):].split(MIN_UNICODE_RUNE)
    # trailing delimiter leaves an empty last element
    if parts and parts[-1] == "":
        parts = parts[:-1]
    if not parts:
        raise InvalidArgumentError(f"not a composite key: {key!r}")
    return parts[0], parts[1:]


def patient_index_key(patient_id: int) -> str:
    return create_composite_key(PATIENT_INDEX_NAME, [PATIENT_INDEX_TYPE, str(patient_id)])


def disease_index_key(disease_id: int) -> str:
    return create_composite_key(DISEASE_INDEX_NAME, [DISEASE_INDEX_TYPE, str(disease_id)])
