"""Registry Record Models.

This module defines the records stored on the ledger: Patient, Disease and the
Operation entries that make up a patient's medical history.

Records are serialized as compact JSON using the stored field names
(``ID``, ``Name``, ``CreatedAt``, ...). Python code uses the snake_case attribute
names; the aliases only matter at the encode/decode boundary.

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Free-text fields are normalized to lower case by validators
    - A Patient embeds Disease snapshots by value, never by reference
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, ValidationError as PydanticValidationError

from medregistry.domain.ports import MalformedRecordError

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


def _lower(v):
    if isinstance(v, str):
        return v.lower()
    return v


class Disease(BaseModel):
    """Disease record (also the snapshot embedded in a Patient).

    Parameters:
        id: Caller-chosen identifier, unique among diseases
        name: Disease name (lower-cased)
        description: Free-text description (lower-cased)
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(..., alias="ID", ge=INT64_MIN, le=INT64_MAX)
    name: str = Field(..., alias="Name")
    description: str = Field(..., alias="Description")

    @field_validator("name", "description", mode="before")
    @classmethod
    def normalize_text(cls, v):
        return _lower(v)


class Operation(BaseModel):
    """One entry of a patient's medical history."""

    model_config = ConfigDict(populate_by_name=True)

    description: str = Field(..., alias="Description")
    created_at: int = Field(..., alias="CreatedAt", description="Unix timestamp (seconds)")

    @field_validator("description", mode="before")
    @classmethod
    def normalize_text(cls, v):
        return _lower(v)


class Patient(BaseModel):
    """Patient record.

    Parameters:
        id: Caller-chosen identifier, unique among patients, immutable
        name: Patient name (lower-cased)
        address: Patient address (lower-cased)
        created_at: Unix timestamp set once at creation
        updated_at: Unix timestamp refreshed on every mutation
        diseases: Disease snapshots assigned to the patient, in assignment order
        history: Append-only medical history
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(..., alias="ID", ge=INT64_MIN, le=INT64_MAX)
    name: str = Field(..., alias="Name")
    address: str = Field(..., alias="Address")
    created_at: int = Field(..., alias="CreatedAt")
    updated_at: int = Field(..., alias="UpdatedAt")
    diseases: list[Disease] = Field(default_factory=list, alias="Diseases")
    history: list[Operation] = Field(default_factory=list, alias="History")

    @field_validator("name", "address", mode="before")
    @classmethod
    def normalize_text(cls, v):
        return _lower(v)

    @field_validator("diseases", "history", mode="before")
    @classmethod
    def null_as_empty(cls, v):
        # records written by older clients store empty sequences as null
        return [] if v is None else v

    def has_disease(self, disease_id: int) -> bool:
        return any(d.id == disease_id for d in self.diseases)

    def touch(self, now: int) -> None:
        """Refresh updated_at without ever moving it backwards."""
        self.updated_at = max(self.updated_at, now)


def encode_record(record: BaseModel) -> bytes:
    """Serialize a record to its stored byte form."""
    return record.model_dump_json(by_alias=True).encode("utf-8")


def _decode(model: type, data: Union[bytes, str], kind: str, key: Optional[str]):
    try:
        return model.model_validate_json(data)
    except PydanticValidationError as e:
        raise MalformedRecordError(
            f"Failed to decode {kind} record{f' {key}' if key else ''}: {e.error_count()} validation error(s)",
            details={"key": key, "errors": e.errors(include_url=False, include_context=False)}
        ) from e


def decode_patient(data: Union[bytes, str], key: Optional[str] = None) -> Patient:
    """Decode stored bytes into a Patient.

    Raises:
        MalformedRecordError: If data is not valid JSON or not a patient shape
    """
    return _decode(Patient, data, "patient", key)


def decode_disease(data: Union[bytes, str], key: Optional[str] = None) -> Disease:
    """Decode stored bytes into a Disease.

    Raises:
        MalformedRecordError: If data is not valid JSON or not a disease shape
    """
    return _decode(Disease, data, "disease", key)
