"""History Formatter.

Turns the ledger's version history for a key into the JSON report returned by
``getPatientHistorybyID``::

    [{"TxId": "...", "Value": {...}, "Timestamp": "...", "IsDelete": "false"}, ...]

Entries keep ledger order (oldest first). Deleted versions report ``null``.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from medregistry.domain.ports import KeyModification, MalformedRecordError

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f +0000 UTC"


class HistoryEntry(BaseModel):
    """One version of a record in a history report."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    tx_id: str = Field(..., alias="TxId")
    value: Optional[Any] = Field(None, alias="Value", description="Decoded JSON value, None for deletes")
    timestamp: str = Field(..., alias="Timestamp")
    is_delete: str = Field(..., alias="IsDelete", description="'true' or 'false'")


def format_timestamp(ts: datetime) -> str:
    """Render a ledger timestamp in UTC, e.g. ``2024-01-02 03:04:05.000000 +0000 UTC``."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def _decode_value(modification: KeyModification) -> Optional[Any]:
    if modification.is_delete or modification.value is None:
        return None
    try:
        return json.loads(modification.value)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedRecordError(
            f"History value of transaction {modification.tx_id} is not valid JSON: {str(e)}",
            details={"tx_id": modification.tx_id}
        ) from e


def build_history_report(modifications: Iterable[KeyModification]) -> list[HistoryEntry]:
    """Consume a version iterator once and build the ordered report.

    Parameters:
        modifications: Ledger versions in ledger iteration order

    Returns:
        list[HistoryEntry]: One entry per version, same order, no deduplication

    Raises:
        MalformedRecordError: If a non-deleted version is not valid JSON
    """
    entries = []
    for modification in modifications:
        entries.append(HistoryEntry(
            tx_id=modification.tx_id,
            value=_decode_value(modification),
            timestamp=format_timestamp(modification.timestamp),
            is_delete="true" if modification.is_delete else "false",
        ))
    logger.debug(f"Built history report with {len(entries)} entries")
    return entries


def format_history(modifications: Iterable[KeyModification]) -> bytes:
    """Build the history report and serialize it as a JSON array."""
    entries = build_history_report(modifications)
    return json.dumps([entry.model_dump(by_alias=True) for entry in entries]).encode("utf-8")
