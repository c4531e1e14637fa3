"""Domain layer for MedRegistry.

This module contains the registry records, key derivation and the history
formatter. Domain code depends only on Pydantic and the ports it defines.
"""

from .records import (
    Patient,
    Disease,
    Operation,
)

__all__ = [
    "Patient",
    "Disease",
    "Operation",
]
