"""Ledger adapters for MedRegistry.

This package contains ledger adapters that implement the LedgerPort interface
for storing registry records and their version history.
"""

from medregistry.adapters.ledger.transaction import LedgerTransaction
from medregistry.adapters.ledger.memory_ledger import InMemoryLedger
from medregistry.adapters.ledger.duckdb_ledger import DuckDBLedger

__all__ = ["LedgerTransaction", "InMemoryLedger", "DuckDBLedger"]
