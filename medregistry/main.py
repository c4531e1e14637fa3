"""Process bootstrap for MedRegistry.

Builds the configured ledger adapter and the dispatcher that fronts it.

Architecture:
    - Ledger adapter is chosen via the configuration manager
    - Domain code only ever sees the LedgerPort/LedgerStub contracts
"""

import logging
from typing import Optional

from medregistry.adapters.ledger import DuckDBLedger, InMemoryLedger
from medregistry.dispatcher import RegistryDispatcher
from medregistry.domain.ports import LedgerPort
from medregistry.infrastructure.config_manager import LedgerConfig, LedgerType
from medregistry.infrastructure.settings import settings

logger = logging.getLogger(__name__)


def create_ledger_adapter(ledger_config: Optional[LedgerConfig] = None) -> LedgerPort:
    """Create the ledger adapter described by configuration.

    Parameters:
        ledger_config: Explicit configuration; loaded from the environment if omitted

    Raises:
        ValueError: If the ledger type is unsupported
    """
    ledger_config = ledger_config or settings.ledger_config

    if ledger_config.ledger_type == LedgerType.DUCKDB:
        logger.info(f"Initializing DuckDB ledger with path: {ledger_config.get_db_path()}")
        return DuckDBLedger(ledger_config=ledger_config)
    elif ledger_config.ledger_type == LedgerType.MEMORY:
        logger.info("Initializing in-memory ledger")
        return InMemoryLedger()
    else:
        raise ValueError(f"Unsupported ledger type: {ledger_config.ledger_type}")


def create_dispatcher(ledger_config: Optional[LedgerConfig] = None) -> RegistryDispatcher:
    """Create a dispatcher over a freshly built ledger adapter."""
    return RegistryDispatcher(create_ledger_adapter(ledger_config))
