"""Configuration Manager.

This module loads ledger configuration from environment variables or a JSON
file and validates it with Pydantic before any adapter is built.

Architecture:
    - Infrastructure layer, isolated from the domain
    - Type-safe configuration using Pydantic models
    - Fail-fast validation prevents runtime errors
"""

import os
import json
import logging
from pathlib import Path
from typing import Optional, Dict, Any
from enum import Enum

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)


class LedgerType(str, Enum):
    """Enumeration of supported ledger backends."""
    MEMORY = "memory"
    DUCKDB = "duckdb"


class LedgerConfig(BaseModel):
    """Ledger configuration model.

    Parameters:
        ledger_type: Backend to use (memory, duckdb)
        db_path: Path to the DuckDB file, or ':memory:' (duckdb only)
    """

    ledger_type: LedgerType = Field(default=LedgerType.MEMORY, description="Ledger backend")
    db_path: Optional[str] = Field(None, description="Path to DuckDB database file")

    @field_validator("ledger_type", mode="before")
    @classmethod
    def normalize_ledger_type(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            supported = [t.value for t in LedgerType]
            if v not in supported:
                raise ValueError(f"Unsupported ledger type: {v}. Supported: {supported}")
        return v

    @field_validator("db_path")
    @classmethod
    def validate_db_path(cls, v: Optional[str]) -> Optional[str]:
        """Validate the database directory exists (the file may not exist yet)."""
        if v is None or v == ":memory:":
            return v

        db_path_obj = Path(v)
        if not db_path_obj.parent.exists():
            raise ValueError(f"Database directory does not exist: {db_path_obj.parent}")
        return str(db_path_obj)

    @model_validator(mode='after')
    def check_path_matches_type(self) -> 'LedgerConfig':
        if self.ledger_type == LedgerType.MEMORY and self.db_path not in (None, ":memory:"):
            logger.warning("db_path is ignored for the in-memory ledger")
        return self

    def get_db_path(self) -> str:
        """Return the DuckDB path, defaulting to an in-memory database."""
        return self.db_path or ":memory:"


class ConfigManager:
    """Configuration manager for ledger settings.

    Example Usage:
        ```python
        # Load from environment variables
        config = ConfigManager.from_environment()
        ledger_config = config.get_ledger_config()

        # Load from file
        config = ConfigManager.from_file("config.json")
        ledger_config = config.get_ledger_config()
        ```
    """

    def __init__(self, config_data: Dict[str, Any]):
        self._config_data = config_data
        self._ledger_config: Optional[LedgerConfig] = None

    @classmethod
    def from_environment(cls) -> 'ConfigManager':
        """Load configuration from environment variables.

        Environment Variables:
            - MR_LEDGER_TYPE: Ledger backend (memory, duckdb)
            - MR_LEDGER_PATH: Path to the DuckDB file

        A ``.env`` file in the project root is loaded first if present; values
        already set in the environment win.

        Returns:
            ConfigManager instance
        """
        env_path = Path(__file__).parent.parent.parent / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            logger.debug(f"Loaded environment variables from {env_path}")

        config_data = {
            "ledger": {
                "ledger_type": os.getenv("MR_LEDGER_TYPE", LedgerType.MEMORY.value),
                "db_path": os.getenv("MR_LEDGER_PATH"),
            }
        }
        return cls(config_data)

    @classmethod
    def from_file(cls, config_path: str) -> 'ConfigManager':
        """Load configuration from a JSON file.

        Parameters:
            config_path: Path to configuration file

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config file is invalid JSON
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file, 'r') as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {str(e)}")

        return cls(config_data)

    def get_ledger_config(self) -> LedgerConfig:
        """Get the validated ledger configuration."""
        if self._ledger_config is None:
            ledger_data = self._config_data.get("ledger", {})
            self._ledger_config = LedgerConfig(**ledger_data)
        return self._ledger_config

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key.

        Parameters:
            key: Configuration key (supports dot notation, e.g., "ledger.db_path")
            default: Default value if key not found
        """
        keys = key.split(".")
        value = self._config_data

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default


# ============================================================================
# Convenience Functions
# ============================================================================

def get_ledger_config() -> LedgerConfig:
    """Load ledger configuration from the environment.

    Defaults to the in-memory ledger if nothing is configured.
    """
    config_manager = ConfigManager.from_environment()
    return config_manager.get_ledger_config()
