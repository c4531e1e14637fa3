"""Application Settings and Configuration.

This module provides application-wide settings that combine configuration
from the configuration manager with application-specific defaults.
"""

import os
from typing import Optional

from medregistry import __version__
from medregistry.infrastructure.config_manager import ConfigManager, LedgerConfig

# Application metadata
APP_NAME = "MedRegistry"
APP_VERSION = __version__


class Settings:
    """Application settings loaded from configuration manager and environment.

    The ledger configuration is loaded lazily on first access so that importing
    this module never touches the environment file.
    """

    def __init__(self):
        """Initialize settings from environment."""
        self._ledger_config: Optional[LedgerConfig] = None
        self._config_manager: Optional[ConfigManager] = None

        self.app_name = os.getenv("MR_APP_NAME", APP_NAME)
        self.app_version = APP_VERSION

        # Logging
        self.log_level = os.getenv("MR_LOG_LEVEL", "INFO")
        self.log_json = os.getenv("MR_LOG_JSON", "false").lower() == "true"

    @property
    def config_manager(self) -> ConfigManager:
        if self._config_manager is None:
            self._config_manager = ConfigManager.from_environment()
        return self._config_manager

    @property
    def ledger_config(self) -> LedgerConfig:
        """Get ledger configuration from the configuration manager."""
        if self._ledger_config is None:
            self._ledger_config = self.config_manager.get_ledger_config()
        return self._ledger_config


# Global settings instance
settings = Settings()
