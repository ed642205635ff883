"""Configuration loading and logging setup."""

from albumfeed.config.logging import setup_logging
from albumfeed.config.manager import ConfigManager
from albumfeed.config.schema import ApiConfig, FetchConfig, GlobalConfig

__all__ = ["ApiConfig", "ConfigManager", "FetchConfig", "GlobalConfig", "setup_logging"]
