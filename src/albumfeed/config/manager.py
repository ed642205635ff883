"""Configuration manager for loading and saving albumfeed config."""

from pathlib import Path

import yaml

from albumfeed.config.schema import GlobalConfig
from albumfeed.utils import paths
from albumfeed.utils.errors import InvalidConfigError


class ConfigManager:
    """Manages the albumfeed configuration file."""

    def __init__(self, config_dir: Path | None = None) -> None:
        """Initialize the config manager.

        Args:
            config_dir: Optional custom config directory. Defaults to XDG config dir.
        """
        self.config_dir = config_dir if config_dir is not None else paths.get_config_dir()
        self.config_file = self.config_dir / "config.yaml"

    def load_config(self) -> GlobalConfig:
        """Load and validate global configuration.

        Returns:
            Validated GlobalConfig instance

        Raises:
            InvalidConfigError: If config is invalid
        """
        if not self.config_file.exists():
            config = GlobalConfig()
            self.save_config(config)
            return config

        try:
            with open(self.config_file) as f:
                data = yaml.safe_load(f) or {}
            return GlobalConfig(**data)
        except Exception as e:
            raise InvalidConfigError(
                f"Invalid configuration in {self.config_file}: {e}"
            ) from e

    def save_config(self, config: GlobalConfig) -> None:
        """Save global configuration.

        Args:
            config: GlobalConfig instance to save
        """
        data = config.model_dump(mode="python")
        data["data_dir"] = str(data["data_dir"])

        self.config_dir.mkdir(parents=True, exist_ok=True)

        with open(self.config_file, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    def feeds_file(self, config: GlobalConfig | None = None) -> Path:
        """Path of feeds.json for the given (or loaded) config."""
        config = config or self.load_config()
        return paths.get_feeds_file(config.data_dir)

    def snapshot_file(self, config: GlobalConfig | None = None) -> Path:
        """Path of parsed-feeds.json for the given (or loaded) config."""
        config = config or self.load_config()
        return paths.get_snapshot_file(config.data_dir)
