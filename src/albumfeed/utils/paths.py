"""Filesystem locations used by albumfeed."""

from pathlib import Path

import platformdirs

APP_NAME = "albumfeed"


def get_config_dir() -> Path:
    """Get the configuration directory (XDG config dir on Linux)."""
    return Path(platformdirs.user_config_dir(APP_NAME))


def get_config_file() -> Path:
    return get_config_dir() / "config.yaml"


def get_data_dir() -> Path:
    """Get the data directory holding feeds.json and parsed-feeds.json."""
    return Path(platformdirs.user_data_dir(APP_NAME))


def get_feeds_file(data_dir: Path | None = None) -> Path:
    return (data_dir or get_data_dir()) / "feeds.json"


def get_snapshot_file(data_dir: Path | None = None) -> Path:
    return (data_dir or get_data_dir()) / "parsed-feeds.json"
