"""Utility functions and helpers for albumfeed."""

from albumfeed.utils.errors import (
    AlbumFeedError,
    ConfigError,
    DuplicateError,
    FetchError,
    IngestionError,
    InvalidConfigError,
    NetworkError,
    NotFoundError,
    ParseError,
    StorageError,
    ValidationError,
)
from albumfeed.utils.paths import (
    get_config_dir,
    get_config_file,
    get_data_dir,
    get_feeds_file,
    get_snapshot_file,
)

__all__ = [
    # Errors
    "AlbumFeedError",
    "ConfigError",
    "DuplicateError",
    "FetchError",
    "IngestionError",
    "InvalidConfigError",
    "NetworkError",
    "NotFoundError",
    "ParseError",
    "StorageError",
    "ValidationError",
    # Paths
    "get_config_dir",
    "get_config_file",
    "get_data_dir",
    "get_feeds_file",
    "get_snapshot_file",
]
