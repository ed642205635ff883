"""Custom exceptions for albumfeed."""


class AlbumFeedError(Exception):
    """Base exception for all albumfeed errors."""

    status_code = 500


class ConfigError(AlbumFeedError):
    """Configuration-related errors."""

    pass


class InvalidConfigError(ConfigError):
    """Invalid configuration data."""

    pass


class ValidationError(AlbumFeedError):
    """Bad input (malformed URL, unknown feed type, ...)."""

    status_code = 400

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        super().__init__(message)
        self.suggestion = suggestion


class DuplicateError(AlbumFeedError):
    """Feed already exists in the store."""

    status_code = 409


class NotFoundError(AlbumFeedError):
    """Feed not found in the store."""

    status_code = 404


class StorageError(AlbumFeedError):
    """Feed store could not be read or written."""

    pass


class IngestionError(AlbumFeedError):
    """Per-feed failure during an ingestion pass.

    Subclasses carry ``stage`` so failures can be reported per pipeline step.
    """

    stage = "ingest"


class FetchError(IngestionError):
    """Feed server answered with a non-2xx status."""

    stage = "fetch"

    def __init__(self, status: int, url: str) -> None:
        super().__init__(f"HTTP {status} fetching {url}")
        self.status = status
        self.url = url


class NetworkError(IngestionError):
    """Timeout, DNS or connection failure."""

    stage = "fetch"

    def __init__(self, url: str, reason: str = "") -> None:
        message = f"Network error fetching {url}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.url = url
        self.reason = reason


class ParseError(IngestionError):
    """Feed document is not well-formed or lacks required fields."""

    stage = "parse"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
