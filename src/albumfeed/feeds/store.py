"""JSON-file backed store of subscribed feeds."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from urllib.parse import urlparse

from pydantic import ValidationError as PydanticValidationError

from albumfeed.feeds.models import (
    FEED_TYPES,
    PRIORITIES,
    STATUSES,
    AlbumFeed,
    PublisherFeed,
    feed_adapter,
    feed_id_from_url,
    feed_list_adapter,
)
from albumfeed.utils.datetime import isoformat_z, now_utc
from albumfeed.utils.errors import (
    DuplicateError,
    NotFoundError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STORE_VERSION = 2

DEFAULT_FEEDS = [
    {
        "url": "https://www.doerfelverse.com/feeds/bloodshot-lies-album.xml",
        "type": "album",
        "title": "Bloodshot Lies - The Album",
    },
    {
        "url": "https://www.doerfelverse.com/feeds/think-ep.xml",
        "type": "album",
        "title": "Think EP",
    },
    {
        "url": "https://www.doerfelverse.com/feeds/ben-doerfel.xml",
        "type": "publisher",
        "title": "Ben Doerfel Music",
    },
]

PRIORITY_RANK = {priority: rank for rank, priority in enumerate(PRIORITIES)}


def validate_feed_url(url: str) -> str:
    """Return the stripped URL, or raise ValidationError if it is not http(s)."""
    url = (url or "").strip()
    if not url:
        raise ValidationError("URL is required")

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValidationError(
            f"Invalid URL format: {url}",
            suggestion="Use a full http:// or https:// feed URL",
        )
    return url


class FeedStore:
    """Persists the subscribed feed list in ``feeds.json``.

    The file keeps insertion order, which is the order ingestion passes
    iterate in. Writes are serialized by a lock and replace the file
    atomically so readers never observe a partial write.

    Example:
        >>> store = FeedStore(Path("data/feeds.json"))
        >>> feed = store.add("https://example.com/feed.xml", "album")
        >>> feed.id
        'example-com-feed-xml'
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()

    def list(self) -> list[AlbumFeed | PublisherFeed]:
        """All feeds in insertion order.

        Raises:
            StorageError: If the file cannot be read or is malformed
        """
        return self._read()

    def list_active(self) -> list[AlbumFeed | PublisherFeed]:
        return [feed for feed in self._read() if feed.status == "active"]

    def get(self, feed_id: str) -> AlbumFeed | PublisherFeed:
        """Get a single feed.

        Raises:
            NotFoundError: If no feed has this id
        """
        for feed in self._read():
            if feed.id == feed_id:
                return feed
        raise NotFoundError(f"Feed '{feed_id}' not found")

    def add(
        self,
        url: str,
        type: str = "album",
        title: str | None = None,
        priority: str = "core",
    ) -> AlbumFeed | PublisherFeed:
        """Add a feed.

        Args:
            url: Feed URL (http or https)
            type: ``album`` or ``publisher``
            title: Display title; defaults to ``Feed from <hostname>``
            priority: ``core``, ``extended`` or ``low``

        Returns:
            The created feed

        Raises:
            ValidationError: If the URL, type or priority is invalid
            DuplicateError: If the URL or its derived id already exists
        """
        url = validate_feed_url(url)
        if type not in FEED_TYPES:
            raise ValidationError(f'Type must be one of {", ".join(FEED_TYPES)}, got "{type}"')
        if priority not in PRIORITIES:
            raise ValidationError(
                f'Priority must be one of {", ".join(PRIORITIES)}, got "{priority}"'
            )

        feed_id = feed_id_from_url(url)
        now = now_utc()

        with self._lock:
            feeds = self._read()
            for existing in feeds:
                if existing.original_url == url or existing.id == feed_id:
                    raise DuplicateError(f"Feed already exists: {existing.id}")

            feed = feed_adapter.validate_python(
                {
                    "id": feed_id,
                    "original_url": url,
                    "type": type,
                    "title": (title or "").strip() or f"Feed from {urlparse(url).hostname}",
                    "priority": priority,
                    "status": "active",
                    "added_at": now,
                    "last_updated": now,
                }
            )
            feeds.append(feed)
            self._write(feeds)

        logger.info(f"Added {type} feed {feed_id}")
        return feed

    def remove(self, feed_id: str) -> None:
        """Remove a feed.

        Raises:
            NotFoundError: If no feed has this id
        """
        with self._lock:
            feeds = self._read()
            remaining = [feed for feed in feeds if feed.id != feed_id]
            if len(remaining) == len(feeds):
                raise NotFoundError(f"Feed '{feed_id}' not found")
            self._write(remaining)

        logger.info(f"Removed feed {feed_id}")

    def update(
        self,
        feed_id: str,
        status: str | None = None,
        priority: str | None = None,
    ) -> AlbumFeed | PublisherFeed:
        """Change a feed's status and/or priority.

        Raises:
            ValidationError: If a value is not allowed
            NotFoundError: If no feed has this id
        """
        if status is not None and status not in STATUSES:
            raise ValidationError(f'Status must be one of {", ".join(STATUSES)}, got "{status}"')
        if priority is not None and priority not in PRIORITIES:
            raise ValidationError(
                f'Priority must be one of {", ".join(PRIORITIES)}, got "{priority}"'
            )

        with self._lock:
            feeds = self._read()
            for index, feed in enumerate(feeds):
                if feed.id != feed_id:
                    continue
                changes: dict = {"last_updated": now_utc()}
                if status is not None:
                    changes["status"] = status
                if priority is not None:
                    changes["priority"] = priority
                feeds[index] = feed.model_copy(update=changes)
                self._write(feeds)
                return feeds[index]

        raise NotFoundError(f"Feed '{feed_id}' not found")

    def seed_defaults(self) -> int:
        """Add the default feeds that are not present yet.

        Returns:
            Number of feeds added
        """
        added = 0
        for default in DEFAULT_FEEDS:
            try:
                self.add(default["url"], default["type"], title=default["title"])
                added += 1
            except DuplicateError:
                continue
        return added

    def _read(self) -> list[AlbumFeed | PublisherFeed]:
        if not self.path.exists():
            return []

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Cannot read feed store {self.path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("feeds"), list):
            raise StorageError(f"Invalid feed store format in {self.path}")

        try:
            return feed_list_adapter.validate_python(data["feeds"])
        except PydanticValidationError as e:
            raise StorageError(f"Invalid feed entry in {self.path}: {e}") from e

    def _write(self, feeds: list[AlbumFeed | PublisherFeed]) -> None:
        payload = {
            "feeds": [feed.to_json_dict() for feed in feeds],
            "lastUpdated": isoformat_z(now_utc()),
            "version": STORE_VERSION,
        }

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=".feeds-", suffix=".json", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Cannot write feed store {self.path}: {e}") from e


def sort_by_priority(
    feeds: list[AlbumFeed | PublisherFeed],
) -> list[AlbumFeed | PublisherFeed]:
    """Core, extended, low; insertion order within a priority."""
    return sorted(feeds, key=lambda feed: PRIORITY_RANK[feed.priority])
