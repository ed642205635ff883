"""Pre-parsed feed snapshot (``parsed-feeds.json``).

An ingestion pass can be written to disk so read-only endpoints can serve
albums and publishers without fetching every feed on each request. Failed
feeds are kept in the snapshot with ``parseStatus: "error"`` so they stay
traceable.
"""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import aiofiles
from pydantic import ValidationError as PydanticValidationError

from albumfeed.feeds.models import Album, AlbumFeed, Publisher, PublisherFeed
from albumfeed.pipeline.orchestrator import IngestionResult
from albumfeed.utils.datetime import isoformat_z, now_utc
from albumfeed.utils.errors import NotFoundError, StorageError

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class SnapshotStore:
    """Reads and writes the parsed-feed snapshot file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        return self.path.exists()

    def build(
        self,
        feeds: list[AlbumFeed | PublisherFeed],
        result: IngestionResult,
    ) -> dict[str, Any]:
        """Build the snapshot document for one ingestion pass.

        Every feed in ``feeds`` gets an entry, successful or not.
        """
        parsed: dict[str, Album | Publisher] = {}
        for item in result.items:
            feed_id = item.feed_id if isinstance(item, Album) else item.id
            if feed_id:
                parsed[feed_id] = item
        failures = {failure.feed_id: failure for failure in result.failures}
        finished = result.finished_at or now_utc()

        entries = []
        for feed in feeds:
            entry = feed.to_json_dict()
            entry["lastParsed"] = isoformat_z(finished)

            record = parsed.get(feed.id)
            if isinstance(record, Album):
                entry["parseStatus"] = "success"
                entry["parsedData"] = {"album": record.to_json_dict()}
            elif isinstance(record, Publisher):
                entry["parseStatus"] = "success"
                data = record.to_json_dict()
                entry["parsedData"] = {
                    "publisherInfo": data["publisherInfo"],
                    "publisherItems": data["publisherItems"],
                }
            else:
                failure = failures.get(feed.id)
                entry["parseStatus"] = "error"
                entry["parsedData"] = None
                entry["error"] = {
                    "stage": failure.stage if failure else "unknown",
                    "kind": failure.error_kind if failure else "Missing",
                    "message": failure.message if failure else "No result recorded",
                }
            entries.append(entry)

        return {
            "feeds": entries,
            "lastUpdated": isoformat_z(finished),
            "version": SNAPSHOT_VERSION,
        }

    async def write(
        self,
        feeds: list[AlbumFeed | PublisherFeed],
        result: IngestionResult,
    ) -> dict[str, Any]:
        """Write a snapshot for an ingestion pass, replacing any previous one.

        Raises:
            StorageError: If the file cannot be written
        """
        document = self.build(feeds, result)
        temp_file: Path | None = None

        try:
            await asyncio.to_thread(self.path.parent.mkdir, parents=True, exist_ok=True)
            # Concurrent writers each get their own temp file
            fd, temp_name = await asyncio.to_thread(
                tempfile.mkstemp,
                prefix=f".{self.path.stem}-",
                suffix=".tmp",
                dir=self.path.parent,
            )
            os.close(fd)
            temp_file = Path(temp_name)
            async with aiofiles.open(temp_file, "w", encoding="utf-8") as f:
                await f.write(json.dumps(document, indent=2))
            await asyncio.to_thread(os.replace, temp_file, self.path)
        except OSError as e:
            if temp_file is not None:
                await asyncio.to_thread(temp_file.unlink, missing_ok=True)
            raise StorageError(f"Cannot write snapshot {self.path}: {e}") from e

        logger.info(f"Wrote snapshot of {len(document['feeds'])} feeds to {self.path}")
        return document

    async def load(self) -> dict[str, Any]:
        """Load the snapshot document.

        Raises:
            NotFoundError: If no snapshot has been written
            StorageError: If the file is unreadable or malformed
        """
        if not self.path.exists():
            raise NotFoundError("Parsed feeds not found")

        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                document = json.loads(await f.read())
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read parsed feeds: {e}") from e

        if not isinstance(document, dict) or not isinstance(document.get("feeds"), list):
            raise StorageError("Invalid parsed feeds format")
        return document

    async def publishers(self) -> list[Publisher]:
        """Publishers that parsed successfully in the snapshot."""
        document = await self.load()
        publishers = []

        for entry in document["feeds"]:
            parsed_data = entry.get("parsedData")
            if (
                entry.get("type") != "publisher"
                or entry.get("parseStatus") != "success"
                or not parsed_data
            ):
                continue

            try:
                publishers.append(
                    Publisher.model_validate(
                        {
                            "id": entry.get("id"),
                            "title": entry.get("title"),
                            "originalUrl": entry.get("originalUrl"),
                            "parseStatus": "success",
                            "lastParsed": entry.get("lastParsed"),
                            "publisherInfo": parsed_data.get("publisherInfo"),
                            "publisherItems": parsed_data.get("publisherItems")
                            or parsed_data.get("remoteItems")
                            or [],
                        }
                    )
                )
            except PydanticValidationError as e:
                logger.warning(
                    f"Skipping invalid publisher entry {entry.get('id')}: {e}",
                    extra={"feed_id": entry.get("id"), "stage": "snapshot", "error_kind": "ValidationError"},
                )

        return publishers

    async def publisher(self, key: str) -> Publisher:
        """Find one publisher by feed id or feedGuid.

        ``key`` matches the feed id exactly, the id with a ``-publisher``
        suffix, a substring of the id, the publisher's own feedGuid or the
        feedGuid of any item it lists. The first matching publisher wins.

        Raises:
            NotFoundError: If no snapshot exists or nothing matches
        """
        key = key.strip()
        if not key:
            raise NotFoundError("Publisher not found")

        for publisher in await self.publishers():
            feed_id = publisher.id or ""
            guid = publisher.publisher_info.feed_guid or ""
            if (
                feed_id in (key, f"{key}-publisher")
                or key in feed_id
                or key in guid
                or any(key in (item.feed_guid or "") for item in publisher.publisher_items)
            ):
                logger.debug(f"Publisher {key!r} resolved to {feed_id}")
                return publisher

        raise NotFoundError("Publisher not found")

    async def albums(self) -> list[Album]:
        """Albums that parsed successfully in the snapshot."""
        document = await self.load()
        albums = []

        for entry in document["feeds"]:
            album = (entry.get("parsedData") or {}).get("album")
            if entry.get("parseStatus") != "success" or not album:
                continue

            try:
                albums.append(
                    Album.model_validate(
                        {
                            **album,
                            "feedId": entry.get("id"),
                            "feedUrl": entry.get("originalUrl"),
                            "lastUpdated": album.get("lastUpdated") or entry.get("lastParsed"),
                        }
                    )
                )
            except PydanticValidationError as e:
                logger.warning(
                    f"Skipping invalid album entry {entry.get('id')}: {e}",
                    extra={"feed_id": entry.get("id"), "stage": "snapshot", "error_kind": "ValidationError"},
                )

        return albums

    async def parsed_feeds(self, limit: int = 0, offset: int = 0) -> dict[str, Any]:
        """Snapshot with a validation summary and optional pagination."""
        document = await self.load()
        feeds = document["feeds"]

        document["validation"] = validate_snapshot(feeds)

        if limit > 0:
            document["feeds"] = feeds[offset : offset + limit]
            document["pagination"] = {
                "total": len(feeds),
                "limit": limit,
                "offset": offset,
                "hasMore": offset + limit < len(feeds),
            }

        return document


def validate_snapshot(feeds: list[dict[str, Any]]) -> dict[str, Any]:
    """Summarize missing fields and suspicious entries in snapshot feeds."""
    warnings: list[str] = []

    for feed in feeds:
        feed_id = feed.get("id") or "unknown"
        if not feed.get("id"):
            warnings.append(f"Feed missing ID: {feed.get('originalUrl') or 'unknown'}")
        if not feed.get("originalUrl"):
            warnings.append(f"Feed missing originalUrl: {feed_id}")
        if not feed.get("parseStatus"):
            warnings.append(f"Feed missing parseStatus: {feed_id}")

        if feed.get("parseStatus") != "success":
            continue

        parsed_data = feed.get("parsedData") or {}
        if feed.get("type") == "publisher":
            items = parsed_data.get("publisherItems") or parsed_data.get("remoteItems") or []
            empty_titles = sum(1 for item in items if not (item.get("title") or "").strip())
            if empty_titles:
                warnings.append(f"Publisher feed {feed_id} has {empty_titles} items with empty titles")
            for item in items:
                if not item.get("feedGuid"):
                    warnings.append(f"Publisher item missing feedGuid: {feed_id}")
        elif feed.get("type") == "album":
            album = parsed_data.get("album")
            if album is not None:
                if not album.get("title"):
                    warnings.append(f"Album missing title: {feed_id}")
                if not album.get("artist"):
                    warnings.append(f"Album missing artist: {feed_id}")
                if not isinstance(album.get("tracks"), list):
                    warnings.append(f"Album missing or invalid tracks: {feed_id}")

    return {
        "timestamp": isoformat_z(now_utc()),
        "totalFeeds": len(feeds),
        "successfulFeeds": sum(1 for f in feeds if f.get("parseStatus") == "success"),
        "publisherFeeds": sum(1 for f in feeds if f.get("type") == "publisher"),
        "albumFeeds": sum(1 for f in feeds if f.get("type") == "album"),
        "warningsCount": len(warnings),
        "warnings": warnings[:10],
    }
