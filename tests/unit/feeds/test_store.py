"""Tests for FeedStore."""

import json
from pathlib import Path

import pytest

from albumfeed.feeds.models import AlbumFeed, PublisherFeed
from albumfeed.feeds.store import DEFAULT_FEEDS, FeedStore, sort_by_priority
from albumfeed.utils.errors import (
    DuplicateError,
    NotFoundError,
    StorageError,
    ValidationError,
)


class TestAddFeed:
    """Tests for FeedStore.add."""

    def test_add_album_feed(self, feed_store: FeedStore) -> None:
        """Test adding an album feed with defaults."""
        feed = feed_store.add("https://example.com/feed.xml")

        assert isinstance(feed, AlbumFeed)
        assert feed.id == "example-com-feed-xml"
        assert feed.original_url == "https://example.com/feed.xml"
        assert feed.title == "Feed from example.com"
        assert feed.priority == "core"
        assert feed.status == "active"
        assert feed.added_at == feed.last_updated
        assert feed.added_at.tzinfo is not None

    def test_add_publisher_feed(self, feed_store: FeedStore) -> None:
        feed = feed_store.add(
            "https://example.com/artist.xml", "publisher", title="Artist", priority="low"
        )

        assert isinstance(feed, PublisherFeed)
        assert feed.title == "Artist"
        assert feed.priority == "low"

    def test_url_is_stripped(self, feed_store: FeedStore) -> None:
        feed = feed_store.add("  https://example.com/feed.xml  ")

        assert feed.original_url == "https://example.com/feed.xml"

    def test_add_persists(self, feed_store: FeedStore) -> None:
        """Test a new store instance sees added feeds."""
        feed_store.add("https://example.com/a.xml")
        feed_store.add("https://example.com/b.xml")

        reopened = FeedStore(feed_store.path)

        assert [feed.id for feed in reopened.list()] == ["example-com-a-xml", "example-com-b-xml"]

    def test_duplicate_url_raises(self, feed_store: FeedStore) -> None:
        feed_store.add("https://example.com/feed.xml")

        with pytest.raises(DuplicateError, match="already exists"):
            feed_store.add("https://example.com/feed.xml")

        assert len(feed_store.list()) == 1

    def test_duplicate_derived_id_raises(self, feed_store: FeedStore) -> None:
        """Test URLs differing only in scheme or query collide on id."""
        feed_store.add("https://example.com/feed.xml")

        with pytest.raises(DuplicateError, match="example-com-feed-xml"):
            feed_store.add("http://example.com/feed.xml?utm=1")

    @pytest.mark.parametrize("url", ["", "   ", "not a url", "ftp://example.com/feed.xml", "https://"])
    def test_invalid_url_raises(self, feed_store: FeedStore, url: str) -> None:
        with pytest.raises(ValidationError):
            feed_store.add(url)

        assert not feed_store.path.exists()

    def test_invalid_url_has_suggestion(self, feed_store: FeedStore) -> None:
        with pytest.raises(ValidationError) as exc_info:
            feed_store.add("example.com/feed.xml")

        assert "Invalid URL format" in str(exc_info.value)
        assert exc_info.value.suggestion is not None

    def test_invalid_type_raises(self, feed_store: FeedStore) -> None:
        with pytest.raises(ValidationError, match="Type must be one of"):
            feed_store.add("https://example.com/feed.xml", "playlist")

    def test_invalid_priority_raises(self, feed_store: FeedStore) -> None:
        with pytest.raises(ValidationError, match="Priority must be one of"):
            feed_store.add("https://example.com/feed.xml", priority="urgent")


class TestReadFeeds:
    """Tests for listing and lookup."""

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        store = FeedStore(tmp_path / "nowhere" / "feeds.json")

        assert store.list() == []

    def test_get(self, populated_store: FeedStore) -> None:
        feed = populated_store.get("example-com-publisher-xml")

        assert feed.type == "publisher"
        assert feed.title == "Publisher"

    def test_get_unknown_raises(self, populated_store: FeedStore) -> None:
        with pytest.raises(NotFoundError, match="not found"):
            populated_store.get("nope")

    def test_list_active_skips_inactive(self, populated_store: FeedStore) -> None:
        populated_store.update("example-com-broken-xml", status="inactive")

        active = [feed.id for feed in populated_store.list_active()]

        assert "example-com-broken-xml" not in active
        assert len(active) == 2
        assert len(populated_store.list()) == 3

    def test_corrupt_file_raises(self, feed_store: FeedStore) -> None:
        feed_store.path.write_text("{not json")

        with pytest.raises(StorageError, match="Cannot read"):
            feed_store.list()

    def test_wrong_shape_raises(self, feed_store: FeedStore) -> None:
        feed_store.path.write_text(json.dumps([{"id": "x"}]))

        with pytest.raises(StorageError, match="Invalid feed store format"):
            feed_store.list()

    def test_invalid_entry_raises(self, feed_store: FeedStore) -> None:
        feed_store.path.write_text(json.dumps({"feeds": [{"id": "x", "type": "album"}]}))

        with pytest.raises(StorageError, match="Invalid feed entry"):
            feed_store.list()

    def test_reads_existing_camel_case_file(self, feed_store: FeedStore) -> None:
        """Test files written by other tools load as long as they use the same shape."""
        feed_store.path.write_text(
            json.dumps(
                {
                    "feeds": [
                        {
                            "id": "bloodshot-lies",
                            "originalUrl": "https://www.doerfelverse.com/feeds/bloodshot-lies-album.xml",
                            "type": "album",
                            "title": "Bloodshot Lies",
                            "priority": "core",
                            "status": "active",
                            "addedAt": "2025-08-02T05:00:00.000Z",
                            "lastUpdated": "2025-08-02T05:00:00.000Z",
                        }
                    ],
                    "lastUpdated": "2025-08-02T05:00:00.000Z",
                    "version": 2,
                }
            )
        )

        feeds = feed_store.list()

        assert feeds[0].id == "bloodshot-lies"
        assert feeds[0].added_at.year == 2025


class TestRemoveFeed:
    """Tests for FeedStore.remove."""

    def test_remove(self, populated_store: FeedStore) -> None:
        populated_store.remove("example-com-album-xml")

        ids = [feed.id for feed in populated_store.list()]
        assert ids == ["example-com-broken-xml", "example-com-publisher-xml"]

    def test_remove_unknown_raises(self, populated_store: FeedStore) -> None:
        with pytest.raises(NotFoundError):
            populated_store.remove("nope")

        assert len(populated_store.list()) == 3

    def test_readd_after_remove(self, populated_store: FeedStore) -> None:
        populated_store.remove("example-com-album-xml")

        feed = populated_store.add("https://example.com/album.xml")

        assert populated_store.list()[-1].id == feed.id


class TestUpdateFeed:
    """Tests for FeedStore.update."""

    def test_update_status_and_priority(self, populated_store: FeedStore) -> None:
        before = populated_store.get("example-com-album-xml")

        feed = populated_store.update("example-com-album-xml", status="inactive", priority="low")

        assert feed.status == "inactive"
        assert feed.priority == "low"
        assert feed.added_at == before.added_at
        assert feed.last_updated >= before.last_updated
        assert populated_store.get("example-com-album-xml").status == "inactive"

    def test_update_keeps_position(self, populated_store: FeedStore) -> None:
        populated_store.update("example-com-album-xml", priority="extended")

        assert populated_store.list()[0].id == "example-com-album-xml"

    def test_update_unknown_raises(self, populated_store: FeedStore) -> None:
        with pytest.raises(NotFoundError):
            populated_store.update("nope", status="inactive")

    def test_update_invalid_status_raises(self, populated_store: FeedStore) -> None:
        with pytest.raises(ValidationError, match="Status must be one of"):
            populated_store.update("example-com-album-xml", status="paused")


class TestSeedDefaults:
    """Tests for FeedStore.seed_defaults."""

    def test_seed_empty_store(self, feed_store: FeedStore) -> None:
        assert feed_store.seed_defaults() == len(DEFAULT_FEEDS)
        assert [feed.original_url for feed in feed_store.list()] == [
            default["url"] for default in DEFAULT_FEEDS
        ]

    def test_seed_is_idempotent(self, feed_store: FeedStore) -> None:
        feed_store.seed_defaults()

        assert feed_store.seed_defaults() == 0
        assert len(feed_store.list()) == len(DEFAULT_FEEDS)


class TestFileFormat:
    """Tests for the on-disk document."""

    def test_document_shape(self, populated_store: FeedStore) -> None:
        data = json.loads(populated_store.path.read_text())

        assert data["version"] == 2
        assert data["lastUpdated"].endswith("Z")
        assert [feed["id"] for feed in data["feeds"]] == [
            "example-com-album-xml",
            "example-com-broken-xml",
            "example-com-publisher-xml",
        ]
        assert data["feeds"][0]["originalUrl"] == "https://example.com/album.xml"
        assert data["feeds"][2]["type"] == "publisher"

    def test_no_temp_files_left(self, populated_store: FeedStore) -> None:
        leftovers = [p.name for p in populated_store.path.parent.iterdir() if p.name != "feeds.json"]

        assert leftovers == []


class TestSortByPriority:
    """Tests for sort_by_priority."""

    def test_core_first_stable(self, feed_store: FeedStore) -> None:
        feed_store.add("https://example.com/low.xml", priority="low")
        feed_store.add("https://example.com/core-a.xml", priority="core")
        feed_store.add("https://example.com/ext.xml", priority="extended")
        feed_store.add("https://example.com/core-b.xml", priority="core")

        ordered = [feed.id for feed in sort_by_priority(feed_store.list())]

        assert ordered == [
            "example-com-core-a-xml",
            "example-com-core-b-xml",
            "example-com-ext-xml",
            "example-com-low-xml",
        ]
