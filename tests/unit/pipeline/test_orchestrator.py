"""Tests for IngestionOrchestrator."""

import asyncio
import logging

import pytest

from albumfeed.feeds.models import Album, Publisher
from albumfeed.feeds.store import FeedStore
from albumfeed.pipeline.orchestrator import IngestionOptions, IngestionOrchestrator


class SlowFetcher:
    """Answers later for earlier URLs and tracks how many fetches overlap."""

    def __init__(self, responses: dict[str, bytes]) -> None:
        self.responses = responses
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, url: str, range_header: str | None = None) -> bytes:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            position = list(self.responses).index(url)
            await asyncio.sleep(0.01 * (len(self.responses) - position))
            return self.responses[url]
        finally:
            self.in_flight -= 1


class ExplodingParser:
    """Parser that fails with an unexpected exception type."""

    def parse(self, data: bytes) -> Album:
        raise RuntimeError("boom")


class TestIngestionRun:
    """Tests for a full ingestion pass."""

    @pytest.mark.asyncio
    async def test_successes_plus_failures_equal_feeds(
        self, populated_store: FeedStore, fake_fetcher
    ) -> None:
        """Test the broken feed is excluded and the others survive."""
        feeds = populated_store.list_active()

        result = await IngestionOrchestrator(fake_fetcher).run(feeds)

        assert len(result.items) == 2
        assert len(result.failures) == 1
        assert result.total == len(feeds)
        assert result.finished_at is not None
        assert result.finished_at >= result.started_at

    @pytest.mark.asyncio
    async def test_results_follow_feed_order(self, populated_store: FeedStore, fake_fetcher) -> None:
        result = await IngestionOrchestrator(fake_fetcher).run(populated_store.list_active())

        assert isinstance(result.items[0], Album)
        assert isinstance(result.items[1], Publisher)
        assert len(result.albums) == 1
        assert len(result.publishers) == 1

    @pytest.mark.asyncio
    async def test_album_tagged_with_feed(self, populated_store: FeedStore, fake_fetcher) -> None:
        result = await IngestionOrchestrator(fake_fetcher).run(populated_store.list_active())
        album = result.albums[0]

        assert album.feed_id == "example-com-album-xml"
        assert album.feed_url == "https://example.com/album.xml"
        assert album.last_updated is not None
        assert album.title == "Bloodshot Lies - The Album"

    @pytest.mark.asyncio
    async def test_publisher_tagged_with_feed(self, populated_store: FeedStore, fake_fetcher) -> None:
        result = await IngestionOrchestrator(fake_fetcher).run(populated_store.list_active())
        publisher = result.publishers[0]

        assert publisher.id == "example-com-publisher-xml"
        assert publisher.title == "Publisher"
        assert publisher.original_url == "https://example.com/publisher.xml"
        assert publisher.parse_status == "success"
        assert publisher.last_parsed is not None
        assert publisher.publisher_info.title == "Ben Doerfel Music"

    @pytest.mark.asyncio
    async def test_empty_feed_list(self, fake_fetcher) -> None:
        result = await IngestionOrchestrator(fake_fetcher).run([])

        assert result.items == []
        assert result.failures == []

    @pytest.mark.asyncio
    async def test_each_feed_fetched_once(self, populated_store: FeedStore, fake_fetcher) -> None:
        await IngestionOrchestrator(fake_fetcher).run(populated_store.list_active())

        assert sorted(fake_fetcher.calls) == [
            "https://example.com/album.xml",
            "https://example.com/broken.xml",
            "https://example.com/publisher.xml",
        ]


class TestFailureIsolation:
    """Tests for per-feed failure handling."""

    @pytest.mark.asyncio
    async def test_failure_details(self, populated_store: FeedStore, fake_fetcher) -> None:
        populated_store.add("https://example.com/offline.xml", title="Offline")
        populated_store.add("https://example.com/missing.xml", title="Missing")

        result = await IngestionOrchestrator(fake_fetcher).run(populated_store.list_active())
        failures = {failure.feed_id: failure for failure in result.failures}

        assert len(result.items) == 2
        assert failures["example-com-broken-xml"].stage == "parse"
        assert failures["example-com-broken-xml"].error_kind == "ParseError"
        assert failures["example-com-offline-xml"].stage == "fetch"
        assert failures["example-com-offline-xml"].error_kind == "NetworkError"
        assert failures["example-com-missing-xml"].stage == "fetch"
        assert failures["example-com-missing-xml"].error_kind == "FetchError"
        assert "HTTP 404" in failures["example-com-missing-xml"].message

    @pytest.mark.asyncio
    async def test_failures_are_logged_with_context(
        self, populated_store: FeedStore, fake_fetcher, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.WARNING, logger="albumfeed")

        await IngestionOrchestrator(fake_fetcher).run(populated_store.list_active())

        records = [r for r in caplog.records if getattr(r, "feed_id", None) == "example-com-broken-xml"]
        assert len(records) == 1
        assert records[0].levelno == logging.WARNING
        assert records[0].stage == "parse"
        assert records[0].error_kind == "ParseError"

    @pytest.mark.asyncio
    async def test_unexpected_errors_do_not_abort(
        self, populated_store: FeedStore, fake_fetcher
    ) -> None:
        orchestrator = IngestionOrchestrator(fake_fetcher, parser=ExplodingParser())  # type: ignore[arg-type]

        result = await orchestrator.run(populated_store.list_active())

        assert result.items == []
        assert len(result.failures) == 3
        assert {failure.error_kind for failure in result.failures} == {"RuntimeError"}
        assert {failure.stage for failure in result.failures} == {"parse"}

    @pytest.mark.asyncio
    async def test_type_mismatch_is_kept_with_warning(
        self, feed_store: FeedStore, fake_fetcher, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.WARNING, logger="albumfeed")
        feed_store.add("https://example.com/publisher.xml", "album", title="Mislabelled")

        result = await IngestionOrchestrator(fake_fetcher).run(feed_store.list_active())

        assert len(result.publishers) == 1
        assert any(getattr(r, "error_kind", None) == "TypeMismatch" for r in caplog.records)


class TestOrderingAndConcurrency:
    """Tests for feed order and the concurrency bound."""

    @pytest.fixture
    def many_feeds(self, feed_store: FeedStore, album_xml: bytes) -> dict[str, bytes]:
        responses = {}
        for index, priority in enumerate(["low", "core", "extended", "core", "low", "core"]):
            url = f"https://example.com/album-{index}.xml"
            feed_store.add(url, priority=priority, title=f"Album {index}")
            responses[url] = album_xml
        return responses

    @pytest.mark.asyncio
    async def test_store_order_despite_completion_order(
        self, feed_store: FeedStore, many_feeds: dict[str, bytes]
    ) -> None:
        result = await IngestionOrchestrator(SlowFetcher(many_feeds)).run(feed_store.list_active())

        assert [album.feed_id for album in result.albums] == [
            feed.id for feed in feed_store.list_active()
        ]

    @pytest.mark.asyncio
    async def test_priority_order(self, feed_store: FeedStore, many_feeds: dict[str, bytes]) -> None:
        options = IngestionOptions(order="priority")

        result = await IngestionOrchestrator(SlowFetcher(many_feeds), options=options).run(
            feed_store.list_active()
        )

        assert [album.feed_id for album in result.albums] == [
            "example-com-album-1-xml",
            "example-com-album-3-xml",
            "example-com-album-5-xml",
            "example-com-album-2-xml",
            "example-com-album-0-xml",
            "example-com-album-4-xml",
        ]

    @pytest.mark.asyncio
    async def test_concurrency_bound(self, feed_store: FeedStore, many_feeds: dict[str, bytes]) -> None:
        fetcher = SlowFetcher(many_feeds)

        await IngestionOrchestrator(fetcher, options=IngestionOptions(max_concurrency=2)).run(
            feed_store.list_active()
        )

        assert fetcher.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_default_runs_feeds_concurrently(
        self, feed_store: FeedStore, many_feeds: dict[str, bytes]
    ) -> None:
        fetcher = SlowFetcher(many_feeds)

        await IngestionOrchestrator(fetcher).run(feed_store.list_active())

        assert fetcher.max_in_flight == len(many_feeds)
