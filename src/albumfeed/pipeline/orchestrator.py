"""Ingestion pass: fetch and parse every active feed, isolating failures."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Protocol

from albumfeed.feeds.models import Album, AlbumFeed, Publisher, PublisherFeed
from albumfeed.feeds.parser import RSSParser
from albumfeed.feeds.store import sort_by_priority
from albumfeed.utils.datetime import now_utc
from albumfeed.utils.errors import IngestionError

logger = logging.getLogger(__name__)

FeedOrder = Literal["store", "priority"]


class Fetcher(Protocol):
    async def fetch(self, url: str, range_header: str | None = None) -> bytes: ...


@dataclass
class IngestionOptions:
    """Knobs for one ingestion pass."""

    max_concurrency: int = 8
    order: FeedOrder = "store"


@dataclass
class FeedFailure:
    """A feed that was excluded from the aggregate, and why."""

    feed_id: str
    feed_url: str
    feed_type: str
    stage: str
    error_kind: str
    message: str


@dataclass
class IngestionResult:
    """Outcome of an ingestion pass.

    ``items`` follows feed order; ``len(items) + len(failures)`` always
    equals the number of feeds processed.
    """

    items: list[Album | Publisher] = field(default_factory=list)
    failures: list[FeedFailure] = field(default_factory=list)
    started_at: datetime = field(default_factory=now_utc)
    finished_at: datetime | None = None

    @property
    def albums(self) -> list[Album]:
        return [item for item in self.items if isinstance(item, Album)]

    @property
    def publishers(self) -> list[Publisher]:
        return [item for item in self.items if isinstance(item, Publisher)]

    @property
    def total(self) -> int:
        return len(self.items) + len(self.failures)


class IngestionOrchestrator:
    """Runs fetch + parse across feeds concurrently.

    Each feed is processed independently; a fetch or parse failure is
    logged, recorded as a :class:`FeedFailure` and never aborts the batch.

    Example:
        >>> async with FeedFetcher() as fetcher:
        ...     orchestrator = IngestionOrchestrator(fetcher)
        ...     result = await orchestrator.run(store.list_active())
        >>> len(result.items) + len(result.failures) == len(store.list_active())
        True
    """

    def __init__(
        self,
        fetcher: Fetcher,
        parser: RSSParser | None = None,
        options: IngestionOptions | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.parser = parser or RSSParser()
        self.options = options or IngestionOptions()

    async def run(self, feeds: list[AlbumFeed | PublisherFeed]) -> IngestionResult:
        """Process feeds and wait for all of them.

        Args:
            feeds: Feeds to ingest, usually ``store.list_active()``

        Returns:
            IngestionResult with successes in feed order and all failures
        """
        result = IngestionResult()
        if self.options.order == "priority":
            feeds = sort_by_priority(feeds)

        semaphore = asyncio.Semaphore(self.options.max_concurrency)

        async def bounded(feed: AlbumFeed | PublisherFeed) -> Album | Publisher | FeedFailure:
            async with semaphore:
                return await self._ingest_one(feed)

        outcomes = await asyncio.gather(*(bounded(feed) for feed in feeds))

        for outcome in outcomes:
            if isinstance(outcome, FeedFailure):
                result.failures.append(outcome)
            else:
                result.items.append(outcome)

        result.finished_at = now_utc()
        logger.info(
            f"Ingestion pass finished: {len(result.items)} ok, "
            f"{len(result.failures)} failed of {len(feeds)} feeds"
        )
        return result

    async def _ingest_one(self, feed: AlbumFeed | PublisherFeed) -> Album | Publisher | FeedFailure:
        stage = "fetch"
        try:
            data = await self.fetcher.fetch(feed.original_url)
            stage = "parse"
            record = self.parser.parse(data)
        except IngestionError as e:
            return self._failure(feed, e.stage, e)
        except Exception as e:
            # Unexpected errors still must not abort the batch
            logger.exception(f"Unexpected error ingesting feed {feed.id}")
            return self._failure(feed, stage, e)

        parsed_type = "publisher" if isinstance(record, Publisher) else "album"
        if parsed_type != feed.type:
            logger.warning(
                f"Feed {feed.id} is registered as {feed.type} but parsed as {parsed_type}",
                extra={"feed_id": feed.id, "stage": "parse", "error_kind": "TypeMismatch"},
            )

        return self._tag(record, feed)

    def _tag(self, record: Album | Publisher, feed: AlbumFeed | PublisherFeed) -> Album | Publisher:
        """Attach the originating feed's metadata to a parsed record."""
        parsed_at = now_utc()
        if isinstance(record, Album):
            return record.model_copy(
                update={
                    "feed_id": feed.id,
                    "feed_url": feed.original_url,
                    "last_updated": parsed_at,
                }
            )
        return record.model_copy(
            update={
                "id": feed.id,
                "title": feed.title,
                "original_url": feed.original_url,
                "parse_status": "success",
                "last_parsed": parsed_at,
            }
        )

    def _failure(
        self,
        feed: AlbumFeed | PublisherFeed,
        stage: str,
        error: Exception,
    ) -> FeedFailure:
        failure = FeedFailure(
            feed_id=feed.id,
            feed_url=feed.original_url,
            feed_type=feed.type,
            stage=stage,
            error_kind=type(error).__name__,
            message=str(error),
        )
        logger.warning(
            f"Feed {feed.id} failed at {stage}: {failure.error_kind}: {failure.message}",
            extra={"feed_id": feed.id, "stage": stage, "error_kind": failure.error_kind},
        )
        return failure
