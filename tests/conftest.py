"""Shared fixtures for albumfeed tests."""

import logging
from pathlib import Path

import pytest

from albumfeed.config.schema import GlobalConfig
from albumfeed.feeds.store import FeedStore
from albumfeed.utils.errors import FetchError, NetworkError

ALBUM_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd"
     xmlns:podcast="https://podcastindex.org/namespace/1.0">
  <channel>
    <title>Bloodshot Lies - The Album</title>
    <itunes:author>The Doerfels</itunes:author>
    <description>Family band album</description>
    <podcast:medium>music</podcast:medium>
    <podcast:guid>c2a1bd8d-1111-2222-3333-444455556666</podcast:guid>
    <podcast:images srcset="https://example.com/cover-600.jpg 600w, https://example.com/cover-3000.jpg 3000w, https://example.com/cover-1500.jpg 1500w"/>
    <itunes:image href="https://example.com/itunes-cover.jpg"/>
    <podcast:funding url="https://example.com/support">Support the band</podcast:funding>
    <podcast:podroll>
      <podcast:remoteItem feedGuid="aaaa-bbbb" feedUrl="https://example.com/friend.xml"/>
      <podcast:remoteItem itemGuid="no-feed-reference"/>
    </podcast:podroll>
    <podcast:publisher>
      <podcast:remoteItem feedGuid="pub-guid-1" feedUrl="https://example.com/publisher.xml" medium="publisher"/>
    </podcast:publisher>
    <item>
      <title>Bloodshot Lies</title>
      <itunes:duration>00:03:45</itunes:duration>
      <itunes:subtitle>Opening track</itunes:subtitle>
      <itunes:summary>The title track</itunes:summary>
      <itunes:image href="https://example.com/track1.jpg"/>
      <itunes:explicit>yes</itunes:explicit>
      <itunes:keywords>rock, family ,, doerfel</itunes:keywords>
      <enclosure url="https://example.com/audio/bloodshot-lies.mp3" type="audio/mpeg" length="1"/>
    </item>
    <item>
      <title>Movie Star</title>
      <description>Second track</description>
      <enclosure url="https://example.com/audio/movie-star.mp3" type="audio/mpeg" length="1"/>
    </item>
    <item>
      <title>Liner notes</title>
    </item>
  </channel>
</rss>
"""

PUBLISHER_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd"
     xmlns:podcast="https://podcastindex.org/namespace/1.0">
  <channel>
    <title>Ben Doerfel Music</title>
    <link>https://example.com/ben</link>
    <itunes:author>Ben Doerfel</itunes:author>
    <description>Everything Ben has published</description>
    <podcast:medium>publisher</podcast:medium>
    <podcast:guid>pub-guid-1</podcast:guid>
    <itunes:image href="https://example.com/ben.jpg"/>
    <podcast:remoteItem medium="music" feedGuid="album-guid-1" feedUrl="https://example.com/a1.xml"/>
    <podcast:remoteItem medium="music" feedGuid="album-guid-2" feedUrl="https://example.com/a2.xml"/>
    <podcast:remoteItem medium="music" feedUrl="https://example.com/no-guid.xml"/>
  </channel>
</rss>
"""


class FakeFetcher:
    """In-memory fetcher: URL -> bytes, or an exception to raise."""

    def __init__(self, responses: dict[str, bytes | Exception]) -> None:
        self.responses = responses
        self.calls: list[str] = []

    async def __aenter__(self) -> "FakeFetcher":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    async def fetch(self, url: str, range_header: str | None = None) -> bytes:
        self.calls.append(url)
        response = self.responses.get(url)
        if response is None:
            raise FetchError(404, url)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture(autouse=True)
def reset_albumfeed_logger():
    """Undo logger changes made by setup_logging between tests."""
    logger = logging.getLogger("albumfeed")
    level, handlers = logger.level, list(logger.handlers)
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)


@pytest.fixture
def album_xml() -> bytes:
    return ALBUM_XML


@pytest.fixture
def publisher_xml() -> bytes:
    return PUBLISHER_XML


@pytest.fixture
def feed_store(tmp_path: Path) -> FeedStore:
    return FeedStore(tmp_path / "feeds.json")


@pytest.fixture
def config(tmp_path: Path) -> GlobalConfig:
    return GlobalConfig(data_dir=tmp_path / "data")


@pytest.fixture
def populated_store(feed_store: FeedStore) -> FeedStore:
    """Store with two album feeds and one publisher feed."""
    feed_store.add("https://example.com/album.xml", "album", title="Album One")
    feed_store.add("https://example.com/broken.xml", "album", title="Broken Album")
    feed_store.add("https://example.com/publisher.xml", "publisher", title="Publisher")
    return feed_store


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher(
        {
            "https://example.com/album.xml": ALBUM_XML,
            "https://example.com/broken.xml": b"<rss><channel><title>oops",
            "https://example.com/publisher.xml": PUBLISHER_XML,
            "https://example.com/offline.xml": NetworkError(
                "https://example.com/offline.xml", "connection refused"
            ),
        }
    )
