"""Feed store, fetching and RSS parsing for albumfeed."""

from albumfeed.feeds.fetcher import FeedFetcher
from albumfeed.feeds.models import (
    Album,
    AlbumFeed,
    Publisher,
    PublisherFeed,
    Track,
    album_slug,
    feed_id_from_url,
)
from albumfeed.feeds.parser import RSSParser
from albumfeed.feeds.store import FeedStore

__all__ = [
    "Album",
    "AlbumFeed",
    "FeedFetcher",
    "FeedStore",
    "Publisher",
    "PublisherFeed",
    "RSSParser",
    "Track",
    "album_slug",
    "feed_id_from_url",
]
