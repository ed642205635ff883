"""Data models for subscribed feeds and their parsed albums and publishers."""

import re
from datetime import datetime
from typing import Annotated, Literal, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, computed_field
from pydantic.alias_generators import to_camel

FeedType = Literal["album", "publisher"]
Priority = Literal["core", "extended", "low"]
Status = Literal["active", "inactive"]
ParseStatus = Literal["success", "error"]

FEED_TYPES: tuple[str, ...] = ("album", "publisher")
PRIORITIES: tuple[str, ...] = ("core", "extended", "low")
STATUSES: tuple[str, ...] = ("active", "inactive")


class CamelModel(BaseModel):
    """Base model serializing to the camelCase JSON the front-end expects."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


def slugify(text: str) -> str:
    """Lower-case text and collapse every non-alphanumeric run to one hyphen."""
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def feed_id_from_url(url: str) -> str:
    """Derive a stable feed id from the URL's host and path.

    Scheme, port, query string and fragment do not take part, so
    ``http://Example.com/feed.xml?x=1`` and ``https://example.com/feed.xml``
    share the id ``example-com-feed-xml``.
    """
    parsed = urlparse(url.strip())
    host = parsed.hostname or ""
    return slugify(f"{host}{parsed.path}")


def album_slug(title: str) -> str:
    """URL-friendly slug for an album title."""
    slug = title.lower().strip()
    slug = slug.replace("&", "and").replace("+", "plus").replace("@", "at")
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug).strip("-")
    return slug or "album"


class FeedBase(CamelModel):
    """Fields shared by every subscribed feed."""

    id: str
    original_url: str
    title: str
    priority: Priority = "core"
    status: Status = "active"
    added_at: datetime
    last_updated: datetime


class AlbumFeed(FeedBase):
    """A feed whose document is a single music album."""

    type: Literal["album"] = "album"


class PublisherFeed(FeedBase):
    """A feed listing other feeds published by one artist or label."""

    type: Literal["publisher"] = "publisher"


Feed = Annotated[Union[AlbumFeed, PublisherFeed], Field(discriminator="type")]

feed_adapter: TypeAdapter[AlbumFeed | PublisherFeed] = TypeAdapter(Feed)
feed_list_adapter: TypeAdapter[list[AlbumFeed | PublisherFeed]] = TypeAdapter(list[Feed])


class RemoteItem(CamelModel):
    """A ``<podcast:remoteItem>`` pointing at another feed."""

    feed_guid: str | None = None
    feed_url: str | None = None
    item_guid: str | None = None
    medium: str | None = None
    title: str | None = None


class Funding(CamelModel):
    """A ``<podcast:funding>`` link."""

    url: str
    message: str = ""


class Track(CamelModel):
    """A single playable item of an album."""

    title: str
    duration: int = 0
    url: str
    track_number: int
    subtitle: str | None = None
    summary: str | None = None
    image: str | None = None
    explicit: bool = False
    keywords: list[str] = Field(default_factory=list)


class Album(CamelModel):
    """Normalized album parsed from a feed document."""

    title: str
    artist: str = ""
    description: str = ""
    cover_art: str | None = None
    tracks: list[Track] = Field(default_factory=list)
    podroll: list[RemoteItem] = Field(default_factory=list)
    publisher: RemoteItem | None = None
    funding: list[Funding] = Field(default_factory=list)
    feed_id: str | None = None
    feed_url: str | None = None
    last_updated: datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def id(self) -> str:
        return album_slug(self.title)


class PublisherInfo(CamelModel):
    """Channel-level details of a publisher feed."""

    title: str
    artist: str = ""
    description: str = ""
    cover_art: str | None = None
    link: str | None = None
    feed_guid: str | None = None


class Publisher(CamelModel):
    """Normalized publisher parsed from a feed document."""

    id: str | None = None
    title: str
    original_url: str | None = None
    parse_status: ParseStatus = "success"
    last_parsed: datetime | None = None
    publisher_info: PublisherInfo
    publisher_items: list[RemoteItem] = Field(default_factory=list)

    @computed_field(alias="itemCount")  # type: ignore[prop-decorator]
    @property
    def item_count(self) -> int:
        return len(self.publisher_items)


ParsedFeed = Album | Publisher
