"""RSS/Atom feed parser with Podcast namespace support.

Turns a raw feed document into an :class:`Album` or a :class:`Publisher`.
Parsing is pure: it never touches the network or the clock, so the same
bytes always produce the same record.
"""

import logging
import math
import xml.etree.ElementTree as ET
from collections.abc import Iterable

from albumfeed.feeds.models import Album, Funding, Publisher, PublisherInfo, RemoteItem, Track
from albumfeed.utils.errors import ParseError

logger = logging.getLogger(__name__)

ITUNES_NS = "http://www.itunes.com/dtds/podcast-1.0.dtd"
ATOM_NS = "http://www.w3.org/2005/Atom"
# Both spellings are found in the wild.
PODCAST_NS = (
    "https://podcastindex.org/namespace/1.0",
    "http://podcastindex.org/namespace/1.0",
)

TRUTHY_EXPLICIT = {"yes", "true", "explicit"}


def _itunes(name: str) -> tuple[str, ...]:
    return (f"{{{ITUNES_NS}}}{name}",)


def _podcast(name: str) -> tuple[str, ...]:
    return tuple(f"{{{ns}}}{name}" for ns in PODCAST_NS)


def _atom(name: str) -> tuple[str, ...]:
    return (f"{{{ATOM_NS}}}{name}",)


def _children(parent: ET.Element, tags: Iterable[str]) -> list[ET.Element]:
    """Direct children of ``parent`` whose tag is one of ``tags``."""
    wanted = set(tags)
    return [child for child in parent if child.tag in wanted]


def _first(parent: ET.Element, tags: Iterable[str]) -> ET.Element | None:
    found = _children(parent, tags)
    return found[0] if found else None


def _text(element: ET.Element | None) -> str | None:
    """Stripped text of an element, or None when missing or blank."""
    if element is None or element.text is None:
        return None
    text = element.text.strip()
    return text or None


def _first_text(parent: ET.Element, *candidates: Iterable[str]) -> str | None:
    """Text of the first candidate tag that is present and non-blank."""
    for tags in candidates:
        text = _text(_first(parent, tags))
        if text:
            return text
    return None


def _attr(element: ET.Element | None, name: str) -> str | None:
    if element is None:
        return None
    value = (element.get(name) or "").strip()
    return value or None


def _to_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_duration(value: str | None) -> int:
    """Parse ``HH:MM:SS``, ``MM:SS`` or plain seconds into whole seconds.

    Missing, negative, non-finite or otherwise unparseable values give 0.
    """
    if not value:
        return 0

    parts = value.strip().split(":")
    if len(parts) > 3:
        return 0

    total = 0.0
    for part in parts:
        try:
            number = float(part)
        except ValueError:
            return 0
        if not math.isfinite(number) or number < 0:
            return 0
        total = total * 60 + number

    if not math.isfinite(total):
        return 0
    return int(total)


def coerce_explicit(value: str | None) -> bool:
    return bool(value) and value.strip().lower() in TRUTHY_EXPLICIT


def split_keywords(value: str | None) -> list[str]:
    if not value:
        return []
    return [keyword.strip() for keyword in value.split(",") if keyword.strip()]


def widest_image(srcset: str | None) -> str | None:
    """Pick the widest candidate of a ``<podcast:images srcset>`` attribute.

    Candidates without a width descriptor count as width 0; ties keep the
    first candidate.
    """
    if not srcset:
        return None

    best_url: str | None = None
    best_width = -1
    for candidate in srcset.split(","):
        pieces = candidate.strip().split()
        if not pieces:
            continue
        width = 0
        if len(pieces) > 1 and pieces[1].endswith("w"):
            width = _to_int(pieces[1][:-1]) or 0
        if width > best_width:
            best_url, best_width = pieces[0], width

    return best_url


class RSSParser:
    """Parses RSS, Atom and Podcast namespace documents into albums or publishers.

    Example:
        >>> parser = RSSParser()
        >>> record = parser.parse(raw_bytes)
        >>> isinstance(record, (Album, Publisher))
        True
    """

    def parse(self, data: bytes | str) -> Album | Publisher:
        """Parse a feed document.

        Args:
            data: Raw document as fetched

        Returns:
            Album, or Publisher when the document is a publisher feed

        Raises:
            ParseError: If the document is not well-formed or lacks required fields
        """
        root = self._parse_xml(data)

        if root.tag in _atom("feed"):
            return self._parse_atom(root)

        channel = root.find("channel")
        if channel is None:
            raise ParseError(f"Not an RSS document (root element <{root.tag}>)")

        if self.is_publisher(channel):
            return self._parse_publisher(channel)
        return self._parse_album(channel)

    def is_publisher(self, channel: ET.Element) -> bool:
        """Whether a channel is a publisher feed.

        A ``<podcast:medium>publisher</podcast:medium>`` marker or any
        channel-level ``<podcast:remoteItem>`` makes it one.
        """
        medium = _first_text(channel, _podcast("medium"))
        if medium and medium.lower() == "publisher":
            return True
        return bool(_children(channel, _podcast("remoteItem")))

    def _parse_xml(self, data: bytes | str) -> ET.Element:
        if isinstance(data, str):
            data = data.encode("utf-8")
        data = data.strip()
        if not data:
            raise ParseError("Empty feed document")

        try:
            return ET.fromstring(data)
        except ET.ParseError as e:
            raise ParseError(f"Malformed XML: {e}") from e

    def _channel_basics(self, channel: ET.Element) -> tuple[str, str, str]:
        title = _first_text(channel, ("title",), _itunes("title"))
        if not title:
            raise ParseError("Feed has no title")

        artist = _first_text(
            channel,
            _itunes("author"),
            ("author",),
            ("managingEditor",),
            _podcast("person"),
        )
        description = _first_text(
            channel,
            ("description",),
            _itunes("summary"),
            _itunes("subtitle"),
        )
        return title, artist or "", description or ""

    def _parse_album(self, channel: ET.Element) -> Album:
        title, artist, description = self._channel_basics(channel)
        items = channel.findall("item")

        tracks = [
            track
            for position, item in enumerate(items, start=1)
            if (track := self._parse_track(item, position)) is not None
        ]
        if not tracks:
            raise ParseError(f"Album feed '{title}' has no playable tracks")

        # Stable: equal numbers keep document order
        tracks.sort(key=lambda track: track.track_number)

        return Album(
            title=title,
            artist=artist,
            description=description,
            cover_art=self._cover_art(channel, items),
            tracks=tracks,
            podroll=self._podroll(channel),
            publisher=self._publisher_ref(channel),
            funding=self._funding(channel),
        )

    def _parse_track(self, item: ET.Element, position: int) -> Track | None:
        url = _attr(item.find("enclosure"), "url")
        if not url:
            logger.debug(f"Skipping item {position}: no enclosure")
            return None

        track_number = _to_int(_first_text(item, _podcast("episode")))
        if track_number is None:
            track_number = _to_int(_first_text(item, _itunes("episode")))
        if track_number is None:
            track_number = position

        return Track(
            title=_first_text(item, ("title",), _itunes("title")) or f"Track {position}",
            duration=parse_duration(_first_text(item, _itunes("duration"))),
            url=url,
            track_number=track_number,
            subtitle=_first_text(item, _itunes("subtitle")),
            summary=_first_text(item, _itunes("summary"), ("description",)),
            image=self._item_image(item),
            explicit=coerce_explicit(_first_text(item, _itunes("explicit"))),
            keywords=split_keywords(_first_text(item, _itunes("keywords"))),
        )

    def _item_image(self, item: ET.Element) -> str | None:
        return _attr(_first(item, _itunes("image")), "href") or widest_image(
            _attr(_first(item, _podcast("images")), "srcset")
        )

    def _cover_art(self, channel: ET.Element, items: list[ET.Element]) -> str | None:
        """Resolve cover art.

        Order: ``<podcast:images>``, ``<itunes:image>``, first item image,
        then the plain RSS ``<image><url>``.
        """
        cover = widest_image(_attr(_first(channel, _podcast("images")), "srcset"))
        if cover:
            return cover

        cover = _attr(_first(channel, _itunes("image")), "href")
        if cover:
            return cover

        for item in items:
            cover = self._item_image(item)
            if cover:
                return cover

        image = channel.find("image")
        if image is not None:
            return _first_text(image, ("url",))
        return None

    def _remote_item(self, element: ET.Element) -> RemoteItem:
        return RemoteItem(
            feed_guid=_attr(element, "feedGuid"),
            feed_url=_attr(element, "feedUrl"),
            item_guid=_attr(element, "itemGuid"),
            medium=_attr(element, "medium"),
            title=_attr(element, "title") or _text(element),
        )

    def _podroll(self, channel: ET.Element) -> list[RemoteItem]:
        podroll = _first(channel, _podcast("podroll"))
        if podroll is None:
            return []
        return [
            self._remote_item(element)
            for element in _children(podroll, _podcast("remoteItem"))
            if _attr(element, "feedGuid") or _attr(element, "feedUrl")
        ]

    def _publisher_ref(self, channel: ET.Element) -> RemoteItem | None:
        publisher = _first(channel, _podcast("publisher"))
        if publisher is None:
            return None
        element = _first(publisher, _podcast("remoteItem"))
        if element is None or not (_attr(element, "feedGuid") or _attr(element, "feedUrl")):
            return None
        return self._remote_item(element)

    def _funding(self, channel: ET.Element) -> list[Funding]:
        return [
            Funding(url=url, message=_text(element) or "")
            for element in _children(channel, _podcast("funding"))
            if (url := _attr(element, "url"))
        ]

    def _parse_publisher(self, channel: ET.Element) -> Publisher:
        title, artist, description = self._channel_basics(channel)

        publisher_items = []
        for element in _children(channel, _podcast("remoteItem")):
            if not _attr(element, "feedGuid"):
                logger.debug(f"Skipping remote item without feedGuid in '{title}'")
                continue
            publisher_items.append(self._remote_item(element))

        if not publisher_items:
            raise ParseError(f"Publisher feed '{title}' has no remote items with a feedGuid")

        info = PublisherInfo(
            title=title,
            artist=artist,
            description=description,
            cover_art=self._cover_art(channel, channel.findall("item")),
            link=_first_text(channel, ("link",)),
            feed_guid=_first_text(channel, _podcast("guid")),
        )
        return Publisher(title=title, publisher_info=info, publisher_items=publisher_items)

    def _parse_atom(self, root: ET.Element) -> Album:
        title = _first_text(root, _atom("title"))
        if not title:
            raise ParseError("Feed has no title")

        author = _first(root, _atom("author"))
        artist = _first_text(author, _atom("name")) if author is not None else None

        entries = _children(root, _atom("entry"))
        tracks = []
        for position, entry in enumerate(entries, start=1):
            enclosure = next(
                (
                    link
                    for link in _children(entry, _atom("link"))
                    if link.get("rel") == "enclosure" and _attr(link, "href")
                ),
                None,
            )
            if enclosure is None:
                continue
            tracks.append(
                Track(
                    title=_first_text(entry, _atom("title")) or f"Track {position}",
                    duration=parse_duration(_first_text(entry, _itunes("duration"))),
                    url=_attr(enclosure, "href") or "",
                    track_number=position,
                    summary=_first_text(entry, _atom("summary"), _atom("content")),
                )
            )

        if not tracks:
            raise ParseError(f"Album feed '{title}' has no playable tracks")

        return Album(
            title=title,
            artist=artist or "",
            description=_first_text(root, _atom("subtitle")) or "",
            cover_art=_first_text(root, _atom("logo"), _atom("icon")),
            tracks=tracks,
        )
