"""Song playlists assembled from parsed albums.

A playlist flattens the tracks of one album (or of every album) into a single
list, drops items that look like podcast episodes rather than songs, and can be
rendered as JSON or as a Podcasting 2.0 ``musicL`` RSS feed.
"""

import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

from pydantic import computed_field

from albumfeed import __version__
from albumfeed.feeds.models import Album, CamelModel, Track
from albumfeed.utils.datetime import now_utc
from albumfeed.utils.errors import NotFoundError

logger = logging.getLogger(__name__)

ITUNES_NS = "http://www.itunes.com/dtds/podcast-1.0.dtd"
PODCAST_NS = "https://podcastindex.org/namespace/1.0"

ET.register_namespace("itunes", ITUNES_NS)
ET.register_namespace("podcast", PODCAST_NS)

MAX_SONG_SECONDS = 900
DEFAULT_ARTIST = "Various Artists"
ALL_SONGS_TITLE = "albumfeed - All Songs Playlist"
ALL_SONGS_DESCRIPTION = "Every song from the subscribed album feeds"


class PlaylistTrack(Track):
    """A track together with the album it came from."""

    album_title: str
    album_artist: str
    album_cover_art: str | None = None
    feed_id: str | None = None
    global_track_number: int


class Playlist(CamelModel):
    title: str
    description: str
    author: str
    cover_art: str | None = None
    feed_id: str | None = None
    tracks: list[PlaylistTrack]

    @computed_field(alias="totalTracks")  # type: ignore[prop-decorator]
    @property
    def total_tracks(self) -> int:
        return len(self.tracks)


def is_song(track: Track) -> bool:
    """False for long items and anything titled like an episode."""
    return track.duration <= MAX_SONG_SECONDS and "episode" not in track.title.lower()


def build_playlist(albums: list[Album], feed_id: str | None = None) -> Playlist:
    """Collect the songs of ``albums`` in album order, then track order.

    Args:
        albums: Parsed albums, usually read from the snapshot
        feed_id: Restrict the playlist to the album parsed from this feed

    Raises:
        NotFoundError: If ``feed_id`` matches no album
    """
    if feed_id is not None:
        albums = [album for album in albums if album.feed_id == feed_id]
        if not albums:
            raise NotFoundError(f"No album found for feed '{feed_id}'")

    tracks: list[PlaylistTrack] = []
    skipped = 0
    for album in albums:
        artist = album.artist or DEFAULT_ARTIST
        for track in album.tracks:
            if not is_song(track):
                skipped += 1
                continue
            tracks.append(
                PlaylistTrack(
                    **track.model_dump(),
                    album_title=album.title,
                    album_artist=artist,
                    album_cover_art=album.cover_art,
                    feed_id=album.feed_id,
                    global_track_number=len(tracks) + 1,
                )
            )

    if skipped:
        logger.debug(f"Left {skipped} episode-like item(s) out of the playlist")

    if feed_id is not None:
        album = albums[0]
        return Playlist(
            title=f"{album.title} - Playlist",
            description=f"All songs from {album.title}",
            author=album.artist or DEFAULT_ARTIST,
            cover_art=album.cover_art,
            feed_id=feed_id,
            tracks=tracks,
        )

    return Playlist(
        title=ALL_SONGS_TITLE,
        description=ALL_SONGS_DESCRIPTION,
        author="albumfeed",
        tracks=tracks,
    )


def _sub(
    parent: ET.Element,
    tag: str,
    text: str | None = None,
    attrib: dict[str, str] | None = None,
) -> ET.Element:
    element = ET.SubElement(parent, tag, attrib or {})
    if text is not None:
        element.text = text
    return element


def _itunes(name: str) -> str:
    return f"{{{ITUNES_NS}}}{name}"


def _podcast(name: str) -> str:
    return f"{{{PODCAST_NS}}}{name}"


def render_rss(playlist: Playlist, generated_at: datetime | None = None) -> bytes:
    """Render a playlist as a UTF-8 RSS 2.0 document with ``podcast:medium`` musicL.

    Item ``pubDate`` values step back one hour per track from ``generated_at``
    so podcast apps keep the playlist order.
    """
    generated_at = (generated_at or now_utc()).astimezone(timezone.utc)
    build_date = format_datetime(generated_at, usegmt=True)
    guid_prefix = f"albumfeed-playlist-{playlist.feed_id or 'all'}"

    rss = ET.Element("rss", {"version": "2.0"})
    channel = _sub(rss, "channel")
    _sub(channel, "title", playlist.title)
    _sub(channel, "description", playlist.description)
    _sub(channel, "language", "en-us")
    _sub(channel, "pubDate", build_date)
    _sub(channel, "lastBuildDate", build_date)
    _sub(channel, "generator", f"albumfeed {__version__}")
    _sub(channel, _podcast("medium"), "musicL")
    _sub(channel, _podcast("guid"), guid_prefix)
    _sub(channel, _itunes("author"), playlist.author)
    _sub(channel, _itunes("summary"), playlist.description)
    _sub(channel, _itunes("type"), "episodic")
    _sub(channel, _itunes("explicit"), "false")
    _sub(channel, _itunes("category"), attrib={"text": "Music"})
    if playlist.cover_art:
        _sub(channel, _itunes("image"), attrib={"href": playlist.cover_art})
        image = _sub(channel, "image")
        _sub(image, "url", playlist.cover_art)
        _sub(image, "title", playlist.title)

    for index, track in enumerate(playlist.tracks):
        item = _sub(channel, "item")
        _sub(item, "title", f"{track.title} - {track.album_artist}")
        _sub(
            item,
            "description",
            f'From the album "{track.album_title}" by {track.album_artist}',
        )
        _sub(
            item,
            "guid",
            f"{guid_prefix}-track-{track.global_track_number}",
            {"isPermaLink": "false"},
        )
        _sub(item, "pubDate", format_datetime(generated_at - timedelta(hours=index), usegmt=True))
        _sub(item, "enclosure", attrib={"url": track.url, "type": "audio/mpeg", "length": "0"})
        _sub(item, _podcast("track"), str(track.global_track_number))
        if track.image:
            _sub(item, _podcast("images"), attrib={"srcset": f"{track.image} 3000w"})
        _sub(item, _itunes("title"), track.title)
        _sub(item, _itunes("artist"), track.album_artist)
        _sub(item, _itunes("album"), track.album_title)
        _sub(item, _itunes("duration"), str(track.duration))
        _sub(item, _itunes("explicit"), "true" if track.explicit else "false")
        if track.image:
            _sub(item, _itunes("image"), attrib={"href": track.image})

    ET.indent(rss)
    return ET.tostring(rss, encoding="utf-8", xml_declaration=True)
