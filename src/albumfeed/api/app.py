"""FastAPI application exposing the feed store and ingestion pipeline."""

import asyncio
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Literal

from fastapi import Body, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from albumfeed import __version__
from albumfeed.api.schemas import AddFeedRequest, RemoveFeedRequest, UpdateFeedRequest
from albumfeed.config.schema import GlobalConfig
from albumfeed.feeds.fetcher import FeedFetcher
from albumfeed.feeds.store import FeedStore
from albumfeed.pipeline.orchestrator import Fetcher, IngestionOptions, IngestionOrchestrator
from albumfeed.playlist import build_playlist, render_rss
from albumfeed.snapshot import SnapshotStore
from albumfeed.utils import paths
from albumfeed.utils.datetime import isoformat_z, now_utc
from albumfeed.utils.errors import AlbumFeedError

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

FetcherFactory = Callable[[], AbstractAsyncContextManager[Fetcher]]


def _timestamp() -> str:
    return isoformat_z(now_utc())


def create_app(
    config: GlobalConfig | None = None,
    store: FeedStore | None = None,
    snapshot: SnapshotStore | None = None,
    fetcher_factory: FetcherFactory | None = None,
) -> FastAPI:
    """Build the API around explicitly constructed collaborators.

    Args:
        config: Global configuration (defaults used when omitted)
        store: Feed store; defaults to ``feeds.json`` in the data dir
        snapshot: Snapshot store; defaults to ``parsed-feeds.json`` in the data dir
        fetcher_factory: Returns an async context manager yielding a fetcher
            for one ingestion pass
    """
    config = config or GlobalConfig()
    store = store or FeedStore(paths.get_feeds_file(config.data_dir))
    snapshot = snapshot or SnapshotStore(paths.get_snapshot_file(config.data_dir))

    def default_fetcher() -> FeedFetcher:
        return FeedFetcher(
            timeout=config.fetch.timeout_seconds,
            user_agent=config.fetch.user_agent,
        )

    make_fetcher = fetcher_factory or default_fetcher

    app = FastAPI(title="albumfeed", version=__version__)
    app.state.config = config
    app.state.store = store
    app.state.snapshot = snapshot

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(AlbumFeedError)
    async def handle_albumfeed_error(request: Request, exc: AlbumFeedError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": str(exc), "timestamp": _timestamp()},
            headers=NO_CACHE_HEADERS,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Invalid request", "details": details},
        )

    @app.get("/feeds")
    def get_feeds(response: Response) -> dict:
        active = [feed.to_json_dict() for feed in store.list_active()]
        max_age = config.api.feeds_cache_seconds
        response.headers["Cache-Control"] = f"public, max-age={max_age}, s-maxage={max_age}"
        return {
            "core": [feed for feed in active if feed["priority"] == "core"],
            "extended": [feed for feed in active if feed["priority"] == "extended"],
            "low": [feed for feed in active if feed["priority"] == "low"],
            "publisher": [feed for feed in active if feed["type"] == "publisher"],
            "all": active,
            "total": len(active),
            "timestamp": _timestamp(),
        }

    @app.post("/feeds", status_code=201)
    def add_feed(body: AddFeedRequest) -> dict:
        feed = store.add(body.url, body.type, title=body.title, priority=body.priority)
        return {"success": True, "feed": feed.to_json_dict()}

    @app.delete("/feeds")
    def remove_feed(body: RemoveFeedRequest = Body(...)) -> dict:
        store.remove(body.feed_id)
        return {"success": True, "feedId": body.feed_id}

    @app.patch("/feeds")
    def update_feed(body: UpdateFeedRequest) -> dict:
        feed = store.update(body.feed_id, status=body.status, priority=body.priority)
        return {"success": True, "feed": feed.to_json_dict()}

    @app.get("/albums")
    async def get_albums(response: Response) -> dict:
        feeds = await asyncio.to_thread(store.list_active)
        async with make_fetcher() as fetcher:
            orchestrator = IngestionOrchestrator(
                fetcher,
                options=IngestionOptions(max_concurrency=config.fetch.max_concurrency),
            )
            result = await orchestrator.run(feeds)

        albums = [album.to_json_dict() for album in result.albums]
        response.headers.update(NO_CACHE_HEADERS)
        return {"albums": albums, "count": len(albums), "timestamp": _timestamp()}

    @app.get("/publishers")
    async def get_publishers(response: Response) -> dict:
        publishers = [publisher.to_json_dict() for publisher in await snapshot.publishers()]
        response.headers["Cache-Control"] = "public, max-age=300, s-maxage=300"
        return {"publishers": publishers, "total": len(publishers), "timestamp": _timestamp()}

    @app.get("/publishers/{publisher_id}")
    async def get_publisher(publisher_id: str, response: Response) -> dict:
        publisher = await snapshot.publisher(publisher_id)
        response.headers["Cache-Control"] = "public, max-age=300, s-maxage=300"
        return {**publisher.to_json_dict(), "timestamp": _timestamp()}

    @app.get("/playlist")
    async def get_playlist(
        feed_id: str | None = Query(None, alias="feedId"),
        output_format: Literal["rss", "json"] = Query("rss", alias="format"),
    ) -> Response:
        playlist = build_playlist(await snapshot.albums(), feed_id=feed_id)
        headers = {"Cache-Control": "public, max-age=3600"}
        if output_format == "json":
            return JSONResponse(playlist.to_json_dict(), headers=headers)
        return Response(
            content=render_rss(playlist),
            media_type="application/rss+xml; charset=utf-8",
            headers=headers,
        )

    @app.get("/parsed-feeds")
    async def get_parsed_feeds(
        response: Response,
        limit: int = Query(0, ge=0),
        offset: int = Query(0, ge=0),
    ) -> dict:
        document = await snapshot.parsed_feeds(limit=limit, offset=offset)
        response.headers["Cache-Control"] = "public, max-age=900, s-maxage=900"
        return document

    return app
