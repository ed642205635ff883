"""Request bodies accepted by the HTTP API."""

from pydantic import Field

from albumfeed.feeds.models import CamelModel, FeedType, Priority, Status


class AddFeedRequest(CamelModel):
    url: str = Field(min_length=1)
    type: FeedType = "album"
    title: str | None = None
    priority: Priority = "core"


class RemoveFeedRequest(CamelModel):
    feed_id: str = Field(min_length=1)


class UpdateFeedRequest(CamelModel):
    """Status and/or priority change for one feed."""

    feed_id: str = Field(min_length=1)
    status: Status | None = None
    priority: Priority | None = None
