"""HTTP API for albumfeed."""

from albumfeed.api.app import create_app

__all__ = ["create_app"]
