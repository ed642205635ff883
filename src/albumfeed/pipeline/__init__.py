"""Feed ingestion pipeline."""

from albumfeed.pipeline.orchestrator import (
    FeedFailure,
    IngestionOptions,
    IngestionOrchestrator,
    IngestionResult,
)

__all__ = ["FeedFailure", "IngestionOptions", "IngestionOrchestrator", "IngestionResult"]
