"""Pipeline orchestration components for the venue refresh run."""

from venue_refresh.pipeline.lock import PipelineLock
from venue_refresh.pipeline.orchestrator import RefreshPipeline

__all__ = [
    "PipelineLock",
    "RefreshPipeline",
]
