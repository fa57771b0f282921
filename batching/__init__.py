"""Batch orchestration for bulk annotation jobs.

Provides:
    - BatchOrchestrator: Create, run, cancel and query batch jobs
    - BatchCreationRequest, BatchOptions, BatchHistoryFilter: Validated requests
    - EventSink implementations for lifecycle events
    - ItemSource implementations that enumerate batch candidates
"""

from .errors import (
    BatchError,
    BatchNotFoundError,
    BatchStateError,
    BatchValidationError,
    ItemSourceError,
)
from .events import (
    CompositeEventSink,
    EventSink,
    InMemoryEventSink,
    JsonlEventSink,
    LoggingEventSink,
)
from .orchestrator import BatchOrchestrator
from .requests import BatchCreationRequest, BatchHistoryFilter, BatchOptions
from .sources import InMemoryItemSource, ItemSource, JsonlItemSource
from .stats import build_visualization, percentile, summarize_results

__all__ = [
    "BatchCreationRequest",
    "BatchError",
    "BatchHistoryFilter",
    "BatchNotFoundError",
    "BatchOptions",
    "BatchOrchestrator",
    "BatchStateError",
    "BatchValidationError",
    "CompositeEventSink",
    "EventSink",
    "InMemoryEventSink",
    "InMemoryItemSource",
    "ItemSource",
    "ItemSourceError",
    "JsonlEventSink",
    "JsonlItemSource",
    "LoggingEventSink",
    "build_visualization",
    "percentile",
    "summarize_results",
]
