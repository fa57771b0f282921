"""Type definitions for the annotation batch engine.

Provides enums, dataclasses and TypedDicts for type-safe data structures.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypedDict


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# ===================================================================
# Enumerations
# ===================================================================


class BatchStatus(str, Enum):
    """Lifecycle states of a batch job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """True for states no transition may leave."""
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({BatchStatus.COMPLETED, BatchStatus.FAILED, BatchStatus.CANCELLED})


class BatchOperationType(str, Enum):
    """Kinds of bulk operation a batch can perform."""

    ANNOTATE = "annotate"
    IMPORT = "import"
    EXPORT = "export"
    TRANSFORM = "transform"
    REPORT = "report"
    VALIDATE = "validate"
    CLEANUP = "cleanup"


class ReviewStatus(str, Enum):
    """Manual review states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_REVISION = "needs_revision"


class ItemOutcome(str, Enum):
    """Outcome tag attached to every item result."""

    SUCCESS = "success"
    CACHED = "cached"
    FAILED = "failed"


class EventType(str, Enum):
    """Lifecycle events emitted by the orchestrator."""

    CREATED = "batch:created"
    PROGRESS = "batch:progress"
    COMPLETED = "batch:completed"
    FAILED = "batch:failed"
    CANCELLED = "batch:cancelled"
    ITEM_COMPLETED = "batch:item_completed"
    ERROR = "batch:error"


# ===================================================================
# Batch Types
# ===================================================================


@dataclass(frozen=True)
class BatchItem:
    """One candidate handed out by an item source.

    Attributes:
        node_id: Identifier of the entity to annotate.
        input: Annotation input sent to the provider (JSON-serializable).
    """

    node_id: str
    input: Any


@dataclass(frozen=True)
class ItemSuccess:
    """Successful item outcome carrying the opaque provider payload."""

    payload: dict[str, Any]


@dataclass(frozen=True)
class ItemFailure:
    """Failed item outcome."""

    error_kind: str
    message: str


@dataclass(frozen=True)
class BatchItemResult:
    """Outcome for one processed candidate. Never mutated after creation.

    Attributes:
        node_id: Identifier of the processed entity.
        outcome: ItemSuccess or ItemFailure.
        retries: Retries actually consumed (attempts - 1).
        duration_ms: Wall time of the successful or final call.
        quality_score: Structural quality score in [0, 100], if computed.
        cached: True when the payload came from the annotation cache.
        created_at: When the result was recorded.
    """

    node_id: str
    outcome: ItemSuccess | ItemFailure
    retries: int = 0
    duration_ms: float = 0.0
    quality_score: int | None = None
    cached: bool = False
    created_at: datetime = field(default_factory=utcnow)

    @property
    def success(self) -> bool:
        return isinstance(self.outcome, ItemSuccess)

    @property
    def result(self) -> dict[str, Any] | None:
        return self.outcome.payload if isinstance(self.outcome, ItemSuccess) else None

    @property
    def error(self) -> str | None:
        return self.outcome.message if isinstance(self.outcome, ItemFailure) else None

    @property
    def tag(self) -> ItemOutcome:
        if not self.success:
            return ItemOutcome.FAILED
        return ItemOutcome.CACHED if self.cached else ItemOutcome.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "nodeId": self.node_id,
            "success": self.success,
            "outcome": self.tag.value,
            "retries": self.retries,
            "durationMs": self.duration_ms,
            "qualityScore": self.quality_score,
            "createdAt": _iso(self.created_at),
        }
        if isinstance(self.outcome, ItemSuccess):
            data["result"] = self.outcome.payload
        else:
            data["error"] = self.outcome.message
            data["errorKind"] = self.outcome.error_kind
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BatchItemResult":
        if data.get("success"):
            outcome: ItemSuccess | ItemFailure = ItemSuccess(payload=data.get("result") or {})
        else:
            outcome = ItemFailure(
                error_kind=data.get("errorKind", "unknown"), message=data.get("error", "")
            )
        return cls(
            node_id=data["nodeId"],
            outcome=outcome,
            retries=data.get("retries", 0),
            duration_ms=data.get("durationMs", 0.0),
            quality_score=data.get("qualityScore"),
            cached=data.get("outcome") == ItemOutcome.CACHED.value,
            created_at=_parse_iso(data.get("createdAt")) or utcnow(),
        )


@dataclass
class BatchJob:
    """A bulk operation tracked as a single lifecycle object.

    Mutated only by the orchestrator, under the job's lock.
    """

    id: str
    operation: BatchOperationType
    filters: dict[str, Any] = field(default_factory=dict)
    options: dict[str, Any] = field(default_factory=dict)
    status: BatchStatus = BatchStatus.PENDING
    progress: float = 0.0
    total_items: int = 0
    processed_items: int = 0
    failed_items: int = 0
    name: str | None = None
    description: str | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "operation": self.operation.value,
            "filters": self.filters,
            "options": self.options,
            "status": self.status.value,
            "progress": self.progress,
            "total_items": self.total_items,
            "processed_items": self.processed_items,
            "failed_items": self.failed_items,
            "name": self.name,
            "description": self.description,
            "error": self.error,
            "created_at": _iso(self.created_at),
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BatchJob":
        return cls(
            id=data["id"],
            operation=BatchOperationType(data["operation"]),
            filters=data.get("filters") or {},
            options=data.get("options") or {},
            status=BatchStatus(data.get("status", "pending")),
            progress=data.get("progress", 0.0),
            total_items=data.get("total_items", 0),
            processed_items=data.get("processed_items", 0),
            failed_items=data.get("failed_items", 0),
            name=data.get("name"),
            description=data.get("description"),
            error=data.get("error"),
            created_at=_parse_iso(data.get("created_at")) or utcnow(),
            started_at=_parse_iso(data.get("started_at")),
            completed_at=_parse_iso(data.get("completed_at")),
        )


# ===================================================================
# Cache Types
# ===================================================================


@dataclass
class CacheEntry:
    """A cached value with absolute expiry (epoch seconds)."""

    key: str
    value: Any
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        """Entries are logically absent once now passes expires_at."""
        return now >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ===================================================================
# Usage Types
# ===================================================================


@dataclass
class ModelUsageRecord:
    """Accumulated usage for one (model, provider) pair.

    Attributes:
        average_duration: Incremental mean over non-cached requests, in ms.
    """

    model_name: str
    provider: str
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    cached_requests: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    average_duration: float = 0.0
    first_used: datetime | None = None
    last_used: datetime | None = None

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["success_rate"] = self.success_rate
        data["first_used"] = _iso(self.first_used)
        data["last_used"] = _iso(self.last_used)
        return data


@dataclass(frozen=True)
class UsageEvent:
    """Timestamped record of one provider invocation (or cache hit)."""

    timestamp: datetime
    model_name: str
    provider: str
    operation: str | None
    tokens: int
    cost: float
    success: bool
    cached: bool = False


class ModelComparison(TypedDict):
    """Weighted comparison row for one model."""

    model_name: str
    provider: str
    speed: float
    accuracy: float
    cost: float
    reliability: float
    overall_score: int


class ModelCostRow(TypedDict):
    """Per-model slice of a cost breakdown."""

    model_name: str
    provider: str
    cost: float
    requests: int
    tokens: int


class OperationCostRow(TypedDict):
    """Per-operation slice of a cost breakdown."""

    operation_type: str
    cost: float
    requests: int


class CostBreakdown(TypedDict):
    """Cost aggregation over a time window."""

    period: str
    start_date: str
    end_date: str
    total_cost: float
    by_model: list[ModelCostRow]
    by_operation: list[OperationCostRow]


# ===================================================================
# Quality Types
# ===================================================================


class MetaQuality(TypedDict):
    """Presence/size indicators of annotation metadata."""

    has_description: bool
    description_length: int
    tag_count: int
    has_business_area: bool
    has_pii_class: bool


class SchemaQuality(TypedDict):
    """Richness indicators of an annotated schema."""

    has_schema: bool
    field_count: int
    required_fields: int
    validation_rules: int


class QualityMetrics(TypedDict):
    """Structural quality assessment of one annotation result."""

    completeness: float
    accuracy: float
    consistency: float
    confidence: float
    meta_quality: MetaQuality
    schema_quality: SchemaQuality
    overall_score: int


@dataclass
class QAReview:
    """A manual review of one annotated node."""

    id: str
    node_id: str
    review_status: ReviewStatus = ReviewStatus.PENDING
    reviewer: str | None = None
    quality_score: int | None = None
    metrics: QualityMetrics | None = None
    review_comments: str | None = None
    batch_id: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    reviewed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "node_id": self.node_id,
            "review_status": self.review_status.value,
            "reviewer": self.reviewer,
            "quality_score": self.quality_score,
            "metrics": self.metrics,
            "review_comments": self.review_comments,
            "batch_id": self.batch_id,
            "created_at": _iso(self.created_at),
            "reviewed_at": _iso(self.reviewed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QAReview":
        return cls(
            id=data["id"],
            node_id=data["node_id"],
            review_status=ReviewStatus(data.get("review_status", "pending")),
            reviewer=data.get("reviewer"),
            quality_score=data.get("quality_score"),
            metrics=data.get("metrics"),
            review_comments=data.get("review_comments"),
            batch_id=data.get("batch_id"),
            created_at=_parse_iso(data.get("created_at")) or utcnow(),
            reviewed_at=_parse_iso(data.get("reviewed_at")),
        )


@dataclass(frozen=True)
class QualityTrend:
    """One point of a quality metric time series."""

    timestamp: datetime
    metric_type: str
    metric_value: float
    node_count: int
    batch_id: str | None = None
