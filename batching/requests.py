"""Validated request models for creating and querying batches."""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from core.config import (
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_MODEL,
    DEFAULT_PARALLEL_REQUESTS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_TIMEOUT,
)
from core.types import BatchOperationType, BatchStatus


class BatchOptions(BaseModel):
    """Per-batch execution options.

    Accepts snake_case or camelCase keys (``retry_attempts`` or
    ``retryAttempts``). Unknown keys are kept and passed through to the
    provider.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    model: str = DEFAULT_MODEL
    temperature: float | None = Field(default=None, ge=0, le=2)
    max_tokens: int | None = Field(default=None, gt=0)
    batch_size: int | None = Field(default=None, gt=0)
    retry_attempts: int = Field(default=DEFAULT_RETRY_ATTEMPTS, ge=0, le=20)
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    priority: Literal["low", "normal", "high"] = "normal"
    parallel_requests: int = Field(default=DEFAULT_PARALLEL_REQUESTS, ge=1, le=64)
    quality_threshold: int | None = Field(default=None, ge=0, le=100)
    cache_ttl: float | None = Field(default=None, gt=0)
    use_cache: bool = True
    notify_on_complete: bool = False


class BatchCreationRequest(BaseModel):
    """Request to create a batch job."""

    model_config = ConfigDict(populate_by_name=True)

    operation: BatchOperationType
    filters: dict[str, Any] = Field(default_factory=dict)
    options: BatchOptions = Field(default_factory=BatchOptions)
    name: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=2000)

    @field_validator("options", mode="before")
    @classmethod
    def _none_options(cls, value: Any) -> Any:
        return {} if value is None else value


class BatchHistoryFilter(BaseModel):
    """Filter and pagination for batch history queries."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    operation: BatchOperationType | None = None
    status: BatchStatus | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None
    limit: int = Field(default=DEFAULT_HISTORY_LIMIT, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)

    @field_validator("created_after", "created_before")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
