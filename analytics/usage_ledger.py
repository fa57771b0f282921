"""Usage, cost and latency accounting per (model, provider).

Every completed provider invocation (and every cache hit) is fed into
ModelUsageLedger.record_usage. Counters are accumulated incrementally and a
timestamped UsageEvent is kept so cost breakdowns can be windowed by time.
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Literal

from core.config import (
    COST_NORMALIZER_USD,
    COST_PERIOD_DAYS,
    DEFAULT_PRICE_PER_MILLION,
    DEFAULT_STATS_RETENTION_DAYS,
    MODEL_PRICING,
    SCORE_WEIGHTS,
    SPEED_NORMALIZER_MS,
)
from core.types import (
    CostBreakdown,
    ModelComparison,
    ModelCostRow,
    ModelUsageRecord,
    OperationCostRow,
    UsageEvent,
    utcnow,
)

logger = logging.getLogger(__name__)

CostPeriod = Literal["day", "week", "month"]


def estimate_cost(model: str, tokens: int) -> float:
    """Estimate USD cost of a call from its token count.

    Args:
        model: Model identifier (looked up in MODEL_PRICING).
        tokens: Total tokens consumed.

    Returns:
        Cost in USD, using DEFAULT_PRICE_PER_MILLION for unknown models.
    """
    rate = MODEL_PRICING.get(model, DEFAULT_PRICE_PER_MILLION)
    return tokens / 1_000_000 * rate


class ModelUsageLedger:
    """Accumulates usage counters per (model, provider) pair.

    Safe under concurrent writers: a single lock guards records and events.

    Attributes:
        clock: Time source returning an aware datetime (injectable for tests).
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self.clock = clock
        self._records: dict[tuple[str, str], ModelUsageRecord] = {}
        self._events: list[UsageEvent] = []
        self._lock = threading.Lock()

    def record_usage(
        self,
        model: str,
        provider: str,
        tokens_used: int,
        cost: float,
        duration_ms: float,
        success: bool,
        operation: str | None = None,
        cached: bool = False,
    ) -> ModelUsageRecord:
        """Fold one invocation into the (model, provider) record.

        Cached hits count as successful requests with zero cost and tokens
        and leave the duration average untouched.

        Args:
            model: Model identifier.
            provider: Provider name.
            tokens_used: Tokens consumed by the call.
            cost: Cost in USD.
            duration_ms: Call duration in milliseconds.
            success: Whether the call succeeded.
            operation: Batch operation kind, for per-operation breakdowns.
            cached: True when the result was served from the cache.

        Returns:
            A snapshot copy of the updated record.
        """
        now = self.clock()
        if cached:
            tokens_used, cost, success = 0, 0.0, True

        with self._lock:
            record = self._records.get((model, provider))
            if record is None:
                record = ModelUsageRecord(model_name=model, provider=provider, first_used=now)
                self._records[(model, provider)] = record

            record.total_requests += 1
            if success:
                record.successful_requests += 1
            else:
                record.failed_requests += 1
            if cached:
                record.cached_requests += 1
            else:
                timed = record.total_requests - record.cached_requests
                record.average_duration += (duration_ms - record.average_duration) / timed
            record.total_tokens += tokens_used
            record.total_cost += cost
            record.last_used = now

            self._events.append(
                UsageEvent(
                    timestamp=now,
                    model_name=model,
                    provider=provider,
                    operation=operation,
                    tokens=tokens_used,
                    cost=cost,
                    success=success,
                    cached=cached,
                )
            )
            return ModelUsageRecord(**vars(record))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_model_stats(self, model: str, provider: str | None = None) -> ModelUsageRecord | None:
        """Return a copy of the record for a model.

        When provider is omitted the first provider seen for the model is used.
        """
        with self._lock:
            if provider is not None:
                record = self._records.get((model, provider))
            else:
                record = next((r for r in self._records.values() if r.model_name == model), None)
            return ModelUsageRecord(**vars(record)) if record is not None else None

    def get_all_models_stats(self) -> list[ModelUsageRecord]:
        """Return copies of every record, in first-use order."""
        with self._lock:
            return [ModelUsageRecord(**vars(r)) for r in self._records.values()]

    def compare_models(self, model_names: list[str]) -> list[ModelComparison]:
        """Rank models by a weighted score of speed, accuracy, cost and reliability.

        Speed is normalized as max(0, 1 - avg_ms / 10000) and cost as
        max(0, 1 - total_usd / 100). Accuracy and reliability both use the
        success rate. Models without usage score zero on every dimension.

        Args:
            model_names: Models to compare.

        Returns:
            Comparisons sorted by overall_score, highest first.
        """
        comparisons: list[ModelComparison] = []
        for name in model_names:
            stats = self.get_model_stats(name)
            if stats is None or stats.total_requests == 0:
                comparisons.append(
                    {
                        "model_name": name,
                        "provider": "unknown",
                        "speed": 0.0,
                        "accuracy": 0.0,
                        "cost": 0.0,
                        "reliability": 0.0,
                        "overall_score": 0,
                    }
                )
                continue

            normalized_speed = max(0.0, 1 - stats.average_duration / SPEED_NORMALIZER_MS)
            normalized_cost = max(0.0, 1 - stats.total_cost / COST_NORMALIZER_USD)
            success_rate = stats.success_rate
            overall = round(
                normalized_speed * SCORE_WEIGHTS["speed"]
                + success_rate * SCORE_WEIGHTS["accuracy"]
                + normalized_cost * SCORE_WEIGHTS["cost"]
                + success_rate * SCORE_WEIGHTS["reliability"]
            )
            comparisons.append(
                {
                    "model_name": stats.model_name,
                    "provider": stats.provider,
                    "speed": stats.average_duration,
                    "accuracy": success_rate,
                    "cost": (
                        stats.total_cost / stats.total_tokens * 1000 if stats.total_tokens else 0.0
                    ),
                    "reliability": success_rate,
                    "overall_score": overall,
                }
            )

        return sorted(comparisons, key=lambda c: c["overall_score"], reverse=True)

    def get_cost_breakdown(self, period: CostPeriod = "month") -> CostBreakdown:
        """Aggregate cost over the last day, week or month.

        Only usage events recorded inside the window count.

        Args:
            period: One of 'day', 'week', 'month'.

        Returns:
            CostBreakdown with totals, per-model and per-operation rows.

        Raises:
            ValueError: If period is not recognized.
        """
        if period not in COST_PERIOD_DAYS:
            valid = ", ".join(COST_PERIOD_DAYS)
            raise ValueError(f"Unknown period: {period}. Valid periods: {valid}")

        end = self.clock()
        start = end - timedelta(days=COST_PERIOD_DAYS[period])

        with self._lock:
            window = [e for e in self._events if start <= e.timestamp <= end]

        by_model: dict[tuple[str, str], ModelCostRow] = {}
        by_operation: dict[str, OperationCostRow] = {}
        for event in window:
            row = by_model.setdefault(
                (event.model_name, event.provider),
                {
                    "model_name": event.model_name,
                    "provider": event.provider,
                    "cost": 0.0,
                    "requests": 0,
                    "tokens": 0,
                },
            )
            row["cost"] += event.cost
            row["requests"] += 1
            row["tokens"] += event.tokens

            op = by_operation.setdefault(
                event.operation or "unknown",
                {"operation_type": event.operation or "unknown", "cost": 0.0, "requests": 0},
            )
            op["cost"] += event.cost
            op["requests"] += 1

        return {
            "period": period,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "total_cost": sum(e.cost for e in window),
            "by_model": sorted(by_model.values(), key=lambda r: r["cost"], reverse=True),
            "by_operation": sorted(by_operation.values(), key=lambda r: r["cost"], reverse=True),
        }

    def get_model_recommendations(
        self,
        prioritize: Literal["speed", "accuracy", "cost", "balanced"] = "balanced",
        max_cost: float | None = None,
        min_accuracy: float | None = None,
    ) -> list[ModelComparison]:
        """Recommend models from recorded usage.

        Args:
            prioritize: Dimension to sort by; 'balanced' uses overall_score.
            max_cost: Drop models whose cost per 1k tokens exceeds this.
            min_accuracy: Drop models whose success rate is below this.

        Returns:
            Filtered comparisons, best first.
        """
        with self._lock:
            names = list(dict.fromkeys(r.model_name for r in self._records.values()))
        comparisons = self.compare_models(names)

        if max_cost is not None:
            comparisons = [c for c in comparisons if c["cost"] <= max_cost]
        if min_accuracy is not None:
            comparisons = [c for c in comparisons if c["accuracy"] >= min_accuracy]

        if prioritize == "speed":
            comparisons.sort(key=lambda c: c["speed"])
        elif prioritize == "accuracy":
            comparisons.sort(key=lambda c: c["accuracy"], reverse=True)
        elif prioritize == "cost":
            comparisons.sort(key=lambda c: c["cost"])
        return comparisons

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def cleanup_old_stats(self, days_to_keep: int = DEFAULT_STATS_RETENTION_DAYS) -> int:
        """Drop usage events older than days_to_keep.

        Aggregated records are kept; only the per-event history shrinks.

        Returns:
            Number of events removed.
        """
        cutoff = self.clock() - timedelta(days=days_to_keep)
        with self._lock:
            before = len(self._events)
            self._events = [e for e in self._events if e.timestamp >= cutoff]
            removed = before - len(self._events)
        if removed:
            logger.info(f"Pruned {removed} usage events older than {days_to_keep} days")
        return removed

    def reset(self) -> None:
        """Clear all records and events."""
        with self._lock:
            self._records.clear()
            self._events.clear()

    @property
    def event_count(self) -> int:
        with self._lock:
            return len(self._events)
