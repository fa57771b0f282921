"""Summary statistics over batch item results."""

import math
from collections import Counter
from datetime import datetime
from typing import Any, TypedDict

from core.types import BatchItemResult, BatchJob

QUALITY_BUCKETS = ((0, 20), (20, 40), (40, 60), (60, 80), (80, 100))


class PerformanceMetrics(TypedDict):
    """Duration statistics in milliseconds."""

    average_duration: float
    total_duration: float
    requests_per_minute: float
    p50: float
    p95: float
    p99: float


class BatchSummary(TypedDict):
    """Aggregate view of a batch's item results."""

    total: int
    successful: int
    failed: int
    cached: int
    average_confidence: float
    quality_score: float
    business_areas: dict[str, int]
    pii_distribution: dict[str, int]
    performance_metrics: PerformanceMetrics


def percentile(sorted_values: list[float], p: float) -> float:
    """Nearest-rank percentile of an ascending list.

    rank = ceil(p/100 * N), value = sorted_values[rank - 1]. Empty input
    yields 0.0.

    Args:
        sorted_values: Values in ascending order.
        p: Percentile in (0, 100].

    Returns:
        The value at the nearest rank.
    """
    if not sorted_values:
        return 0.0
    rank = max(1, math.ceil(p / 100 * len(sorted_values)))
    return sorted_values[min(rank, len(sorted_values)) - 1]


def _payload_field(payload: dict[str, Any], *keys: str) -> Any:
    meta = payload.get("meta_json") if isinstance(payload.get("meta_json"), dict) else payload
    for key in keys:
        if meta.get(key) is not None:
            return meta[key]
    return None


def _confidence(payload: dict[str, Any]) -> float | None:
    meta = payload.get("meta_json") if isinstance(payload.get("meta_json"), dict) else payload
    quality = meta.get("quality") if isinstance(meta.get("quality"), dict) else {}
    value = quality.get("confidence", payload.get("confidence"))
    return float(value) if isinstance(value, (int, float)) else None


def summarize_results(
    results: list[BatchItemResult],
    started_at: datetime | None = None,
    finished_at: datetime | None = None,
) -> BatchSummary:
    """Build the summary block of a batch-with-results view.

    Args:
        results: Item results in completion order.
        started_at: When the batch started running.
        finished_at: When it finished (or now, for a running batch).

    Returns:
        BatchSummary with counts, distributions and performance metrics.
    """
    successes = [r for r in results if r.success]
    confidences = [c for r in successes if (c := _confidence(r.result or {})) is not None]
    scores = [r.quality_score for r in successes if r.quality_score is not None]

    business_areas: Counter[str] = Counter()
    pii: Counter[str] = Counter()
    for r in successes:
        area = _payload_field(r.result or {}, "businessArea", "business_area")
        if area:
            business_areas[str(area)] += 1
        pii_class = _payload_field(r.result or {}, "piiClass", "pii_class")
        if pii_class:
            pii[str(pii_class)] += 1

    durations = sorted(r.duration_ms for r in results)
    total_duration = sum(durations)
    elapsed_min = 0.0
    if started_at is not None and finished_at is not None:
        elapsed_min = (finished_at - started_at).total_seconds() / 60

    return {
        "total": len(results),
        "successful": len(successes),
        "failed": len(results) - len(successes),
        "cached": sum(1 for r in results if r.cached),
        "average_confidence": sum(confidences) / len(confidences) if confidences else 0.0,
        "quality_score": sum(scores) / len(scores) if scores else 0.0,
        "business_areas": dict(business_areas),
        "pii_distribution": dict(pii),
        "performance_metrics": {
            "average_duration": total_duration / len(durations) if durations else 0.0,
            "total_duration": total_duration,
            "requests_per_minute": len(results) / elapsed_min if elapsed_min > 0 else 0.0,
            "p50": percentile(durations, 50),
            "p95": percentile(durations, 95),
            "p99": percentile(durations, 99),
        },
    }


def build_visualization(job: BatchJob, results: list[BatchItemResult]) -> dict[str, Any]:
    """Dashboard view: overview, error and quality distributions, latency."""
    successful = sum(1 for r in results if r.success)
    failures = [r for r in results if not r.success]
    durations = sorted(r.duration_ms for r in results)

    errors = Counter(r.error or "unknown" for r in failures)
    error_distribution = [
        {"error": error, "count": count, "percentage": count / len(failures) * 100}
        for error, count in errors.most_common()
    ]

    scores = [r.quality_score for r in results if r.quality_score is not None]
    quality_distribution = []
    for low, high in QUALITY_BUCKETS:
        # Buckets share edges; the lower bound is exclusive except for the first
        count = sum(1 for s in scores if (s >= low if low == 0 else s > low) and s <= high)
        quality_distribution.append({"range": f"{low}-{high}", "count": count})

    return {
        "overview": {
            "total": job.total_items,
            "successful": successful,
            "failed": len(failures),
            "pending": max(0, job.total_items - len(results)),
            "success_rate": successful / len(results) * 100 if results else 0.0,
            "average_duration": sum(durations) / len(durations) if durations else 0.0,
        },
        "error_distribution": error_distribution,
        "quality_distribution": quality_distribution,
        "performance_metrics": {
            "average": sum(durations) / len(durations) if durations else 0.0,
            "p50": percentile(durations, 50),
            "p95": percentile(durations, 95),
            "p99": percentile(durations, 99),
            "min": durations[0] if durations else 0.0,
            "max": durations[-1] if durations else 0.0,
        },
    }
