"""Tests for batching/stats.py."""

from datetime import datetime, timedelta, timezone

import pytest

from batching.stats import build_visualization, percentile, summarize_results
from core.types import (
    BatchItemResult,
    BatchJob,
    BatchOperationType,
    ItemFailure,
    ItemSuccess,
)


def _ok(node_id, duration, score=None, payload=None, cached=False):
    return BatchItemResult(
        node_id=node_id,
        outcome=ItemSuccess(payload=payload or {}),
        duration_ms=duration,
        quality_score=score,
        cached=cached,
    )


def _fail(node_id, duration, message="boom"):
    return BatchItemResult(
        node_id=node_id,
        outcome=ItemFailure(error_kind="transport", message=message),
        duration_ms=duration,
    )


class TestPercentile:
    """Tests for nearest-rank percentiles."""

    def test_empty(self):
        """Empty input should give 0."""
        assert percentile([], 95) == 0.0

    def test_nearest_rank(self):
        """Percentiles should use rank = ceil(p/100 * N)."""
        values = [10.0, 20.0, 30.0, 40.0]
        assert percentile(values, 50) == 20.0
        assert percentile(values, 95) == 40.0
        assert percentile(values, 25) == 10.0

    def test_twenty_values(self):
        """p95 of 1..20 should be the 19th value."""
        values = [float(v) for v in range(1, 21)]
        assert percentile(values, 95) == 19.0
        assert percentile(values, 99) == 20.0

    def test_single_value(self):
        """A single value should be every percentile."""
        assert percentile([7.0], 1) == 7.0
        assert percentile([7.0], 99) == 7.0


class TestSummarizeResults:
    """Tests for summarize_results."""

    def test_counts_and_distributions(self):
        """Summary should count outcomes and tally areas and PII classes."""
        results = [
            _ok("a", 100, 80, {"businessArea": "sales", "piiClass": "low", "confidence": 0.8}),
            _ok(
                "b",
                0,
                40,
                {"meta_json": {"business_area": "sales", "quality": {"confidence": 0.6}}},
                cached=True,
            ),
            _fail("c", 300),
        ]
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        summary = summarize_results(results, start, start + timedelta(minutes=1))

        assert summary["total"] == 3
        assert summary["successful"] == 2
        assert summary["failed"] == 1
        assert summary["cached"] == 1
        assert summary["average_confidence"] == pytest.approx(0.7)
        assert summary["quality_score"] == 60
        assert summary["business_areas"] == {"sales": 2}
        assert summary["pii_distribution"] == {"low": 1}

        perf = summary["performance_metrics"]
        assert perf["total_duration"] == 400
        assert perf["requests_per_minute"] == 3
        assert perf["p50"] == 100
        assert perf["p99"] == 300

    def test_empty(self):
        """No results should give zeroed metrics."""
        summary = summarize_results([])
        assert summary["total"] == 0
        assert summary["performance_metrics"]["average_duration"] == 0.0
        assert summary["performance_metrics"]["requests_per_minute"] == 0.0


class TestBuildVisualization:
    """Tests for build_visualization."""

    def test_overview_and_distributions(self):
        """Visualization should report errors, quality buckets and latency bounds."""
        job = BatchJob(id="b1", operation=BatchOperationType.ANNOTATE, total_items=6)
        results = [
            _ok("a", 10, 0),
            _ok("b", 20, 20),
            _ok("c", 30, 21),
            _ok("d", 40, 100),
            _fail("e", 50, "timeout"),
        ]
        data = build_visualization(job, results)

        overview = data["overview"]
        assert overview["total"] == 6
        assert overview["successful"] == 4
        assert overview["failed"] == 1
        assert overview["pending"] == 1
        assert overview["success_rate"] == 80

        assert data["error_distribution"] == [{"error": "timeout", "count": 1, "percentage": 100.0}]
        buckets = {row["range"]: row["count"] for row in data["quality_distribution"]}
        assert buckets == {"0-20": 2, "20-40": 1, "40-60": 0, "60-80": 0, "80-100": 1}

        perf = data["performance_metrics"]
        assert perf["min"] == 10
        assert perf["max"] == 50
        assert perf["p50"] == 30
