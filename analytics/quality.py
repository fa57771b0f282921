"""Annotation quality scoring and manual review workflow.

Quality is a structural completeness score derived from the shape of an
annotation payload (description, tags, business area, PII class, schema).
Reviews move from pending to approved, rejected or needs_revision.
"""

import logging
import threading
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from core.config import DEFAULT_CONFIDENCE, DEFAULT_CONSISTENCY, RECENT_REVIEWS_LIMIT
from core.types import (
    MetaQuality,
    QAReview,
    QualityMetrics,
    QualityTrend,
    ReviewStatus,
    SchemaQuality,
    utcnow,
)
from storage.base import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

_REVIEW_PREFIX = "reviews/"

# Fields of QAReview a caller may change through update_review
_UPDATABLE_FIELDS = {"review_status", "reviewer", "quality_score", "metrics", "review_comments"}

_ISSUE_CHECKS: dict[str, Callable[[QualityMetrics], bool]] = {
    "missing_description": lambda m: not m["meta_quality"]["has_description"],
    "no_tags": lambda m: m["meta_quality"]["tag_count"] == 0,
    "missing_business_area": lambda m: not m["meta_quality"]["has_business_area"],
    "missing_pii_class": lambda m: not m["meta_quality"]["has_pii_class"],
    "missing_schema": lambda m: not m["schema_quality"]["has_schema"],
}


def _first(mapping: dict[str, Any], *keys: str) -> Any:
    """Return the first non-empty value among keys."""
    for key in keys:
        value = mapping.get(key)
        if value:
            return value
    return None


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


class QualityAssessor:
    """Computes quality metrics and manages QA reviews.

    Thread-safe. Reviews are kept in memory and, when a store is given,
    written through under ``reviews/<id>``.
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.clock = clock
        self._reviews: dict[str, QAReview] = {}
        self._trends: list[QualityTrend] = []
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def calculate_quality_metrics(self, item: dict[str, Any]) -> QualityMetrics:
        """Score the structural completeness of an annotation payload.

        Metadata is read from ``meta_json`` (or the payload itself) and the
        schema from ``schema_json`` or ``schema``. Confidence comes from
        ``meta.quality.confidence`` or ``confidence`` when the provider
        reported one; otherwise the explicit defaults are used (0.5 for
        confidence/accuracy, 0.7 for consistency).

        Args:
            item: Annotation payload.

        Returns:
            QualityMetrics with overall_score in [0, 100].
        """
        item = _as_dict(item)
        meta = _as_dict(item.get("meta_json")) or item
        schema = _as_dict(_first(item, "schema_json", "schema"))

        description = meta.get("description") or ""
        tags = meta.get("tags") or []
        meta_quality: MetaQuality = {
            "has_description": bool(description),
            "description_length": len(description) if isinstance(description, str) else 0,
            "tag_count": len(tags) if isinstance(tags, list) else 0,
            "has_business_area": bool(_first(meta, "businessArea", "business_area")),
            "has_pii_class": bool(_first(meta, "piiClass", "pii_class")),
        }

        fields = schema.get("fields") or []
        if not isinstance(fields, list):
            fields = []
        schema_quality: SchemaQuality = {
            "has_schema": bool(schema),
            "field_count": len(fields),
            "required_fields": sum(1 for f in fields if isinstance(f, dict) and f.get("required")),
            "validation_rules": sum(
                1 for f in fields if isinstance(f, dict) and f.get("validation")
            ),
        }

        completeness = (
            (0.3 if meta_quality["has_description"] else 0)
            + (0.2 if meta_quality["tag_count"] > 0 else 0)
            + (0.2 if meta_quality["has_business_area"] else 0)
            + (0.15 if meta_quality["has_pii_class"] else 0)
            + (0.15 if schema_quality["has_schema"] else 0)
        )

        reported = _as_dict(meta.get("quality")).get("confidence", item.get("confidence"))
        confidence = float(reported) if isinstance(reported, (int, float)) else DEFAULT_CONFIDENCE

        return {
            "completeness": completeness,
            "accuracy": confidence,
            "consistency": DEFAULT_CONSISTENCY,
            "confidence": confidence,
            "meta_quality": meta_quality,
            "schema_quality": schema_quality,
            "overall_score": round(completeness * 100),
        }

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    def create_review(
        self,
        node_id: str,
        reviewer: str | None = None,
        review_status: ReviewStatus | str = ReviewStatus.PENDING,
        quality_score: int | None = None,
        metrics: QualityMetrics | None = None,
        review_comments: str | None = None,
        batch_id: str | None = None,
    ) -> QAReview:
        """Open a review for a node.

        Returns:
            The created QAReview.
        """
        status = ReviewStatus(review_status)
        now = self.clock()
        review = QAReview(
            id=f"review_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}",
            node_id=node_id,
            review_status=status,
            reviewer=reviewer,
            quality_score=quality_score,
            metrics=metrics,
            review_comments=review_comments,
            batch_id=batch_id,
            created_at=now,
            reviewed_at=now if status is not ReviewStatus.PENDING else None,
        )
        with self._lock:
            self._reviews[review.id] = review
        self._persist(review)
        return review

    def open_review_once(
        self,
        node_id: str,
        quality_score: int | None = None,
        metrics: QualityMetrics | None = None,
        batch_id: str | None = None,
    ) -> QAReview | None:
        """Open a pending review unless the node already has one pending.

        Returns:
            The new review, or None if a pending review already existed.
        """
        now = self.clock()
        review = QAReview(
            id=f"review_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}",
            node_id=node_id,
            quality_score=quality_score,
            metrics=metrics,
            batch_id=batch_id,
            created_at=now,
        )
        with self._lock:
            if any(
                r.node_id == node_id and r.review_status is ReviewStatus.PENDING
                for r in self._reviews.values()
            ):
                return None
            self._reviews[review.id] = review
        self._persist(review)
        return review

    def get_review(self, review_id: str) -> QAReview | None:
        with self._lock:
            return self._reviews.get(review_id)

    def get_reviews_by_node(self, node_id: str) -> list[QAReview]:
        """Reviews for a node, newest first."""
        with self._lock:
            reviews = [r for r in self._reviews.values() if r.node_id == node_id]
        return sorted(reviews, key=lambda r: r.created_at, reverse=True)

    def get_reviews_by_status(
        self, status: ReviewStatus | str, limit: int = 50, offset: int = 0
    ) -> list[QAReview]:
        """Reviews in a status, newest first, paginated."""
        status = ReviewStatus(status)
        with self._lock:
            reviews = [r for r in self._reviews.values() if r.review_status is status]
        reviews.sort(key=lambda r: r.created_at, reverse=True)
        return reviews[offset : offset + limit]

    def update_review(self, review_id: str, **updates: Any) -> QAReview | None:
        """Apply reviewer updates.

        reviewed_at is stamped the first time the status leaves pending and
        never re-stamped by later corrections.

        Args:
            review_id: Review to update.
            **updates: Any of review_status, reviewer, quality_score,
                metrics, review_comments.

        Returns:
            Updated review, or None if review_id is unknown.

        Raises:
            ValueError: On unknown fields, an invalid status, or a decided
                review being moved back to pending.
        """
        unknown = set(updates) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update review fields: {', '.join(sorted(unknown))}")
        if "review_status" in updates:
            updates["review_status"] = ReviewStatus(updates["review_status"])

        with self._lock:
            review = self._reviews.get(review_id)
            if review is None:
                return None
            if (
                updates.get("review_status") is ReviewStatus.PENDING
                and review.review_status is not ReviewStatus.PENDING
            ):
                raise ValueError(
                    f"Review {review_id} is {review.review_status.value}; "
                    "it cannot return to pending"
                )
            for name, value in updates.items():
                setattr(review, name, value)
            if review.review_status is not ReviewStatus.PENDING and review.reviewed_at is None:
                review.reviewed_at = self.clock()
        self._persist(review)
        return review

    def restore(self) -> int:
        """Load persisted reviews from the store.

        Returns:
            Number of reviews loaded.
        """
        if self.store is None:
            return 0
        loaded = 0
        try:
            keys = self.store.list(_REVIEW_PREFIX)
        except StorageError as e:
            logger.warning(f"Could not list persisted reviews: {e}")
            return 0
        for key in keys:
            try:
                data = self.store.get_json(key)
            except StorageError as e:
                logger.warning(f"Skipping unreadable review {key}: {e}")
                continue
            if data is None:
                continue
            try:
                review = QAReview.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed review {key}: {e}")
                continue
            with self._lock:
                self._reviews[review.id] = review
            loaded += 1
        return loaded

    # ------------------------------------------------------------------
    # Dashboard & trends
    # ------------------------------------------------------------------

    def get_dashboard_data(self) -> dict[str, Any]:
        """Summary counts, recent reviews, trends and top issues."""
        with self._lock:
            reviews = list(self._reviews.values())
            trends = list(self._trends)

        counts = {status.value: 0 for status in ReviewStatus}
        for review in reviews:
            counts[review.review_status.value] += 1

        scores = [r.quality_score for r in reviews if r.quality_score is not None]
        review_times = [
            (r.reviewed_at - r.created_at).total_seconds()
            for r in reviews
            if r.reviewed_at is not None
        ]
        recent = sorted(reviews, key=lambda r: r.created_at, reverse=True)[:RECENT_REVIEWS_LIMIT]

        return {
            "summary": {
                "total_reviews": len(reviews),
                "pending_reviews": counts["pending"],
                "approved_reviews": counts["approved"],
                "rejected_reviews": counts["rejected"],
                "needs_revision_reviews": counts["needs_revision"],
                "average_quality_score": sum(scores) / len(scores) if scores else 0.0,
                "average_review_time": (
                    sum(review_times) / len(review_times) if review_times else 0.0
                ),
            },
            "recent_reviews": [r.to_dict() for r in recent],
            "quality_trends": trends,
            "top_issues": self._top_issues(reviews),
        }

    def record_metrics(
        self,
        metric_type: str,
        metric_value: float,
        node_count: int,
        batch_id: str | None = None,
    ) -> QualityTrend:
        """Append a point to the quality trend series."""
        trend = QualityTrend(
            timestamp=self.clock(),
            metric_type=metric_type,
            metric_value=metric_value,
            node_count=node_count,
            batch_id=batch_id,
        )
        with self._lock:
            self._trends.append(trend)
        logger.info(f"Recorded metric {metric_type} = {metric_value:.2f} ({node_count} nodes)")
        return trend

    def get_quality_trends(self, metric_type: str | None = None, days: int = 30) -> list[QualityTrend]:
        """Trend points from the last `days` days, oldest first."""
        cutoff = self.clock() - timedelta(days=days)
        with self._lock:
            return [
                t
                for t in self._trends
                if t.timestamp >= cutoff and (metric_type is None or t.metric_type == metric_type)
            ]

    @staticmethod
    def _top_issues(reviews: list[QAReview]) -> list[dict[str, Any]]:
        counts = {issue: 0 for issue in _ISSUE_CHECKS}
        for review in reviews:
            if not review.metrics:
                continue
            for issue, check in _ISSUE_CHECKS.items():
                if check(review.metrics):
                    counts[issue] += 1
        ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
        return [{"issue": issue, "count": count} for issue, count in ranked if count > 0]

    def _persist(self, review: QAReview) -> None:
        if self.store is None:
            return
        try:
            self.store.set_json(_REVIEW_PREFIX + review.id, review.to_dict())
        except (StorageError, TypeError, ValueError) as e:
            logger.warning(f"Review {review.id} could not be persisted: {e}")
