"""Batch orchestrator: runs bulk annotation jobs against a provider.

A batch is created pending, run once, and ends completed, failed or
cancelled. Items are dispatched to a bounded thread pool; each one goes
through the annotation cache, then the provider with retry and backoff,
and its usage and quality are recorded along the way.
"""

import itertools
import logging
import threading
import time
import uuid
from collections import Counter, deque
from collections.abc import Callable, Mapping
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from analytics.quality import QualityAssessor
from analytics.usage_ledger import ModelUsageLedger
from caching.annotation_cache import AnnotationCache
from configs.base import OrchestratorConfig
from core.types import (
    BatchItem,
    BatchItemResult,
    BatchJob,
    BatchStatus,
    EventType,
    ItemFailure,
    ItemSuccess,
    utcnow,
)
from providers.base import Provider, ProviderError, ProviderResult
from storage.base import KeyValueStore, StorageError

from .errors import BatchNotFoundError, BatchStateError, BatchValidationError
from .events import EventSink, LoggingEventSink
from .requests import BatchCreationRequest, BatchHistoryFilter, BatchOptions
from .sources import ItemSource
from .stats import build_visualization, summarize_results

logger = logging.getLogger(__name__)

JOB_PREFIX = "batches/"
RESULTS_PREFIX = "batch_results/"

# Allowed forward transitions; terminal states have none
TRANSITIONS = {
    BatchStatus.PENDING: {BatchStatus.RUNNING, BatchStatus.CANCELLED},
    BatchStatus.RUNNING: {BatchStatus.COMPLETED, BatchStatus.FAILED, BatchStatus.CANCELLED},
}

TERMINAL_EVENTS = {
    BatchStatus.COMPLETED: EventType.COMPLETED,
    BatchStatus.FAILED: EventType.FAILED,
    BatchStatus.CANCELLED: EventType.CANCELLED,
}


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.retryable


class _JobState:
    """A job plus the bookkeeping that never leaves the orchestrator."""

    def __init__(self, job: BatchJob, results: list[BatchItemResult] | None = None) -> None:
        self.job = job
        self.results = results or []
        self.lock = threading.RLock()
        self.cancel_event = threading.Event()
        self.claimed = False


class BatchOrchestrator:
    """Creates, runs and tracks batch jobs.

    Collaborators not passed in are created privately; an owned cache is
    started on construction and closed by close().

    Example:
        with BatchOrchestrator(EchoProvider(), InMemoryItemSource(items)) as orch:
            job = orch.create({"operation": "annotate", "options": {"retryAttempts": 2}})
            orch.run(job.id)
            print(orch.get_batch_with_results(job.id)["summary"])
    """

    def __init__(
        self,
        provider: Provider,
        item_source: ItemSource,
        cache: AnnotationCache | None = None,
        ledger: ModelUsageLedger | None = None,
        assessor: QualityAssessor | None = None,
        events: EventSink | None = None,
        store: KeyValueStore | None = None,
        config: OrchestratorConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            provider: Annotation provider used for every item.
            item_source: Supplies the candidates of each batch.
            cache: Annotation cache (default: private, in-memory).
            ledger: Model usage ledger (default: private).
            assessor: Quality assessor (default: private, sharing `store`).
            events: Event sink (default: logs every event).
            store: Optional persistence for jobs and results.
            config: Orchestrator defaults (default: OrchestratorConfig()).
            clock: Time source for job timestamps.
            sleep: Used for retry backoff (injectable for tests).
        """
        self.provider = provider
        self.item_source = item_source
        self.config = config or OrchestratorConfig()
        self._owns_cache = cache is None
        self.cache = cache or AnnotationCache(
            default_ttl=self.config.cache_ttl,
            namespace_ttls=self.config.namespace_ttls,
            sweep_interval=self.config.cache_sweep_interval,
        )
        self.ledger = ledger or ModelUsageLedger()
        self.assessor = assessor or QualityAssessor(store=store)
        self.events = events or LoggingEventSink()
        self.store = store
        self._clock = clock
        self._sleep = sleep

        self._jobs: dict[str, _JobState] = {}
        self._lock = threading.Lock()
        self._seq = itertools.count()
        self._background = ThreadPoolExecutor(
            max_workers=self.config.max_concurrent_batches, thread_name_prefix="batch-run"
        )
        self._closed = False

        if self._owns_cache:
            self.cache.start()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create(self, request: BatchCreationRequest | Mapping[str, Any]) -> BatchJob:
        """Create a pending batch job.

        Args:
            request: Validated request or a plain mapping (camelCase or
                snake_case option keys).

        Returns:
            The new job.

        Raises:
            BatchValidationError: If the request is malformed.
        """
        if not isinstance(request, BatchCreationRequest):
            try:
                request = BatchCreationRequest.model_validate(request)
            except ValidationError as e:
                raise BatchValidationError(f"Invalid batch request: {e}") from e

        defaults = {
            k: v
            for k, v in self.config.option_defaults().items()
            if k not in request.options.model_fields_set
        }
        options = request.options.model_copy(update=defaults)

        now = self._clock()
        job = BatchJob(
            id=self._new_id(now),
            operation=request.operation,
            filters=dict(request.filters),
            options=options.model_dump(),
            name=request.name,
            description=request.description,
            created_at=now,
        )
        state = _JobState(job)
        with self._lock:
            self._jobs[job.id] = state
        with state.lock:
            self._persist_job(job)
            self._emit(EventType.CREATED, job.id, job.to_dict())
        logger.info(f"Created batch {job.id} ({job.operation.value})")
        return job

    def _new_id(self, now: datetime) -> str:
        ms = int(now.timestamp() * 1000)
        return f"batch_{ms:013d}_{next(self._seq):06d}_{uuid.uuid4().hex[:9]}"

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def submit(self, job_id: str) -> "Future[BatchJob]":
        """Schedule run(job_id) on the background executor.

        Raises:
            BatchNotFoundError: If the job does not exist.
            BatchStateError: If the job is not pending.
        """
        state = self._get_state(job_id)
        with state.lock:
            if state.job.status is not BatchStatus.PENDING or state.claimed:
                raise BatchStateError(f"Batch {job_id} is {state.job.status.value}, not pending")
        return self._background.submit(self.run, job_id)

    def run(self, job_id: str) -> BatchJob:
        """Run a pending batch to a terminal state. Blocks until done.

        Per-item failures never raise; they are recorded on the item.

        Returns:
            The job after it reached completed, failed or cancelled.

        Raises:
            BatchNotFoundError: If the job does not exist.
            BatchStateError: If the job is not pending.
        """
        state = self._get_state(job_id)
        job = state.job
        with state.lock:
            if job.status is not BatchStatus.PENDING or state.claimed:
                raise BatchStateError(f"Batch {job_id} is {job.status.value}, not pending")
            state.claimed = True
            self._transition(state, BatchStatus.RUNNING)
            self._persist_job(job)

        options = BatchOptions.model_validate(job.options)
        logger.info(
            f"Running batch {job_id}: model={options.model}, "
            f"parallel={options.parallel_requests}, retries={options.retry_attempts}"
        )

        try:
            items = list(self.item_source.list_items(job.filters))
        except Exception as e:
            logger.error(f"Item source failed for batch {job_id}: {e}")
            self._fail(state, f"Item source unavailable: {e}")
            return job

        with state.lock:
            if job.status.is_terminal:
                return job
            job.total_items = len(items)
            self._emit_progress(state)
            if not items:
                job.progress = 1.0
                self._finish(state, BatchStatus.COMPLETED)
                return job

        try:
            self._dispatch(state, items, options)
        except Exception as e:
            logger.exception(f"Batch {job_id} aborted")
            self._fail(state, f"Internal error: {e}")
            raise

        self._persist_results(state)
        return job

    def _dispatch(self, state: _JobState, items: list[BatchItem], options: BatchOptions) -> None:
        """Feed items to the pool, never more than parallel_requests at once."""
        queue = deque(items)
        in_flight: set[Future] = set()
        with ThreadPoolExecutor(
            max_workers=options.parallel_requests, thread_name_prefix=f"items-{state.job.id[-9:]}"
        ) as executor:
            while queue or in_flight:
                while (
                    queue
                    and len(in_flight) < options.parallel_requests
                    and not state.cancel_event.is_set()
                ):
                    item = queue.popleft()
                    in_flight.add(executor.submit(self._process_item, state, item, options))
                if not in_flight:
                    break
                done, in_flight = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    self._complete_item(state, future.result())

        if queue:
            logger.info(f"Batch {state.job.id}: {len(queue)} items not dispatched (cancelled)")

    def _process_item(
        self, state: _JobState, item: BatchItem, options: BatchOptions
    ) -> BatchItemResult:
        """Annotate one item. Never raises."""
        try:
            return self._annotate(state.job, item, options)
        except Exception as e:
            logger.exception(f"Unexpected error on item {item.node_id} of batch {state.job.id}")
            with state.lock:
                self._emit(EventType.ERROR, state.job.id, {"nodeId": item.node_id, "error": str(e)})
            return BatchItemResult(
                node_id=item.node_id,
                outcome=ItemFailure(error_kind="internal", message=str(e)),
                created_at=self._clock(),
            )

    def _annotate(self, job: BatchJob, item: BatchItem, options: BatchOptions) -> BatchItemResult:
        operation = job.operation.value
        provider_name = self.provider.name
        key = self.cache.generate_key(options.model, item.input, operation)

        if options.use_cache:
            hit = self.cache.get(key)
            if hit is not None:
                self.ledger.record_usage(
                    options.model, provider_name, 0, 0.0, 0.0, True, operation, cached=True
                )
                return BatchItemResult(
                    node_id=item.node_id,
                    outcome=ItemSuccess(payload=hit),
                    quality_score=self._score(job, item, hit, options),
                    cached=True,
                    created_at=self._clock(),
                )

        start = time.perf_counter()
        try:
            result, retries = self._invoke_with_retry(item, options)
        except ProviderError as e:
            duration_ms = (time.perf_counter() - start) * 1000
            self.ledger.record_usage(
                options.model, provider_name, 0, 0.0, duration_ms, False, operation
            )
            logger.warning(f"Item {item.node_id} failed after {e.attempts - 1} retries: {e}")
            return BatchItemResult(
                node_id=item.node_id,
                outcome=ItemFailure(error_kind=e.kind, message=e.message),
                retries=e.attempts - 1,
                duration_ms=duration_ms,
                created_at=self._clock(),
            )

        duration_ms = result.duration_ms or (time.perf_counter() - start) * 1000
        if options.use_cache:
            self.cache.set(key, result.output, ttl=options.cache_ttl or self.cache.ttl_for(operation))
        self.ledger.record_usage(
            options.model,
            provider_name,
            result.tokens_used,
            result.cost_usd,
            duration_ms,
            True,
            operation,
        )
        return BatchItemResult(
            node_id=item.node_id,
            outcome=ItemSuccess(payload=result.output),
            retries=retries,
            duration_ms=duration_ms,
            quality_score=self._score(job, item, result.output, options),
            created_at=self._clock(),
        )

    def _invoke_with_retry(
        self, item: BatchItem, options: BatchOptions
    ) -> tuple[ProviderResult, int]:
        """Call the provider, retrying transient errors with backoff.

        Returns:
            (result, retries consumed).

        Raises:
            ProviderError: The final error, with `attempts` set.
        """
        provider_options = options.model_dump(exclude={"model"})
        attempts = 0
        retrying = Retrying(
            stop=stop_after_attempt(options.retry_attempts + 1),
            wait=wait_exponential(multiplier=self.config.backoff_base, max=self.config.backoff_max),
            retry=retry_if_exception(_is_retryable),
            sleep=self._sleep,
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    return self._call_provider(options, item.input, provider_options), attempts - 1
        except ProviderError as e:
            e.attempts = attempts
            raise
        raise AssertionError("unreachable: tenacity either returns or reraises")

    def _call_provider(
        self, options: BatchOptions, input: Any, provider_options: dict[str, Any]
    ) -> ProviderResult:
        """Invoke the provider on a thread of its own, waiting at most options.timeout.

        The wait starts with the call itself. An overrunning call is
        abandoned; its thread ends whenever the provider returns, and
        providers also receive the timeout to bound their transport.
        """
        future: "Future[ProviderResult]" = Future()
        future.set_running_or_notify_cancel()

        def call() -> None:
            try:
                future.set_result(self.provider.invoke(options.model, input, provider_options))
            except Exception as e:
                future.set_exception(e)

        threading.Thread(target=call, name="provider-call", daemon=True).start()
        try:
            return future.result(timeout=options.timeout)
        except FutureTimeoutError:
            raise ProviderError("timeout", f"No response within {options.timeout}s") from None

    def _score(
        self, job: BatchJob, item: BatchItem, payload: dict[str, Any], options: BatchOptions
    ) -> int:
        metrics = self.assessor.calculate_quality_metrics(payload)
        score = metrics["overall_score"]
        if options.quality_threshold is not None and score < options.quality_threshold:
            review = self.assessor.open_review_once(
                item.node_id, quality_score=score, metrics=metrics, batch_id=job.id
            )
            if review is not None:
                logger.info(
                    f"Opened QA review for {item.node_id}: "
                    f"score {score} < {options.quality_threshold}"
                )
        return score

    def _complete_item(self, state: _JobState, result: BatchItemResult) -> None:
        job = state.job
        with state.lock:
            self.record_result(job.id, result)
            processed = job.processed_items + 1
            if not result.success:
                job.failed_items += 1
            if job.status.is_terminal:
                # Finished after cancellation: keep the count, stay silent
                job.processed_items = processed
                job.progress = processed / job.total_items if job.total_items else 1.0
                self._persist_job(job)
                return
            self._emit(EventType.ITEM_COMPLETED, job.id, result.to_dict())
            status = BatchStatus.COMPLETED if processed >= job.total_items else None
            self.update_batch_progress(job.id, processed, status)

    # ------------------------------------------------------------------
    # State changes
    # ------------------------------------------------------------------

    def update_batch_progress(
        self, job_id: str, processed_items: int, status: BatchStatus | str | None = None
    ) -> bool:
        """Advance a job's progress and optionally its status.

        processed_items never decreases; a lower value is ignored.

        Returns:
            False if the job is already terminal, True otherwise.

        Raises:
            BatchNotFoundError: If the job does not exist.
            BatchStateError: If the status transition is not allowed.
        """
        state = self._get_state(job_id)
        job = state.job
        with state.lock:
            if job.status.is_terminal:
                return False
            if processed_items > job.processed_items:
                job.processed_items = (
                    min(processed_items, job.total_items) if job.total_items else processed_items
                )
            job.progress = job.processed_items / job.total_items if job.total_items else 1.0
            new_status = BatchStatus(status) if status is not None else None
            if new_status is not None and new_status is not job.status:
                self._check_transition(job, new_status)
                if not new_status.is_terminal:
                    self._transition(state, new_status)
            self._emit_progress(state, new_status)
            if new_status is not None and new_status.is_terminal:
                self._finish(state, new_status)
        return True

    def record_result(self, job_id: str, result: BatchItemResult) -> None:
        """Append an item result to a job."""
        state = self._get_state(job_id)
        with state.lock:
            state.results.append(result)

    def cancel(self, job_id: str) -> bool:
        """Cancel a pending or running job.

        In-flight items finish and are recorded; nothing new is dispatched.

        Returns:
            True if the job was cancelled, False if unknown or already terminal.
        """
        with self._lock:
            state = self._jobs.get(job_id)
        if state is None:
            return False
        with state.lock:
            if state.job.status.is_terminal:
                return False
            state.cancel_event.set()
            self._finish(state, BatchStatus.CANCELLED)
        logger.info(f"Cancelled batch {job_id}")
        return True

    def _fail(self, state: _JobState, error: str) -> None:
        with state.lock:
            if state.job.status.is_terminal:
                return
            state.job.error = error
            self._finish(state, BatchStatus.FAILED)

    def _check_transition(self, job: BatchJob, new_status: BatchStatus) -> None:
        if new_status not in TRANSITIONS.get(job.status, set()):
            raise BatchStateError(
                f"Batch {job.id} cannot go from {job.status.value} to {new_status.value}"
            )

    def _transition(self, state: _JobState, new_status: BatchStatus) -> None:
        job = state.job
        self._check_transition(job, new_status)
        job.status = new_status
        now = self._clock()
        if new_status is BatchStatus.RUNNING and job.started_at is None:
            job.started_at = now
        if new_status.is_terminal and job.completed_at is None:
            job.completed_at = now

    def _finish(self, state: _JobState, status: BatchStatus) -> None:
        """Move to a terminal status and emit its event. Caller holds the lock."""
        job = state.job
        self._transition(state, status)
        payload: dict[str, Any] = {
            "status": status.value,
            "progress": job.progress,
            "processedItems": job.processed_items,
            "totalItems": job.total_items,
            "failedItems": job.failed_items,
        }
        if job.error:
            payload["error"] = job.error
        self._emit(TERMINAL_EVENTS[status], job.id, payload)
        self._persist_job(job)
        self._persist_results(state)

        if status is BatchStatus.COMPLETED:
            scores = [r.quality_score for r in state.results if r.quality_score is not None]
            if scores:
                self.assessor.record_metrics(
                    "batch_quality", sum(scores) / len(scores), len(scores), job.id
                )
        logger.info(
            f"Batch {job.id} {status.value}: {job.processed_items}/{job.total_items} processed, "
            f"{job.failed_items} failed"
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_batch(self, job_id: str) -> BatchJob | None:
        with self._lock:
            state = self._jobs.get(job_id)
        return state.job if state else None

    def get_results(self, job_id: str) -> list[BatchItemResult]:
        with self._lock:
            state = self._jobs.get(job_id)
        if state is None:
            return []
        with state.lock:
            return list(state.results)

    def get_batch_with_results(self, job_id: str) -> dict[str, Any] | None:
        """Job dict plus its item results and a summary block."""
        with self._lock:
            state = self._jobs.get(job_id)
        if state is None:
            return None
        with state.lock:
            job = state.job
            results = list(state.results)
            data = job.to_dict()
            finished = job.completed_at or self._clock()
        data["results"] = [r.to_dict() for r in results]
        data["summary"] = summarize_results(results, job.started_at, finished)
        return data

    def get_batch_visualization(self, job_id: str) -> dict[str, Any] | None:
        """Overview, error/quality distributions and latency for one job."""
        with self._lock:
            state = self._jobs.get(job_id)
        if state is None:
            return None
        with state.lock:
            return build_visualization(state.job, list(state.results))

    def get_batch_history(
        self, history_filter: BatchHistoryFilter | Mapping[str, Any] | None = None
    ) -> list[BatchJob]:
        """Jobs matching the filter, newest first, paginated.

        Raises:
            BatchValidationError: If the filter is malformed.
        """
        if history_filter is None:
            history_filter = BatchHistoryFilter()
        elif not isinstance(history_filter, BatchHistoryFilter):
            try:
                history_filter = BatchHistoryFilter.model_validate(history_filter)
            except ValidationError as e:
                raise BatchValidationError(f"Invalid history filter: {e}") from e

        f = history_filter
        with self._lock:
            jobs = [s.job for s in self._jobs.values()]
        matched = [
            j
            for j in jobs
            if (f.operation is None or j.operation is f.operation)
            and (f.status is None or j.status is f.status)
            and (f.created_after is None or j.created_at >= f.created_after)
            and (f.created_before is None or j.created_at <= f.created_before)
        ]
        matched.sort(key=lambda j: (j.created_at, j.id), reverse=True)
        return matched[f.offset : f.offset + f.limit]

    def stats(self) -> dict[str, int]:
        """Number of jobs per status, plus the total."""
        with self._lock:
            counts = Counter(s.job.status.value for s in self._jobs.values())
        return {"total": sum(counts.values()), **{s.value: counts.get(s.value, 0) for s in BatchStatus}}

    # ------------------------------------------------------------------
    # Retention and persistence
    # ------------------------------------------------------------------

    def cleanup_old_batches(self, days_to_keep: int | None = None) -> int:
        """Delete jobs created more than `days_to_keep` days ago.

        Running jobs are skipped. Persisted copies are deleted too, and
        ledger usage events older than `config.stats_retention_days` are
        pruned on the same pass.

        Returns:
            Number of jobs removed.
        """
        self.ledger.cleanup_old_stats(self.config.stats_retention_days)

        days = self.config.retention_days if days_to_keep is None else days_to_keep
        cutoff = self._clock() - timedelta(days=days)
        removed: list[str] = []
        with self._lock:
            for job_id, state in list(self._jobs.items()):
                job = state.job
                if job.created_at >= cutoff:
                    continue
                if job.status is BatchStatus.RUNNING or (state.claimed and not job.status.is_terminal):
                    logger.info(f"Keeping old batch {job_id}: still running")
                    continue
                del self._jobs[job_id]
                removed.append(job_id)

        for job_id in removed:
            self._delete_persisted(job_id)
        if removed:
            logger.info(f"Cleaned up {len(removed)} batches older than {days} days")
        return len(removed)

    def restore(self) -> int:
        """Reload persisted jobs and results from the store.

        Jobs persisted as running were interrupted and are marked failed.

        Returns:
            Number of jobs restored.
        """
        if self.store is None:
            return 0
        restored = 0
        try:
            keys = self.store.list(JOB_PREFIX)
        except (StorageError, OSError) as e:
            logger.warning(f"Could not list persisted batches: {e}")
            keys = []
        for key in keys:
            try:
                data = self.store.get_json(key)
                if data is None:
                    continue
                job = BatchJob.from_dict(data)
                raw_results = self.store.get_json(f"{RESULTS_PREFIX}{job.id}") or []
                results = [BatchItemResult.from_dict(r) for r in raw_results]
            except (StorageError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable batch {key}: {e}")
                continue

            if job.status is BatchStatus.RUNNING:
                job.status = BatchStatus.FAILED
                job.error = "Interrupted: orchestrator stopped while the batch was running"
                job.completed_at = self._clock()
                self._persist_job(job)

            with self._lock:
                if job.id in self._jobs:
                    continue
                self._jobs[job.id] = _JobState(job, results)
            restored += 1

        reviews = self.assessor.restore()
        if reviews:
            logger.info(f"Restored {reviews} QA reviews")
        logger.info(f"Restored {restored} batches from store")
        return restored

    def _persist_job(self, job: BatchJob) -> None:
        if self.store is None:
            return
        try:
            self.store.set_json(f"{JOB_PREFIX}{job.id}", job.to_dict())
        except (StorageError, OSError, TypeError) as e:
            logger.warning(f"Could not persist batch {job.id}: {e}")

    def _persist_results(self, state: _JobState) -> None:
        if self.store is None:
            return
        with state.lock:
            payload = [r.to_dict() for r in state.results]
        try:
            self.store.set_json(f"{RESULTS_PREFIX}{state.job.id}", payload)
        except (StorageError, OSError, TypeError) as e:
            logger.warning(f"Could not persist results of batch {state.job.id}: {e}")

    def _delete_persisted(self, job_id: str) -> None:
        if self.store is None:
            return
        for key in (f"{JOB_PREFIX}{job_id}", f"{RESULTS_PREFIX}{job_id}"):
            try:
                self.store.delete(key)
            except (StorageError, OSError) as e:
                logger.warning(f"Could not delete {key}: {e}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_state(self, job_id: str) -> _JobState:
        with self._lock:
            state = self._jobs.get(job_id)
        if state is None:
            raise BatchNotFoundError(f"Batch not found: {job_id}")
        return state

    def _emit_progress(self, state: _JobState, status: BatchStatus | None = None) -> None:
        job = state.job
        self._emit(
            EventType.PROGRESS,
            job.id,
            {
                "progress": job.progress,
                "status": (status or job.status).value,
                "processedItems": job.processed_items,
                "totalItems": job.total_items,
                "failedItems": job.failed_items,
            },
        )

    def _emit(self, event_type: EventType, batch_id: str, payload: dict[str, Any]) -> None:
        try:
            self.events.emit(event_type.value, {**payload, "batchId": batch_id})
        except Exception as e:
            logger.warning(f"Event sink failed on {event_type.value} for {batch_id}: {e}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Stop the background executor and the owned cache sweeper."""
        if self._closed:
            return
        self._closed = True
        self._background.shutdown(wait=True)
        if self._owns_cache:
            self.cache.close()

    def __enter__(self) -> "BatchOrchestrator":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
