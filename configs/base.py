from dataclasses import dataclass, field

from core.config import (
    BACKOFF_BASE,
    BACKOFF_MAX,
    CACHE_SWEEP_INTERVAL,
    DEFAULT_CACHE_DIR,
    DEFAULT_CACHE_TTL,
    DEFAULT_MODEL,
    DEFAULT_PARALLEL_REQUESTS,
    DEFAULT_PROVIDER,
    DEFAULT_RETENTION_DAYS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_STATS_RETENTION_DAYS,
    DEFAULT_TIMEOUT,
)


@dataclass
class OrchestratorConfig:
    """Base configuration for the batch orchestrator.

    Option fields (model, retries, timeout, parallelism, quality threshold)
    are defaults for batches whose request leaves them unset.
    """

    # === Provider ===
    provider: str = DEFAULT_PROVIDER
    default_model: str = DEFAULT_MODEL

    # === Execution ===
    parallel_requests: int = DEFAULT_PARALLEL_REQUESTS
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    timeout: float = DEFAULT_TIMEOUT  # seconds per provider call
    backoff_base: float = BACKOFF_BASE  # seconds
    backoff_max: float = BACKOFF_MAX  # seconds
    max_concurrent_batches: int = 2  # batches run via submit()

    # === Cache ===
    cache_ttl: float = DEFAULT_CACHE_TTL  # seconds
    namespace_ttls: dict[str, float] = field(default_factory=dict)
    cache_sweep_interval: float = CACHE_SWEEP_INTERVAL
    cache_persistent: bool = False
    cache_dir: str = DEFAULT_CACHE_DIR

    # === Persistence ===
    storage_dir: str | None = None  # None = in-memory only

    # === Quality ===
    quality_threshold: int | None = None  # open a QA review below this score

    # === Retention ===
    retention_days: int = DEFAULT_RETENTION_DAYS  # batches
    stats_retention_days: int = DEFAULT_STATS_RETENTION_DAYS  # usage events

    def __post_init__(self):
        """Reject values the orchestrator cannot run with."""
        if self.parallel_requests < 1:
            raise ValueError(f"parallel_requests must be >= 1, got {self.parallel_requests}")
        if self.retry_attempts < 0:
            raise ValueError(f"retry_attempts must be >= 0, got {self.retry_attempts}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.cache_ttl <= 0:
            raise ValueError(f"cache_ttl must be positive, got {self.cache_ttl}")
        if self.quality_threshold is not None and not 0 <= self.quality_threshold <= 100:
            raise ValueError(f"quality_threshold must be in [0, 100], got {self.quality_threshold}")

    def option_defaults(self) -> dict:
        """Batch option defaults derived from this config."""
        return {
            "model": self.default_model,
            "parallel_requests": self.parallel_requests,
            "retry_attempts": self.retry_attempts,
            "timeout": self.timeout,
            "quality_threshold": self.quality_threshold,
        }
