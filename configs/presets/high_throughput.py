from configs.base import OrchestratorConfig

config = OrchestratorConfig(
    provider="gemini",
    default_model="gemini-3-flash-preview",
    parallel_requests=16,
    retry_attempts=5,
    backoff_max=10.0,
    timeout=120,
    cache_ttl=60 * 60,
    namespace_ttls={"validate": 10 * 60},
    storage_dir="./data/batches",
    quality_threshold=50,
)
