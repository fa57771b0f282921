from configs.base import OrchestratorConfig

# Dry runs against the echo provider, state kept under ./data
config = OrchestratorConfig(
    provider="echo",
    parallel_requests=2,
    retry_attempts=1,
    timeout=10,
    cache_persistent=True,
    cache_dir="./data/ai_cache",
    storage_dir="./data/batches",
)
