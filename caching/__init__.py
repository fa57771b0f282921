"""Response cache for annotation requests.

Provides:
    - AnnotationCache: TTL cache with lazy + periodic eviction
    - generate_key: Deterministic (model, input, namespace) digest
"""

from .annotation_cache import AnnotationCache, generate_key, stable_json_dumps

__all__ = [
    "AnnotationCache",
    "generate_key",
    "stable_json_dumps",
]
