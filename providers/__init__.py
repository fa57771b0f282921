"""Annotation providers behind a uniform invocation contract.

Provides:
    - Provider: Abstract base class (invoke(model, input, options))
    - ProviderResult / ProviderError: Invocation outcome types
    - ProviderRegistry: Registration-based factory
    - GeminiProvider: Gemini Developer API / Vertex AI backend
    - OpenAICompatibleProvider: Any /chat/completions endpoint over HTTP
    - EchoProvider: Deterministic zero-cost provider for dry runs
    - GeminiClientMixin: Mixin for lazy Gemini client initialization
"""

from .base import Provider, ProviderError, ProviderResult
from .client import GeminiClientMixin
from .echo_provider import EchoProvider
from .factory import ProviderRegistry
from .gemini_provider import GeminiProvider
from .openai_provider import OpenAICompatibleProvider

__all__ = [
    "EchoProvider",
    "GeminiClientMixin",
    "GeminiProvider",
    "OpenAICompatibleProvider",
    "Provider",
    "ProviderError",
    "ProviderRegistry",
    "ProviderResult",
]
