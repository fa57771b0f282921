"""Abstract base class for annotation providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class ProviderError(Exception):
    """Raised by providers when an invocation fails.

    Attributes:
        kind: Short error category ('transport', 'timeout', 'rate_limit',
            'invalid_request', 'invalid_response', ...).
        message: Human-readable error text.
        retryable: Whether the orchestrator may retry the call.
        attempts: Calls made before giving up (set by the orchestrator).
    """

    def __init__(self, kind: str, message: str, retryable: bool = True) -> None:
        super().__init__(f"{kind}: {message}")
        self.kind = kind
        self.message = message
        self.retryable = retryable
        self.attempts = 1


@dataclass
class ProviderResult:
    """Successful invocation result.

    Attributes:
        output: Annotation payload (JSON object).
        tokens_used: Tokens consumed by the call.
        cost_usd: Cost of the call in USD.
        duration_ms: Provider-side duration in milliseconds.
    """

    output: dict[str, Any]
    tokens_used: int = 0
    cost_usd: float = 0.0
    duration_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)


class Provider(ABC):
    """Abstract base class for annotation providers.

    Implements the Template Method pattern - subclasses implement
    the actual model call while the orchestrator owns retries,
    timeouts, caching and bookkeeping.

    Subclasses must implement:
        - name: Provider identifier recorded in the usage ledger
        - invoke: Run one annotation request

    Example:
        class MyProvider(Provider):
            @property
            def name(self) -> str:
                return "my-backend"

            def invoke(self, model, input, options) -> ProviderResult:
                return ProviderResult(output={"description": "..."}, tokens_used=12)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier, e.g. 'gemini' or 'openai'."""
        ...

    @abstractmethod
    def invoke(self, model: str, input: Any, options: dict[str, Any]) -> ProviderResult:
        """Run one annotation request.

        Args:
            model: Model identifier.
            input: Item-specific annotation input.
            options: Batch options (temperature, max_tokens, ...).

        Returns:
            ProviderResult with the annotation payload and usage.

        Raises:
            ProviderError: On transport, timeout or backend errors.
        """
        ...

    def close(self) -> None:
        """Release backend resources. Default is a no-op."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
