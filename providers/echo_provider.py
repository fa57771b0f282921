"""Deterministic provider for dry runs and tests.

Never calls an external model: the annotation payload is derived from the
item input, so a batch can be rehearsed end to end at zero cost.
"""

import json
import threading
import time
from typing import Any

from .base import Provider, ProviderResult


class EchoProvider(Provider):
    """Returns the item input (or its 'annotation' field) as the payload.

    Attributes:
        latency_ms: Artificial delay per call, in milliseconds.
        calls: Number of invocations so far.
    """

    def __init__(self, latency_ms: float = 0.0) -> None:
        self.latency_ms = latency_ms
        self.calls = 0
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "echo"

    def invoke(self, model: str, input: Any, options: dict[str, Any]) -> ProviderResult:
        with self._lock:
            self.calls += 1
        if self.latency_ms:
            time.sleep(self.latency_ms / 1000)

        if isinstance(input, dict):
            output = input.get("annotation", input)
            if not isinstance(output, dict):
                output = {"value": output}
        else:
            output = {"text": str(input)}

        # Rough token estimate: four characters per token
        tokens = max(1, len(json.dumps(input, default=str)) // 4)
        return ProviderResult(output=dict(output), tokens_used=tokens, duration_ms=self.latency_ms)
