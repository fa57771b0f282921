"""OpenAI-compatible HTTP annotation provider.

Talks to any server exposing the ``/chat/completions`` endpoint: the OpenAI
API itself, Azure-style gateways, or local model servers such as Ollama,
llama.cpp and vLLM.
"""

import os
import time
from typing import Any

import requests
from dotenv import load_dotenv

from analytics.usage_ledger import estimate_cost

from .base import Provider, ProviderError, ProviderResult
from .gemini_provider import RETRYABLE_CODES, parse_output, render_prompt

load_dotenv()

DEFAULT_BASE_URL = "http://localhost:11434/v1"


class OpenAICompatibleProvider(Provider):
    """Chat-completions provider over plain HTTP.

    Attributes:
        base_url: API root, e.g. 'https://api.openai.com/v1'.
        api_key: Bearer token, or None for unauthenticated local servers.
        provider_name: Name recorded in the usage ledger.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        provider_name: str = "openai",
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            base_url: API root (default: OPENAI_BASE_URL or a local Ollama server).
            api_key: Bearer token (default: OPENAI_API_KEY).
            provider_name: Name recorded in the usage ledger.
            session: Optional requests session (connection pooling, tests).
        """
        self.base_url = (base_url or os.getenv("OPENAI_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else os.getenv("OPENAI_API_KEY")
        self.provider_name = provider_name
        self.session = session or requests.Session()

    @property
    def name(self) -> str:
        return self.provider_name

    def invoke(self, model: str, input: Any, options: dict[str, Any]) -> ProviderResult:
        """POST one chat-completions request.

        Raises:
            ProviderError: On timeouts, connection errors, HTTP errors or
                malformed responses.
        """
        messages = []
        if options.get("system_instruction"):
            messages.append({"role": "system", "content": options["system_instruction"]})
        messages.append({"role": "user", "content": render_prompt(input)})

        body: dict[str, Any] = {"model": model, "messages": messages}
        if options.get("temperature") is not None:
            body["temperature"] = options["temperature"]
        if options.get("max_tokens") is not None:
            body["max_tokens"] = options["max_tokens"]

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        start = time.perf_counter()
        try:
            response = self.session.post(
                f"{self.base_url}/chat/completions",
                json=body,
                headers=headers,
                timeout=options.get("timeout"),
            )
        except requests.Timeout as e:
            raise ProviderError("timeout", str(e)) from e
        except requests.RequestException as e:
            raise ProviderError("transport", str(e)) from e
        duration_ms = (time.perf_counter() - start) * 1000

        if response.status_code >= 400:
            retryable = response.status_code in RETRYABLE_CODES
            kind = "rate_limit" if response.status_code == 429 else "http"
            raise ProviderError(
                kind, f"HTTP {response.status_code}: {response.text[:200]}", retryable
            )

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError("invalid_response", f"Unexpected response body: {e}") from e

        if not content.strip():
            raise ProviderError("invalid_response", "empty response")

        usage = data.get("usage") or {}
        tokens = int(usage.get("total_tokens") or 0)

        return ProviderResult(
            output=parse_output(content),
            tokens_used=tokens,
            cost_usd=estimate_cost(model, tokens),
            duration_ms=duration_ms,
        )

    def close(self) -> None:
        self.session.close()
