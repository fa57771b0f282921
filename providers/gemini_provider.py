"""Gemini annotation provider.

Sends one annotation request per invocation through the standard
generate_content API and asks for a JSON response.
"""

import json
import time
from typing import Any

from google.genai import errors, types

from analytics.usage_ledger import estimate_cost

from .base import Provider, ProviderError, ProviderResult
from .client import GeminiClientMixin

# HTTP status codes worth retrying
RETRYABLE_CODES = {408, 429, 500, 502, 503, 504}


def render_prompt(input: Any) -> str:
    """Render an item input as prompt text.

    Strings pass through, dicts with a 'prompt' key use it, anything
    else is sent as JSON.
    """
    if isinstance(input, str):
        return input
    if isinstance(input, dict) and isinstance(input.get("prompt"), str):
        return input["prompt"]
    return json.dumps(input, ensure_ascii=False, default=str)


def parse_output(text: str) -> dict[str, Any]:
    """Parse a model response into a JSON object.

    Code fences are stripped; non-object responses are wrapped as
    ``{"text": ...}``.
    """
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        return {"text": text}
    return parsed if isinstance(parsed, dict) else {"value": parsed}


class GeminiProvider(GeminiClientMixin, Provider):
    """Annotation provider backed by the Gemini API.

    Attributes:
        use_vertex: Route calls through Vertex AI instead of the Developer API.
        system_instruction: Optional system prompt applied to every call.
    """

    def __init__(self, use_vertex: bool = False, system_instruction: str | None = None) -> None:
        """Initialize the Gemini provider.

        Args:
            use_vertex: Use Vertex AI credentials instead of GOOGLE_API_KEY.
            system_instruction: Optional system prompt for every request.
        """
        self.use_vertex = use_vertex
        self.system_instruction = system_instruction
        self._client = None  # Initialize for mixin

    @property
    def name(self) -> str:
        """Provider identifier."""
        return "vertex" if self.use_vertex else "gemini"

    def invoke(self, model: str, input: Any, options: dict[str, Any]) -> ProviderResult:
        """Run one generate_content call.

        Args:
            model: Gemini model identifier.
            input: Item input (see render_prompt).
            options: Batch options; temperature, max_tokens and timeout
                (seconds) are honored.

        Returns:
            ProviderResult with the parsed JSON payload.

        Raises:
            ProviderError: On API or transport failures, or an empty response.
        """
        timeout = options.get("timeout")
        config = types.GenerateContentConfig(
            # HttpOptions.timeout is in milliseconds
            http_options=types.HttpOptions(timeout=int(timeout * 1000)) if timeout else None,
            temperature=options.get("temperature"),
            max_output_tokens=options.get("max_tokens"),
            response_mime_type="application/json",
            system_instruction=options.get("system_instruction") or self.system_instruction,
        )

        start = time.perf_counter()
        try:
            response = self.client.models.generate_content(
                model=model,
                contents=render_prompt(input),
                config=config,
            )
        except errors.APIError as e:
            retryable = e.code in RETRYABLE_CODES
            kind = "rate_limit" if e.code == 429 else ("backend" if retryable else "invalid_request")
            raise ProviderError(kind, f"Gemini API error {e.code}: {e.message}", retryable) from e
        except ValueError:
            raise
        except Exception as e:
            raise ProviderError("transport", str(e)) from e
        duration_ms = (time.perf_counter() - start) * 1000

        text = response.text or ""
        if not text.strip():
            raise ProviderError("invalid_response", "empty response")

        usage = response.usage_metadata
        tokens = (usage.total_token_count or 0) if usage is not None else 0

        return ProviderResult(
            output=parse_output(text),
            tokens_used=tokens,
            cost_usd=estimate_cost(model, tokens),
            duration_ms=duration_ms,
        )
