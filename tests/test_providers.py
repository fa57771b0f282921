"""Tests for providers module."""

from unittest.mock import MagicMock, patch

import pytest
import requests
from google.genai import errors

from providers import (
    EchoProvider,
    GeminiClientMixin,
    GeminiProvider,
    OpenAICompatibleProvider,
    Provider,
    ProviderError,
    ProviderRegistry,
    ProviderResult,
)
from providers.gemini_provider import parse_output, render_prompt


class TestProviderBase:
    """Tests for Provider abstract base class."""

    def test_cannot_instantiate_directly(self):
        """Should not be able to instantiate abstract class."""
        with pytest.raises(TypeError):
            Provider()

    def test_concrete_implementation(self):
        """Should be able to create a concrete implementation."""

        class TestProvider(Provider):
            @property
            def name(self) -> str:
                return "test"

            def invoke(self, model, input, options) -> ProviderResult:  # noqa: ARG002
                return ProviderResult(output={"model": model}, tokens_used=3)

        provider = TestProvider()
        result = provider.invoke("m", "x", {})
        assert result.output == {"model": "m"}
        assert result.cost_usd == 0.0
        assert repr(provider) == "TestProvider(name='test')"

    def test_provider_error_defaults(self):
        """ProviderError should be retryable by default."""
        error = ProviderError("transport", "reset")
        assert error.retryable is True
        assert error.attempts == 1
        assert str(error) == "transport: reset"


class TestPromptHelpers:
    """Tests for render_prompt and parse_output."""

    def test_render_string(self):
        """Strings should pass through."""
        assert render_prompt("hello") == "hello"

    def test_render_prompt_field(self):
        """Dicts with a prompt field should use it."""
        assert render_prompt({"prompt": "annotate this", "x": 1}) == "annotate this"

    def test_render_json(self):
        """Other inputs should be sent as JSON."""
        assert render_prompt({"table": "orders"}) == '{"table": "orders"}'

    def test_parse_json_object(self):
        """JSON objects should be parsed."""
        assert parse_output('{"tags": ["a"]}') == {"tags": ["a"]}

    def test_parse_code_fence(self):
        """Fenced JSON should be unwrapped."""
        assert parse_output('```json\n{"a": 1}\n```') == {"a": 1}

    def test_parse_non_object(self):
        """JSON scalars and lists should be wrapped."""
        assert parse_output("[1, 2]") == {"value": [1, 2]}

    def test_parse_plain_text(self):
        """Non-JSON text should be wrapped as text."""
        assert parse_output("just words") == {"text": "just words"}


class TestEchoProvider:
    """Tests for EchoProvider."""

    def test_returns_annotation_field(self):
        """The 'annotation' field should become the payload."""
        result = EchoProvider().invoke("m", {"annotation": {"description": "d"}}, {})
        assert result.output == {"description": "d"}
        assert result.tokens_used >= 1

    def test_returns_input_dict(self):
        """Dict inputs without an annotation field should echo back."""
        assert EchoProvider().invoke("m", {"a": 1}, {}).output == {"a": 1}

    def test_wraps_text(self):
        """Non-dict inputs should be wrapped."""
        assert EchoProvider().invoke("m", "hi", {}).output == {"text": "hi"}

    def test_counts_calls(self):
        """calls should count invocations."""
        provider = EchoProvider()
        provider.invoke("m", "a", {})
        provider.invoke("m", "b", {})
        assert provider.calls == 2


class TestGeminiClientMixin:
    """Tests for GeminiClientMixin."""

    def test_raises_without_api_key(self):
        """Should raise ValueError if GOOGLE_API_KEY not set."""

        class TestClass(GeminiClientMixin):
            def __init__(self):
                self._client = None

        with (
            patch("providers.client.os.getenv", return_value=None),
            pytest.raises(ValueError, match="GOOGLE_API_KEY not set"),
        ):
            _ = TestClass().client

    def test_vertex_requires_project(self):
        """Vertex mode should require GOOGLE_CLOUD_PROJECT."""

        class TestClass(GeminiClientMixin):
            def __init__(self):
                self._client = None
                self.use_vertex = True

        with (
            patch("providers.client.os.getenv", return_value=None),
            pytest.raises(ValueError, match="GOOGLE_CLOUD_PROJECT"),
        ):
            _ = TestClass().client

    def test_reset_client(self):
        """reset_client should set _client to None."""

        class TestClass(GeminiClientMixin):
            def __init__(self):
                self._client = MagicMock()

        obj = TestClass()
        obj.reset_client()
        assert obj._client is None


class TestGeminiProvider:
    """Tests for GeminiProvider with a mocked client."""

    def _provider(self, response=None, side_effect=None) -> GeminiProvider:
        provider = GeminiProvider()
        provider._client = MagicMock()
        provider._client.models.generate_content.return_value = response
        provider._client.models.generate_content.side_effect = side_effect
        return provider

    def test_name(self):
        """Name should reflect the backend."""
        assert GeminiProvider().name == "gemini"
        assert GeminiProvider(use_vertex=True).name == "vertex"

    def test_invoke_parses_json(self):
        """A JSON response should become the payload with token usage."""
        response = MagicMock()
        response.text = '{"description": "orders"}'
        response.usage_metadata.total_token_count = 120
        provider = self._provider(response=response)

        result = provider.invoke("gemini-3-flash-preview", {"table": "orders"}, {"temperature": 0.1})

        assert result.output == {"description": "orders"}
        assert result.tokens_used == 120
        assert result.cost_usd > 0
        kwargs = provider._client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-3-flash-preview"
        assert kwargs["config"].temperature == 0.1
        assert kwargs["config"].http_options is None

    def test_timeout_passed_to_transport(self):
        """The call timeout should reach the HTTP layer in milliseconds."""
        response = MagicMock()
        response.text = "{}"
        response.usage_metadata.total_token_count = 1
        provider = self._provider(response=response)

        provider.invoke("m", "x", {"timeout": 2.5})

        kwargs = provider._client.models.generate_content.call_args.kwargs
        assert kwargs["config"].http_options.timeout == 2500

    def test_empty_response(self):
        """An empty response should be an invalid_response error."""
        response = MagicMock()
        response.text = ""
        with pytest.raises(ProviderError) as exc_info:
            self._provider(response=response).invoke("m", "x", {})
        assert exc_info.value.kind == "invalid_response"

    def test_server_error_is_retryable(self):
        """5xx API errors should be retryable."""
        error = errors.ServerError(503, {"error": {"message": "busy", "status": "UNAVAILABLE"}})
        with pytest.raises(ProviderError) as exc_info:
            self._provider(side_effect=error).invoke("m", "x", {})
        assert exc_info.value.retryable is True
        assert exc_info.value.kind == "backend"

    def test_client_error_is_not_retryable(self):
        """400 API errors should fail immediately."""
        error = errors.ClientError(400, {"error": {"message": "bad", "status": "INVALID_ARGUMENT"}})
        with pytest.raises(ProviderError) as exc_info:
            self._provider(side_effect=error).invoke("m", "x", {})
        assert exc_info.value.retryable is False

    def test_transport_error(self):
        """Unexpected exceptions should map to transport errors."""
        with pytest.raises(ProviderError) as exc_info:
            self._provider(side_effect=ConnectionError("reset")).invoke("m", "x", {})
        assert exc_info.value.kind == "transport"


class TestOpenAICompatibleProvider:
    """Tests for OpenAICompatibleProvider with a mocked session."""

    def _provider(self, status_code=200, body=None, side_effect=None):
        session = MagicMock()
        response = MagicMock()
        response.status_code = status_code
        response.text = "error body"
        response.json.return_value = body or {}
        session.post.return_value = response
        session.post.side_effect = side_effect
        return OpenAICompatibleProvider(base_url="http://llm.local/v1/", api_key="k", session=session)

    def test_invoke(self):
        """Should post a chat request and parse the content."""
        provider = self._provider(
            body={
                "choices": [{"message": {"content": '{"tags": ["x"]}'}}],
                "usage": {"total_tokens": 42},
            }
        )
        result = provider.invoke(
            "llama", "prompt", {"max_tokens": 10, "system_instruction": "be terse", "timeout": 5}
        )

        assert result.output == {"tags": ["x"]}
        assert result.tokens_used == 42
        args, kwargs = provider.session.post.call_args
        assert args[0] == "http://llm.local/v1/chat/completions"
        assert kwargs["json"]["messages"][0] == {"role": "system", "content": "be terse"}
        assert kwargs["json"]["max_tokens"] == 10
        assert kwargs["headers"]["Authorization"] == "Bearer k"
        assert kwargs["timeout"] == 5

    def test_rate_limit(self):
        """429 should be a retryable rate_limit error."""
        with pytest.raises(ProviderError) as exc_info:
            self._provider(status_code=429).invoke("m", "x", {})
        assert exc_info.value.kind == "rate_limit"
        assert exc_info.value.retryable is True

    def test_bad_request(self):
        """400 should not be retryable."""
        with pytest.raises(ProviderError) as exc_info:
            self._provider(status_code=400).invoke("m", "x", {})
        assert exc_info.value.retryable is False

    def test_timeout(self):
        """requests timeouts should map to timeout errors."""
        with pytest.raises(ProviderError) as exc_info:
            self._provider(side_effect=requests.Timeout("slow")).invoke("m", "x", {})
        assert exc_info.value.kind == "timeout"

    def test_malformed_body(self):
        """Bodies without choices should be invalid_response errors."""
        with pytest.raises(ProviderError) as exc_info:
            self._provider(body={"unexpected": True}).invoke("m", "x", {})
        assert exc_info.value.kind == "invalid_response"


class TestProviderRegistry:
    """Tests for ProviderRegistry."""

    def setup_method(self):
        """Store original registry state."""
        self._original_providers = ProviderRegistry._providers.copy()
        self._original_kwargs = ProviderRegistry._default_kwargs.copy()

    def teardown_method(self):
        """Restore original registry state."""
        ProviderRegistry._providers = self._original_providers
        ProviderRegistry._default_kwargs = self._original_kwargs

    def test_builtin_providers_registered(self):
        """Built-in providers should be registered."""
        names = ProviderRegistry.list_providers()
        for name in ("gemini", "vertex", "openai", "echo"):
            assert name in names

    def test_create_vertex_uses_defaults(self):
        """vertex should create a GeminiProvider with use_vertex set."""
        provider = ProviderRegistry.create("vertex")
        assert isinstance(provider, GeminiProvider)
        assert provider.use_vertex is True

    def test_create_with_kwargs(self):
        """Constructor kwargs should be passed through."""
        provider = ProviderRegistry.create("echo", latency_ms=5)
        assert isinstance(provider, EchoProvider)
        assert provider.latency_ms == 5

    def test_unknown_provider(self):
        """Unknown names should raise ValueError."""
        with pytest.raises(ValueError, match="Unknown provider"):
            ProviderRegistry.create("nope")

    def test_register_custom(self):
        """The register decorator should add a new provider."""

        @ProviderRegistry.register("custom", latency_ms=1)
        class CustomProvider(EchoProvider):
            pass

        provider = ProviderRegistry.create("custom")
        assert isinstance(provider, CustomProvider)
        assert provider.latency_ms == 1

    def test_duplicate_registration(self):
        """Registering a taken name should raise."""
        with pytest.raises(ValueError, match="already registered"):
            ProviderRegistry.register("echo")(EchoProvider)
