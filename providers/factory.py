"""Registry for creating annotation providers by name.

Supports the Open/Closed Principle - new backends can be added
without modifying existing code by using the register decorator.
"""

from collections.abc import Callable
from typing import Any, TypeVar

from core.config import DEFAULT_PROVIDER

from .base import Provider

# Type variable for provider classes
T = TypeVar("T", bound=Provider)


class ProviderRegistry:
    """Registry for provider classes.

    Example:
        # Register a new provider
        @ProviderRegistry.register("custom", timeout=30)
        class CustomProvider(Provider):
            ...

        # Create an instance
        provider = ProviderRegistry.create("custom")
    """

    _providers: dict[str, type[Provider]] = {}
    _default_kwargs: dict[str, dict[str, Any]] = {}

    @classmethod
    def register(
        cls,
        name: str,
        **default_kwargs: Any,
    ) -> Callable[[type[T]], type[T]]:
        """Register a provider class under a name.

        Args:
            name: Provider identifier (e.g., 'gemini', 'openai').
            **default_kwargs: Default constructor arguments for this provider.

        Returns:
            Decorator function that registers the class.

        Raises:
            ValueError: If name is already registered.
        """

        def decorator(provider_class: type[T]) -> type[T]:
            if name in cls._providers:
                raise ValueError(f"Provider '{name}' is already registered")
            cls._providers[name] = provider_class
            cls._default_kwargs[name] = default_kwargs
            return provider_class

        return decorator

    @classmethod
    def create(cls, name: str = DEFAULT_PROVIDER, **kwargs: Any) -> Provider:
        """Create a provider instance.

        Args:
            name: Registered provider name.
            **kwargs: Constructor arguments, merged over the registered defaults.

        Returns:
            Configured Provider instance.

        Raises:
            ValueError: If name is not registered.
        """
        provider_class = cls.get_provider_class(name)
        merged_kwargs = {**cls._default_kwargs.get(name, {}), **kwargs}
        return provider_class(**merged_kwargs)

    @classmethod
    def list_providers(cls) -> list[str]:
        """Return list of registered provider names."""
        return list(cls._providers.keys())

    @classmethod
    def get_provider_class(cls, name: str) -> type[Provider]:
        """Get the provider class registered under a name.

        Raises:
            ValueError: If name is not registered.
        """
        if name not in cls._providers:
            valid = ", ".join(cls._providers.keys())
            raise ValueError(f"Unknown provider: {name}. Valid providers: {valid}")
        return cls._providers[name]

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations (useful for testing)."""
        cls._providers.clear()
        cls._default_kwargs.clear()


# Register built-in providers
# Import here to avoid circular imports
from .echo_provider import EchoProvider  # noqa: E402
from .gemini_provider import GeminiProvider  # noqa: E402
from .openai_provider import OpenAICompatibleProvider  # noqa: E402

ProviderRegistry._providers["gemini"] = GeminiProvider
ProviderRegistry._providers["vertex"] = GeminiProvider
ProviderRegistry._providers["openai"] = OpenAICompatibleProvider
ProviderRegistry._providers["echo"] = EchoProvider
ProviderRegistry._default_kwargs["gemini"] = {}
ProviderRegistry._default_kwargs["vertex"] = {"use_vertex": True}
ProviderRegistry._default_kwargs["openai"] = {}
ProviderRegistry._default_kwargs["echo"] = {}
