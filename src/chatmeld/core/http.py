"""HTTP client factory for LLM provider communication.

All provider calls go through httpx.AsyncClient instances created here so
timeouts and base URLs come from one place (Settings).

Providers:
- openai: OpenAI-compatible chat completions endpoint
- gemini: Google Generative Language generateContent endpoint
"""

from enum import Enum
from typing import Any

import httpx

from chatmeld.core.config import Settings, get_settings
from chatmeld.core.logging import get_logger


logger = get_logger(__name__)


class ProviderName(str, Enum):
    """Identifiers of the supported LLM providers."""
    OPENAI = "openai"
    GEMINI = "gemini"


class HTTPClientFactory:
    """Factory for creating HTTP clients to LLM providers.

    Example:
        ```python
        factory = HTTPClientFactory()
        client = factory.create_client(ProviderName.OPENAI)
        try:
            response = await client.post("/chat/completions", json=payload)
        finally:
            await client.aclose()
        ```
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the HTTP client factory.

        Args:
            settings: Application settings. Uses get_settings() if not provided.
        """
        self._settings = settings or get_settings()
        self._base_urls = {
            ProviderName.OPENAI: self._settings.openai_base_url,
            ProviderName.GEMINI: self._settings.gemini_base_url,
        }

    def get_base_url(self, provider: ProviderName) -> str:
        """Get the base URL for a provider.

        Raises:
            ValueError: If provider is not configured.
        """
        url = self._base_urls.get(provider)
        if not url:
            raise ValueError(f"No URL configured for provider: {provider}")
        return url.rstrip("/")

    def create_client(
        self,
        provider: ProviderName,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> httpx.AsyncClient:
        """Create a standalone HTTP client (caller manages lifecycle).

        Warning:
            Caller is responsible for calling `await client.aclose()`.
        """
        base_url = self.get_base_url(provider)
        request_timeout = timeout or self._settings.llm_timeout_seconds

        logger.debug(
            "Creating HTTP client",
            provider=provider.value,
            base_url=base_url,
            timeout=request_timeout,
        )

        return httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(request_timeout),
            **kwargs,
        )


# Module-level factory instance (lazy initialization)
_factory: HTTPClientFactory | None = None


def get_http_client_factory() -> HTTPClientFactory:
    """Get the shared HTTP client factory instance."""
    global _factory
    if _factory is None:
        _factory = HTTPClientFactory()
    return _factory
