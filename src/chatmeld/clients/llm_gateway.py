"""LLM Gateway - single entry point for text generation.

Wraps the provider registry with:
- Model → provider resolution
- Credential lookup
- Cancellation through an asyncio.Event abort signal
- Error normalization: transport/provider failures become an empty reply

Configuration problems (unknown model, missing key) are raised before any
network I/O so the caller can abort cleanly; everything that goes wrong on
the wire is logged and reported as silence ("").
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Sequence

import httpx

from chatmeld.clients.providers import (
    BaseProvider,
    CompletionRequest,
    Credentials,
    get_model_info,
    get_provider_for_model,
)
from chatmeld.core.constants import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from chatmeld.core.exceptions import (
    MissingCredentialError,
    ProviderError,
    RequestCancelledError,
    UnsupportedModelError,
)
from chatmeld.core.http import HTTPClientFactory, ProviderName, get_http_client_factory
from chatmeld.core.logging import get_logger


logger = get_logger(__name__)


class LLMGateway:
    """Async gateway to the supported LLM providers.

    One pooled httpx client is kept per provider and reused across calls.

    Example:
        ```python
        gateway = LLMGateway()
        text = await gateway.complete(
            model="gpt-4o-mini",
            messages=[{"role": "user", "content": "Hello"}],
            credentials=Credentials(openai_api_key="sk-..."),
        )
        await gateway.close()
        ```
    """

    def __init__(self, factory: HTTPClientFactory | None = None) -> None:
        """Initialize the gateway.

        Args:
            factory: HTTP client factory. Uses the shared factory if not provided.
        """
        self._factory = factory or get_http_client_factory()
        self._clients: dict[ProviderName, httpx.AsyncClient] = {}

    def _get_client(self, provider: ProviderName) -> httpx.AsyncClient:
        """Get or create the HTTP client for a provider (lazy initialization)."""
        if provider not in self._clients:
            self._clients[provider] = self._factory.create_client(provider)
        return self._clients[provider]

    def resolve(self, model: str, credentials: Credentials) -> tuple[BaseProvider, str]:
        """Resolve a model to its provider and API key.

        Raises:
            UnsupportedModelError: If no provider serves the model.
            MissingCredentialError: If the provider has no key configured.
        """
        provider = get_provider_for_model(model)
        if provider is None:
            raise UnsupportedModelError(model)

        api_key = credentials.get(provider.credential_name)
        if not api_key:
            raise MissingCredentialError(provider.name.value, model)

        return provider, api_key

    async def complete(
        self,
        model: str,
        messages: Sequence[dict[str, str]],
        credentials: Credentials,
        *,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int | None = None,
        stop: list[str] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> str:
        """Generate a completion.

        Args:
            model: Target model id.
            messages: Role-tagged messages.
            credentials: API keys per provider.
            temperature: Sampling temperature.
            max_tokens: Output token budget. Defaults to the model's limit.
            stop: Optional stop sequences.
            cancel_event: Abort signal; once set the call never yields text.

        Returns:
            Trimmed text of the first choice, or "" if the call failed.

        Raises:
            UnsupportedModelError: Unknown model (no network call made).
            MissingCredentialError: No key for the model's provider.
            RequestCancelledError: The abort signal fired.
        """
        provider, api_key = self.resolve(model, credentials)

        if cancel_event is not None and cancel_event.is_set():
            raise RequestCancelledError(model)

        if max_tokens is None:
            info = get_model_info(model)
            max_tokens = (info.max_tokens if info else None) or DEFAULT_MAX_TOKENS

        request = CompletionRequest(
            model=model,
            messages=[{"role": m["role"], "content": m["content"]} for m in messages],
            temperature=temperature,
            max_tokens=max_tokens,
            stop=stop,
        )

        logger.info(
            "Calling LLM",
            provider=provider.name.value,
            model=model,
            messages=len(request.messages),
            max_tokens=max_tokens,
        )

        call = provider.call(self._get_client(provider.name), request, api_key)
        try:
            if cancel_event is None:
                text = await call
            else:
                text = await _race_cancel(call, cancel_event, model)
        except ProviderError as e:
            logger.error(
                "LLM provider error",
                provider=e.provider,
                model=e.model,
                status=e.status_code,
                error=e.message,
            )
            return ""

        logger.info("LLM response received", provider=provider.name.value, model=model, chars=len(text))
        return text

    async def close(self) -> None:
        """Release HTTP client resources."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.aclose()


async def _race_cancel(
    call: Awaitable[str],
    cancel_event: asyncio.Event,
    model: str,
) -> str:
    """Await ``call`` unless ``cancel_event`` fires first.

    The losing request task is cancelled so httpx drops the connection.
    """
    call_task = asyncio.ensure_future(call)
    cancel_task = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({call_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (call_task, cancel_task):
            if not task.done():
                task.cancel()

    if cancel_event.is_set():
        if call_task.done() and not call_task.cancelled():
            # Retrieve the outcome so a late ProviderError is not reported as unhandled
            call_task.exception()
        logger.info("LLM request cancelled", model=model)
        raise RequestCancelledError(model)

    return call_task.result()
