"""LLM provider registry and wire codecs.

Two providers are supported:
    - openai: OpenAI-compatible ``/chat/completions`` with bearer auth
    - gemini: ``/models/{model}:generateContent`` with key auth, roles
      remapped (assistant -> model) and sampling parameters nested under
      ``generationConfig``

Each provider knows how to build its HTTP request from a CompletionRequest
and how to pull the reply text out of its response payload. Transport and
payload failures surface as ProviderError; the gateway decides what to do
with them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from chatmeld.core.exceptions import ProviderError
from chatmeld.core.http import ProviderName


# =============================================================================
# Credentials and Requests
# =============================================================================


@dataclass
class Credentials:
    """API keys per provider. Empty string means "not configured"."""

    openai_api_key: str = ""
    google_api_key: str = ""

    def get(self, credential_name: str) -> str:
        return getattr(self, credential_name, "") or ""

    def has_any(self) -> bool:
        """True when at least one provider key is configured."""
        return bool(self.openai_api_key or self.google_api_key)


@dataclass(frozen=True)
class LLMModel:
    """Catalogue entry for a model."""

    id: str
    label: str
    max_tokens: int | None = None


@dataclass
class CompletionRequest:
    """Provider-neutral completion request."""

    model: str
    messages: list[dict[str, str]]
    temperature: float | None = None
    max_tokens: int | None = None
    stop: list[str] | None = None


@dataclass
class HTTPRequestSpec:
    """What to POST: path relative to the provider base URL, query, headers, body."""

    path: str
    json: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)


# =============================================================================
# Providers
# =============================================================================


class BaseProvider(ABC):
    """Abstract LLM provider.

    Attributes:
        name: Provider identifier.
        credential_name: Attribute on Credentials holding this provider's key.
        default_model: Model used when nothing more specific is configured.
        models: Supported models, in catalogue order.
    """

    name: ProviderName
    credential_name: str
    default_model: str
    models: tuple[LLMModel, ...]

    @abstractmethod
    def build_request(self, request: CompletionRequest, api_key: str) -> HTTPRequestSpec:
        """Translate a completion request into this provider's HTTP request."""

    @abstractmethod
    def parse_response(self, data: dict[str, Any]) -> str:
        """Extract the reply text from a decoded response payload."""

    def get_model(self, model_id: str) -> LLMModel | None:
        for model in self.models:
            if model.id == model_id:
                return model
        return None

    async def call(
        self,
        client: httpx.AsyncClient,
        request: CompletionRequest,
        api_key: str,
    ) -> str:
        """POST the request and return the trimmed reply text.

        Raises:
            ProviderError: On transport failure, non-2xx status, or a payload
                that is not the expected JSON shape.
        """
        spec = self.build_request(request, api_key)

        try:
            response = await client.post(
                spec.path,
                json=spec.json,
                headers=spec.headers,
                params=spec.params or None,
            )
        except httpx.HTTPError as e:
            raise ProviderError(
                message=f"Transport error: {e}",
                provider=self.name.value,
                model=request.model,
            ) from e

        if response.status_code >= 400:
            raise ProviderError(
                message=f"API request failed with status {response.status_code}: "
                f"{_error_message(response)}",
                provider=self.name.value,
                model=request.model,
                status_code=response.status_code,
            )

        try:
            data = response.json()
            text = self.parse_response(data)
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            raise ProviderError(
                message=f"Malformed response payload: {e}",
                provider=self.name.value,
                model=request.model,
                status_code=response.status_code,
            ) from e

        return (text or "").strip()


class OpenAIProvider(BaseProvider):
    """OpenAI-compatible chat completions."""

    name = ProviderName.OPENAI
    credential_name = "openai_api_key"
    default_model = "gpt-4o-mini"
    models = (
        LLMModel("gpt-4o-mini", "gpt-4o-mini"),
        LLMModel("gpt-4o", "gpt-4o"),
        LLMModel("gpt-4.1-nano", "gpt-4.1-nano"),
        LLMModel("gpt-4.1-mini", "gpt-4.1-mini"),
        LLMModel("gpt-4.1", "gpt-4.1"),
    )

    def build_request(self, request: CompletionRequest, api_key: str) -> HTTPRequestSpec:
        body: dict[str, Any] = {
            "model": request.model,
            "messages": [
                {"role": m["role"], "content": m["content"]} for m in request.messages
            ],
        }
        if request.temperature is not None:
            body["temperature"] = request.temperature
        if request.max_tokens is not None:
            body["max_tokens"] = request.max_tokens
        if request.stop:
            body["stop"] = list(request.stop)

        return HTTPRequestSpec(
            path="/chat/completions",
            json=body,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    def parse_response(self, data: dict[str, Any]) -> str:
        choices = data.get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("message") or {}).get("content") or ""


class GeminiProvider(BaseProvider):
    """Gemini generateContent."""

    name = ProviderName.GEMINI
    credential_name = "google_api_key"
    default_model = "gemini-2.5-flash-lite"
    models = (
        LLMModel("gemini-2.5-flash-lite", "gemini-2.5-flash-lite"),
        LLMModel("gemini-2.5-flash", "gemini-2.5-flash"),
        LLMModel("gemini-2.5-pro", "gemini-2.5-pro"),
    )

    def build_request(self, request: CompletionRequest, api_key: str) -> HTTPRequestSpec:
        body: dict[str, Any] = {
            "contents": [
                {
                    "role": "model" if m["role"] == "assistant" else "user",
                    "parts": [{"text": m["content"]}],
                }
                for m in request.messages
            ],
        }

        generation_config: dict[str, Any] = {}
        if request.temperature is not None:
            generation_config["temperature"] = request.temperature
        if request.max_tokens is not None:
            generation_config["maxOutputTokens"] = request.max_tokens
        if request.stop:
            generation_config["stopSequences"] = list(request.stop)
        if generation_config:
            body["generationConfig"] = generation_config

        return HTTPRequestSpec(
            path=f"/models/{request.model}:generateContent",
            json=body,
            params={"key": api_key},
        )

    def parse_response(self, data: dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        if not parts:
            return ""
        return parts[0].get("text") or ""


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return str(error.get("message", error))
    return str(error or data)


# =============================================================================
# Registry
# =============================================================================

LLM_PROVIDERS: tuple[BaseProvider, ...] = (OpenAIProvider(), GeminiProvider())

DEFAULT_MODEL = LLM_PROVIDERS[0].default_model
ALL_MODELS: tuple[LLMModel, ...] = tuple(
    model for provider in LLM_PROVIDERS for model in provider.models
)

_MODEL_PROVIDER_MAP: dict[str, BaseProvider] = {
    model.id: provider for provider in LLM_PROVIDERS for model in provider.models
}


def get_provider_for_model(model: str) -> BaseProvider | None:
    """Provider serving ``model``, or None if the model is unknown."""
    return _MODEL_PROVIDER_MAP.get(model)


def get_model_info(model: str) -> LLMModel | None:
    provider = get_provider_for_model(model)
    return provider.get_model(model) if provider else None


def get_available_models(credentials: Credentials) -> list[LLMModel]:
    """Models whose provider has a configured key."""
    return [
        model
        for provider in LLM_PROVIDERS
        if credentials.get(provider.credential_name)
        for model in provider.models
    ]


def get_default_model(credentials: Credentials) -> str:
    """Default model of the first provider with a key, else the first known model."""
    for provider in LLM_PROVIDERS:
        if credentials.get(provider.credential_name):
            return provider.default_model
    return ALL_MODELS[0].id if ALL_MODELS else ""
