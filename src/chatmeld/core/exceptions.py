"""Custom exceptions for ChatMeld.

All exceptions are namespaced under ChatMeldError so callers can catch any
library error with a single except clause, and none of them shadow Python
builtins.

Taxonomy:
    - ConfigurationError: raised before any network I/O (unknown model,
      missing credential). Never retried automatically.
    - ProviderError: transport or payload failures inside a provider call.
      The gateway catches these and normalizes them to an empty reply.
    - RequestCancelledError: the turn's abort signal fired mid-request.
    - StoreError: a persistence lookup that had to succeed did not.
"""


class ChatMeldError(Exception):
    """Base exception for all ChatMeld errors."""

    def __init__(self, message: str) -> None:
        """Initialize error.

        Args:
            message: Error description
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(ChatMeldError):
    """Raised when a request cannot be attempted with the current configuration."""


class UnsupportedModelError(ConfigurationError):
    """Raised when a model id does not map to any known provider."""

    def __init__(self, model: str) -> None:
        self.model = model
        super().__init__(f"Unsupported model: {model}")


class MissingCredentialError(ConfigurationError):
    """Raised when the provider serving a model has no API key configured."""

    def __init__(self, provider: str, model: str | None = None) -> None:
        """Initialize missing credential error.

        Args:
            provider: Provider whose key is absent
            model: Model that was requested, if any
        """
        self.provider = provider
        self.model = model
        super().__init__(f"API key is missing for provider: {provider}")


class ProviderError(ChatMeldError):
    """Raised when an LLM provider call fails in transport or parsing."""

    def __init__(
        self,
        message: str,
        provider: str,
        model: str,
        status_code: int | None = None,
    ) -> None:
        """Initialize provider error.

        Args:
            message: Error description
            provider: Provider identifier (e.g. "openai", "gemini")
            model: Model that was requested
            status_code: HTTP status code if applicable
        """
        self.provider = provider
        self.model = model
        self.status_code = status_code
        super().__init__(message)


class RequestCancelledError(ChatMeldError):
    """Raised when an in-flight request is aborted through its cancel event."""

    def __init__(self, model: str | None = None) -> None:
        self.model = model
        super().__init__(f"Request cancelled (model={model})")


class StoreError(ChatMeldError):
    """Raised when a persistence collaborator cannot find a required record."""

    def __init__(self, message: str, entity: str, key: str | None = None) -> None:
        """Initialize store error.

        Args:
            message: Error description
            entity: Kind of record (e.g. "conversation", "message")
            key: Identifier that was looked up
        """
        self.entity = entity
        self.key = key
        super().__init__(message)
