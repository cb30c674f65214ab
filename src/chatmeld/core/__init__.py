"""Core module - Configuration, logging, HTTP clients, and shared constants.

Exports:
    - Settings, get_settings: Pydantic Settings configuration
    - configure_logging, get_logger: Structured logging (structlog)
    - HTTPClientFactory, ProviderName, get_http_client_factory: HTTP clients
    - Exception classes: ChatMeldError and its subclasses
"""

from chatmeld.core.config import Settings, get_settings
from chatmeld.core.constants import (
    USER_DISPLAY_NAME,
    USER_SENDER_ID,
    Pacing,
)
from chatmeld.core.exceptions import (
    ChatMeldError,
    ConfigurationError,
    MissingCredentialError,
    ProviderError,
    RequestCancelledError,
    StoreError,
    UnsupportedModelError,
)
from chatmeld.core.http import (
    HTTPClientFactory,
    ProviderName,
    get_http_client_factory,
)
from chatmeld.core.logging import configure_logging, get_logger


__all__ = [
    # Exceptions
    "ChatMeldError",
    "ConfigurationError",
    "MissingCredentialError",
    "ProviderError",
    "RequestCancelledError",
    "StoreError",
    "UnsupportedModelError",
    # HTTP Clients
    "HTTPClientFactory",
    "ProviderName",
    "get_http_client_factory",
    # Constants
    "Pacing",
    "USER_DISPLAY_NAME",
    "USER_SENDER_ID",
    # Configuration
    "Settings",
    "get_settings",
    # Logging
    "configure_logging",
    "get_logger",
]
