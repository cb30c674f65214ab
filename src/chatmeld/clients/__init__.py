"""
Clients Package - LLM gateway, provider codecs and collaborator protocols.
"""

from chatmeld.clients.llm_gateway import LLMGateway
from chatmeld.clients.protocols import (
    ConversationStoreProtocol,
    KeyValueBackendProtocol,
    LLMGatewayProtocol,
    MessageStoreProtocol,
    SettingsStoreProtocol,
)
from chatmeld.clients.providers import (
    ALL_MODELS,
    DEFAULT_MODEL,
    LLM_PROVIDERS,
    Credentials,
    get_available_models,
    get_default_model,
    get_provider_for_model,
)


__all__ = [
    "ALL_MODELS",
    "ConversationStoreProtocol",
    "Credentials",
    "DEFAULT_MODEL",
    "KeyValueBackendProtocol",
    "LLMGateway",
    "LLMGatewayProtocol",
    "LLM_PROVIDERS",
    "MessageStoreProtocol",
    "SettingsStoreProtocol",
    "get_available_models",
    "get_default_model",
    "get_provider_for_model",
]
