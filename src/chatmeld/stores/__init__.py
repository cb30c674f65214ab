"""
Stores Package - Reference persistence collaborators

In-memory and JSON-file implementations of the store protocols in
``chatmeld.clients.protocols``:
- ConversationStore: conversations and per-agent overrides
- MessageStore: per-conversation message history
- SettingsStore: runtime chat settings (auto-advance, context size, keys)
- ChatStore: the active conversation with effective agents
"""

from chatmeld.stores.backends import InMemoryKeyValueBackend, JsonFileKeyValueBackend
from chatmeld.stores.chat_store import ChatStore
from chatmeld.stores.conversation_store import ConversationStore
from chatmeld.stores.message_store import MessageStore
from chatmeld.stores.settings_store import SettingsStore


__all__ = [
    "ChatStore",
    "ConversationStore",
    "InMemoryKeyValueBackend",
    "JsonFileKeyValueBackend",
    "MessageStore",
    "SettingsStore",
]
