"""Collaborator Protocols.

Duck typing protocols for everything the conductor talks to - enables fake
substitution in tests and alternative storage backends in applications.

The conductor depends only on these interfaces, never on the concrete
stores in ``chatmeld.stores``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol, Sequence, runtime_checkable


if TYPE_CHECKING:
    from chatmeld.clients.providers import Credentials
    from chatmeld.conversation.models import Conversation, ConversationAgentSettings, Message


Listener = Callable[[], None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class LLMGatewayProtocol(Protocol):
    """Protocol for the text-generation gateway.

    Methods:
        complete: Generate text for role-tagged messages
        close: Release HTTP client resources
    """

    async def complete(
        self,
        model: str,
        messages: Sequence[dict[str, str]],
        credentials: Credentials,
        *,
        temperature: float = ...,
        max_tokens: int | None = None,
        stop: list[str] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> str:
        """Generate a completion.

        Returns:
            Trimmed reply text, or "" when the provider call failed.
        """
        ...

    async def close(self) -> None:
        """Release HTTP client resources."""
        ...


@runtime_checkable
class KeyValueBackendProtocol(Protocol):
    """Protocol for a string key-value table (runtime settings)."""

    async def get(self, key: str) -> str | None:
        ...

    async def put(self, key: str, value: str) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def items(self) -> dict[str, str]:
        ...


@runtime_checkable
class ConversationStoreProtocol(Protocol):
    """Protocol for conversation persistence.

    Methods:
        get: Conversation by id, or None
        list_all: All conversations, newest first
        add: Persist a new conversation
        update: Partial-field merge
        update_agent_settings: Create or merge one agent's override record
        delete: Remove a conversation
        subscribe: Register a change listener
    """

    async def get(self, conversation_id: str) -> Conversation | None:
        ...

    async def list_all(self) -> list[Conversation]:
        ...

    async def add(self, conversation: Conversation) -> Conversation:
        ...

    async def update(self, conversation_id: str, **updates: Any) -> Conversation:
        ...

    async def update_agent_settings(
        self,
        conversation_id: str,
        agent_id: str,
        **updates: Any,
    ) -> ConversationAgentSettings:
        ...

    async def delete(self, conversation_id: str) -> None:
        ...

    def subscribe(self, listener: Listener) -> Unsubscribe:
        ...


@runtime_checkable
class MessageStoreProtocol(Protocol):
    """Protocol for message persistence.

    ``messages_for`` is a synchronous snapshot of the cached, time-ordered
    history; mutations are async and notify subscribers afterwards.
    """

    def messages_for(self, conversation_id: str) -> list[Message]:
        ...

    async def fetch_messages(self, conversation_id: str) -> list[Message]:
        ...

    async def add_message(
        self,
        conversation_id: str,
        agent_id: str,
        content: str,
    ) -> Message:
        ...

    async def update_message(self, message_id: str, **updates: Any) -> Message:
        ...

    async def delete_message(self, message_id: str) -> None:
        ...

    async def clear_messages(self, conversation_id: str) -> None:
        ...

    def subscribe(self, listener: Listener) -> Unsubscribe:
        ...


@runtime_checkable
class SettingsStoreProtocol(Protocol):
    """Protocol for the process-wide runtime chat settings."""

    @property
    def credentials(self) -> Credentials:
        ...

    @property
    def auto_advance(self) -> bool:
        ...

    @property
    def max_auto_advance(self) -> int:
        ...

    @property
    def max_context_messages(self) -> int:
        ...

    @property
    def selector_model(self) -> str | None:
        ...

    async def set_auto_advance(self, value: bool) -> None:
        ...

    def subscribe(self, listener: Listener) -> Unsubscribe:
        ...
