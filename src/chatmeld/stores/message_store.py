"""MessageStore - message persistence with change notification.

Messages are kept per conversation, ordered by send time. The conductor
reads the cached history synchronously through ``messages_for`` and is told
about changes through ``subscribe``.
"""

from __future__ import annotations

import json
from dataclasses import replace
from typing import Any

from chatmeld.clients.protocols import KeyValueBackendProtocol
from chatmeld.conversation.models import Message
from chatmeld.core.exceptions import StoreError
from chatmeld.core.logging import get_logger
from chatmeld.stores.events import Observable


logger = get_logger(__name__)

_KEY_PREFIX = "message:"
_MUTABLE_FIELDS = {"content", "loved", "deleted"}


class MessageStore(Observable):
    """Message storage backed by a key-value table.

    Satisfies MessageStoreProtocol.
    """

    def __init__(self, backend: KeyValueBackendProtocol) -> None:
        super().__init__()
        self._backend = backend
        self._messages: dict[str, list[Message]] = {}

    async def _save(self, message: Message) -> None:
        await self._backend.put(f"{_KEY_PREFIX}{message.id}", json.dumps(message.to_dict()))

    def _find(self, message_id: str) -> Message:
        for messages in self._messages.values():
            for message in messages:
                if message.id == message_id:
                    return message
        raise StoreError(f"Message not found: {message_id}", entity="message", key=message_id)

    def messages_for(self, conversation_id: str) -> list[Message]:
        """Snapshot of a conversation's cached history, oldest first."""
        return list(self._messages.get(conversation_id, []))

    async def fetch_messages(self, conversation_id: str) -> list[Message]:
        """Load a conversation's history from the backend into the cache."""
        loaded = [
            Message.from_dict(json.loads(raw))
            for key, raw in (await self._backend.items()).items()
            if key.startswith(_KEY_PREFIX)
        ]
        history = sorted(
            (m for m in loaded if m.conversation_id == conversation_id),
            key=lambda m: m.send_time,
        )
        self._messages[conversation_id] = history
        self._notify()
        return list(history)

    async def add_message(
        self,
        conversation_id: str,
        agent_id: str,
        content: str,
    ) -> Message:
        """Append a message; assigns id, send time and role."""
        history = self._messages.setdefault(conversation_id, [])
        message = Message(
            conversation_id=conversation_id,
            agent_id=agent_id,
            content=content,
            previous_message_id=history[-1].id if history else None,
        )
        await self._save(message)
        history.append(message)

        logger.debug(
            "Message added",
            conversation_id=conversation_id,
            agent_id=agent_id,
            message_id=message.id,
        )
        self._notify()
        return message

    async def update_message(self, message_id: str, **updates: Any) -> Message:
        """Edit a message's content or flags.

        Raises:
            StoreError: If the message does not exist or a field is not editable.
        """
        message = self._find(message_id)
        unknown = set(updates) - _MUTABLE_FIELDS
        if unknown:
            raise StoreError(
                f"Fields not editable: {sorted(unknown)}",
                entity="message",
                key=message_id,
            )

        updated = replace(message, **updates)
        history = self._messages[message.conversation_id]
        history[history.index(message)] = updated
        await self._save(updated)
        self._notify()
        return updated

    async def delete_message(self, message_id: str) -> None:
        """Remove a message."""
        message = self._find(message_id)
        self._messages[message.conversation_id].remove(message)
        await self._backend.delete(f"{_KEY_PREFIX}{message_id}")
        self._notify()

    async def clear_messages(self, conversation_id: str) -> None:
        """Remove every message of a conversation."""
        for key, raw in (await self._backend.items()).items():
            if key.startswith(_KEY_PREFIX) and json.loads(raw)["conversation_id"] == conversation_id:
                await self._backend.delete(key)
        self._messages[conversation_id] = []
        logger.info("Messages cleared", conversation_id=conversation_id)
        self._notify()
