"""ConversationStore - conversation persistence with change notification.

Implements:
- Conversation creation, retrieval, listing and deletion
- Partial-field updates (e.g. next_speaker_id)
- Lazy per-agent override records (at most one per agent)
"""

from __future__ import annotations

import json
from dataclasses import fields, replace
from typing import Any

from chatmeld.clients.protocols import KeyValueBackendProtocol
from chatmeld.conversation.models import Conversation, ConversationAgentSettings
from chatmeld.core.exceptions import StoreError
from chatmeld.core.logging import get_logger
from chatmeld.stores.events import Observable


logger = get_logger(__name__)

_KEY_PREFIX = "conversation:"
_IMMUTABLE_FIELDS = {"id"}


class ConversationStore(Observable):
    """Conversation storage backed by a key-value table.

    Satisfies ConversationStoreProtocol. Conversations are cached in memory
    after the first load; the backend is written on every change.
    """

    def __init__(self, backend: KeyValueBackendProtocol) -> None:
        super().__init__()
        self._backend = backend
        self._conversations: dict[str, Conversation] = {}
        self._loaded = False

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        for key, raw in (await self._backend.items()).items():
            if key.startswith(_KEY_PREFIX):
                conversation = Conversation.from_dict(json.loads(raw))
                self._conversations[conversation.id] = conversation
        self._loaded = True

    async def _save(self, conversation: Conversation) -> None:
        await self._backend.put(
            f"{_KEY_PREFIX}{conversation.id}",
            json.dumps(conversation.to_dict()),
        )

    async def _require(self, conversation_id: str) -> Conversation:
        await self._ensure_loaded()
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise StoreError(
                f"Conversation not found: {conversation_id}",
                entity="conversation",
                key=conversation_id,
            )
        return conversation

    async def get(self, conversation_id: str) -> Conversation | None:
        """Retrieve a conversation by ID, or None."""
        await self._ensure_loaded()
        return self._conversations.get(conversation_id)

    def cached(self, conversation_id: str) -> Conversation | None:
        """Synchronous lookup of an already loaded conversation."""
        return self._conversations.get(conversation_id)

    async def list_all(self) -> list[Conversation]:
        """All conversations, newest first."""
        await self._ensure_loaded()
        return sorted(
            self._conversations.values(),
            key=lambda c: c.start_date,
            reverse=True,
        )

    async def add(self, conversation: Conversation) -> Conversation:
        """Persist a new conversation."""
        await self._ensure_loaded()
        self._conversations[conversation.id] = conversation
        await self._save(conversation)
        logger.info(
            "Conversation added",
            conversation_id=conversation.id,
            agents=len(conversation.agents),
        )
        self._notify()
        return conversation

    async def update(self, conversation_id: str, **updates: Any) -> Conversation:
        """Merge the given fields into a conversation.

        Raises:
            StoreError: If the conversation does not exist or a field is unknown.
        """
        conversation = await self._require(conversation_id)
        known = {f.name for f in fields(Conversation)} - _IMMUTABLE_FIELDS
        unknown = set(updates) - known
        if unknown:
            raise StoreError(
                f"Unknown conversation fields: {sorted(unknown)}",
                entity="conversation",
                key=conversation_id,
            )

        updated = replace(conversation, **updates)
        self._conversations[conversation_id] = updated
        await self._save(updated)
        self._notify()
        return updated

    async def update_agent_settings(
        self,
        conversation_id: str,
        agent_id: str,
        **updates: Any,
    ) -> ConversationAgentSettings:
        """Create or merge the override record for one agent.

        Only the fields supplied are changed; the record is created the first
        time any setting for the agent is changed.
        """
        conversation = await self._require(conversation_id)

        existing = conversation.get_agent_settings(agent_id)
        record = (existing or ConversationAgentSettings(agent_id=agent_id)).merged(updates)

        agent_settings = [
            s for s in conversation.agent_settings if s.agent_id != agent_id
        ]
        if existing is None:
            agent_settings.append(record)
        else:
            index = conversation.agent_settings.index(existing)
            agent_settings.insert(index, record)

        updated = replace(conversation, agent_settings=agent_settings)
        self._conversations[conversation_id] = updated
        await self._save(updated)

        logger.debug(
            "Agent settings updated",
            conversation_id=conversation_id,
            agent_id=agent_id,
            fields=sorted(updates),
        )
        self._notify()
        return record

    async def delete(self, conversation_id: str) -> None:
        """Delete a conversation (no-op if it does not exist)."""
        await self._ensure_loaded()
        if self._conversations.pop(conversation_id, None) is None:
            return
        await self._backend.delete(f"{_KEY_PREFIX}{conversation_id}")
        self._notify()
