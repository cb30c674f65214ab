"""Unit tests for ConversationStore."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from chatmeld.conversation.models import Agent, Conversation
from chatmeld.core.exceptions import StoreError
from chatmeld.stores import ConversationStore, InMemoryKeyValueBackend


class TestConversationStore:
    @pytest.mark.asyncio
    async def test_add_and_get(self, conversation_store: ConversationStore, conversation: Conversation) -> None:
        await conversation_store.add(conversation)

        assert await conversation_store.get(conversation.id) == conversation
        assert conversation_store.cached(conversation.id) == conversation
        assert await conversation_store.get("missing") is None

    @pytest.mark.asyncio
    async def test_list_newest_first(self, conversation_store: ConversationStore, alice: Agent) -> None:
        now = datetime.now(timezone.utc)
        old = Conversation(title="old", agents=[alice], start_date=now - timedelta(days=1))
        new = Conversation(title="new", agents=[alice], start_date=now)
        await conversation_store.add(old)
        await conversation_store.add(new)

        assert [c.title for c in await conversation_store.list_all()] == ["new", "old"]

    @pytest.mark.asyncio
    async def test_update_partial_merge(self, conversation_store: ConversationStore, conversation: Conversation) -> None:
        await conversation_store.add(conversation)

        updated = await conversation_store.update(conversation.id, next_speaker_id="agent-bob")

        assert updated.next_speaker_id == "agent-bob"
        assert updated.title == conversation.title
        assert updated.agents == conversation.agents

    @pytest.mark.asyncio
    async def test_update_unknown_conversation(self, conversation_store: ConversationStore) -> None:
        with pytest.raises(StoreError) as exc_info:
            await conversation_store.update("missing", title="x")

        assert exc_info.value.entity == "conversation"
        assert exc_info.value.key == "missing"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["id", "no_such_field"])
    async def test_update_rejects_fields(
        self, conversation_store: ConversationStore, conversation: Conversation, field: str
    ) -> None:
        await conversation_store.add(conversation)

        with pytest.raises(StoreError):
            await conversation_store.update(conversation.id, **{field: "x"})

    @pytest.mark.asyncio
    async def test_agent_settings_created_lazily_and_merged(
        self, conversation_store: ConversationStore, conversation: Conversation, bob: Agent
    ) -> None:
        await conversation_store.add(conversation)
        assert conversation.get_agent_settings(bob.id) is None

        await conversation_store.update_agent_settings(conversation.id, bob.id, temperature=0.9)
        record = await conversation_store.update_agent_settings(conversation.id, bob.id, muted=True)

        stored = await conversation_store.get(conversation.id)
        assert len(stored.agent_settings) == 1
        assert record.temperature == 0.9
        assert record.muted is True
        assert stored.effective_agent(bob.id).temperature == 0.9

    @pytest.mark.asyncio
    async def test_agent_settings_unknown_conversation(self, conversation_store: ConversationStore) -> None:
        with pytest.raises(StoreError):
            await conversation_store.update_agent_settings("missing", "agent-bob", muted=True)

    @pytest.mark.asyncio
    async def test_delete(self, conversation_store: ConversationStore, conversation: Conversation) -> None:
        await conversation_store.add(conversation)

        await conversation_store.delete(conversation.id)
        await conversation_store.delete(conversation.id)

        assert await conversation_store.get(conversation.id) is None

    @pytest.mark.asyncio
    async def test_notifies_subscribers(self, conversation_store: ConversationStore, conversation: Conversation) -> None:
        calls: list[str] = []
        unsubscribe = conversation_store.subscribe(lambda: calls.append("changed"))

        await conversation_store.add(conversation)
        await conversation_store.update(conversation.id, title="renamed")
        unsubscribe()
        await conversation_store.delete(conversation.id)

        assert calls == ["changed", "changed"]

    @pytest.mark.asyncio
    async def test_loads_from_backend(self, conversation: Conversation) -> None:
        backend = InMemoryKeyValueBackend(
            {f"conversation:{conversation.id}": json.dumps(conversation.to_dict()), "other": "x"}
        )
        store = ConversationStore(backend)

        assert await store.get(conversation.id) == conversation
