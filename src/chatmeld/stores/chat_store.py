"""ChatStore - the conversation currently open in the client.

Keeps the active conversation with its agents already merged with their
per-conversation overrides, and routes override edits to the conversation
store so they are persisted.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from chatmeld.clients.protocols import ConversationStoreProtocol
from chatmeld.conversation.models import Agent, Conversation
from chatmeld.stores.events import Observable


class ChatStore(Observable):
    """Active-conversation state.

    Attributes:
        active_conversation: The open conversation (raw, without overrides
            applied), or None.
    """

    def __init__(self, conversations: ConversationStoreProtocol) -> None:
        super().__init__()
        self._conversations = conversations
        self.active_conversation: Conversation | None = None

    @property
    def active_conversation_id(self) -> str | None:
        return self.active_conversation.id if self.active_conversation else None

    @property
    def effective_agents(self) -> list[Agent]:
        """Agents of the active conversation with overrides applied."""
        if self.active_conversation is None:
            return []
        return self.active_conversation.effective_agents()

    def effective_agent(self, agent_id: str) -> Agent | None:
        if self.active_conversation is None:
            return None
        return self.active_conversation.effective_agent(agent_id)

    def set_active_conversation(self, conversation: Conversation | None) -> None:
        self.active_conversation = conversation
        self._notify()

    async def update_active_conversation_agent_settings(
        self,
        agent_id: str,
        **updates: Any,
    ) -> None:
        """Change override fields (model, temperature, traits, muted) for one agent.

        No-op when no conversation is active.
        """
        if self.active_conversation is None:
            return

        conversation = self.active_conversation
        record = await self._conversations.update_agent_settings(
            conversation.id,
            agent_id,
            **updates,
        )

        agent_settings = [s for s in conversation.agent_settings if s.agent_id != agent_id]
        agent_settings.append(record)
        self.active_conversation = replace(conversation, agent_settings=agent_settings)
        self._notify()
