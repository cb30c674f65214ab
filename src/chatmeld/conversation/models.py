"""
Conversation Models - Data structures for the group chat

This module defines agents, their per-conversation overrides, conversations
and messages. Records are plain dataclasses; ``to_dict``/``from_dict`` are
used by the JSON-backed stores.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any

from chatmeld.core.constants import USER_SENDER_ID


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class Agent:
    """A conversational persona.

    Agents are templates: a conversation keeps its own copy, and only the
    override fields (``model``, ``temperature``, ``traits``, ``muted``) are
    changed per conversation through ConversationAgentSettings.

    Attributes:
        id: Unique identifier.
        name: Display name, also what speaker selection matches against.
        description: Who the agent is.
        default_model: Model used when no override is set.
        default_temperature: Temperature used when no override is set.
        traits: Free-text behavioral traits.
        model: Per-conversation model override.
        temperature: Per-conversation temperature override.
        muted: Muted agents are never picked by speaker selection.
        language: Language code.
        avatar_url: UI metadata.
        category: UI metadata.
        sort_order: UI metadata.
    """

    name: str
    description: str
    default_model: str
    default_temperature: float = 0.7
    id: str = field(default_factory=_new_id)
    traits: str | None = None
    model: str | None = None
    temperature: float | None = None
    muted: bool | None = None
    language: str = "en"
    avatar_url: str | None = None
    category: str | None = None
    sort_order: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Agent:
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class ConversationAgentSettings:
    """Per-conversation override record for one agent.

    ``None`` means "not overridden" and leaves the base agent's value in place.
    """

    agent_id: str
    model: str | None = None
    temperature: float | None = None
    traits: str | None = None
    muted: bool | None = None

    OVERRIDE_FIELDS = ("model", "temperature", "traits", "muted")

    def merged(self, updates: dict[str, Any]) -> ConversationAgentSettings:
        """Return a copy with the supplied override fields applied."""
        values = {k: v for k, v in updates.items() if k in self.OVERRIDE_FIELDS}
        return replace(self, **values)

    def apply_to(self, agent: Agent) -> Agent:
        """Return the effective agent: ``agent`` with these overrides on top."""
        overrides = {
            name: getattr(self, name)
            for name in self.OVERRIDE_FIELDS
            if getattr(self, name) is not None
        }
        return replace(agent, **overrides)

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "model": self.model,
            "temperature": self.temperature,
            "traits": self.traits,
            "muted": self.muted,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationAgentSettings:
        return cls(
            agent_id=data["agent_id"],
            model=data.get("model"),
            temperature=data.get("temperature"),
            traits=data.get("traits"),
            muted=data.get("muted"),
        )


@dataclass
class Message:
    """Single message in a conversation.

    Attributes:
        conversation_id: Owning conversation.
        agent_id: ``"user"`` for the human, otherwise the sending agent's id.
        content: Message text.
        id: Unique message identifier.
        send_time: When the message was sent; defines ordering.
        previous_message_id: Message this one follows, if tracked.
        loved: UI flag.
        deleted: Soft-delete flag.
    """

    conversation_id: str
    agent_id: str
    content: str
    id: str = field(default_factory=_new_id)
    send_time: datetime = field(default_factory=_now)
    previous_message_id: str | None = None
    loved: bool = False
    deleted: bool = False

    @property
    def role(self) -> str:
        """Chat role derived from the sender."""
        return "user" if self.is_from_user else "assistant"

    @property
    def is_from_user(self) -> bool:
        return self.agent_id == USER_SENDER_ID

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "agent_id": self.agent_id,
            "content": self.content,
            "role": self.role,
            "send_time": self.send_time.isoformat(),
            "previous_message_id": self.previous_message_id,
            "loved": self.loved,
            "deleted": self.deleted,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        return cls(
            id=data["id"],
            conversation_id=data["conversation_id"],
            agent_id=data["agent_id"],
            content=data["content"],
            send_time=_parse_time(data["send_time"]),
            previous_message_id=data.get("previous_message_id"),
            loved=data.get("loved", False),
            deleted=data.get("deleted", False),
        )


@dataclass
class Conversation:
    """A group chat between the human and a snapshot of agents.

    Attributes:
        title: Conversation title.
        description: What the conversation is about.
        agents: Copies of the participating agents, in roster order.
        agent_settings: Per-agent override records.
        id: Unique conversation identifier.
        next_speaker_id: Last decided speaker, persisted for resilience.
        start_date: When the conversation started.
        language: Language code.
        last_message_id: Most recent message, if tracked.
    """

    title: str
    agents: list[Agent]
    description: str = ""
    agent_settings: list[ConversationAgentSettings] = field(default_factory=list)
    id: str = field(default_factory=_new_id)
    next_speaker_id: str | None = None
    start_date: datetime = field(default_factory=_now)
    language: str = "en"
    last_message_id: str | None = None

    def get_agent_settings(self, agent_id: str) -> ConversationAgentSettings | None:
        """Get the override record for an agent, if one exists."""
        for settings in self.agent_settings:
            if settings.agent_id == agent_id:
                return settings
        return None

    def effective_agents(self) -> list[Agent]:
        """Agents merged with their per-conversation overrides."""
        result = []
        for agent in self.agents:
            settings = self.get_agent_settings(agent.id)
            result.append(settings.apply_to(agent) if settings else agent)
        return result

    def effective_agent(self, agent_id: str) -> Agent | None:
        """Get one effective agent by id."""
        for agent in self.effective_agents():
            if agent.id == agent_id:
                return agent
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "agents": [a.to_dict() for a in self.agents],
            "agent_settings": [s.to_dict() for s in self.agent_settings],
            "next_speaker_id": self.next_speaker_id,
            "start_date": self.start_date.isoformat(),
            "language": self.language,
            "last_message_id": self.last_message_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Conversation:
        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description", ""),
            agents=[Agent.from_dict(a) for a in data.get("agents", [])],
            agent_settings=[
                ConversationAgentSettings.from_dict(s)
                for s in data.get("agent_settings", [])
            ],
            next_speaker_id=data.get("next_speaker_id"),
            start_date=_parse_time(data["start_date"]),
            language=data.get("language", "en"),
            last_message_id=data.get("last_message_id"),
        )


def count_agent_messages_since_user(messages: list[Message]) -> int:
    """Count consecutive agent messages at the tail of the history."""
    count = 0
    for message in reversed(messages):
        if message.is_from_user:
            break
        count += 1
    return count
