"""Unit tests for the context window selector."""

import pytest

from chatmeld.conversation.context import format_conversation, get_conversation_context
from chatmeld.conversation.models import Agent, Message
from chatmeld.core.constants import USER_SENDER_ID


_CONVERSATION_ID = "conv-1"


def _history(agent: Agent, count: int) -> list[Message]:
    """Alternating human / agent messages numbered from 0."""
    return [
        Message(
            conversation_id=_CONVERSATION_ID,
            agent_id=USER_SENDER_ID if i % 2 == 0 else agent.id,
            content=f"message {i}",
        )
        for i in range(count)
    ]


class TestFormatConversation:
    def test_sender_names(self, alice: Agent) -> None:
        messages = [
            Message(conversation_id=_CONVERSATION_ID, agent_id=USER_SENDER_ID, content="Hi"),
            Message(conversation_id=_CONVERSATION_ID, agent_id=alice.id, content="Hello!"),
            Message(conversation_id=_CONVERSATION_ID, agent_id="gone", content="Boo"),
        ]

        assert format_conversation(messages, [alice]) == "User: Hi\nAlice: Hello!\nUnknown: Boo"

    def test_empty(self) -> None:
        assert format_conversation([], []) == ""


class TestGetConversationContext:
    """Window size and truncation marker."""

    @pytest.mark.parametrize(("count", "limit"), [(0, 5), (3, 5), (5, 5), (6, 5), (30, 20), (4, 1)])
    def test_at_most_limit_lines_plus_marker(self, alice: Agent, count: int, limit: int) -> None:
        history = _history(alice, count)

        context = get_conversation_context(history, [alice], limit)
        lines = context.split("\n") if context else []

        truncated = count > limit
        assert len(lines) == min(count, limit) + (1 if truncated else 0)
        if truncated:
            assert lines[0] == f"[{count - limit} previous messages not shown]"

    def test_keeps_trailing_messages(self, alice: Agent) -> None:
        history = _history(alice, 6)

        context = get_conversation_context(history, [alice], 2)

        assert context == "[4 previous messages not shown]\nUser: message 4\nAlice: message 5"

    def test_no_marker_when_everything_fits(self, alice: Agent) -> None:
        history = _history(alice, 2)

        assert get_conversation_context(history, [alice], 20) == "User: message 0\nAlice: message 1"

    @pytest.mark.parametrize("limit", [0, -3])
    def test_limit_below_one_treated_as_one(self, alice: Agent, limit: int) -> None:
        history = _history(alice, 3)

        context = get_conversation_context(history, [alice], limit)

        assert context == "[2 previous messages not shown]\nUser: message 2"
