"""Context window selection.

Turns the message history into the plain-text transcript that prompts embed,
keeping only the trailing messages that fit the configured window.
"""

from __future__ import annotations

from collections.abc import Sequence

from chatmeld.conversation.models import Agent, Message
from chatmeld.core.constants import UNKNOWN_SENDER_NAME, USER_DISPLAY_NAME


def sender_name(message: Message, agents: Sequence[Agent]) -> str:
    """Display name for a message's sender."""
    if message.is_from_user:
        return USER_DISPLAY_NAME
    for agent in agents:
        if agent.id == message.agent_id:
            return agent.name
    return UNKNOWN_SENDER_NAME


def format_conversation(messages: Sequence[Message], agents: Sequence[Agent]) -> str:
    """Render messages as ``"<SenderName>: <content>"`` lines."""
    return "\n".join(
        f"{sender_name(message, agents)}: {message.content}" for message in messages
    )


def get_conversation_context(
    messages: Sequence[Message],
    agents: Sequence[Agent],
    max_messages: int,
) -> str:
    """Format the trailing window of the conversation.

    Args:
        messages: Full history, oldest first.
        agents: Roster used to resolve sender names.
        max_messages: Window size; values below 1 are treated as 1.

    Returns:
        The formatted transcript, prefixed with
        ``"[<n> previous messages not shown]"`` when older messages were cut.
    """
    window = max(1, max_messages)
    relevant = list(messages[-window:])
    formatted = format_conversation(relevant, agents)

    omitted = len(messages) - len(relevant)
    if omitted > 0:
        return f"[{omitted} previous messages not shown]\n{formatted}"
    return formatted
