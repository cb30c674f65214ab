"""
Chat Logic - speaker selection and response generation.

Both operations build a prompt from a template plus the trailing transcript,
call the LLM gateway, and interpret the raw reply:

- determine_next_speaker: reply → agent id (or None when no agent is named)
- generate_agent_response: reply → cleaned message text

Configuration errors and cancellation raised by the gateway propagate to
the caller; provider failures arrive here as an empty reply.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Sequence
from dataclasses import dataclass

from chatmeld.clients.protocols import LLMGatewayProtocol
from chatmeld.clients.providers import Credentials, get_default_model
from chatmeld.conversation.context import get_conversation_context
from chatmeld.conversation.models import Agent, Message
from chatmeld.conversation.prompts import PromptMessages, Prompts, build_prompt
from chatmeld.core.constants import (
    DEFAULT_TEMPERATURE,
    SELECTOR_MAX_TOKENS,
    SELECTOR_TEMPERATURE,
    USER_DISPLAY_NAME,
)
from chatmeld.core.logging import get_logger


logger = get_logger(__name__)


@dataclass
class ResponseOptions:
    """Per-turn options for response generation.

    Attributes:
        check_in: Ask whether the human is still around instead of chatting on.
        traits: Traits to use instead of the agent's own.
    """

    check_in: bool = False
    traits: str | None = None


def _roster_listing(agents: Sequence[Agent]) -> str:
    return "\n".join(
        f"- {a.name}: {a.description} {a.traits or ''}" for a in agents
    )


def match_speaker(reply: str, agents: Sequence[Agent]) -> Agent | None:
    """First agent (roster order) whose name appears in the reply, case-sensitive."""
    if not reply:
        return None
    for agent in agents:
        if agent.name and agent.name in reply:
            return agent
    return None


def clean_response(reply: str, name: str) -> str:
    """Strip a redundant ``"<Name>:"`` prefix and one layer of double quotes."""
    cleaned = re.sub(rf"^{re.escape(name)}:\s*", "", reply, flags=re.IGNORECASE)
    if len(cleaned) >= 2 and cleaned.startswith('"') and cleaned.endswith('"'):
        cleaned = cleaned[1:-1]
    return cleaned


def select_response_template(
    speaker_id: str,
    history: Sequence[Message],
    check_in: bool,
) -> PromptMessages:
    """Pick the response template.

    Priority: check-in > first message > continuation > next message.
    """
    if check_in:
        return Prompts.CHECK_IN_MESSAGE
    if not history:
        return Prompts.FIRST_MESSAGE
    if history[-1].agent_id == speaker_id:
        return Prompts.CONTINUE_MESSAGE
    return Prompts.NEXT_MESSAGE


async def determine_next_speaker(
    history: Sequence[Message],
    agents: Sequence[Agent],
    gateway: LLMGatewayProtocol,
    credentials: Credentials,
    context_limit: int,
    selector_model: str | None = None,
    cancel_event: asyncio.Event | None = None,
) -> str | None:
    """Ask the selector model who speaks next.

    Args:
        history: Conversation so far, oldest first.
        agents: Effective agents of the conversation. Muted agents are
            neither listed nor matched.
        gateway: LLM gateway.
        credentials: API keys.
        context_limit: Maximum transcript messages in the prompt.
        selector_model: Model for the selection call. Defaults to the first
            provider with a key.
        cancel_event: Abort signal passed to the gateway.

    Returns:
        The chosen agent's id, or None when the reply names no agent.
    """
    candidates = [a for a in agents if not a.muted]
    template = Prompts.FIRST_SPEAKER if not history else Prompts.NEXT_SPEAKER

    prompt = build_prompt(
        template,
        {
            "agents": _roster_listing(candidates),
            "conversation": get_conversation_context(history, agents, context_limit),
        },
    )

    model = selector_model or get_default_model(credentials)
    reply = await gateway.complete(
        model,
        prompt,
        credentials,
        temperature=SELECTOR_TEMPERATURE,
        max_tokens=SELECTOR_MAX_TOKENS,
        cancel_event=cancel_event,
    )

    speaker = match_speaker(reply, candidates)
    logger.debug(
        "Speaker selection reply",
        model=model,
        reply=reply,
        speaker_id=speaker.id if speaker else None,
    )
    return speaker.id if speaker else None


async def generate_agent_response(
    speaker_id: str,
    history: Sequence[Message],
    agents: Sequence[Agent],
    gateway: LLMGatewayProtocol,
    credentials: Credentials,
    options: ResponseOptions | None = None,
    context_limit: int = 20,
    cancel_event: asyncio.Event | None = None,
) -> str:
    """Generate the next message for ``speaker_id``.

    Args:
        speaker_id: Agent that speaks.
        history: Conversation so far, oldest first.
        agents: Effective agents of the conversation.
        gateway: LLM gateway.
        credentials: API keys.
        options: Check-in flag and traits override.
        context_limit: Maximum transcript messages in the prompt.
        cancel_event: Abort signal passed to the gateway.

    Returns:
        The cleaned message text, or "" when the speaker is no longer in the
        roster or the provider returned nothing.
    """
    options = options or ResponseOptions()

    speaker = next((a for a in agents if a.id == speaker_id), None)
    if speaker is None:
        logger.warning("Speaker not in roster", speaker_id=speaker_id)
        return ""

    template = select_response_template(speaker_id, history, options.check_in)
    other_names = ", ".join(f"[{a.name}]" for a in agents if a.id != speaker_id)

    prompt = build_prompt(
        template,
        {
            "name": speaker.name,
            "description": speaker.description,
            "traits": options.traits or speaker.traits or "",
            "agents": other_names,
            "username": USER_DISPLAY_NAME,
            "conversation": get_conversation_context(history, agents, context_limit),
        },
    )

    model = speaker.model or speaker.default_model or get_default_model(credentials)
    temperature = _first_set(speaker.temperature, speaker.default_temperature, DEFAULT_TEMPERATURE)

    reply = await gateway.complete(
        model,
        prompt,
        credentials,
        temperature=temperature,
        cancel_event=cancel_event,
    )
    return clean_response(reply, speaker.name)


def _first_set(*values: float | None) -> float:
    for value in values:
        if value is not None:
            return value
    return DEFAULT_TEMPERATURE
