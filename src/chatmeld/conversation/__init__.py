"""
Conversation Package - Multi-agent group chat

Components:
- models: Agent, Conversation, Message and per-conversation overrides
- prompts: Prompt templates and placeholder substitution
- context: Transcript formatting with a bounded window
- chat_logic: Next-speaker selection and response generation
- conductor: Turn-taking state machine
"""

from chatmeld.conversation.chat_logic import (
    ResponseOptions,
    determine_next_speaker,
    generate_agent_response,
)
from chatmeld.conversation.conductor import (
    Conductor,
    ConductorState,
    ConductorTimings,
    get_next_message_delay,
)
from chatmeld.conversation.context import get_conversation_context
from chatmeld.conversation.models import (
    Agent,
    Conversation,
    ConversationAgentSettings,
    Message,
)
from chatmeld.conversation.prompts import Prompts, build_prompt


__all__ = [
    "Agent",
    "Conductor",
    "ConductorState",
    "ConductorTimings",
    "Conversation",
    "ConversationAgentSettings",
    "Message",
    "Prompts",
    "ResponseOptions",
    "build_prompt",
    "determine_next_speaker",
    "generate_agent_response",
    "get_conversation_context",
    "get_next_message_delay",
]
