"""
Prompt templates and the prompt builder.

Every template is a list of role-tagged messages. Placeholders of the form
``{{name}}`` are filled at runtime by ``build_prompt``:

- {{agents}}: roster listing (speaker selection) or the other agents' names
- {{conversation}}: the trailing transcript
- {{name}}, {{description}}, {{traits}}: the speaking agent
- {{username}}: the human's display label

Templates are shared module constants; ``build_prompt`` never mutates them.
"""

from __future__ import annotations

import copy
from typing import Any, TypeVar


T = TypeVar("T")

PromptMessages = list[dict[str, str]]


_NEXT_SPEAKER: PromptMessages = [
    {
        "role": "system",
        "content": (
            "You are observing an online chat session. You predict who will speak next "
            "from the following options:\n"
            "\n"
            "{{agents}}\n"
            "\n"
            "Only reply with the name of the person who will speak next, based on the "
            "conversation so far and the description of the speakers. If a person is "
            "addressed by name in the last message, then assume that they are the next "
            'speaker. "User" is not a valid option.'
        ),
    },
    {
        "role": "user",
        "content": (
            "Only reply with the name of the person who will speak next, based on the "
            "conversation so far and the description of the speakers. You cannot reply "
            '"User". Always reply with a name. Here is the conversation so far:\n'
            "###\n"
            "{{conversation}}"
        ),
    },
]

_FIRST_SPEAKER: PromptMessages = [
    {
        "role": "system",
        "content": (
            "You are observing an online chat session. You predict who will speak first "
            "from the following options:\n"
            "\n"
            "{{agents}}\n"
            "\n"
            "Only reply with the name of the person who will speak first, based on the "
            "description of the speakers."
        ),
    },
    {
        "role": "user",
        "content": (
            "Only reply with the name of the person who will speak first, based on the "
            "description of the speakers. Always reply with a name."
        ),
    },
]

_FIRST_MESSAGE: PromptMessages = [
    {
        "role": "system",
        "content": (
            'You are "{{name}}": {{description}} {{traits}} Act as "{{name}}" and only '
            "send messages in their name.\n"
            "You are chatting with {{agents}} AI agents, as well as a human user, "
            "{{username}}. Send a message to start the conversation. Keep your messages "
            "short and concise. Bring your unique perspective and your own style as "
            "{{name}} into the conversation. Do not ask how you can help. The message "
            'must start with "{{name}}:".'
        ),
    },
    {
        "role": "user",
        "content": (
            'Write the first message as "{{name}}", in a topic that is interesting for '
            'you. Write exactly one message. The message must start with "{{name}}:".'
        ),
    },
]

_NEXT_MESSAGE: PromptMessages = [
    {
        "role": "system",
        "content": (
            'You are "{{name}}": {{description}} {{traits}} Act as "{{name}}" and only '
            "send messages in their name. You are chatting with AI agents {{agents}}, as "
            "well as a human user, {{username}}.\n"
            "###\n"
            "Instructions:\n"
            "Send a message to continue the conversation. React to the other "
            "participants' messages, while bringing your unique perspective and your own "
            "style as {{name}} into the conversation. Keep the message short and concise: "
            "it is a chat message written on the spot. Your response must start with "
            '"{{name}}:" and contain exactly one message.\n'
            "###\n"
            "Before you reply, you should attend, think and remember all the "
            "instructions set here."
        ),
    },
    {
        "role": "user",
        "content": (
            'Write the next message as "{{name}}", reacting to previous messages. Write '
            "exactly one message. Here is the conversation so far:\n"
            "###\n"
            "{{conversation}}\n"
            "{{name}}: [Your message here]"
        ),
    },
]

_CONTINUE_MESSAGE: PromptMessages = [
    {
        "role": "system",
        "content": (
            'You are "{{name}}": {{description}} {{traits}} Act as "{{name}}" and only '
            "send messages in their name. You are chatting with AI agents {{agents}}, as "
            "well as a human user, {{username}}.\n"
            "###\n"
            "Instructions:\n"
            "Continue or expand your previous message to further the conversation. React "
            "to the other participants' messages, while bringing your unique perspective "
            "and your own style as {{name}} into the conversation. Keep your messages "
            'short and concise. Your response must start with "{{name}}:" and contain '
            "exactly one message.\n"
            "###\n"
            "Before you reply, you should attend, think and remember all the "
            "instructions set here."
        ),
    },
    {
        "role": "user",
        "content": (
            'Continue or expand the last message of "{{name}}", reacting to previous '
            "messages. Write exactly one message. Here is the conversation so far:\n"
            "###\n"
            "{{conversation}}\n"
            "{{name}}: [Your message here]"
        ),
    },
]

_CHECK_IN_MESSAGE: PromptMessages = [
    {
        "role": "system",
        "content": (
            'You are "{{name}}": {{description}} {{traits}} Act as "{{name}}" and only '
            "send messages in their name. You are chatting with AI agents {{agents}}, as "
            "well as a human user, {{username}}. It's unclear if the user is still "
            "participating."
        ),
    },
    {
        "role": "user",
        "content": (
            'Write a short message as "{{name}}" asking if {{username}} is still around. '
            "You can also ask if they want to continue the conversation, or question them "
            'about the topic. The message must start with "{{name}}:". Here is the '
            "conversation so far:\n"
            "###\n"
            "{{conversation}}"
        ),
    },
]


class Prompts:
    """Named access to the prompt templates.

    The attributes are the shared template constants themselves; pass them
    through ``build_prompt`` to get a filled copy.
    """

    NEXT_SPEAKER = _NEXT_SPEAKER
    FIRST_SPEAKER = _FIRST_SPEAKER
    FIRST_MESSAGE = _FIRST_MESSAGE
    NEXT_MESSAGE = _NEXT_MESSAGE
    CONTINUE_MESSAGE = _CONTINUE_MESSAGE
    CHECK_IN_MESSAGE = _CHECK_IN_MESSAGE


def _replace_in_string(value: str, replacements: dict[str, str]) -> str:
    for key, replacement in replacements.items():
        value = value.replace("{{" + key + "}}", replacement)
    return value


def _replace_in_value(value: Any, replacements: dict[str, str]) -> Any:
    if isinstance(value, str):
        return _replace_in_string(value, replacements)
    if isinstance(value, list):
        return [_replace_in_value(v, replacements) for v in value]
    if isinstance(value, tuple):
        return tuple(_replace_in_value(v, replacements) for v in value)
    if isinstance(value, dict):
        return {k: _replace_in_value(v, replacements) for k, v in value.items()}
    return copy.deepcopy(value)


def build_prompt(template: T, replacements: dict[str, str]) -> T:
    """Fill ``{{key}}`` placeholders throughout a template.

    Walks nested lists, tuples and dicts and substitutes placeholders in every
    string. Unknown placeholders stay as they are. The result is a new
    structure; the template is left untouched.

    Args:
        template: Role-tagged messages (or any nested str/list/dict value).
        replacements: Placeholder name to replacement text.

    Returns:
        A filled copy of the template with the same shape.

    Example:
        >>> build_prompt([{"role": "user", "content": "Hi {{name}}"}], {"name": "Ada"})
        [{'role': 'user', 'content': 'Hi Ada'}]
    """
    return _replace_in_value(template, replacements)
