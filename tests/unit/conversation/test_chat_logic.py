"""Unit tests for speaker selection and response generation.

Uses the scripted FakeLLMGateway from tests/fakes; configuration errors are
injected with AsyncMock.
"""

from __future__ import annotations

from dataclasses import replace
from unittest.mock import AsyncMock

import pytest

from chatmeld.clients.providers import Credentials
from chatmeld.conversation.chat_logic import (
    ResponseOptions,
    clean_response,
    determine_next_speaker,
    generate_agent_response,
    match_speaker,
    select_response_template,
)
from chatmeld.conversation.models import Agent, Message
from chatmeld.conversation.prompts import Prompts
from chatmeld.core.constants import USER_SENDER_ID
from chatmeld.core.exceptions import MissingCredentialError
from tests.fakes.fake_gateway import RESPONSE, SELECTION, FakeLLMGateway


_CONVERSATION_ID = "conv-1"
_CONTEXT_LIMIT = 20


def _message(agent_id: str, content: str = "hi") -> Message:
    return Message(conversation_id=_CONVERSATION_ID, agent_id=agent_id, content=content)


# =============================================================================
# Pure helpers
# =============================================================================


class TestMatchSpeaker:
    def test_first_agent_in_roster_order_wins(self, alice: Agent, bob: Agent) -> None:
        assert match_speaker("Bob, then Alice", [alice, bob]) is alice

    def test_case_sensitive(self, alice: Agent) -> None:
        assert match_speaker("alice", [alice]) is None

    def test_empty_reply(self, alice: Agent) -> None:
        assert match_speaker("", [alice]) is None


class TestCleanResponse:
    @pytest.mark.parametrize(
        ("reply", "expected"),
        [
            ("Alice: Hello there", "Hello there"),
            ("alice:   Hello there", "Hello there"),
            ('"Hello there"', "Hello there"),
            ('Alice: "Hello there"', "Hello there"),
            ("Hello Alice: there", "Hello Alice: there"),
            ('"', '"'),
        ],
    )
    def test_clean(self, reply: str, expected: str) -> None:
        assert clean_response(reply, "Alice") == expected

    def test_name_with_regex_characters(self) -> None:
        assert clean_response("R2.D2 (bot): beep", "R2.D2 (bot)") == "beep"


class TestSelectResponseTemplate:
    def test_check_in_has_priority(self, alice: Agent) -> None:
        assert select_response_template(alice.id, [], check_in=True) is Prompts.CHECK_IN_MESSAGE

    def test_first_message_for_empty_history(self, alice: Agent) -> None:
        assert select_response_template(alice.id, [], check_in=False) is Prompts.FIRST_MESSAGE

    def test_continuation_when_speaker_sent_last(self, alice: Agent) -> None:
        history = [_message(USER_SENDER_ID), _message(alice.id)]

        assert select_response_template(alice.id, history, check_in=False) is Prompts.CONTINUE_MESSAGE

    def test_next_message_otherwise(self, alice: Agent, bob: Agent) -> None:
        history = [_message(bob.id)]

        assert select_response_template(alice.id, history, check_in=False) is Prompts.NEXT_MESSAGE


# =============================================================================
# determine_next_speaker
# =============================================================================


class TestDetermineNextSpeaker:
    @pytest.mark.asyncio
    async def test_reply_naming_agent_returns_its_id(
        self, alice: Agent, bob: Agent, credentials: Credentials
    ) -> None:
        gateway = FakeLLMGateway(selections=["Alice"])

        speaker_id = await determine_next_speaker([], [alice, bob], gateway, credentials, _CONTEXT_LIMIT)

        assert speaker_id == alice.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ["Carol", ""])
    async def test_reply_naming_nobody_returns_none(
        self, alice: Agent, bob: Agent, credentials: Credentials, reply: str
    ) -> None:
        gateway = FakeLLMGateway(selections=[reply])

        speaker_id = await determine_next_speaker([], [alice, bob], gateway, credentials, _CONTEXT_LIMIT)

        assert speaker_id is None

    @pytest.mark.asyncio
    async def test_selection_parameters(self, alice: Agent, bob: Agent, credentials: Credentials) -> None:
        gateway = FakeLLMGateway(selections=["Bob"])

        await determine_next_speaker([], [alice, bob], gateway, credentials, _CONTEXT_LIMIT)

        call = gateway.calls_of(SELECTION)[0]
        assert call["temperature"] == 0.5
        assert call["max_tokens"] == 15
        assert call["model"] == "gpt-4o-mini"
        assert "speak first" in call["messages"][0]["content"]
        assert "- Alice: A curious botanist warm" in call["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_next_speaker_template_includes_transcript(
        self, alice: Agent, bob: Agent, credentials: Credentials
    ) -> None:
        gateway = FakeLLMGateway(selections=["Bob"])
        history = [_message(USER_SENDER_ID, "Ahoy, Bob!")]

        speaker_id = await determine_next_speaker(history, [alice, bob], gateway, credentials, _CONTEXT_LIMIT)

        assert speaker_id == bob.id
        prompt = gateway.calls_of(SELECTION)[0]["messages"]
        assert "speak next" in prompt[0]["content"]
        assert prompt[-1]["content"].endswith("User: Ahoy, Bob!")

    @pytest.mark.asyncio
    async def test_muted_agents_never_selected(self, alice: Agent, bob: Agent, credentials: Credentials) -> None:
        gateway = FakeLLMGateway(selections=["Bob"])
        muted_bob = replace(bob, muted=True)

        speaker_id = await determine_next_speaker([], [alice, muted_bob], gateway, credentials, _CONTEXT_LIMIT)

        assert speaker_id is None
        assert "Bob" not in gateway.calls_of(SELECTION)[0]["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_selector_model_override(self, alice: Agent, credentials: Credentials) -> None:
        gateway = FakeLLMGateway(selections=["Alice"])

        await determine_next_speaker([], [alice], gateway, credentials, _CONTEXT_LIMIT, selector_model="gpt-4.1-nano")

        assert gateway.calls_of(SELECTION)[0]["model"] == "gpt-4.1-nano"

    @pytest.mark.asyncio
    async def test_default_model_follows_available_key(self, alice: Agent) -> None:
        gateway = FakeLLMGateway(selections=["Alice"])

        await determine_next_speaker([], [alice], gateway, Credentials(google_api_key="g"), _CONTEXT_LIMIT)

        assert gateway.calls_of(SELECTION)[0]["model"] == "gemini-2.5-flash-lite"

    @pytest.mark.asyncio
    async def test_configuration_error_propagates(self, alice: Agent, credentials: Credentials) -> None:
        gateway = AsyncMock()
        gateway.complete.side_effect = MissingCredentialError("openai", "gpt-4o-mini")

        with pytest.raises(MissingCredentialError):
            await determine_next_speaker([], [alice], gateway, credentials, _CONTEXT_LIMIT)


# =============================================================================
# generate_agent_response
# =============================================================================


class TestGenerateAgentResponse:
    @pytest.mark.asyncio
    async def test_unknown_speaker_returns_empty_without_call(
        self, alice: Agent, credentials: Credentials
    ) -> None:
        gateway = FakeLLMGateway()

        content = await generate_agent_response("nobody", [], [alice], gateway, credentials)

        assert content == ""
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_response_is_cleaned(self, alice: Agent, bob: Agent, credentials: Credentials) -> None:
        gateway = FakeLLMGateway(responses=['Alice: "Good morning!"'])

        content = await generate_agent_response(alice.id, [], [alice, bob], gateway, credentials)

        assert content == "Good morning!"

    @pytest.mark.asyncio
    async def test_prompt_replacements(self, alice: Agent, bob: Agent, credentials: Credentials) -> None:
        gateway = FakeLLMGateway()
        history = [_message(USER_SENDER_ID, "Hello everyone")]

        await generate_agent_response(alice.id, history, [alice, bob], gateway, credentials)

        system = gateway.calls_of(RESPONSE)[0]["messages"][0]["content"]
        assert system.startswith('You are "Alice": A curious botanist warm')
        assert "[Bob]" in system
        assert "[Alice]" not in system
        assert "{{" not in system

    @pytest.mark.asyncio
    async def test_traits_option_overrides_agent(self, alice: Agent, credentials: Credentials) -> None:
        gateway = FakeLLMGateway()

        await generate_agent_response(
            alice.id, [], [alice], gateway, credentials, ResponseOptions(traits="sleepy")
        )

        system = gateway.calls_of(RESPONSE)[0]["messages"][0]["content"]
        assert "A curious botanist sleepy" in system

    @pytest.mark.asyncio
    async def test_check_in_template(self, alice: Agent, credentials: Credentials) -> None:
        gateway = FakeLLMGateway()
        history = [_message(alice.id)]

        await generate_agent_response(
            alice.id, history, [alice], gateway, credentials, ResponseOptions(check_in=True)
        )

        prompt = gateway.calls_of(RESPONSE)[0]["messages"]
        assert "is still around" in prompt[-1]["content"]

    @pytest.mark.asyncio
    async def test_override_model_and_temperature(self, alice: Agent, credentials: Credentials) -> None:
        gateway = FakeLLMGateway()
        tuned = replace(alice, model="gpt-4.1", temperature=0.0)

        await generate_agent_response(tuned.id, [], [tuned], gateway, credentials)

        call = gateway.calls_of(RESPONSE)[0]
        assert call["model"] == "gpt-4.1"
        assert call["temperature"] == 0.0

    @pytest.mark.asyncio
    async def test_model_falls_back_to_agent_default_then_global(self, alice: Agent, credentials: Credentials) -> None:
        gateway = FakeLLMGateway()
        no_default = replace(alice, default_model="")

        await generate_agent_response(alice.id, [], [alice], gateway, credentials)
        await generate_agent_response(no_default.id, [], [no_default], gateway, credentials)

        calls = gateway.calls_of(RESPONSE)
        assert calls[0]["model"] == "gpt-4o-mini"
        assert calls[0]["temperature"] == 0.7
        assert calls[1]["model"] == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_empty_reply_stays_empty(self, alice: Agent, credentials: Credentials) -> None:
        gateway = FakeLLMGateway(responses=[""])

        assert await generate_agent_response(alice.id, [], [alice], gateway, credentials) == ""
