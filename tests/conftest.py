"""Test configuration and shared fixtures.

Pattern: Pytest fixtures, conftest.py
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from chatmeld.clients.providers import Credentials
from chatmeld.conversation.conductor import ConductorTimings
from chatmeld.conversation.models import Agent, Conversation
from chatmeld.core.config import Settings
from chatmeld.stores import (
    ConversationStore,
    InMemoryKeyValueBackend,
    MessageStore,
    SettingsStore,
)
from tests.fakes.fake_gateway import FakeLLMGateway


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_settings() -> Settings:
    """Create test settings with safe defaults."""
    return Settings(
        environment="test",
        log_level="DEBUG",
        openai_base_url="http://localhost:9001/v1",
        gemini_base_url="http://localhost:9002/v1beta",
        llm_timeout_seconds=5.0,
    )


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(openai_api_key="sk-test")


@pytest.fixture
def fast_timings() -> ConductorTimings:
    """Timings scaled down so a 3000 ms wait takes 3 ms."""
    return ConductorTimings(time_scale=0.001)


# ============================================================================
# Domain Fixtures
# ============================================================================

@pytest.fixture
def alice() -> Agent:
    return Agent(
        id="agent-alice",
        name="Alice",
        description="A curious botanist",
        default_model="gpt-4o-mini",
        traits="warm",
    )


@pytest.fixture
def bob() -> Agent:
    return Agent(
        id="agent-bob",
        name="Bob",
        description="A retired sea captain",
        default_model="gpt-4o-mini",
        traits="gruff",
    )


@pytest.fixture
def conversation(alice: Agent, bob: Agent) -> Conversation:
    return Conversation(id="conv-1", title="Tea time", agents=[alice, bob])


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture
def conversation_store() -> ConversationStore:
    return ConversationStore(InMemoryKeyValueBackend())


@pytest.fixture
def message_store() -> MessageStore:
    return MessageStore(InMemoryKeyValueBackend())


@pytest_asyncio.fixture
async def settings_store() -> SettingsStore:
    """Settings store with an OpenAI key and defaults for everything else."""
    store = SettingsStore(InMemoryKeyValueBackend({"openai_api_key": "sk-test"}))
    await store.init()
    return store


@pytest.fixture
def fake_gateway() -> FakeLLMGateway:
    return FakeLLMGateway(selections=["Alice"])
