"""Unit tests for custom exceptions.

Pattern: Custom exception hierarchy
"""

import pytest

from chatmeld.core.exceptions import (
    ChatMeldError,
    ConfigurationError,
    MissingCredentialError,
    ProviderError,
    RequestCancelledError,
    StoreError,
    UnsupportedModelError,
)


class TestChatMeldError:
    """Tests for the base exception."""

    def test_is_exception(self) -> None:
        assert issubclass(ChatMeldError, Exception)

    def test_stores_message(self) -> None:
        error = ChatMeldError("Test error message")

        assert str(error) == "Test error message"
        assert error.message == "Test error message"

    @pytest.mark.parametrize(
        "exc_class",
        [ConfigurationError, ProviderError, RequestCancelledError, StoreError],
    )
    def test_subclasses_share_base(self, exc_class: type) -> None:
        assert issubclass(exc_class, ChatMeldError)


class TestConfigurationErrors:
    """Configuration errors are raised before any network I/O."""

    def test_unsupported_model(self) -> None:
        error = UnsupportedModelError("llama-9000")

        assert isinstance(error, ConfigurationError)
        assert error.model == "llama-9000"
        assert "llama-9000" in str(error)

    def test_missing_credential(self) -> None:
        error = MissingCredentialError("gemini", "gemini-2.5-pro")

        assert isinstance(error, ConfigurationError)
        assert error.provider == "gemini"
        assert error.model == "gemini-2.5-pro"
        assert "gemini" in str(error)

    def test_caught_as_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            raise MissingCredentialError("openai")


class TestProviderError:
    def test_stores_context(self) -> None:
        error = ProviderError("bad gateway", provider="openai", model="gpt-4o", status_code=502)

        assert error.provider == "openai"
        assert error.model == "gpt-4o"
        assert error.status_code == 502
        assert str(error) == "bad gateway"

    def test_status_code_optional(self) -> None:
        error = ProviderError("connection refused", provider="gemini", model="gemini-2.5-flash")

        assert error.status_code is None


class TestRequestCancelledError:
    def test_records_model(self) -> None:
        error = RequestCancelledError("gpt-4o-mini")

        assert error.model == "gpt-4o-mini"
        assert "cancelled" in str(error).lower()


class TestStoreError:
    def test_stores_entity_and_key(self) -> None:
        error = StoreError("Conversation not found: c1", entity="conversation", key="c1")

        assert error.entity == "conversation"
        assert error.key == "c1"
