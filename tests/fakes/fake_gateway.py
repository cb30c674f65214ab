"""Fake LLM gateway for unit testing.

In-memory fake implementing LLMGatewayProtocol for duck typing. Replies are
scripted per call kind (speaker selection vs. agent message) and every call
is recorded for verification.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Callable
from typing import Any, Sequence

from chatmeld.core.exceptions import RequestCancelledError


_SELECTION_MARKER = "You are observing an online chat session"
_SPEAKER_NAME = re.compile(r'You are "([^"]+)"')

SELECTION = "selection"
RESPONSE = "response"


def _default_response(name: str) -> str:
    return f"Hello from {name}"


class FakeLLMGateway:
    """Scripted stand-in for LLMGateway.

    Implements LLMGatewayProtocol for duck typing.

    Attributes:
        calls: Recorded calls, each a dict with kind, model, messages,
            temperature, max_tokens.
        selection_gate: When set to an unset asyncio.Event, selection calls
            wait on it (up to ``block_selections`` calls).
        response_gate: Same for response calls.

    Example:
        >>> gateway = FakeLLMGateway(selections=["Alice"])
        >>> await gateway.complete("gpt-4o-mini", prompt, credentials)
        'Alice'
    """

    def __init__(
        self,
        selections: Sequence[str] | None = None,
        responses: Sequence[str] | None = None,
        respond: Callable[[str], str] | None = None,
        error: Exception | None = None,
    ) -> None:
        """Initialize fake gateway with scripted replies.

        Args:
            selections: Replies for selection calls, in order. The last one
                repeats once the script runs out. Defaults to "".
            responses: Replies for response calls, in order. When exhausted,
                ``respond`` is used.
            respond: Builds a response from the speaker name.
            error: Raised from every call when set.
        """
        self._selections = list(selections or [])
        self._responses = list(responses or [])
        self._respond = respond or _default_response
        self._error = error
        self.calls: list[dict[str, Any]] = []
        self.cancelled: list[str] = []
        self.selection_gate: asyncio.Event | None = None
        self.response_gate: asyncio.Event | None = None
        self.block_selections = 1
        self.block_responses = 1
        self.closed = False

    def calls_of(self, kind: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["kind"] == kind]

    def clear_history(self) -> None:
        """Clear call history for test isolation."""
        self.calls = []
        self.cancelled = []

    async def complete(
        self,
        model: str,
        messages: Sequence[dict[str, str]],
        credentials: Any,
        *,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        stop: list[str] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> str:
        if self._error is not None:
            raise self._error
        if cancel_event is not None and cancel_event.is_set():
            raise RequestCancelledError(model)

        system = messages[0]["content"] if messages else ""
        kind = SELECTION if system.startswith(_SELECTION_MARKER) else RESPONSE
        self.calls.append(
            {
                "kind": kind,
                "model": model,
                "messages": [dict(m) for m in messages],
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )

        await self._maybe_block(kind, model, cancel_event)
        await asyncio.sleep(0)

        if kind == SELECTION:
            if not self._selections:
                return ""
            return self._selections.pop(0) if len(self._selections) > 1 else self._selections[0]

        if self._responses:
            return self._responses.pop(0)
        match = _SPEAKER_NAME.search(system)
        return self._respond(match.group(1) if match else "")

    async def _maybe_block(
        self,
        kind: str,
        model: str,
        cancel_event: asyncio.Event | None,
    ) -> None:
        if kind == SELECTION:
            gate, remaining = self.selection_gate, self.block_selections
        else:
            gate, remaining = self.response_gate, self.block_responses
        if gate is None or remaining <= 0:
            return

        if kind == SELECTION:
            self.block_selections -= 1
        else:
            self.block_responses -= 1

        try:
            await gate.wait()
        except asyncio.CancelledError:
            self.cancelled.append(kind)
            raise
        if cancel_event is not None and cancel_event.is_set():
            self.cancelled.append(kind)
            raise RequestCancelledError(model)

    async def close(self) -> None:
        self.closed = True
