"""
Conductor - turn-taking state machine for one conversation.

The conductor decides when an agent speaks, who speaks, and with what
content. It reacts to three kinds of events:

- on_messages_changed: a message was appended, edited, deleted or cleared
- on_settings_changed: the runtime settings changed (auto-advance toggle)
- handle_user_typing: the human is typing

and exposes manual actions: force_turn, advance_one, pause, resume, stop.

Turn lifecycle:

    IDLE/STOPPED --change--> WAITING --timer--> SELECTING_SPEAKER
        --> PACING_DELAY --> GENERATING --> (message appended) --> IDLE/WAITING/STOPPED

Exclusion: at most one turn is live. Each turn carries an id and an abort
event; aborting sets the event, cancels the turn task and detaches the turn
so that anything it still finishes cannot touch conductor state.

Every collaborator (stores, gateway) is injected; the conductor keeps no
persistent state of its own.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum

from chatmeld.clients.protocols import (
    ConversationStoreProtocol,
    LLMGatewayProtocol,
    MessageStoreProtocol,
    SettingsStoreProtocol,
    Unsubscribe,
)
from chatmeld.conversation.chat_logic import (
    ResponseOptions,
    determine_next_speaker,
    generate_agent_response,
)
from chatmeld.conversation.models import Message, count_agent_messages_since_user
from chatmeld.core.config import Settings
from chatmeld.core.constants import Pacing
from chatmeld.core.exceptions import ConfigurationError, RequestCancelledError, StoreError
from chatmeld.core.logging import get_logger


logger = get_logger(__name__)


class ConductorState(str, Enum):
    """State of the conductor."""

    IDLE = "idle"                              # Nothing scheduled
    WAITING = "waiting"                        # Timer pending before the next attempt
    SELECTING_SPEAKER = "selecting_speaker"    # Asking who speaks next
    PACING_DELAY = "pacing_delay"              # Speaker chosen, "typing" pause
    GENERATING = "generating"                  # Producing the message
    STOPPED = "stopped"                        # Paused or aborted; waits for the human


_THINKING_STATES = (
    ConductorState.SELECTING_SPEAKER,
    ConductorState.PACING_DELAY,
    ConductorState.GENERATING,
)


class _TimerPurpose(str, Enum):
    NEXT_TURN = "next_turn"
    TYPING_COOLDOWN = "typing_cooldown"


@dataclass
class ConductorTimings:
    """Conductor waits, in milliseconds.

    Attributes:
        next_speaker_delay_ms: Quiet period after a change before a turn starts.
        typing_cooldown_ms: Wait after the last keystroke before restarting.
        time_scale: Multiplier applied to every wait (1.0 = real time).
        reset_cooldown_on_typing: Restart a pending cooldown on each keystroke.
            When False, keystrokes during the cooldown are ignored.
    """

    next_speaker_delay_ms: int = Pacing.NEXT_SPEAKER_DELAY_MS
    typing_cooldown_ms: int = Pacing.TYPING_COOLDOWN_MS
    time_scale: float = 1.0
    reset_cooldown_on_typing: bool = True

    def seconds(self, milliseconds: int) -> float:
        return milliseconds / 1000 * self.time_scale

    @classmethod
    def from_settings(cls, settings: Settings) -> ConductorTimings:
        return cls(
            next_speaker_delay_ms=settings.next_speaker_delay_ms,
            typing_cooldown_ms=settings.typing_cooldown_ms,
            reset_cooldown_on_typing=settings.reset_cooldown_on_typing,
        )


def get_next_message_delay(last_message: Message | None) -> int:
    """Pacing delay in ms before the next message is generated.

    3000 ms after the human (or with no history); otherwise 250 ms per word
    of the previous message, bounded to [2000, 8000] ms.
    """
    if last_message is None or last_message.is_from_user:
        return Pacing.AFTER_USER_DELAY_MS
    word_count = len(last_message.content.split())
    delay = max(Pacing.MIN_DELAY_MS, word_count * Pacing.MS_PER_WORD)
    return min(delay, Pacing.MAX_DELAY_MS)


@dataclass
class _Turn:
    """One attempt at producing an agent message."""

    turn_id: int
    forced_speaker_id: str | None = None
    override_pause: bool = False
    skip_pacing: bool = False
    single_step: bool = False
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    task: asyncio.Task | None = None
    dispatched: bool = False


class Conductor:
    """Turn-taking state machine for one conversation.

    Attributes:
        conversation_id: Conversation this conductor drives.
        timings: Wait durations.

    Example:
        ```python
        conductor = Conductor(conversation.id, conversations, messages, settings, gateway)
        conductor.attach()
        await messages.add_message(conversation.id, "user", "Hi all!")
        ...
        await conductor.close()
        ```
    """

    def __init__(
        self,
        conversation_id: str,
        conversations: ConversationStoreProtocol,
        messages: MessageStoreProtocol,
        settings: SettingsStoreProtocol,
        gateway: LLMGatewayProtocol,
        timings: ConductorTimings | None = None,
    ) -> None:
        self.conversation_id = conversation_id
        self.timings = timings or ConductorTimings()
        self._conversations = conversations
        self._messages = messages
        self._settings = settings
        self._gateway = gateway

        self._state = ConductorState.IDLE
        self._turn_id = 0
        self._turn: _Turn | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._timer_purpose: _TimerPurpose | None = None
        self._thinking_agent_id: str | None = None
        self._auto_advance = settings.auto_advance
        self._seen_history: list[Message] | None = None
        self._unsubscribers: list[Unsubscribe] = []
        self._closed = False

    # =========================================================================
    # Read-only state
    # =========================================================================

    @property
    def state(self) -> ConductorState:
        return self._state

    @property
    def turn_id(self) -> int:
        """Id of the most recently started turn."""
        return self._turn_id

    @property
    def is_paused(self) -> bool:
        return not self._settings.auto_advance

    @property
    def is_running(self) -> bool:
        """True while a turn is pending or in flight."""
        return self._state not in (ConductorState.IDLE, ConductorState.STOPPED)

    @property
    def is_thinking(self) -> bool:
        return self._state in _THINKING_STATES

    @property
    def thinking_agent_id(self) -> str | None:
        """Agent chosen for the in-flight turn, once known."""
        return self._thinking_agent_id

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def attach(self) -> None:
        """Subscribe to store changes and evaluate the current history.

        Must be called from within the running event loop.
        """
        if self._unsubscribers:
            return
        self._unsubscribers = [
            self._messages.subscribe(self.on_messages_changed),
            self._settings.subscribe(self.on_settings_changed),
        ]
        self._auto_advance = self._settings.auto_advance
        self._seen_history = self._history()
        logger.info("Conductor attached", conversation_id=self.conversation_id)
        self._reevaluate()

    async def close(self) -> None:
        """Cancel timers, abort the in-flight turn and unsubscribe.

        After close() returns no background work of this conductor remains.
        """
        self._closed = True
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

        task = self._turn.task if self._turn else None
        self.stop()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        logger.info("Conductor closed", conversation_id=self.conversation_id)

    # =========================================================================
    # Event handlers
    # =========================================================================

    def on_messages_changed(self) -> None:
        """React to a history change: re-arm the quiet-period timer.

        Notifications that leave this conversation's history unchanged (writes
        to other conversations on a shared store) are ignored.
        """
        if self._closed:
            return
        history = self._history()
        if history == self._seen_history:
            return
        self._seen_history = history
        self._reevaluate()

    def _reevaluate(self) -> None:
        self._cancel_timer()

        if self._blocked_by_pause(None, self._history()):
            logger.debug("Paused, waiting for the user", conversation_id=self.conversation_id)
            self._settle()
            return

        self._arm_timer(self.timings.next_speaker_delay_ms, _TimerPurpose.NEXT_TURN)

    def on_settings_changed(self) -> None:
        """React to a settings change; only auto-advance toggles matter."""
        if self._closed:
            return
        auto_advance = self._settings.auto_advance
        if auto_advance == self._auto_advance:
            return
        self._auto_advance = auto_advance
        logger.info(
            "Auto-advance toggled",
            conversation_id=self.conversation_id,
            auto_advance=auto_advance,
        )
        self._reevaluate()

    def handle_user_typing(self) -> None:
        """The human is typing: back off until they stop.

        A turn that has not yet dispatched its generation request is
        cancelled and a cooldown is armed. A generation request already in
        flight is left alone so its reply can land.
        """
        if self._closed:
            return

        turn = self._turn
        if turn is not None:
            if turn.dispatched:
                logger.debug("Reply in flight, typing ignored", turn_id=turn.turn_id)
                return
            self._abort_turn("user typing")
            self._arm_timer(self.timings.typing_cooldown_ms, _TimerPurpose.TYPING_COOLDOWN)
            return

        if self._timer is None:
            return
        if (
            self._timer_purpose is _TimerPurpose.TYPING_COOLDOWN
            and not self.timings.reset_cooldown_on_typing
        ):
            return
        self._arm_timer(self.timings.typing_cooldown_ms, _TimerPurpose.TYPING_COOLDOWN)

    # =========================================================================
    # Manual actions
    # =========================================================================

    def force_turn(self, agent_id: str) -> asyncio.Task | None:
        """Make ``agent_id`` speak now.

        Cancels any in-flight turn and pending timer, then starts a turn that
        skips speaker selection, the pacing delay and the auto-advance gate.

        Returns:
            The turn task, or None once the conductor is closed.
        """
        logger.info("Forcing turn", conversation_id=self.conversation_id, agent_id=agent_id)
        self._abort_turn("forced turn")
        self._cancel_timer()
        return self._start_turn(forced_speaker_id=agent_id)

    def advance_one(self) -> asyncio.Task | None:
        """Run exactly one turn even while paused, then stop.

        Returns:
            The turn task, or None if a turn is already in flight.
        """
        self._cancel_timer()
        return self._start_turn(override_pause=True, skip_pacing=True, single_step=True)

    async def pause(self) -> None:
        await self._settings.set_auto_advance(False)

    async def resume(self) -> None:
        await self._settings.set_auto_advance(True)

    def stop(self) -> None:
        """Cancel timers and the in-flight turn; go to STOPPED."""
        self._cancel_timer()
        self._abort_turn("stopped")
        self._set_state(ConductorState.STOPPED)

    # =========================================================================
    # Turn execution
    # =========================================================================

    def _start_turn(
        self,
        forced_speaker_id: str | None = None,
        override_pause: bool = False,
        skip_pacing: bool = False,
        single_step: bool = False,
    ) -> asyncio.Task | None:
        if self._closed:
            return None
        if self._turn is not None:
            logger.info(
                "Turn already in flight, trigger dropped",
                conversation_id=self.conversation_id,
                turn_id=self._turn.turn_id,
            )
            return None

        self._turn_id += 1
        turn = _Turn(
            turn_id=self._turn_id,
            forced_speaker_id=forced_speaker_id,
            override_pause=override_pause,
            skip_pacing=skip_pacing or forced_speaker_id is not None,
            single_step=single_step,
        )
        self._turn = turn
        if forced_speaker_id is not None:
            self._thinking_agent_id = forced_speaker_id
            self._set_state(ConductorState.GENERATING)
        turn.task = asyncio.get_running_loop().create_task(self._run_turn(turn))
        logger.debug(
            "Turn started",
            conversation_id=self.conversation_id,
            turn_id=turn.turn_id,
            forced_speaker_id=forced_speaker_id,
        )
        return turn.task

    async def _run_turn(self, turn: _Turn) -> None:
        final_state = ConductorState.IDLE
        try:
            final_state = await self._execute_turn(turn)
        except RequestCancelledError:
            logger.debug("Turn request cancelled", turn_id=turn.turn_id)
        except ConfigurationError as e:
            logger.warning("Turn aborted: configuration error", turn_id=turn.turn_id, error=e.message)
            final_state = ConductorState.STOPPED
        except StoreError as e:
            logger.error("Turn aborted: store error", turn_id=turn.turn_id, error=e.message)
            final_state = ConductorState.STOPPED
        finally:
            if self._is_live(turn):
                self._finish_turn(turn, final_state)

    async def _execute_turn(self, turn: _Turn) -> ConductorState:
        """Run one turn; returns the state to settle in afterwards."""
        conversation = await self._conversations.get(self.conversation_id)
        if not self._is_live(turn):
            return ConductorState.IDLE

        history = self._history()
        if self._blocked_by_pause(turn, history):
            logger.info("Paused", conversation_id=self.conversation_id)
            return ConductorState.STOPPED

        credentials = self._settings.credentials
        if not credentials.has_any():
            logger.warning("Missing API key", conversation_id=self.conversation_id)
            return ConductorState.STOPPED

        agents = conversation.effective_agents() if conversation else []
        if not agents:
            logger.warning("No agents in conversation", conversation_id=self.conversation_id)
            return ConductorState.STOPPED

        speaker_id = turn.forced_speaker_id
        if speaker_id is None:
            if not any(not a.muted for a in agents):
                logger.info("Every agent is muted", conversation_id=self.conversation_id)
                return ConductorState.STOPPED
            self._set_state(ConductorState.SELECTING_SPEAKER)
            speaker_id = await determine_next_speaker(
                history,
                agents,
                self._gateway,
                credentials,
                self._settings.max_context_messages,
                self._settings.selector_model,
                turn.cancel_event,
            )
            if not self._is_live(turn):
                return ConductorState.IDLE
            if speaker_id is None:
                logger.info("Could not determine next speaker", conversation_id=self.conversation_id)
                return ConductorState.STOPPED

        self._thinking_agent_id = speaker_id
        await self._conversations.update(self.conversation_id, next_speaker_id=speaker_id)
        if not self._is_live(turn):
            return ConductorState.IDLE
        logger.info("Next speaker decided", conversation_id=self.conversation_id, speaker_id=speaker_id)

        if not turn.skip_pacing:
            delay_ms = get_next_message_delay(history[-1] if history else None)
            self._set_state(ConductorState.PACING_DELAY)
            logger.debug("Pacing delay", turn_id=turn.turn_id, delay_ms=delay_ms)
            await asyncio.sleep(self.timings.seconds(delay_ms))
            if not self._is_live(turn):
                return ConductorState.IDLE

            history = self._history()
            if self._blocked_by_pause(turn, history):
                logger.info("Paused during wait", conversation_id=self.conversation_id)
                return ConductorState.STOPPED

        self._set_state(ConductorState.GENERATING)
        check_in = (
            self._settings.auto_advance
            and count_agent_messages_since_user(history) >= self._settings.max_auto_advance
        )
        speaker = next((a for a in agents if a.id == speaker_id), None)

        turn.dispatched = True
        content = await generate_agent_response(
            speaker_id,
            history,
            agents,
            self._gateway,
            credentials,
            ResponseOptions(check_in=check_in, traits=speaker.traits if speaker else None),
            self._settings.max_context_messages,
            turn.cancel_event,
        )
        if not self._is_live(turn):
            return ConductorState.IDLE
        if not content:
            logger.info("Empty response, nothing appended", speaker_id=speaker_id)
            return ConductorState.IDLE

        await self._messages.add_message(self.conversation_id, speaker_id, content)
        logger.info(
            "Agent message added",
            conversation_id=self.conversation_id,
            speaker_id=speaker_id,
            check_in=check_in,
        )

        if check_in:
            await self._settings.set_auto_advance(False)
        return ConductorState.IDLE

    def _finish_turn(self, turn: _Turn, final_state: ConductorState) -> None:
        self._turn = None
        self._thinking_agent_id = None
        if turn.single_step or final_state is ConductorState.STOPPED:
            self._cancel_timer()
            self._set_state(ConductorState.STOPPED)
            return
        self._settle()

    def _abort_turn(self, reason: str) -> None:
        turn = self._turn
        if turn is None:
            return
        self._turn = None
        self._thinking_agent_id = None
        turn.cancel_event.set()
        if turn.task is not None:
            turn.task.cancel()
        logger.info("Turn cancelled", turn_id=turn.turn_id, reason=reason)

    def _is_live(self, turn: _Turn) -> bool:
        return self._turn is turn

    # =========================================================================
    # Helpers
    # =========================================================================

    def _history(self) -> list[Message]:
        return self._messages.messages_for(self.conversation_id)

    def _blocked_by_pause(self, turn: _Turn | None, history: list[Message]) -> bool:
        """Auto-advance gate: while paused only a human message lets a turn run."""
        if self._settings.auto_advance:
            return False
        if turn is not None and (turn.forced_speaker_id is not None or turn.override_pause):
            return False
        return not history or not history[-1].is_from_user

    def _settle(self) -> None:
        """Pick the resting state when no turn is in flight."""
        if self._turn is not None:
            return
        if self._timer is not None:
            self._set_state(ConductorState.WAITING)
        elif self._blocked_by_pause(None, self._history()):
            self._set_state(ConductorState.STOPPED)
        else:
            self._set_state(ConductorState.IDLE)

    def _set_state(self, state: ConductorState) -> None:
        if state is not self._state:
            logger.debug(
                "Conductor state",
                conversation_id=self.conversation_id,
                previous=self._state.value,
                state=state.value,
            )
            self._state = state

    def _arm_timer(self, milliseconds: int, purpose: _TimerPurpose) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.timings.seconds(milliseconds), self._on_timer_fired)
        self._timer_purpose = purpose
        if self._turn is None:
            self._set_state(ConductorState.WAITING)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._timer_purpose = None

    def _on_timer_fired(self) -> None:
        purpose = self._timer_purpose
        self._timer = None
        self._timer_purpose = None
        if self._closed:
            return
        logger.debug("Conductor triggered", conversation_id=self.conversation_id, purpose=purpose)
        if self._start_turn() is None:
            self._settle()
