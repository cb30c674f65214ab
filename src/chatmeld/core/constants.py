"""Shared constants for the chat conductor and its collaborators.

Provides:
- Sender sentinel and display label for the human
- Conductor pacing values (milliseconds)
- Generation parameters for speaker selection
- Clamp bounds for the runtime chat settings
"""


# =============================================================================
# Participants
# =============================================================================

USER_SENDER_ID = "user"
USER_DISPLAY_NAME = "User"
UNKNOWN_SENDER_NAME = "Unknown"


# =============================================================================
# Conductor Pacing (milliseconds)
# =============================================================================

class Pacing:
    """Timing values used by the conductor.

    The pre-trigger quiet period and the typing cooldown can be overridden
    via Settings; the pacing delay bounds are fixed.
    """
    NEXT_SPEAKER_DELAY_MS: int = 3000
    TYPING_COOLDOWN_MS: int = 3000
    AFTER_USER_DELAY_MS: int = 3000
    MS_PER_WORD: int = 250
    MIN_DELAY_MS: int = 2000
    MAX_DELAY_MS: int = 8000


# =============================================================================
# Generation Parameters
# =============================================================================

# Only a name is expected back from speaker selection
SELECTOR_TEMPERATURE = 0.5
SELECTOR_MAX_TOKENS = 15

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4000


# =============================================================================
# Runtime Settings Bounds
# =============================================================================

DEFAULT_AUTO_ADVANCE = True
DEFAULT_MAX_AUTO_ADVANCE = 7
MAX_AUTO_ADVANCE_BOUNDS = (2, 999)
DEFAULT_MAX_CONTEXT_MESSAGES = 20
MAX_CONTEXT_MESSAGES_BOUNDS = (1, 999)


def clamp(value: int, bounds: tuple[int, int]) -> int:
    """Clamp value into the inclusive (low, high) range."""
    low, high = bounds
    return max(low, min(high, value))
