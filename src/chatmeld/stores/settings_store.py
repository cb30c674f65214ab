"""SettingsStore - process-wide runtime chat settings.

Loaded once at startup with ``init()``; every setter writes the new value to
the backend immediately, updates memory and notifies subscribers. Values are
stored as strings, numeric settings are clamped to their allowed range.
"""

from __future__ import annotations

from chatmeld.clients.protocols import KeyValueBackendProtocol
from chatmeld.clients.providers import Credentials
from chatmeld.core.config import Settings
from chatmeld.core.constants import (
    DEFAULT_AUTO_ADVANCE,
    DEFAULT_MAX_AUTO_ADVANCE,
    DEFAULT_MAX_CONTEXT_MESSAGES,
    MAX_AUTO_ADVANCE_BOUNDS,
    MAX_CONTEXT_MESSAGES_BOUNDS,
    clamp,
)
from chatmeld.core.logging import get_logger
from chatmeld.stores.events import Observable


logger = get_logger(__name__)


class SettingKey:
    """Backend keys of the runtime settings."""
    OPENAI_API_KEY = "openai_api_key"
    GOOGLE_API_KEY = "google_api_key"
    AUTO_ADVANCE = "auto_advance"
    MAX_AUTO_ADVANCE = "max_auto_advance"
    MAX_CONTEXT_MESSAGES = "max_context_messages"
    SELECTOR_MODEL = "selector_model"


def _parse_int(raw: str | None, default: int, bounds: tuple[int, int]) -> int:
    if raw is None:
        return default
    try:
        return clamp(int(raw), bounds)
    except ValueError:
        logger.warning("Ignoring non-numeric setting", value=raw, default=default)
        return default


class SettingsStore(Observable):
    """Runtime chat settings.

    Satisfies SettingsStoreProtocol.

    Attributes:
        initialized: True once ``init()`` has loaded the stored values.
    """

    def __init__(
        self,
        backend: KeyValueBackendProtocol,
        app_settings: Settings | None = None,
    ) -> None:
        """Initialize with defaults; call ``init()`` to load stored values.

        Args:
            backend: Key-value table holding the settings.
            app_settings: Environment configuration used to seed API keys that
                have not been stored yet.
        """
        super().__init__()
        self._backend = backend
        self._app_settings = app_settings
        self._credentials = Credentials()
        self._auto_advance = DEFAULT_AUTO_ADVANCE
        self._max_auto_advance = DEFAULT_MAX_AUTO_ADVANCE
        self._max_context_messages = DEFAULT_MAX_CONTEXT_MESSAGES
        self._selector_model: str | None = None
        self.initialized = False

    async def init(self) -> None:
        """Load every setting from the backend."""
        openai_key = await self._backend.get(SettingKey.OPENAI_API_KEY)
        google_key = await self._backend.get(SettingKey.GOOGLE_API_KEY)
        if self._app_settings is not None:
            if openai_key is None and self._app_settings.openai_api_key is not None:
                openai_key = self._app_settings.openai_api_key.get_secret_value()
            if google_key is None and self._app_settings.google_api_key is not None:
                google_key = self._app_settings.google_api_key.get_secret_value()
        self._credentials = Credentials(
            openai_api_key=openai_key or "",
            google_api_key=google_key or "",
        )

        auto_advance = await self._backend.get(SettingKey.AUTO_ADVANCE)
        self._auto_advance = (
            auto_advance == "true" if auto_advance is not None else DEFAULT_AUTO_ADVANCE
        )
        self._max_auto_advance = _parse_int(
            await self._backend.get(SettingKey.MAX_AUTO_ADVANCE),
            DEFAULT_MAX_AUTO_ADVANCE,
            MAX_AUTO_ADVANCE_BOUNDS,
        )
        self._max_context_messages = _parse_int(
            await self._backend.get(SettingKey.MAX_CONTEXT_MESSAGES),
            DEFAULT_MAX_CONTEXT_MESSAGES,
            MAX_CONTEXT_MESSAGES_BOUNDS,
        )
        self._selector_model = await self._backend.get(SettingKey.SELECTOR_MODEL) or None

        self.initialized = True
        logger.info(
            "Settings loaded",
            auto_advance=self._auto_advance,
            max_auto_advance=self._max_auto_advance,
            max_context_messages=self._max_context_messages,
            has_credentials=self._credentials.has_any(),
        )
        self._notify()

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    @property
    def auto_advance(self) -> bool:
        return self._auto_advance

    @property
    def max_auto_advance(self) -> int:
        return self._max_auto_advance

    @property
    def max_context_messages(self) -> int:
        return self._max_context_messages

    @property
    def selector_model(self) -> str | None:
        return self._selector_model

    # -------------------------------------------------------------------------
    # Setters
    # -------------------------------------------------------------------------

    async def set_openai_api_key(self, key: str) -> None:
        await self._backend.put(SettingKey.OPENAI_API_KEY, key)
        self._credentials = Credentials(
            openai_api_key=key,
            google_api_key=self._credentials.google_api_key,
        )
        self._notify()

    async def set_google_api_key(self, key: str) -> None:
        await self._backend.put(SettingKey.GOOGLE_API_KEY, key)
        self._credentials = Credentials(
            openai_api_key=self._credentials.openai_api_key,
            google_api_key=key,
        )
        self._notify()

    async def set_auto_advance(self, value: bool) -> None:
        await self._backend.put(SettingKey.AUTO_ADVANCE, "true" if value else "false")
        self._auto_advance = value
        logger.info("Auto-advance changed", auto_advance=value)
        self._notify()

    async def set_max_auto_advance(self, value: int) -> None:
        clamped = clamp(value, MAX_AUTO_ADVANCE_BOUNDS)
        await self._backend.put(SettingKey.MAX_AUTO_ADVANCE, str(clamped))
        self._max_auto_advance = clamped
        self._notify()

    async def set_max_context_messages(self, value: int) -> None:
        clamped = clamp(value, MAX_CONTEXT_MESSAGES_BOUNDS)
        await self._backend.put(SettingKey.MAX_CONTEXT_MESSAGES, str(clamped))
        self._max_context_messages = clamped
        self._notify()

    async def set_selector_model(self, model: str | None) -> None:
        if model:
            await self._backend.put(SettingKey.SELECTOR_MODEL, model)
        else:
            await self._backend.delete(SettingKey.SELECTOR_MODEL)
        self._selector_model = model or None
        self._notify()
