"""Change notification for stores."""

from __future__ import annotations

from chatmeld.clients.protocols import Listener, Unsubscribe


class Observable:
    """Mixin giving a store ``subscribe`` and synchronous ``_notify``.

    Listeners are called in registration order after each mutation.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Unsubscribe:
        """Register a change listener.

        Returns:
            A callable that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()
