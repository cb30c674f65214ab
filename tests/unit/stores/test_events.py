"""Unit tests for the Observable mixin."""

from chatmeld.stores.events import Observable


class TestObservable:
    def test_listeners_called_in_order(self) -> None:
        observable = Observable()
        calls: list[str] = []
        observable.subscribe(lambda: calls.append("first"))
        observable.subscribe(lambda: calls.append("second"))

        observable._notify()

        assert calls == ["first", "second"]

    def test_unsubscribe_twice_is_harmless(self) -> None:
        observable = Observable()
        calls: list[str] = []
        unsubscribe = observable.subscribe(lambda: calls.append("x"))

        unsubscribe()
        unsubscribe()
        observable._notify()

        assert calls == []

    def test_listener_may_unsubscribe_during_notify(self) -> None:
        observable = Observable()
        calls: list[str] = []
        unsubscribe = None

        def once() -> None:
            calls.append("once")
            unsubscribe()

        unsubscribe = observable.subscribe(once)
        observable.subscribe(lambda: calls.append("other"))

        observable._notify()
        observable._notify()

        assert calls == ["once", "other", "other"]
