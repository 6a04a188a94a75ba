"""Listener registries — ordered callback sets that tolerate re-entrancy.

Firing iterates a snapshot, so listeners may add, remove or clear entries
(including themselves) from inside a callback. A listener removed while a
fire is in progress is not called for the rest of that fire; a listener
added during a fire is first called on the next one.
"""

from __future__ import annotations

from typing import Callable, Generic, Iterator, TypeVar

F = TypeVar("F", bound=Callable[..., object])


class ListenerRegistry(Generic[F]):
    """Ordered set of callbacks, deduplicated by ``==`` (identity for plain functions)."""

    __slots__ = ("_listeners",)

    def __init__(self) -> None:
        self._listeners: list[F] = []

    def add(self, listener: F) -> bool:
        """Append listener. Returns False if it was already registered."""
        if listener in self._listeners:
            return False
        self._listeners.append(listener)
        return True

    def remove(self, listener: F) -> bool:
        """Drop listener. Returns False if it was not registered."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            return False
        return True

    def clear(self) -> None:
        self._listeners.clear()

    def fire(self, *args) -> None:
        """Call every registered listener in registration order."""
        for listener in list(self._listeners):
            if listener in self._listeners:
                listener(*args)

    def fire_with(self, produce: Callable[[], object]) -> None:
        """Like fire(), but evaluates ``produce()`` right before each call.

        Change listeners use this so each one sees the value as it stands
        after earlier listeners ran.
        """
        for listener in list(self._listeners):
            if listener in self._listeners:
                listener(produce())

    def __contains__(self, listener: object) -> bool:
        return listener in self._listeners

    def __iter__(self) -> Iterator[F]:
        return iter(list(self._listeners))

    def __len__(self) -> int:
        return len(self._listeners)

    def __repr__(self) -> str:
        return f"ListenerRegistry({len(self._listeners)} listeners)"


class Subscription:
    """Handle returned when a listener is registered.

    ``destroy()`` removes the listener from the registry it was added to.
    Calling it more than once is harmless.
    """

    __slots__ = ("listener", "_registry")

    def __init__(self, listener: Callable, registry: ListenerRegistry) -> None:
        self.listener = listener
        self._registry = registry

    def destroy(self) -> None:
        self._registry.remove(self.listener)

    dispose = destroy

    @property
    def active(self) -> bool:
        """True while the listener is still registered."""
        return self.listener in self._registry

    def __repr__(self) -> str:
        state = "active" if self.active else "destroyed"
        name = getattr(self.listener, "__name__", repr(self.listener))
        return f"Subscription({name}, {state})"
