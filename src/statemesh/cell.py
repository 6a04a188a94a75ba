"""Cells — observable values that cache lazily and invalidate eagerly.

A Cell holds a value and a validity flag. Writes, connects and disconnects
invalidate the cell, which flips the flag and notifies listeners
synchronously. Nothing is recomputed until someone calls get().

A Cell may follow one upstream cell. While connected it mirrors the
upstream's value and ignores anything set on it locally. The link is a
single change listener (the cell's hook) registered on the upstream, so an
upstream change invalidates the follower and never recomputes it directly.

Thread safety: call set_scheduler() once from the main thread. After that,
any .set() from a background thread is auto-marshaled. Main-thread .set()
remains synchronous.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, Iterator, TypeVar

from statemesh._errors import CyclicDependencyError
from statemesh._listeners import ListenerRegistry, Subscription

T = TypeVar("T")

ChangeListener = Callable[[object], None]
InvalidationListener = Callable[[], None]

logger = logging.getLogger(__name__)

# ─── Auto-marshal ────────────────────────────────────────────────────────────
_scheduler = None
_scheduler_thread = None


def set_scheduler(scheduler) -> None:
    """Set the global thread scheduler for cross-thread Cell writes.

    Call once from the main/UI thread:
        statemesh.set_scheduler(app.call_from_thread)

    After this, any Cell.set() from a background thread is automatically
    marshaled. Main-thread writes remain synchronous. Pass None to go back
    to plain synchronous writes from every thread.
    """
    global _scheduler, _scheduler_thread
    _scheduler = scheduler
    _scheduler_thread = threading.current_thread() if scheduler is not None else None


def _path_to(source: Cell, target: Cell) -> list[Cell] | None:
    """Walk source's dependencies looking for target. Returns the path or None."""
    stack = [[source]]
    seen: set[Cell] = set()
    while stack:
        path = stack.pop()
        cell = path[-1]
        if cell is target:
            return path
        if cell in seen:
            continue
        seen.add(cell)
        for dep in cell._sources():
            stack.append(path + [dep])
    return None


class Cell(Generic[T]):
    """A single observable value with lazy recomputation and one optional upstream."""

    __slots__ = (
        "_value",
        "_valid",
        "_name",
        "_upstream",
        "_change_listeners",
        "_invalidation_listeners",
        "_hook",
    )

    def __init__(self, name: str | None = None, value: T | None = None) -> None:
        self._value = value
        self._valid = True
        self._name = name or ""
        self._upstream: Cell | None = None
        self._change_listeners: ListenerRegistry[ChangeListener] = ListenerRegistry()
        self._invalidation_listeners: ListenerRegistry[InvalidationListener] = ListenerRegistry()

        def _hook(value=None) -> None:
            self._invalidate()

        self._hook = _hook

    # --- Identity ---

    def get_name(self) -> str:
        return self._name

    def set_name(self, name: str) -> Cell[T]:
        self._name = name
        return self

    # --- Value ---

    def get(self) -> T | None:
        """Read the value, recomputing from upstream first if stale."""
        if not self._valid:
            if self._upstream is not None:
                self._value = self._upstream.get()
            self._validate()
        return self._value

    def set(self, value: T) -> Cell[T]:
        """Write a new value. Auto-marshals from background threads.

        Every write counts as a change, equal values included.
        """
        if _scheduler is not None and threading.current_thread() != _scheduler_thread:
            _scheduler(lambda v=value: self._set_direct(v))
        else:
            self._set_direct(value)
        return self

    def _set_direct(self, value: T) -> None:
        """Store and invalidate. Always runs on the scheduler thread."""
        self._value = value
        self._invalidate()

    def is_valid(self) -> bool:
        return self._valid

    # --- Wiring ---

    def connect(self, other: Cell[T]) -> Cell[T]:
        """Make other follow this cell."""
        other.set_upstream(self)
        return self

    def set_upstream(self, incoming: Cell[T] | None = None) -> Cell[T]:
        """Follow incoming, or disconnect when it is None. Always invalidates."""
        if incoming is not None:
            self._check_acyclic(incoming)

        previous = self._upstream
        self._upstream = None
        if previous is not None and not self._depends_on(previous):
            previous.remove_change_listener(self._hook)

        if incoming is not None:
            self._upstream = incoming
            incoming.add_change_listener(self._hook)

        if incoming is None:
            logger.debug("%r disconnected from %r", self, previous)
        else:
            logger.debug("%r now follows %r", self, incoming)

        self._invalidate()
        return self

    def is_connected(self) -> bool:
        return self._upstream is not None

    def get_upstream(self) -> Cell | None:
        return self._upstream

    def _sources(self) -> Iterator[Cell]:
        """Cells whose changes invalidate this one."""
        if self._upstream is not None:
            yield self._upstream

    def _depends_on(self, cell: Cell) -> bool:
        """True while cell is still one of this cell's sources (hook must stay)."""
        return any(dep is cell for dep in self._sources())

    def _check_acyclic(self, source: Cell) -> None:
        """Raise CyclicDependencyError if depending on source would close a loop."""
        path = _path_to(source, self)
        if path is not None:
            error = CyclicDependencyError(path)
            logger.warning("Rejected wiring %r -> %r: %s", source, self, error)
            raise error

    # --- Listeners ---

    def add_change_listener(self, listener: ChangeListener) -> Subscription:
        """Call listener(value) on every invalidation, with the fresh value."""
        self._change_listeners.add(listener)
        return Subscription(listener, self._change_listeners)

    def remove_change_listener(self, listener: ChangeListener) -> Cell[T]:
        self._change_listeners.remove(listener)
        return self

    def clear_change_listeners(self) -> Cell[T]:
        self._change_listeners.clear()
        return self

    def add_invalidation_listener(self, listener: InvalidationListener) -> Subscription:
        """Call listener() each time this cell goes from valid to stale."""
        self._invalidation_listeners.add(listener)
        return Subscription(listener, self._invalidation_listeners)

    def remove_invalidation_listener(self, listener: InvalidationListener) -> Cell[T]:
        self._invalidation_listeners.remove(listener)
        return self

    def clear_invalidation_listeners(self) -> Cell[T]:
        self._invalidation_listeners.clear()
        return self

    # --- Validity ---

    def _invalidate(self) -> None:
        """Mark stale and notify.

        Invalidation listeners (and on_invalidate) run only on the
        valid -> invalid edge. Change listeners run on every call and each
        receives get(), so a stale value is never handed out.
        """
        if self._valid:
            self._valid = False
            self.on_invalidate()
            self._invalidation_listeners.fire()
        self._change_listeners.fire_with(self.get)

    def _validate(self) -> None:
        if not self._valid:
            self._valid = True
            self.on_validate()

    def on_invalidate(self) -> None:
        """Subclass hook, runs on the valid -> invalid edge."""

    def on_validate(self) -> None:
        """Subclass hook, runs on the invalid -> valid edge."""

    def __repr__(self) -> str:
        state = f"value={self._value!r}" if self._valid else "stale"
        return f"{type(self).__name__}({self._name!r}, {state})"
