"""Textual integration for statemesh. Opt-in — requires textual.

Guard + NoMatches + thread-marshal are enforced here, not at callsites.
Textual coupling is isolated in this module so the core stays agnostic.
Pause state has a single owner (this module): an app id is present in
_paused_apps exactly while inside a pause() block.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable

from textual.css.query import NoMatches

from statemesh._listeners import Subscription
from statemesh.cell import Cell

# Module-owned pause state — keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend guarded listeners during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def _guard(app, fn: Callable) -> Callable:
    _main = threading.get_ident()

    def _safe(*args):
        try:
            fn(*args)
        except NoMatches:
            pass

    def _guarded(*args):
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe, *args)
        else:
            _safe(*args)

    return _guarded


def listen(app, cell: Cell, effect: Callable[[object], None]) -> Subscription:
    """add_change_listener() that safely bridges to Textual widgets.

    Guards against firing during pause/not-running, catches NoMatches
    from widget queries, and marshals cross-thread calls via call_from_thread.
    Call .destroy() on the returned subscription to stop.
    """
    return cell.add_change_listener(_guard(app, effect))


def listen_invalidation(app, cell: Cell, fn: Callable[[], None]) -> Subscription:
    """add_invalidation_listener() with the same guards as listen()."""
    return cell.add_invalidation_listener(_guard(app, fn))
