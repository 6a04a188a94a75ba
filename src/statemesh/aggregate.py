"""Aggregates — cells whose value is derived from a list of input cells.

An Aggregate listens to each of its inputs with the same hook a Cell uses
for its upstream, so any input change marks it stale. On the next read it
calls its compute function with the current value of every input, in
input order, and caches the result.

The default compute function returns the upstream's value when the
aggregate is connected, otherwise a dict of input name -> input value:

    user = Cell("user", "johndoe")
    email = Cell("email", "j@x.com")
    form = Aggregate("form").add_inputs(user, email)
    form.get()  # {"user": "johndoe", "email": "j@x.com"}
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterator

from statemesh.cell import Cell

logger = logging.getLogger(__name__)

ComputeFn = Callable[..., Any]


class Aggregate(Cell[Any]):
    """A derived cell fed by an ordered list of inputs."""

    __slots__ = ("_inputs", "_by_name", "_compute_fn")

    def __init__(self, name: str | None = None, compute_fn: ComputeFn | None = None) -> None:
        super().__init__(name)
        self._inputs: list[Cell] = []
        self._by_name: dict[str, Cell] = {}
        self._compute_fn: ComputeFn | None = None
        self.set_compute_fn(compute_fn)

    # --- Inputs ---

    def add_inputs(self, *cells: Cell) -> Aggregate:
        """Append cells to the inputs and invalidate once."""
        for cell in cells:
            self._check_acyclic(cell)

        for cell in cells:
            cell.add_change_listener(self._hook)
            self._inputs.append(cell)
            self._by_name[cell.get_name()] = cell

        logger.debug("%r added %d input(s)", self, len(cells))
        self._invalidate()
        return self

    def remove_inputs(self, *cells: Cell) -> Aggregate:
        """Remove the first occurrence of each cell. Unknown cells are ignored."""
        for cell in cells:
            for index, existing in enumerate(self._inputs):
                if existing is cell:
                    self.remove_input_at(index)
                    break
        return self

    def remove_input_at(self, index: int) -> Aggregate:
        """Remove the input at index and invalidate. Raises IndexError if out of range."""
        cell = self._inputs.pop(index)
        if not self._depends_on(cell):
            cell.remove_change_listener(self._hook)

        name = cell.get_name()
        if self._by_name.get(name) is cell:
            del self._by_name[name]
            for existing in reversed(self._inputs):
                if existing.get_name() == name:
                    self._by_name[name] = existing
                    break

        logger.debug("%r removed input %r", self, cell)
        self._invalidate()
        return self

    def clear_inputs(self) -> Aggregate:
        """Remove every input, front to back."""
        while self._inputs:
            self.remove_input_at(0)
        return self

    def get_inputs(self) -> list[Cell]:
        return list(self._inputs)

    def get_input(self, name: str) -> Cell | None:
        """Look up an input by name. Shared names resolve to the latest added."""
        return self._by_name.get(name)

    def _sources(self) -> Iterator[Cell]:
        yield from super()._sources()
        yield from self._inputs

    # --- Value ---

    def get(self) -> Any:
        """Read the derived value, recomputing from all inputs if stale.

        If compute raises, the error propagates and the aggregate stays
        stale, so the next read tries again.
        """
        if not self._valid:
            self._value = self.compute(*[cell.get() for cell in self._inputs])
            self._validate()
        return self._value

    def set(self, value: Any) -> Aggregate:
        """No-op. An aggregate's value is always derived from its inputs."""
        return self

    def compute(self, *values: Any) -> Any:
        """Combine input values. Override in a subclass or use set_compute_fn()."""
        if self._compute_fn is not None:
            return self._compute_fn(*values)
        return self._compute_default()

    def _compute_default(self) -> Any:
        if self._upstream is not None:
            return self._upstream.get()
        return {cell.get_name(): cell.get() for cell in self._inputs}

    def set_compute_fn(self, compute_fn: ComputeFn | None = None) -> Aggregate:
        """Replace the compute function (None restores the default). Always invalidates."""
        self._compute_fn = compute_fn
        logger.debug(
            "%r compute function set to %s", self, getattr(compute_fn, "__name__", "default")
        )
        self._invalidate()
        return self

    def __repr__(self) -> str:
        state = f"value={self._value!r}" if self._valid else "stale"
        return f"Aggregate({self._name!r}, {len(self._inputs)} inputs, {state})"
