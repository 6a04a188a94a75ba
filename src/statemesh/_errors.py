"""StateMesh error hierarchy.

All statemesh-specific errors inherit from StateMeshError for easy catching.
Errors raised by user compute functions or listeners are never wrapped.
"""

from __future__ import annotations


class StateMeshError(Exception):
    """Base error for all statemesh operations."""


class CyclicDependencyError(StateMeshError):
    """Wiring would make a cell depend on itself.

    ``path`` lists the cells walked from the new source back to the cell
    being wired, so ``path[0]`` is the proposed source and ``path[-1]`` is
    the cell that would end up reading its own value.
    """

    def __init__(self, path: list) -> None:
        self.path = path
        names = " -> ".join(repr(cell.get_name() or cell) for cell in path)
        super().__init__(f"cyclic dependency: {names}")
