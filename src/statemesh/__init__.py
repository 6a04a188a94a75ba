"""StateMesh: lazy, push-invalidate / pull-recompute state cells for Python."""

from importlib.metadata import version as _version

__version__ = _version("statemesh")

from statemesh._errors import StateMeshError, CyclicDependencyError
from statemesh._listeners import ListenerRegistry, Subscription
from statemesh.cell import Cell, set_scheduler
from statemesh.aggregate import Aggregate
# textual NOT auto-imported — opt-in only

__all__ = [
    "Cell",
    "Aggregate",
    "Subscription",
    "ListenerRegistry",
    "StateMeshError",
    "CyclicDependencyError",
    "set_scheduler",
]
