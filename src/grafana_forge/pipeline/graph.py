"""Dependency graph between build stages and the assembly step."""

import logging
from enum import Enum
from typing import Dict, Iterable, List, Set

from grafana_forge.errors import CycleError, UnsatisfiedDependencyError


logger = logging.getLogger(__name__)

ASSEMBLE = "assemble"


class NodeState(Enum):
    """Node lifecycle."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"


class StageGraph:
    """In-memory DAG tracking per-node completion.

    The graph only answers whether a node may start and records
    completion. It does not run anything, so independent nodes can be
    scheduled concurrently by the caller.
    """

    def __init__(self):
        """Initialize an empty graph."""
        self._deps: Dict[str, Set[str]] = {}
        self._state: Dict[str, NodeState] = {}

    @classmethod
    def for_stages(cls, stage_names: Iterable[str], terminal: str = ASSEMBLE) -> "StageGraph":
        """Independent stages joined by a single terminal node."""
        graph = cls()
        names = list(stage_names)
        for name in names:
            graph.add_node(name)
        graph.add_node(terminal, depends_on=names)
        return graph

    def add_node(self, name: str, depends_on: Iterable[str] = ()) -> None:
        """Declare a node and its dependencies."""
        if name in self._deps:
            raise ValueError(f"Duplicate node: {name}")
        self._deps[name] = set(depends_on)
        self._state[name] = NodeState.PENDING

    def nodes(self) -> List[str]:
        return list(self._deps)

    def dependencies(self, name: str) -> Set[str]:
        return set(self._deps[name])

    def state(self, name: str) -> NodeState:
        return self._state[name]

    def topological_order(self) -> List[str]:
        """Return a valid execution order, ties broken by name."""
        for name, deps in self._deps.items():
            unknown = deps - set(self._deps)
            if unknown:
                raise ValueError(f"Node {name} depends on unknown nodes: {', '.join(sorted(unknown))}")

        remaining = {name: set(deps) for name, deps in self._deps.items()}
        order: List[str] = []
        while remaining:
            ready = sorted(name for name, deps in remaining.items() if not deps)
            if not ready:
                raise CycleError(sorted(remaining))
            for name in ready:
                order.append(name)
                del remaining[name]
            for deps in remaining.values():
                deps.difference_update(ready)
        return order

    def validate(self) -> None:
        """Raise if the graph cannot be executed."""
        self.topological_order()

    def can_start(self, name: str) -> bool:
        """True when the node is pending and all dependencies completed."""
        if self._state[name] is not NodeState.PENDING:
            return False
        return all(self._state[dep] is NodeState.COMPLETE for dep in self._deps[name])

    def ready_nodes(self) -> List[str]:
        """Nodes that may start now."""
        return sorted(name for name in self._deps if self.can_start(name))

    def start(self, name: str) -> None:
        """Mark a node running, enforcing its dependencies."""
        if self._state[name] is not NodeState.PENDING:
            raise ValueError(f"Node {name} is already {self._state[name].value}")
        missing = {
            dep for dep in self._deps[name]
            if self._state[dep] is not NodeState.COMPLETE
        }
        if missing:
            raise UnsatisfiedDependencyError(name, missing)
        self._state[name] = NodeState.RUNNING
        logger.debug(f"Started node {name}")

    def mark_complete(self, name: str) -> None:
        """Record successful completion."""
        if self._state[name] is not NodeState.RUNNING:
            raise ValueError(f"Node {name} is not running")
        self._state[name] = NodeState.COMPLETE
        logger.debug(f"Completed node {name}")

    def mark_failed(self, name: str) -> None:
        """Record failure."""
        self._state[name] = NodeState.FAILED
        logger.debug(f"Failed node {name}")

    def is_complete(self, name: str) -> bool:
        return self._state[name] is NodeState.COMPLETE

    def all_complete(self) -> bool:
        return all(state is NodeState.COMPLETE for state in self._state.values())
