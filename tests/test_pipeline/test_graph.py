"""Tests for StageGraph."""

import pytest

from grafana_forge.errors import CycleError, UnsatisfiedDependencyError
from grafana_forge.pipeline.graph import ASSEMBLE, NodeState, StageGraph


@pytest.fixture
def graph():
    return StageGraph.for_stages(["frontend", "backend"])


class TestStageGraph:
    """Test scheduling queries."""

    def test_leaves_ready_first(self, graph):
        assert graph.ready_nodes() == ["backend", "frontend"]
        assert not graph.can_start(ASSEMBLE)

    def test_dependencies(self, graph):
        assert graph.nodes() == ["frontend", "backend", ASSEMBLE]
        assert graph.dependencies(ASSEMBLE) == {"frontend", "backend"}
        assert graph.dependencies("frontend") == set()
        assert not graph.is_complete("frontend")

    def test_topological_order(self, graph):
        assert graph.topological_order() == ["backend", "frontend", ASSEMBLE]

    def test_terminal_waits_for_all_leaves(self, graph):
        graph.start("frontend")
        graph.start("backend")
        graph.mark_complete("frontend")

        assert not graph.can_start(ASSEMBLE)
        with pytest.raises(UnsatisfiedDependencyError) as exc_info:
            graph.start(ASSEMBLE)
        assert exc_info.value.missing == ["backend"]

        graph.mark_complete("backend")
        assert graph.ready_nodes() == [ASSEMBLE]
        graph.start(ASSEMBLE)
        assert graph.state(ASSEMBLE) is NodeState.RUNNING

    def test_terminal_before_any_leaf(self, graph):
        with pytest.raises(UnsatisfiedDependencyError) as exc_info:
            graph.start(ASSEMBLE)

        assert exc_info.value.missing == ["backend", "frontend"]

    def test_leaves_run_concurrently(self, graph):
        graph.start("frontend")

        assert graph.can_start("backend")

    def test_failed_leaf_blocks_terminal(self, graph):
        graph.start("frontend")
        graph.start("backend")
        graph.mark_complete("frontend")
        graph.mark_failed("backend")

        assert graph.ready_nodes() == []
        with pytest.raises(UnsatisfiedDependencyError):
            graph.start(ASSEMBLE)

    def test_start_twice(self, graph):
        graph.start("frontend")

        with pytest.raises(ValueError):
            graph.start("frontend")

    def test_complete_requires_running(self, graph):
        with pytest.raises(ValueError):
            graph.mark_complete("frontend")

    def test_all_complete(self, graph):
        for name in ("frontend", "backend", ASSEMBLE):
            graph.start(name)
            graph.mark_complete(name)

        assert graph.all_complete()


class TestGraphValidation:
    """Test misconfigured graphs."""

    def test_cycle(self):
        graph = StageGraph()
        graph.add_node("a", depends_on=["b"])
        graph.add_node("b", depends_on=["a"])
        graph.add_node("c")

        with pytest.raises(CycleError) as exc_info:
            graph.validate()
        assert exc_info.value.nodes == ["a", "b"]

    def test_self_dependency(self):
        graph = StageGraph()
        graph.add_node("a", depends_on=["a"])

        with pytest.raises(CycleError):
            graph.validate()

    def test_unknown_dependency(self):
        graph = StageGraph()
        graph.add_node("a", depends_on=["missing"])

        with pytest.raises(ValueError):
            graph.validate()

    def test_duplicate_node(self):
        graph = StageGraph()
        graph.add_node("a")

        with pytest.raises(ValueError):
            graph.add_node("a")
