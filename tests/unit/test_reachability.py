import pytest

from pipesim.exceptions import ComponentNotFoundError
from pipesim.reachability import reachability


class TestReachability:
    def test_diamond_downstream_of_root(self, diamond):
        result = reachability(diamond, "A")
        assert result.selected == "A"
        assert result.upstream == []
        assert set(result.downstream) == {"B", "C", "D"}
        assert set(result.connections) == {"A->B", "A->C", "B->D", "C->D"}

    def test_diamond_upstream_of_sink(self, diamond):
        result = reachability(diamond, "D")
        assert set(result.upstream) == {"A", "B", "C"}
        assert result.downstream == []

    def test_middle_of_diamond(self, diamond):
        """Sibling branches are not on a highlighted path."""
        result = reachability(diamond, "B")
        assert result.upstream == ["A"]
        assert result.downstream == ["D"]
        assert sorted(result.connections) == ["A->B", "B->D"]

    def test_selection_never_in_closure(self, ring):
        """Cycles terminate and never list the selection itself."""
        result = reachability(ring, "A")
        assert "A" not in result.upstream
        assert "A" not in result.downstream
        assert set(result.upstream) == {"B", "C"}
        assert set(result.downstream) == {"B", "C"}

    def test_isolated_component(self, make_graph):
        graph = make_graph([("a", "source", "OLEDBSource"), ("b", "source", "OLEDBSource")])
        result = reachability(graph, "a")
        assert result.upstream == []
        assert result.downstream == []
        assert result.connections == []

    def test_dangling_not_followed(self, make_graph):
        graph = make_graph(
            [("a", "source", "OLEDBSource"), ("b", "destination", "OLEDBDestination")],
            [("a", "b"), ("a", "ghost")],
        )
        result = reachability(graph, "a")
        assert result.downstream == ["b"]
        assert result.connections == ["a->b"]

    def test_unknown_selection_raises(self, diamond):
        with pytest.raises(ComponentNotFoundError):
            reachability(diamond, "Z")
