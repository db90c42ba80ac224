"""End-to-end tests for ``Graph.find``.

The sample graph (see ``conftest.py``) has vertices 0..3 and edges
0->1, 1->2, 2->3 and 2->0.
"""

import pandas as pd
import pytest

from pymotif.engine import ATTRIBUTE_LEVEL, BINDING_LEVEL, PandasEngine
from pymotif.exceptions import BindingError, ParseError
from pymotif.graph import Graph
from pymotif.pattern_parser import parse_pattern


def names(result):
    """Top-level output names, in order."""
    return list(dict.fromkeys(result.columns.get_level_values(0)))


def rows(result, *fields):
    """The set of ``fields`` tuples, each field given as ``"name.attribute"``."""
    columns = [result[tuple(field.split("."))].tolist() for field in fields]
    return set(zip(*columns))


class TestBasicPatterns:
    """Single-clause patterns."""

    def test_empty_pattern_matches_nothing(self, graph):
        """Test the empty pattern has no rows and no columns."""
        result = graph.find("")
        assert len(result) == 0
        assert names(result) == []

    def test_empty_pattern_on_empty_graph(self, empty_graph):
        """Test the empty pattern on an empty graph."""
        assert len(empty_graph.find("")) == 0

    def test_vertex_query(self, graph, vertices):
        """Test a single vertex matches every vertex."""
        result = graph.find("(a)")
        assert names(result) == ["a"]
        assert rows(result, "a.id", "a.attr") == set(
            zip(vertices["id"], vertices["attr"])
        )

    def test_vertex_bundle_has_every_attribute(self, graph):
        """Test a vertex bundle carries every vertex column."""
        result = graph.find("(a)")
        assert list(result["a"].columns) == ["id", "attr", "gender"]

    def test_anonymous_vertex_query(self, graph):
        """Test an anonymous vertex has rows but no columns."""
        result = graph.find("()")
        assert len(result) == 4
        assert result.shape[1] == 0

    def test_triplets(self, graph):
        """Test a single edge between named vertices."""
        result = graph.find("(u)-[]->(v)")
        assert names(result) == ["u", "v"]
        assert rows(result, "u.id", "u.attr", "v.id", "v.attr") == {
            (0, "a", 1, "b"),
            (1, "b", 2, "c"),
            (2, "c", 3, "d"),
            (2, "c", 0, "a"),
        }

    def test_named_edge(self, graph):
        """Test a named edge agrees with its endpoints."""
        result = graph.find("(u)-[e]->(v)")
        assert names(result) == ["u", "e", "v"]
        assert list(result["e"].columns) == ["src", "dst", "relationship"]
        assert (result[("e", "src")] == result[("u", "id")]).all()
        assert (result[("e", "dst")] == result[("v", "id")]).all()

    def test_column_levels_are_named(self, graph):
        """Test the result column levels are named."""
        result = graph.find("(u)-[e]->(v)")
        assert list(result.columns.names) == [BINDING_LEVEL, ATTRIBUTE_LEVEL]

    def test_pattern_object_is_accepted(self, graph):
        """Test find accepts a parsed Pattern."""
        result = graph.find(parse_pattern("(u)-[]->(v)"))
        assert len(result) == 4


class TestMultiClausePatterns:
    """Joins across clauses."""

    def test_triangles(self, graph):
        """Test every rotation of the triangle is found."""
        result = graph.find("(a)-[]->(b); (b)-[]->(c); (c)-[]->(a)")
        assert rows(result, "a.id", "b.id", "c.id") == {
            (0, 1, 2),
            (2, 0, 1),
            (1, 2, 0),
        }

    def test_chain_matches_hand_written_join(self, graph, edges):
        """Test a two-edge chain equals a hand-written self-join."""
        result = graph.find("(a)-[]->(b); (b)-[]->(c)")
        expected = edges.merge(edges, left_on="dst", right_on="src")
        assert rows(result, "a.id", "b.id", "c.id") == set(
            zip(expected["src_x"], expected["dst_x"], expected["dst_y"])
        )

    def test_chain_of_four_with_two_friends(self, graph):
        """Test a three-edge chain filtered on edge attributes."""
        result = graph.find("(a)-[ab]->(b); (b)-[bc]->(c); (c)-[cd]->(d)")
        friends = sum(
            (result[(name, "relationship")] == "friend").astype(int)
            for name in ["ab", "bc", "cd"]
        )
        assert len(result) == 4
        assert int((friends >= 2).sum()) == 4

    def test_disconnected_clauses_cross_join(self, graph):
        """Test disconnected clauses give a cross product."""
        result = graph.find("(a); (b)")
        assert len(result) == 16

    def test_repeated_edge_clause_between_same_vertices(self, graph):
        """Test a repeated anonymous edge clause."""
        result = graph.find("(a)-[]->(b); (a)-[]->(b)")
        assert rows(result, "a.id", "b.id") == {(0, 1), (1, 2), (2, 3), (2, 0)}

    def test_recurring_named_edge(self, graph):
        """Test a recurring named edge pins its endpoints."""
        result = graph.find("(a)-[e]->(b); (a)-[e]->(c)")
        assert names(result) == ["a", "e", "b", "c"]
        assert len(result) == 4
        assert (result[("b", "id")] == result[("c", "id")]).all()

    def test_recurring_edge_with_conflicting_endpoints(self, graph):
        """Test a recurring edge with swapped endpoints matches nothing."""
        assert len(graph.find("(a)-[e]->(b); (b)-[e]->(a)")) == 0

    def test_self_loop(self, chain_graph):
        """Test a self-loop pattern."""
        result = chain_graph.find("(a)-[]->(a)")
        assert rows(result, "a.id") == {(4,)}

    def test_internal_looking_names_behave_like_others(self, graph):
        """Test names shaped like prefixes match like any other."""
        plain = graph.find("(a)-[e]->(b); (b)-[]->(c)")
        tricky = graph.find("(v0)-[e1]->(v2); (v2)-[]->(v3)")
        assert rows(plain, "a.id", "e.dst", "c.id") == rows(
            tricky, "v0.id", "e1.dst", "v3.id"
        )

    def test_named_edge_tmp(self, graph):
        """Test an edge named with leading underscores is visible."""
        result = graph.find("()-[__tmp]->(v); (v)-[]->(w)")
        assert names(result) == ["__tmp", "v", "w"]


class TestNegation:
    """Negated clauses remove matches."""

    def test_negation(self, graph):
        """Test negated clauses remove open triangles."""
        result = graph.find(
            "(u)-[e]->(v); (v)-[]->(w); !(u)-[]->(w); !(w)-[]->(u)"
        )
        assert names(result) == ["u", "e", "v", "w"]
        assert rows(result, "u.id", "v.id", "w.id") == {(1, 2, 3)}

    def test_negation_with_anonymous_endpoint(self, graph):
        """Test negation with an anonymous endpoint."""
        result = graph.find("()-[e]->(v); !(v)-[]->()")
        assert rows(result, "e.src", "e.dst") == {(2, 3)}

    def test_negated_named_edge_removes_everything(self, graph):
        """Test negating the matched edge removes every match."""
        assert len(graph.find("(a)-[e]->(b); !(a)-[e]->(b)")) == 0

    def test_negated_reverse_edge(self, chain_graph):
        """Test negating the reverse edge removes the self-loop."""
        result = chain_graph.find("(a)-[]->(b); !(b)-[]->(a)")
        # Only the self-loop on 4 has its reverse.
        assert (4, 4) not in rows(result, "a.id", "b.id")
        assert len(result) == 5

    def test_negation_without_reverse_edge_keeps_match(self, vertices):
        """Test a match with no reverse edge survives negation."""
        graph = Graph(
            vertices,
            pd.DataFrame({"src": [0], "dst": [1]}),
        )
        result = graph.find("(a)-[]->(b); !(b)-[]->(a)")
        assert rows(result, "a.id", "b.id") == {(0, 1)}


class TestDanglingEdges:
    """Edges whose endpoints are not vertices."""

    @pytest.fixture
    def dangling(self):
        """Edges 0->1 and 1->9 over vertices 0 and 1."""
        return Graph(
            pd.DataFrame({"id": [0, 1]}),
            pd.DataFrame({"src": [0, 1], "dst": [1, 9]}),
        )

    def test_named_endpoints_need_vertices(self, dangling):
        """Test a named endpoint must be a vertex."""
        assert rows(dangling.find("(a)-[]->(b)"), "a.id", "b.id") == {(0, 1)}

    def test_anonymous_endpoints_do_not(self, dangling):
        """Test anonymous endpoints match dangling edges."""
        assert len(dangling.find("()-[e]->()")) == 2


class TestFindErrors:
    """Errors surface unchanged from the parser and resolver."""

    def test_parse_error(self, graph):
        """Test find raises ParseError for malformed text."""
        with pytest.raises(ParseError):
            graph.find("(a)-[]->")

    def test_binding_error(self, graph):
        """Test find raises BindingError for a lone negation."""
        with pytest.raises(BindingError):
            graph.find("!(a)-[]->(b)")


class TestEngines:
    """The relational engine is pluggable."""

    def test_custom_engine(self, graph):
        """Test find runs the plan on a supplied engine."""
        calls = []

        class RecordingEngine:
            def execute(self, plan, vertices, edges):
                calls.append(plan.output_names)
                return PandasEngine().execute(plan, vertices, edges)

        result = graph.find("(a)-[e]->(b)", engine=RecordingEngine())
        assert calls == [("a", "e", "b")]
        assert len(result) == 4

    def test_find_does_not_modify_graph(self, graph, vertices, edges):
        """Test find leaves the graph relations unchanged."""
        graph.find("(a)-[e]->(b); !(b)-[]->(a)")
        pd.testing.assert_frame_equal(graph.vertices, vertices)
        pd.testing.assert_frame_equal(graph.edges, edges)

    def test_empty_graph(self, empty_graph):
        """Test an edge pattern on an empty graph keeps its columns."""
        result = empty_graph.find("(a)-[e]->(b)")
        assert len(result) == 0
        assert names(result) == ["a", "e", "b"]


class TestNullEndpoints:
    """Edges with null endpoints."""

    @pytest.fixture
    def null_endpoints(self):
        """Edges x->null and null->y over vertices x and y."""
        return Graph(
            pd.DataFrame({"id": ["x", "y"]}),
            pd.DataFrame(
                {"src": ["x", None], "dst": [None, "y"], "kind": [None, "k"]}
            ),
        )

    def test_null_endpoint_matches_no_vertex(self, null_endpoints):
        """Test an edge with a null endpoint never joins a named vertex."""
        assert len(null_endpoints.find("(a)-[]->(b)")) == 0

    def test_anonymous_null_endpoint(self, null_endpoints):
        """Test an anonymous source slot does not need a vertex."""
        result = null_endpoints.find("()-[e]->(b)")
        assert rows(result, "b.id") == {("y",)}

    def test_negated_named_edge_with_null_attributes(self, null_endpoints):
        """Test a named edge with null attributes still negates itself."""
        assert len(null_endpoints.find("(a)-[e]->(); !(a)-[e]->()")) == 0
