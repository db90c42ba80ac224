"""Tests for the ``Graph`` value and its transformations."""

import pandas as pd
import pytest

from pymotif.exceptions import GraphError, PredicateError
from pymotif.expressions import col
from pymotif.graph import Graph
from pymotif.logical_plan import LogicalPlan


def row_set(frame):
    """The rows of ``frame`` as a set of tuples."""
    return set(frame.itertuples(index=False, name=None))


class TestConstruction:
    """Validation of the two relations."""

    def test_valid_graph(self, graph):
        """Test counts of a valid graph."""
        assert graph.num_vertices == 4
        assert graph.num_edges == 4

    def test_missing_id(self, edges):
        """Test error for a vertex relation without ``id``."""
        with pytest.raises(GraphError, match="'id'"):
            Graph(pd.DataFrame({"name": ["a"]}), edges)

    def test_missing_src(self, vertices):
        """Test error for an edge relation without ``src``."""
        with pytest.raises(GraphError, match="'src'"):
            Graph(vertices, pd.DataFrame({"dst": [1]}))

    def test_duplicate_ids(self, edges):
        """Test error for repeated vertex ids."""
        with pytest.raises(GraphError, match="repeated ids \\[1\\]"):
            Graph(pd.DataFrame({"id": [0, 1, 1]}), edges)

    def test_duplicate_columns(self, edges):
        """Test error for duplicate column names."""
        vertices = pd.DataFrame([[0, "a", "b"]], columns=["id", "x", "x"])
        with pytest.raises(GraphError, match="duplicate columns"):
            Graph(vertices, edges)

    def test_non_string_columns(self, edges):
        """Test error for non-string column names."""
        vertices = pd.DataFrame({"id": [0], 1: ["a"]})
        with pytest.raises(GraphError, match="non-string columns"):
            Graph(vertices, edges)

    def test_not_a_dataframe(self, edges):
        """Test error when a relation is not a DataFrame."""
        with pytest.raises(GraphError, match="pandas DataFrame"):
            Graph({"id": [0]}, edges)

    def test_stores_copies(self, vertices, edges):
        """Test the graph does not share its input frames."""
        graph = Graph(vertices, edges)
        vertices.loc[0, "attr"] = "changed"
        assert graph.vertices.loc[0, "attr"] == "a"

    def test_properties_return_copies(self, graph):
        """Test the relation properties return copies."""
        graph.vertices.loc[0, "attr"] = "changed"
        assert graph.vertices.loc[0, "attr"] == "a"

    def test_repr(self, graph):
        """Test the graph repr lists the vertex columns."""
        assert repr(graph).startswith("Graph(vertices=['id', 'attr', 'gender']")


class TestFilters:
    """Filtering vertices and edges."""

    def test_filter_edges(self, graph, vertices):
        """Test filtering edges by text and by column."""
        expected = {(0, 1, "friend"), (1, 2, "friend")}
        by_text = graph.filter_edges("relationship = 'friend'")
        by_column = graph.filter_edges(col("relationship") == "friend")
        for result in (by_text, by_column):
            assert row_set(result.edges) == expected
            assert row_set(result.vertices) == row_set(vertices)

    def test_filter_edges_then_drop_isolated(self, graph):
        """Test filtering edges and then dropping isolated vertices."""
        result = graph.filterEdges("relationship = 'friend'").dropIsolatedVertices()
        assert row_set(result.vertices) == {
            (0, "a", "f"),
            (1, "b", "m"),
            (2, "c", "m"),
        }
        assert row_set(result.edges) == {(0, 1, "friend"), (1, 2, "friend")}

    def test_filter_vertices_keeps_edges(self, graph, edges):
        """Test filtering vertices leaves the edges alone."""
        expected = {(1, "b", "m"), (2, "c", "m"), (3, "d", "f")}
        by_text = graph.filter_vertices("id > 0")
        by_column = graph.filterVertices(col("id") > 0)
        for result in (by_text, by_column):
            assert row_set(result.vertices) == expected
            assert row_set(result.edges) == row_set(edges)

    def test_filter_vertices_then_drop_dangling(self, graph):
        """Test filtering vertices and then dropping dangling edges."""
        result = graph.filter_vertices("id > 0").drop_dangling_edges()
        assert row_set(result.edges) == {(1, 2, "friend"), (2, 3, "follow")}

    def test_filters_are_idempotent(self, graph):
        """Test applying a filter twice changes nothing."""
        once = graph.filter_vertices("gender = 'm'")
        twice = once.filter_vertices("gender = 'm'")
        assert row_set(once.vertices) == row_set(twice.vertices)

        once = graph.filter_edges("src < dst")
        twice = once.filter_edges("src < dst")
        assert row_set(once.edges) == row_set(twice.edges)

    def test_drop_isolated_is_a_fixed_point(self, graph):
        """Test dropping isolated vertices twice changes nothing."""
        once = graph.filter_edges("relationship = 'follow'").drop_isolated_vertices()
        twice = once.drop_isolated_vertices()
        assert row_set(once.vertices) == {(2, "c", "m"), (3, "d", "f")}
        assert row_set(twice.vertices) == row_set(once.vertices)

    def test_filter_returns_new_graph(self, graph):
        """Test filtering does not modify the graph."""
        graph.filter_vertices("id > 2")
        assert graph.num_vertices == 4

    def test_bad_predicate(self, graph):
        """Test error for malformed or unknown-column predicates."""
        with pytest.raises(PredicateError):
            graph.filter_vertices("age > 3")
        with pytest.raises(PredicateError):
            graph.filter_edges("relationship =")

    def test_filtered_graph_is_searchable(self, graph):
        """Test find on a filtered graph."""
        friends = graph.filter_edges("relationship = 'friend'")
        result = friends.find("(a)-[]->(b); (b)-[]->(c)")
        assert len(result) == 1
        assert result[("c", "id")].tolist() == [2]


class TestDegrees:
    """Vertex degrees."""

    def test_degrees(self, graph):
        """Test out- and in-degrees of the sample graph."""
        degrees = graph.degrees()
        assert list(degrees.columns) == ["id", "out_degree", "in_degree"]
        assert row_set(degrees) == {(0, 1, 1), (1, 1, 1), (2, 2, 1), (3, 0, 1)}

    def test_isolated_vertices_have_zero_degree(self, vertices):
        """Test vertices without edges have degree zero."""
        graph = Graph(vertices, pd.DataFrame({"src": [], "dst": []}))
        degrees = graph.degrees()
        assert degrees["out_degree"].tolist() == [0, 0, 0, 0]
        assert degrees["in_degree"].tolist() == [0, 0, 0, 0]


class TestPlans:
    """Compiling and explaining through the graph."""

    def test_compile_uses_graph_schema(self, graph):
        """Test compile uses the graph's columns."""
        plan = graph.compile("(a)-[e]->(b)")
        assert isinstance(plan, LogicalPlan)
        assert plan.root.outputs[0].attributes == ("id", "attr", "gender")
        assert plan.root.outputs[1].attributes == ("src", "dst", "relationship")

    def test_explain(self, graph):
        """Test explain through the graph."""
        text = graph.explain("(a)-[e]->(b); !(b)-[]->(a)")
        assert "AntiJoin" in text
        assert "Project a, e, b" in text


class TestNullIds:
    """Vertex ids are never null."""

    def test_null_id_is_rejected(self, edges):
        """Test a null vertex id raises GraphError."""
        with pytest.raises(GraphError, match="must not be null"):
            Graph(pd.DataFrame({"id": ["x", None]}), edges)
