"""
Fixtures for the unit tests.
"""
# pylint: disable=missing-function-docstring,redefined-outer-name

import pandas as pd
import pytest

from pymotif.graph import Graph
from pymotif.pattern_parser import PatternParser


@pytest.fixture
def parser():
    """Create a PatternParser instance for testing."""
    return PatternParser()


@pytest.fixture
def vertices() -> pd.DataFrame:
    """Four people: two women and two men."""
    return pd.DataFrame(
        {
            "id": [0, 1, 2, 3],
            "attr": ["a", "b", "c", "d"],
            "gender": ["f", "m", "m", "f"],
        }
    )


@pytest.fixture
def edges() -> pd.DataFrame:
    """Edges 0->1, 1->2, 2->3 and 2->0; the triangle is 0->1->2->0."""
    return pd.DataFrame(
        {
            "src": [0, 1, 2, 2],
            "dst": [1, 2, 3, 0],
            "relationship": ["friend", "friend", "follow", "unknown"],
        }
    )


@pytest.fixture
def graph(vertices, edges) -> Graph:
    """A Graph over the four sample vertices and edges."""
    return Graph(vertices, edges)


@pytest.fixture
def empty_graph() -> Graph:
    """A Graph with no vertices and no edges."""
    return Graph(
        pd.DataFrame({"id": pd.Series([], dtype="int64")}),
        pd.DataFrame(
            {
                "src": pd.Series([], dtype="int64"),
                "dst": pd.Series([], dtype="int64"),
            }
        ),
    )


@pytest.fixture
def chain_graph() -> Graph:
    """A path 0->1->2->3->4 with an extra edge 1->3 and a self-loop on 4."""
    return Graph(
        pd.DataFrame({"id": [0, 1, 2, 3, 4], "name": list("abcde")}),
        pd.DataFrame(
            {
                "src": [0, 1, 2, 3, 1, 4],
                "dst": [1, 2, 3, 4, 3, 4],
                "weight": [1.0, 2.0, 3.0, 4.0, 5.0, 6.0],
            }
        ),
    )
