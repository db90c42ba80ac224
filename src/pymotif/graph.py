"""The ``Graph`` value: a vertex relation and an edge relation.

A ``Graph`` is the entry point for motif finding and for the small set of
relation-level transformations that usually precede it:

    >>> graph = Graph(vertices, edges)                       # doctest: +SKIP
    >>> friends = graph.filter_edges("relationship = 'friend'")  # doctest: +SKIP
    >>> friends.drop_isolated_vertices().find("(a)-[e]->(b)")  # doctest: +SKIP

Graphs are never modified in place; every transformation returns a new
``Graph``.
"""

from __future__ import annotations

from typing import Optional, Protocol

import pandas as pd

from pymotif.compiler import PlanCompiler
from pymotif.bindings import resolve
from pymotif.engine import PandasEngine
from pymotif.exceptions import GraphError
from pymotif.expressions import Predicate, as_expression
from pymotif.logger import LOGGER
from pymotif.logical_plan import DST_COLUMN, ID_COLUMN, SRC_COLUMN, LogicalPlan
from pymotif.pattern_models import Pattern
from pymotif.pattern_parser import parse_pattern


class Engine(Protocol):
    """Anything that can execute a logical plan over two DataFrames."""

    def execute(
        self, plan: LogicalPlan, vertices: pd.DataFrame, edges: pd.DataFrame
    ) -> pd.DataFrame: ...


def _validate(frame: pd.DataFrame, role: str, required: tuple[str, ...]) -> None:
    if not isinstance(frame, pd.DataFrame):
        raise GraphError(
            f"The {role} relation must be a pandas DataFrame, not "
            f"{type(frame).__name__}"
        )
    bad_names = [column for column in frame.columns if not isinstance(column, str)]
    if bad_names:
        raise GraphError(f"The {role} relation has non-string columns {bad_names}")
    if frame.columns.has_duplicates:
        duplicated = sorted(set(frame.columns[frame.columns.duplicated()]))
        raise GraphError(f"The {role} relation has duplicate columns {duplicated}")
    for column in required:
        if column not in frame.columns:
            raise GraphError(f"The {role} relation has no {column!r} column")


class Graph:
    """An immutable property graph held as two pandas DataFrames.

    Attributes:
        vertices: Copy of the vertex relation; ``id`` values are unique.
        edges: Copy of the edge relation; ``src``/``dst`` refer to vertex ids.
    """

    def __init__(self, vertices: pd.DataFrame, edges: pd.DataFrame) -> None:
        """Validate and store the two relations.

        Args:
            vertices: Vertex relation with a unique ``id`` column.
            edges: Edge relation with ``src`` and ``dst`` columns. Edges
                whose endpoints are not vertices are allowed.

        Raises:
            GraphError: If a reserved column is missing, column names are not
                unique strings, or vertex ids are null or repeat.
        """
        _validate(vertices, "vertex", (ID_COLUMN,))
        _validate(edges, "edge", (SRC_COLUMN, DST_COLUMN))
        if vertices[ID_COLUMN].isna().any():
            raise GraphError("Vertex ids must not be null")
        if vertices[ID_COLUMN].duplicated().any():
            repeated = vertices.loc[vertices[ID_COLUMN].duplicated(), ID_COLUMN]
            raise GraphError(
                "Vertex ids must be unique; repeated ids "
                f"{sorted(set(repeated.tolist()))}"
            )
        self._vertices = vertices.reset_index(drop=True).copy()
        self._edges = edges.reset_index(drop=True).copy()

    @property
    def vertices(self) -> pd.DataFrame:
        return self._vertices.copy()

    @property
    def edges(self) -> pd.DataFrame:
        return self._edges.copy()

    @property
    def num_vertices(self) -> int:
        return len(self._vertices)

    @property
    def num_edges(self) -> int:
        return len(self._edges)

    def __repr__(self) -> str:
        return (
            f"Graph(vertices={list(self._vertices.columns)} x {self.num_vertices}, "
            f"edges={list(self._edges.columns)} x {self.num_edges})"
        )

    # -------------------------------------------------------------------------
    # Motif finding
    # -------------------------------------------------------------------------

    def compile(self, pattern: str | Pattern) -> LogicalPlan:
        """Compile ``pattern`` into a logical plan over this graph's schema.

        Raises:
            ParseError: If the pattern is malformed.
            BindingError: If its names are bound inconsistently.
        """
        if isinstance(pattern, str):
            pattern = parse_pattern(pattern)
        compiler = PlanCompiler(self._vertices.columns, self._edges.columns)
        return compiler.compile(resolve(pattern))

    def explain(self, pattern: str | Pattern) -> str:
        """Render the plan of ``pattern`` as an indented tree."""
        return self.compile(pattern).explain()

    def find(
        self, pattern: str | Pattern, engine: Optional[Engine] = None
    ) -> pd.DataFrame:
        """Find every occurrence of ``pattern`` in the graph.

        Args:
            pattern: Motif such as ``"(a)-[e]->(b); (b)-[]->(c)"``.
            engine: Relational engine to run the plan; a ``PandasEngine`` by
                default.

        Returns:
            pd.DataFrame: One row per match. Columns have two levels,
            ``(name, attribute)``: selecting a name gives the attribute
            bundle of that vertex or edge. Row order is unspecified.
        """
        plan = self.compile(pattern)
        return (engine or PandasEngine()).execute(plan, self._vertices, self._edges)

    # -------------------------------------------------------------------------
    # Transformations
    # -------------------------------------------------------------------------

    def filter_vertices(self, predicate: Predicate) -> Graph:
        """Keep the vertices satisfying ``predicate``; edges are untouched.

        Edges whose endpoints were removed are kept. Call
        ``drop_dangling_edges`` to remove them.

        Raises:
            PredicateError: If the predicate is malformed or cannot be
                evaluated against the vertex relation.
        """
        expression = as_expression(predicate)
        kept = self._vertices[expression.evaluate(self._vertices)]
        LOGGER.debug(
            msg=f"filter_vertices({expression}) kept {len(kept)} of "
            f"{self.num_vertices} vertices."
        )
        return Graph(kept, self._edges)

    def filter_edges(self, predicate: Predicate) -> Graph:
        """Keep the edges satisfying ``predicate``; vertices are untouched."""
        expression = as_expression(predicate)
        kept = self._edges[expression.evaluate(self._edges)]
        LOGGER.debug(
            msg=f"filter_edges({expression}) kept {len(kept)} of "
            f"{self.num_edges} edges."
        )
        return Graph(self._vertices, kept)

    def drop_isolated_vertices(self) -> Graph:
        """Keep only the vertices that are an endpoint of some edge."""
        endpoints = pd.concat(
            [self._edges[SRC_COLUMN], self._edges[DST_COLUMN]], ignore_index=True
        )
        kept = self._vertices[self._vertices[ID_COLUMN].isin(endpoints)]
        return Graph(kept, self._edges)

    def drop_dangling_edges(self) -> Graph:
        """Keep only the edges whose two endpoints are vertices of the graph."""
        ids = self._vertices[ID_COLUMN]
        kept = self._edges[
            self._edges[SRC_COLUMN].isin(ids) & self._edges[DST_COLUMN].isin(ids)
        ]
        return Graph(self._vertices, kept)

    def degrees(self) -> pd.DataFrame:
        """Out- and in-degree of every vertex.

        Returns:
            pd.DataFrame: Columns ``id``, ``out_degree``, ``in_degree``, one
            row per vertex; isolated vertices have degree zero.
        """
        ids = self._vertices[ID_COLUMN]
        out_degree = self._edges[SRC_COLUMN].value_counts()
        in_degree = self._edges[DST_COLUMN].value_counts()
        return pd.DataFrame(
            {
                ID_COLUMN: ids.to_numpy(),
                "out_degree": ids.map(out_degree).fillna(0).astype(int).to_numpy(),
                "in_degree": ids.map(in_degree).fillna(0).astype(int).to_numpy(),
            }
        )

    # Spellings used by DataFrame-based graph libraries.
    filterVertices = filter_vertices  # pylint: disable=invalid-name
    filterEdges = filter_edges  # pylint: disable=invalid-name
    dropIsolatedVertices = drop_isolated_vertices  # pylint: disable=invalid-name
