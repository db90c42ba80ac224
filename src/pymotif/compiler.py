"""Compile resolved motif patterns into logical plans.

The compiler folds the resolved clauses of a pattern, in order, into a
*frontier*: the plan built so far together with the set of bindings whose
columns it already carries.

- The first positive clause seeds the frontier with a scan of the vertex or
  edge relation.
- Each later positive clause is joined against the frontier on equality of
  every binding it shares with it, or cross joined when it shares none.
- Each negated clause becomes an anti-join that removes frontier rows for
  which a connecting edge exists.
- A final projection keeps the visible bindings in first-appearance order.

Named endpoints of an edge clause are joined to the vertex relation the
first time they appear, so their output bundle carries every vertex
attribute. Anonymous endpoints are never looked up.

Example:
    >>> plan = compile_pattern("(a)-[e]->(b)", ("id", "name"), ("src", "dst"))
    >>> plan.output_names
    ('a', 'e', 'b')
"""

from __future__ import annotations

from functools import reduce
from typing import Iterable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from pymotif.bindings import (
    Binding,
    BindingKind,
    ResolvedClause,
    ResolvedEdgeClause,
    ResolvedPattern,
    ResolvedVertexClause,
    resolve,
)
from pymotif.exceptions import BindingError, CompileError, GraphError
from pymotif.logger import LOGGER
from pymotif.logical_plan import (
    DST_COLUMN,
    ID_COLUMN,
    SRC_COLUMN,
    AntiJoin,
    BaseRelation,
    ColumnEquality,
    EmptyRelation,
    Filter,
    Join,
    LogicalPlan,
    OutputColumn,
    PlanNode,
    Project,
    RelationName,
    qualified,
)
from pymotif.pattern_models import Pattern
from pymotif.pattern_parser import parse_pattern


class Frontier(BaseModel):
    """The plan accumulated so far and the binding columns it carries."""

    model_config = ConfigDict(frozen=True)

    node: Optional[PlanNode] = None
    bound: frozenset[str] = frozenset()

    def binds(self, binding: Binding) -> bool:
        return binding.column in self.bound

    def extend(self, node: PlanNode, *bindings: Binding) -> Frontier:
        """Return a new frontier rooted at ``node``."""
        return Frontier(
            node=node,
            bound=self.bound | {binding.column for binding in bindings},
        )


def vertex_id(binding: Binding) -> str:
    """Plan column holding the id of a vertex binding."""
    return qualified(binding.column, ID_COLUMN)


class PlanCompiler:
    """Builds logical plans for patterns over one vertex/edge schema.

    Attributes:
        vertex_columns: Columns of the vertex relation, in order.
        edge_columns: Columns of the edge relation, in order.
    """

    def __init__(
        self, vertex_columns: Sequence[str], edge_columns: Sequence[str]
    ) -> None:
        """Initialize the compiler.

        Args:
            vertex_columns: Columns of the vertex relation; must include ``id``.
            edge_columns: Columns of the edge relation; must include ``src``
                and ``dst``.

        Raises:
            GraphError: If a reserved column is missing.
        """
        self.vertex_columns: tuple[str, ...] = tuple(str(c) for c in vertex_columns)
        self.edge_columns: tuple[str, ...] = tuple(str(c) for c in edge_columns)
        if ID_COLUMN not in self.vertex_columns:
            raise GraphError(f"Vertex relation has no {ID_COLUMN!r} column")
        for column in (SRC_COLUMN, DST_COLUMN):
            if column not in self.edge_columns:
                raise GraphError(f"Edge relation has no {column!r} column")

    def scan_vertices(self, alias: str) -> BaseRelation:
        return BaseRelation(
            relation=RelationName.VERTICES,
            alias=alias,
            source_columns=self.vertex_columns,
        )

    def scan_edges(self, alias: str) -> BaseRelation:
        return BaseRelation(
            relation=RelationName.EDGES,
            alias=alias,
            source_columns=self.edge_columns,
        )

    def compile(self, resolved: ResolvedPattern) -> LogicalPlan:
        """Compile a resolved pattern into a logical plan.

        Args:
            resolved: Output of ``pymotif.bindings.resolve``.

        Returns:
            LogicalPlan: Plan whose root projects the visible bindings.

        Raises:
            BindingError: If a negated clause comes before every positive
                clause.
            CompileError: If the plan violates an internal invariant.
        """
        text = str(resolved.pattern)
        if resolved.pattern.is_empty:
            # Matches nothing, whatever the graph holds.
            return LogicalPlan(
                root=Project(child=EmptyRelation(), outputs=()), pattern=text
            )

        frontier: Frontier = reduce(
            lambda acc, item: self._step(acc, item[0], item[1]),
            enumerate(resolved.clauses),
            Frontier(),
        )
        if frontier.node is None:
            raise CompileError(f"Pattern {text!r} produced no relation")

        root = self._project(frontier, resolved.outputs)
        verify_plan(root)
        plan = LogicalPlan(root=root, pattern=text)
        LOGGER.debug(msg=f"Compiled {text!r}:\n{plan.explain()}")
        return plan

    def _step(
        self, frontier: Frontier, index: int, clause: ResolvedClause
    ) -> Frontier:
        match clause:
            case ResolvedVertexClause():
                return self._vertex_clause(frontier, clause)
            case ResolvedEdgeClause() if clause.negated:
                return self._negated_edge_clause(frontier, index, clause)
            case ResolvedEdgeClause():
                return self._edge_clause(frontier, clause)
            case _:
                raise CompileError(f"Unexpected clause type {type(clause)}")

    def _vertex_clause(
        self, frontier: Frontier, clause: ResolvedVertexClause
    ) -> Frontier:
        vertex = clause.vertex
        if frontier.binds(vertex):
            return frontier
        scan = self.scan_vertices(vertex.column)
        if frontier.node is None:
            return frontier.extend(scan, vertex)
        LOGGER.debug(msg=f"Clause {clause.clause} is disconnected; cross joining.")
        return frontier.extend(Join(left=frontier.node, right=scan), vertex)

    def _edge_clause(
        self, frontier: Frontier, clause: ResolvedEdgeClause
    ) -> Frontier:
        edge = clause.edge
        endpoints = ((clause.src, SRC_COLUMN), (clause.dst, DST_COLUMN))

        if frontier.binds(edge):
            # The edge recurs: its endpoints must agree with the bound edge.
            predicates = tuple(
                ColumnEquality(
                    left=vertex_id(vertex), right=qualified(edge.column, side)
                )
                for vertex, side in endpoints
                if frontier.binds(vertex)
            )
            if predicates:
                frontier = frontier.extend(
                    Filter(child=frontier.node, predicates=predicates)
                )
        else:
            scan = self.scan_edges(edge.column)
            if frontier.node is None:
                frontier = frontier.extend(scan, edge)
            else:
                predicates = tuple(
                    ColumnEquality(left=vertex_id(vertex), right=scan.column(side))
                    for vertex, side in endpoints
                    if frontier.binds(vertex)
                )
                if not predicates:
                    LOGGER.debug(
                        msg=f"Clause {clause.clause} is disconnected; cross joining."
                    )
                frontier = frontier.extend(
                    Join(left=frontier.node, right=scan, predicates=predicates),
                    edge,
                )
        return self._attach_endpoints(frontier, edge, endpoints)

    def _attach_endpoints(
        self,
        frontier: Frontier,
        edge: Binding,
        endpoints: Iterable[tuple[Binding, str]],
    ) -> Frontier:
        """Join each new named endpoint of ``edge`` to the vertex relation."""
        pending: dict[str, tuple[Binding, List[str]]] = {}
        for vertex, side in endpoints:
            if vertex.name is None or frontier.binds(vertex):
                continue
            pending.setdefault(vertex.column, (vertex, []))[1].append(side)

        for vertex, sides in pending.values():
            scan = self.scan_vertices(vertex.column)
            predicates = tuple(
                ColumnEquality(
                    left=qualified(edge.column, side), right=scan.column(ID_COLUMN)
                )
                for side in sides
            )
            frontier = frontier.extend(
                Join(left=frontier.node, right=scan, predicates=predicates),
                vertex,
            )
        return frontier

    def _negated_edge_clause(
        self, frontier: Frontier, index: int, clause: ResolvedEdgeClause
    ) -> Frontier:
        if frontier.node is None:
            raise BindingError(
                "Negated clause has no positive clause before it to constrain",
                clause=str(clause.clause),
            )
        scan = self.scan_edges(f"n{index}")
        predicates: List[ColumnEquality] = []
        for vertex, side in ((clause.src, SRC_COLUMN), (clause.dst, DST_COLUMN)):
            if vertex.name is None:
                continue
            if not frontier.binds(vertex):
                raise CompileError(
                    f"Negated clause {clause.clause} refers to {vertex.label}, "
                    "which is not in the plan"
                )
            predicates.append(
                ColumnEquality(left=vertex_id(vertex), right=scan.column(side))
            )
        if clause.edge.name is not None:
            if not frontier.binds(clause.edge):
                raise CompileError(
                    f"Negated clause {clause.clause} refers to "
                    f"{clause.edge.label}, which is not in the plan"
                )
            # Edge identity: an edge matches itself even where attributes are null.
            predicates.extend(
                ColumnEquality(
                    left=qualified(clause.edge.column, column),
                    right=scan.column(column),
                    null_safe=True,
                )
                for column in self.edge_columns
            )
        return frontier.extend(
            AntiJoin(left=frontier.node, right=scan, predicates=tuple(predicates))
        )

    def _project(
        self, frontier: Frontier, outputs: Sequence[Binding]
    ) -> Project:
        outputs_: List[OutputColumn] = []
        for binding in outputs:
            if not frontier.binds(binding):
                raise CompileError(
                    f"Output {binding.label} is not bound in the plan"
                )
            attributes = (
                self.vertex_columns
                if binding.kind == BindingKind.VERTEX
                else self.edge_columns
            )
            outputs_.append(
                OutputColumn(
                    name=str(binding.name),
                    attributes=attributes,
                    columns=tuple(
                        qualified(binding.column, attribute)
                        for attribute in attributes
                    ),
                )
            )
        return Project(child=frontier.node, outputs=tuple(outputs_))


def verify_plan(root: PlanNode) -> None:
    """Check that every column a node refers to is produced by its inputs.

    Raises:
        CompileError: On the first node that refers to a missing column.
    """
    for node in root.walk():
        match node:
            case Join(left=left, right=right, predicates=predicates) | AntiJoin(
                left=left, right=right, predicates=predicates
            ):
                _require(node, left.columns, [p.left for p in predicates])
                _require(node, right.columns, [p.right for p in predicates])
            case Filter(child=child, predicates=predicates):
                _require(
                    node,
                    child.columns,
                    [p.left for p in predicates] + [p.right for p in predicates],
                )
            case Project(child=child, outputs=outputs):
                _require(
                    node,
                    child.columns,
                    [column for output in outputs for column in output.columns],
                )


def _require(node: PlanNode, available: Sequence[str], wanted: List[str]) -> None:
    produced = set(available)
    missing = [column for column in wanted if column not in produced]
    if missing:
        raise CompileError(
            f"{node.describe()} refers to columns {missing} not produced by its input"
        )


def compile_pattern(
    pattern: str | Pattern,
    vertex_columns: Sequence[str],
    edge_columns: Sequence[str],
) -> LogicalPlan:
    """Parse, resolve and compile ``pattern`` in one call.

    Raises:
        ParseError: If the pattern is malformed.
        BindingError: If its names are bound inconsistently.
        CompileError: If the plan violates an internal invariant.
    """
    if isinstance(pattern, str):
        pattern = parse_pattern(pattern)
    return PlanCompiler(vertex_columns, edge_columns).compile(resolve(pattern))
