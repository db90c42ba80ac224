"""Logical plan nodes produced by the plan compiler.

A logical plan is an immutable tree of relational operators over exactly two
base relations, the vertex relation and the edge relation. Nodes are built
bottom-up by the compiler; each node owns its children. Nothing in this
module touches data: executing a plan is the job of a relational engine such
as ``pymotif.engine.PandasEngine``.

Every node exposes the ordered list of columns it produces. Base relation
columns are renamed to ``<alias><COLUMN_SEPARATOR><column>`` so that the same
relation can be scanned several times in one plan without collisions.

Example:
    >>> scan = BaseRelation(relation=RelationName.EDGES, alias="e0",
    ...                     source_columns=("src", "dst"))
    >>> scan.columns
    ('e0::src', 'e0::dst')
"""

from __future__ import annotations

import io
from abc import ABC, abstractmethod
from enum import Enum
from typing import Generator

from pydantic import BaseModel, ConfigDict
from rich.console import Console
from rich.text import Text
from rich.tree import Tree

from pymotif.config import COLUMN_SEPARATOR  # pylint: disable=no-name-in-module

ID_COLUMN: str = "id"
SRC_COLUMN: str = "src"
DST_COLUMN: str = "dst"


def qualified(alias: str, column: str) -> str:
    """Return the plan column name of ``column`` scanned under ``alias``."""
    return f"{alias}{COLUMN_SEPARATOR}{column}"


class RelationName(str, Enum):
    """The two base relations of a graph."""

    VERTICES = "vertices"
    EDGES = "edges"


class ColumnEquality(BaseModel):
    """Equality predicate ``left == right`` between two plan columns.

    A null never equals anything, itself included, unless ``null_safe`` is
    set, in which case two nulls compare equal (``<=>`` in the rendering).
    """

    model_config = ConfigDict(frozen=True)

    left: str
    right: str
    null_safe: bool = False

    def __str__(self) -> str:
        return f"{self.left} {'<=>' if self.null_safe else '='} {self.right}"


class OutputColumn(BaseModel):
    """One top-level output column bundling several plan columns.

    Attributes:
        name: Output name (the identifier the user wrote).
        attributes: Field names inside the bundle, in order.
        columns: Plan columns holding each field, parallel to ``attributes``.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    attributes: tuple[str, ...]
    columns: tuple[str, ...]


class PlanNode(BaseModel, ABC):
    """Abstract base class for all logical plan operators."""

    model_config = ConfigDict(frozen=True)

    @property
    @abstractmethod
    def columns(self) -> tuple[str, ...]:
        """Columns produced by this node, in order."""

    @property
    def children(self) -> tuple[PlanNode, ...]:
        return ()

    @abstractmethod
    def describe(self) -> str:
        """One-line description used when rendering the plan."""

    def tree(self) -> Tree:
        """Generate a Rich Tree representation of this node and its inputs."""
        tree = Tree(Text(self.describe()))
        for child in self.children:
            tree.add(child.tree())
        return tree

    def walk(self) -> Generator[PlanNode, None, None]:
        """Yield this node and every descendant, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


class EmptyRelation(PlanNode):
    """A literal relation with no rows."""

    empty_columns: tuple[str, ...] = ()

    @property
    def columns(self) -> tuple[str, ...]:
        return self.empty_columns

    def describe(self) -> str:
        return "EmptyRelation"


class BaseRelation(PlanNode):
    """Scan of the vertex or edge relation under an alias.

    Attributes:
        relation: Which base relation to scan.
        alias: Prefix given to every scanned column.
        source_columns: Columns of the base relation, in order.
    """

    relation: RelationName
    alias: str
    source_columns: tuple[str, ...]

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(qualified(self.alias, column) for column in self.source_columns)

    def column(self, source_column: str) -> str:
        """Plan column holding ``source_column`` of this scan."""
        return qualified(self.alias, source_column)

    def describe(self) -> str:
        return f"Scan {self.relation.value} as {self.alias}"


class Join(PlanNode):
    """Inner equi-join; a cross join when ``predicates`` is empty."""

    left: PlanNode
    right: PlanNode
    predicates: tuple[ColumnEquality, ...] = ()

    @property
    def columns(self) -> tuple[str, ...]:
        return self.left.columns + self.right.columns

    @property
    def children(self) -> tuple[PlanNode, ...]:
        return (self.left, self.right)

    @property
    def is_cross(self) -> bool:
        return not self.predicates

    def describe(self) -> str:
        if self.is_cross:
            return "CrossJoin"
        return f"Join on {', '.join(str(p) for p in self.predicates)}"


class AntiJoin(PlanNode):
    """Rows of ``left`` that have no matching row in ``right``.

    With no predicates every row of ``right`` matches, so the result is
    empty unless ``right`` is.
    """

    left: PlanNode
    right: PlanNode
    predicates: tuple[ColumnEquality, ...] = ()

    @property
    def columns(self) -> tuple[str, ...]:
        return self.left.columns

    @property
    def children(self) -> tuple[PlanNode, ...]:
        return (self.left, self.right)

    def describe(self) -> str:
        if not self.predicates:
            return "AntiJoin (any row)"
        return f"AntiJoin on {', '.join(str(p) for p in self.predicates)}"


class Filter(PlanNode):
    """Rows of ``child`` where every column equality holds."""

    child: PlanNode
    predicates: tuple[ColumnEquality, ...]

    @property
    def columns(self) -> tuple[str, ...]:
        return self.child.columns

    @property
    def children(self) -> tuple[PlanNode, ...]:
        return (self.child,)

    def describe(self) -> str:
        return f"Filter {' and '.join(str(p) for p in self.predicates)}"


class Project(PlanNode):
    """Final projection onto the visible pattern elements."""

    child: PlanNode
    outputs: tuple[OutputColumn, ...] = ()

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(output.name for output in self.outputs)

    @property
    def children(self) -> tuple[PlanNode, ...]:
        return (self.child,)

    def describe(self) -> str:
        if not self.outputs:
            return "Project (no columns)"
        return f"Project {', '.join(self.columns)}"


class LogicalPlan(BaseModel):
    """A compiled pattern: the root plan node and its output names."""

    model_config = ConfigDict(frozen=True)

    root: Project
    pattern: str = ""

    @property
    def output_names(self) -> tuple[str, ...]:
        return self.root.columns

    def walk(self) -> Generator[PlanNode, None, None]:
        yield from self.root.walk()

    def tree(self) -> Tree:
        tree = Tree(Text(f"Pattern {self.pattern!r}"))
        tree.add(self.root.tree())
        return tree

    def explain(self) -> str:
        """Render the plan as indented text."""
        buffer = io.StringIO()
        console = Console(file=buffer, width=120, color_system=None)
        console.print(self.tree())
        return buffer.getvalue()
