"""Typed models for parsed motif patterns.

A motif pattern is an ordered sequence of clauses. A ``VertexClause`` names a
single vertex, an ``EdgeClause`` names a directed edge together with its two
endpoints and may be negated. Every name slot holds either the identifier the
user wrote or ``None`` when the slot was left anonymous.

Example:
    >>> from pymotif.pattern_parser import parse_pattern
    >>> pattern = parse_pattern("(a)-[e]->(b); !(b)-[]->(a)")
    >>> [str(clause) for clause in pattern.clauses]
    ['(a)-[e]->(b)', '!(b)-[]->(a)']
"""

from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

Name = Optional[str]


def _slot(name: Name) -> str:
    return name if name is not None else ""


class VertexClause(BaseModel):
    """A single vertex, e.g. ``(a)`` or the anonymous ``()``."""

    model_config = ConfigDict(frozen=True)

    name: Name = None

    @property
    def negated(self) -> bool:
        """Vertex clauses are never negated."""
        return False

    def __str__(self) -> str:
        return f"({_slot(self.name)})"


class EdgeClause(BaseModel):
    """A directed edge with its endpoints, e.g. ``(a)-[e]->(b)``.

    Attributes:
        src: Name of the source vertex.
        edge: Name of the edge itself.
        dst: Name of the destination vertex.
        negated: True for ``!(a)-[]->(b)``, which requires that no edge
            connects the two endpoints.
    """

    model_config = ConfigDict(frozen=True)

    src: Name = None
    edge: Name = None
    dst: Name = None
    negated: bool = False

    def __str__(self) -> str:
        bang = "!" if self.negated else ""
        return (
            f"{bang}({_slot(self.src)})-[{_slot(self.edge)}]->"
            f"({_slot(self.dst)})"
        )


Clause = Union[VertexClause, EdgeClause]


class Pattern(BaseModel):
    """An ordered, immutable list of clauses.

    The empty pattern (no clauses) is valid and matches nothing.
    """

    model_config = ConfigDict(frozen=True)

    clauses: tuple[Clause, ...] = ()

    @property
    def is_empty(self) -> bool:
        """True for the pattern parsed from the empty string."""
        return len(self.clauses) == 0

    def __str__(self) -> str:
        return "; ".join(str(clause) for clause in self.clauses)
