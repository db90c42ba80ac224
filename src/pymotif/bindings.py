"""Binding resolution for motif patterns.

The resolver walks the clauses of a ``Pattern`` left to right and gives
every vertex and edge slot a ``Binding``: the canonical identity of one
pattern element. A name that recurs reuses the binding created at its first
appearance, so the compiler can join on it. Every anonymous slot gets a fresh
binding of its own that never appears in the output.

Canonical column prefixes are generated from a counter scoped to a single
``resolve`` call. They never depend on the names the user wrote, so a user
name that happens to look like an internal one (``__tmp``, ``v0``) is just an
ordinary visible name.

Example:
    >>> from pymotif.pattern_parser import parse_pattern
    >>> resolved = resolve(parse_pattern("(u)-[e]->(v); (v)-[]->(w)"))
    >>> [binding.name for binding in resolved.outputs]
    ['u', 'e', 'v', 'w']
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict

from pymotif.exceptions import BindingError
from pymotif.logger import LOGGER
from pymotif.pattern_models import Clause, EdgeClause, Pattern, VertexClause


class BindingKind(str, Enum):
    """Whether a binding denotes a vertex or an edge."""

    VERTEX = "vertex"
    EDGE = "edge"

    @property
    def article(self) -> str:
        return "an edge" if self is BindingKind.EDGE else "a vertex"


class Binding(BaseModel):
    """A resolved pattern element.

    Attributes:
        kind: Vertex or edge.
        column: Canonical internal column prefix, unique within one compile.
        name: The identifier the user wrote, or None for anonymous elements.
        visible: Whether the element appears in the output.
        rank: First-appearance rank across the whole pattern.
    """

    model_config = ConfigDict(frozen=True)

    kind: BindingKind
    column: str
    name: Optional[str] = None
    visible: bool = False
    rank: int

    @property
    def label(self) -> str:
        """Name for messages and plan rendering."""
        return self.name if self.name is not None else f"<anonymous {self.kind.value}>"


class ResolvedVertexClause(BaseModel):
    """A vertex clause together with the binding of its vertex."""

    model_config = ConfigDict(frozen=True)

    clause: VertexClause
    vertex: Binding

    @property
    def negated(self) -> bool:
        return False


class ResolvedEdgeClause(BaseModel):
    """An edge clause together with the bindings of its three slots."""

    model_config = ConfigDict(frozen=True)

    clause: EdgeClause
    src: Binding
    edge: Binding
    dst: Binding

    @property
    def negated(self) -> bool:
        return self.clause.negated


ResolvedClause = Union[ResolvedVertexClause, ResolvedEdgeClause]


class ResolvedPattern(BaseModel):
    """Output of ``resolve``.

    Attributes:
        pattern: The pattern that was resolved.
        clauses: One resolved clause per pattern clause, in order.
        bindings: Every binding, in first-appearance order.
        outputs: The visible bindings, in output column order.
    """

    model_config = ConfigDict(frozen=True)

    pattern: Pattern
    clauses: tuple[ResolvedClause, ...] = ()
    bindings: tuple[Binding, ...] = ()
    outputs: tuple[Binding, ...] = ()

    @property
    def output_names(self) -> List[str]:
        return [str(binding.name) for binding in self.outputs]

    def binding_for(self, name: str) -> Binding:
        """Return the binding of a user-visible name.

        Raises:
            KeyError: If ``name`` does not occur in the pattern.
        """
        for binding in self.bindings:
            if binding.name == name:
                return binding
        raise KeyError(name)


class BindingNamer:
    """Generates canonical column prefixes for one resolution."""

    PREFIXES = {BindingKind.VERTEX: "v", BindingKind.EDGE: "e"}

    def __init__(self) -> None:
        self.counter = 0

    def next_column(self, kind: BindingKind) -> str:
        column = f"{self.PREFIXES[kind]}{self.counter}"
        self.counter += 1
        return column


class _Scope:
    """Names bound so far while walking one pattern."""

    def __init__(self) -> None:
        self.namer = BindingNamer()
        self.by_name: Dict[str, Binding] = {}
        self.bindings: List[Binding] = []

    def bind(
        self, name: Optional[str], kind: BindingKind, clause: Clause
    ) -> Binding:
        if name is not None and name in self.by_name:
            existing = self.by_name[name]
            if existing.kind != kind:
                raise BindingError(
                    f"Name {name!r} is bound to {existing.kind.article} and "
                    f"cannot be reused as {kind.article}",
                    clause=str(clause),
                )
            return existing
        if name is not None and clause.negated:
            raise BindingError(
                f"Negation refers to unbound name {name!r}", clause=str(clause)
            )
        binding = Binding(
            kind=kind,
            column=self.namer.next_column(kind),
            name=name,
            visible=name is not None,
            rank=len(self.bindings),
        )
        self.bindings.append(binding)
        if name is not None:
            self.by_name[name] = binding
        return binding


def resolve(pattern: Pattern) -> ResolvedPattern:
    """Resolve the bindings of ``pattern``.

    Args:
        pattern: A parsed pattern.

    Returns:
        ResolvedPattern: Clauses annotated with their bindings, plus the
        ordered output bindings.

    Raises:
        BindingError: If a name is used both as a vertex and as an edge, if
            a negated clause introduces a new name, or if the pattern has
            negated clauses but no positive clause.
    """
    scope = _Scope()
    resolved: List[ResolvedClause] = []
    for clause in pattern.clauses:
        match clause:
            case VertexClause(name=name):
                resolved.append(
                    ResolvedVertexClause(
                        clause=clause,
                        vertex=scope.bind(name, BindingKind.VERTEX, clause),
                    )
                )
            case EdgeClause(src=src, edge=edge, dst=dst):
                # Slot order (src, edge, dst) fixes the output order.
                src_binding = scope.bind(src, BindingKind.VERTEX, clause)
                edge_binding = scope.bind(edge, BindingKind.EDGE, clause)
                dst_binding = scope.bind(dst, BindingKind.VERTEX, clause)
                resolved.append(
                    ResolvedEdgeClause(
                        clause=clause,
                        src=src_binding,
                        edge=edge_binding,
                        dst=dst_binding,
                    )
                )
            case _:
                raise TypeError(f"Unexpected clause type {type(clause)}")

    if resolved and all(clause.negated for clause in resolved):
        raise BindingError(
            "Pattern has no positive clause to anchor its negated clauses",
            clause=str(pattern),
        )

    outputs = tuple(binding for binding in scope.bindings if binding.visible)
    LOGGER.debug(
        msg=f"Resolved {len(scope.bindings)} bindings for {str(pattern)!r}; "
        f"output columns {[binding.name for binding in outputs]}."
    )
    return ResolvedPattern(
        pattern=pattern,
        clauses=tuple(resolved),
        bindings=tuple(scope.bindings),
        outputs=outputs,
    )
