"""Motif pattern parser using Lark.

This module turns a motif pattern string such as
``"(a)-[e]->(b); (b)-[]->(c); !(a)-[]->(c)"`` into a ``Pattern`` of typed
clauses. Clauses are separated by ``;``; whitespace between tokens is
ignored. The empty string is a valid pattern with no clauses.

Example:
    >>> from pymotif.pattern_parser import PatternParser
    >>> parser = PatternParser()
    >>> pattern = parser.parse("(u)-[e]->(v)")
    >>> pattern.clauses[0].edge
    'e'
"""

from __future__ import annotations

from typing import Any, List, Optional

from lark import Lark, Token, Transformer, Tree, v_args
from lark.exceptions import LarkError, UnexpectedInput, VisitError

from pymotif.config import PARSER_DEBUG  # pylint: disable=no-name-in-module
from pymotif.exceptions import ParseError
from pymotif.logger import LOGGER
from pymotif.pattern_models import EdgeClause, Pattern, VertexClause

MOTIF_GRAMMAR = r"""
start: pattern

pattern: (clause (";" clause)*)?

?clause: edge_clause
       | reversed_edge_clause
       | vertex_clause

edge_clause: [NEGATION] vertex_slot "-" "[" [name] "]" "->" vertex_slot

// Accepted by the grammar only so that it can be rejected with a clear message.
reversed_edge_clause: [NEGATION] vertex_slot "<-" "[" [name] "]" "-" vertex_slot

vertex_clause: [NEGATION] vertex_slot

vertex_slot: "(" [name] ")"

name: IDENTIFIER

NEGATION: "!"
IDENTIFIER: /[A-Za-z_][A-Za-z0-9_]*/

%import common.WS
%ignore WS
"""


class MotifTransformer(Transformer):
    """Transform the Lark parse tree into pattern models.

    Methods are called bottom-up by Lark, one per grammar rule, and receive
    the already-transformed children of the rule.
    """

    def start(self, args: List[Any]) -> Pattern:
        return args[0]

    def pattern(self, args: List[Any]) -> Pattern:
        """Collect the clauses in textual order."""
        return Pattern(clauses=tuple(arg for arg in args if arg is not None))

    def edge_clause(self, args: List[Any]) -> EdgeClause:
        negation, src, edge, dst = args
        return EdgeClause(
            src=src, edge=edge, dst=dst, negated=negation is not None
        )

    @v_args(meta=True)
    def reversed_edge_clause(self, meta: Any, args: List[Any]) -> None:
        """Reject ``(a)<-[e]-(b)``; every edge must point left to right."""
        negation, dst, edge, src = args
        written = EdgeClause(src=src, edge=edge, dst=dst, negated=False)
        raise ParseError(
            "Edge direction is reversed; write the edge as "
            f"{'!' if negation is not None else ''}{written}",
            fragment=_render_reversed(negation, dst, edge, src),
            position=getattr(meta, "start_pos", None),
        )

    @v_args(meta=True)
    def vertex_clause(self, meta: Any, args: List[Any]) -> VertexClause:
        negation, name = args
        if negation is not None:
            raise ParseError(
                "Negation is only allowed on edge clauses",
                fragment=f"!({name or ''})",
                position=getattr(meta, "start_pos", None),
            )
        return VertexClause(name=name)

    def vertex_slot(self, args: List[Any]) -> Optional[str]:
        return args[0]

    def name(self, args: List[Token]) -> str:
        return str(args[0])


def _render_reversed(
    negation: Optional[Token],
    dst: Optional[str],
    edge: Optional[str],
    src: Optional[str],
) -> str:
    bang = "!" if negation is not None else ""
    return f"{bang}({dst or ''})<-[{edge or ''}]-({src or ''})"


def _enclosing_clause(pattern: str, position: int) -> str:
    """Return the clause of ``pattern`` that contains ``position``."""
    position = max(0, min(position, len(pattern)))
    start = pattern.rfind(";", 0, position) + 1
    end = pattern.find(";", position)
    if end == -1:
        end = len(pattern)
    fragment = pattern[start:end].strip()
    return fragment or pattern[start : end + 1].strip() or pattern.strip()


class PatternParser:
    """Parser for motif patterns.

    Attributes:
        parser: The Lark parser instance.
        transformer: The transformer producing pattern models.

    Example:
        >>> parser = PatternParser()
        >>> str(parser.parse("(a)-[]->(b);(b)-[]->(c)"))
        '(a)-[]->(b); (b)-[]->(c)'
    """

    parser: Lark
    transformer: MotifTransformer

    def __init__(self, debug: bool = PARSER_DEBUG) -> None:
        """Initialize the pattern parser.

        Args:
            debug: If True, enable Lark's debug mode.
        """
        self.parser = Lark(
            MOTIF_GRAMMAR,
            parser="lalr",
            debug=debug,
            maybe_placeholders=True,
            propagate_positions=True,
        )
        self.transformer = MotifTransformer()

    def parse_tree(self, pattern: str) -> Tree:
        """Parse a pattern into the raw Lark parse tree.

        Raises:
            lark.exceptions.LarkError: If the pattern has syntax errors.
        """
        return self.parser.parse(pattern)

    def parse(self, pattern: str) -> Pattern:
        """Parse a pattern string into a ``Pattern``.

        Args:
            pattern: The motif pattern to parse.

        Returns:
            Pattern: The clauses in textual order.

        Raises:
            ParseError: If the pattern is malformed. The error's ``fragment``
                holds the offending part of the pattern.
        """
        if not isinstance(pattern, str):
            raise ParseError(
                f"Pattern must be a string, not {type(pattern).__name__}"
            )
        try:
            tree = self.parse_tree(pattern)
            out: Pattern = self.transformer.transform(tree)
        except VisitError as error:
            if isinstance(error.orig_exc, ParseError):
                orig: ParseError = error.orig_exc
                LOGGER.debug(msg=f"Rejected pattern {pattern!r}: {orig.reason}")
                raise ParseError(
                    orig.reason,
                    pattern=pattern,
                    fragment=orig.fragment,
                    position=orig.position,
                ) from error.orig_exc
            raise
        except UnexpectedInput as error:
            position = error.pos_in_stream
            if position is None or position < 0:
                position = len(pattern)
            fragment = _enclosing_clause(pattern, position)
            LOGGER.debug(
                msg=f"Syntax error in pattern {pattern!r} at offset {position}."
            )
            raise ParseError(
                "Malformed pattern clause",
                pattern=pattern,
                fragment=fragment,
                position=position,
            ) from error
        except LarkError as error:
            raise ParseError(
                f"Could not parse pattern ({error})",
                pattern=pattern,
                fragment=pattern.strip(),
            ) from error
        LOGGER.debug(msg=f"Parsed {pattern!r} into {len(out.clauses)} clauses.")
        return out

    def validate(self, pattern: str) -> bool:
        """Return True if ``pattern`` parses, False otherwise."""
        try:
            self.parse(pattern)
            return True
        except ParseError:
            return False


_DEFAULT_PARSER: Optional[PatternParser] = None


def parse_pattern(pattern: str) -> Pattern:
    """Parse ``pattern`` with a shared ``PatternParser``."""
    global _DEFAULT_PARSER  # pylint: disable=global-statement
    if _DEFAULT_PARSER is None:
        _DEFAULT_PARSER = PatternParser()
    return _DEFAULT_PARSER.parse(pattern)
