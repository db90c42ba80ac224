"""Boolean predicate expressions for filtering graph relations.

Predicates can be given as text or built in Python; both produce the same
expression tree and are evaluated by the same code:

    >>> parse_predicate("relationship = 'friend'") == (col("relationship") == "friend").expr
    True

Text predicates support comparisons (``= == != <> < <= > >=``), ``AND``,
``OR``, ``NOT``, parentheses, ``IS NULL`` / ``IS NOT NULL``, number, string
(single or double quoted), boolean and ``NULL`` literals, and column names
(back-quote names that are not plain identifiers).

Nulls follow SQL rules: any comparison with a null is unknown, and rows
whose predicate is unknown are dropped.
"""

from __future__ import annotations

import operator
import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, List, Optional, Union

import pandas as pd
from lark import Lark, Token, Transformer
from lark.exceptions import LarkError
from pydantic import BaseModel, ConfigDict

from pymotif.exceptions import PredicateError
from pymotif.logger import LOGGER

PREDICATE_GRAMMAR = r"""
?start: expression

?expression: or_expr

?or_expr: and_expr
        | or_expr _OR and_expr           -> or_

?and_expr: not_expr
         | and_expr _AND not_expr        -> and_

?not_expr: predicate
         | _NOT not_expr                 -> not_

?predicate: operand
          | operand COMP_OP operand      -> comparison
          | operand _IS _NULL            -> is_null
          | operand _IS _NOT _NULL       -> is_not_null

?operand: column
        | literal
        | "(" expression ")"

column: IDENTIFIER
      | QUOTED_IDENTIFIER

?literal: SIGNED_NUMBER                  -> number
        | STRING                         -> string
        | _TRUE                          -> true
        | _FALSE                         -> false
        | _NULL                          -> null

COMP_OP: "<=" | ">=" | "<>" | "!=" | "==" | "=" | "<" | ">"

_OR.2: /or\b/i
_AND.2: /and\b/i
_NOT.2: /not\b/i
_IS.2: /is\b/i
_NULL.2: /null\b/i
_TRUE.2: /true\b/i
_FALSE.2: /false\b/i

IDENTIFIER: /[a-zA-Z_][a-zA-Z0-9_]*/
QUOTED_IDENTIFIER: /`[^`]+`/

STRING: /'([^'\\\n]|\\.)*'/
      | /"([^"\\\n]|\\.)*"/

%import common.SIGNED_NUMBER
%import common.WS
%ignore WS
"""


class ComparisonOperator(str, Enum):
    """Comparison operators, keyed by their canonical spelling."""

    EQ = "="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="


_SPELLINGS = {
    "=": ComparisonOperator.EQ,
    "==": ComparisonOperator.EQ,
    "!=": ComparisonOperator.NE,
    "<>": ComparisonOperator.NE,
    "<": ComparisonOperator.LT,
    "<=": ComparisonOperator.LE,
    ">": ComparisonOperator.GT,
    ">=": ComparisonOperator.GE,
}

_OPERATORS: dict[ComparisonOperator, Callable[[Any, Any], Any]] = {
    ComparisonOperator.EQ: operator.eq,
    ComparisonOperator.NE: operator.ne,
    ComparisonOperator.LT: operator.lt,
    ComparisonOperator.LE: operator.le,
    ComparisonOperator.GT: operator.gt,
    ComparisonOperator.GE: operator.ge,
}


def _broadcast(value: Any, index: pd.Index) -> pd.Series:
    if isinstance(value, pd.Series):
        return value
    return pd.Series([value] * len(index), index=index, dtype=object)


def _as_boolean(value: Any, index: pd.Index, source: Expression) -> pd.Series:
    """Coerce an operand of AND/OR/NOT to a nullable boolean Series."""
    series = _broadcast(value, index)
    if pd.api.types.is_bool_dtype(series.dtype):
        return series.astype("boolean")
    if series.isna().all() or series.dropna().map(type).eq(bool).all():
        return series.astype("boolean")
    raise PredicateError(
        f"Expression {source} does not evaluate to a boolean", expression=str(source)
    )


class Expression(BaseModel, ABC):
    """Abstract base class for predicate expression nodes."""

    model_config = ConfigDict(frozen=True)

    @abstractmethod
    def value(self, frame: pd.DataFrame) -> Any:
        """Value of the expression: a Series aligned on ``frame`` or a scalar."""

    def evaluate(self, frame: pd.DataFrame) -> pd.Series:
        """Evaluate the expression as a row mask over ``frame``.

        Returns:
            pd.Series: Plain ``bool`` Series; unknown (null) results are False.

        Raises:
            PredicateError: If a column is missing, operand types cannot be
                compared, or the expression is not boolean.
        """
        mask = _as_boolean(self.value(frame), frame.index, self)
        return mask.fillna(False).astype(bool)

    def columns(self) -> List[str]:
        """Names of every column the expression refers to."""
        return []


class ColumnRef(Expression):
    """Reference to a column of the filtered relation."""

    name: str

    def value(self, frame: pd.DataFrame) -> pd.Series:
        if self.name not in frame.columns:
            raise PredicateError(
                f"Unknown column {self.name!r}; available columns are "
                f"{[str(c) for c in frame.columns]}",
                expression=str(self),
            )
        return frame[self.name]

    def columns(self) -> List[str]:
        return [self.name]

    def __str__(self) -> str:
        if re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", self.name):
            return self.name
        return f"`{self.name}`"


class Literal(Expression):
    """A constant: number, string, boolean or null (``None``)."""

    value_: Any = None

    def __init__(self, value: Any = None, **data: Any) -> None:
        super().__init__(value_=data.pop("value_", value), **data)

    def value(self, frame: pd.DataFrame) -> Any:
        return self.value_

    def __str__(self) -> str:
        if self.value_ is None:
            return "NULL"
        if isinstance(self.value_, bool):
            return "TRUE" if self.value_ else "FALSE"
        if isinstance(self.value_, str):
            escaped = self.value_.replace("\\", "\\\\").replace("'", "\\'")
            return f"'{escaped}'"
        return repr(self.value_)


class Comparison(Expression):
    """Binary comparison; unknown when either side is null."""

    op: ComparisonOperator
    left: Expression
    right: Expression

    def value(self, frame: pd.DataFrame) -> pd.Series:
        left = _broadcast(self.left.value(frame), frame.index)
        right = _broadcast(self.right.value(frame), frame.index)
        known = ~(left.isna() | right.isna())
        out = pd.Series(pd.NA, index=frame.index, dtype="boolean")
        if known.any():
            try:
                compared = _OPERATORS[self.op](left[known], right[known])
            except TypeError as error:
                raise PredicateError(
                    f"Cannot compare operands of {self}: {error}",
                    expression=str(self),
                ) from error
            out[known] = compared.astype(bool)
        return out

    def columns(self) -> List[str]:
        return self.left.columns() + self.right.columns()

    def __str__(self) -> str:
        return f"{self.left} {self.op.value} {self.right}"


class And(Expression):
    """Kleene conjunction."""

    left: Expression
    right: Expression

    def value(self, frame: pd.DataFrame) -> pd.Series:
        return _as_boolean(self.left.value(frame), frame.index, self.left) & _as_boolean(
            self.right.value(frame), frame.index, self.right
        )

    def columns(self) -> List[str]:
        return self.left.columns() + self.right.columns()

    def __str__(self) -> str:
        return f"({self.left} AND {self.right})"


class Or(Expression):
    """Kleene disjunction."""

    left: Expression
    right: Expression

    def value(self, frame: pd.DataFrame) -> pd.Series:
        return _as_boolean(self.left.value(frame), frame.index, self.left) | _as_boolean(
            self.right.value(frame), frame.index, self.right
        )

    def columns(self) -> List[str]:
        return self.left.columns() + self.right.columns()

    def __str__(self) -> str:
        return f"({self.left} OR {self.right})"


class Not(Expression):
    """Kleene negation."""

    operand: Expression

    def value(self, frame: pd.DataFrame) -> pd.Series:
        return ~_as_boolean(self.operand.value(frame), frame.index, self.operand)

    def columns(self) -> List[str]:
        return self.operand.columns()

    def __str__(self) -> str:
        return f"NOT {self.operand}"


class IsNull(Expression):
    """``operand IS NULL`` (or ``IS NOT NULL`` when ``negated``)."""

    operand: Expression
    negated: bool = False

    def value(self, frame: pd.DataFrame) -> pd.Series:
        nulls = _broadcast(self.operand.value(frame), frame.index).isna()
        return (~nulls if self.negated else nulls).astype("boolean")

    def columns(self) -> List[str]:
        return self.operand.columns()

    def __str__(self) -> str:
        return f"{self.operand} IS {'NOT ' if self.negated else ''}NULL"


# =============================================================================
# Text predicates
# =============================================================================


class PredicateTransformer(Transformer):
    """Transform the predicate parse tree into ``Expression`` nodes."""

    def or_(self, args: List[Expression]) -> Or:
        return Or(left=args[0], right=args[1])

    def and_(self, args: List[Expression]) -> And:
        return And(left=args[0], right=args[1])

    def not_(self, args: List[Expression]) -> Not:
        return Not(operand=args[0])

    def comparison(self, args: List[Any]) -> Comparison:
        left, op, right = args
        return Comparison(op=_SPELLINGS[str(op)], left=left, right=right)

    def is_null(self, args: List[Expression]) -> IsNull:
        return IsNull(operand=args[0])

    def is_not_null(self, args: List[Expression]) -> IsNull:
        return IsNull(operand=args[0], negated=True)

    def column(self, args: List[Token]) -> ColumnRef:
        token = args[0]
        name = str(token)
        if token.type == "QUOTED_IDENTIFIER":
            name = name[1:-1]
        return ColumnRef(name=name)

    def number(self, args: List[Token]) -> Literal:
        text = str(args[0])
        if re.fullmatch(r"[+-]?\d+", text):
            return Literal(int(text))
        return Literal(float(text))

    def string(self, args: List[Token]) -> Literal:
        return Literal(re.sub(r"\\(.)", r"\1", str(args[0])[1:-1]))

    def true(self, args: List[Any]) -> Literal:
        return Literal(True)

    def false(self, args: List[Any]) -> Literal:
        return Literal(False)

    def null(self, args: List[Any]) -> Literal:
        return Literal(None)


class PredicateParser:
    """Parser for textual filter predicates.

    Example:
        >>> str(PredicateParser().parse("id > 0 and not gender = 'f'"))
        "(id > 0 AND NOT gender = 'f')"
    """

    def __init__(self) -> None:
        self.parser = Lark(PREDICATE_GRAMMAR, parser="lalr")
        self.transformer = PredicateTransformer()

    def parse(self, text: str) -> Expression:
        """Parse ``text`` into an ``Expression``.

        Raises:
            PredicateError: If the text is not a well-formed predicate.
        """
        if not text.strip():
            raise PredicateError("Predicate is empty", expression=text)
        try:
            tree = self.parser.parse(text)
            return self.transformer.transform(tree)
        except LarkError as error:
            LOGGER.debug(msg=f"Could not parse predicate {text!r}: {error}")
            raise PredicateError(
                f"Malformed predicate {text!r}", expression=text
            ) from error


_DEFAULT_PARSER: Optional[PredicateParser] = None


def parse_predicate(text: str) -> Expression:
    """Parse ``text`` with a shared ``PredicateParser``."""
    global _DEFAULT_PARSER  # pylint: disable=global-statement
    if _DEFAULT_PARSER is None:
        _DEFAULT_PARSER = PredicateParser()
    return _DEFAULT_PARSER.parse(text)


# =============================================================================
# Structured predicates
# =============================================================================


def _to_expression(value: Any) -> Expression:
    if isinstance(value, Column):
        return value.expr
    if isinstance(value, Expression):
        return value
    return Literal(value)


class Column:
    """Builder for predicate expressions using Python operators.

    Combine conditions with ``&``, ``|`` and ``~`` (not ``and``/``or``/``not``,
    which Python cannot overload).

    Example:
        >>> predicate = (col("age") >= 18) & ~col("name").isNull()
        >>> str(predicate)
        '(age >= 18 AND NOT name IS NULL)'
    """

    __hash__ = None  # type: ignore[assignment]

    def __init__(self, expr: Expression) -> None:
        self.expr = expr

    def _compare(self, op: ComparisonOperator, other: Any) -> Column:
        return Column(Comparison(op=op, left=self.expr, right=_to_expression(other)))

    def __eq__(self, other: Any) -> Column:  # type: ignore[override]
        return self._compare(ComparisonOperator.EQ, other)

    def __ne__(self, other: Any) -> Column:  # type: ignore[override]
        return self._compare(ComparisonOperator.NE, other)

    def __lt__(self, other: Any) -> Column:
        return self._compare(ComparisonOperator.LT, other)

    def __le__(self, other: Any) -> Column:
        return self._compare(ComparisonOperator.LE, other)

    def __gt__(self, other: Any) -> Column:
        return self._compare(ComparisonOperator.GT, other)

    def __ge__(self, other: Any) -> Column:
        return self._compare(ComparisonOperator.GE, other)

    def __and__(self, other: Any) -> Column:
        return Column(And(left=self.expr, right=_to_expression(other)))

    def __rand__(self, other: Any) -> Column:
        return Column(And(left=_to_expression(other), right=self.expr))

    def __or__(self, other: Any) -> Column:
        return Column(Or(left=self.expr, right=_to_expression(other)))

    def __ror__(self, other: Any) -> Column:
        return Column(Or(left=_to_expression(other), right=self.expr))

    def __invert__(self) -> Column:
        return Column(Not(operand=self.expr))

    def isNull(self) -> Column:  # pylint: disable=invalid-name
        return Column(IsNull(operand=self.expr))

    def isNotNull(self) -> Column:  # pylint: disable=invalid-name
        return Column(IsNull(operand=self.expr, negated=True))

    is_null = isNull
    is_not_null = isNotNull

    def __bool__(self) -> bool:
        raise TypeError(
            "A Column has no truth value; combine conditions with '&', '|' and '~'"
        )

    def __str__(self) -> str:
        return str(self.expr)

    def __repr__(self) -> str:
        return f"Column<{self.expr}>"


def col(name: str) -> Column:
    """Refer to a column by name."""
    return Column(ColumnRef(name=name))


def lit(value: Any) -> Column:
    """Wrap a constant."""
    return Column(Literal(value))


Predicate = Union[str, Column, Expression]


def as_expression(predicate: Predicate) -> Expression:
    """Normalise a text, ``Column`` or ``Expression`` predicate.

    Raises:
        PredicateError: If the predicate is malformed or of an unknown type.
    """
    if isinstance(predicate, str):
        return parse_predicate(predicate)
    if isinstance(predicate, Column):
        return predicate.expr
    if isinstance(predicate, Expression):
        return predicate
    raise PredicateError(
        f"Predicate must be a string, Column or Expression, not "
        f"{type(predicate).__name__}",
        expression=predicate,
    )
