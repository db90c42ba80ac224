"""Custom exceptions for the pymotif package.

This module defines the exception classes raised while parsing motif
patterns, resolving their bindings, compiling them into logical plans and
evaluating filter predicates. Every exception carries a human-readable
``message`` attribute.
"""

from __future__ import annotations

from typing import Optional


class MotifError(Exception):
    """Base class for every error raised by pymotif.

    Attributes:
        message: Human-readable error message.
    """

    def __init__(self, message: str):
        """Initialize the exception with an error message.

        Args:
            message: Description of the error that occurred.
        """
        self.message = message
        super().__init__(self.message)


class ParseError(MotifError):
    """Exception raised when a motif pattern is syntactically malformed.

    Attributes:
        message: Human-readable error message.
        reason: The message without the offending fragment appended.
        pattern: The full pattern string that failed to parse.
        fragment: The offending substring of ``pattern``.
        position: Character offset of ``fragment`` inside ``pattern``.
    """

    def __init__(
        self,
        message: str,
        pattern: str = "",
        fragment: str = "",
        position: Optional[int] = None,
    ):
        """Initialize the exception.

        Args:
            message: Description of the syntax problem.
            pattern: The pattern being parsed.
            fragment: The part of the pattern where the problem was found.
            position: Offset of the fragment, if known.
        """
        self.reason = message
        self.pattern = pattern
        self.fragment = fragment
        self.position = position
        if fragment:
            message = f"{message}: {fragment!r}"
        super().__init__(message)


class BindingError(MotifError):
    """Exception raised when pattern names are bound inconsistently.

    Raised when a negated clause introduces a name that no positive clause
    bound, when the same name is used both as a vertex and as an edge, or
    when a pattern has no positive clause at all to anchor its negations.

    Attributes:
        message: Human-readable error message.
        clause: Text of the clause that caused the error, if any.
    """

    def __init__(self, message: str, clause: Optional[str] = None):
        """Initialize the exception.

        Args:
            message: Description of the binding problem.
            clause: The offending clause rendered back to pattern syntax.
        """
        self.clause = clause
        if clause is not None:
            message = f"{message} in clause {clause!r}"
        super().__init__(message)


class CompileError(MotifError):
    """Exception raised when the plan compiler breaks one of its invariants.

    This signals a programming defect (the resolver and the compiler
    disagree on the binding table), not a problem with user input.
    """


class PredicateError(MotifError):
    """Exception raised when a filter predicate cannot be parsed or applied.

    Attributes:
        message: Human-readable error message.
        expression: The predicate that failed, as given by the caller.
    """

    def __init__(self, message: str, expression: object = None):
        """Initialize the exception.

        Args:
            message: Description of the predicate problem.
            expression: The offending predicate.
        """
        self.expression = expression
        super().__init__(message)


class GraphError(MotifError):
    """Exception raised when a vertex or edge relation is not a valid graph."""
