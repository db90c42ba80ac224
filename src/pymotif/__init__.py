"""pymotif: find motifs in property graphs held as pandas DataFrames.

A graph is a vertex DataFrame (with an ``id`` column) and an edge DataFrame
(with ``src`` and ``dst`` columns). Motifs are written in a compact pattern
language and compiled into relational plans executed with pandas.
"""

__version__ = "0.1.0"

from pymotif.bindings import resolve
from pymotif.compiler import PlanCompiler, compile_pattern
from pymotif.engine import PandasEngine
from pymotif.exceptions import (
    BindingError,
    CompileError,
    GraphError,
    MotifError,
    ParseError,
    PredicateError,
)
from pymotif.expressions import col, lit, parse_predicate
from pymotif.graph import Graph
from pymotif.pattern_parser import PatternParser, parse_pattern

__all__ = [
    "__version__",
    "BindingError",
    "CompileError",
    "Graph",
    "GraphError",
    "MotifError",
    "PandasEngine",
    "ParseError",
    "PatternParser",
    "PlanCompiler",
    "PredicateError",
    "col",
    "compile_pattern",
    "lit",
    "parse_pattern",
    "parse_predicate",
    "resolve",
]
