"""Execute logical plans with pandas.

``PandasEngine`` is the relational engine used by ``Graph.find``. It walks a
``LogicalPlan`` bottom-up and evaluates every node with pandas operations:
scans rename columns, joins are ``pandas.merge`` calls and an anti-join
drops the left rows that an inner merge finds a partner for.

Null keys never join: rows with a null merge key are dropped before a
join, and an anti-join always keeps them. Null-safe predicates, used for
edge identity, let two nulls match.

The final projection returns a DataFrame with two column levels,
``(binding, attribute)``. Selecting a binding gives that element's bundle:

    >>> result = engine.execute(plan, vertices, edges)   # doctest: +SKIP
    >>> result["u"]["id"]                                # doctest: +SKIP

Row order is not specified.
"""

from __future__ import annotations

from typing import List

import pandas as pd

from pymotif.exceptions import CompileError
from pymotif.logger import LOGGER
from pymotif.logical_plan import (
    AntiJoin,
    BaseRelation,
    ColumnEquality,
    EmptyRelation,
    Filter,
    Join,
    LogicalPlan,
    PlanNode,
    Project,
    RelationName,
)

BINDING_LEVEL: str = "binding"
ATTRIBUTE_LEVEL: str = "attribute"
# Plan columns always contain COLUMN_SEPARATOR, so this cannot collide.
_ROW: str = "_row"


class PandasEngine:
    """Relational engine evaluating logical plans over pandas DataFrames."""

    def execute(
        self, plan: LogicalPlan, vertices: pd.DataFrame, edges: pd.DataFrame
    ) -> pd.DataFrame:
        """Materialize ``plan`` over the given vertex and edge relations.

        Args:
            plan: A compiled logical plan.
            vertices: The vertex relation.
            edges: The edge relation.

        Returns:
            pd.DataFrame: One row per match, columns ``(binding, attribute)``.
        """
        relations = {RelationName.VERTICES: vertices, RelationName.EDGES: edges}
        result = self.to_pandas(plan.root, relations)
        LOGGER.debug(msg=f"Pattern {plan.pattern!r} matched {len(result)} rows.")
        return result

    def to_pandas(
        self, node: PlanNode, relations: dict[RelationName, pd.DataFrame]
    ) -> pd.DataFrame:
        """Evaluate a single plan node (and its inputs)."""
        match node:
            case EmptyRelation():
                return pd.DataFrame(columns=list(node.columns))
            case BaseRelation():
                return self._scan(node, relations[node.relation])
            case Join():
                left = self.to_pandas(node.left, relations)
                right = self.to_pandas(node.right, relations)
                return self._join(left, right, node.predicates)
            case AntiJoin():
                left = self.to_pandas(node.left, relations)
                right = self.to_pandas(node.right, relations)
                return self._anti_join(left, right, node.predicates)
            case Filter():
                child = self.to_pandas(node.child, relations)
                return _where_equal(child, node.predicates)
            case Project():
                child = self.to_pandas(node.child, relations)
                return self._project(node, child)
            case _:
                raise CompileError(f"Cannot execute plan node {type(node).__name__}")

    def _scan(self, node: BaseRelation, frame: pd.DataFrame) -> pd.DataFrame:
        missing = [c for c in node.source_columns if c not in frame.columns]
        if missing:
            raise CompileError(
                f"Relation {node.relation.value} has no columns {missing}"
            )
        scanned = frame[list(node.source_columns)].copy()
        scanned.columns = list(node.columns)
        return scanned.reset_index(drop=True)

    def _join(
        self,
        left: pd.DataFrame,
        right: pd.DataFrame,
        predicates: tuple[ColumnEquality, ...],
    ) -> pd.DataFrame:
        if not predicates:
            return pd.merge(left, right, how="cross")
        merge_on, residual = _split_predicates(predicates)
        joined = pd.merge(
            _drop_null_keys(left, [p.left for p in merge_on if not p.null_safe]),
            _drop_null_keys(right, [p.right for p in merge_on if not p.null_safe]),
            how="inner",
            left_on=[p.left for p in merge_on],
            right_on=[p.right for p in merge_on],
        )
        return _where_equal(joined, residual)

    def _anti_join(
        self,
        left: pd.DataFrame,
        right: pd.DataFrame,
        predicates: tuple[ColumnEquality, ...],
    ) -> pd.DataFrame:
        if not predicates:
            out = left if right.empty else left.iloc[0:0]
            return out.reset_index(drop=True)
        rows = left.reset_index(drop=True)
        merge_on, residual = _split_predicates(predicates)
        # Rows with a null key never match, so they always survive.
        matches = pd.merge(
            _drop_null_keys(
                rows.assign(**{_ROW: rows.index}),
                [p.left for p in merge_on if not p.null_safe],
            ),
            _drop_null_keys(right, [p.right for p in merge_on if not p.null_safe]),
            how="inner",
            left_on=[p.left for p in merge_on],
            right_on=[p.right for p in merge_on],
        )
        matches = _where_equal(matches, residual)
        kept = rows[~rows.index.isin(matches[_ROW])]
        return kept.reset_index(drop=True)

    def _project(self, node: Project, child: pd.DataFrame) -> pd.DataFrame:
        tuples: List[tuple[str, str]] = []
        sources: List[str] = []
        for output in node.outputs:
            for attribute, column in zip(output.attributes, output.columns):
                tuples.append((output.name, attribute))
                sources.append(column)
        projected = child[sources].copy() if sources else child[[]].copy()
        if tuples:
            projected.columns = pd.MultiIndex.from_tuples(
                tuples, names=[BINDING_LEVEL, ATTRIBUTE_LEVEL]
            )
        else:
            projected.columns = pd.MultiIndex.from_arrays(
                [[], []], names=[BINDING_LEVEL, ATTRIBUTE_LEVEL]
            )
        return projected.reset_index(drop=True)


def _split_predicates(
    predicates: tuple[ColumnEquality, ...],
) -> tuple[list[ColumnEquality], list[ColumnEquality]]:
    """Separate merge keys from predicates that reuse an already-keyed column.

    ``pandas.merge`` cannot key on the same column twice, so the second use
    of a column becomes a residual equality check after the merge.
    """
    merge_on: list[ColumnEquality] = []
    residual: list[ColumnEquality] = []
    seen_left: set[str] = set()
    seen_right: set[str] = set()
    for predicate in predicates:
        if predicate.left in seen_left or predicate.right in seen_right:
            residual.append(predicate)
            continue
        seen_left.add(predicate.left)
        seen_right.add(predicate.right)
        merge_on.append(predicate)
    return merge_on, residual


def _drop_null_keys(frame: pd.DataFrame, keys: list[str]) -> pd.DataFrame:
    """Rows of ``frame`` with no null in any of ``keys``."""
    if not keys:
        return frame
    return frame.dropna(subset=keys)


def _where_equal(
    frame: pd.DataFrame, predicates: list[ColumnEquality] | tuple[ColumnEquality, ...]
) -> pd.DataFrame:
    """Rows of ``frame`` where both columns of every predicate are equal.

    Nulls are never equal, except under a null-safe predicate where two
    nulls are.
    """
    if not predicates:
        return frame
    mask = pd.Series(True, index=frame.index)
    for predicate in predicates:
        left, right = frame[predicate.left], frame[predicate.right]
        equal = (left == right) & left.notna() & right.notna()
        if predicate.null_safe:
            equal |= left.isna() & right.isna()
        mask &= equal
    return frame[mask].reset_index(drop=True)
