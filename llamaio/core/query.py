"""Validated query structures shared by the query translator and the document store."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class Operator(StrEnum):
    """Comparison operators accepted in filters."""

    EQ = "$eq"
    NE = "$ne"
    GT = "$gt"
    GTE = "$gte"
    LT = "$lt"
    LTE = "$lte"
    IN = "$in"
    NIN = "$nin"


ORDERING_OPERATORS = frozenset({Operator.GT, Operator.GTE, Operator.LT, Operator.LTE})
LIST_OPERATORS = frozenset({Operator.IN, Operator.NIN})


@dataclass(frozen=True)
class Condition:
    """A single `field <op> value` predicate with an already-coerced value."""

    field: str
    op: Operator
    value: Any


@dataclass(frozen=True)
class AllOf:
    """Conjunction of filter clauses. An empty conjunction matches everything."""

    clauses: tuple["Filter", ...] = ()


@dataclass(frozen=True)
class AnyOf:
    """Disjunction of filter clauses."""

    clauses: tuple["Filter", ...] = ()


Filter = Condition | AllOf | AnyOf


def field_equals(field_name: str, value: Any) -> Condition:
    """Shorthand for an equality condition."""
    return Condition(field=field_name, op=Operator.EQ, value=value)


@dataclass(frozen=True)
class SortKey:
    """Sort on one field; `descending` flips the direction."""

    field: str
    descending: bool = False


@dataclass(frozen=True)
class Projection:
    """Field projection applied to returned records.

    With `include` set only those fields are returned; otherwise the `exclude`
    fields are dropped.
    """

    include: frozenset[str] = frozenset()
    exclude: frozenset[str] = frozenset()

    def apply(self, record: dict[str, Any]) -> dict[str, Any]:
        if self.include:
            return {key: value for key, value in record.items() if key in self.include}
        if self.exclude:
            return {key: value for key, value in record.items() if key not in self.exclude}
        return record


@dataclass
class StoreQuery:
    """A fully validated list query."""

    where: Filter | None = None
    sort: list[SortKey] = field(default_factory=list)
    projection: Projection | None = None
    skip: int = 0
    limit: int | None = None
    count: bool = False
