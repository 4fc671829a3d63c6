"""Composable query predicates for dynamic filtering.

A ``SearchCriteria`` names a model attribute, a value and an operation.
``combine`` turns a list of them into one SQLAlchemy clause joined with AND,
so callers only append the criteria a request actually supplied.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from sqlalchemy import and_, func
from sqlalchemy.sql.elements import ColumnElement

LIKE_ESCAPE = "\\"


class SearchOperation(str, Enum):
    EQUAL = "equal"
    LIKE = "like"
    IN = "in"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


def _escape_like(value: str) -> str:
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


@dataclass(frozen=True)
class SearchCriteria:
    key: str
    value: Any
    operation: SearchOperation = SearchOperation.EQUAL

    def to_clause(self, model) -> ColumnElement:
        column = getattr(model, self.key)

        if self.operation is SearchOperation.EQUAL:
            return column == self.value
        if self.operation is SearchOperation.LIKE:
            pattern = f"%{_escape_like(str(self.value).lower())}%"
            return func.lower(column).like(pattern, escape=LIKE_ESCAPE)
        if self.operation is SearchOperation.IN:
            return column.in_(list(self.value))
        if self.operation is SearchOperation.GREATER_THAN:
            return column > self.value
        if self.operation is SearchOperation.LESS_THAN:
            return column < self.value

        raise ValueError(f"Unsupported search operation: {self.operation}")


def combine(model, criteria: Iterable[SearchCriteria]) -> Optional[ColumnElement]:
    """AND together the clauses of ``criteria``; ``None`` when there are none."""
    clauses = [criterion.to_clause(model) for criterion in criteria]
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return and_(*clauses)
