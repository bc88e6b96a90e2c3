"""Store-agnostic query predicates.

The engine describes *what* it wants from the content store with a small
predicate tree.  Each node compiles to the Elasticsearch query DSL via
``to_es()`` and can also be evaluated directly against a document with
``matches()``.

Counts such as likes and comments are stored denormalized on each post
(``like_count``, ``comment_count``), so "at least N likes" is a ``Range``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any


def _es_value(value):
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class Predicate(ABC):
    @abstractmethod
    def to_es(self) -> dict:
        """Compile to the Elasticsearch query DSL."""
        ...

    @abstractmethod
    def matches(self, doc: dict) -> bool:
        """Evaluate against a plain document dict."""
        ...


@dataclass(frozen=True)
class Term(Predicate):
    """Exact match on a field.  For list fields, any element may match."""

    field: str
    value: Any

    def to_es(self) -> dict:
        return {"term": {self.field: _es_value(self.value)}}

    def matches(self, doc: dict) -> bool:
        actual = doc.get(self.field)
        if isinstance(actual, (list, tuple, set)):
            return self.value in actual
        return actual == self.value


@dataclass(frozen=True, init=False)
class In(Predicate):
    """Set membership.  For list fields, matches when the sets intersect."""

    field: str
    values: tuple

    def __init__(self, field: str, values):
        object.__setattr__(self, "field", field)
        object.__setattr__(self, "values", tuple(values))

    def to_es(self) -> dict:
        return {"terms": {self.field: [_es_value(v) for v in self.values]}}

    def matches(self, doc: dict) -> bool:
        actual = doc.get(self.field)
        if isinstance(actual, (list, tuple, set)):
            return any(item in self.values for item in actual)
        return actual in self.values


@dataclass(frozen=True)
class Not(Predicate):
    inner: Predicate

    def to_es(self) -> dict:
        return {"bool": {"must_not": [self.inner.to_es()]}}

    def matches(self, doc: dict) -> bool:
        return not self.inner.matches(doc)


@dataclass(frozen=True)
class Range(Predicate):
    """Bounded range over a date or numeric field.  Missing values never match."""

    field: str
    gte: Any = None
    gt: Any = None
    lte: Any = None
    lt: Any = None

    def _bounds(self) -> dict:
        return {
            op: bound
            for op, bound in (("gte", self.gte), ("gt", self.gt), ("lte", self.lte), ("lt", self.lt))
            if bound is not None
        }

    def to_es(self) -> dict:
        return {"range": {self.field: {op: _es_value(b) for op, b in self._bounds().items()}}}

    def matches(self, doc: dict) -> bool:
        actual = doc.get(self.field)
        if actual is None:
            return False
        checks = {
            "gte": lambda b: actual >= b,
            "gt": lambda b: actual > b,
            "lte": lambda b: actual <= b,
            "lt": lambda b: actual < b,
        }
        return all(checks[op](bound) for op, bound in self._bounds().items())


@dataclass(frozen=True, init=False)
class And(Predicate):
    clauses: tuple

    def __init__(self, *clauses: Predicate):
        object.__setattr__(self, "clauses", tuple(c for c in clauses if c is not None))

    def to_es(self) -> dict:
        return {"bool": {"filter": [c.to_es() for c in self.clauses]}}

    def matches(self, doc: dict) -> bool:
        return all(c.matches(doc) for c in self.clauses)


@dataclass(frozen=True, init=False)
class Or(Predicate):
    """Disjunction.  An ``Or`` with no clauses matches nothing."""

    clauses: tuple

    def __init__(self, *clauses: Predicate):
        object.__setattr__(self, "clauses", tuple(c for c in clauses if c is not None))

    def to_es(self) -> dict:
        if not self.clauses:
            return {"match_none": {}}
        return {
            "bool": {
                "should": [c.to_es() for c in self.clauses],
                "minimum_should_match": 1,
            }
        }

    def matches(self, doc: dict) -> bool:
        return any(c.matches(doc) for c in self.clauses)


@dataclass(frozen=True)
class Sort:
    field: str
    descending: bool = True

    def to_es(self) -> dict:
        return {self.field: "desc" if self.descending else "asc"}

