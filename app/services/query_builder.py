"""Generic list-query building shared by every collection endpoint.

A request such as ``?difficulty=easy&duration[gte]=5&sort=-price&fields=name,price&page=2``
is turned into a :class:`QueryDescriptor` by four chained steps (filter, sort,
limit_fields, paginate) and then replayed against any :class:`RecordQuery`
backend. Each step returns a new builder; nothing is executed until the caller
runs the query exposed by :attr:`QueryBuilder.query`.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Protocol

ASCENDING = 1
DESCENDING = -1

RESERVED_PARAMS = ("page", "sort", "limit", "fields")
COMPARISON_OPERATORS = {"gte": "$gte", "gt": "$gt", "lte": "$lte", "lt": "$lt"}
NATIVE_OPERATORS = frozenset(COMPARISON_OPERATORS.values())

ID_FIELD = "id"
CREATED_AT_FIELD = "createdAt"
VERSION_FIELD = "versionId"

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 100
DEFAULT_SORT: tuple[tuple[str, int], ...] = ((CREATED_AT_FIELD, DESCENDING), (ID_FIELD, ASCENDING))


@dataclass(frozen=True)
class Projection:
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()


DEFAULT_PROJECTION = Projection(exclude=(VERSION_FIELD,))


class RecordQuery(Protocol):
    """Composable, not-yet-executed query over one record collection."""

    def find(self, criteria: Mapping[str, Any]) -> "RecordQuery":
        ...

    def sort(self, spec: Sequence[tuple[str, int]]) -> "RecordQuery":
        ...

    def select(self, projection: Projection) -> "RecordQuery":
        ...

    def skip(self, n: int) -> "RecordQuery":
        ...

    def limit(self, n: int) -> "RecordQuery":
        ...

    def all(self) -> list[dict[str, Any]]:
        ...


@dataclass(frozen=True)
class QueryDescriptor:
    # None means the corresponding step was not applied.
    criteria: dict[str, Any] | None = None
    sort: tuple[tuple[str, int], ...] | None = None
    projection: Projection | None = None
    skip: int | None = None
    limit: int | None = None


def positive_int_or_default(raw: Any, default: int) -> int:
    if raw is None or isinstance(raw, bool):
        return default
    try:
        value = float(str(raw).strip())
    except (TypeError, ValueError):
        return default
    if not math.isfinite(value):
        return default
    value = int(value)
    return value if value >= 1 else default


def _rewrite_operators(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {COMPARISON_OPERATORS.get(str(op), str(op)): operand for op, operand in value.items()}
    if isinstance(value, list):
        return list(value)
    return value


def _split_csv(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        raw = ",".join(str(item) for item in raw)
    return [part.strip() for part in str(raw).split(",") if part.strip()]


def parse_sort(raw: Any) -> tuple[tuple[str, int], ...]:
    spec: list[tuple[str, int]] = []
    for token in _split_csv(raw):
        if token.startswith("-"):
            name, direction = token[1:].strip(), DESCENDING
        else:
            name, direction = token.lstrip("+").strip(), ASCENDING
        if name:
            spec.append((name, direction))
    return tuple(spec) or DEFAULT_SORT


def parse_projection(raw: Any) -> Projection:
    include: list[str] = []
    exclude: list[str] = []
    for token in _split_csv(raw):
        if token.startswith("-"):
            name = token[1:].strip()
            if name:
                exclude.append(name)
        else:
            include.append(token)
    if not include and not exclude:
        return DEFAULT_PROJECTION
    return Projection(include=tuple(include), exclude=tuple(exclude))


@dataclass(frozen=True)
class QueryBuilder:
    base_query: RecordQuery
    params: Mapping[str, Any]
    descriptor: QueryDescriptor = field(default_factory=QueryDescriptor)
    default_limit: int = DEFAULT_LIMIT

    def _with(self, **changes: Any) -> "QueryBuilder":
        return replace(self, descriptor=replace(self.descriptor, **changes))

    def filter(self) -> "QueryBuilder":
        criteria = {
            str(key): _rewrite_operators(value)
            for key, value in dict(self.params).items()
            if key not in RESERVED_PARAMS
        }
        return self._with(criteria=criteria)

    def sort(self) -> "QueryBuilder":
        raw = self.params.get("sort")
        return self._with(sort=parse_sort(raw) if raw else DEFAULT_SORT)

    def limit_fields(self) -> "QueryBuilder":
        raw = self.params.get("fields")
        return self._with(projection=parse_projection(raw) if raw else DEFAULT_PROJECTION)

    def paginate(self) -> "QueryBuilder":
        page = positive_int_or_default(self.params.get("page"), DEFAULT_PAGE)
        limit = positive_int_or_default(self.params.get("limit"), self.default_limit)
        return self._with(skip=(page - 1) * limit, limit=limit)

    @property
    def query(self) -> RecordQuery:
        d = self.descriptor
        q = self.base_query
        if d.criteria is not None:
            q = q.find(d.criteria)
        if d.sort is not None:
            q = q.sort(d.sort)
        if d.projection is not None:
            q = q.select(d.projection)
        if d.skip is not None:
            q = q.skip(d.skip)
        if d.limit is not None:
            q = q.limit(d.limit)
        return q
