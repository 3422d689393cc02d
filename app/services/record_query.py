from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic.alias_generators import to_camel, to_snake
from sqlalchemy import JSON, and_, asc, desc, false
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Query

from app.core.errors import AppError
from app.services.query_builder import ASCENDING, ID_FIELD, Projection

# Largest OFFSET/LIMIT a 64-bit SQL integer can carry.
MAX_SQL_INT = 2**63 - 1


def _bad_filter_value(column_key: str, value: Any) -> AppError:
    return AppError(f"Invalid {to_camel(column_key)}: {value}.", 400)


def _coerce_bool_filter_value(column_key: str, value):
    if isinstance(value, bool):
        return value
    text = str(value or "").strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    raise _bad_filter_value(column_key, value)


def _coerce_number_filter_value(column_key: str, value, python_type):
    if value is None:
        return None
    if python_type in {int, float} and isinstance(value, (int, float)):
        return python_type(value)
    if python_type is Decimal and isinstance(value, Decimal):
        return value
    text = str(value).strip()
    if not text:
        raise _bad_filter_value(column_key, value)
    try:
        if python_type is int:
            return int(float(text)) if "." in text or "e" in text.lower() else int(text)
        if python_type is float:
            return float(text)
        if python_type is Decimal:
            return Decimal(text)
        return python_type(text)
    except (ValueError, TypeError, InvalidOperation):
        raise _bad_filter_value(column_key, value)


def _coerce_date_filter_value(column_key: str, value):
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    text = str(value or "").strip()
    if not text:
        raise _bad_filter_value(column_key, value)
    try:
        if "T" in text or " " in text:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    except ValueError:
        raise _bad_filter_value(column_key, value)


def _coerce_datetime_filter_value(column_key: str, value):
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value or "").strip()
        if not text:
            raise _bad_filter_value(column_key, value)
        try:
            if "T" not in text and " " not in text and len(text) == 10:
                # Date-only value against a timestamp column means start of that day.
                parsed = datetime.combine(date.fromisoformat(text), datetime.min.time())
            else:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise _bad_filter_value(column_key, value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _column_python_type(column):
    try:
        return column.property.columns[0].type.python_type
    except Exception:
        return None


def _coerce_filter_value(column, value):
    python_type = _column_python_type(column)
    if python_type is None:
        return value
    if python_type is uuid.UUID:
        if isinstance(value, uuid.UUID):
            return value
        try:
            return uuid.UUID(str(value or "").strip())
        except ValueError:
            raise _bad_filter_value(column.key, value)
    if python_type is bool:
        return _coerce_bool_filter_value(column.key, value)
    if python_type in {int, float, Decimal}:
        return _coerce_number_filter_value(column.key, value, python_type)
    if python_type is date:
        return _coerce_date_filter_value(column.key, value)
    if python_type is datetime:
        return _coerce_datetime_filter_value(column.key, value)
    return value


def _is_date_only_filter_literal(raw_value) -> bool:
    if isinstance(raw_value, date) and not isinstance(raw_value, datetime):
        return True
    if not isinstance(raw_value, str):
        return False
    text = raw_value.strip()
    if not text or "T" in text or " " in text:
        return False
    try:
        date.fromisoformat(text)
        return True
    except ValueError:
        return False


def _serialize_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _serialize_value(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize_value(item) for item in value]
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    return value


def _column_keys(model) -> list[str]:
    return [column.key for column in sa_inspect(model).columns]


def resolve_field(model, field_name: str) -> str | None:
    """Map an API field name (``ratingsAverage``, ``_id``) to a visible column key."""
    name = str(field_name or "").strip()
    if name == "_id":
        name = ID_FIELD
    key = to_snake(name)
    if key in getattr(model, "__hidden_fields__", ()):
        return None
    if key not in _column_keys(model):
        return None
    return key


def _is_structured(column) -> bool:
    return isinstance(column.property.columns[0].type, JSON)


def _equals(column, raw_value):
    if raw_value is None:
        return column.is_(None)
    value = _coerce_filter_value(column, raw_value)
    if _column_python_type(column) is datetime and _is_date_only_filter_literal(raw_value):
        return (column >= value) & (column < value + timedelta(days=1))
    return column == value


def _compare(column, operator: str, raw_value):
    value = _coerce_filter_value(column, raw_value)
    if operator == "$gte":
        return column >= value
    if operator == "$gt":
        return column > value
    if operator == "$lte":
        return column <= value
    if operator == "$lt":
        return column < value
    return None


def _condition(column, condition):
    if isinstance(condition, Mapping):
        clauses = []
        for operator, operand in condition.items():
            clause = _compare(column, str(operator), operand)
            if clause is None:
                return false()
            clauses.append(clause)
        return and_(*clauses) if clauses else false()
    if isinstance(condition, (list, tuple)):
        return column.in_([_coerce_filter_value(column, item) for item in condition])
    return _equals(column, condition)


def to_document(row: Any, projection: Projection | None = None) -> dict[str, Any]:
    model = type(row)
    hidden = set(getattr(model, "__hidden_fields__", ()))
    keys = [key for key in _column_keys(model) if key not in hidden]
    if projection is not None:
        if projection.include:
            wanted = {resolve_field(model, name) for name in projection.include}
            wanted.add(ID_FIELD)
            keys = [key for key in keys if key in wanted]
        if projection.exclude:
            dropped = {resolve_field(model, name) for name in projection.exclude}
            keys = [key for key in keys if key not in dropped]
    return {to_camel(key): _serialize_value(getattr(row, key)) for key in keys}


class SqlAlchemyRecordQuery:
    """RecordQuery over a SQLAlchemy ``Query``; every call returns a new instance."""

    def __init__(self, model, query: Query, *, projection: Projection | None = None, past_end: bool = False):
        self.model = model
        self._query = query
        self._projection = projection
        self._past_end = past_end

    def _clone(
        self,
        *,
        query: Query | None = None,
        projection: Projection | None = None,
        past_end: bool | None = None,
    ) -> "SqlAlchemyRecordQuery":
        return SqlAlchemyRecordQuery(
            self.model,
            self._query if query is None else query,
            projection=self._projection if projection is None else projection,
            past_end=self._past_end if past_end is None else past_end,
        )

    def find(self, criteria: Mapping[str, Any]) -> "SqlAlchemyRecordQuery":
        q = self._query
        for field_name, condition in criteria.items():
            key = resolve_field(self.model, field_name)
            column = getattr(self.model, key) if key else None
            if column is None or _is_structured(column):
                # Unknown fields match nothing rather than failing the request.
                q = q.filter(false())
                continue
            q = q.filter(_condition(column, condition))
        return self._clone(query=q)

    def sort(self, spec: Sequence[tuple[str, int]]) -> "SqlAlchemyRecordQuery":
        q = self._query
        for field_name, direction in spec:
            key = resolve_field(self.model, field_name)
            if key is None:
                continue
            column = getattr(self.model, key)
            if _is_structured(column):
                continue
            q = q.order_by(asc(column) if direction == ASCENDING else desc(column))
        return self._clone(query=q)

    def select(self, projection: Projection) -> "SqlAlchemyRecordQuery":
        return self._clone(projection=projection)

    def skip(self, n: int) -> "SqlAlchemyRecordQuery":
        n = max(int(n), 0)
        if n > MAX_SQL_INT:
            # No table can hold that many rows, so the page is empty.
            return self._clone(past_end=True)
        return self._clone(query=self._query.offset(n))

    def limit(self, n: int) -> "SqlAlchemyRecordQuery":
        return self._clone(query=self._query.limit(min(max(int(n), 0), MAX_SQL_INT)))

    def rows(self) -> list[Any]:
        if self._past_end:
            return []
        return self._query.all()

    def count(self) -> int:
        return self._query.limit(None).offset(None).order_by(None).count()

    def all(self) -> list[dict[str, Any]]:
        return [to_document(row, self._projection) for row in self.rows()]
