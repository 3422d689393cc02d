from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import AppError
from app.services.query_builder import QueryBuilder
from app.services.record_query import SqlAlchemyRecordQuery, to_document

logger = logging.getLogger(__name__)

RowHook = Callable[[Session, Any], None]
Populate = Callable[[Session, Any], Mapping[str, Any]]


def parse_id_or_400(raw: Any, field_name: str = "id") -> uuid.UUID:
    if isinstance(raw, uuid.UUID):
        return raw
    try:
        return uuid.UUID(str(raw or "").strip())
    except ValueError:
        raise AppError(f"Invalid {field_name}: {raw}.", 400)


def list_query(db: Session, model, params: Mapping[str, Any], base_filter: Mapping[str, Any] | None = None) -> QueryBuilder:
    query = model.default_scope(db.query(model))
    if base_filter:
        query = query.filter_by(**dict(base_filter))
    return (
        QueryBuilder(SqlAlchemyRecordQuery(model, query), params, default_limit=settings.DEFAULT_PAGE_LIMIT)
        .filter()
        .sort()
        .limit_fields()
        .paginate()
    )


def get_all(db: Session, model, params: Mapping[str, Any], *, base_filter: Mapping[str, Any] | None = None) -> dict[str, Any]:
    docs = list_query(db, model, params, base_filter).query.all()
    return {"status": "success", "results": len(docs), "data": {"data": docs}}


def find_one_or_404(db: Session, model, id: Any):
    row = model.default_scope(db.query(model)).filter(model.id == parse_id_or_400(id)).first()
    if row is None:
        raise AppError("No document found with that ID", 404)
    return row


def get_one(db: Session, model, id: Any, *, populate: Populate | None = None) -> dict[str, Any]:
    row = find_one_or_404(db, model, id)
    doc = to_document(row)
    if populate is not None:
        doc.update(populate(db, row))
    return {"status": "success", "data": {"data": doc}}


def _apply_changes(row: Any, changes: Mapping[str, Any]) -> None:
    for key, value in changes.items():
        if not hasattr(type(row), key):
            raise AppError(f"Unknown field: {to_camel(key)}.", 400)
        setattr(row, key, value)


def create_one(db: Session, model, values: Mapping[str, Any], *, after_flush: RowHook | None = None) -> dict[str, Any]:
    row = model()
    _apply_changes(row, values)
    db.add(row)
    db.flush()
    if after_flush is not None:
        after_flush(db, row)
    db.commit()
    db.refresh(row)
    logger.info("created %s id=%s", model.__tablename__, row.id)
    return {"status": "success", "data": {"data": to_document(row)}}


def update_one(
    db: Session,
    model,
    id: Any,
    changes: Mapping[str, Any],
    *,
    after_flush: RowHook | None = None,
) -> dict[str, Any]:
    row = find_one_or_404(db, model, id)
    _apply_changes(row, changes)
    db.add(row)
    db.flush()
    if after_flush is not None:
        after_flush(db, row)
    db.commit()
    db.refresh(row)
    return {"status": "success", "data": {"data": to_document(row)}}


def delete_one(db: Session, model, id: Any, *, after_flush: RowHook | None = None) -> None:
    row = find_one_or_404(db, model, id)
    db.delete(row)
    db.flush()
    if after_flush is not None:
        after_flush(db, row)
    db.commit()
    logger.info("deleted %s id=%s", model.__tablename__, id)
