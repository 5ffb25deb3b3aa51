"""Record store primitives used by the lifecycle managers.

Every status transition goes through :func:`compare_and_set_status`, a single
``UPDATE ... WHERE id = :id AND status = :expected`` statement. A lost race
shows up as a zero row count rather than an overwritten record.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import logging
from typing import Any, TypeVar

from sqlalchemy import Select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


@contextmanager
def store_operation(db: Session, operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("Record store failure during %s", operation)
        db.rollback()
        raise PersistenceError(details={"operation": operation}) from exc


def get_record(db: Session, model: type[ModelT], record_id: str, *, fresh: bool = False) -> ModelT | None:
    with store_operation(db, f"get {model.__name__}"):
        if fresh:
            return db.get(model, record_id, populate_existing=True)
        return db.get(model, record_id)


def fetch_all(db: Session, statement: Select) -> list[Any]:
    with store_operation(db, "query"):
        return list(db.execute(statement).scalars())


def fetch_scalar(db: Session, statement: Select) -> Any:
    with store_operation(db, "query"):
        return db.execute(statement).scalar_one()


def insert_record(db: Session, record: ModelT) -> ModelT:
    with store_operation(db, f"insert {type(record).__name__}"):
        db.add(record)
        db.flush()
    return record


def compare_and_set_status(
    db: Session,
    model: type[ModelT],
    record_id: str,
    *,
    expected: Any,
    values: dict[str, Any],
) -> bool:
    """Apply ``values`` only if the record's status still equals ``expected``.

    Returns ``True`` when this caller won the update.
    """
    statement = (
        update(model)
        .where(model.id == record_id, model.status == expected)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    with store_operation(db, f"conditional update {model.__name__}"):
        result = db.execute(statement)
    return result.rowcount == 1


def commit(db: Session) -> None:
    with store_operation(db, "commit"):
        db.commit()
