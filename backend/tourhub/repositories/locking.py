"""Row locking and optimistic compare-and-set helpers for workflow writes.

These helpers never commit. The workflow wraps load, update and ledger
append in a single transaction and commits once.
"""

from __future__ import annotations

from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

ModelT = TypeVar("ModelT")


def lock_by_id(db: Session, model: type[ModelT], entity_id: UUID) -> ModelT | None:
    """Load a row with ``SELECT ... FOR UPDATE`` (a no-op on SQLite)."""
    return (
        db.query(model)
        .filter(model.id == entity_id)  # type: ignore[attr-defined]
        .with_for_update()
        .populate_existing()
        .first()
    )


def compare_and_set(
    db: Session,
    model: type[Any],
    entity_id: UUID,
    column: str,
    expected: Any,
    values: dict[str, Any],
) -> bool:
    """Apply ``values`` only if ``column`` still holds ``expected``.

    Returns False when another transaction moved the row first.
    """
    stmt = (
        update(model)
        .where(model.id == entity_id, getattr(model, column) == expected)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    return bool(result.rowcount)


def delete_if(
    db: Session,
    model: type[Any],
    entity_id: UUID,
    column: str,
    expected: Any,
) -> bool:
    """Delete the row only if ``column`` still holds ``expected``."""
    stmt = (
        delete(model)
        .where(model.id == entity_id, getattr(model, column) == expected)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    return bool(result.rowcount)
