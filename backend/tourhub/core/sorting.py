"""Ordering helpers shared by list endpoints."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import asc, desc
from sqlalchemy.orm import Query

from tourhub.core.database import Base


def parse_order_by(order_by: str | None, default_direction: str = "desc") -> tuple[str | None, str]:
    """Split ``"field:direction"`` into its parts.

    A missing or unknown direction falls back to ``default_direction``.
    """
    if not order_by:
        return None, default_direction
    field, _, direction = order_by.partition(":")
    if direction not in ("asc", "desc"):
        direction = default_direction
    return field or None, direction


def apply_order_by(
    query: Query,  # type: ignore[type-arg]
    model: type[Base],
    order_by: str | None,
    *,
    allowed_fields: Iterable[str] | None = None,
    default_field: str = "created_at",
    default_direction: str = "desc",
) -> Query:  # type: ignore[type-arg]
    """Order ``query`` by a client-supplied sort key.

    Only columns in ``allowed_fields`` (or, when omitted, any mapped
    attribute of ``model``) are honoured. Anything else silently uses
    the default ordering. ``id`` is appended as a tie-breaker so that
    pagination is stable.
    """
    field, direction = parse_order_by(order_by, default_direction)
    allowed = set(allowed_fields) if allowed_fields is not None else None

    if field is None or not hasattr(model, field) or (allowed is not None and field not in allowed):
        field, direction = default_field, default_direction

    order_func = asc if direction == "asc" else desc
    return query.order_by(order_func(getattr(model, field)), order_func(model.id))  # type: ignore[attr-defined]
