"""Keyset (cursor) pagination for background sweeps."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from sqlalchemy.orm import InstrumentedAttribute, Query

T = TypeVar("T")


@dataclass
class CursorPage(Generic[T]):
    """One page of rows plus the key to resume from, or None on the last page."""

    items: list[T] = field(default_factory=list)
    next_cursor: Any | None = None


def cursor_paginate(
    query: Query,  # type: ignore[type-arg]
    key_column: InstrumentedAttribute[Any],
    cursor: Any | None,
    limit: int,
    key_of: Callable[[T], Any],
) -> CursorPage[T]:
    """Load the rows strictly after ``cursor`` ordered by ``key_column``.

    One extra row is fetched to tell whether another page exists, so the
    caller never needs a COUNT or an OFFSET.
    """
    if limit < 1:
        raise ValueError("limit must be positive")

    if cursor is not None:
        query = query.filter(key_column > cursor)
    rows = query.order_by(key_column.asc()).limit(limit + 1).all()

    if len(rows) > limit:
        items = rows[:limit]
        return CursorPage(items=items, next_cursor=key_of(items[-1]))
    return CursorPage(items=rows, next_cursor=None)
