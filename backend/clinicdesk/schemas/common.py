"""Shared response envelopes."""

from typing import Generic, Sequence, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """One page of a list endpoint.

    `total` counts every row matching the filters, not just this page,
    e.g. ``{"items": [...], "total": 150, "limit": 50, "offset": 100}``.
    """
    items: list[T]
    total: int
    limit: int
    offset: int

    @classmethod
    def from_rows(cls, rows: Sequence[T], limit: int, offset: int) -> "PaginatedResponse[T]":
        """Paginate rows already filtered in memory (derived-field filters)."""
        return cls(items=list(rows[offset:offset + limit]), total=len(rows), limit=limit, offset=offset)
