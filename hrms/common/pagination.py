"""Generic pagination utilities for SQLAlchemy async queries."""


import math
from typing import Any, Generic, Optional, Sequence, TypeVar

from fastapi import Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from hrms.common.filters import apply_sorting

T = TypeVar("T")


# ── FastAPI dependency ──────────────────────────────────────────────

class PaginationParams:
    """Inject via ``Depends(PaginationParams)`` on any list endpoint."""

    def __init__(
        self,
        page: int = Query(default=1, ge=1, description="Page number (1-indexed)"),
        limit: int = Query(
            default=DEFAULT_PAGE_SIZE,
            ge=1,
            le=MAX_PAGE_SIZE,
            description=f"Items per page (max {MAX_PAGE_SIZE})",
        ),
        sort: Optional[str] = Query(
            default=None,
            description='Sort field; prefix "-" for DESC (e.g. "-clock_in")',
        ),
    ) -> None:
        self.page = page
        self.limit = limit
        self.sort = sort

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


# ── Pydantic response models ───────────────────────────────────────

class PaginationMeta(BaseModel):
    """Metadata block embedded in every paginated response."""

    model_config = ConfigDict(populate_by_name=True)

    total: int
    page: int
    limit: int
    total_pages: int = Field(serialization_alias="totalPages")
    has_next: bool = Field(serialization_alias="hasNextPage")
    has_prev: bool = Field(serialization_alias="hasPreviousPage")


class PaginatedResponse(BaseModel, Generic[T]):
    """Page of rows plus its meta block."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: Sequence[Any]
    meta: PaginationMeta

    def envelope(self, key: str, items: Optional[Sequence[Any]] = None) -> dict[str, Any]:
        """Render as ``{key: [...], "pagination": {...}}`` for the response body."""
        rows = self.data if items is None else items
        return {
            key: [
                r.model_dump(mode="json") if isinstance(r, BaseModel) else r
                for r in rows
            ],
            "pagination": self.meta.model_dump(by_alias=True),
        }


# ── SQLAlchemy helper ───────────────────────────────────────────────

async def paginate(
    session: AsyncSession,
    query: Select,
    params: PaginationParams,
    *,
    model: Any = None,
    options: Sequence[Any] = (),
) -> PaginatedResponse:
    """
    Execute *query* with LIMIT/OFFSET derived from *params* and return
    a ``PaginatedResponse`` with data + meta.

    Loader *options* are applied to the row query only, never to the count.
    """
    if params.sort and model is not None:
        query = apply_sorting(query, model, params.sort)

    # ── total count (strip ORDER BY for efficiency) ─────────────────
    count_q = select(func.count()).select_from(query.order_by(None).subquery())
    total: int = (await session.execute(count_q)).scalar_one()

    # ── paginated rows ──────────────────────────────────────────────
    rows_q = query.offset(params.offset).limit(params.limit)
    if options:
        rows_q = rows_q.options(*options)
    rows = (await session.execute(rows_q)).scalars().unique().all()

    total_pages = math.ceil(total / params.limit) if total else 0

    return PaginatedResponse(
        data=rows,
        meta=PaginationMeta(
            total=total,
            page=params.page,
            limit=params.limit,
            total_pages=total_pages,
            has_next=params.page < total_pages,
            has_prev=params.page > 1,
        ),
    )
