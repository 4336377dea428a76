"""Pagination envelope shared by list endpoints."""

import math
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page: int
    limit: int
    total: int
    total_pages: int = Field(..., alias="totalPages")
    has_next_page: bool = Field(..., alias="hasNextPage")
    has_prev_page: bool = Field(..., alias="hasPrevPage")

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = math.ceil(total / limit) if limit else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )


class PaginatedResponse(BaseModel, Generic[T]):
    data: list[T]
    pagination: Pagination


class ErrorResponse(BaseModel):
    error: str
    code: str | None = None
