from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Query

from . import schemas
from .settings import PAGE_SIZE_MAX


@dataclass(frozen=True)
class PageRequest:
    """1-based page number plus page size, already clamped to sane bounds."""

    page: int
    limit: int

    @classmethod
    def of(cls, page: int | None, limit: int | None, default_limit: int) -> "PageRequest":
        page = page if page and page >= 1 else 1
        limit = limit if limit and limit >= 1 else default_limit
        return cls(page=page, limit=min(limit, PAGE_SIZE_MAX))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def build_metadata(page: int, limit: int, total_items: int) -> schemas.PaginationMetadata:
    """
    Compute list metadata.

    totalPages is ceil(totalItems / limit), so an empty result has zero pages
    and no next page.
    """
    total_pages = math.ceil(total_items / limit) if limit > 0 else 0
    return schemas.PaginationMetadata(
        current_page=page,
        items_per_page=limit,
        total_items=total_items,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_previous_page=page > 1,
    )


def count_rows(query: Query) -> int:
    """Count the rows a query would return, ignoring any ORDER BY."""
    return query.order_by(None).count()


def paginate(query: Query, page_request: PageRequest) -> tuple[list[Any], schemas.PaginationMetadata]:
    """
    Apply LIMIT/OFFSET to an ordered query and count the unpaged total.

    Returns the page of rows and the metadata describing it.
    """
    total_items = count_rows(query)
    rows = query.offset(page_request.offset).limit(page_request.limit).all()
    return rows, build_metadata(page_request.page, page_request.limit, total_items)
