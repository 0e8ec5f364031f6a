"""Page request clamping and list metadata."""

from __future__ import annotations

import pytest

from app.pagination import PageRequest, build_metadata
from app.settings import PAGE_SIZE_MAX


@pytest.mark.parametrize(
    "page, limit, expected",
    [
        (1, 10, (1, 10)),
        (0, 10, (1, 10)),
        (-3, 10, (1, 10)),
        (2, 0, (2, 20)),
        (None, None, (1, 20)),
        (1, 500, (1, PAGE_SIZE_MAX)),
    ],
)
def test_page_request_clamps(page, limit, expected):
    request = PageRequest.of(page, limit, default_limit=20)
    assert (request.page, request.limit) == expected


def test_offset():
    assert PageRequest.of(3, 10, 10).offset == 20


def test_metadata_middle_page():
    metadata = build_metadata(page=2, limit=10, total_items=25)
    assert metadata.total_pages == 3
    assert metadata.has_next_page is True
    assert metadata.has_previous_page is True


def test_metadata_last_page():
    metadata = build_metadata(page=3, limit=10, total_items=25)
    assert metadata.has_next_page is False


def test_metadata_empty():
    metadata = build_metadata(page=1, limit=10, total_items=0)
    assert metadata.total_pages == 0
    assert metadata.has_next_page is False
    assert metadata.has_previous_page is False


def test_metadata_serializes_camel_case():
    metadata = build_metadata(page=1, limit=5, total_items=5)
    assert metadata.model_dump(by_alias=True) == {
        "currentPage": 1,
        "itemsPerPage": 5,
        "totalItems": 5,
        "totalPages": 1,
        "hasNextPage": False,
        "hasPreviousPage": False,
    }


def test_page_below_one_is_treated_as_one(client):
    response = client.get("/blogs", params={"page": 0})
    assert response.status_code == 200
    assert response.json()["metadata"]["currentPage"] == 1
