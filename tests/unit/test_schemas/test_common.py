"""Unit tests for common Pydantic schemas."""

import pytest
from pydantic import ValidationError

from schools_api.schemas.common import PaginationMeta, PaginationParams


class TestPaginationParams:
    """Tests for PaginationParams validation."""

    def test_defaults(self) -> None:
        params = PaginationParams()
        assert params.page == 1
        assert params.page_size == 20

    def test_page_zero_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PaginationParams(page=0)

    def test_page_size_over_max_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PaginationParams(page_size=101)


class TestPaginationMeta:
    """Tests for PaginationMeta."""

    def test_construction(self) -> None:
        meta = PaginationMeta(total=100, page=2, page_size=20, total_pages=5)
        assert meta.total_pages == 5
