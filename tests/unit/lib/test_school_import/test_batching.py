"""Unit tests for batch planning."""

import pytest

from schools_api.lib.school_import import SchoolRow, plan_batches


def _rows(count: int) -> list[SchoolRow]:
    return [SchoolRow(name=f"School {i}", district_nces_id=str(i % 3)) for i in range(count)]


class TestPlanBatches:
    """Tests for plan_batches."""

    def test_splits_into_consecutive_batches(self) -> None:
        batches = plan_batches(_rows(7), 3)

        assert [len(b.schools) for b in batches] == [3, 3, 1]
        assert [b.batch_index for b in batches] == [0, 1, 2]
        assert all(b.total_batches == 3 for b in batches)
        assert [s.name for b in batches for s in b.schools] == [f"School {i}" for i in range(7)]

    def test_only_last_batch_flagged(self) -> None:
        batches = plan_batches(_rows(4), 2)
        assert [b.is_last_batch for b in batches] == [False, True]

    def test_districts_scoped_to_batch(self) -> None:
        batches = plan_batches(_rows(4), 2)
        assert [d.nces_id for d in batches[0].districts] == ["0", "1"]
        assert [d.nces_id for d in batches[1].districts] == ["2", "0"]

    def test_empty_rows(self) -> None:
        assert plan_batches([], 10) == []

    @pytest.mark.parametrize("batch_size", [0, -1])
    def test_non_positive_batch_size_raises(self, batch_size: int) -> None:
        with pytest.raises(ValueError, match="batch_size"):
            plan_batches(_rows(1), batch_size)
