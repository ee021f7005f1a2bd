"""Tests for key-range partitioning."""

import pytest

from rangebatch.errors import PartitionBoundsError
from rangebatch.partitioning import ColumnRangePartitioner, KeyBounds, PartitionSpec, partition


def _ranges(specs: list[PartitionSpec]) -> list[tuple[int, int]]:
    return [(s.lower_bound, s.upper_bound) for s in specs]


class TestPartition:
    """Test cases for the partition function."""

    def test_remainder_goes_to_earlier_partitions(self) -> None:
        specs = partition(1, 10, 4)
        assert _ranges(specs) == [(1, 3), (4, 6), (7, 8), (9, 10)]
        assert [s.width for s in specs] == [3, 3, 2, 2]
        assert [s.index for s in specs] == [0, 1, 2, 3]
        assert [s.is_last for s in specs] == [False, False, False, True]

    def test_single_key_domain_emits_one_partition(self) -> None:
        specs = partition(5, 5, 4)
        assert specs == [PartitionSpec(0, 5, 5, is_last=True)]

    def test_span_smaller_than_target_never_emits_empty_partitions(self) -> None:
        specs = partition(10, 12, 8)
        assert _ranges(specs) == [(10, 10), (11, 11), (12, 12)]
        assert all(s.width == 1 for s in specs)

    def test_single_target_covers_whole_domain(self) -> None:
        assert _ranges(partition(-3, 1000, 1)) == [(-3, 1000)]

    def test_negative_keys(self) -> None:
        assert _ranges(partition(-5, 4, 3)) == [(-5, -2), (-1, 1), (2, 4)]

    @pytest.mark.parametrize("min_key", [-7, 0, 1, 13])
    @pytest.mark.parametrize("span", [1, 2, 3, 7, 10, 64, 101])
    @pytest.mark.parametrize("target_count", [1, 2, 3, 4, 5, 16, 200])
    def test_coverage_and_fairness(self, min_key: int, span: int, target_count: int) -> None:
        max_key = min_key + span - 1
        specs = partition(min_key, max_key, target_count)

        # Contiguous, disjoint, exactly covering [min_key, max_key].
        assert specs[0].lower_bound == min_key
        assert specs[-1].upper_bound == max_key
        assert specs[-1].is_last
        for prev, nxt in zip(specs, specs[1:], strict=False):
            assert nxt.lower_bound == prev.upper_bound + 1
        assert sum(s.width for s in specs) == span
        assert all(s.lower_bound <= s.upper_bound for s in specs)

        widths = [s.width for s in specs]
        assert max(widths) - min(widths) <= 1
        assert len(specs) == min(span, target_count)

    def test_repartition_is_deterministic(self) -> None:
        assert partition(3, 977, 7) == partition(3, 977, 7)

    @pytest.mark.parametrize(
        ("min_key", "max_key", "target_count"),
        [
            (10, 1, 4),
            (1, 10, 0),
            (1, 10, -2),
            ("1", 10, 4),
            (1, 10.5, 4),
            (True, 10, 4),
        ],
    )
    def test_invalid_input_raises(self, min_key: object, max_key: object, target_count: object) -> None:
        with pytest.raises(PartitionBoundsError):
            partition(min_key, max_key, target_count)  # type: ignore[arg-type]


class TestColumnRangePartitioner:
    """Test cases for ColumnRangePartitioner."""

    def test_uses_configured_grid_size(self) -> None:
        partitioner = ColumnRangePartitioner(grid_size=2)
        assert _ranges(partitioner.partition(1, 10)) == [(1, 5), (6, 10)]

    def test_explicit_target_count_overrides_grid_size(self) -> None:
        partitioner = ColumnRangePartitioner(grid_size=2)
        assert len(partitioner.partition(1, 10, target_count=5)) == 5

    def test_empty_domain_yields_no_partitions(self) -> None:
        assert ColumnRangePartitioner().partition_bounds(None) == []

    def test_partition_bounds(self) -> None:
        specs = ColumnRangePartitioner(grid_size=4).partition_bounds(KeyBounds(1, 10))
        assert _ranges(specs) == [(1, 3), (4, 6), (7, 8), (9, 10)]
