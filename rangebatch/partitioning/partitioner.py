"""Key-range partitioning.

Splits the inclusive integer domain [min_key, max_key] into contiguous,
disjoint sub-ranges whose widths differ by at most one. Earlier partitions
absorb the remainder:

    min_key=1, max_key=10, target_count=4
    span=10, base=2, remainder=2

    #0: [1, 3]   width 3
    #1: [4, 6]   width 3
    #2: [7, 8]   width 2
    #3: [9, 10]  width 2  (is_last, upper bound pinned to max_key)

When the span is smaller than the target count only `span` single-key
partitions are produced; a partition never covers zero keys.
"""

from dataclasses import dataclass
from typing import Self

from rangebatch.errors import PartitionBoundsError
from rangebatch.type_hints import PositiveInt


@dataclass(frozen=True, slots=True)
class KeyBounds:
    min_key: int
    max_key: int


@dataclass(frozen=True, slots=True)
class PartitionSpec:
    index: int
    lower_bound: int
    upper_bound: int  # inclusive
    is_last: bool = False

    @property
    def width(self) -> int:
        return self.upper_bound - self.lower_bound + 1

    def contains(self, key: int) -> bool:
        return self.lower_bound <= key <= self.upper_bound

    def reports_out_of_bounds(self, key: int) -> bool:
        """Whether this partition owns reporting a key no partition contains.

        Keys below the domain go to the first partition, keys above it to the
        last, so each is reported once per run.
        """
        if key < self.lower_bound:
            return self.index == 0
        return key > self.upper_bound and self.is_last

    @classmethod
    def empty_domain(cls, index: int = 0) -> Self:
        """Single partition standing in for an empty key domain.

        It contains no key, so running it only surfaces the lines that fall
        outside every key range: unkeyed lines and out-of-bounds keys.
        """
        return cls(index, 0, -1, is_last=True)


def _check_key(name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"{name} must be an integer key, got {value!r}"
        raise PartitionBoundsError(msg)


def partition(min_key: int, max_key: int, target_count: int) -> list[PartitionSpec]:
    _check_key("min_key", min_key)
    _check_key("max_key", max_key)
    _check_key("target_count", target_count)
    if target_count < 1:
        msg = f"target_count must be >= 1, got {target_count}"
        raise PartitionBoundsError(msg)
    if min_key > max_key:
        msg = f"min_key must be <= max_key, got [{min_key}, {max_key}]"
        raise PartitionBoundsError(msg)

    span = max_key - min_key + 1
    count = min(target_count, span)
    base, remainder = divmod(span, count)

    specs: list[PartitionSpec] = []
    lower = min_key
    for index in range(count):
        width = base + 1 if index < remainder else base
        is_last = index == count - 1
        upper = max_key if is_last else lower + width - 1
        specs.append(PartitionSpec(index, lower, upper, is_last=is_last))
        lower = upper + 1

    return specs


@dataclass(frozen=True, slots=True)
class ColumnRangePartitioner:
    grid_size: PositiveInt = 4

    def partition(
        self,
        min_key: int,
        max_key: int,
        target_count: int | None = None,
    ) -> list[PartitionSpec]:
        return partition(
            min_key,
            max_key,
            self.grid_size if target_count is None else target_count,
        )

    def partition_bounds(self, bounds: KeyBounds | None) -> list[PartitionSpec]:
        # No records at all: nothing to run.
        if bounds is None:
            return []
        return self.partition(bounds.min_key, bounds.max_key)
