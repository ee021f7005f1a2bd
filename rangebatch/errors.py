"""Error taxonomy for partitioned batch runs.

- MappingError: one input line could not be turned into a Record.
  Recovered per record or fatal to its partition, depending on policy.
- KeyOutOfBoundsError: a well-formed record whose key lies outside the job's
  key bounds. Counted, never fatal.
- PersistenceError: a chunk flush failed. Always fatal to its partition.
- PartitionBoundsError: invalid input to the partitioner. Fatal to the job
  before any work starts.
- SchedulerCapacityError: the worker pool admitted more work than it has
  slots for. Indicates a bug, never an expected runtime condition.
"""


class RangeBatchError(Exception):
    """Base class for all rangebatch errors."""


class MappingError(RangeBatchError):
    def __init__(self, line_number: int, raw_line: str, reason: str) -> None:
        self.line_number = line_number
        self.raw_line = raw_line
        self.reason = reason
        super().__init__(f"line {line_number}: {reason} (raw={raw_line!r})")


class KeyOutOfBoundsError(MappingError):
    def __init__(self, line_number: int, raw_line: str, key: int) -> None:
        self.key = key
        super().__init__(line_number, raw_line, f"id {key} is outside the job key bounds")


class PersistenceError(RangeBatchError):
    def __init__(self, partition_index: int, chunk_index: int, reason: str) -> None:
        self.partition_index = partition_index
        self.chunk_index = chunk_index
        super().__init__(
            f"partition {partition_index} chunk {chunk_index}: {reason}",
        )


class PartitionBoundsError(RangeBatchError, ValueError):
    pass


class SchedulerCapacityError(RangeBatchError, RuntimeError):
    pass
