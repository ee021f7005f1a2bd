from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from rangebatch.errors import MappingError
from rangebatch.partitioning.partitioner import PartitionSpec

# Shared field names to avoid magic strings elsewhere.
# Order matches the columns of the input file.
ID_FIELD = "id"
FIELD_NAMES: tuple[str, ...] = (
    ID_FIELD,
    "first_name",
    "last_name",
    "email",
    "gender",
    "contact_no",
    "country",
    "dob",
)


@dataclass(frozen=True, slots=True)
class Record:
    id: int
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    gender: str = ""
    contact_no: str = ""
    country: str = ""
    dob: str = ""
    # Diagnostics only, never persisted.
    line_number: int | None = field(default=None, compare=False)

    def to_row(self) -> dict[str, int | str]:
        return {name: getattr(self, name) for name in FIELD_NAMES}


@dataclass(frozen=True, slots=True)
class ChunkContext:
    partition_index: int
    chunk_index: int


@runtime_checkable
class RecordMapper(Protocol):
    # Raises MappingError when the key cannot be parsed.
    def map_line(self, line: str, line_number: int) -> Record: ...


@runtime_checkable
class RecordSource(Protocol):
    # Lazy and single-use. Unparsable lines come through as MappingError values
    # so that one bad line does not end the iteration.
    def open(self, spec: PartitionSpec) -> Iterator[Record | MappingError]: ...


@runtime_checkable
class RecordTransformer(Protocol):
    # Returning None drops the record from its chunk.
    def transform(self, record: Record) -> Record | None: ...


@runtime_checkable
class RecordSink(Protocol):
    # All-or-nothing per call; must tolerate concurrent calls from
    # different partitions. Raises PersistenceError on failure.
    def persist_chunk(self, records: Sequence[Record], context: ChunkContext) -> None: ...
