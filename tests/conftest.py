"""Shared fixtures: CSV writers and instrumented sinks."""

import threading
from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

from rangebatch.errors import PersistenceError
from rangebatch.records.contracts import ChunkContext, Record

HEADER = "id,first_name,last_name,email,gender,contact_no,country,dob"


def customer_line(key: int) -> str:
    return (
        f"{key},First{key},Last{key},user{key}@example.com,"
        f"{'Male' if key % 2 else 'Female'},555-{key:04d},Country{key % 7},1990-01-{key % 28 + 1:02d}"
    )


class RecordingSink:
    """Keeps every persisted chunk in memory, in flush order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.chunks: list[tuple[ChunkContext, list[Record]]] = []

    def persist_chunk(self, records: Sequence[Record], context: ChunkContext) -> None:
        with self._lock:
            self.chunks.append((context, list(records)))

    @property
    def records(self) -> list[Record]:
        with self._lock:
            return [r for _, chunk in self.chunks for r in chunk]

    def chunk_sizes(self, partition_index: int | None = None) -> list[int]:
        with self._lock:
            return [
                len(chunk)
                for ctx, chunk in self.chunks
                if partition_index is None or ctx.partition_index == partition_index
            ]


class FailingSink(RecordingSink):
    """Accepts chunks until `should_fail(context)` says otherwise."""

    def __init__(self, should_fail: Callable[[ChunkContext], bool]) -> None:
        super().__init__()
        self.should_fail = should_fail

    def persist_chunk(self, records: Sequence[Record], context: ChunkContext) -> None:
        if self.should_fail(context):
            raise PersistenceError(context.partition_index, context.chunk_index, "disk full")
        super().persist_chunk(records, context)


@pytest.fixture
def write_csv(tmp_path: Path) -> Callable[..., Path]:
    def _write(lines: Sequence[str], *, header: bool = True, name: str = "customers.csv") -> Path:
        path = tmp_path / name
        body = [HEADER, *lines] if header else list(lines)
        path.write_text("\n".join(body) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def customers_csv(write_csv: Callable[..., Path]) -> Callable[[int], Path]:
    def _make(n: int, start: int = 1) -> Path:
        return write_csv([customer_line(k) for k in range(start, start + n)])

    return _make


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def failing_sink() -> Callable[[Callable[[ChunkContext], bool]], FailingSink]:
    return FailingSink


@pytest.fixture(name="customer_line")
def customer_line_fixture() -> Callable[[int], str]:
    return customer_line
