from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from itertools import islice
from pathlib import Path

from prefect.logging import get_logger
from rich.progress import Progress

from rangebatch.errors import KeyOutOfBoundsError, MappingError
from rangebatch.io_utils import make_spinner_progress
from rangebatch.partitioning.partitioner import KeyBounds, PartitionSpec
from rangebatch.records.contracts import Record, RecordMapper
from rangebatch.records.mapper import DelimitedLineMapper

# Lines whose key cannot be parsed fall in no key range. They are reported by
# this partition only, so each one is counted once per run. Valid keys outside
# the job bounds are reported the same way, see PartitionSpec.reports_out_of_bounds.
UNKEYED_LINES_PARTITION = 0

_PROGRESS_EVERY = 10_000


@dataclass(frozen=True, slots=True)
class CsvRecordSource:
    """Range-filtered view over one delimited file.

    Every call to open() reads the file through its own handle, so several
    partitions can scan the same file concurrently without sharing state.
    """

    path: Path
    mapper: RecordMapper = field(default_factory=DelimitedLineMapper)
    lines_to_skip: int = 1
    encoding: str = "utf-8"

    def _iter_numbered_lines(self) -> Iterator[tuple[int, str]]:
        with Path(self.path).open(encoding=self.encoding, errors="replace") as f:
            numbered = enumerate(f, start=1)
            # Header lines are consumed here and never reach the mapper.
            for line_number, raw in islice(numbered, self.lines_to_skip, None):
                line = raw.rstrip("\r\n")
                if line.strip():
                    yield line_number, line

    def open(self, spec: PartitionSpec) -> Iterator[Record | MappingError]:
        for line_number, line in self._iter_numbered_lines():
            try:
                record = self.mapper.map_line(line, line_number)
            except MappingError as exc:
                if spec.index == UNKEYED_LINES_PARTITION:
                    yield exc
                continue

            if spec.contains(record.id):
                yield record
            elif spec.reports_out_of_bounds(record.id):
                yield KeyOutOfBoundsError(line_number, line, record.id)

    def key_bounds(
        self,
        progress_factory: Callable[[], Progress] = make_spinner_progress,
    ) -> KeyBounds | None:
        """Scan the whole file once for the smallest and largest valid key.

        Returns None when the file holds no valid record.
        """
        logger = get_logger(__name__)
        min_key: int | None = None
        max_key: int | None = None
        n_lines = 0
        n_invalid = 0

        with progress_factory() as progress:
            task = progress.add_task(f"Scanning {Path(self.path).name}", total=None)
            for line_number, line in self._iter_numbered_lines():
                n_lines += 1
                if n_lines % _PROGRESS_EVERY == 0:
                    progress.update(task, completed=n_lines)
                try:
                    key = self.mapper.map_line(line, line_number).id
                except MappingError:
                    n_invalid += 1
                    continue
                min_key = key if min_key is None else min(min_key, key)
                max_key = key if max_key is None else max(max_key, key)

        logger.info(
            "Key scan of %s: lines=%d invalid=%d bounds=[%s..%s]",
            self.path,
            n_lines,
            n_invalid,
            min_key,
            max_key,
        )

        if min_key is None or max_key is None:
            return None
        return KeyBounds(min_key, max_key)
