import os
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

import pyarrow as pa
import pyarrow.dataset as ds
import pyarrow.parquet as pq
from prefect.logging import get_logger

from rangebatch.errors import PersistenceError
from rangebatch.records.contracts import FIELD_NAMES, ID_FIELD, ChunkContext, Record

RECORD_SCHEMA = pa.schema(
    [
        pa.field(name, pa.int64() if name == ID_FIELD else pa.string(), nullable=False)
        for name in FIELD_NAMES
    ],
)


@dataclass(frozen=True, slots=True)
class ParquetChunkSink:
    """Persists every chunk as its own parquet file under `out_dir`.

    A chunk is first written to a hidden temporary file and then renamed into
    place, so a reader sees either the whole chunk or nothing. Different
    partitions never write to the same file, so concurrent flushes need no
    locking.
    """

    out_dir: Path

    _PART_GLOB: ClassVar[str] = "part-*.parquet"
    _DEFAULT_BATCH_SIZE: ClassVar[int] = 65_536

    @staticmethod
    def part_name(context: ChunkContext) -> str:
        return f"part-{context.partition_index:05d}-chunk-{context.chunk_index:06d}.parquet"

    def reset(self) -> None:
        """Remove part files left over from an earlier run."""
        logger = get_logger(__name__)
        if self.out_dir.exists():
            stale = list(self.out_dir.glob(self._PART_GLOB))
            if stale:
                logger.info("Deleting %d stale part files in %s", len(stale), self.out_dir)
            for f in stale:
                f.unlink()
        self.out_dir.mkdir(parents=True, exist_ok=True)

    def persist_chunk(self, records: Sequence[Record], context: ChunkContext) -> None:
        out_path = self.out_dir / self.part_name(context)
        # Leading dot keeps pyarrow.dataset from ever picking it up.
        tmp_path = self.out_dir / f".{out_path.name}.tmp"

        try:
            self.out_dir.mkdir(parents=True, exist_ok=True)
            table = pa.Table.from_pylist([r.to_row() for r in records], schema=RECORD_SCHEMA)
            pq.write_table(table, tmp_path)
            os.replace(tmp_path, out_path)
        except (OSError, pa.ArrowException) as exc:
            tmp_path.unlink(missing_ok=True)
            raise PersistenceError(
                context.partition_index,
                context.chunk_index,
                f"cannot write {out_path}: {exc}",
            ) from exc

    def part_files(self) -> list[Path]:
        if not self.out_dir.exists():
            return []
        return sorted(self.out_dir.glob(self._PART_GLOB))

    def _dataset(self) -> ds.Dataset:
        return ds.dataset(
            [str(p) for p in self.part_files()],
            schema=RECORD_SCHEMA,
            format="parquet",
        )

    def count(self) -> int:
        if not self.part_files():
            return 0
        return self._dataset().count_rows()

    def iter_records(self) -> Iterator[Record]:
        """Read persisted records back, part file by part file."""
        if not self.part_files():
            return
        scanner = self._dataset().scanner(
            columns=list(FIELD_NAMES),
            batch_size=self._DEFAULT_BATCH_SIZE,
            use_threads=False,
        )
        for batch in scanner.to_batches():
            for row in batch.to_pylist():
                yield Record(**row)
