import threading
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from prefect.logging import get_logger

from rangebatch.errors import KeyOutOfBoundsError, MappingError, PersistenceError
from rangebatch.partitioning.partitioner import PartitionSpec
from rangebatch.records.contracts import (
    ChunkContext,
    Record,
    RecordSink,
    RecordSource,
    RecordTransformer,
)
from rangebatch.records.transform import IdentityTransformer
from rangebatch.type_hints import MappingErrorPolicy


class StepState(Enum):
    READING = "reading"
    TRANSFORMING = "transforming"
    FLUSHING = "flushing"
    DRAINING = "draining"
    DONE = "done"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class PartitionResult:
    index: int
    records_read: int = 0
    records_written: int = 0
    records_filtered: int = 0
    records_skipped: int = 0
    records_out_of_bounds: int = 0
    chunks_written: int = 0
    error: Exception | None = None
    # Drained early at a chunk boundary because the run was cancelled.
    stopped: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def outcome(self) -> str:
        if self.error is not None:
            return "FAILED"
        if self.stopped:
            return "STOPPED"
        return "COMPLETED"


class ChunkStep:
    """Reads, transforms and writes one partition in fixed-size chunks.

    State machine:

        READING -> TRANSFORMING -> READING ... -> FLUSHING -> READING ...
        end of input -> DRAINING (final partial chunk) -> DONE

    FAILED is reachable from every state. STOPPED is entered only at a chunk
    boundary, once the stop event is set. A chunk is the commit unit: its
    records count as written only after the sink accepted the whole chunk.
    """

    def __init__(
        self,
        spec: PartitionSpec,
        source: RecordSource,
        sink: RecordSink,
        transformer: RecordTransformer | None = None,
        *,
        chunk_size: int = 10,
        mapping_error_policy: MappingErrorPolicy = "skip",
        stop_event: threading.Event | None = None,
    ) -> None:
        if chunk_size < 1:
            msg = f"chunk_size must be >= 1, got {chunk_size}"
            raise ValueError(msg)

        self.spec = spec
        self.source = source
        self.sink = sink
        self.transformer = transformer or IdentityTransformer()
        self.chunk_size = chunk_size
        self.mapping_error_policy = mapping_error_policy
        self.stop_event = stop_event

        self.state = StepState.READING
        self.records_read = 0
        self.records_written = 0
        self.records_filtered = 0
        self.records_skipped = 0
        self.records_out_of_bounds = 0
        self.chunks_written = 0
        self.failed_in: StepState | None = None

    def _stop_requested(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    def _result(self, error: Exception | None = None) -> PartitionResult:
        return PartitionResult(
            index=self.spec.index,
            records_read=self.records_read,
            records_written=self.records_written,
            records_filtered=self.records_filtered,
            records_skipped=self.records_skipped,
            records_out_of_bounds=self.records_out_of_bounds,
            chunks_written=self.chunks_written,
            error=error,
            stopped=self.state is StepState.STOPPED,
        )

    def _on_mapping_error(self, exc: MappingError) -> None:
        if isinstance(exc, KeyOutOfBoundsError):
            # Well-formed, so the mapping-error policy does not apply.
            self.records_out_of_bounds += 1
            get_logger(__name__).debug(
                "Partition %d: line %d: %s",
                self.spec.index,
                exc.line_number,
                exc.reason,
            )
            return

        if self.mapping_error_policy == "fail":
            raise exc
        self.records_skipped += 1
        get_logger(__name__).warning(
            "Partition %d: skipping unmappable line %d: %s",
            self.spec.index,
            exc.line_number,
            exc.reason,
        )

    def _flush(self, chunk: list[Record]) -> None:
        context = ChunkContext(self.spec.index, self.chunks_written)
        try:
            self.sink.persist_chunk(chunk, context)
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(
                context.partition_index,
                context.chunk_index,
                str(exc) or type(exc).__name__,
            ) from exc

        self.chunks_written += 1
        self.records_written += len(chunk)

    def _process(self, items: Iterator[Record | MappingError]) -> None:
        chunk: list[Record] = []

        # READING is current whenever the next item is pulled from the source.
        self.state = StepState.READING
        for item in items:
            if isinstance(item, MappingError):
                self._on_mapping_error(item)
                continue
            self.records_read += 1

            self.state = StepState.TRANSFORMING
            out = self.transformer.transform(item)
            self.state = StepState.READING
            if out is None:
                self.records_filtered += 1
                continue
            chunk.append(out)

            if len(chunk) >= self.chunk_size:
                self.state = StepState.FLUSHING
                self._flush(chunk)
                chunk = []
                if self._stop_requested():
                    self.state = StepState.STOPPED
                    return
                self.state = StepState.READING

        if chunk:
            self.state = StepState.DRAINING
            self._flush(chunk)
        self.state = StepState.DONE

    def execute(self) -> PartitionResult:
        logger = get_logger(__name__)
        spec = self.spec

        if self._stop_requested():
            self.state = StepState.STOPPED
            return self._result()

        items = self.source.open(spec)
        try:
            self._process(items)
        except Exception as exc:  # noqa: BLE001 - the partition boundary reports every failure
            self.failed_in = self.state
            self.state = StepState.FAILED
            logger.error(
                "Partition %d [%d..%d] failed while %s after %d chunks: %s",
                spec.index,
                spec.lower_bound,
                spec.upper_bound,
                self.failed_in.value,
                self.chunks_written,
                exc,
            )
            return self._result(exc)
        finally:
            close = getattr(items, "close", None)
            if close is not None:
                close()

        logger.info(
            "Partition %d [%d..%d] %s: read=%d written=%d filtered=%d skipped=%d "
            "out_of_bounds=%d chunks=%d",
            spec.index,
            spec.lower_bound,
            spec.upper_bound,
            self.state.value,
            self.records_read,
            self.records_written,
            self.records_filtered,
            self.records_skipped,
            self.records_out_of_bounds,
            self.chunks_written,
        )
        return self._result()
