import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from prefect.logging import get_logger
from rich.progress import Progress

from rangebatch.config import JobConfig
from rangebatch.execution.chunk_step import ChunkStep, PartitionResult
from rangebatch.execution.scheduler import PartitionScheduler
from rangebatch.io_utils import make_bounded_progress
from rangebatch.partitioning.partitioner import (
    ColumnRangePartitioner,
    KeyBounds,
    PartitionSpec,
)
from rangebatch.records.contracts import RecordSink, RecordSource, RecordTransformer
from rangebatch.records.source import UNKEYED_LINES_PARTITION
from rangebatch.records.transform import IdentityTransformer


class JobStatus(Enum):
    COMPLETED = "COMPLETED"
    PARTIALLY_FAILED = "PARTIALLY_FAILED"
    FAILED = "FAILED"


@dataclass(frozen=True, slots=True)
class JobResult:
    job_name: str
    status: JobStatus
    partitions: tuple[PartitionResult, ...] = ()
    not_started: tuple[int, ...] = ()
    bounds: KeyBounds | None = None

    @property
    def failed_partitions(self) -> tuple[PartitionResult, ...]:
        return tuple(p for p in self.partitions if not p.succeeded)

    @property
    def records_read(self) -> int:
        return sum(p.records_read for p in self.partitions)

    @property
    def records_written(self) -> int:
        return sum(p.records_written for p in self.partitions)

    @property
    def records_filtered(self) -> int:
        return sum(p.records_filtered for p in self.partitions)

    @property
    def records_skipped(self) -> int:
        return sum(p.records_skipped for p in self.partitions)

    @property
    def records_out_of_bounds(self) -> int:
        return sum(p.records_out_of_bounds for p in self.partitions)

    def status_lines(self) -> list[str]:
        lines = [
            f"Job {self.job_name}: {self.status.value} "
            f"(partitions={len(self.partitions) + len(self.not_started)} "
            f"read={self.records_read} written={self.records_written} "
            f"filtered={self.records_filtered} skipped={self.records_skipped} "
            f"out_of_bounds={self.records_out_of_bounds})",
        ]
        for p in self.partitions:
            line = (
                f"  partition {p.index}: {p.outcome} read={p.records_read} "
                f"written={p.records_written} filtered={p.records_filtered} "
                f"skipped={p.records_skipped} out_of_bounds={p.records_out_of_bounds}"
            )
            if p.error is not None:
                line += f" error={type(p.error).__name__}: {p.error}"
            lines.append(line)
        if self.not_started:
            lines.append(f"  never started: {', '.join(map(str, self.not_started))}")
        return lines


def fixed_bounds(min_key: int, max_key: int) -> Callable[[], KeyBounds]:
    """Bounds provider for callers that already know the key domain."""
    bounds = KeyBounds(min_key, max_key)
    return lambda: bounds


@dataclass(slots=True)
class Job:
    """Composition root for one partitioned import.

    Every collaborator is built by the caller and handed in here; nothing is
    looked up at runtime. A Job runs one run() at a time.
    """

    name: str
    source_factory: Callable[[], RecordSource]
    sink: RecordSink
    bounds_provider: Callable[[], KeyBounds | None]
    transformer: RecordTransformer = field(default_factory=IdentityTransformer)
    config: JobConfig = field(default_factory=JobConfig)
    partitioner: ColumnRangePartitioner | None = None
    progress_factory: Callable[[], Progress] = make_bounded_progress
    _running: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def _partitioner(self) -> ColumnRangePartitioner:
        if self.partitioner is None:
            return ColumnRangePartitioner(self.config.grid_size)
        return self.partitioner

    def _run_partition(self, spec: PartitionSpec, stop: threading.Event) -> PartitionResult:
        return ChunkStep(
            spec,
            self.source_factory(),
            self.sink,
            self.transformer,
            chunk_size=self.config.chunk_size,
            mapping_error_policy=self.config.mapping_error_policy,
            stop_event=stop,
        ).execute()

    def _status(self, partitions: tuple[PartitionResult, ...]) -> JobStatus:
        if not any(not p.succeeded for p in partitions):
            return JobStatus.COMPLETED
        if self.config.fail_fast:
            return JobStatus.FAILED
        return JobStatus.PARTIALLY_FAILED

    def run(self) -> JobResult:
        if not self._running.acquire(blocking=False):
            msg = f"Job {self.name} is already running"
            raise RuntimeError(msg)
        try:
            return self._run()
        finally:
            self._running.release()

    def _run(self) -> JobResult:
        logger = get_logger(__name__)
        start = time.perf_counter()
        cfg = self.config

        bounds = self.bounds_provider()
        # Raises PartitionBoundsError before any partition is scheduled.
        specs = self._partitioner().partition_bounds(bounds)

        if not specs:
            return self._run_empty_domain(bounds, start)

        logger.info(
            "Job %s: bounds=[%d..%d] partitions=%d chunk_size=%d pool_size=%d "
            "queue_capacity=%d policy=%s mapping_errors=%s",
            self.name,
            specs[0].lower_bound,
            specs[-1].upper_bound,
            len(specs),
            cfg.chunk_size,
            cfg.pool_size,
            cfg.queue_capacity,
            cfg.failure_policy,
            cfg.mapping_error_policy,
        )

        scheduler = PartitionScheduler(
            pool_size=cfg.pool_size,
            queue_capacity=cfg.queue_capacity,
            failure_policy=cfg.failure_policy,
        )

        with self.progress_factory() as progress:
            task = progress.add_task(f"Running {self.name}", total=len(specs))
            outcome = scheduler.run(
                specs,
                self._run_partition,
                on_result=lambda _result: progress.advance(task),
            )

        return self._finish(
            JobResult(
                job_name=self.name,
                status=self._status(outcome.results),
                partitions=outcome.results,
                not_started=outcome.not_started,
                bounds=bounds,
            ),
            start,
        )

    def _run_empty_domain(self, bounds: KeyBounds | None, start: float) -> JobResult:
        # No valid key to partition on, but unkeyed lines still go through the
        # mapping-error policy.
        unkeyed = self._run_partition(
            PartitionSpec.empty_domain(UNKEYED_LINES_PARTITION),
            threading.Event(),
        )
        if unkeyed.succeeded and not (unkeyed.records_skipped or unkeyed.records_out_of_bounds):
            get_logger(__name__).info("Job %s: empty key domain, nothing to do", self.name)
            return JobResult(self.name, JobStatus.COMPLETED, bounds=bounds)

        partitions = (unkeyed,)
        return self._finish(
            JobResult(self.name, self._status(partitions), partitions, bounds=bounds),
            start,
        )

    def _finish(self, result: JobResult, start: float) -> JobResult:
        logger = get_logger(__name__)
        log = logger.info if result.status is JobStatus.COMPLETED else logger.warning
        for line in result.status_lines():
            log(line)
        logger.info("Job %s finished in %.2fs", self.name, time.perf_counter() - start)
        return result
