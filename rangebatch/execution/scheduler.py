import threading
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from types import TracebackType
from typing import Self

from prefect.logging import get_logger

from rangebatch.errors import SchedulerCapacityError
from rangebatch.execution.chunk_step import PartitionResult
from rangebatch.partitioning.partitioner import PartitionSpec
from rangebatch.type_hints import FailurePolicy

RunPartition = Callable[[PartitionSpec, threading.Event], PartitionResult]


class BoundedWorkerPool:
    """Fixed-size thread pool with a bounded submission queue.

    At most `pool_size` tasks run at once and at most `queue_capacity` more
    wait for a worker. submit() blocks while both are full, so a producer is
    slowed down instead of buffering an unbounded number of tasks.
    """

    def __init__(
        self,
        pool_size: int,
        queue_capacity: int,
        thread_name_prefix: str = "rangebatch-worker",
    ) -> None:
        if pool_size < 1:
            msg = f"pool_size must be >= 1, got {pool_size}"
            raise ValueError(msg)
        if queue_capacity < 0:
            msg = f"queue_capacity must be >= 0, got {queue_capacity}"
            raise ValueError(msg)

        self.pool_size = pool_size
        self.queue_capacity = queue_capacity
        self.capacity = pool_size + queue_capacity

        self._slots = threading.BoundedSemaphore(self.capacity)
        self._lock = threading.Lock()
        self._admitted = 0
        self._executor = ThreadPoolExecutor(
            max_workers=pool_size,
            thread_name_prefix=thread_name_prefix,
        )

    @property
    def admitted(self) -> int:
        """Tasks currently running or waiting for a worker."""
        with self._lock:
            return self._admitted

    def submit(self, fn: Callable[..., object], /, *args: object) -> Future:
        self._slots.acquire()
        with self._lock:
            if self._admitted >= self.capacity:
                self._slots.release()
                msg = (
                    f"Worker pool admitted more than {self.capacity} tasks "
                    f"(pool_size={self.pool_size}, queue_capacity={self.queue_capacity})"
                )
                raise SchedulerCapacityError(msg)
            self._admitted += 1

        try:
            future = self._executor.submit(fn, *args)
        except BaseException:
            self._release()
            raise

        future.add_done_callback(self._on_done)
        return future

    def _on_done(self, _future: Future) -> None:
        self._release()

    def _release(self) -> None:
        with self._lock:
            self._admitted -= 1
        self._slots.release()

    def shutdown(self, *, cancel_pending: bool = False) -> None:
        self._executor.shutdown(wait=True, cancel_futures=cancel_pending)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        # Queued work is dropped when the submitter itself failed.
        self.shutdown(cancel_pending=exc_type is not None)


@dataclass(frozen=True, slots=True)
class SchedulerOutcome:
    results: tuple[PartitionResult, ...]
    not_started: tuple[int, ...]
    cancelled: bool


class PartitionScheduler:
    """Multiplexes a grid of partitions over a bounded worker pool.

    The pool is created per run and shut down before run() returns.

    fail-fast: the first failed partition sets the shared stop event. Queued
    partitions are cancelled, nothing new is submitted, and running ones stop
    at their next chunk boundary.

    best-effort: every partition runs, whatever happens to the others.
    """

    def __init__(
        self,
        pool_size: int = 4,
        queue_capacity: int = 4,
        failure_policy: FailurePolicy = "best-effort",
    ) -> None:
        self.pool_size = pool_size
        self.queue_capacity = queue_capacity
        self.failure_policy = failure_policy

    @property
    def fail_fast(self) -> bool:
        return self.failure_policy == "fail-fast"

    def run(
        self,
        specs: Sequence[PartitionSpec],
        run_partition: RunPartition,
        on_result: Callable[[PartitionResult], None] | None = None,
    ) -> SchedulerOutcome:
        logger = get_logger(__name__)
        stop = threading.Event()
        lock = threading.Lock()
        results: dict[int, PartitionResult] = {}
        futures: dict[int, Future[PartitionResult | None]] = {}

        def _cancel_pending() -> None:
            with lock:
                pending = list(futures.values())
            for f in pending:
                f.cancel()

        def _guarded(spec: PartitionSpec) -> PartitionResult | None:
            # A partition dequeued after cancellation never starts.
            if stop.is_set():
                return None

            try:
                result = run_partition(spec, stop)
            except Exception as exc:  # noqa: BLE001 - reported as a failed partition
                logger.error("Partition %d raised outside its step: %r", spec.index, exc)
                result = PartitionResult(index=spec.index, error=exc)

            # Must be set before this future completes and frees its slot.
            if not result.succeeded and self.fail_fast and not stop.is_set():
                stop.set()
                logger.warning(
                    "Partition %d failed, cancelling remaining partitions (fail-fast)",
                    spec.index,
                )
                _cancel_pending()
            return result

        def _collect(future: Future[PartitionResult | None]) -> None:
            if future.cancelled():
                return
            result = future.result()
            if result is None:
                return

            with lock:
                results[result.index] = result
            if on_result is not None:
                on_result(result)

        logger.info(
            "Scheduling %d partitions: pool_size=%d queue_capacity=%d policy=%s",
            len(specs),
            self.pool_size,
            self.queue_capacity,
            self.failure_policy,
        )

        with BoundedWorkerPool(self.pool_size, self.queue_capacity) as pool:
            for spec in specs:
                if stop.is_set():
                    break
                future = pool.submit(_guarded, spec)
                with lock:
                    futures[spec.index] = future
                future.add_done_callback(_collect)
                if stop.is_set():
                    future.cancel()

        not_started = tuple(s.index for s in specs if s.index not in results)
        if not_started:
            logger.warning("Partitions never started: %s", list(not_started))

        return SchedulerOutcome(
            results=tuple(results[i] for i in sorted(results)),
            not_started=not_started,
            cancelled=stop.is_set(),
        )
