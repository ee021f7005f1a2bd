from .chunk_step import ChunkStep, PartitionResult, StepState
from .job import Job, JobResult, JobStatus, fixed_bounds
from .scheduler import BoundedWorkerPool, PartitionScheduler, SchedulerOutcome

__all__ = [
    "BoundedWorkerPool",
    "ChunkStep",
    "Job",
    "JobResult",
    "JobStatus",
    "PartitionResult",
    "PartitionScheduler",
    "SchedulerOutcome",
    "StepState",
    "fixed_bounds",
]
