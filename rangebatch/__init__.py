"""Partitioned, chunk-oriented import of delimited files."""

from rangebatch.config import JobConfig, OutputPathsConfig
from rangebatch.execution import Job, JobResult, JobStatus, fixed_bounds

__all__ = ["Job", "JobConfig", "JobResult", "JobStatus", "OutputPathsConfig", "fixed_bounds"]
