from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import get_type_hints

from beartype.door import is_bearable
from platformdirs import user_data_dir

from rangebatch.type_hints import (
    Delimiter,
    FailurePolicy,
    MappingErrorPolicy,
    NonNegativeInt,
    PositiveInt,
)


@dataclass(frozen=True, slots=True)
class OutputPathsConfig:
    output_root: Path = field(default_factory=lambda: Path(user_data_dir("rangebatch")))

    def job_output_dir(self, job_name: str) -> Path:
        return self.output_root / job_name


@dataclass(frozen=True, slots=True)
class JobConfig:
    """Tunables for one partitioned run.

    chunk_size is the commit unit of every partition. grid_size is the number
    of key-range partitions and is independent of pool_size, the number of
    worker threads. queue_capacity bounds how many partitions may wait for a
    free worker before the submitter blocks.
    """

    chunk_size: PositiveInt = 10
    grid_size: PositiveInt = 4
    pool_size: PositiveInt = 4
    queue_capacity: NonNegativeInt = 4
    failure_policy: FailurePolicy = "best-effort"
    mapping_error_policy: MappingErrorPolicy = "skip"
    delimiter: Delimiter = ","
    lines_to_skip: NonNegativeInt = 1

    def __post_init__(self) -> None:
        hints = get_type_hints(type(self), include_extras=True)
        for f in fields(self):
            value = getattr(self, f.name)
            # bool is an int subclass, but True is never a sensible size
            if isinstance(value, bool) or not is_bearable(value, hints[f.name]):
                msg = f"Invalid JobConfig.{f.name}: {value!r}"
                raise ValueError(msg)

    @property
    def fail_fast(self) -> bool:
        return self.failure_policy == "fail-fast"
