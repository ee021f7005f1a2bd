from functools import partial
from pathlib import Path

from prefect import flow
from prefect.logging import get_run_logger

from rangebatch.config import JobConfig, OutputPathsConfig
from rangebatch.execution.job import Job, JobResult
from rangebatch.partitioning.partitioner import ColumnRangePartitioner
from rangebatch.records.mapper import DelimitedLineMapper
from rangebatch.records.source import CsvRecordSource
from rangebatch.records.transform import IdentityTransformer
from rangebatch.sinks.parquet import ParquetChunkSink

JOB_NAME = "importCustomers"


def build_customer_import(
    input_path: Path,
    output_dir: Path | None = None,
    config: JobConfig | None = None,
) -> tuple[Job, ParquetChunkSink]:
    cfg = config or JobConfig()
    out_dir = output_dir or OutputPathsConfig().job_output_dir(JOB_NAME)

    mapper = DelimitedLineMapper(delimiter=cfg.delimiter)
    source_factory = partial(
        CsvRecordSource,
        input_path,
        mapper=mapper,
        lines_to_skip=cfg.lines_to_skip,
    )
    sink = ParquetChunkSink(out_dir)

    job = Job(
        name=JOB_NAME,
        source_factory=source_factory,
        sink=sink,
        bounds_provider=source_factory().key_bounds,
        transformer=IdentityTransformer(),
        config=cfg,
        partitioner=ColumnRangePartitioner(cfg.grid_size),
    )
    return job, sink


@flow(name="import-customers", validate_parameters=False)
def import_customers(
    input_path: Path,
    output_dir: Path | None = None,
    config: JobConfig | None = None,
) -> JobResult:
    logger = get_run_logger()
    job, sink = build_customer_import(input_path, output_dir, config)

    logger.info("Importing %s into %s", input_path, sink.out_dir)
    sink.reset()
    result = job.run()

    for line in result.status_lines():
        logger.info(line)
    logger.info("Persisted rows now in %s: %d", sink.out_dir, sink.count())
    return result


if __name__ == "__main__":
    import_customers(Path("customers.csv"))
