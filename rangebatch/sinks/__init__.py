from .parquet import RECORD_SCHEMA, ParquetChunkSink

__all__ = ["RECORD_SCHEMA", "ParquetChunkSink"]
