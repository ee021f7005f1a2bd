from .contracts import (
    FIELD_NAMES,
    ID_FIELD,
    ChunkContext,
    Record,
    RecordMapper,
    RecordSink,
    RecordSource,
    RecordTransformer,
)
from .mapper import DelimitedLineMapper
from .source import CsvRecordSource
from .transform import IdentityTransformer, PredicateFilter

__all__ = [
    "FIELD_NAMES",
    "ID_FIELD",
    "ChunkContext",
    "CsvRecordSource",
    "DelimitedLineMapper",
    "IdentityTransformer",
    "PredicateFilter",
    "Record",
    "RecordMapper",
    "RecordSink",
    "RecordSource",
    "RecordTransformer",
]
