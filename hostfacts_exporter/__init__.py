"""Collect configuration facts from remote hosts and export them as one table."""

from .errors import (
    ConfigurationError,
    ExportWriteError,
    HostFactsError,
    HostUnreachableError,
    ProducerError,
    RecordProcessingError,
)
from .executor import ExecutionReport, HostFailure, HostSuccess, QueryExecutor
from .normalizer import Column, Row, SchemaPolicy, Table, TableBuilder, build_table
from .records import Record, TaggedValue, ValueKind, flatten_sequence, split_flattened, tag_value

__version__ = "0.1.0"

__all__ = [
    "Column",
    "ConfigurationError",
    "ExecutionReport",
    "ExportWriteError",
    "HostFactsError",
    "HostFailure",
    "HostSuccess",
    "HostUnreachableError",
    "ProducerError",
    "QueryExecutor",
    "Record",
    "RecordProcessingError",
    "Row",
    "SchemaPolicy",
    "Table",
    "TableBuilder",
    "TaggedValue",
    "ValueKind",
    "build_table",
    "flatten_sequence",
    "split_flattened",
    "tag_value",
]
