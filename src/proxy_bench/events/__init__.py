from proxy_bench.events.fields import FIELD_ALIASES, RAW_STAGE_BOUNDS, normalize_record, parse_timestamp
from proxy_bench.events.ingest import (
    IngestionError,
    IngestionFailure,
    IngestionReport,
    event_to_batch_record,
    event_to_stream_record,
    flatten_batch_record,
    load_event_file,
    load_event_files,
    parse_batch_document,
    parse_event_lines,
)
from proxy_bench.events.model import PRE_ORIGIN_STAGES, STAGES, ProbeEvent, sort_events
from proxy_bench.events.store import ResultStore

__all__ = [
    "FIELD_ALIASES",
    "IngestionError",
    "IngestionFailure",
    "IngestionReport",
    "PRE_ORIGIN_STAGES",
    "ProbeEvent",
    "RAW_STAGE_BOUNDS",
    "ResultStore",
    "STAGES",
    "event_to_batch_record",
    "event_to_stream_record",
    "flatten_batch_record",
    "load_event_file",
    "load_event_files",
    "normalize_record",
    "parse_batch_document",
    "parse_event_lines",
    "parse_timestamp",
    "sort_events",
]
