"""
Measurement record sources (files, DataFrames, bundled example data).
"""

from .example import simulate_measurements
from .io import (
    RECORD_COLUMNS,
    ColumnMapping,
    DataFrameRecordSource,
    DataSourceError,
    ExampleRecordSource,
    FileRecordSource,
    MeasurementRecord,
    RecordSource,
    infer_column_mapping,
    load_records,
    read_measurement_table,
    records_from_columns,
    records_to_frame,
    table_fingerprint,
)

__all__ = [
    "RECORD_COLUMNS",
    "ColumnMapping",
    "DataFrameRecordSource",
    "DataSourceError",
    "ExampleRecordSource",
    "FileRecordSource",
    "MeasurementRecord",
    "RecordSource",
    "infer_column_mapping",
    "load_records",
    "read_measurement_table",
    "records_from_columns",
    "records_to_frame",
    "table_fingerprint",
    "simulate_measurements",
]
