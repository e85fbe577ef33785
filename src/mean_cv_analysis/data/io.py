"""
Measurement record sources for replicate data.

Raw data arrives as long-format tables: one row per replicate measurement,
tagged with supergroup, condition and entity. Sources expose the records
through the narrow ``records()`` interface so the aggregation and fitting
stages never depend on the upstream table layout. Supports CSV / Excel files,
in-memory DataFrames, and Tercen-style projected tables (``.y``, ``.ri``,
``js*`` user columns).
"""

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence, Union

import numpy as np
import pandas as pd

from mean_cv_analysis.constants import DEFAULT_CONDITION, DEFAULT_SUPERGROUP

logger = logging.getLogger(__name__)

RECORD_COLUMNS = ["supergroup", "condition", "entity", "value"]

# Alternative header names, checked in order, for each record field
VALUE_ALIASES = ("value", ".y", "y", "measurement", "intensity")
ENTITY_ALIASES = ("entity", ".ri", "row_id", "rowid", "id", "gene", "protein")
SUPERGROUP_ALIASES = ("supergroup", "js0.supergroup", "super_group")
CONDITION_ALIASES = (
    "condition",
    "test_condition",
    "js0.test condition",
    "group",
    "test condition",
)
TERCEN_USER_PREFIX = "js"

EXCEL_SUFFIXES = (".xlsx", ".xls")


class DataSourceError(RuntimeError):
    """Raised when measurement data could not be fetched or read.

    Distinct from a source that returns zero records: an empty source is a
    valid (if unhelpful) answer, a failed fetch is not.
    """


@dataclass(frozen=True)
class MeasurementRecord:
    """One replicate measurement of an entity in a (supergroup, condition) pane."""

    supergroup: str
    condition: str
    entity: str
    value: float


class RecordSource(Protocol):
    """Anything that can hand over measurement records."""

    def records(self) -> Sequence[MeasurementRecord]: ...


@dataclass(frozen=True)
class ColumnMapping:
    """Which table columns hold the record fields.

    supergroup / condition may be None, in which case every row is assigned
    DEFAULT_SUPERGROUP / DEFAULT_CONDITION.
    """

    value: str
    entity: str
    supergroup: Optional[str] = None
    condition: Optional[str] = None

    def columns(self) -> list[str]:
        return [c for c in (self.supergroup, self.condition, self.entity, self.value) if c]


def _find_column(columns: list[str], aliases: tuple[str, ...]) -> Optional[str]:
    lookup = {str(c).strip().lower(): c for c in columns}
    for alias in aliases:
        if alias in lookup:
            return lookup[alias]
    return None


def infer_column_mapping(df: pd.DataFrame) -> ColumnMapping:
    """
    Guess the column mapping from header names.

    Plain names (value, entity, supergroup, condition) and common aliases are
    matched case-insensitively. For Tercen-style projections, ``.y`` holds
    values, ``.ri`` the row (entity) index, and the first and second ``js*``
    user columns are taken as supergroup and condition.

    Args:
        df: Long-format measurement table.

    Returns:
        ColumnMapping for df.

    Raises:
        DataSourceError: If no value or entity column can be identified.
    """
    columns = list(df.columns)
    value_col = _find_column(columns, VALUE_ALIASES)
    entity_col = _find_column(columns, ENTITY_ALIASES)
    if value_col is None or entity_col is None:
        raise DataSourceError(
            "Could not identify value and entity columns. "
            f"Available: {columns}"
        )

    supergroup_col = _find_column(columns, SUPERGROUP_ALIASES)
    condition_col = _find_column(columns, CONDITION_ALIASES)

    if supergroup_col is None or condition_col is None:
        taken = {value_col, entity_col, supergroup_col, condition_col}
        user_cols = [
            c
            for c in columns
            if isinstance(c, str) and c.startswith(TERCEN_USER_PREFIX) and c not in taken
        ]
        if supergroup_col is None and user_cols:
            supergroup_col = user_cols.pop(0)
        if condition_col is None and user_cols:
            condition_col = user_cols.pop(0)

    return ColumnMapping(
        value=value_col,
        entity=entity_col,
        supergroup=supergroup_col,
        condition=condition_col,
    )


def records_from_columns(
    values: Sequence[float],
    entities: Sequence,
    supergroups: Optional[Sequence] = None,
    conditions: Optional[Sequence] = None,
) -> list[MeasurementRecord]:
    """
    Zip parallel columns into measurement records.

    Args:
        values: Raw measurement values.
        entities: Entity identifiers (converted to str).
        supergroups: Supergroup labels; DEFAULT_SUPERGROUP when None.
        conditions: Condition labels; DEFAULT_CONDITION when None.

    Returns:
        List of MeasurementRecord, one per row.

    Raises:
        ValueError: If the column lengths differ.
    """
    n = len(values)
    if supergroups is None:
        supergroups = [DEFAULT_SUPERGROUP] * n
    if conditions is None:
        conditions = [DEFAULT_CONDITION] * n

    lengths = {
        "values": n,
        "entities": len(entities),
        "supergroups": len(supergroups),
        "conditions": len(conditions),
    }
    if len(set(lengths.values())) > 1:
        detail = ", ".join(f"{k}={v}" for k, v in lengths.items())
        raise ValueError(f"Column length mismatch: {detail}")

    return [
        MeasurementRecord(
            supergroup="" if sg is None else str(sg),
            condition="" if cond is None else str(cond),
            entity=str(ent),
            value=float(val),
        )
        for sg, cond, ent, val in zip(supergroups, conditions, entities, values)
    ]


def records_to_frame(records: Sequence[MeasurementRecord]) -> pd.DataFrame:
    """Return records as a DataFrame with RECORD_COLUMNS."""
    if not records:
        return pd.DataFrame(columns=RECORD_COLUMNS)
    return pd.DataFrame(
        {
            "supergroup": [r.supergroup for r in records],
            "condition": [r.condition for r in records],
            "entity": [r.entity for r in records],
            "value": np.array([r.value for r in records], dtype=float),
        }
    )


class DataFrameRecordSource:
    """Record source over an in-memory long-format DataFrame."""

    def __init__(self, df: pd.DataFrame, mapping: Optional[ColumnMapping] = None):
        self.df = df
        self.mapping = mapping if mapping is not None else infer_column_mapping(df)

    def records(self) -> list[MeasurementRecord]:
        df = self.df
        mapping = self.mapping
        missing = [c for c in mapping.columns() if c not in df.columns]
        if missing:
            raise DataSourceError(
                f"Columns {missing} not in table. Available: {list(df.columns)}"
            )
        if df.empty:
            return []

        if mapping.supergroup is None:
            logger.warning(
                "No supergroup column found, using %r", DEFAULT_SUPERGROUP
            )
        if mapping.condition is None:
            logger.warning("No condition column found, using %r", DEFAULT_CONDITION)

        values = pd.to_numeric(df[mapping.value], errors="coerce").to_numpy(dtype=float)
        return records_from_columns(
            values,
            df[mapping.entity].tolist(),
            df[mapping.supergroup].tolist() if mapping.supergroup else None,
            df[mapping.condition].tolist() if mapping.condition else None,
        )


def table_fingerprint(content: bytes, mapping: Optional[ColumnMapping] = None) -> str:
    """
    Identify one raw-data load by file content and column mapping.

    Two uploads with the same name and size but different bytes get different
    fingerprints.
    """
    digest = hashlib.sha1(content).hexdigest()
    return digest if mapping is None else f"{digest}:{mapping}"


def read_measurement_table(path: Union[str, Path]) -> pd.DataFrame:
    """
    Read a CSV or Excel measurement table.

    Raises:
        DataSourceError: If the file is missing or cannot be parsed.
    """
    path = Path(path)
    if not path.exists():
        raise DataSourceError(f"File not found: {path}")
    try:
        if path.suffix.lower() in EXCEL_SUFFIXES:
            return pd.read_excel(path)
        return pd.read_csv(path)
    except (ValueError, OSError, pd.errors.ParserError) as e:
        raise DataSourceError(f"Could not read {path.name}: {e}") from e


class FileRecordSource:
    """Record source backed by a CSV or Excel file."""

    def __init__(
        self, path: Union[str, Path], mapping: Optional[ColumnMapping] = None
    ):
        self.path = Path(path)
        self.mapping = mapping

    def records(self) -> list[MeasurementRecord]:
        df = read_measurement_table(self.path)
        return DataFrameRecordSource(df, self.mapping).records()


class ExampleRecordSource:
    """Bundled example dataset, simulated from a known two-component model."""

    def __init__(self, seed: int = 0, **kwargs):
        self.seed = seed
        self.kwargs = kwargs

    def records(self) -> list[MeasurementRecord]:
        from mean_cv_analysis.data.example import simulate_measurements

        return simulate_measurements(seed=self.seed, **self.kwargs)


def load_records(
    source: Union[RecordSource, pd.DataFrame, str, Path, Sequence[MeasurementRecord]],
) -> list[MeasurementRecord]:
    """
    Resolve any supported input into a list of measurement records.

    Args:
        source: A RecordSource, a DataFrame, a file path, or records.

    Returns:
        List of MeasurementRecord (possibly empty).
    """
    if isinstance(source, pd.DataFrame):
        return DataFrameRecordSource(source).records()
    if isinstance(source, (str, Path)):
        return FileRecordSource(source).records()
    if hasattr(source, "records"):
        return list(source.records())
    return list(source)
