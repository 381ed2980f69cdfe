"""
Shared utilities for snapshot ingestion: timestamp normalisation,
flag coercion, column renaming.
"""

import logging
from typing import Any

import pandas as pd

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"1", "true", "yes", "y", "t"}


def normalise_timestamp(val: Any) -> pd.Timestamp | None:
    """Convert a source timestamp to a naive pd.Timestamp in local wall-clock time.

    The MES stores local time but the export driver often serialises it
    with a trailing 'Z'. Any UTC marker or offset is stripped, never
    converted: "2025-10-21T08:21:54.353Z" stays 08:21. Returns None for
    empty or unparseable values.
    """
    if val is None:
        return None
    if isinstance(val, str):
        val = val.strip()
        if not val:
            return None
        if val.endswith(("Z", "z")):
            val = val[:-1]
    try:
        ts = pd.Timestamp(val)
    except (ValueError, TypeError, OverflowError):
        logger.debug("Could not parse timestamp value: %s", val)
        return None
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts


def normalise_timestamp_column(series: pd.Series) -> pd.Series:
    """Apply normalise_timestamp to a column, yielding datetime64 with NaT for nulls."""
    if series.empty:
        return pd.Series(pd.NaT, index=series.index, dtype="datetime64[ns]")
    converted = series.map(normalise_timestamp)
    return pd.to_datetime(converted, errors="coerce")


def safe_bool(val: Any) -> bool:
    """Coerce the source Display flag ('1', 1, True, 'true') to a bool."""
    if val is None:
        return False
    if isinstance(val, bool):
        return val
    if isinstance(val, (int, float)):
        if pd.isna(val):
            return False
        return int(val) == 1
    return str(val).strip().lower() in _TRUE_STRINGS


def safe_str(val: Any, default: str = "") -> str:
    """Coerce an identifier cell to a stripped string.

    Excel hands back integer-valued floats for numeric IDs (1234.0);
    those are rendered without the trailing '.0'.
    """
    if val is None:
        return default
    if isinstance(val, float):
        if pd.isna(val):
            return default
        if val.is_integer():
            return str(int(val))
    s = str(val).strip()
    return s if s else default


def rename_source_columns(df: pd.DataFrame, column_map: dict[str, str]) -> pd.DataFrame:
    """Rename source headers to canonical names.

    Header matching ignores surrounding whitespace and case, since the MES
    export is inconsistent about both.
    """
    lookup = {key.strip().lower(): value for key, value in column_map.items()}
    renames = {}
    for col in df.columns:
        canonical = lookup.get(str(col).strip().lower())
        if canonical is not None:
            renames[col] = canonical
    return df.rename(columns=renames)
