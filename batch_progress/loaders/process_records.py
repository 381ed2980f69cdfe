"""
Loaders for MES snapshot exports.

Process records: one row per production task per batch, exported from the
WIP stored procedure either as an Excel workbook (header in row 1) or as
CSV. Headers use the MES names (Batch_No, tahapan_group, nama_tahapan,
StartDate, EndDate, IdleStartDate, Display, ...).

Released batches: a single column of batch numbers.

Product master: Product_ID, Product_Name and, where the export has it,
Group_Dept.
"""

import logging
from pathlib import Path

import openpyxl
import pandas as pd

from ..config import (
    DEFAULT_CATEGORY,
    RECORD_COLUMNS,
    SOURCE_COLUMN_MAP,
    TIMESTAMP_COLUMNS,
    UNTRACKED_STAGE,
)
from .utils import (
    normalise_timestamp_column,
    rename_source_columns,
    safe_bool,
    safe_str,
)

logger = logging.getLogger(__name__)

_PRODUCT_MASTER_COLUMNS = {
    "Product_ID": "product_id",
    "Product_Name": "product_name",
    "Group_Dept": "department",
}

_RELEASED_BATCH_HEADERS = {"batch_no", "batchno", "dnc_batchno", "batch"}


def _read_sheet(path: str, sheet_name: str | None = None) -> pd.DataFrame:
    """Read one worksheet into a DataFrame using row 1 as the header.

    Falls back to the first sheet when `sheet_name` is absent. Fully blank
    rows are skipped.
    """
    try:
        wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
    except Exception:
        logger.exception("Failed to open workbook: %s", path)
        raise

    if sheet_name is None:
        sheet_name = wb.sheetnames[0]
    elif sheet_name not in wb.sheetnames:
        logger.warning("Sheet '%s' not found, using '%s'", sheet_name, wb.sheetnames[0])
        sheet_name = wb.sheetnames[0]

    ws = wb[sheet_name]
    rows = ws.iter_rows(values_only=True)
    header = next(rows, None)
    if header is None:
        wb.close()
        return pd.DataFrame()

    columns = [safe_str(h, default=f"column_{i}") for i, h in enumerate(header)]
    records = [
        dict(zip(columns, row))
        for row in rows
        if any(cell is not None and str(cell).strip() != "" for cell in row)
    ]
    wb.close()

    return pd.DataFrame(records, columns=columns)


def _read_table(path: str, sheet_name: str | None = None) -> pd.DataFrame:
    """Dispatch on file suffix: .csv via pandas, anything else via openpyxl."""
    if Path(path).suffix.lower() == ".csv":
        try:
            return pd.read_csv(path, dtype=str, keep_default_na=False)
        except Exception:
            logger.exception("Failed to read CSV: %s", path)
            raise
    return _read_sheet(path, sheet_name)


def build_record_frame(raw: pd.DataFrame | list[dict]) -> pd.DataFrame:
    """Coerce source rows (already using canonical column names) into the record frame.

    Missing optional columns are filled with defaults; a missing batch_no
    column is a caller error. Timestamp columns become datetime64 with NaT
    for null or unparseable values, display_flag becomes bool. The input
    is not modified.
    """
    df = pd.DataFrame(raw).copy()

    if df.empty and "batch_no" not in df.columns:
        return pd.DataFrame({
            col: pd.Series(dtype="datetime64[ns]" if col in TIMESTAMP_COLUMNS else "object")
            for col in RECORD_COLUMNS
        })

    if "batch_no" not in df.columns:
        raise ValueError("Process records have no batch_no (Batch_No) column")

    for col in ("batch_no", "product_id", "product_name", "department",
                "dosage_form", "step_name"):
        if col in df.columns:
            df[col] = df[col].map(safe_str)
        else:
            df[col] = ""

    if "stage_group" in df.columns:
        df["stage_group"] = df["stage_group"].map(lambda v: safe_str(v, default=UNTRACKED_STAGE))
    else:
        df["stage_group"] = UNTRACKED_STAGE

    if "sequence_order" in df.columns:
        df["sequence_order"] = (
            pd.to_numeric(df["sequence_order"], errors="coerce").fillna(0).astype(int)
        )
    else:
        df["sequence_order"] = 0

    for col in TIMESTAMP_COLUMNS:
        if col not in df.columns:
            df[col] = pd.NaT
        before = df[col].notna() & (df[col].astype(str).str.strip() != "")
        df[col] = normalise_timestamp_column(df[col])
        dropped = int((before & df[col].isna()).sum())
        if dropped:
            logger.warning("%d unparseable %s values treated as null", dropped, col)

    if "display_flag" in df.columns:
        df["display_flag"] = df["display_flag"].map(safe_bool).astype(bool)
    else:
        df["display_flag"] = False

    if "product_category" in df.columns:
        df["product_category"] = df["product_category"].map(
            lambda v: safe_str(v, default=DEFAULT_CATEGORY)
        )
    else:
        df["product_category"] = DEFAULT_CATEGORY

    return df[RECORD_COLUMNS].reset_index(drop=True)


def load_process_records(path: str, sheet_name: str | None = None) -> pd.DataFrame:
    """Load a WIP process-record snapshot into the canonical record frame.

    Assumptions
    -----------
    - Header row carries the MES column names (case/whitespace tolerant).
    - Timestamps may be datetimes or ISO strings with a spurious 'Z'.
    - Display is '1'/1 for the manual "show as active" override.

    Returns
    -------
    Record frame with config.RECORD_COLUMNS. Unparseable timestamps are NaT.
    """
    raw = _read_table(path, sheet_name)
    raw = rename_source_columns(raw, SOURCE_COLUMN_MAP)
    df = build_record_frame(raw)

    logger.info(
        "Loaded %d process records (%d batches) from %s",
        len(df), df["batch_no"].nunique(), path,
    )
    return df


def load_released_batches(path: str) -> set[str]:
    """Load the released-batch registry export as a set of batch numbers.

    Uses the first column whose header looks like a batch number; otherwise
    the first column.
    """
    raw = _read_table(path)
    if raw.empty:
        logger.warning("Released batch file %s is empty", path)
        return set()

    column = raw.columns[0]
    for col in raw.columns:
        if str(col).strip().lower() in _RELEASED_BATCH_HEADERS:
            column = col
            break

    released = {safe_str(v) for v in raw[column].tolist()}
    released.discard("")

    logger.info("Loaded %d released batch numbers from %s", len(released), path)
    return released


def load_product_master(path: str, sheet_name: str | None = None) -> pd.DataFrame:
    """Load the product master list.

    Returns
    -------
    DataFrame with columns: product_id, product_name, department
    (department is None when the export does not carry Group_Dept).
    """
    raw = _read_table(path, sheet_name)
    raw = rename_source_columns(raw, _PRODUCT_MASTER_COLUMNS)

    if "product_id" not in raw.columns:
        raise ValueError(f"Product master {path} has no Product_ID column")

    df = pd.DataFrame({
        "product_id": raw["product_id"].map(safe_str),
        "product_name": raw["product_name"].map(safe_str) if "product_name" in raw.columns else "",
        "department": (
            raw["department"].map(lambda v: safe_str(v) or None)
            if "department" in raw.columns else None
        ),
    })
    df = df[df["product_id"] != ""].drop_duplicates(subset="product_id").reset_index(drop=True)

    logger.info("Loaded %d products from %s", len(df), path)
    return df
