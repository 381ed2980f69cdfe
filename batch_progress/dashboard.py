"""
Dashboard-ready output functions.

These are the primary entry points for the production and quality
dashboards. Each function takes the prepared record frame (see
prepare_records) and an explicit `now`, and returns plain dicts or
DataFrames suitable for speedometers, steppers and drill-down tables.
"""

import logging
from collections.abc import Iterable, Mapping

import pandas as pd

from .config import KNOWN_DEPARTMENTS, QUALITY_STAGES, UNRECOGNIZED_DEPARTMENT
from .drilldown import batch_task_details, resolve_drilldown, select_stage_records
from .kpis import (
    classify_batch_stages,
    classify_queue_level,
    summarise_condensed_departments,
    summarise_stage_progress,
)
from .transforms import attach_product_attributes, normalize_records

logger = logging.getLogger(__name__)


def prepare_records(
    records: pd.DataFrame,
    released_batches: Iterable[str] = (),
    product_lookup: Mapping[str, Mapping[str, str]] | None = None,
) -> pd.DataFrame:
    """Normalize a raw snapshot and attach product attributes.

    Parameters
    ----------
    records : Canonical record frame from the record source.
    released_batches : Batch numbers from the release registry.
    product_lookup : Output of transforms.build_product_lookup (optional).
    """
    lookup = product_lookup or {}
    normalized = normalize_records(records, released_batches)
    return attach_product_attributes(
        normalized,
        categories=lookup.get("category"),
        names=lookup.get("name"),
        departments=lookup.get("department"),
    )


def get_department_overview(records: pd.DataFrame, now: pd.Timestamp) -> list[dict]:
    """Condensed-stage stepper data for each known department.

    Returns
    -------
    [{"department": "PN1", "total_batches": 42,
      "stages": [{"stage": "Timbang", "in_progress_count": 3, "waiting_count": 1,
                  "average_days_in_progress": 2, "total_batches": 5,
                  "queue_level": "minimal", "queue_color": "#22c55e", ...}, ...]},
     ...]
    """
    classified = classify_batch_stages(records, now, condensed=True)
    summary = summarise_condensed_departments(classified)
    if summary.empty:
        logger.warning("No tracked batches for the department overview")
        return []

    overview = []
    for department in sorted(summary["department"].unique()):
        dept_rows = summary[summary["department"] == department]
        dept_batches = classified.loc[classified["department"] == department, "batch_no"].nunique()
        overview.append({
            "department": department,
            "total_batches": int(dept_batches),
            "stages": dept_rows.drop(columns="department").to_dict("records"),
        })
    return overview


def get_product_type_overview(
    records: pd.DataFrame,
    now: pd.Timestamp,
    category_column: str = "product_category",
) -> pd.DataFrame:
    """Raw-stage summary per (department, product type).

    `category_column` selects the product-type dimension: product_category
    (ETH/OTC/Generik) or dosage_form.
    """
    classified = classify_batch_stages(records, now, category_column=category_column)
    return summarise_stage_progress(classified, category_column=category_column)


def get_quality_overview(records: pd.DataFrame, now: pd.Timestamp) -> list[dict]:
    """Quality-stage speedometer data keyed by "<department> <stage>".

    One entry per known department and quality stage (QC, Mikro, QA), in
    stage-major order: PN1 QC, PN2 QC, PN1 Mikro, ... Each entry carries
    its queue level and colour (stage limits) and its ordered batch list.
    """
    quality = records[records["stage_group"].isin(QUALITY_STAGES)]
    classified = classify_batch_stages(quality, now)
    summary = summarise_stage_progress(classified)

    entries = []
    for stage in QUALITY_STAGES:
        for department in KNOWN_DEPARTMENTS:
            row = summary[(summary["department"] == department) & (summary["stage"] == stage)]
            batches = resolve_drilldown(classified, department, stage)
            in_progress = int(row["in_progress_count"].iloc[0]) if not row.empty else 0
            waiting = int(row["waiting_count"].iloc[0]) if not row.empty else 0
            level, color = classify_queue_level(in_progress, stage)
            entries.append({
                "name": f"{department} {stage}",
                "department": department,
                "stage": stage,
                "value": in_progress,
                "waiting_count": waiting,
                "total_count": in_progress + waiting,
                "avg_days": int(row["average_days_in_progress"].iloc[0]) if not row.empty else 0,
                "queue_level": level,
                "queue_color": color,
                "batches": batches.to_dict("records"),
            })
    return entries


def get_stage_drilldown(
    records: pd.DataFrame,
    now: pd.Timestamp,
    department: str,
    stage: str,
    category: str | None = None,
    condensed: bool = False,
    category_column: str = "product_category",
    include_inactive: bool = False,
) -> pd.DataFrame:
    """Ordered batch list behind one stage aggregate.

    Set `condensed` when `stage` is a condensed stage (e.g. "Proses").
    """
    stage_records = select_stage_records(records, department, stage, condensed=condensed)
    classified = classify_batch_stages(
        stage_records,
        now,
        condensed=condensed,
        category_column=category_column if category is not None else None,
    )
    return resolve_drilldown(
        classified,
        department,
        stage,
        category=category,
        category_column=category_column,
        include_inactive=include_inactive,
    )


def get_batch_task_details(
    records: pd.DataFrame,
    department: str,
    stage: str,
    batch_no: str,
    condensed: bool = False,
) -> pd.DataFrame:
    """Task list of one batch within one (raw or condensed) stage."""
    stage_records = select_stage_records(records, department, stage, condensed=condensed)
    return batch_task_details(stage_records, batch_no)


def get_unrecognized_products(records: pd.DataFrame) -> pd.DataFrame:
    """Distinct products whose department could not be resolved.

    Returns
    -------
    DataFrame with columns: product_id, product_name, batch_count
    (most batches first).
    """
    columns = ["product_id", "product_name", "batch_count"]
    if records.empty:
        return pd.DataFrame(columns=columns)

    unrecognized = records[records["department"] == UNRECOGNIZED_DEPARTMENT]
    if unrecognized.empty:
        return pd.DataFrame(columns=columns)

    result = (
        unrecognized.groupby("product_id", sort=False)
        .agg(product_name=("product_name", "first"), batch_count=("batch_no", "nunique"))
        .reset_index()
        .sort_values(["batch_count", "product_id"], ascending=[False, True], kind="stable")
        .reset_index(drop=True)
    )
    logger.warning("%d products have no recognized department", len(result))
    return result[columns]


def get_stage_snapshot(
    records: pd.DataFrame,
    now: pd.Timestamp,
    released_batches: Iterable[str] = (),
    product_lookup: Mapping[str, Mapping[str, str]] | None = None,
) -> dict:
    """Single entry point a front end would call once per data refresh.

    Returns
    -------
    {"as_of": now, "departments": [...], "product_types": DataFrame,
     "quality": [...], "unrecognized_products": DataFrame}
    """
    prepared = prepare_records(records, released_batches, product_lookup)
    return {
        "as_of": now,
        "departments": get_department_overview(prepared, now),
        "product_types": get_product_type_overview(prepared, now),
        "quality": get_quality_overview(prepared, now),
        "unrecognized_products": get_unrecognized_products(prepared),
    }
