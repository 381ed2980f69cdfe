"""
Stage KPI computation — pure functions with no side effects.

Provides per-batch stage classification over a whole record frame,
aggregation into per-(department, stage[, category]) summaries, stage
ranking and queue-health classification.
"""

import logging
import math

import pandas as pd

from .config import (
    CONDENSED_STAGE_ORDER,
    DEFAULT_QUEUE_THRESHOLDS,
    KNOWN_DEPARTMENTS,
    QUEUE_LEVELS,
    STAGE_PRIORITY,
    STAGE_QUEUE_THRESHOLDS,
    UNRANKED_PRIORITY,
)
from .durations import days_in_stage
from .status import StageStatus, classify_stage
from .transforms import expand_stage, group_batch_stages

logger = logging.getLogger(__name__)

CLASSIFIED_COLUMNS = [
    "department", "stage", "batch_no", "product_id", "product_name",
    "product_category", "dosage_form", "status", "stage_start",
    "days_in_stage", "total_tasks", "tasks_completed",
]

AGGREGATE_COLUMNS = [
    "department", "stage", "stage_rank", "in_progress_count", "waiting_count",
    "average_days_in_progress", "total_batches", "queue_level", "queue_color",
]


def stage_rank(stage: str) -> int:
    """Display rank of a raw or condensed stage; unranked stages sort last.

    A condensed stage takes the best rank of the raw stages it collapses.
    """
    if stage in STAGE_PRIORITY:
        return STAGE_PRIORITY[stage]
    ranks = [STAGE_PRIORITY[s] for s in expand_stage(stage) if s in STAGE_PRIORITY]
    return min(ranks) if ranks else UNRANKED_PRIORITY


def round_half_up(value: float | None) -> int:
    """Round a non-negative mean to the nearest integer (.5 rounds up); NaN -> 0."""
    if value is None or pd.isna(value):
        return 0
    return int(math.floor(value + 0.5))


def stage_queue_bands(stage: str) -> list[tuple[float | None, str, str]]:
    """Queue bands scaled to one stage's (min, med, max) limits.

    Levels and colours are those of config.QUEUE_LEVELS; only the upper
    edges change. Stages without their own limits use the default ones.
    """
    low, mid, high = STAGE_QUEUE_THRESHOLDS.get(stage, DEFAULT_QUEUE_THRESHOLDS)
    uppers = [0, low / 2, low, (low + mid) / 2, mid, (mid + high) / 2, high, None]
    return [(upper, level, color) for upper, (_, level, color) in zip(uppers, QUEUE_LEVELS)]


def classify_queue_level(in_progress_count: int, stage: str | None = None) -> tuple[str, str]:
    """Return (level, colour) for a stage queue of `in_progress_count` batches.

    Without a stage the plant-wide bands of config.QUEUE_LEVELS apply:
    0 clear, <=5 minimal, <=10 moderate, <=15 building, <=20 concerning,
    <=25 high, <=30 very_high, else critical. With a stage the bands come
    from stage_queue_bands.
    """
    bands = QUEUE_LEVELS if stage is None else stage_queue_bands(stage)
    for upper, level, color in bands:
        if upper is None or in_progress_count <= upper:
            return level, color
    _, level, color = bands[-1]
    return level, color


def classify_batch_stages(
    records: pd.DataFrame,
    now: pd.Timestamp,
    condensed: bool = False,
    category_column: str | None = None,
) -> pd.DataFrame:
    """Classify every batch-stage view in a normalized record frame.

    Parameters
    ----------
    records : Normalized record frame with resolved departments.
    now : Reference time; the only clock the computation sees.
    condensed : Group by condensed stage instead of the raw stage tag.
    category_column : Optional extra grouping column (e.g. product_category).

    Returns
    -------
    One row per (department, stage[, category], batch_no) with columns
    CLASSIFIED_COLUMNS. QA views failing the gating rule are left out.
    """
    groups = group_batch_stages(records, condensed=condensed, category_column=category_column)

    rows = []
    excluded = 0
    for key, view in groups.items():
        department, stage, batch_no = key[0], key[1], key[-1]
        result = classify_stage(view, stage)
        if result.excluded:
            excluded += 1
            continue

        first = view.iloc[0]
        rows.append({
            "department": department,
            "stage": stage,
            "batch_no": batch_no,
            "product_id": first["product_id"],
            "product_name": first["product_name"],
            "product_category": first["product_category"],
            "dosage_form": first["dosage_form"],
            "status": result.status.value,
            "stage_start": result.stage_start,
            "days_in_stage": days_in_stage(result.stage_start, now),
            "total_tasks": len(view),
            "tasks_completed": int(view["end_date"].notna().sum()),
        })
        if category_column and category_column not in CLASSIFIED_COLUMNS:
            rows[-1][category_column] = key[2]

    columns = CLASSIFIED_COLUMNS
    if category_column and category_column not in CLASSIFIED_COLUMNS:
        columns = CLASSIFIED_COLUMNS + [category_column]

    df = pd.DataFrame(rows, columns=columns)
    df["stage_start"] = pd.to_datetime(df["stage_start"])
    df["days_in_stage"] = pd.array(df["days_in_stage"].tolist(), dtype="Int64")

    if excluded:
        logger.info("%d batch-stage views excluded by the QA gating rule", excluded)
    logger.info("Classified %d batch-stage views (condensed=%s)", len(df), condensed)
    return df


def summarise_stage_progress(
    classified: pd.DataFrame,
    category_column: str | None = None,
    stage_thresholds: bool = True,
) -> pd.DataFrame:
    """Aggregate classified batch stages into stage summaries.

    Rules
    -----
    - in_progress_count: batches with status in_progress
    - waiting_count: batches with status waiting
    - average_days_in_progress: mean days_in_stage over in-progress batches
      with a known start, rounded half-up; 0 when there are none
    - total_batches: distinct batches seen for the key, any status
    - queue_level / queue_color: from the stage's own queue limits, or the
      plant-wide bands when `stage_thresholds` is False

    Returns
    -------
    DataFrame with AGGREGATE_COLUMNS (plus `category_column` when given),
    ordered by department[, category] and stage priority.
    """
    keys = ["department", "stage"]
    if category_column:
        keys.insert(1, category_column)
    out_columns = AGGREGATE_COLUMNS[:1] + keys[1:-1] + AGGREGATE_COLUMNS[1:]

    if classified.empty:
        return pd.DataFrame(columns=out_columns)

    in_progress = classified["status"] == StageStatus.IN_PROGRESS.value
    df = classified.assign(
        in_progress=in_progress,
        waiting=classified["status"] == StageStatus.WAITING.value,
        in_progress_days=classified["days_in_stage"].astype(float).where(in_progress),
    )

    result = (
        df.groupby(keys, sort=False)
        .agg(
            in_progress_count=("in_progress", "sum"),
            waiting_count=("waiting", "sum"),
            mean_days=("in_progress_days", "mean"),
            total_batches=("batch_no", "nunique"),
        )
        .reset_index()
    )

    result["in_progress_count"] = result["in_progress_count"].astype(int)
    result["waiting_count"] = result["waiting_count"].astype(int)
    result["average_days_in_progress"] = result["mean_days"].map(round_half_up).astype(int)
    result["stage_rank"] = result["stage"].map(stage_rank).astype(int)
    levels = [
        classify_queue_level(count, stage if stage_thresholds else None)
        for count, stage in zip(result["in_progress_count"], result["stage"])
    ]
    result["queue_level"] = [level for level, _ in levels]
    result["queue_color"] = [color for _, color in levels]

    sort_keys = keys[:-1] + ["stage_rank", "stage"]
    result = result.sort_values(sort_keys, kind="stable")[out_columns].reset_index(drop=True)

    logger.info("Summarised %d stage aggregates", len(result))
    return result


def summarise_condensed_departments(classified: pd.DataFrame) -> pd.DataFrame:
    """Department-level summary over condensed stages.

    `classified` must come from classify_batch_stages(..., condensed=True).
    Unrecognized departments are left out. Every condensed stage appears
    for every department, zero-filled when no batch touched it. Queue
    colours use the plant-wide bands.
    """
    known = classified[classified["department"].isin(KNOWN_DEPARTMENTS)]
    summary = summarise_stage_progress(known, stage_thresholds=False)
    if summary.empty:
        return summary

    level, color = classify_queue_level(0)
    frames = []
    for department in sorted(known["department"].unique()):
        dept_summary = summary[summary["department"] == department].set_index("stage")
        stage_order = CONDENSED_STAGE_ORDER + [
            s for s in dept_summary.index if s not in CONDENSED_STAGE_ORDER
        ]
        filled = dept_summary.reindex(stage_order)
        filled["department"] = department
        filled["stage_rank"] = [stage_rank(s) for s in stage_order]
        for col in ("in_progress_count", "waiting_count", "average_days_in_progress", "total_batches"):
            filled[col] = filled[col].fillna(0).astype(int)
        filled["queue_level"] = filled["queue_level"].fillna(level)
        filled["queue_color"] = filled["queue_color"].fillna(color)
        frames.append(filled.rename_axis("stage").reset_index())

    result = pd.concat(frames, ignore_index=True)[AGGREGATE_COLUMNS]
    logger.info(
        "Summarised condensed stages for %d departments", result["department"].nunique()
    )
    return result
