"""
Drill-down: the ordered batch list behind one stage aggregate, and the
task list behind one batch.

Ordering is a user-facing contract: the longest-running in-progress
batches come first, waiting batches after them.
"""

import logging

import pandas as pd

from .config import NOT_STARTED_LABEL, STAGE_START_FORMAT
from .status import StageStatus
from .transforms import expand_stage

logger = logging.getLogger(__name__)

DRILLDOWN_COLUMNS = [
    "batch_no", "product_id", "product_name", "product_category", "dosage_form",
    "status", "stage_start", "days_in_stage", "total_tasks", "tasks_completed",
]

TASK_COLUMNS = [
    "batch_no", "stage_group", "step_name", "sequence_order",
    "idle_start_date", "start_date", "end_date", "task_state",
]

_INACTIVE_ORDER = [StageStatus.NOT_STARTED.value, StageStatus.COMPLETE.value]


def format_stage_start(value: pd.Timestamp | None) -> str:
    """dd/mm/YYYY, or N/A when the stage start is unknown."""
    if value is None or pd.isna(value):
        return NOT_STARTED_LABEL
    return pd.Timestamp(value).strftime(STAGE_START_FORMAT)


def resolve_drilldown(
    classified: pd.DataFrame,
    department: str,
    stage: str,
    category: str | None = None,
    category_column: str = "product_category",
    include_inactive: bool = False,
) -> pd.DataFrame:
    """Ordered batch list for one (department, stage[, category]) key.

    Parameters
    ----------
    classified : Output of kpis.classify_batch_stages (raw or condensed,
                 matching the kind of `stage`).
    include_inactive : Also list not-started and complete batches, after
                       the waiting ones.

    Returns
    -------
    DataFrame with DRILLDOWN_COLUMNS. In-progress batches first, by
    days_in_stage descending with unknown durations last; waiting batches
    next in record order.
    """
    if classified.empty:
        return pd.DataFrame(columns=DRILLDOWN_COLUMNS)

    mask = (classified["department"] == department) & (classified["stage"] == stage)
    if category is not None:
        mask &= classified[category_column] == category
    selected = classified[mask]

    in_progress = selected[selected["status"] == StageStatus.IN_PROGRESS.value].sort_values(
        "days_in_stage", ascending=False, na_position="last", kind="stable",
    )
    waiting = selected[selected["status"] == StageStatus.WAITING.value]
    parts = [in_progress, waiting]
    if include_inactive:
        parts.extend(selected[selected["status"] == status] for status in _INACTIVE_ORDER)

    result = pd.concat(parts, ignore_index=True)[DRILLDOWN_COLUMNS]
    result = result.assign(stage_start=result["stage_start"].map(format_stage_start))

    logger.info(
        "Drill-down %s / %s%s: %d in progress, %d waiting",
        department, stage, f" / {category}" if category is not None else "",
        len(in_progress), len(waiting),
    )
    return result


def select_stage_records(
    records: pd.DataFrame,
    department: str,
    stage: str,
    condensed: bool = False,
) -> pd.DataFrame:
    """Normalized records behind one department/stage key.

    A condensed stage is expanded back to its raw stage tags.
    """
    stages = expand_stage(stage) if condensed else [stage]
    mask = (records["department"] == department) & records["stage_group"].isin(stages)
    return records[mask]


def classify_task_states(tasks: pd.DataFrame) -> pd.Series:
    """Per-task state within one batch-stage view.

    - completed: end_date set
    - in_progress: start_date set, no end_date
    - waiting: the batch has begun queuing (some task has idle_start_date)
      but this task has not been given a slot yet
    - not_started: anything else
    """
    batch_started = bool(tasks["idle_start_date"].notna().any())

    def _state(row) -> str:
        if pd.notna(row["end_date"]):
            return "completed"
        if pd.notna(row["start_date"]):
            return "in_progress"
        if batch_started and pd.isna(row["idle_start_date"]):
            return "waiting"
        return "not_started"

    if tasks.empty:
        return pd.Series(dtype="object")
    return tasks.apply(_state, axis=1)


def batch_task_details(stage_records: pd.DataFrame, batch_no: str) -> pd.DataFrame:
    """Task list of one batch in one stage.

    Order: in-progress tasks, then unstarted tasks, then completed ones;
    sequence order within each group.
    """
    tasks = stage_records[stage_records["batch_no"] == batch_no]
    if tasks.empty:
        return pd.DataFrame(columns=TASK_COLUMNS)

    tasks = tasks.sort_values("sequence_order", kind="stable").assign(
        task_state=classify_task_states(tasks)
    )
    started = tasks["start_date"].notna()
    ended = tasks["end_date"].notna()
    # 0 = in progress, 1 = unstarted, 2 = completed
    group = pd.Series(1, index=tasks.index)
    group[started & ~ended] = 0
    group[ended] = 2

    ordered = tasks.assign(_group=group).sort_values("_group", kind="stable")
    return ordered[TASK_COLUMNS].reset_index(drop=True)
