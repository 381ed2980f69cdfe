"""
Stage status classification — pure functions with no side effects.

The MES has no status field; a batch's status in a stage is derived from
three nullable timestamps per step:

- idle_start_date: the step has been given a work slot (queued)
- start_date: work on the step physically started
- end_date: the step is finished

plus the manual display_flag override.
"""

import logging
from enum import Enum
from typing import NamedTuple

import pandas as pd

from .config import QA_GATING_STEPS, QA_STAGE

logger = logging.getLogger(__name__)


class StageStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    WAITING = "waiting"
    COMPLETE = "complete"


class StageClassification(NamedTuple):
    """Outcome of classifying one batch-stage view.

    excluded is True only for QA views whose gating steps are not all
    scheduled; such batches produce no QA row at all.
    """

    status: StageStatus
    stage_start: pd.Timestamp | None
    excluded: bool = False


def is_waiting(view: pd.DataFrame) -> bool:
    """True when every scheduled step is finished but an unscheduled step remains.

    Logic
    -----
    - all steps finished          -> not waiting (stage is done)
    - no step has idle_start_date -> not waiting (nothing queued yet)
    - otherwise waiting iff every step with idle_start_date has end_date
      and at least one step has no idle_start_date
    """
    if view.empty:
        return False

    ended = view["end_date"].notna()
    if ended.all():
        return False

    scheduled = view["idle_start_date"].notna()
    if not scheduled.any():
        return False

    return bool(ended[scheduled].all() and (~scheduled).any())


def is_in_progress(view: pd.DataFrame, waiting: bool | None = None) -> bool:
    """True when not waiting and either work is open or the display override is set."""
    if view.empty:
        return False
    if waiting is None:
        waiting = is_waiting(view)
    if waiting:
        return False
    open_work = view["start_date"].notna().any() and view["end_date"].isna().any()
    return bool(open_work or view["display_flag"].astype(bool).any())


def is_complete(view: pd.DataFrame) -> bool:
    return bool(not view.empty and view["end_date"].notna().all())


def _gating_rows(view: pd.DataFrame) -> pd.DataFrame:
    return view[view["step_name"].isin(QA_GATING_STEPS) & view["idle_start_date"].notna()]


def passes_qa_gate(view: pd.DataFrame) -> bool:
    """True when each of the four QA document checks has been scheduled."""
    scheduled = set(_gating_rows(view)["step_name"])
    return scheduled.issuperset(QA_GATING_STEPS)


def _as_timestamp(value) -> pd.Timestamp | None:
    if value is None or pd.isna(value):
        return None
    return pd.Timestamp(value)


def earliest_idle_start(view: pd.DataFrame) -> pd.Timestamp | None:
    """Earliest idle_start_date in the view; NaT values are skipped."""
    return _as_timestamp(view["idle_start_date"].min())


def latest_gating_idle_start(view: pd.DataFrame) -> pd.Timestamp | None:
    """Latest idle_start_date among the QA gating steps.

    QA queue age runs from when the last of the four checks was scheduled.
    """
    return _as_timestamp(_gating_rows(view)["idle_start_date"].max())


def classify_stage(view: pd.DataFrame, stage: str) -> StageClassification:
    """Classify one batch's rows for one stage.

    Parameters
    ----------
    view : Non-empty rows of a single batch for `stage`.
    stage : Raw or condensed stage name; QA applies the gating rule.

    Returns
    -------
    StageClassification(status, stage_start, excluded). Priority is
    Waiting > InProgress > Complete > NotStarted.
    """
    if stage == QA_STAGE:
        if not passes_qa_gate(view):
            logger.debug(
                "QA view of batch %s excluded: %d of %d gating steps scheduled",
                view["batch_no"].iloc[0],
                _gating_rows(view)["step_name"].nunique(),
                len(QA_GATING_STEPS),
            )
            return StageClassification(StageStatus.NOT_STARTED, None, excluded=True)
        stage_start = latest_gating_idle_start(view)
    else:
        stage_start = earliest_idle_start(view)

    waiting = is_waiting(view)
    if waiting:
        status = StageStatus.WAITING
    elif is_in_progress(view, waiting=False):
        status = StageStatus.IN_PROGRESS
    elif is_complete(view):
        status = StageStatus.COMPLETE
    else:
        status = StageStatus.NOT_STARTED

    return StageClassification(status, stage_start)
