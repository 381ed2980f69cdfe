"""
Day-count arithmetic for stage ages.

Stage age is measured in calendar days: weekends and holidays count.
business_days_between is the separate working-day counter used elsewhere
in the plant (lead-time reporting); stage-age display does not use it.
"""

import logging
from collections.abc import Iterable
from datetime import date, datetime

import numpy as np
import pandas as pd

from .config import REFERENCE_TIMEZONE

logger = logging.getLogger(__name__)


def to_local_midnight(value: pd.Timestamp | datetime | date) -> pd.Timestamp:
    """Normalise a timestamp to midnight, keeping its wall-clock date.

    A tz-aware value has its zone dropped without conversion, matching how
    the MES data is stored.
    """
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts.normalize()


def calendar_days_since(past: pd.Timestamp | datetime | date, today: pd.Timestamp | datetime | date) -> int:
    """Whole calendar days from `past` to `today` (may be negative)."""
    return (to_local_midnight(today) - to_local_midnight(past)).days


def days_in_stage(
    stage_start: pd.Timestamp | None,
    now: pd.Timestamp | datetime,
) -> int | None:
    """Days a batch has spent in its current stage, clamped at zero.

    Returns None when the stage start is unknown; callers show
    "Not Started" instead of a number.
    """
    if stage_start is None or pd.isna(stage_start):
        return None
    return max(0, calendar_days_since(stage_start, now))


def reference_now(tz: str = REFERENCE_TIMEZONE) -> pd.Timestamp:
    """Current wall-clock time in the plant timezone, as a naive Timestamp.

    Only the pipeline edge (main.py, front ends) should call this; the
    engine takes `now` as an argument.
    """
    return pd.Timestamp.now(tz=tz).tz_localize(None)


def business_days_between(
    start: pd.Timestamp | datetime | date,
    end: pd.Timestamp | datetime | date,
    holidays: Iterable[pd.Timestamp | datetime | date | str] = (),
) -> int:
    """Count working days (Mon-Fri, excluding holidays) in [start, end).

    Returns 0 when end is not after start.
    """
    start_day = to_local_midnight(start)
    end_day = to_local_midnight(end)
    if end_day <= start_day:
        return 0

    holiday_days = []
    for h in holidays:
        try:
            holiday_days.append(to_local_midnight(pd.Timestamp(h)))
        except (ValueError, TypeError):
            logger.warning("Ignoring unparseable holiday: %s", h)

    return int(np.busday_count(
        start_day.date(),
        end_day.date(),
        holidays=[d.date() for d in holiday_days],
    ))
