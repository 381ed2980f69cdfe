"""Shared fixtures: a process-record factory and a fixed reference time."""

import pandas as pd
import pytest

from batch_progress.loaders import build_record_frame

NOW = pd.Timestamp("2026-02-14 10:00")

_DEFAULTS = {
    "batch_no": "B1",
    "product_id": "P1",
    "product_name": "Paracetamol 500 mg",
    "department": "PN1",
    "dosage_form": "Tablet",
    "stage_group": "QC",
    "step_name": "Analisa QC",
    "sequence_order": 1,
    "start_date": None,
    "end_date": None,
    "idle_start_date": None,
    "display_flag": False,
}


@pytest.fixture
def now() -> pd.Timestamp:
    return NOW


@pytest.fixture
def days_ago():
    """Timestamp n calendar days before NOW, at 08:00 by default."""

    def _days_ago(n: int, hour: int = 8) -> pd.Timestamp:
        return NOW.normalize() - pd.Timedelta(days=n) + pd.Timedelta(hours=hour)

    return _days_ago


@pytest.fixture
def make_records():
    """Build a canonical record frame from partial row dicts."""

    def _make(*rows: dict) -> pd.DataFrame:
        return build_record_frame([{**_DEFAULTS, **row} for row in rows])

    return _make
