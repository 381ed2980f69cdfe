import pandas as pd

from batch_progress.dashboard import get_batch_task_details, get_stage_drilldown
from batch_progress.drilldown import (
    DRILLDOWN_COLUMNS,
    format_stage_start,
    resolve_drilldown,
)
from batch_progress.kpis import classify_batch_stages


def _stage_records(make_records, days_ago):
    return make_records(
        {"batch_no": "A", "idle_start_date": days_ago(3), "start_date": days_ago(3)},
        {"batch_no": "D", "idle_start_date": days_ago(9), "start_date": days_ago(9),
         "end_date": days_ago(8)},
        {"batch_no": "D", "step_name": "Review Hasil QC", "sequence_order": 2},
        {"batch_no": "B", "idle_start_date": days_ago(12), "start_date": days_ago(12)},
        {"batch_no": "E", "idle_start_date": days_ago(20), "start_date": days_ago(20),
         "end_date": days_ago(19)},
        {"batch_no": "C", "start_date": days_ago(5)},
        {"batch_no": "F", "idle_start_date": days_ago(4), "start_date": days_ago(4),
         "end_date": days_ago(4)},
        {"batch_no": "F", "step_name": "Review Hasil QC", "sequence_order": 2},
        {"batch_no": "G"},
    )


def test_in_progress_longest_first_then_waiting(make_records, now, days_ago):
    classified = classify_batch_stages(_stage_records(make_records, days_ago), now)

    result = resolve_drilldown(classified, "PN1", "QC")

    assert list(result.columns) == DRILLDOWN_COLUMNS
    assert list(result["batch_no"]) == ["B", "A", "C", "D", "F"]
    assert list(result["status"]) == ["in_progress"] * 3 + ["waiting"] * 2
    assert result["days_in_stage"].iloc[0] == 12
    assert pd.isna(result["days_in_stage"].iloc[2])


def test_stage_start_is_formatted(make_records, now, days_ago):
    classified = classify_batch_stages(_stage_records(make_records, days_ago), now)

    result = resolve_drilldown(classified, "PN1", "QC")

    starts = dict(zip(result["batch_no"], result["stage_start"]))
    assert starts["B"] == "02/02/2026"
    assert starts["C"] == "N/A"


def test_inactive_batches_listed_last_on_request(make_records, now, days_ago):
    classified = classify_batch_stages(_stage_records(make_records, days_ago), now)

    result = resolve_drilldown(classified, "PN1", "QC", include_inactive=True)

    assert list(result["batch_no"]) == ["B", "A", "C", "D", "F", "G", "E"]


def test_unknown_key_gives_empty_list(make_records, now, days_ago):
    classified = classify_batch_stages(_stage_records(make_records, days_ago), now)

    assert resolve_drilldown(classified, "PN2", "QC").empty
    assert resolve_drilldown(classified.iloc[0:0], "PN1", "QC").empty


def test_condensed_drilldown_expands_to_raw_stages(make_records, now, days_ago):
    records = make_records(
        {"batch_no": "B1", "stage_group": "Mixing", "idle_start_date": days_ago(2),
         "start_date": days_ago(2)},
        {"batch_no": "B2", "stage_group": "Coating", "idle_start_date": days_ago(6),
         "start_date": days_ago(6)},
        {"batch_no": "B3", "stage_group": "Timbang", "idle_start_date": days_ago(9),
         "start_date": days_ago(9)},
    )

    result = get_stage_drilldown(records, now, "PN1", "Proses", condensed=True)

    assert list(result["batch_no"]) == ["B2", "B1"]


def test_drilldown_by_category(make_records, now, days_ago):
    records = make_records(
        {"batch_no": "B1", "product_category": "OTC", "idle_start_date": days_ago(2),
         "start_date": days_ago(2)},
        {"batch_no": "B2", "product_category": "ETH", "idle_start_date": days_ago(6),
         "start_date": days_ago(6)},
    )

    result = get_stage_drilldown(records, now, "PN1", "QC", category="OTC")

    assert list(result["batch_no"]) == ["B1"]


def test_format_stage_start():
    assert format_stage_start(pd.Timestamp("2026-01-05 13:00")) == "05/01/2026"
    assert format_stage_start(None) == "N/A"
    assert format_stage_start(pd.NaT) == "N/A"


def test_task_details_order_and_state(make_records, days_ago):
    records = make_records(
        {"stage_group": "Mixing", "step_name": "Mixing Awal", "sequence_order": 1,
         "idle_start_date": days_ago(5), "start_date": days_ago(5), "end_date": days_ago(4)},
        {"stage_group": "Cetak", "step_name": "Cetak Tablet", "sequence_order": 2,
         "idle_start_date": days_ago(3), "start_date": days_ago(3)},
        {"stage_group": "Coating", "step_name": "Coating Tablet", "sequence_order": 3},
        {"stage_group": "Timbang", "step_name": "Timbang Bahan Baku", "sequence_order": 0,
         "idle_start_date": days_ago(6), "start_date": days_ago(6), "end_date": days_ago(6)},
    )

    tasks = get_batch_task_details(records, "PN1", "Proses", "B1", condensed=True)

    assert list(tasks["step_name"]) == ["Cetak Tablet", "Coating Tablet", "Mixing Awal"]
    assert list(tasks["task_state"]) == ["in_progress", "waiting", "completed"]


def test_task_details_for_unknown_batch(make_records):
    records = make_records({"batch_no": "B1"})

    assert get_batch_task_details(records, "PN1", "QC", "B404").empty
