import logging

import pandas as pd

from batch_progress.config import QA_GATING_STEPS
from batch_progress.status import (
    StageStatus,
    classify_stage,
    is_waiting,
    passes_qa_gate,
)


def test_started_unfinished_step_is_in_progress(make_records, days_ago):
    view = make_records({"idle_start_date": days_ago(5), "start_date": days_ago(4)})

    result = classify_stage(view, "QC")

    assert result.status == StageStatus.IN_PROGRESS
    assert result.stage_start == days_ago(5)
    assert not result.excluded


def test_in_progress_without_idle_date_has_no_start(make_records, days_ago):
    view = make_records({"start_date": days_ago(4)})

    result = classify_stage(view, "QC")

    assert result.status == StageStatus.IN_PROGRESS
    assert result.stage_start is None


def test_finished_scheduled_step_with_unscheduled_remainder_is_waiting(make_records, days_ago):
    view = make_records(
        {"idle_start_date": days_ago(6), "start_date": days_ago(6), "end_date": days_ago(5)},
        {"step_name": "Review Hasil QC", "sequence_order": 2},
    )

    assert is_waiting(view)
    assert classify_stage(view, "QC").status == StageStatus.WAITING


def test_waiting_takes_precedence_over_display_flag(make_records, days_ago):
    view = make_records(
        {"idle_start_date": days_ago(6), "start_date": days_ago(6), "end_date": days_ago(5)},
        {"step_name": "Review Hasil QC", "sequence_order": 2, "display_flag": True},
    )

    assert classify_stage(view, "QC").status == StageStatus.WAITING


def test_display_flag_forces_in_progress(make_records):
    view = make_records({"display_flag": True})

    result = classify_stage(view, "QC")

    assert result.status == StageStatus.IN_PROGRESS
    assert result.stage_start is None


def test_all_steps_finished_is_complete(make_records, days_ago):
    view = make_records(
        {"idle_start_date": days_ago(9), "start_date": days_ago(9), "end_date": days_ago(8)},
        {"step_name": "Review Hasil QC", "sequence_order": 2,
         "idle_start_date": days_ago(7), "start_date": days_ago(7), "end_date": days_ago(6)},
    )

    assert not is_waiting(view)
    result = classify_stage(view, "QC")
    assert result.status == StageStatus.COMPLETE
    assert result.stage_start == days_ago(9)


def test_untouched_stage_is_not_started(make_records):
    view = make_records({}, {"step_name": "Review Hasil QC", "sequence_order": 2})

    assert not is_waiting(view)
    result = classify_stage(view, "QC")
    assert result.status == StageStatus.NOT_STARTED
    assert result.stage_start is None


def test_qa_view_missing_a_gating_step_is_excluded(make_records, days_ago):
    rows = [
        {"stage_group": "QA", "step_name": step, "sequence_order": i,
         "idle_start_date": days_ago(3), "start_date": days_ago(3)}
        for i, step in enumerate(QA_GATING_STEPS[:3], start=1)
    ]
    rows.append({"stage_group": "QA", "step_name": QA_GATING_STEPS[3], "sequence_order": 4})
    view = make_records(*rows)

    assert not passes_qa_gate(view)
    result = classify_stage(view, "QA")
    assert result.excluded
    assert result.status == StageStatus.NOT_STARTED


def test_qa_stage_start_is_latest_gating_idle_date(make_records, days_ago):
    rows = [
        {"stage_group": "QA", "step_name": step, "sequence_order": i,
         "idle_start_date": days_ago(10 - i), "start_date": days_ago(10 - i)}
        for i, step in enumerate(QA_GATING_STEPS, start=1)
    ]
    rows.append({"stage_group": "QA", "step_name": "Approve Realese", "sequence_order": 5,
                 "idle_start_date": days_ago(1)})
    view = make_records(*rows)

    result = classify_stage(view, "QA")

    assert passes_qa_gate(view)
    assert not result.excluded
    assert result.stage_start == days_ago(6)
    assert result.status == StageStatus.IN_PROGRESS


def test_gating_rule_only_applies_to_qa(make_records, days_ago):
    view = make_records({"stage_group": "QC", "idle_start_date": days_ago(2),
                         "start_date": days_ago(2)})

    assert not classify_stage(view, "QC").excluded


def test_classification_is_repeatable(make_records, days_ago):
    view = make_records(
        {"idle_start_date": days_ago(6), "start_date": days_ago(6), "end_date": days_ago(5)},
        {"step_name": "Review Hasil QC", "sequence_order": 2, "idle_start_date": days_ago(4)},
    )
    snapshot = view.copy()

    assert classify_stage(view, "QC") == classify_stage(view, "QC")
    pd.testing.assert_frame_equal(view, snapshot)


def test_qa_exclusion_is_logged_at_debug(make_records, days_ago, caplog):
    view = make_records(
        {"stage_group": "QA", "step_name": QA_GATING_STEPS[0], "idle_start_date": days_ago(1)},
    )

    with caplog.at_level(logging.DEBUG, logger="batch_progress.status"):
        classify_stage(view, "QA")

    assert "1 of 4 gating steps scheduled" in caplog.text
