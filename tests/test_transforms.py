import pandas as pd

from batch_progress.config import CONDENSED_STAGE_ORDER, RELEASE_LABEL_STEP, UNRECOGNIZED_DEPARTMENT
from batch_progress.transforms import (
    attach_product_attributes,
    build_product_lookup,
    categorise_product,
    condense_stage,
    expand_stage,
    find_release_labelled_batches,
    group_batch_stages,
    normalize_records,
    resolve_departments,
)


def test_release_labelled_batch_is_dropped_entirely(make_records, days_ago):
    records = make_records(
        {"batch_no": "B4", "idle_start_date": days_ago(3), "start_date": days_ago(3)},
        {"batch_no": "B4", "stage_group": "Other", "step_name": RELEASE_LABEL_STEP,
         "sequence_order": 9, "end_date": days_ago(1)},
        {"batch_no": "B5", "idle_start_date": days_ago(3), "start_date": days_ago(3)},
    )

    result = normalize_records(records)

    assert set(result["batch_no"]) == {"B5"}


def test_unfinished_release_label_does_not_exclude(make_records, days_ago):
    records = make_records(
        {"batch_no": "B4", "stage_group": "Other", "step_name": RELEASE_LABEL_STEP,
         "idle_start_date": days_ago(1)},
    )

    assert find_release_labelled_batches(records) == set()


def test_externally_released_batches_and_untracked_rows_are_dropped(make_records):
    records = make_records(
        {"batch_no": "B1"},
        {"batch_no": "B2"},
        {"batch_no": "B3", "stage_group": "Other"},
        {"batch_no": "B3", "stage_group": "Mixing"},
    )

    result = normalize_records(records, released_batches={"B2"})

    assert list(result["batch_no"]) == ["B1", "B3"]
    assert list(result["stage_group"]) == ["QC", "Mixing"]


def test_normalize_empty_input(make_records):
    empty = make_records().iloc[0:0]

    result = normalize_records(empty, released_batches={"B1"})

    assert result.empty
    assert list(result.columns) == list(empty.columns)


def test_normalize_does_not_mutate_input(make_records, days_ago):
    records = make_records(
        {"batch_no": "B1", "stage_group": "Other", "step_name": RELEASE_LABEL_STEP,
         "end_date": days_ago(1)},
        {"batch_no": "B2"},
    )
    snapshot = records.copy()

    normalize_records(records, released_batches={"B2"})

    pd.testing.assert_frame_equal(records, snapshot)


def test_unknown_department_is_bucketed(make_records):
    records = make_records({"department": "PN1"}, {"department": "PN9"}, {"department": ""})

    assert list(resolve_departments(records)) == ["PN1", UNRECOGNIZED_DEPARTMENT, UNRECOGNIZED_DEPARTMENT]


def test_department_lookup_overrides_record_value(make_records):
    records = make_records(
        {"product_id": "P1", "department": ""},
        {"product_id": "P2", "department": "PN1"},
    )

    result = resolve_departments(records, {"P1": "PN2"})

    assert list(result) == ["PN2", "PN1"]


def test_categorise_product():
    otc = {"1003"}

    assert categorise_product("1002", "Amoxicillin 500 mg Generik", otc) == "Generik"
    assert categorise_product("1003", "Vitamin C 250 mg", otc) == "OTC"
    assert categorise_product("1001", "Paracetamol 500 mg", otc) == "ETH"


def test_product_lookup_and_attributes(make_records):
    master = pd.DataFrame({
        "product_id": ["P1", "P2"],
        "product_name": ["Vitamin C 250 mg", None],
        "department": ["PN2", None],
    })
    lookup = build_product_lookup(master, otc_product_ids=["P1"])

    assert lookup["category"] == {"P1": "OTC", "P2": "ETH"}
    assert lookup["name"]["P2"] == "Product P2"
    assert lookup["department"] == {"P1": "PN2"}

    records = make_records(
        {"product_id": "P1", "product_name": "VIT C", "department": "PN1"},
        {"product_id": "P3", "product_name": "Unlisted", "department": "PN1"},
    )
    result = attach_product_attributes(
        records,
        categories=lookup["category"],
        names=lookup["name"],
        departments=lookup["department"],
    )

    assert list(result["product_category"]) == ["OTC", "ETH"]
    assert list(result["product_name"]) == ["Vitamin C 250 mg", "Unlisted"]
    assert list(result["department"]) == ["PN2", "PN1"]


def test_condensation_is_invertible():
    assert set(expand_stage("Proses")) == {"Mixing", "Filling", "Granulasi", "Cetak", "Coating"}
    for stage in CONDENSED_STAGE_ORDER:
        raw = expand_stage(stage)
        assert raw
        assert {condense_stage(s) for s in raw} == {stage}


def test_unmapped_stage_has_no_condensed_stage():
    assert condense_stage("Sterilisasi") is None
    assert expand_stage("Sterilisasi") == []


def test_group_batch_stages_condensed(make_records):
    records = make_records(
        {"stage_group": "Mixing", "step_name": "Mixing Awal"},
        {"stage_group": "Cetak", "step_name": "Cetak Tablet", "sequence_order": 2},
        {"stage_group": "Sterilisasi", "step_name": "Autoclave", "sequence_order": 3},
    )

    condensed = group_batch_stages(records, condensed=True)
    raw = group_batch_stages(records)

    assert list(condensed) == [("PN1", "Proses", "B1")]
    assert len(condensed[("PN1", "Proses", "B1")]) == 2
    assert set(raw) == {
        ("PN1", "Mixing", "B1"), ("PN1", "Cetak", "B1"), ("PN1", "Sterilisasi", "B1"),
    }


def test_group_batch_stages_by_category(make_records):
    records = make_records(
        {"batch_no": "B1", "product_category": "OTC"},
        {"batch_no": "B2", "product_category": "ETH"},
    )

    groups = group_batch_stages(records, category_column="product_category")

    assert set(groups) == {("PN1", "QC", "OTC", "B1"), ("PN1", "QC", "ETH", "B2")}
