"""
Batch Stage Progress — End-to-end engine pipeline.

Runs the full pipeline from a process-record snapshot to dashboard-ready
outputs and prints smoke-test summaries. Uses the MES export files in
config.DATA_DIR when present, otherwise a simulated snapshot.

Usage:
    python main.py
"""

import logging

import pandas as pd

from batch_progress.config import (
    PROCESS_RECORDS_FILE,
    PRODUCT_MASTER_FILE,
    RELEASED_BATCHES_FILE,
)
from batch_progress.dashboard import (
    get_batch_task_details,
    get_department_overview,
    get_product_type_overview,
    get_quality_overview,
    get_stage_drilldown,
    get_unrecognized_products,
    prepare_records,
)
from batch_progress.durations import reference_now
from batch_progress.loaders import (
    load_process_records,
    load_product_master,
    load_released_batches,
)
from batch_progress.simulator import (
    generate_process_records,
    generate_product_master,
    generate_released_batches,
)
from batch_progress.transforms import build_product_lookup

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def load_snapshot() -> tuple[pd.DataFrame, set[str], pd.DataFrame, list[str], pd.Timestamp]:
    """Load the exported snapshot, or simulate one when the exports are missing."""
    if PROCESS_RECORDS_FILE.exists():
        records = load_process_records(str(PROCESS_RECORDS_FILE))
        released = set()
        if RELEASED_BATCHES_FILE.exists():
            released = load_released_batches(str(RELEASED_BATCHES_FILE))
        if PRODUCT_MASTER_FILE.exists():
            master = load_product_master(str(PRODUCT_MASTER_FILE))
        else:
            master = pd.DataFrame(columns=["product_id", "product_name", "department"])
        return records, released, master, [], reference_now()

    logger.warning("No snapshot export at %s, using simulated data", PROCESS_RECORDS_FILE)
    now = pd.Timestamp("2026-02-14 10:00")
    records = generate_process_records(as_of=now)
    released = generate_released_batches(records)
    master, otc_ids = generate_product_master()
    return records, released, master, otc_ids, now


def main() -> None:
    """Run the full engine pipeline and print smoke-test outputs."""

    print("=" * 70)
    print("  BATCH STAGE PROGRESS ENGINE")
    print("  Pipeline Smoke Test")
    print("=" * 70)
    print()

    # ------------------------------------------------------------------
    # 1. Load snapshot
    # ------------------------------------------------------------------
    print("[ 1 ] LOADING SNAPSHOT")
    print("-" * 40)

    records, released, master, otc_ids, now = load_snapshot()
    print(f"\nProcess records: {len(records)} rows, {records['batch_no'].nunique()} batches")
    print(f"Released batches (registry): {len(released)}")
    print(f"Products in master: {len(master)}")
    print(f"As of: {now}")

    # ------------------------------------------------------------------
    # 2. Normalize & attach product attributes
    # ------------------------------------------------------------------
    print("\n")
    print("[ 2 ] NORMALIZING RECORDS")
    print("-" * 40)

    lookup = build_product_lookup(master, otc_ids)
    prepared = prepare_records(records, released, lookup)
    print(f"\nTracked records: {len(prepared)} rows, {prepared['batch_no'].nunique()} batches")
    if not prepared.empty:
        print(prepared.groupby("department")["batch_no"].nunique().to_string())

    # ------------------------------------------------------------------
    # 3. Dashboard outputs
    # ------------------------------------------------------------------
    print("\n")
    print("[ 3 ] DASHBOARD OUTPUTS")
    print("-" * 40)

    overview = get_department_overview(prepared, now)
    for dept in overview:
        print(f"\n{dept['department']}: {dept['total_batches']} batches")
        for stage in dept["stages"]:
            print(
                f"  {stage['stage']:15s} | in progress {stage['in_progress_count']:3d}"
                f" | waiting {stage['waiting_count']:3d}"
                f" | avg {stage['average_days_in_progress']:3d} d | {stage['queue_level']}"
            )

    print("\nBy product type:")
    product_types = get_product_type_overview(prepared, now)
    if not product_types.empty:
        print(product_types.drop(columns=["queue_color"]).to_string(index=False))

    print("\nQuality stages:")
    for entry in get_quality_overview(prepared, now):
        print(
            f"  {entry['name']:10s} | in progress {entry['value']:3d}"
            f" | waiting {entry['waiting_count']:3d} | avg {entry['avg_days']:3d} d"
        )

    unrecognized = get_unrecognized_products(prepared)
    print(f"\nUnrecognized products: {len(unrecognized)}")
    if not unrecognized.empty:
        print(unrecognized.to_string(index=False))

    # ------------------------------------------------------------------
    # 4. Drill-down
    # ------------------------------------------------------------------
    print("\n")
    print("[ 4 ] DRILL-DOWN")
    print("-" * 40)

    if overview:
        dept = overview[0]
        busiest = max(dept["stages"], key=lambda s: s["in_progress_count"] + s["waiting_count"])
        drilldown = get_stage_drilldown(
            prepared, now, dept["department"], busiest["stage"], condensed=True
        )
        print(f"\n{dept['department']} / {busiest['stage']}: {len(drilldown)} batches")
        if not drilldown.empty:
            print(drilldown.to_string(index=False))

            batch_no = drilldown.iloc[0]["batch_no"]
            tasks = get_batch_task_details(
                prepared, dept["department"], busiest["stage"], batch_no, condensed=True
            )
            print(f"\nTasks for {batch_no}:")
            print(tasks.to_string(index=False))

    print("\n" + "=" * 70)
    print("  Pipeline complete.")
    print("=" * 70)


if __name__ == "__main__":
    main()
