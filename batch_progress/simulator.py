"""
Simulated snapshot generator for the batch stage progress engine.

Generates a realistic WIP snapshot: batches of tablet, capsule and liquid
products spread across their process routes, with idle/start/end
timestamps consistent with a batch that is queued, running, stalled
waiting for a slot, or finished. All values are synthetic.
"""

import numpy as np
import pandas as pd

from .config import QA_GATING_STEPS, RELEASE_LABEL_STEP, UNTRACKED_STAGE
from .loaders import build_record_frame

# Seed for reproducibility
_RNG = np.random.default_rng(42)

# ---------------------------------------------------------------------------
# Process routes per dosage form: (stage_group, [step names])
# ---------------------------------------------------------------------------
_QA_ROUTE = [
    ("QC", ["Sampling QC", "Analisa QC", "Review Hasil QC"]),
    ("Mikro", ["Sampling Mikro", "Uji Mikrobiologi"]),
    ("QA", list(QA_GATING_STEPS) + ["Approve Realese"]),
    (UNTRACKED_STAGE, [RELEASE_LABEL_STEP]),
]

_ROUTES: dict[str, list[tuple[str, list[str]]]] = {
    "Tablet": [
        ("Timbang", ["Timbang Bahan Baku"]),
        ("Mixing", ["Mixing Awal"]),
        ("Granulasi", ["Granulasi Basah", "Pengeringan"]),
        ("Cetak", ["Cetak Tablet"]),
        ("Coating", ["Coating Tablet"]),
        ("Kemas Primer", ["Stripping"]),
        ("Kemas Sekunder", ["Kemas Dus"]),
    ] + _QA_ROUTE,
    "Kapsul": [
        ("Timbang", ["Timbang Bahan Baku"]),
        ("Mixing", ["Mixing Akhir"]),
        ("Filling", ["Filling Kapsul"]),
        ("Kemas Primer", ["Blister"]),
        ("Kemas Sekunder", ["Kemas Dus"]),
    ] + _QA_ROUTE,
    "Sirup": [
        ("Timbang", ["Timbang Bahan Baku"]),
        ("Mixing", ["Pembuatan Larutan"]),
        ("Filling", ["Filling Botol"]),
        ("Kemas Sekunder", ["Kemas Dus"]),
    ] + _QA_ROUTE,
}

# (product_id, product_name, dosage form, department); "" = not registered
_PRODUCTS = [
    ("1001", "Paracetamol 500 mg", "Tablet", "PN1"),
    ("1002", "Amoxicillin 500 mg Generik", "Kapsul", "PN1"),
    ("1003", "Vitamin C 250 mg", "Tablet", "PN1"),
    ("1004", "Cetirizine 10 mg", "Tablet", "PN1"),
    ("2001", "Obat Batuk Sirup", "Sirup", "PN2"),
    ("2002", "Paracetamol Sirup Generik", "Sirup", "PN2"),
    ("2003", "Antasida Suspensi", "Sirup", "PN2"),
    ("9001", "Produk Trial Baru", "Kapsul", ""),
]

_OTC_PRODUCT_IDS = ["1003", "2001", "2003"]


def _flatten_route(dosage_form: str) -> list[tuple[str, str]]:
    return [(stage, step) for stage, steps in _ROUTES[dosage_form] for step in steps]


def _batch_rows(
    batch_no: str,
    product: tuple[str, str, str, str],
    as_of: pd.Timestamp,
    rng: np.random.Generator,
) -> list[dict]:
    """Rows for one batch, progressed to a random point of its route."""
    product_id, product_name, dosage_form, department = product
    route = _flatten_route(dosage_form)

    n_done = int(rng.integers(0, len(route) + 1))
    # queued: current step has a slot; running: started; stalled: no slot yet
    current_state = rng.choice(["queued", "running", "stalled"], p=[0.3, 0.5, 0.2])

    queue_lags = rng.uniform(0.0, 1.0, size=len(route))
    work_times = rng.uniform(0.2, 2.5, size=len(route))
    elapsed = float(queue_lags[:n_done].sum() + work_times[:n_done].sum())
    cursor = as_of - pd.Timedelta(days=elapsed + float(rng.uniform(1.0, 10.0)))

    rows = []
    for i, (stage, step) in enumerate(route):
        idle = start = end = None
        if i < n_done:
            idle = cursor + pd.Timedelta(days=float(queue_lags[i]))
            start = idle
            end = start + pd.Timedelta(days=float(work_times[i]))
            cursor = end
        elif i == n_done and current_state != "stalled":
            idle = cursor + pd.Timedelta(days=float(queue_lags[i]))
            if current_state == "running":
                start = idle
        rows.append({
            "batch_no": batch_no,
            "product_id": product_id,
            "product_name": product_name,
            "department": department,
            "dosage_form": dosage_form,
            "stage_group": stage,
            "step_name": step,
            "sequence_order": i + 1,
            "start_date": start,
            "end_date": end,
            "idle_start_date": idle,
            "display_flag": bool(i == n_done and current_state == "stalled" and rng.random() < 0.1),
        })
    return rows


def generate_process_records(
    n_batches: int = 60,
    as_of: str | pd.Timestamp = "2026-02-14 10:00",
    seed: int | None = None,
) -> pd.DataFrame:
    """Generate a simulated WIP process-record snapshot.

    Batch numbers run B26001, B26002, ... and products are drawn uniformly
    from the simulated product list. Returns the canonical record frame.
    """
    rng = np.random.default_rng(seed) if seed is not None else _RNG
    as_of = pd.Timestamp(as_of)

    rows = []
    for n in range(n_batches):
        product = _PRODUCTS[int(rng.integers(0, len(_PRODUCTS)))]
        rows.extend(_batch_rows(f"B26{n + 1:03d}", product, as_of, rng))

    return build_record_frame(rows)


def generate_released_batches(
    records: pd.DataFrame,
    fraction: float = 0.05,
    seed: int | None = None,
) -> set[str]:
    """Pick a random share of batches as already released by the registry."""
    rng = np.random.default_rng(seed) if seed is not None else _RNG
    batches = sorted(records["batch_no"].unique())
    if not batches:
        return set()
    n = max(1, int(len(batches) * fraction))
    return set(rng.choice(batches, size=n, replace=False).tolist())


def generate_product_master() -> tuple[pd.DataFrame, list[str]]:
    """Simulated product master and OTC product id list."""
    master = pd.DataFrame(
        [
            {"product_id": pid, "product_name": name, "department": dept or None}
            for pid, name, _, dept in _PRODUCTS
        ]
    )
    return master, list(_OTC_PRODUCT_IDS)
