"""
Configuration: stage tables, load-bearing step names, file paths, constants.

STAGE_PRIORITY ranks each raw stage tag for display order.
CONDENSED_STAGES collapses the mid-line processing tags into one
department-level "Proses" bucket.
"""

from pathlib import Path

# ---------------------------------------------------------------------------
# File paths — adjust these if snapshot exports move
# ---------------------------------------------------------------------------
DATA_DIR = Path(__file__).resolve().parent.parent / "data"

PROCESS_RECORDS_FILE = DATA_DIR / "wip_process_records.xlsx"
RELEASED_BATCHES_FILE = DATA_DIR / "released_batches.csv"
PRODUCT_MASTER_FILE = DATA_DIR / "product_master.xlsx"

# ---------------------------------------------------------------------------
# Plant identity
# ---------------------------------------------------------------------------
PLANT_NAME = "Pharmaceutical Production Plant"

# Wall-clock timezone the MES writes timestamps in
REFERENCE_TIMEZONE = "Asia/Jakarta"

# ---------------------------------------------------------------------------
# Load-bearing step names and tags
# ---------------------------------------------------------------------------
# Sic: the MES spells "Release" this way
RELEASE_LABEL_STEP = "Tempel Label Realese"

UNTRACKED_STAGE = "Other"

QA_STAGE = "QA"

QA_GATING_STEPS: tuple[str, ...] = (
    "Cek Dokumen PC oleh QA",
    "Cek Dokumen PN oleh QA",
    "Cek Dokumen MC oleh QA",
    "Cek Dokumen QC oleh QA",
)

# ---------------------------------------------------------------------------
# Stage tables
# ---------------------------------------------------------------------------
# Lower rank = displayed first
STAGE_PRIORITY: dict[str, int] = {
    "Timbang": 1,
    "Mixing": 2,
    "Granulasi": 3,
    "Cetak": 4,
    "Filling": 5,
    "Coating": 6,
    "Kemas Primer": 7,
    "Kemas Sekunder": 8,
    "QC": 9,
    "Mikro": 10,
    "QA": 11,
}

UNRANKED_PRIORITY = 999

# raw stage tag -> condensed (department-level) stage
CONDENSED_STAGES: dict[str, str] = {
    "Timbang": "Timbang",
    "Mixing": "Proses",
    "Filling": "Proses",
    "Granulasi": "Proses",
    "Cetak": "Proses",
    "Coating": "Proses",
    "Kemas Primer": "Kemas Primer",
    "Kemas Sekunder": "Kemas Sekunder",
    "QC": "QC",
    "Mikro": "Mikro",
    "QA": "QA",
}

CONDENSED_STAGE_ORDER: list[str] = [
    "Timbang",
    "Proses",
    "Kemas Primer",
    "Kemas Sekunder",
    "QC",
    "Mikro",
    "QA",
]

QUALITY_STAGES: list[str] = ["QC", "Mikro", "QA"]

# ---------------------------------------------------------------------------
# Departments and product categories
# ---------------------------------------------------------------------------
KNOWN_DEPARTMENTS: tuple[str, ...] = ("PN1", "PN2")
UNRECOGNIZED_DEPARTMENT = "Unrecognized"

PRODUCT_CATEGORIES: tuple[str, ...] = ("ETH", "OTC", "Generik")
DEFAULT_CATEGORY = "ETH"

# Substrings in a product name that mark it as a generic product
GENERIC_NAME_MARKERS: tuple[str, ...] = ("generik", "generic")

# ---------------------------------------------------------------------------
# Queue-health bands
# ---------------------------------------------------------------------------
# (max in-progress batches, level, colour); first band that fits wins
QUEUE_LEVELS: list[tuple[int | None, str, str]] = [
    (0, "clear", "#10b981"),
    (5, "minimal", "#22c55e"),
    (10, "moderate", "#84cc16"),
    (15, "building", "#eab308"),
    (20, "concerning", "#f59e0b"),
    (25, "high", "#f97316"),
    (30, "very_high", "#ef4444"),
    (None, "critical", "#dc2626"),
]

# Per-stage queue limits (min, med, max) for the line and quality views.
# Band edges: 0, min/2, min, (min+med)/2, med, (med+max)/2, max.
STAGE_QUEUE_THRESHOLDS: dict[str, tuple[int, int, int]] = {
    "Terima Bahan": (3, 6, 10),
    "Filling": (4, 8, 12),
    "Mixing": (5, 10, 15),
    "Granulasi": (6, 12, 18),
    "Cetak": (5, 10, 15),
    "Coating": (4, 8, 12),
    "Kemas Primer": (2, 4, 6),
    "Kemas Sekunder": (3, 5, 7),
}

DEFAULT_QUEUE_THRESHOLDS: tuple[int, int, int] = (5, 10, 15)

# ---------------------------------------------------------------------------
# Source column mapping (MES export -> canonical record frame)
# ---------------------------------------------------------------------------
SOURCE_COLUMN_MAP: dict[str, str] = {
    "Batch_No": "batch_no",
    "Product_ID": "product_id",
    "Product_Name": "product_name",
    "Group_Dept": "department",
    "Jenis_Sediaan": "dosage_form",
    "tahapan_group": "stage_group",
    "nama_tahapan": "step_name",
    "urutan": "sequence_order",
    "StartDate": "start_date",
    "EndDate": "end_date",
    "IdleStartDate": "idle_start_date",
    "Display": "display_flag",
}

RECORD_COLUMNS: list[str] = [
    "batch_no",
    "product_id",
    "product_name",
    "department",
    "dosage_form",
    "stage_group",
    "step_name",
    "sequence_order",
    "start_date",
    "end_date",
    "idle_start_date",
    "display_flag",
    "product_category",
]

TIMESTAMP_COLUMNS: list[str] = ["start_date", "end_date", "idle_start_date"]

# Display format for stage start dates in drill-down tables
STAGE_START_FORMAT = "%d/%m/%Y"
NOT_STARTED_LABEL = "N/A"
