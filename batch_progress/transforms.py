"""
Record transforms: release exclusion, stage filtering, product attribute
resolution and batch/stage partitioning of the canonical record frame.

Every function returns a new DataFrame; inputs are never modified.
"""

import logging
from collections.abc import Iterable, Mapping

import pandas as pd

from .config import (
    CONDENSED_STAGES,
    DEFAULT_CATEGORY,
    GENERIC_NAME_MARKERS,
    KNOWN_DEPARTMENTS,
    RELEASE_LABEL_STEP,
    UNRECOGNIZED_DEPARTMENT,
    UNTRACKED_STAGE,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Record Normalizer
# ---------------------------------------------------------------------------

def find_release_labelled_batches(
    records: pd.DataFrame,
    release_step: str = RELEASE_LABEL_STEP,
) -> set[str]:
    """Return batch numbers whose release-label step has an end date."""
    if records.empty:
        return set()
    done = records[(records["step_name"] == release_step) & records["end_date"].notna()]
    return set(done["batch_no"].unique().tolist())


def normalize_records(
    records: pd.DataFrame,
    released_batches: Iterable[str] = (),
    release_step: str = RELEASE_LABEL_STEP,
    untracked_stage: str = UNTRACKED_STAGE,
) -> pd.DataFrame:
    """Filter the raw record frame down to trackable production-flow rows.

    Drops, in order:
    - every row of a batch in the externally released set,
    - every row of a batch whose release-label step is finished,
    - every row whose stage_group is the untracked tag (or blank).

    Parameters
    ----------
    records : Canonical record frame (see loaders.build_record_frame).
    released_batches : Batch numbers the release registry reports as released.

    Returns
    -------
    Normalized record frame with the same columns, index reset.
    """
    if records.empty:
        return records.copy()

    released = {str(b) for b in released_batches}
    labelled = find_release_labelled_batches(records, release_step)
    excluded = released | labelled

    keep = ~records["batch_no"].isin(excluded)
    stage = records["stage_group"].fillna(untracked_stage)
    tracked = (stage != untracked_stage) & (stage.astype(str).str.strip() != "")

    result = records[keep & tracked].reset_index(drop=True)

    logger.info(
        "Normalized %d -> %d records (%d released, %d release-labelled batches excluded)",
        len(records), len(result),
        records.loc[records["batch_no"].isin(released), "batch_no"].nunique(),
        len(labelled),
    )
    return result


# ---------------------------------------------------------------------------
# Product attributes
# ---------------------------------------------------------------------------

def categorise_product(product_id: str, product_name: str, otc_product_ids: set[str]) -> str:
    """Return 'Generik', 'OTC' or 'ETH' for one product.

    Generic products are recognised by name; OTC membership comes from the
    OTC product list; everything else is ethical (ETH).
    """
    name = (product_name or "").lower()
    if any(marker in name for marker in GENERIC_NAME_MARKERS):
        return "Generik"
    if product_id in otc_product_ids:
        return "OTC"
    return DEFAULT_CATEGORY


def build_product_lookup(
    product_master: pd.DataFrame,
    otc_product_ids: Iterable[str] = (),
) -> dict[str, dict[str, str]]:
    """Build the productId lookups from the product master list.

    Returns
    -------
    {"category": {product_id: category},
     "name": {product_id: display name},
     "department": {product_id: department}}  (only products that carry one)
    """
    otc = {str(p) for p in otc_product_ids}
    categories: dict[str, str] = {}
    names: dict[str, str] = {}
    departments: dict[str, str] = {}

    for _, row in product_master.iterrows():
        product_id = str(row["product_id"])
        product_name = row.get("product_name")
        if not isinstance(product_name, str):
            product_name = ""
        categories[product_id] = categorise_product(product_id, product_name, otc)
        names[product_id] = product_name or f"Product {product_id}"
        department = row.get("department")
        if isinstance(department, str) and department:
            departments[product_id] = department

    logger.info(
        "Built product lookup for %d products (%d OTC, %d with department)",
        len(categories), sum(1 for c in categories.values() if c == "OTC"), len(departments),
    )
    return {"category": categories, "name": names, "department": departments}


def resolve_departments(
    records: pd.DataFrame,
    department_lookup: Mapping[str, str] | None = None,
) -> pd.Series:
    """Resolve each row's department, bucketing unknown values as Unrecognized.

    A product_id found in `department_lookup` takes that department;
    otherwise the row's own department value is used.
    """
    department = records["department"]
    if department_lookup:
        looked_up = records["product_id"].map(department_lookup)
        department = looked_up.where(looked_up.notna(), department)
    return department.where(department.isin(KNOWN_DEPARTMENTS), UNRECOGNIZED_DEPARTMENT)


def attach_product_attributes(
    records: pd.DataFrame,
    categories: Mapping[str, str] | None = None,
    names: Mapping[str, str] | None = None,
    departments: Mapping[str, str] | None = None,
) -> pd.DataFrame:
    """Attach product category, display name and resolved department.

    Products missing from `categories` fall back to DEFAULT_CATEGORY;
    products missing from `names` keep the name on the record.
    """
    df = records.copy()
    if df.empty:
        return df

    if categories is not None:
        df["product_category"] = df["product_id"].map(categories).fillna(DEFAULT_CATEGORY)
    else:
        df["product_category"] = df["product_category"].fillna(DEFAULT_CATEGORY)

    if names:
        looked_up = df["product_id"].map(names)
        df["product_name"] = looked_up.where(looked_up.notna(), df["product_name"])

    df["department"] = resolve_departments(df, departments)

    unrecognized = int((df["department"] == UNRECOGNIZED_DEPARTMENT).sum())
    if unrecognized:
        logger.warning("%d records have an unrecognized department", unrecognized)
    return df


# ---------------------------------------------------------------------------
# Stage condensation
# ---------------------------------------------------------------------------

def condense_stage(stage: str) -> str | None:
    """Map a raw stage tag to its condensed stage; None for unmapped tags."""
    return CONDENSED_STAGES.get(stage)


def expand_stage(condensed_stage: str) -> list[str]:
    """Return the raw stage tags that collapse into `condensed_stage`."""
    return [raw for raw, condensed in CONDENSED_STAGES.items() if condensed == condensed_stage]


# ---------------------------------------------------------------------------
# Batch-Stage Grouper
# ---------------------------------------------------------------------------

def with_stage_column(records: pd.DataFrame, condensed: bool = False) -> pd.DataFrame:
    """Return a copy with a 'stage' column: the raw stage_group or its condensed stage.

    In condensed mode rows whose stage has no condensed mapping are dropped.
    """
    df = records.copy()
    if condensed:
        df["stage"] = df["stage_group"].map(condense_stage)
        df = df[df["stage"].notna()]
    else:
        df["stage"] = df["stage_group"]
    return df


def group_batch_stages(
    records: pd.DataFrame,
    condensed: bool = False,
    category_column: str | None = None,
) -> dict[tuple, pd.DataFrame]:
    """Partition normalized records into batch-stage views.

    Keys are (department, stage[, category], batch_no) tuples; each value is
    the non-empty view of that batch's rows for that stage, carrying an extra
    'stage' column. Rows are not altered.
    """
    df = with_stage_column(records, condensed)
    if df.empty:
        return {}

    keys = ["department", "stage"]
    if category_column:
        keys.append(category_column)
    keys.append("batch_no")

    groups = {key: view for key, view in df.groupby(keys, sort=False)}
    logger.info(
        "Grouped %d records into %d batch-stage views (condensed=%s)",
        len(df), len(groups), condensed,
    )
    return groups
