"""Snapshot loaders for MES process records, released batches and the product master."""

from .process_records import build_record_frame, load_process_records
from .process_records import load_released_batches, load_product_master

__all__ = [
    "build_record_frame",
    "load_process_records",
    "load_released_batches",
    "load_product_master",
]
