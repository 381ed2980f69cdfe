"""
Batch Stage Progress Engine

Derivation layer for the manufacturing-operations dashboard: turns a flat
snapshot of per-step MES process records into each in-flight batch's
current stage, its status (not started / in progress / waiting /
complete) and days in stage, then rolls those up into per-department and
per-stage queue summaries.

To swap the Excel export for a live feed:
    Replace the loaders in batch_progress.loaders with a query against the
    MES WIP stored procedure returning the same columns. The canonical
    record frame (config.RECORD_COLUMNS) remains unchanged.

To connect a front end:
    Call dashboard.get_stage_snapshot(records, now, released, lookup) once
    per refresh to get plain dicts/DataFrames for steppers, speedometers
    and drill-down tables.

To add a stage:
    Add it to config.STAGE_PRIORITY and config.CONDENSED_STAGES (and to
    CONDENSED_STAGE_ORDER if it is a new condensed bucket).
"""
