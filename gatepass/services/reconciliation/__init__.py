"""Status record reconciliation."""

from .record_reconciler import StageRegression, effective_timestamp, find_stage_regressions, reconcile

__all__ = ["StageRegression", "effective_timestamp", "find_stage_regressions", "reconcile"]
