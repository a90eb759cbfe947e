"""Freshest-wins reconciliation of workflow status records.

Repeated polling and overlapping stage fetches return the same reference
number more than once. Every view reconciles through this module so that one
record per reference number survives.
"""

from datetime import datetime, timezone
from typing import Dict, Iterable, List, NamedTuple

from gatepass.schemas.workflow import WorkflowStatusRecord

# Records with no usable timestamp sort behind everything else
EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class StageRegression(NamedTuple):
    reference_number: str
    previous_stage: str
    current_stage: str


def effective_timestamp(record: WorkflowStatusRecord) -> datetime:
    """Stage-transition time, falling back to rejection then creation time."""
    if record.stage_changed_at is not None:
        return record.stage_changed_at
    if record.rejection is not None and record.rejection.rejected_at is not None:
        return record.rejection.rejected_at
    if record.snapshot.created_at is not None:
        return record.snapshot.created_at
    return EPOCH


def reconcile(records: Iterable[WorkflowStatusRecord]) -> List[WorkflowStatusRecord]:
    """Keep the freshest record per reference number, newest first.

    On equal timestamps the record encountered last wins, so a later fetch
    overrides an earlier one. Monotonicity is not enforced here.

    Args:
        records: Raw status records, possibly with duplicates

    Returns:
        One record per reference number sorted by effective timestamp descending
    """
    latest: Dict[str, WorkflowStatusRecord] = {}
    for record in records:
        current = latest.get(record.reference_number)
        if current is None or effective_timestamp(record) >= effective_timestamp(current):
            latest[record.reference_number] = record

    return sorted(
        latest.values(),
        key=lambda r: (effective_timestamp(r), r.reference_number),
        reverse=True,
    )


def find_stage_regressions(
    previous: Iterable[WorkflowStatusRecord],
    current: Iterable[WorkflowStatusRecord],
) -> List[StageRegression]:
    """Report reference numbers whose stage moved backwards between two passes.

    A terminal stage replaced by a different terminal stage also counts, since
    approved and rejected are both final.
    """
    before = {record.reference_number: record.stage for record in previous}
    regressions = []
    for record in current:
        old_stage = before.get(record.reference_number)
        if old_stage is None or old_stage == record.stage:
            continue
        if record.stage.rank < old_stage.rank or old_stage.is_terminal:
            regressions.append(
                StageRegression(record.reference_number, old_stage.value, record.stage.value)
            )
    return regressions
