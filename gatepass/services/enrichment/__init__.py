"""Identity enrichment of status records."""

from .enrichment_pipeline import (
    EnrichmentPipeline,
    party_slots,
    profile_from_erp_employee,
    profile_from_snapshot,
)

__all__ = [
    "EnrichmentPipeline",
    "party_slots",
    "profile_from_erp_employee",
    "profile_from_snapshot",
]
