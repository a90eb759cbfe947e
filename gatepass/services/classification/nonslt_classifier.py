"""Classification of counterparty identifiers as SLT or non-SLT.

Classification depends only on the shape of the identifier, never on whether a
lookup for it succeeds.
"""

from typing import Optional

from gatepass.schemas.profile import PartyKind
from gatepass.services.classification.constants import (
    NON_SLT_NUMERIC_PATTERN,
    NON_SLT_PREFIX,
)


def classify(identifier: Optional[str]) -> PartyKind:
    """Classify a party identifier.

    Rules, in order: empty or absent is external (nothing to look up), the
    ``NSL`` prefix is external, a bare 4-6 digit number is external, anything
    else is an internal service number.

    Args:
        identifier: Service number or external identifier

    Returns:
        PartyKind.INTERNAL or PartyKind.EXTERNAL
    """
    if not identifier:
        return PartyKind.EXTERNAL
    if identifier.startswith(NON_SLT_PREFIX):
        return PartyKind.EXTERNAL
    if NON_SLT_NUMERIC_PATTERN.fullmatch(identifier):
        return PartyKind.EXTERNAL
    return PartyKind.INTERNAL


def is_non_slt_identifier(identifier: Optional[str]) -> bool:
    return classify(identifier) == PartyKind.EXTERNAL
