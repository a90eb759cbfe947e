"""Returnable-item ledger."""

from .returnable_items_ledger import MarkReturnedResult, ReturnableItemsLedger

__all__ = ["MarkReturnedResult", "ReturnableItemsLedger"]
