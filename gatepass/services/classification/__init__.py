"""Counterparty classification."""

from .nonslt_classifier import classify, is_non_slt_identifier

__all__ = ["classify", "is_non_slt_identifier"]
