"""Validation package."""

from moneybook.validation.validator import LedgerValidationError, LedgerValidator

__all__ = ["LedgerValidationError", "LedgerValidator"]
