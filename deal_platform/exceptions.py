"""
deal_platform/exceptions.py
===========================
Exception classes surfaced to callers of the valuation engine.

Only input validation failures abort a computation. Reference lookup misses
and arithmetic guards never raise; they resolve to neutral values and are
reported through the result's `warnings`.
"""
from __future__ import annotations
from typing import Any, Dict, Optional


class DealPlatformError(Exception):
    """Base class carrying a machine-readable code and structured details."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ValidationError(DealPlatformError):
    """Raised when a submitted record cannot enter the pipeline."""

    def __init__(self, field_name: str, reason: str):
        message = f"Invalid input for '{field_name}': {reason}"
        super().__init__(
            message=message,
            error_code="VALIDATION_FAILED",
            details={"field": field_name, "reason": reason},
        )
        self.field_name = field_name


class ReferenceDataError(DealPlatformError):
    """Raised when a reference table cannot be turned into a lookup series."""

    def __init__(self, table: str, reason: str):
        message = f"Reference table '{table}' is invalid: {reason}"
        super().__init__(
            message=message,
            error_code="REFERENCE_DATA_INVALID",
            details={"table": table, "reason": reason},
        )
        self.table = table
