"""
Validation Layer
================

Bounded Context: Pure accept/reject decision for a closed loop.
"""

from territory_engine.validation.validator import ClaimValidator, FailureReason, ValidationResult

__all__ = [
    "ClaimValidator",
    "FailureReason",
    "ValidationResult",
]
