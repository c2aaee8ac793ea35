"""
app/validators package marker.
"""

from app.validators.offering_validator import (
    BatchValidationResult,
    OfferingValidation,
    validate_offering,
    validate_offerings,
)

__all__ = [
    "BatchValidationResult",
    "OfferingValidation",
    "validate_offering",
    "validate_offerings",
]
