"""
Utilities module: Exceptions, schemas.
"""

from shared.utils.exceptions import (
    AppException,
    ValidationError,
    AuthenticationRequired,
    AuthorizationError,
    NotFoundError,
    ConflictError,
    InvalidTransitionError,
    BusinessRuleViolation,
)
from shared.utils.schemas import OrderItemInput, AvailabilityUpdate

__all__ = [
    # exceptions
    "AppException",
    "ValidationError",
    "AuthenticationRequired",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "InvalidTransitionError",
    "BusinessRuleViolation",
    # schemas
    "OrderItemInput",
    "AvailabilityUpdate",
]
