"""
Centralized exceptions for the ordering core.

Every error carries the HTTP status an upstream adapter should answer with,
and logs itself with structured context when raised.

Usage:
    from shared.utils.exceptions import NotFoundError, InvalidTransitionError

    raise NotFoundError("Order", order_id)
    raise InvalidTransitionError("Order", "PENDING", "PREPARING", order_id=order_id)
"""

from fastapi import HTTPException, status
from typing import Any

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, error=type(self).__name__, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)

    def __str__(self) -> str:
        return self.detail


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Malformed or missing input (400).

    Usage:
        raise ValidationError("Order must contain at least one item")
        raise ValidationError("Invalid quantity", field="qty", value=-1)
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class InvalidTransitionError(AppException):
    """Status edge not permitted by the order state graph (400)."""

    def __init__(
        self,
        entity: str,
        from_status: str,
        to_status: str,
        detail: str | None = None,
        **log_context: Any,
    ):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail or f"Invalid status transition from {from_status} to {to_status} for {entity}",
            log_level="warning",
            entity=entity,
            from_status=from_status,
            to_status=to_status,
            **log_context,
        )


class OrderAlreadyCanceledError(InvalidTransitionError):
    """Cancel requested on an order that is already canceled."""

    def __init__(self, order_id: int, **log_context: Any):
        super().__init__(
            "Order",
            "CANCELED",
            "CANCELED",
            detail="Order is already canceled",
            order_id=order_id,
            **log_context,
        )


class CompletedOrderCancelError(InvalidTransitionError):
    """Cancel requested on an order that is already completed."""

    def __init__(self, order_id: int, **log_context: Any):
        super().__init__(
            "Order",
            "COMPLETED",
            "CANCELED",
            detail="Cannot cancel completed order",
            order_id=order_id,
            **log_context,
        )


# =============================================================================
# 401 / 403 Errors
# =============================================================================


class AuthenticationRequired(AppException):
    """No principal was supplied (401)."""

    def __init__(self, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            log_level="warning",
            **log_context,
        )


class AuthorizationError(AppException):
    """
    Role or branch-scope mismatch (403).

    Usage:
        raise AuthorizationError("toggle global expiration")
    """

    def __init__(self, action: str | None = None, **log_context: Any):
        if action:
            detail = f"Not authorized to {action}"
        else:
            detail = "Access denied"

        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            action=action,
            **log_context,
        )


class BranchAccessError(AuthorizationError):
    """Principal is bound to a different branch."""

    def __init__(self, branch_id: int | None = None, **log_context: Any):
        self.branch_id = branch_id
        super().__init__("access this branch", branch_id=branch_id, **log_context)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Branch", 123)
        raise NotFoundError("Ingredient", ingredient_id, branch_id=branch_id)
    """

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} with ID {entity_id} not found"
        else:
            detail = f"{entity} not found"

        self.entity = entity
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


# =============================================================================
# 409 Conflict Errors
# =============================================================================


class ConflictError(AppException):
    """
    Unique-key collision or lost race (409).

    Usage:
        raise ConflictError("Order was modified concurrently; re-read and retry")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class StaleOrderStatusError(ConflictError):
    """The order status changed between read and conditional write."""

    def __init__(self, order_id: int, expected_status: str, **log_context: Any):
        self.order_id = order_id
        self.expected_status = expected_status
        super().__init__(
            f"Order {order_id} is no longer {expected_status}; re-read the order and retry",
            order_id=order_id,
            expected_status=expected_status,
            **log_context,
        )


# =============================================================================
# 422 Business Rule Errors
# =============================================================================


class BusinessRuleViolation(AppException):
    """
    Input is well-formed but breaks a domain rule (422).

    Usage:
        raise BusinessRuleViolation("Dish 7 is currently unavailable", dish_id=7)
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


# =============================================================================
# 500 Internal Server Errors
# =============================================================================


class InternalError(AppException):
    """
    Internal server error (500).

    Usage:
        raise InternalError("Failed to persist order", branch_id=3)
    """

    def __init__(self, detail: str = "Internal server error", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            log_level="error",
            **log_context,
        )


class OrderNumberExhaustedError(InternalError):
    """Every order number candidate collided; retry budget exhausted."""

    def __init__(self, attempts: int, **log_context: Any):
        super().__init__(
            f"Could not allocate a unique order number after {attempts} attempts",
            attempts=attempts,
            **log_context,
        )
