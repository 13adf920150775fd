"""
Centralized constants for the ordering core.

Usage:
    from shared.config.constants import Roles, OrderStatus, ORDER_TRANSITIONS

    if principal.role == Roles.ADMIN:
        ...

    if new_status in ORDER_TRANSITIONS[order.status]:
        ...
"""

from typing import Final


# =============================================================================
# Principal Roles
# =============================================================================


class Roles:
    """Principal role constants."""

    ADMIN: Final[str] = "ADMIN"
    BRANCH_USER: Final[str] = "BRANCH_USER"


# =============================================================================
# Order Status
# =============================================================================


class OrderStatus:
    """Order status constants."""

    PENDING: Final[str] = "PENDING"
    ACCEPTED: Final[str] = "ACCEPTED"
    PREPARING: Final[str] = "PREPARING"
    READY: Final[str] = "READY"
    OUT_FOR_DELIVERY: Final[str] = "OUT_FOR_DELIVERY"
    COMPLETED: Final[str] = "COMPLETED"
    CANCELED: Final[str] = "CANCELED"

    ALL: Final[list[str]] = [
        PENDING, ACCEPTED, PREPARING, READY, OUT_FOR_DELIVERY, COMPLETED, CANCELED,
    ]
    ACTIVE: Final[list[str]] = [PENDING, ACCEPTED, PREPARING, READY, OUT_FOR_DELIVERY]
    TERMINAL: Final[list[str]] = [COMPLETED, CANCELED]


# =============================================================================
# Status Transitions
# =============================================================================

# Valid order status transitions (from -> allowed to states)
# READY -> COMPLETED covers pickup orders; OUT_FOR_DELIVERY covers delivery.
ORDER_TRANSITIONS: Final[dict[str, frozenset[str]]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.ACCEPTED, OrderStatus.CANCELED}),
    OrderStatus.ACCEPTED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELED}),
    OrderStatus.READY: frozenset({
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELED,
    }),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELED}),
    OrderStatus.COMPLETED: frozenset(),  # Terminal state
    OrderStatus.CANCELED: frozenset(),  # Terminal state
}


# =============================================================================
# Validation Constants
# =============================================================================


class Limits:
    """Validation limits."""

    # Quantity limits
    MIN_QUANTITY: Final[int] = 1

    # Order numbers (chk_order_number_six_digits)
    ORDER_NUMBER_FLOOR: Final[int] = 100000
    ORDER_NUMBER_CEILING: Final[int] = 999999

    # String lengths
    MAX_NAME_LENGTH: Final[int] = 100
    MAX_CANCEL_REASON_LENGTH: Final[int] = 200

    # Pagination
    DEFAULT_PAGE_SIZE: Final[int] = 50
    MAX_PAGE_SIZE: Final[int] = 200
