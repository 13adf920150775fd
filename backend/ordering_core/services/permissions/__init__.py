"""
Access Control Guard.

Usage:
    from ordering_core.services.permissions import Action, Principal, authorize

    principal = Principal(role="BRANCH_USER", branch_id=3, user_id=12)
    authorize(principal, order.branch_id, Action.UPDATE_ORDER)
"""

from .context import (
    Action,
    Principal,
    authorize,
    can,
    require_admin,
    scope_branch_filter,
)
from .strategies import (
    AdminStrategy,
    BranchUserStrategy,
    PermissionStrategy,
    get_strategy_for_role,
)

__all__ = [
    # Guard
    "Action",
    "Principal",
    "authorize",
    "can",
    "require_admin",
    "scope_branch_filter",
    # Strategies
    "PermissionStrategy",
    "AdminStrategy",
    "BranchUserStrategy",
    "get_strategy_for_role",
]
