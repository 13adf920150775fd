"""
Access Control Guard - single entry point for branch-scoped permission checks.

Every service calls authorize() before touching branch data. The decision
depends only on the principal's role and bound branch, never on the order
or ingredient being touched beyond its branch_id.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from shared.config.constants import Roles
from shared.config.logging import audit_access_event
from shared.utils.exceptions import (
    AuthenticationRequired,
    AuthorizationError,
    BranchAccessError,
    ValidationError,
)
from .strategies import get_strategy_for_role


class Action(str, Enum):
    """Actions checked by the guard. Every action targets a branch."""

    CREATE_ORDER = "create_order"
    UPDATE_ORDER = "update_order"
    READ_ORDER = "read_order"
    LIST_ORDERS = "list_orders"
    UPDATE_AVAILABILITY = "update_availability"
    READ_AVAILABILITY = "read_availability"
    SUBSCRIBE = "subscribe"


@dataclass(frozen=True)
class Principal:
    """
    Pre-verified caller identity.

    branch_id is required for BRANCH_USER and ignored for ADMIN.
    user_id feeds the created_by/updated_by audit fields.
    """

    role: str
    branch_id: int | None = None
    user_id: int | None = None

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "Principal":
        """
        Build a principal from verified token claims.

        Expected keys: "role", optional "branch_id", optional "sub".
        """
        sub = claims.get("sub")
        branch_id = claims.get("branch_id")
        return cls(
            role=claims.get("role", ""),
            branch_id=int(branch_id) if branch_id is not None else None,
            user_id=int(sub) if sub is not None else None,
        )

    @property
    def is_admin(self) -> bool:
        return self.role == Roles.ADMIN


def authorize(principal: Principal | None, branch_id: int | None, action: Action) -> None:
    """
    Allow or deny an action on a branch.

    Raises:
        AuthenticationRequired: no principal supplied
        ValidationError: branch_id missing
        AuthorizationError: unknown role
        BranchAccessError: BRANCH_USER bound to a different branch
    """
    if principal is None:
        audit_access_event(
            "AUTH_REQUIRED",
            branch_id=branch_id,
            action=action.value,
            allowed=False,
            reason="no principal",
        )
        raise AuthenticationRequired(action=action.value)

    if branch_id is None:
        raise ValidationError("branch_id is required", action=action.value)

    strategy = get_strategy_for_role(principal.role)
    if strategy is None:
        audit_access_event(
            "ACCESS_DENIED",
            role=principal.role,
            principal_branch_id=principal.branch_id,
            branch_id=branch_id,
            action=action.value,
            allowed=False,
            reason="unknown role",
        )
        raise AuthorizationError(action.value.replace("_", " "), role=principal.role)

    if not strategy.allows_branch(principal, branch_id):
        audit_access_event(
            "ACCESS_DENIED",
            role=principal.role,
            principal_branch_id=principal.branch_id,
            branch_id=branch_id,
            action=action.value,
            allowed=False,
            reason="branch mismatch",
        )
        raise BranchAccessError(branch_id, role=principal.role, action_name=action.value)

    audit_access_event(
        "ACCESS_GRANTED",
        role=principal.role,
        principal_branch_id=principal.branch_id,
        branch_id=branch_id,
        action=action.value,
        allowed=True,
    )


def can(principal: Principal | None, branch_id: int | None, action: Action) -> bool:
    """Non-raising variant of authorize()."""
    if principal is None or branch_id is None:
        return False
    strategy = get_strategy_for_role(principal.role)
    return strategy is not None and strategy.allows_branch(principal, branch_id)


def require_admin(principal: Principal | None, action: str = "perform this action") -> None:
    """Raise unless the principal is an ADMIN."""
    if principal is None:
        raise AuthenticationRequired(action=action)
    if not principal.is_admin:
        audit_access_event(
            "ACCESS_DENIED",
            role=principal.role,
            principal_branch_id=principal.branch_id,
            action=action,
            allowed=False,
            reason="admin required",
        )
        raise AuthorizationError(f"{action} (ADMIN required)", role=principal.role)


def scope_branch_filter(
    principal: Principal | None,
    requested_branch_id: int | None,
    action: Action = Action.LIST_ORDERS,
) -> int | None:
    """
    Effective branch filter for a list query.

    ADMIN keeps the requested branch (None means every branch). BRANCH_USER
    is forced to its own branch and denied when it asks for another one.
    """
    if principal is None:
        raise AuthenticationRequired(action=action.value)

    strategy = get_strategy_for_role(principal.role)
    if strategy is None:
        raise AuthorizationError(action.value.replace("_", " "), role=principal.role)

    scoped = strategy.scope(principal, requested_branch_id)
    if scoped is None and not principal.is_admin:
        # Branch user without a bound branch sees nothing
        raise BranchAccessError(requested_branch_id, role=principal.role)

    if requested_branch_id is not None:
        authorize(principal, requested_branch_id, action)

    return scoped
