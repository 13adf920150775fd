"""
Permission Strategy implementations.
Strategy Pattern for role-based branch scoping.

Each strategy answers two questions for its role:
- may the principal act on a given branch?
- which branch scope applies to a list query?
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from shared.config.constants import Roles

if TYPE_CHECKING:
    from .context import Principal


class PermissionStrategy(ABC):
    """Abstract base for role strategies."""

    role: str = ""

    @abstractmethod
    def allows_branch(self, principal: "Principal", branch_id: int) -> bool:
        """Check if the principal may act on the branch."""
        ...

    @abstractmethod
    def scope(self, principal: "Principal", requested_branch_id: int | None) -> int | None:
        """
        Effective branch filter for a list query.

        Returns None when the query is unscoped (all branches).
        """
        ...


class AdminStrategy(PermissionStrategy):
    """ADMIN acts on every branch and may list across branches."""

    role = Roles.ADMIN

    def allows_branch(self, principal: "Principal", branch_id: int) -> bool:
        return True

    def scope(self, principal: "Principal", requested_branch_id: int | None) -> int | None:
        return requested_branch_id


class BranchUserStrategy(PermissionStrategy):
    """BRANCH_USER is confined to the branch it is bound to."""

    role = Roles.BRANCH_USER

    def allows_branch(self, principal: "Principal", branch_id: int) -> bool:
        return principal.branch_id is not None and principal.branch_id == branch_id

    def scope(self, principal: "Principal", requested_branch_id: int | None) -> int | None:
        # Always forced to the bound branch; callers check allows_branch first
        return principal.branch_id


STRATEGY_REGISTRY: dict[str, type[PermissionStrategy]] = {
    Roles.ADMIN: AdminStrategy,
    Roles.BRANCH_USER: BranchUserStrategy,
}


def get_strategy_for_role(role: str | None) -> PermissionStrategy | None:
    """Get permission strategy for a role, or None for an unknown role."""
    strategy_class = STRATEGY_REGISTRY.get(role or "")
    return strategy_class() if strategy_class else None
