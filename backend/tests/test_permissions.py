"""
Tests for the access control guard.
"""

import pytest

from ordering_core.services.permissions import (
    Action,
    Principal,
    authorize,
    can,
    require_admin,
    scope_branch_filter,
)
from shared.utils.exceptions import (
    AuthenticationRequired,
    AuthorizationError,
    BranchAccessError,
    ValidationError,
)


ADMIN = Principal(role="ADMIN", user_id=1)
BRANCH_A_USER = Principal(role="BRANCH_USER", branch_id=1, user_id=2)
UNBOUND_USER = Principal(role="BRANCH_USER", branch_id=None, user_id=3)


class TestAuthorize:
    """Tests for authorize()."""

    @pytest.mark.parametrize("action", list(Action))
    def test_admin_allowed_on_any_branch(self, action):
        """Should allow ADMIN on every branch and action."""
        authorize(ADMIN, 1, action)
        authorize(ADMIN, 99, action)

    def test_branch_user_allowed_on_own_branch(self):
        """Should allow BRANCH_USER on its own branch."""
        authorize(BRANCH_A_USER, 1, Action.UPDATE_ORDER)

    def test_branch_user_denied_on_other_branch(self):
        """Should raise BranchAccessError for another branch."""
        with pytest.raises(BranchAccessError) as exc_info:
            authorize(BRANCH_A_USER, 2, Action.UPDATE_ORDER)

        assert exc_info.value.status_code == 403
        assert exc_info.value.branch_id == 2

    def test_branch_access_error_is_authorization_error(self):
        """Should let callers catch branch denials as AuthorizationError."""
        with pytest.raises(AuthorizationError):
            authorize(BRANCH_A_USER, 2, Action.READ_ORDER)

    def test_missing_principal_requires_authentication(self):
        """Should raise AuthenticationRequired when no principal is given."""
        with pytest.raises(AuthenticationRequired) as exc_info:
            authorize(None, 1, Action.CREATE_ORDER)

        assert exc_info.value.status_code == 401

    def test_missing_branch_is_validation_error(self):
        """Should raise ValidationError, not AuthorizationError, without a branch."""
        with pytest.raises(ValidationError) as exc_info:
            authorize(ADMIN, None, Action.CREATE_ORDER)

        assert not isinstance(exc_info.value, AuthorizationError)
        assert exc_info.value.status_code == 400

    def test_unknown_role_denied(self):
        """Should deny a role the guard does not know."""
        with pytest.raises(AuthorizationError):
            authorize(Principal(role="WAITER", branch_id=1), 1, Action.READ_ORDER)

    def test_unbound_branch_user_denied(self):
        """Should deny a BRANCH_USER that is not bound to any branch."""
        with pytest.raises(BranchAccessError):
            authorize(UNBOUND_USER, 1, Action.READ_ORDER)

    def test_denial_is_audited(self, caplog):
        """Should write denials to the security audit logger."""
        caplog.set_level("WARNING", logger="security.audit")

        with pytest.raises(BranchAccessError):
            authorize(BRANCH_A_USER, 2, Action.UPDATE_AVAILABILITY)

        audit_records = [r for r in caplog.records if r.name == "security.audit"]
        assert audit_records
        assert audit_records[-1].extra_data["action"] == "update_availability"
        assert audit_records[-1].extra_data["allowed"] is False


class TestCan:
    """Tests for the non-raising variant."""

    def test_can_mirrors_authorize(self):
        assert can(ADMIN, 5, Action.LIST_ORDERS) is True
        assert can(BRANCH_A_USER, 1, Action.LIST_ORDERS) is True
        assert can(BRANCH_A_USER, 2, Action.LIST_ORDERS) is False

    def test_can_is_false_without_principal_or_branch(self):
        assert can(None, 1, Action.READ_ORDER) is False
        assert can(ADMIN, None, Action.READ_ORDER) is False


class TestRequireAdmin:
    """Tests for require_admin()."""

    def test_admin_passes(self):
        require_admin(ADMIN)

    def test_branch_user_rejected(self):
        with pytest.raises(AuthorizationError) as exc_info:
            require_admin(BRANCH_A_USER, "toggle global ingredient expiration")

        assert exc_info.value.status_code == 403

    def test_no_principal_rejected(self):
        with pytest.raises(AuthenticationRequired):
            require_admin(None)


class TestScopeBranchFilter:
    """Tests for list-query scoping."""

    def test_admin_keeps_requested_branch(self):
        assert scope_branch_filter(ADMIN, 3) == 3

    def test_admin_without_branch_is_unscoped(self):
        assert scope_branch_filter(ADMIN, None) is None

    def test_branch_user_forced_to_own_branch(self):
        assert scope_branch_filter(BRANCH_A_USER, None) == 1
        assert scope_branch_filter(BRANCH_A_USER, 1) == 1

    def test_branch_user_requesting_other_branch_denied(self):
        with pytest.raises(BranchAccessError):
            scope_branch_filter(BRANCH_A_USER, 2)

    def test_unbound_branch_user_denied(self):
        with pytest.raises(BranchAccessError):
            scope_branch_filter(UNBOUND_USER, None)


class TestPrincipalFromClaims:
    """Tests for building principals from verified token claims."""

    def test_from_claims(self):
        principal = Principal.from_claims({"role": "BRANCH_USER", "branch_id": "4", "sub": "17"})

        assert principal == Principal(role="BRANCH_USER", branch_id=4, user_id=17)
        assert principal.is_admin is False

    def test_from_claims_admin_without_branch(self):
        principal = Principal.from_claims({"role": "ADMIN"})

        assert principal.branch_id is None
        assert principal.user_id is None
        assert principal.is_admin is True
