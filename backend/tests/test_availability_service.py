"""
Tests for AvailabilityService.
"""

import pytest
from sqlalchemy import func, select

from ordering_core.models import (
    BranchIngredientAvailability,
    BranchIngredientExpiration,
    Dish,
)
from ordering_core.services.domain import AvailabilityService
from shared.infrastructure.events import INGREDIENT_AVAILABILITY_UPDATE
from shared.utils.exceptions import (
    AuthorizationError,
    BranchAccessError,
    NotFoundError,
    ValidationError,
)
from shared.utils.schemas import AvailabilityUpdate


def _record_count(db_session, model) -> int:
    return db_session.scalar(select(func.count()).select_from(model))


class TestIngredientResolution:
    """Tests for resolve_ingredient_availability()."""

    def test_available_without_record(self, ctx, seed_branch, ingredients):
        """Should default to available when no record exists."""
        service = AvailabilityService(ctx)

        assert service.resolve_ingredient_availability(ingredients["tomato"].id, seed_branch.id) is True

    def test_override_false(self, ctx, admin, seed_branch, ingredients):
        service = AvailabilityService(ctx)
        service.update_availability(ingredients["tomato"].id, seed_branch.id, False, admin)

        assert service.resolve_ingredient_availability(ingredients["tomato"].id, seed_branch.id) is False

    def test_global_expired_wins_over_override(self, ctx, admin, seed_branch, ingredients):
        """Should be unavailable when globally expired even if the override says available."""
        service = AvailabilityService(ctx)
        tomato_id = ingredients["tomato"].id
        service.update_availability(tomato_id, seed_branch.id, True, admin)
        service.set_global_expired(tomato_id, True, admin)

        assert service.resolve_ingredient_availability(tomato_id, seed_branch.id) is False

    def test_branch_expired_only_affects_that_branch(
        self, ctx, admin, seed_branch, other_branch, ingredients
    ):
        service = AvailabilityService(ctx)
        tomato_id = ingredients["tomato"].id
        service.set_branch_expired(tomato_id, seed_branch.id, True, admin)

        assert service.resolve_ingredient_availability(tomato_id, seed_branch.id) is False
        assert service.resolve_ingredient_availability(tomato_id, other_branch.id) is True

    def test_unknown_ingredient(self, ctx, seed_branch):
        with pytest.raises(NotFoundError):
            AvailabilityService(ctx).resolve_ingredient_availability(9999, seed_branch.id)


class TestDishResolution:
    """Tests for resolve_dish_availability()."""

    def test_all_required_available(self, ctx, seed_branch, pizza):
        assert AvailabilityService(ctx).resolve_dish_availability(pizza, seed_branch.id) is True

    def test_required_ingredient_unavailable(self, ctx, admin, seed_branch, pizza, ingredients):
        """Should be unavailable when a required ingredient is out at the branch."""
        service = AvailabilityService(ctx)
        service.update_availability(ingredients["tomato"].id, seed_branch.id, False, admin)

        assert service.resolve_dish_availability(pizza, seed_branch.id) is False
        assert service.blocking_ingredients(pizza, seed_branch.id) == [ingredients["tomato"].id]

    def test_optional_ingredient_ignored(self, ctx, admin, seed_branch, pizza, ingredients):
        """Should stay available when only an optional ingredient is out."""
        service = AvailabilityService(ctx)
        service.update_availability(ingredients["basil"].id, seed_branch.id, False, admin)
        service.set_global_expired(ingredients["basil"].id, True, admin)

        assert service.resolve_dish_availability(pizza, seed_branch.id) is True

    def test_kill_switch(self, ctx, db_session, seed_branch, pizza):
        """Should be unavailable when dish.available is false, regardless of ingredients."""
        pizza.available = False
        db_session.commit()

        assert AvailabilityService(ctx).resolve_dish_availability(pizza, seed_branch.id) is False

    def test_dish_without_links_follows_kill_switch(self, ctx, db_session, seed_branch, soda):
        service = AvailabilityService(ctx)
        assert service.resolve_dish_availability(soda, seed_branch.id) is True

        soda.available = False
        db_session.commit()
        assert service.resolve_dish_availability(soda, seed_branch.id) is False


class TestBulkUpdate:
    """Tests for bulk_update_availability()."""

    def test_applies_all_and_emits_per_update(
        self, ctx, transport, branch_user, seed_branch, ingredients, db_session
    ):
        service = AvailabilityService(ctx)

        count = service.bulk_update_availability(
            seed_branch.id,
            [
                AvailabilityUpdate(ingredient_id=ingredients["tomato"].id, available=False),
                (ingredients["cheese"].id, True),
            ],
            branch_user,
        )

        assert count == 2
        assert _record_count(db_session, BranchIngredientAvailability) == 2
        events = transport.named(INGREDIENT_AVAILABILITY_UPDATE)
        assert [payload["ingredientId"] for _, payload in events] == [
            ingredients["tomato"].id,
            ingredients["cheese"].id,
        ]
        assert all(topic == f"branch-{seed_branch.id}" for topic, _ in events)
        assert events[0][1]["available"] is False
        assert events[0][1]["branchId"] == seed_branch.id

    def test_records_updated_by(self, ctx, branch_user, seed_branch, ingredients, db_session):
        AvailabilityService(ctx).bulk_update_availability(
            seed_branch.id, [(ingredients["dough"].id, False)], branch_user
        )

        record = db_session.scalar(select(BranchIngredientAvailability))
        assert record.updated_by == branch_user.user_id
        assert record.updated_at is not None

    def test_upsert_updates_existing_record(self, ctx, admin, seed_branch, ingredients, db_session):
        service = AvailabilityService(ctx)
        dough_id = ingredients["dough"].id

        service.bulk_update_availability(seed_branch.id, [(dough_id, False)], admin)
        service.bulk_update_availability(seed_branch.id, [(dough_id, True)], admin)

        assert _record_count(db_session, BranchIngredientAvailability) == 1
        assert service.resolve_ingredient_availability(dough_id, seed_branch.id) is True

    def test_unknown_ingredient_writes_nothing(
        self, ctx, transport, admin, seed_branch, ingredients, db_session
    ):
        """Should reject the whole batch when one ingredient does not exist."""
        with pytest.raises(NotFoundError):
            AvailabilityService(ctx).bulk_update_availability(
                seed_branch.id,
                [(ingredients["tomato"].id, False), (9999, False)],
                admin,
            )

        assert _record_count(db_session, BranchIngredientAvailability) == 0
        assert transport.events == []

    def test_unknown_branch(self, ctx, admin, ingredients):
        with pytest.raises(NotFoundError):
            AvailabilityService(ctx).bulk_update_availability(
                9999, [(ingredients["tomato"].id, False)], admin
            )

    def test_empty_updates_rejected(self, ctx, admin, seed_branch):
        with pytest.raises(ValidationError):
            AvailabilityService(ctx).bulk_update_availability(seed_branch.id, [], admin)

    def test_non_boolean_flag_rejected(self, ctx, admin, seed_branch, ingredients, db_session):
        with pytest.raises(ValidationError):
            AvailabilityService(ctx).bulk_update_availability(
                seed_branch.id, [(ingredients["tomato"].id, "no")], admin
            )

        assert _record_count(db_session, BranchIngredientAvailability) == 0

    def test_other_branch_denied(self, ctx, other_branch_user, seed_branch, ingredients, db_session):
        with pytest.raises(BranchAccessError):
            AvailabilityService(ctx).bulk_update_availability(
                seed_branch.id, [(ingredients["tomato"].id, False)], other_branch_user
            )

        assert _record_count(db_session, BranchIngredientAvailability) == 0


class TestExpiration:
    """Tests for global and per-branch expiration."""

    def test_global_expired_requires_admin(self, ctx, branch_user, ingredients):
        with pytest.raises(AuthorizationError):
            AvailabilityService(ctx).set_global_expired(ingredients["cheese"].id, True, branch_user)

    def test_global_expired_notifies_branches_with_records(
        self, ctx, transport, admin, seed_branch, other_branch, ingredients
    ):
        """Should notify every branch holding a record with the new effective value."""
        service = AvailabilityService(ctx)
        cheese_id = ingredients["cheese"].id
        service.update_availability(cheese_id, seed_branch.id, True, admin)
        service.set_branch_expired(cheese_id, other_branch.id, False, admin)
        transport.events.clear()

        service.set_global_expired(cheese_id, True, admin)

        events = transport.named(INGREDIENT_AVAILABILITY_UPDATE)
        assert sorted(topic for topic, _ in events) == sorted(
            [f"branch-{seed_branch.id}", f"branch-{other_branch.id}"]
        )
        assert all(payload["available"] is False for _, payload in events)

    def test_global_expired_notifies_branches_serving_dishes(
        self, ctx, transport, admin, seed_branch, other_branch, pizza, ingredients
    ):
        """Should notify a branch whose menu requires the ingredient even without records."""
        service = AvailabilityService(ctx)
        cheese_id = ingredients["cheese"].id
        assert service.list_dish_availability(seed_branch.id, admin)[0].available is True

        service.set_global_expired(cheese_id, True, admin)

        (topic, payload), = transport.named(INGREDIENT_AVAILABILITY_UPDATE)
        assert topic == f"branch-{seed_branch.id}"
        assert payload["ingredientId"] == cheese_id
        assert payload["available"] is False
        assert service.list_dish_availability(seed_branch.id, admin)[0].available is False

    def test_global_expired_skips_optional_only_branches(
        self, ctx, transport, admin, seed_branch, pizza, ingredients
    ):
        """Should not notify a branch where the ingredient is only optional."""
        AvailabilityService(ctx).set_global_expired(ingredients["basil"].id, True, admin)

        assert transport.named(INGREDIENT_AVAILABILITY_UPDATE) == []

    def test_branch_expired_emits_effective_value(
        self, ctx, transport, branch_user, seed_branch, ingredients
    ):
        service = AvailabilityService(ctx)

        view = service.set_branch_expired(ingredients["dough"].id, seed_branch.id, True, branch_user)

        assert view.branch_expired is True
        assert view.available is True
        assert view.effective is False
        (_, payload), = transport.named(INGREDIENT_AVAILABILITY_UPDATE)
        assert payload["available"] is False

    def test_branch_expired_is_one_record_per_pair(
        self, ctx, admin, seed_branch, ingredients, db_session
    ):
        service = AvailabilityService(ctx)
        service.set_branch_expired(ingredients["dough"].id, seed_branch.id, True, admin)
        service.set_branch_expired(ingredients["dough"].id, seed_branch.id, False, admin)

        assert _record_count(db_session, BranchIngredientExpiration) == 1
        assert service.resolve_ingredient_availability(ingredients["dough"].id, seed_branch.id) is True


class TestReadViews:
    """Tests for availability read views."""

    def test_ingredient_view_scoped_for_branch_user(
        self, ctx, admin, branch_user, seed_branch, other_branch, ingredients
    ):
        service = AvailabilityService(ctx)
        tomato_id = ingredients["tomato"].id
        service.update_availability(tomato_id, seed_branch.id, False, admin)
        service.update_availability(tomato_id, other_branch.id, True, admin)

        admin_view = service.get_ingredient_availability(tomato_id, admin)
        user_view = service.get_ingredient_availability(tomato_id, branch_user)

        assert {b.branch_id for b in admin_view.branches} == {seed_branch.id, other_branch.id}
        assert [b.branch_id for b in user_view.branches] == [seed_branch.id]
        assert user_view.branches[0].effective is False

    def test_availability_map_groups_by_ingredient(
        self, ctx, admin, seed_branch, other_branch, ingredients
    ):
        service = AvailabilityService(ctx)
        service.update_availability(ingredients["tomato"].id, seed_branch.id, False, admin)
        service.update_availability(ingredients["tomato"].id, other_branch.id, True, admin)
        service.set_branch_expired(ingredients["cheese"].id, seed_branch.id, True, admin)

        heatmap = service.availability_map(admin)

        # Sorted by ingredient name: cheese, tomato
        assert [entry.ingredient_name for entry in heatmap] == ["cheese", "tomato"]
        tomato_entry = heatmap[1]
        # Branches sorted by name: Centro, Norte
        assert [b.branch_name for b in tomato_entry.branches] == ["Centro", "Norte"]
        assert [b.effective for b in tomato_entry.branches] == [False, True]

    def test_availability_map_filtered_by_branch(
        self, ctx, admin, seed_branch, other_branch, ingredients
    ):
        service = AvailabilityService(ctx)
        service.update_availability(ingredients["tomato"].id, seed_branch.id, False, admin)
        service.update_availability(ingredients["dough"].id, other_branch.id, False, admin)

        heatmap = service.availability_map(admin, branch_id=other_branch.id)

        assert [entry.ingredient_id for entry in heatmap] == [ingredients["dough"].id]

    def test_list_dish_availability(self, ctx, admin, seed_branch, pizza, soda, foreign_dish, ingredients):
        """Should list only the branch's dishes with blocking ingredients."""
        service = AvailabilityService(ctx)
        service.update_availability(ingredients["cheese"].id, seed_branch.id, False, admin)

        menu = {d.dish_id: d for d in service.list_dish_availability(seed_branch.id, admin)}

        assert set(menu) == {pizza.id, soda.id}
        assert menu[pizza.id].available is False
        assert menu[pizza.id].blocking_ingredient_ids == [ingredients["cheese"].id]
        assert menu[soda.id].available is True

    def test_dish_availability_map_batches(self, ctx, admin, db_session, seed_branch, pizza, soda, ingredients):
        service = AvailabilityService(ctx)
        service.set_global_expired(ingredients["dough"].id, True, admin)
        dishes = db_session.scalars(select(Dish).order_by(Dish.id)).all()

        assert service.dish_availability_map(dishes, seed_branch.id) == {
            pizza.id: False,
            soda.id: True,
        }
