"""
Availability Domain Service.

Resolves the effective availability of ingredients and dishes at a branch
and applies stock and freshness changes.

Effective ingredient availability at a branch:
    override.available (True without a record)
    AND NOT ingredient.expired
    AND NOT branch-expired

Effective dish availability at a branch:
    dish.available AND every required ingredient effectively available.
    Optional ingredients never matter.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select

from shared.config.logging import availability_logger as logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import NotFoundError, ValidationError
from shared.utils.schemas import (
    AvailabilityUpdate,
    BranchAvailabilityOutput,
    DishAvailabilityOutput,
    IngredientAvailabilityOutput,
)
from ordering_core.models import (
    Branch,
    BranchIngredientAvailability,
    BranchIngredientExpiration,
    Dish,
    Ingredient,
)
from ordering_core.repositories import DishRepository, IngredientRepository
from ordering_core.services.context import BaseService, ServiceContext
from ordering_core.services.permissions import (
    Action,
    Principal,
    authorize,
    require_admin,
    scope_branch_filter,
)


def _required_ingredient_ids(dish: Dish) -> list[int]:
    return [link.ingredient_id for link in dish.ingredient_links if link.required]


class AvailabilityService(BaseService):
    """
    Domain service for ingredient and dish availability.

    Reads combine the stored flags at call time; writes upsert one record
    per (branch, ingredient) and emit an ingredient-availability-update
    after commit.
    """

    def __init__(self, ctx: ServiceContext):
        super().__init__(ctx)
        self._ingredients = IngredientRepository(self._db)
        self._dishes = DishRepository(self._db)

    # =========================================================================
    # Resolution
    # =========================================================================

    def resolve_ingredient_availability(self, ingredient_id: int, branch_id: int) -> bool:
        """
        Effective availability of one ingredient at one branch.

        Raises:
            NotFoundError: unknown ingredient
        """
        ingredient = self._db.get(Ingredient, ingredient_id)
        if ingredient is None:
            raise NotFoundError("Ingredient", ingredient_id)

        return self._effective_map(branch_id, [ingredient_id])[ingredient_id]

    def resolve_dish_availability(self, dish: Dish, branch_id: int) -> bool:
        """Effective availability of a dish at a branch."""
        if not dish.available:
            return False
        return not self.blocking_ingredients(dish, branch_id)

    def blocking_ingredients(self, dish: Dish, branch_id: int) -> list[int]:
        """Required ingredients of the dish that are unavailable at the branch."""
        required = _required_ingredient_ids(dish)
        if not required:
            return []
        effective = self._effective_map(branch_id, required)
        return [i for i in required if not effective.get(i, False)]

    def dish_availability_map(self, dishes: Sequence[Dish], branch_id: int) -> dict[int, bool]:
        """
        Effective availability of many dishes at one branch.
        The required ingredients of every dish are resolved in one batch.
        """
        blocking = self._blocking_by_dish(dishes, branch_id)
        return {dish.id: dish.available and not blocking[dish.id] for dish in dishes}

    def _blocking_by_dish(self, dishes: Sequence[Dish], branch_id: int) -> dict[int, list[int]]:
        all_required = sorted({i for dish in dishes for i in _required_ingredient_ids(dish)})
        effective = self._effective_map(branch_id, all_required)
        return {
            dish.id: [i for i in _required_ingredient_ids(dish) if not effective.get(i, False)]
            for dish in dishes
        }

    def _effective_map(self, branch_id: int, ingredient_ids: list[int]) -> dict[int, bool]:
        """Map ingredient_id -> effective availability at the branch."""
        if not ingredient_ids:
            return {}

        globally_expired = dict(
            self._db.execute(
                select(Ingredient.id, Ingredient.expired).where(Ingredient.id.in_(ingredient_ids))
            ).all()
        )
        overrides = self._ingredients.availability_for_branch(branch_id, ingredient_ids)
        branch_expired = self._ingredients.expired_for_branch(branch_id, ingredient_ids)

        return {
            ingredient_id: (
                overrides.get(ingredient_id, True)
                and not globally_expired[ingredient_id]
                and ingredient_id not in branch_expired
            )
            for ingredient_id in ingredient_ids
            if ingredient_id in globally_expired
        }

    # =========================================================================
    # Stock updates
    # =========================================================================

    def bulk_update_availability(
        self,
        branch_id: int,
        updates: Iterable[AvailabilityUpdate | tuple[int, bool]],
        principal: Principal | None,
    ) -> int:
        """
        Set the availability override of many ingredients at one branch.

        All-or-nothing: the branch and every ingredient are validated before
        the first write. Repeated ingredient IDs collapse to the last value.

        Returns:
            Number of records written.
        """
        authorize(principal, branch_id, Action.UPDATE_AVAILABILITY)

        normalized = self._normalize_updates(updates)
        if not normalized:
            raise ValidationError("At least one availability update is required", branch_id=branch_id)

        self._require_branch(branch_id)

        missing = self._ingredients.missing_ids(list(normalized))
        if missing:
            raise NotFoundError(
                "Ingredient",
                ", ".join(str(i) for i in missing),
                branch_id=branch_id,
            )

        for ingredient_id, available in normalized.items():
            self._ingredients.upsert_availability(
                branch_id, ingredient_id, available, updated_by=principal.user_id
            )
        safe_commit(self._db)

        logger.info(
            "Bulk availability updated",
            branch_id=branch_id,
            count=len(normalized),
            user_id=principal.user_id,
        )

        timestamp = datetime.now(timezone.utc)
        for ingredient_id, available in normalized.items():
            self._propagator.emit_availability_update(
                ingredient_id, branch_id, available, timestamp=timestamp
            )

        return len(normalized)

    def update_availability(
        self,
        ingredient_id: int,
        branch_id: int,
        available: bool,
        principal: Principal | None,
    ) -> BranchAvailabilityOutput:
        """Set the availability override of one ingredient at one branch."""
        authorize(principal, branch_id, Action.UPDATE_AVAILABILITY)
        self._validate_flag(available, "available")

        ingredient = self._require_ingredient(ingredient_id)
        branch = self._require_branch(branch_id)

        record = self._ingredients.upsert_availability(
            branch_id, ingredient_id, available, updated_by=principal.user_id
        )
        updated_at = record.updated_at
        safe_commit(self._db)

        logger.info(
            "Ingredient availability updated",
            ingredient_id=ingredient_id,
            branch_id=branch_id,
            available=available,
            user_id=principal.user_id,
        )
        self._propagator.emit_availability_update(
            ingredient_id, branch_id, available, timestamp=updated_at
        )

        branch_expired = ingredient_id in self._ingredients.expired_for_branch(
            branch_id, [ingredient_id]
        )
        return BranchAvailabilityOutput(
            branch_id=branch.id,
            branch_name=branch.name,
            available=available,
            branch_expired=branch_expired,
            effective=available and not ingredient.expired and not branch_expired,
            updated_at=updated_at,
        )

    # =========================================================================
    # Freshness updates
    # =========================================================================

    def set_global_expired(
        self,
        ingredient_id: int,
        expired: bool,
        principal: Principal | None,
    ) -> Ingredient:
        """
        Toggle the global expiration flag of an ingredient (ADMIN only).

        Every branch holding a record for the ingredient, or serving a dish
        that requires it, is notified with the new effective availability there.
        """
        require_admin(principal, "toggle global ingredient expiration")
        self._validate_flag(expired, "expired")

        ingredient = self._require_ingredient(ingredient_id)
        ingredient.expired = expired
        ingredient.set_updated_by(principal.user_id)
        safe_commit(self._db)

        logger.info(
            "Ingredient global expiration updated",
            ingredient_id=ingredient_id,
            expired=expired,
            user_id=principal.user_id,
        )

        timestamp = datetime.now(timezone.utc)
        for branch_id in self._ingredients.branch_ids_serving(ingredient_id):
            effective = self._effective_map(branch_id, [ingredient_id])[ingredient_id]
            self._propagator.emit_availability_update(
                ingredient_id, branch_id, effective, timestamp=timestamp
            )

        return ingredient

    def set_branch_expired(
        self,
        ingredient_id: int,
        branch_id: int,
        expired: bool,
        principal: Principal | None,
    ) -> BranchAvailabilityOutput:
        """Flag an ingredient as expired (or fresh again) at one branch."""
        authorize(principal, branch_id, Action.UPDATE_AVAILABILITY)
        self._validate_flag(expired, "expired")

        self._require_ingredient(ingredient_id)
        branch = self._require_branch(branch_id)

        record = self._ingredients.upsert_expiration(
            branch_id, ingredient_id, expired, updated_by=principal.user_id
        )
        updated_at = record.updated_at
        safe_commit(self._db)

        effective = self._effective_map(branch_id, [ingredient_id])[ingredient_id]
        override = self._ingredients.availability_for_branch(branch_id, [ingredient_id])

        logger.info(
            "Ingredient branch expiration updated",
            ingredient_id=ingredient_id,
            branch_id=branch_id,
            expired=expired,
            effective=effective,
            user_id=principal.user_id,
        )
        self._propagator.emit_availability_update(
            ingredient_id, branch_id, effective, timestamp=updated_at
        )

        return BranchAvailabilityOutput(
            branch_id=branch.id,
            branch_name=branch.name,
            available=override.get(ingredient_id, True),
            branch_expired=expired,
            effective=effective,
            updated_at=updated_at,
        )

    # =========================================================================
    # Read views
    # =========================================================================

    def get_ingredient_availability(
        self,
        ingredient_id: int,
        principal: Principal | None,
    ) -> IngredientAvailabilityOutput:
        """
        Per-branch flags of one ingredient, for the branches holding a record.
        BRANCH_USER only sees its own branch.
        """
        branch_scope = scope_branch_filter(principal, None, Action.READ_AVAILABILITY)
        ingredient = self._require_ingredient(ingredient_id)

        views = self._branch_views(ingredient_id=ingredient_id, branch_id=branch_scope)
        return IngredientAvailabilityOutput(
            ingredient_id=ingredient.id,
            ingredient_name=ingredient.name,
            expired=ingredient.expired,
            branches=views.get(ingredient.id, []),
        )

    def availability_map(
        self,
        principal: Principal | None,
        branch_id: int | None = None,
    ) -> list[IngredientAvailabilityOutput]:
        """
        Heatmap data: every ingredient with a branch record, grouped by
        ingredient and sorted by ingredient name then branch name.
        """
        branch_scope = scope_branch_filter(principal, branch_id, Action.READ_AVAILABILITY)
        views = self._branch_views(branch_id=branch_scope)
        if not views:
            return []

        ingredients = self._db.scalars(
            select(Ingredient).where(Ingredient.id.in_(list(views))).order_by(Ingredient.name)
        ).all()
        return [
            IngredientAvailabilityOutput(
                ingredient_id=ingredient.id,
                ingredient_name=ingredient.name,
                expired=ingredient.expired,
                branches=views[ingredient.id],
            )
            for ingredient in ingredients
        ]

    def list_dish_availability(
        self,
        branch_id: int,
        principal: Principal | None,
    ) -> list[DishAvailabilityOutput]:
        """Effective availability of every dish on the branch's menus."""
        authorize(principal, branch_id, Action.READ_AVAILABILITY)
        self._require_branch(branch_id)

        dishes = self._dishes.find_for_branch(branch_id)
        blocking = self._blocking_by_dish(dishes, branch_id)

        return [
            DishAvailabilityOutput(
                dish_id=dish.id,
                menu_id=dish.menu_id,
                name=dish.name,
                price_cents=dish.price_cents,
                available=dish.available and not blocking[dish.id],
                blocking_ingredient_ids=blocking[dish.id],
            )
            for dish in dishes
        ]

    def _branch_views(
        self,
        ingredient_id: int | None = None,
        branch_id: int | None = None,
    ) -> dict[int, list[BranchAvailabilityOutput]]:
        """Group availability/expiration records by ingredient, one entry per branch."""
        overrides: dict[tuple[int, int], BranchIngredientAvailability] = {
            (r.ingredient_id, r.branch_id): r
            for r in self._ingredients.availability_records(ingredient_id, branch_id)
        }
        expirations: dict[tuple[int, int], BranchIngredientExpiration] = {
            (r.ingredient_id, r.branch_id): r
            for r in self._ingredients.expiration_records(ingredient_id, branch_id)
        }
        keys = set(overrides) | set(expirations)
        if not keys:
            return {}

        branch_names = dict(
            self._db.execute(
                select(Branch.id, Branch.name).where(Branch.id.in_({b for _, b in keys}))
            ).all()
        )
        globally_expired = dict(
            self._db.execute(
                select(Ingredient.id, Ingredient.expired).where(
                    Ingredient.id.in_({i for i, _ in keys})
                )
            ).all()
        )

        views: dict[int, list[BranchAvailabilityOutput]] = {}
        for key in sorted(keys, key=lambda k: (branch_names.get(k[1], ""), k[1])):
            ing_id, b_id = key
            override = overrides.get(key)
            expiration = expirations.get(key)
            available = override.available if override else True
            branch_expired = bool(expiration and expiration.expired)
            updated_at = max(
                (r.updated_at for r in (override, expiration) if r is not None and r.updated_at),
                default=None,
            )
            views.setdefault(ing_id, []).append(
                BranchAvailabilityOutput(
                    branch_id=b_id,
                    branch_name=branch_names.get(b_id, ""),
                    available=available,
                    branch_expired=branch_expired,
                    effective=available and not globally_expired[ing_id] and not branch_expired,
                    updated_at=updated_at,
                )
            )
        return views

    # =========================================================================
    # Helpers
    # =========================================================================

    def _require_branch(self, branch_id: int) -> Branch:
        branch = self._db.get(Branch, branch_id)
        if branch is None:
            raise NotFoundError("Branch", branch_id)
        return branch

    def _require_ingredient(self, ingredient_id: int) -> Ingredient:
        ingredient = self._db.get(Ingredient, ingredient_id)
        if ingredient is None:
            raise NotFoundError("Ingredient", ingredient_id)
        return ingredient

    @staticmethod
    def _validate_flag(value: Any, name: str) -> None:
        if not isinstance(value, bool):
            raise ValidationError(f"{name} must be a boolean", field=name, value=value)

    def _normalize_updates(
        self, updates: Iterable[AvailabilityUpdate | tuple[int, bool]]
    ) -> dict[int, bool]:
        normalized: dict[int, bool] = {}
        for update in updates or ():
            if isinstance(update, AvailabilityUpdate):
                ingredient_id, available = update.ingredient_id, update.available
            else:
                try:
                    ingredient_id, available = update
                except (TypeError, ValueError):
                    raise ValidationError(
                        "Each update must be an (ingredient_id, available) pair",
                        value=repr(update),
                    ) from None

            if isinstance(ingredient_id, bool) or not isinstance(ingredient_id, int):
                raise ValidationError(
                    "ingredient_id must be an integer", field="ingredient_id", value=ingredient_id
                )
            self._validate_flag(available, "available")
            normalized[ingredient_id] = available
        return normalized
