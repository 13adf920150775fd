"""
Ingredient Repository - Data access for ingredients and their per-branch
availability and expiration records.
"""

from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import Select, select

from ordering_core.models import (
    BranchIngredientAvailability,
    BranchIngredientExpiration,
    Dish,
    DishIngredient,
    Ingredient,
    Menu,
)
from .base import BaseRepository, RepositoryFilters


class IngredientRepository(BaseRepository[Ingredient]):
    """Repository for Ingredient entities and their branch records."""

    @property
    def model(self) -> type[Ingredient]:
        return Ingredient

    def _base_query(self) -> Select:
        return select(Ingredient).order_by(Ingredient.name)

    def _apply_filters(self, query: Select, filters: RepositoryFilters) -> Select:
        # Ingredients are global; branch filters do not apply.
        return query

    def missing_ids(self, ingredient_ids: list[int]) -> list[int]:
        """Return the requested IDs that do not exist, in request order."""
        if not ingredient_ids:
            return []
        found = set(
            self._db.scalars(
                select(Ingredient.id).where(Ingredient.id.in_(ingredient_ids))
            ).all()
        )
        return [i for i in ingredient_ids if i not in found]

    # =========================================================================
    # Availability overrides
    # =========================================================================

    def get_availability(
        self, branch_id: int, ingredient_id: int
    ) -> BranchIngredientAvailability | None:
        return self._db.scalar(
            select(BranchIngredientAvailability).where(
                BranchIngredientAvailability.branch_id == branch_id,
                BranchIngredientAvailability.ingredient_id == ingredient_id,
            )
        )

    def upsert_availability(
        self,
        branch_id: int,
        ingredient_id: int,
        available: bool,
        updated_by: int | None = None,
    ) -> BranchIngredientAvailability:
        """Create or update the (branch, ingredient) availability record."""
        record = self.get_availability(branch_id, ingredient_id)
        if record is None:
            record = BranchIngredientAvailability(
                branch_id=branch_id,
                ingredient_id=ingredient_id,
            )
            self._db.add(record)

        record.available = available
        record.updated_by = updated_by
        record.updated_at = datetime.now(timezone.utc)
        return record

    def availability_for_branch(
        self, branch_id: int, ingredient_ids: list[int]
    ) -> dict[int, bool]:
        """Map ingredient_id -> override flag for the ingredients that have a record."""
        if not ingredient_ids:
            return {}
        rows = self._db.execute(
            select(
                BranchIngredientAvailability.ingredient_id,
                BranchIngredientAvailability.available,
            ).where(
                BranchIngredientAvailability.branch_id == branch_id,
                BranchIngredientAvailability.ingredient_id.in_(ingredient_ids),
            )
        ).all()
        return {ingredient_id: available for ingredient_id, available in rows}

    # =========================================================================
    # Branch expiration map
    # =========================================================================

    def get_expiration(
        self, branch_id: int, ingredient_id: int
    ) -> BranchIngredientExpiration | None:
        return self._db.scalar(
            select(BranchIngredientExpiration).where(
                BranchIngredientExpiration.branch_id == branch_id,
                BranchIngredientExpiration.ingredient_id == ingredient_id,
            )
        )

    def upsert_expiration(
        self,
        branch_id: int,
        ingredient_id: int,
        expired: bool,
        updated_by: int | None = None,
    ) -> BranchIngredientExpiration:
        """Create or update the (branch, ingredient) expiration record."""
        record = self.get_expiration(branch_id, ingredient_id)
        if record is None:
            record = BranchIngredientExpiration(
                branch_id=branch_id,
                ingredient_id=ingredient_id,
            )
            self._db.add(record)

        record.expired = expired
        record.updated_by = updated_by
        record.updated_at = datetime.now(timezone.utc)
        return record

    def expired_for_branch(self, branch_id: int, ingredient_ids: list[int]) -> set[int]:
        """IDs of the given ingredients flagged expired at the branch."""
        if not ingredient_ids:
            return set()
        return set(
            self._db.scalars(
                select(BranchIngredientExpiration.ingredient_id).where(
                    BranchIngredientExpiration.branch_id == branch_id,
                    BranchIngredientExpiration.ingredient_id.in_(ingredient_ids),
                    BranchIngredientExpiration.expired.is_(True),
                )
            ).all()
        )

    # =========================================================================
    # Cross-branch views
    # =========================================================================

    def branch_ids_with_records(self, ingredient_id: int) -> list[int]:
        """Branches holding an availability or expiration record for the ingredient."""
        availability = select(BranchIngredientAvailability.branch_id).where(
            BranchIngredientAvailability.ingredient_id == ingredient_id
        )
        expiration = select(BranchIngredientExpiration.branch_id).where(
            BranchIngredientExpiration.ingredient_id == ingredient_id
        )
        branch_ids = set(self._db.scalars(availability).all())
        branch_ids.update(self._db.scalars(expiration).all())
        return sorted(branch_ids)

    def branch_ids_serving(self, ingredient_id: int) -> list[int]:
        """
        Branches whose effective availability of the ingredient matters: those
        holding a record for it plus those whose menus have a dish requiring it.
        """
        menus = (
            select(Menu.branch_id)
            .join(Dish, Dish.menu_id == Menu.id)
            .join(DishIngredient, DishIngredient.dish_id == Dish.id)
            .where(
                DishIngredient.ingredient_id == ingredient_id,
                DishIngredient.required.is_(True),
            )
        )
        branch_ids = set(self.branch_ids_with_records(ingredient_id))
        branch_ids.update(self._db.scalars(menus).all())
        return sorted(branch_ids)

    def availability_records(
        self,
        ingredient_id: int | None = None,
        branch_id: int | None = None,
    ) -> Sequence[BranchIngredientAvailability]:
        query = select(BranchIngredientAvailability)
        if ingredient_id is not None:
            query = query.where(BranchIngredientAvailability.ingredient_id == ingredient_id)
        if branch_id is not None:
            query = query.where(BranchIngredientAvailability.branch_id == branch_id)
        return self._db.scalars(query).all()

    def expiration_records(
        self,
        ingredient_id: int | None = None,
        branch_id: int | None = None,
    ) -> Sequence[BranchIngredientExpiration]:
        query = select(BranchIngredientExpiration)
        if ingredient_id is not None:
            query = query.where(BranchIngredientExpiration.ingredient_id == ingredient_id)
        if branch_id is not None:
            query = query.where(BranchIngredientExpiration.branch_id == branch_id)
        return self._db.scalars(query).all()

