"""
Catalog Repository - Data access for dishes.
Ingredient links are eager loaded so availability can be resolved in bulk.
"""

from typing import Sequence

from sqlalchemy import Select, select
from sqlalchemy.orm import joinedload, selectinload

from ordering_core.models import Dish, Menu
from .base import BaseRepository, RepositoryFilters


class DishRepository(BaseRepository[Dish]):
    """
    Repository for Dish entities.

    Guarantees eager loading of:
    - menu (for the owning branch)
    - ingredient_links
    """

    @property
    def model(self) -> type[Dish]:
        return Dish

    def _base_query(self) -> Select:
        return (
            select(Dish)
            .options(joinedload(Dish.menu))
            .options(selectinload(Dish.ingredient_links))
            .order_by(Dish.menu_id, Dish.name, Dish.id)
        )

    def _apply_filters(self, query: Select, filters: RepositoryFilters) -> Select:
        """Scope dishes to the branches owning their menus."""
        if filters.branch_id is not None or filters.branch_ids:
            query = query.join(Dish.menu)
            if filters.branch_id is not None:
                query = query.where(Menu.branch_id == filters.branch_id)
            else:
                query = query.where(Menu.branch_id.in_(filters.branch_ids))

        return query

    def find_for_branch(self, branch_id: int) -> Sequence[Dish]:
        """Every dish on the branch's menus, without pagination."""
        query = self._apply_filters(self._base_query(), RepositoryFilters(branch_id=branch_id))
        return self._db.execute(query).scalars().unique().all()
