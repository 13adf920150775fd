"""
Repository Pattern implementation.
Centralizes data access with guaranteed eager loading.

Usage:
    from ordering_core.repositories import OrderRepository, OrderFilters

    repo = OrderRepository(db)
    orders = repo.find_all(OrderFilters(branch_id=3, status="PENDING"))
    order = repo.find_by_id(123)
"""

from .base import BaseRepository, RepositoryFilters
from .catalog import DishRepository
from .ingredient import IngredientRepository
from .order import OrderFilters, OrderRepository

__all__ = [
    # Base
    "BaseRepository",
    "RepositoryFilters",
    # Dish
    "DishRepository",
    # Ingredient
    "IngredientRepository",
    # Order
    "OrderFilters",
    "OrderRepository",
]
