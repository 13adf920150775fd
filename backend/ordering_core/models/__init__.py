"""
SQLAlchemy ORM models for the ordering core.

- base.py: Base, AuditMixin, IdType
- branch.py: Branch, Menu
- catalog.py: Dish, DishIngredient
- ingredient.py: Ingredient, BranchIngredientAvailability, BranchIngredientExpiration
- order.py: Order, OrderItem
"""

from .base import AuditMixin, Base, IdType
from .branch import Branch, Menu
from .catalog import Dish, DishIngredient
from .ingredient import BranchIngredientAvailability, BranchIngredientExpiration, Ingredient
from .order import Order, OrderItem

__all__ = [
    "Base",
    "AuditMixin",
    "IdType",
    "Branch",
    "Menu",
    "Dish",
    "DishIngredient",
    "Ingredient",
    "BranchIngredientAvailability",
    "BranchIngredientExpiration",
    "Order",
    "OrderItem",
]
