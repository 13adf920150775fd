"""
Catalog Models: Dish, DishIngredient.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, CheckConstraint, Float, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, IdType

if TYPE_CHECKING:
    from .branch import Menu
    from .ingredient import Ingredient


class Dish(AuditMixin, Base):
    """
    A sellable menu item.
    Belongs to exactly one menu, hence to exactly one branch.
    `available` is the explicit kill-switch; effective availability also
    depends on required ingredients (see AvailabilityService).
    """

    __tablename__ = "dish"

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    menu_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("menu.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    menu: Mapped["Menu"] = relationship(back_populates="dishes")
    ingredient_links: Mapped[list["DishIngredient"]] = relationship(
        back_populates="dish", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("price_cents >= 0", name="chk_dish_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Dish(id={self.id}, name='{self.name}', price_cents={self.price_cents})>"


class DishIngredient(Base):
    """
    Link between a dish and an ingredient.
    Only `required` links affect the dish's effective availability.
    """

    __tablename__ = "dish_ingredient"

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    dish_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("dish.id", ondelete="CASCADE"), nullable=False, index=True
    )
    ingredient_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("ingredient.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    required: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    qty_unit: Mapped[Optional[float]] = mapped_column(Float)

    # Relationships
    dish: Mapped["Dish"] = relationship(back_populates="ingredient_links")
    ingredient: Mapped["Ingredient"] = relationship(back_populates="dish_links")

    __table_args__ = (
        UniqueConstraint("dish_id", "ingredient_id", name="uq_dish_ingredient"),
    )
