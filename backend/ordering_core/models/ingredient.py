"""
Ingredient Models: Ingredient, BranchIngredientAvailability, BranchIngredientExpiration.

Stock presence (availability) and freshness (expiration) are stored
independently and only combined when availability is resolved.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, IdType

if TYPE_CHECKING:
    from .branch import Branch
    from .catalog import DishIngredient


class Ingredient(AuditMixin, Base):
    """
    Ingredient catalog entry shared by all branches.
    `expired` is the global freshness flag.
    """

    __tablename__ = "ingredient"

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    expired: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Relationships
    dish_links: Mapped[list["DishIngredient"]] = relationship(back_populates="ingredient")
    branch_availabilities: Mapped[list["BranchIngredientAvailability"]] = relationship(
        back_populates="ingredient"
    )
    branch_expirations: Mapped[list["BranchIngredientExpiration"]] = relationship(
        back_populates="ingredient"
    )

    def __repr__(self) -> str:
        return f"<Ingredient(id={self.id}, name='{self.name}', expired={self.expired})>"


class BranchIngredientAvailability(Base):
    """
    Per-branch stock-presence override for an ingredient.
    Absence of a row means the ingredient is available at that branch.
    """

    __tablename__ = "branch_ingredient_availability"

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    branch_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("branch.id"), nullable=False, index=True
    )
    ingredient_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("ingredient.id"), nullable=False, index=True
    )
    available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_by: Mapped[Optional[int]] = mapped_column(BigInteger)

    # Relationships
    branch: Mapped["Branch"] = relationship()
    ingredient: Mapped["Ingredient"] = relationship(back_populates="branch_availabilities")

    __table_args__ = (
        UniqueConstraint("branch_id", "ingredient_id", name="uq_branch_ingredient_availability"),
    )


class BranchIngredientExpiration(Base):
    """
    Per-branch freshness flag for an ingredient.
    When `expired` is set the ingredient is unavailable at the branch
    regardless of the availability override.
    """

    __tablename__ = "branch_ingredient_expiration"

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    branch_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("branch.id"), nullable=False, index=True
    )
    ingredient_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("ingredient.id"), nullable=False, index=True
    )
    expired: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_by: Mapped[Optional[int]] = mapped_column(BigInteger)

    # Relationships
    branch: Mapped["Branch"] = relationship()
    ingredient: Mapped["Ingredient"] = relationship(back_populates="branch_expirations")

    __table_args__ = (
        UniqueConstraint("branch_id", "ingredient_id", name="uq_branch_ingredient_expiration"),
    )
