"""
Branch Models: Branch, Menu.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import Float, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, IdType

if TYPE_CHECKING:
    from .catalog import Dish
    from .order import Order


class Branch(AuditMixin, Base):
    """
    A physical restaurant location.
    Unit of scoping for staff, menus, orders and ingredient stock.
    """

    __tablename__ = "branch"

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    lat: Mapped[Optional[float]] = mapped_column(Float)
    lng: Mapped[Optional[float]] = mapped_column(Float)

    # Relationships
    menus: Mapped[list["Menu"]] = relationship(back_populates="branch")
    orders: Mapped[list["Order"]] = relationship(back_populates="branch")

    def __repr__(self) -> str:
        return f"<Branch(id={self.id}, name='{self.name}')>"


class Menu(AuditMixin, Base):
    """A menu published by one branch."""

    __tablename__ = "menu"

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    branch_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("branch.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)

    # Relationships
    branch: Mapped["Branch"] = relationship(back_populates="menus")
    dishes: Mapped[list["Dish"]] = relationship(back_populates="menu")
