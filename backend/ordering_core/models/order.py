"""
Order Models: Order, OrderItem.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import Limits

from .base import AuditMixin, Base, IdType

if TYPE_CHECKING:
    from .branch import Branch
    from .catalog import Dish


class Order(AuditMixin, Base):
    """
    A customer order placed at one branch.

    Status flow: PENDING -> ACCEPTED -> PREPARING -> READY
    -> (OUT_FOR_DELIVERY ->) COMPLETED, with CANCELED reachable from every
    non-terminal status. branch_id is fixed at creation.
    """

    __tablename__ = "customer_order"

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    order_number: Mapped[int] = mapped_column(Integer, nullable=False)
    branch_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("branch.id"), nullable=False, index=True
    )
    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    customer_phone: Mapped[str] = mapped_column(Text, nullable=False)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(Text, default="PENDING", nullable=False, index=True)
    canceled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text)

    # Relationships
    branch: Mapped["Branch"] = relationship(back_populates="orders")
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )

    __table_args__ = (
        UniqueConstraint("order_number", name="uq_order_number"),
        CheckConstraint(
            f"order_number BETWEEN {Limits.ORDER_NUMBER_FLOOR} AND {Limits.ORDER_NUMBER_CEILING}",
            name="chk_order_number_six_digits",
        ),
        CheckConstraint("total_cents >= 0", name="chk_order_total_non_negative"),
        Index("ix_order_branch_status", "branch_id", "status"),
        Index("ix_order_branch_created", "branch_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Order(id={self.id}, number={self.order_number}, "
            f"branch_id={self.branch_id}, status='{self.status}')>"
        )


class OrderItem(Base):
    """
    One line of an order.
    price_cents is the dish price captured when the order was placed.
    """

    __tablename__ = "order_item"

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("customer_order.id", ondelete="CASCADE"), nullable=False, index=True
    )
    dish_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("dish.id"), nullable=False, index=True
    )
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    order: Mapped["Order"] = relationship(back_populates="items")
    dish: Mapped["Dish"] = relationship()

    __table_args__ = (
        CheckConstraint("qty > 0", name="chk_order_item_qty_positive"),
        CheckConstraint("price_cents >= 0", name="chk_order_item_price_non_negative"),
    )

    @property
    def dish_name(self) -> str | None:
        return self.dish.name if self.dish is not None else None

    @property
    def line_total_cents(self) -> int:
        return self.price_cents * self.qty
