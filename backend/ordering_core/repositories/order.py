"""
Order Repository - Data access for orders.
Items and their dishes are eager loaded to avoid N+1 queries.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import Select, select, update
from sqlalchemy.orm import joinedload, selectinload

from ordering_core.models import Order, OrderItem
from .base import BaseRepository, RepositoryFilters


@dataclass
class OrderFilters(RepositoryFilters):
    """Filters specific to orders."""

    status: str | None = None
    statuses: list[str] | None = None
    customer_phone: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None

    def __post_init__(self):
        super().__post_init__()
        if self.customer_phone:
            self.customer_phone = self.customer_phone.strip() or None


class OrderRepository(BaseRepository[Order]):
    """
    Repository for Order entities.

    Guarantees eager loading of items -> dish, newest orders first.
    """

    @property
    def model(self) -> type[Order]:
        return Order

    def _base_query(self) -> Select:
        return (
            select(Order)
            .options(selectinload(Order.items).joinedload(OrderItem.dish))
            .order_by(Order.created_at.desc(), Order.id.desc())
        )

    def _apply_filters(self, query: Select, filters: RepositoryFilters) -> Select:
        """Apply order-specific filters."""
        if not isinstance(filters, OrderFilters):
            filters = OrderFilters(**filters.__dict__)

        # Branch filter
        if filters.branch_id is not None:
            query = query.where(Order.branch_id == filters.branch_id)
        elif filters.branch_ids:
            query = query.where(Order.branch_id.in_(filters.branch_ids))

        # Status filter
        if filters.status:
            query = query.where(Order.status == filters.status)
        elif filters.statuses:
            query = query.where(Order.status.in_(filters.statuses))

        if filters.customer_phone:
            query = query.where(Order.customer_phone == filters.customer_phone)

        # Creation window
        if filters.created_from is not None:
            query = query.where(Order.created_at >= filters.created_from)
        if filters.created_to is not None:
            query = query.where(Order.created_at <= filters.created_to)

        return query

    def number_exists(self, order_number: int) -> bool:
        """Check whether an order number is already taken."""
        query = select(Order.id).where(Order.order_number == order_number).limit(1)
        return self._db.scalar(query) is not None

    def find_feed(
        self,
        branch_id: int,
        status: str | None = None,
        limit: int = 50,
    ) -> Sequence[Order]:
        """Recent orders of a branch, newest first."""
        filters = OrderFilters(branch_id=branch_id, status=status, limit=limit)
        return self.find_all(filters)

    def compare_and_set_status(
        self,
        order_id: int,
        expected_status: str,
        new_status: str,
        updated_by: int | None = None,
        cancel_reason: str | None = None,
    ) -> bool:
        """
        Conditionally move an order from expected_status to new_status.

        The WHERE clause includes the status read by the caller, so a
        concurrent writer that changed it first makes this update match
        zero rows.

        Returns:
            True if the row was updated, False if the status had changed.
        """
        values: dict = {
            "status": new_status,
            "updated_by_id": updated_by,
            "updated_at": datetime.now(timezone.utc),
        }
        if cancel_reason is not None:
            values["canceled"] = True
            values["cancel_reason"] = cancel_reason

        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self._db.execute(stmt)
        return result.rowcount == 1
