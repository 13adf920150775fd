"""
Order Domain Service.

Owns the order lifecycle: creation with price snapshots and a unique
6-digit number, status transitions along the fixed graph, cancellation,
and branch-scoped reads.

Status graph:
    PENDING          -> ACCEPTED | CANCELED
    ACCEPTED         -> PREPARING | CANCELED
    PREPARING        -> READY | CANCELED
    READY            -> OUT_FOR_DELIVERY | COMPLETED | CANCELED
    OUT_FOR_DELIVERY -> COMPLETED | CANCELED
    COMPLETED, CANCELED are terminal
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import IntegrityError

from shared.config.constants import ORDER_TRANSITIONS, Limits, OrderStatus
from shared.config.logging import mask_phone, orders_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import is_unique_violation, safe_commit
from shared.utils.exceptions import (
    BusinessRuleViolation,
    CompletedOrderCancelError,
    InternalError,
    InvalidTransitionError,
    NotFoundError,
    OrderAlreadyCanceledError,
    OrderNumberExhaustedError,
    StaleOrderStatusError,
    ValidationError,
)
from shared.utils.schemas import OrderItemInput
from ordering_core.models import Branch, Dish, Order, OrderItem
from ordering_core.repositories import DishRepository, OrderFilters, OrderRepository
from ordering_core.services.context import BaseService, ServiceContext
from ordering_core.services.permissions import (
    Action,
    Principal,
    authorize,
    scope_branch_filter,
)
from .availability_service import AvailabilityService
from .order_number import OrderNumberGenerator, generate_order_number, is_valid_order_number


def allowed_next_statuses(status: str) -> list[str]:
    """
    Statuses reachable from the given one, in lifecycle order.

    Raises:
        ValidationError: unknown status
    """
    if status not in ORDER_TRANSITIONS:
        raise ValidationError(f"Unknown order status: {status}", status=status)
    allowed = ORDER_TRANSITIONS[status]
    return [s for s in OrderStatus.ALL if s in allowed]


class OrderService(BaseService):
    """
    Domain service for Order operations.

    Every mutation commits before its realtime event is emitted.
    """

    def __init__(
        self,
        ctx: ServiceContext,
        number_generator: OrderNumberGenerator | None = None,
    ):
        super().__init__(ctx)
        self._orders = OrderRepository(self._db)
        self._dishes = DishRepository(self._db)
        self._availability = AvailabilityService(ctx)
        self._generate_number = number_generator or generate_order_number

    # =========================================================================
    # Creation
    # =========================================================================

    def create_order(
        self,
        branch_id: int,
        customer_name: str,
        customer_phone: str,
        items: Sequence[OrderItemInput | dict[str, Any]],
        principal: Principal | None,
    ) -> Order:
        """
        Create a PENDING order at a branch.

        Raises:
            AuthenticationRequired / BranchAccessError: principal may not act on the branch
            NotFoundError: unknown branch
            ValidationError: empty items, non-positive qty, blank customer data
            BusinessRuleViolation: dish missing, on another branch, or unavailable
            OrderNumberExhaustedError: no free order number within the retry budget
        """
        authorize(principal, branch_id, Action.CREATE_ORDER)

        if self._db.get(Branch, branch_id) is None:
            raise NotFoundError("Branch", branch_id)

        customer_name = self._validate_customer_name(customer_name)
        customer_phone = self._validate_customer_phone(customer_phone)
        lines = self._validate_items(items)

        dishes = self._load_orderable_dishes(branch_id, [dish_id for dish_id, _ in lines])

        # Snapshot prices now; later dish price changes never touch this order
        priced_lines = [(dish_id, qty, dishes[dish_id].price_cents) for dish_id, qty in lines]
        total_cents = sum(price * qty for _, qty, price in priced_lines)

        created_at = datetime.now(timezone.utc)
        order = self._insert_with_unique_number(
            branch_id=branch_id,
            customer_name=customer_name,
            customer_phone=customer_phone,
            total_cents=total_cents,
            priced_lines=priced_lines,
            created_at=created_at,
            user_id=principal.user_id,
        )
        safe_commit(self._db)

        logger.info(
            "Order created",
            order_id=order.id,
            order_number=order.order_number,
            branch_id=branch_id,
            total_cents=total_cents,
            items=len(priced_lines),
            customer_phone=mask_phone(customer_phone),
        )
        self._propagator.emit_new_order(order, created_at=created_at)
        return order

    def _insert_with_unique_number(
        self,
        branch_id: int,
        customer_name: str,
        customer_phone: str,
        total_cents: int,
        priced_lines: list[tuple[int, int, int]],
        created_at: datetime,
        user_id: int | None,
    ) -> Order:
        """
        Stage the order under a fresh order number.

        A pre-check skips numbers already taken; a unique violation at flush
        time (a concurrent insert won the number) rolls back the savepoint
        around the insert only and retries, leaving the rest of the caller's
        unit of work intact.
        """
        max_attempts = settings.order_number_max_attempts

        for attempt in range(1, max_attempts + 1):
            number = self._generate_number()
            if not is_valid_order_number(number):
                raise InternalError("Order number generator returned an out-of-range value", number=number)

            if self._orders.number_exists(number):
                logger.debug("Order number taken, regenerating", order_number=number, attempt=attempt)
                continue

            order = Order(
                order_number=number,
                branch_id=branch_id,
                customer_name=customer_name,
                customer_phone=customer_phone,
                total_cents=total_cents,
                status=OrderStatus.PENDING,
                canceled=False,
                created_at=created_at,
            )
            order.set_created_by(user_id)
            order.items = [
                OrderItem(dish_id=dish_id, qty=qty, price_cents=price)
                for dish_id, qty, price in priced_lines
            ]

            try:
                with self._db.begin_nested():
                    self._orders.save(order)
                return order
            except IntegrityError as e:
                if not is_unique_violation(e, "uq_order_number"):
                    raise
                logger.warning(
                    "Order number collision at insert, retrying",
                    order_number=number,
                    attempt=attempt,
                )

        raise OrderNumberExhaustedError(max_attempts, branch_id=branch_id)

    def _load_orderable_dishes(self, branch_id: int, dish_ids: list[int]) -> dict[int, Dish]:
        """Load the requested dishes and check they can be sold at the branch."""
        unique_ids = list(dict.fromkeys(dish_ids))
        dishes = {dish.id: dish for dish in self._dishes.find_by_ids(unique_ids)}

        for dish_id in unique_ids:
            dish = dishes.get(dish_id)
            if dish is None:
                raise BusinessRuleViolation(f"Dish {dish_id} does not exist", dish_id=dish_id)
            if dish.menu.branch_id != branch_id:
                raise BusinessRuleViolation(
                    f"Dish {dish_id} is not on a menu of branch {branch_id}",
                    dish_id=dish_id,
                    branch_id=branch_id,
                )

        availability = self._availability.dish_availability_map(
            [dishes[dish_id] for dish_id in unique_ids], branch_id
        )
        for dish_id in unique_ids:
            if not availability[dish_id]:
                raise BusinessRuleViolation(
                    f"Dish {dish_id} is currently unavailable",
                    dish_id=dish_id,
                    branch_id=branch_id,
                )
        return dishes

    @staticmethod
    def _validate_customer_name(customer_name: str) -> str:
        name = (customer_name or "").strip() if isinstance(customer_name, str) else ""
        if not name:
            raise ValidationError("Customer name is required", field="customer_name")
        if len(name) > Limits.MAX_NAME_LENGTH:
            raise ValidationError(
                f"Customer name must be at most {Limits.MAX_NAME_LENGTH} characters",
                field="customer_name",
            )
        return name

    @staticmethod
    def _validate_customer_phone(customer_phone: str) -> str:
        phone = (customer_phone or "").strip() if isinstance(customer_phone, str) else ""
        if not phone:
            raise ValidationError("Customer phone is required", field="customer_phone")
        return phone

    @staticmethod
    def _validate_items(items: Sequence[OrderItemInput | dict[str, Any]]) -> list[tuple[int, int]]:
        if not items:
            raise ValidationError("Order must contain at least one item", field="items")

        lines: list[tuple[int, int]] = []
        for index, item in enumerate(items):
            if isinstance(item, OrderItemInput):
                dish_id, qty = item.dish_id, item.qty
            elif isinstance(item, dict):
                dish_id, qty = item.get("dish_id"), item.get("qty")
            else:
                raise ValidationError("Invalid order item", field=f"items[{index}]")

            if isinstance(dish_id, bool) or not isinstance(dish_id, int):
                raise ValidationError("dish_id must be an integer", field=f"items[{index}].dish_id")
            if isinstance(qty, bool) or not isinstance(qty, int) or qty < Limits.MIN_QUANTITY:
                raise ValidationError(
                    "Quantity must be a positive integer",
                    field=f"items[{index}].qty",
                    value=qty,
                )
            lines.append((dish_id, qty))
        return lines

    # =========================================================================
    # Status transitions
    # =========================================================================

    def update_status(
        self,
        order_id: int,
        new_status: str,
        principal: Principal | None,
        cancel_reason: str | None = None,
    ) -> Order:
        """
        Move an order along the status graph.

        The write is conditional on the status read here; if another writer
        changed it in between, StaleOrderStatusError (409) is raised and the
        caller should re-read and retry.

        Raises:
            NotFoundError: unknown order
            AuthenticationRequired / BranchAccessError: principal may not act on the branch
            ValidationError: unknown status, or CANCELED without a reason
            InvalidTransitionError: edge not in the graph
            StaleOrderStatusError: lost a concurrent update
        """
        order = self._get_order_or_404(order_id)
        authorize(principal, order.branch_id, Action.UPDATE_ORDER)

        if new_status not in OrderStatus.ALL:
            raise ValidationError(f"Unknown order status: {new_status}", order_id=order_id)

        current_status = order.status
        if new_status not in ORDER_TRANSITIONS[current_status]:
            raise InvalidTransitionError("Order", current_status, new_status, order_id=order_id)

        reason: str | None = None
        if new_status == OrderStatus.CANCELED:
            reason = (cancel_reason or "").strip()
            if not reason:
                raise ValidationError("Cancel reason is required", order_id=order_id)
            if len(reason) > Limits.MAX_CANCEL_REASON_LENGTH:
                raise ValidationError(
                    f"Cancel reason must be at most {Limits.MAX_CANCEL_REASON_LENGTH} characters",
                    order_id=order_id,
                )

        updated = self._orders.compare_and_set_status(
            order_id,
            expected_status=current_status,
            new_status=new_status,
            updated_by=principal.user_id,
            cancel_reason=reason,
        )
        if not updated:
            self._db.rollback()
            raise StaleOrderStatusError(order_id, current_status)

        safe_commit(self._db)
        self._db.refresh(order)

        logger.info(
            "Order status updated",
            order_id=order_id,
            order_number=order.order_number,
            branch_id=order.branch_id,
            from_status=current_status,
            to_status=new_status,
            user_id=principal.user_id,
        )
        self._propagator.emit_status_update(
            order_id=order.id,
            order_number=order.order_number,
            status=new_status,
            branch_id=order.branch_id,
        )
        return order

    def cancel(
        self,
        order_id: int,
        reason: str | None,
        principal: Principal | None,
    ) -> Order:
        """
        Cancel an order.

        Raises:
            OrderAlreadyCanceledError: order already CANCELED
            CompletedOrderCancelError: order already COMPLETED
            plus everything update_status() raises
        """
        order = self._get_order_or_404(order_id)
        authorize(principal, order.branch_id, Action.UPDATE_ORDER)

        if order.status == OrderStatus.CANCELED:
            raise OrderAlreadyCanceledError(order_id)
        if order.status == OrderStatus.COMPLETED:
            raise CompletedOrderCancelError(order_id)

        return self.update_status(order_id, OrderStatus.CANCELED, principal, cancel_reason=reason)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_order(self, order_id: int, principal: Principal | None) -> Order:
        """Order with its items, if the principal may see its branch."""
        order = self._get_order_or_404(order_id)
        authorize(principal, order.branch_id, Action.READ_ORDER)
        return order

    def list_orders(
        self,
        filters: OrderFilters | None,
        principal: Principal | None,
    ) -> Sequence[Order]:
        """
        Orders matching the filters, newest first.
        BRANCH_USER is always scoped to its own branch.
        """
        filters = filters or OrderFilters()
        branch_scope = scope_branch_filter(principal, filters.branch_id, Action.LIST_ORDERS)
        if branch_scope is not None:
            filters = replace(filters, branch_id=branch_scope, branch_ids=None)

        self._validate_status_filter(filters.status)
        for status in filters.statuses or ():
            self._validate_status_filter(status)

        return self._orders.find_all(filters)

    def orders_feed(
        self,
        branch_id: int,
        principal: Principal | None,
        status: str | None = None,
        limit: int | None = None,
    ) -> Sequence[Order]:
        """Recent orders of a branch for its dashboard, newest first."""
        authorize(principal, branch_id, Action.LIST_ORDERS)
        self._validate_status_filter(status)
        return self._orders.find_feed(
            branch_id,
            status=status,
            limit=limit or settings.orders_feed_default_limit,
        )

    @staticmethod
    def allowed_next_statuses(status: str) -> list[str]:
        return allowed_next_statuses(status)

    def _get_order_or_404(self, order_id: int) -> Order:
        order = self._orders.find_by_id(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    @staticmethod
    def _validate_status_filter(status: str | None) -> None:
        if status is not None and status not in OrderStatus.ALL:
            raise ValidationError(f"Unknown order status: {status}", status=status)
