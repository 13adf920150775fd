"""
Realtime Propagator.

Builds the fixed event payloads and hands them to a transport on the
branch topic. Emission is fire-and-forget:
- it runs only after the mutation committed
- with an executor configured the publish happens in the background
- payload or transport failures are logged and swallowed, never retried, and never
  undo the mutation
"""

from __future__ import annotations

import contextvars
from collections.abc import Callable
from concurrent.futures import Executor, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Protocol

from shared.config.logging import realtime_logger as logger
from shared.config.settings import settings
from shared.infrastructure.events import (
    INGREDIENT_AVAILABILITY_UPDATE,
    NEW_ORDER,
    ORDER_STATUS_UPDATE,
    RedisTransport,
    channel_branch,
)
from shared.utils.schemas import (
    IngredientAvailabilityPayload,
    NewOrderPayload,
    OrderStatusUpdatePayload,
    RealtimePayload,
)
from ordering_core.services.permissions import Action, Principal, authorize

if TYPE_CHECKING:
    from ordering_core.models import Order
    from .hub import EventCallback, Subscription


class RealtimeTransport(Protocol):
    """Anything that can deliver an event to a topic."""

    def publish(self, topic: str, event_name: str, payload: dict[str, Any]) -> Any:
        ...


class RealtimePropagator:
    """
    Emits order and availability events to branch topics.

    Usage:
        propagator = RealtimePropagator(BranchHub())
        propagator.emit_status_update(order_id=1, order_number=123456,
                                      status="ACCEPTED", branch_id=3)
    """

    def __init__(self, transport: RealtimeTransport, executor: Executor | None = None):
        self._transport = transport
        self._executor = executor

    @property
    def transport(self) -> RealtimeTransport:
        return self._transport

    # =========================================================================
    # Emitters
    # =========================================================================

    def emit_new_order(self, order: "Order", created_at: datetime | None = None) -> None:
        """Announce a freshly created order to its branch."""
        self._dispatch(
            order.branch_id,
            NEW_ORDER,
            lambda: NewOrderPayload(
                order_id=order.id,
                order_number=order.order_number,
                user_name=order.customer_name,
                user_phone=order.customer_phone,
                total_cents=order.total_cents,
                status=order.status,
                created_at=created_at or order.created_at,
            ),
        )

    def emit_status_update(
        self,
        order_id: int,
        order_number: int,
        status: str,
        branch_id: int,
        timestamp: datetime | None = None,
    ) -> None:
        """Announce an order status change to its branch."""
        self._dispatch(
            branch_id,
            ORDER_STATUS_UPDATE,
            lambda: OrderStatusUpdatePayload(
                order_id=order_id,
                order_number=order_number,
                status=status,
                branch_id=branch_id,
                timestamp=timestamp or datetime.now(timezone.utc),
            ),
        )

    def emit_availability_update(
        self,
        ingredient_id: int,
        branch_id: int,
        available: bool,
        timestamp: datetime | None = None,
    ) -> None:
        """Announce a change of an ingredient's availability at a branch."""
        self._dispatch(
            branch_id,
            INGREDIENT_AVAILABILITY_UPDATE,
            lambda: IngredientAvailabilityPayload(
                ingredient_id=ingredient_id,
                branch_id=branch_id,
                available=available,
                timestamp=timestamp or datetime.now(timezone.utc),
            ),
        )

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(
        self,
        principal: Principal | None,
        branch_id: int,
        callback: "EventCallback",
    ) -> "Subscription":
        """
        Join a branch topic after the guard allowed it.

        Raises:
            AuthenticationRequired / BranchAccessError: see authorize()
            TypeError: the transport does not support in-process subscriptions
        """
        authorize(principal, branch_id, Action.SUBSCRIBE)

        subscribe = getattr(self._transport, "subscribe", None)
        if subscribe is None:
            raise TypeError(
                f"{type(self._transport).__name__} does not support in-process subscriptions"
            )
        return subscribe(branch_id, callback)

    # =========================================================================
    # Delivery
    # =========================================================================

    def _dispatch(
        self,
        branch_id: int,
        event_name: str,
        build_payload: Callable[[], RealtimePayload],
    ) -> None:
        """Build the payload and hand it to the transport; never raises."""
        try:
            topic = channel_branch(branch_id)
            payload = build_payload().to_wire()
        except Exception as e:
            logger.error(
                "Realtime event could not be built",
                branch_id=branch_id,
                event_name=event_name,
                error=str(e),
                exc_info=True,
            )
            return

        if self._executor is None:
            self._publish(topic, event_name, payload)
            return

        # Copy the context so background log lines keep the correlation id
        ctx = contextvars.copy_context()
        try:
            self._executor.submit(ctx.run, self._publish, topic, event_name, payload)
        except RuntimeError as e:
            # Executor already shut down
            logger.error(
                "Realtime executor rejected event",
                topic=topic,
                event_name=event_name,
                error=str(e),
            )

    def _publish(self, topic: str, event_name: str, payload: dict[str, Any]) -> None:
        try:
            self._transport.publish(topic, event_name, payload)
        except Exception as e:
            logger.error(
                "Realtime publish failed",
                topic=topic,
                event_name=event_name,
                error=str(e),
                exc_info=True,
            )
            return

        logger.debug("Realtime event emitted", topic=topic, event_name=event_name)

    def close(self, wait: bool = True) -> None:
        """Shut down the background executor, if any."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)


def build_default_propagator() -> RealtimePropagator:
    """
    Propagator publishing to Redis from a small background thread pool.

    The Redis connection is opened lazily on the first publish.
    """
    executor = ThreadPoolExecutor(
        max_workers=settings.realtime_publish_workers,
        thread_name_prefix="realtime-publish",
    )
    return RealtimePropagator(RedisTransport(), executor=executor)
