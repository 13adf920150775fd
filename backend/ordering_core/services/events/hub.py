"""
In-process branch hub.
Tracks subscribers grouped by branch topic and fans out published events.

A subscriber whose callback raises is dropped and logged; the remaining
subscribers of the topic still receive the event.
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from shared.config.logging import get_logger
from shared.infrastructure.events import branch_id_from_channel, channel_branch

logger = get_logger(__name__)

EventCallback = Callable[[str, dict[str, Any]], None]


@dataclass(eq=False)
class Subscription:
    """Handle returned by BranchHub.subscribe(); usable as a context manager."""

    hub: "BranchHub"
    branch_id: int
    callback: EventCallback
    subscription_id: int = field(default=0)

    @property
    def topic(self) -> str:
        return channel_branch(self.branch_id)

    @property
    def active(self) -> bool:
        return self.hub.is_subscribed(self)

    def unsubscribe(self) -> None:
        self.hub.unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.unsubscribe()


class BranchHub:
    """
    Per-branch subscriber groups for staff dashboards and customer menus.

    Implements the transport interface publish(topic, event_name, payload),
    so it can back a RealtimePropagator directly.

    Thread-safe: the registry is guarded by a threading.Lock and callbacks
    run outside the lock.
    """

    def __init__(self):
        self.by_branch: dict[int, dict[int, Subscription]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(self, branch_id: int, callback: EventCallback) -> Subscription:
        """Join the topic of a branch."""
        subscription = Subscription(
            hub=self,
            branch_id=branch_id,
            callback=callback,
            subscription_id=next(self._ids),
        )
        with self._lock:
            self.by_branch.setdefault(branch_id, {})[subscription.subscription_id] = subscription

        logger.debug(
            "Subscriber joined branch topic",
            branch_id=branch_id,
            subscription_id=subscription.subscription_id,
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Leave a topic. Unsubscribing twice is a no-op."""
        with self._lock:
            group = self.by_branch.get(subscription.branch_id)
            if group is None:
                return
            group.pop(subscription.subscription_id, None)
            if not group:
                del self.by_branch[subscription.branch_id]

    def is_subscribed(self, subscription: Subscription) -> bool:
        with self._lock:
            group = self.by_branch.get(subscription.branch_id, {})
            return subscription.subscription_id in group

    def subscriber_count(self, branch_id: int | None = None) -> int:
        """Subscribers of one branch, or of every branch when branch_id is None."""
        with self._lock:
            if branch_id is not None:
                return len(self.by_branch.get(branch_id, {}))
            return sum(len(group) for group in self.by_branch.values())

    def publish(self, topic: str, event_name: str, payload: dict[str, Any]) -> int:
        """
        Deliver an event to every subscriber of the topic.

        Returns:
            Number of subscribers that received the event.
        """
        branch_id = branch_id_from_channel(topic)
        with self._lock:
            subscribers = list(self.by_branch.get(branch_id, {}).values())

        sent = 0
        for subscription in subscribers:
            try:
                subscription.callback(event_name, payload)
                sent += 1
            except Exception as e:
                logger.warning(
                    "Dropping subscriber after callback failure",
                    topic=topic,
                    event_name=event_name,
                    subscription_id=subscription.subscription_id,
                    error=str(e),
                )
                self.unsubscribe(subscription)
        return sent
