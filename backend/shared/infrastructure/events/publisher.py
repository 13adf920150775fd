"""
Redis pub/sub transport for realtime events.

Single attempt per event: delivery is best-effort and at-most-once, so a
failed publish is reported to the caller (the propagator) and never retried.
"""

from __future__ import annotations

import redis

from shared.config.logging import get_logger
from .channels import branch_id_from_channel
from .event_schema import RealtimeEvent
from .event_types import MAX_EVENT_SIZE
from .redis_pool import get_redis_sync_client

logger = get_logger(__name__)


def _validate_event_size(event_json: str, event_name: str) -> None:
    """Reject events larger than the configured wire limit."""
    size = len(event_json.encode("utf-8"))
    if size > MAX_EVENT_SIZE:
        raise ValueError(
            f"Event {event_name} exceeds max size: {size} > {MAX_EVENT_SIZE} bytes"
        )


class RedisTransport:
    """
    Publishes realtime events to Redis channels named after branch topics.

    Usage:
        transport = RedisTransport()
        transport.publish("branch-3", "new-order", {...})
    """

    def __init__(self, client: redis.Redis | None = None):
        self._client = client

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = get_redis_sync_client()
        return self._client

    def publish(self, topic: str, event_name: str, payload: dict) -> int:
        """
        Publish an event to a topic.

        Returns:
            Number of Redis subscribers that received the message.

        Raises:
            ValueError: If the event is malformed or too large.
            redis.RedisError: If Redis is unreachable.
        """
        event = RealtimeEvent(
            name=event_name,
            branch_id=branch_id_from_channel(topic),
            payload=payload,
        )
        event_json = event.to_json()
        _validate_event_size(event_json, event_name)

        receivers = self.client.publish(topic, event_json)
        logger.debug(
            "Event published to Redis",
            topic=topic,
            event_name=event_name,
            receivers=receivers,
        )
        return receivers
