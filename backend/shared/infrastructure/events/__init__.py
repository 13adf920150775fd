"""
Realtime event infrastructure (Redis pub/sub).

- event_types.py: Event name constants (wire contract)
- event_schema.py: RealtimeEvent envelope with validation
- channels.py: Branch topic naming
- redis_pool.py: Sync connection pool management
- publisher.py: RedisTransport (publish(topic, event_name, payload))
"""

from .event_types import (
    NEW_ORDER,
    ORDER_STATUS_UPDATE,
    INGREDIENT_AVAILABILITY_UPDATE,
    ALL_EVENTS,
    MAX_EVENT_SIZE,
)
from .event_schema import RealtimeEvent
from .channels import channel_branch, branch_id_from_channel
from .redis_pool import get_redis_sync_client, close_redis_sync_client
from .publisher import RedisTransport

__all__ = [
    # Event names
    "NEW_ORDER",
    "ORDER_STATUS_UPDATE",
    "INGREDIENT_AVAILABILITY_UPDATE",
    "ALL_EVENTS",
    "MAX_EVENT_SIZE",
    # Envelope
    "RealtimeEvent",
    # Channels
    "channel_branch",
    "branch_id_from_channel",
    # Redis pool
    "get_redis_sync_client",
    "close_redis_sync_client",
    # Transport
    "RedisTransport",
]
