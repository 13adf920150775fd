"""
Event Schema.

Defines the envelope used on the wire for every realtime event.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from .event_types import ALL_EVENTS


@dataclass(frozen=True)
class RealtimeEvent:
    """
    A realtime notification addressed to one branch topic.

    The payload shape is fixed per event name (see shared.utils.schemas);
    this envelope only carries the routing data and validates it.
    """

    name: str
    branch_id: int
    payload: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate event fields so malformed events never reach the transport."""
        if self.name not in ALL_EVENTS:
            raise ValueError(f"Unknown event name: {self.name!r}")

        if isinstance(self.branch_id, bool) or not isinstance(self.branch_id, int) or self.branch_id <= 0:
            raise ValueError("Event branch_id must be a positive integer")

        if not isinstance(self.payload, dict):
            raise ValueError("Event payload must be a dict")

    def to_json(self) -> str:
        """Serialize the wire envelope."""
        return json.dumps({"event": self.name, "payload": self.payload}, ensure_ascii=False, default=str)

    @classmethod
    def from_json(cls, json_str: str, branch_id: int) -> "RealtimeEvent":
        """Deserialize an envelope received on a branch topic."""
        data = json.loads(json_str)
        return cls(name=data["event"], branch_id=branch_id, payload=data.get("payload") or {})
