"""
Realtime Topic Naming.

Subscribers join one topic per branch: ``branch-<branch_id>``.
"""

from __future__ import annotations


def _validate_positive_id(id_value: int, name: str) -> None:
    """Validate that ID is a positive integer."""
    if isinstance(id_value, bool) or not isinstance(id_value, int) or id_value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {id_value}")


def channel_branch(branch_id: int) -> str:
    """Topic for every dashboard and menu subscribed to a branch."""
    _validate_positive_id(branch_id, "branch_id")
    return f"branch-{branch_id}"


def branch_id_from_channel(channel: str) -> int:
    """Inverse of channel_branch; raises ValueError for foreign topics."""
    prefix, _, raw_id = channel.partition("-")
    if prefix != "branch" or not raw_id.isdigit():
        raise ValueError(f"Not a branch topic: {channel!r}")
    return int(raw_id)
