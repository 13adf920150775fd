"""
Realtime Propagator and in-process transport.

- propagator.py: RealtimePropagator (emit_*, subscribe), build_default_propagator()
- hub.py: BranchHub, Subscription
"""

from .hub import BranchHub, EventCallback, Subscription
from .propagator import RealtimePropagator, RealtimeTransport, build_default_propagator

__all__ = [
    "BranchHub",
    "EventCallback",
    "Subscription",
    "RealtimePropagator",
    "RealtimeTransport",
    "build_default_propagator",
]
