"""
Ordering core services.

Layout:
    services/context.py       ServiceContext, BaseService
    services/permissions/     Access Control Guard
    services/domain/          OrderService, AvailabilityService
    services/events/          RealtimePropagator, BranchHub

Usage:
    from ordering_core.services import ServiceContext
    from ordering_core.services.domain import OrderService
    from ordering_core.services.events import BranchHub, RealtimePropagator

    ctx = ServiceContext(db=db, propagator=RealtimePropagator(BranchHub()))
    OrderService(ctx).update_status(order_id, "ACCEPTED", principal)
"""

from .context import BaseService, ServiceContext

__all__ = ["BaseService", "ServiceContext"]
