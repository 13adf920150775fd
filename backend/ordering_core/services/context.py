"""
Service context.

Services never reach for module-level store or transport handles; every
call receives them through an explicit ServiceContext.

Usage:
    with get_db_context() as db:
        ctx = ServiceContext(db=db, propagator=propagator)
        order = OrderService(ctx).create_order(...)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

if TYPE_CHECKING:
    from ordering_core.services.events import RealtimePropagator


@dataclass(frozen=True)
class ServiceContext:
    """Store session plus realtime propagator for one unit of work."""

    db: Session
    propagator: "RealtimePropagator"


class BaseService:
    """
    Base for domain services.

    Subclasses get the session as self._db and the propagator as
    self._propagator.
    """

    def __init__(self, ctx: ServiceContext):
        self._ctx = ctx
        self._db = ctx.db
        self._propagator = ctx.propagator

    @property
    def db(self) -> Session:
        """Database session."""
        return self._db

    @property
    def propagator(self) -> "RealtimePropagator":
        return self._propagator
