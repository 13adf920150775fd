"""
Shared Pydantic schemas used across the ordering core.

Inputs are plain typed carriers; domain validation (positive quantities,
branch membership, availability) happens in the services so the same rules
apply no matter which adapter builds the input.

Realtime payloads serialize with camelCase keys, which is the wire contract
consumed by dashboards and menus.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# =============================================================================
# Common Types
# =============================================================================

OrderStatusName = Literal[
    "PENDING", "ACCEPTED", "PREPARING", "READY", "OUT_FOR_DELIVERY", "COMPLETED", "CANCELED",
]


# =============================================================================
# Input Schemas
# =============================================================================


class OrderItemInput(BaseModel):
    """A dish and quantity requested in a new order."""

    dish_id: int
    qty: int


class AvailabilityUpdate(BaseModel):
    """One entry of a bulk ingredient availability update."""

    ingredient_id: int
    available: bool


# =============================================================================
# Output Schemas
# =============================================================================


class OrderItemOutput(BaseModel):
    """Order line with its price snapshot."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    dish_id: int
    dish_name: str | None = None
    qty: int
    price_cents: int


class OrderOutput(BaseModel):
    """Order with its items."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: int
    branch_id: int
    customer_name: str
    customer_phone: str
    total_cents: int
    status: OrderStatusName
    canceled: bool
    cancel_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    items: list[OrderItemOutput] = Field(default_factory=list)


class DishAvailabilityOutput(BaseModel):
    """Effective availability of a dish at a branch (customer menu view)."""

    dish_id: int
    menu_id: int
    name: str
    price_cents: int
    available: bool
    # Required ingredients currently blocking the dish
    blocking_ingredient_ids: list[int] = Field(default_factory=list)


class BranchAvailabilityOutput(BaseModel):
    """Availability flags of one ingredient at one branch."""

    branch_id: int
    branch_name: str
    available: bool  # Override flag (True when no record exists)
    branch_expired: bool
    effective: bool
    updated_at: datetime | None = None


class IngredientAvailabilityOutput(BaseModel):
    """Availability of one ingredient across the visible branches."""

    ingredient_id: int
    ingredient_name: str
    expired: bool
    branches: list[BranchAvailabilityOutput] = Field(default_factory=list)


# =============================================================================
# Realtime Payloads
# =============================================================================


class RealtimePayload(BaseModel):
    """Base for event payloads; dumped with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class NewOrderPayload(RealtimePayload):
    """Payload of ``new-order``."""

    order_id: int
    order_number: int
    user_name: str
    user_phone: str
    total_cents: int
    status: OrderStatusName
    created_at: datetime


class OrderStatusUpdatePayload(RealtimePayload):
    """Payload of ``order-status-update``."""

    order_id: int
    order_number: int
    status: OrderStatusName
    branch_id: int
    timestamp: datetime


class IngredientAvailabilityPayload(RealtimePayload):
    """Payload of ``ingredient-availability-update``."""

    ingredient_id: int
    branch_id: int
    available: bool
    timestamp: datetime
