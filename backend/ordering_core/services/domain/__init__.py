"""
Domain services.

- availability_service.py: AvailabilityService (resolution, stock and freshness updates)
- order_service.py: OrderService (lifecycle, reads), allowed_next_statuses()
- order_number.py: 6-digit order number generation
"""

from .availability_service import AvailabilityService
from .order_number import generate_order_number
from .order_service import OrderService, allowed_next_statuses

__all__ = [
    "AvailabilityService",
    "OrderService",
    "allowed_next_statuses",
    "generate_order_number",
]
