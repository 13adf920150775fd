"""
Order number generation.

Order numbers are 6-digit integers drawn at random from the configured
range. The unique constraint on customer_order.order_number is the final
arbiter; OrderService retries on a collision.
"""

import random
from collections.abc import Callable

from shared.config.constants import Limits
from shared.config.settings import settings

OrderNumberGenerator = Callable[[], int]

_rng = random.SystemRandom()


def generate_order_number() -> int:
    """Random candidate in [order_number_min, order_number_max]."""
    return _rng.randint(settings.order_number_min, settings.order_number_max)


def is_valid_order_number(value: int) -> bool:
    return (
        not isinstance(value, bool)
        and isinstance(value, int)
        and settings.order_number_min <= value <= settings.order_number_max
        and Limits.ORDER_NUMBER_FLOOR <= value <= Limits.ORDER_NUMBER_CEILING
    )
