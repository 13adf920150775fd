"""
Event Name Constants.

Names are part of the wire contract with dashboards and customer menus.
"""

from shared.config.settings import settings

# =============================================================================
# Order lifecycle events
# =============================================================================

NEW_ORDER = "new-order"
ORDER_STATUS_UPDATE = "order-status-update"

# =============================================================================
# Stock events
# =============================================================================

INGREDIENT_AVAILABILITY_UPDATE = "ingredient-availability-update"

ALL_EVENTS = frozenset({NEW_ORDER, ORDER_STATUS_UPDATE, INGREDIENT_AVAILABILITY_UPDATE})

# =============================================================================
# Size limits
# =============================================================================

MAX_EVENT_SIZE = settings.realtime_max_event_size
