"""
Infrastructure module: Database, correlation IDs and Redis/events.

Provides:
- Database sessions and transactions (db.py)
- Correlation scopes for log tracing (correlation.py)
- Redis pub/sub for realtime events (events/)
"""

from shared.infrastructure.db import (
    get_engine,
    get_session_factory,
    get_db_context,
    safe_commit,
    is_unique_violation,
)
from shared.infrastructure.correlation import (
    correlation_scope,
    get_correlation_id,
)

__all__ = [
    # db
    "get_engine",
    "get_session_factory",
    "get_db_context",
    "safe_commit",
    "is_unique_violation",
    # correlation
    "correlation_scope",
    "get_correlation_id",
]
