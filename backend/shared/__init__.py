"""
Shared module for infrastructure and cross-cutting concerns of the ordering core.

STRUCTURE:
- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging, PII masking, security audit
  - constants.py: Roles, OrderStatus, ORDER_TRANSITIONS, Limits

- shared.infrastructure: Database and messaging
  - db.py: SQLAlchemy sessions, safe_commit(), is_unique_violation()
  - correlation.py: Correlation IDs for log tracing
  - events/: Redis pub/sub transport, topic naming, event envelope

- shared.utils: Utilities
  - exceptions.py: Error taxonomy with HTTP status codes and auto-logging
  - schemas.py: Shared Pydantic schemas and realtime payloads

IMPORT EXAMPLES:
    from shared.infrastructure.db import get_db_context, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import Roles, OrderStatus
    from shared.utils.exceptions import NotFoundError, AuthorizationError
"""
