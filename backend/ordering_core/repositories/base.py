"""
Base Repository implementation.
Provides common data access patterns with optional branch scoping.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, Sequence, TypeVar

from sqlalchemy import Select
from sqlalchemy.orm import Session

from shared.config.constants import Limits


ModelT = TypeVar("ModelT")


@dataclass
class RepositoryFilters:
    """Base filters for repository queries."""

    # Pagination
    limit: int = Limits.DEFAULT_PAGE_SIZE
    offset: int = 0

    # Branch filtering
    branch_id: int | None = None
    branch_ids: list[int] | None = None

    def __post_init__(self):
        """Validate and normalize filters."""
        self.limit = min(max(1, self.limit), Limits.MAX_PAGE_SIZE)
        self.offset = max(0, self.offset)


class BaseRepository(ABC, Generic[ModelT]):
    """
    Abstract base repository with common operations.

    Subclasses must implement:
    - model: Return the SQLAlchemy model class
    - _base_query(): Return base query with eager loading
    - _apply_filters(): Apply entity-specific filters
    """

    def __init__(self, db: Session):
        self._db = db

    @property
    @abstractmethod
    def model(self) -> type[ModelT]:
        """Return the SQLAlchemy model class."""
        ...

    @abstractmethod
    def _base_query(self) -> Select:
        """
        Return base query with proper eager loading.
        Subclasses must implement this with selectinload/joinedload.
        """
        ...

    @abstractmethod
    def _apply_filters(self, query: Select, filters: RepositoryFilters) -> Select:
        """Apply entity-specific filters to query."""
        ...

    def find_all(self, filters: RepositoryFilters | None = None) -> Sequence[ModelT]:
        """
        Find all entities matching filters.

        Args:
            filters: Optional filters

        Returns:
            List of entities
        """
        filters = filters or RepositoryFilters()
        query = self._apply_filters(self._base_query(), filters)
        query = query.offset(filters.offset).limit(filters.limit)
        return self._db.execute(query).scalars().unique().all()

    def find_by_id(self, entity_id: int) -> ModelT | None:
        """Find entity by ID, with the base query's eager loading."""
        query = self._base_query().where(self.model.id == entity_id)
        return self._db.scalar(query)

    def find_by_ids(self, entity_ids: list[int]) -> Sequence[ModelT]:
        """
        Find entities by IDs.

        Returns:
            List of entities (order not guaranteed)
        """
        if not entity_ids:
            return []

        query = self._base_query().where(self.model.id.in_(entity_ids))
        return self._db.execute(query).scalars().unique().all()

    def save(self, entity: ModelT) -> ModelT:
        """
        Stage entity (insert or update) and flush so database constraints
        are checked immediately.
        """
        self._db.add(entity)
        self._db.flush()
        return entity
