"""
Base Repository - Common base class for the listing repositories
Implements the shared database operations following the Repository Pattern
"""

from typing import TypeVar, Generic, List, Optional, Dict, Any, Type
from sqlalchemy.orm import Session, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import desc, asc
from enum import Enum
import logging

logger = logging.getLogger(__name__)

# Type variable for model classes
T = TypeVar('T')


class SortOrder(Enum):
    """Sort order options"""
    ASC = "asc"
    DESC = "desc"


class BaseRepository(Generic[T]):
    """
    Base repository with common CRUD operations.

    Writes flush only; callers decide when a unit of work is committed via
    commit(). Any SQLAlchemyError rolls the session back and is re-raised so
    the caller can record it and move on with a clean session.
    """

    def __init__(self, session: Session, model_class: Type[T]):
        """
        Initialize repository with database session and model class.

        Args:
            session: SQLAlchemy database session
            model_class: The model class this repository manages
        """
        self.session = session
        self.model_class = model_class

    # CREATE Operations

    def create(self, **kwargs) -> T:
        """
        Create a new entity.

        Args:
            **kwargs: Attributes for the new entity

        Returns:
            Created entity instance

        Raises:
            SQLAlchemyError: If database operation fails
        """
        try:
            entity = self.model_class(**kwargs)
            self.session.add(entity)
            self.session.flush()  # Flush to get ID without committing
            logger.debug(f"Created {self.model_class.__name__} with id {entity.id}")
            return entity
        except SQLAlchemyError as e:
            logger.error(f"Error creating {self.model_class.__name__}: {e}")
            self.session.rollback()
            raise

    def create_many(self, entities_data: List[Dict[str, Any]]) -> List[T]:
        """
        Create multiple entities in a single flush.

        Args:
            entities_data: List of dictionaries with entity attributes

        Returns:
            List of created entities

        Raises:
            SQLAlchemyError: If database operation fails
        """
        if not entities_data:
            return []
        try:
            entities = [self.model_class(**data) for data in entities_data]
            self.session.add_all(entities)
            self.session.flush()
            logger.debug(f"Created {len(entities)} {self.model_class.__name__} entities")
            return entities
        except SQLAlchemyError as e:
            logger.error(f"Error creating multiple {self.model_class.__name__}: {e}")
            self.session.rollback()
            raise

    # READ Operations

    def get_by_id(self, entity_id: Any) -> Optional[T]:
        """Get entity by primary key, or None if not found."""
        return self.session.get(self.model_class, entity_id)

    def get_all(self, order_by: Optional[str] = None,
                order: SortOrder = SortOrder.ASC) -> List[T]:
        """
        Get all entities with optional ordering.

        Args:
            order_by: Field name to order by
            order: Sort order (ASC or DESC)

        Returns:
            List of all entities
        """
        query = self.session.query(self.model_class)

        if order_by:
            order_field = getattr(self.model_class, order_by, None)
            if order_field is not None:
                query = query.order_by(
                    desc(order_field) if order == SortOrder.DESC else asc(order_field)
                )

        return query.all()

    def find_by(self, **filters) -> List[T]:
        """Find entities by field values (lists become IN clauses)."""
        return self._build_query(filters).all()

    def find_one_by(self, **filters) -> Optional[T]:
        return self._build_query(filters).first()

    def count(self, **filters) -> int:
        return self._build_query(filters).count()

    # UPDATE Operations

    def update(self, entity: T, **updates) -> T:
        """
        Update an entity with new values.

        Args:
            entity: Entity to update
            **updates: Field-value pairs to update

        Returns:
            Updated entity

        Raises:
            SQLAlchemyError: If database operation fails
        """
        try:
            for field, value in updates.items():
                if hasattr(entity, field):
                    setattr(entity, field, value)
            self.session.flush()
            logger.debug(f"Updated {self.model_class.__name__} with id {entity.id}")
            return entity
        except SQLAlchemyError as e:
            logger.error(f"Error updating {self.model_class.__name__}: {e}")
            self.session.rollback()
            raise

    # Transaction Management

    def commit(self) -> None:
        """Commit the current transaction."""
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error committing transaction: {e}")
            self.session.rollback()
            raise

    def rollback(self) -> None:
        """Rollback the current transaction."""
        self.session.rollback()

    # Helper Methods

    def _build_query(self, filters: Optional[Dict[str, Any]] = None) -> Query:
        """
        Build a query with filters.

        Args:
            filters: Dictionary of filters to apply

        Returns:
            SQLAlchemy Query object
        """
        query = self.session.query(self.model_class)

        if filters:
            for field, value in filters.items():
                column = getattr(self.model_class, field, None)
                if column is None:
                    continue
                if isinstance(value, (list, tuple, set)):
                    # Handle IN clause
                    query = query.filter(column.in_(list(value)))
                elif value is None:
                    # Handle NULL check
                    query = query.filter(column.is_(None))
                else:
                    query = query.filter(column == value)

        return query
