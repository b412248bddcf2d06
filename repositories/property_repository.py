"""PropertyRepository - Repository pattern implementation for listing properties

Provides the lookups the dedup resolver pre-loads and the provenance-scoped
delete used by the API sync's replace-existing policy.
"""

from typing import List
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from crm_database import Property, FloorPlan, Unit
from repositories.base_repository import BaseRepository
import logging

logger = logging.getLogger(__name__)


class PropertyRepository(BaseRepository[Property]):
    """Repository for Property entity operations"""

    def __init__(self, session: Session):
        """Initialize PropertyRepository with database session

        Args:
            session: SQLAlchemy database session
        """
        super().__init__(session, Property)

    def find_by_source(self, source: str) -> List[Property]:
        """Get all properties carrying an import provenance tag"""
        return self.session.query(Property).filter(Property.import_source == source).all()

    def find_by_market(self, market: str) -> List[Property]:
        return (self.session.query(Property)
                .filter(Property.market == market)
                .order_by(Property.name)
                .all())

    def delete_by_source(self, source: str) -> int:
        """Delete every property with the given provenance, children first.

        Commits on success. Returns the number of properties removed.

        Raises:
            SQLAlchemyError: If database operation fails
        """
        try:
            property_ids = [
                row[0] for row in
                self.session.query(Property.id).filter(Property.import_source == source).all()
            ]
            if not property_ids:
                return 0

            self.session.query(Unit).filter(
                Unit.property_id.in_(property_ids)
            ).delete(synchronize_session='fetch')
            self.session.query(FloorPlan).filter(
                FloorPlan.property_id.in_(property_ids)
            ).delete(synchronize_session='fetch')
            deleted = self.session.query(Property).filter(
                Property.id.in_(property_ids)
            ).delete(synchronize_session='fetch')

            self.session.commit()
            logger.info(f"Deleted {deleted} properties with import source {source}")
            return deleted

        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to delete properties for source {source}: {str(e)}")
            raise
