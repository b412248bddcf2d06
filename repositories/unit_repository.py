"""UnitRepository - data access for Unit entities"""

from typing import List, Set, Tuple
from sqlalchemy.orm import Session

from crm_database import Unit
from repositories.base_repository import BaseRepository


class UnitRepository(BaseRepository[Unit]):
    """Repository for Unit entity operations"""

    def __init__(self, session: Session):
        super().__init__(session, Unit)

    def get_unit_keys(self) -> Set[Tuple[str, str]]:
        """(property_id, unit_number) for every stored unit"""
        rows = self.session.query(Unit.property_id, Unit.unit_number).all()
        return {(property_id, unit_number) for property_id, unit_number in rows}

    def find_by_property(self, property_id: str) -> List[Unit]:
        return (self.session.query(Unit)
                .filter(Unit.property_id == property_id)
                .order_by(Unit.id)
                .all())
