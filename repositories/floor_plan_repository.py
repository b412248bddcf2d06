"""FloorPlanRepository - data access for FloorPlan entities"""

from typing import List
from sqlalchemy.orm import Session

from crm_database import FloorPlan
from repositories.base_repository import BaseRepository


class FloorPlanRepository(BaseRepository[FloorPlan]):
    """Repository for FloorPlan entity operations"""

    def __init__(self, session: Session):
        super().__init__(session, FloorPlan)

    def find_by_property(self, property_id: str) -> List[FloorPlan]:
        return (self.session.query(FloorPlan)
                .filter(FloorPlan.property_id == property_id)
                .order_by(FloorPlan.id)
                .all())
