"""
DedupResolver - match incoming drafts against what is already stored

Indexes are loaded once per import run and updated as the run creates
entities, so a property created for an early group is found again by a
later group in the same run.
"""

from typing import Dict, Optional, Set, Tuple

from crm_database import Property, FloorPlan
from logging_config import get_logger
from services.address_normalizer import property_key
from services.listing_import_types import PropertyDraft

logger = get_logger(__name__)


def _address_key(street: Optional[str], city: Optional[str]) -> Optional[Tuple[str, str]]:
    street = (street or '').strip().lower()
    city = (city or '').strip().lower()
    if not street or not city:
        return None
    return street, city


class DedupResolver:
    """Per-run lookup indexes for properties, floor plans and units"""

    def __init__(self):
        self.properties_by_name: Dict[str, Property] = {}
        self.properties_by_address: Dict[Tuple[str, str], Property] = {}
        self.properties_by_id: Dict[str, Property] = {}
        self.floor_plans: Dict[Tuple[str, str], FloorPlan] = {}
        self.unit_keys: Set[Tuple[str, str]] = set()

    @classmethod
    def from_repositories(cls, property_repository, floor_plan_repository, unit_repository) -> 'DedupResolver':
        """Pre-load every index from storage"""
        resolver = cls()

        for prop in property_repository.get_all():
            resolver.remember_property(prop)
        for floor_plan in floor_plan_repository.get_all():
            resolver.remember_floor_plan(floor_plan)
        resolver.unit_keys.update(unit_repository.get_unit_keys())

        logger.info("Dedup indexes loaded",
                    properties=len(resolver.properties_by_id),
                    floor_plans=len(resolver.floor_plans),
                    units=len(resolver.unit_keys))
        return resolver

    # Properties

    def resolve_property(self, draft: PropertyDraft) -> Optional[Property]:
        """Name, then street+city, then deterministic id. None means new."""
        name_key = property_key(draft.name)
        if name_key and name_key in self.properties_by_name:
            return self.properties_by_name[name_key]

        address_key = _address_key(draft.street_address, draft.city)
        if address_key and address_key in self.properties_by_address:
            return self.properties_by_address[address_key]

        return self.properties_by_id.get(draft.id)

    def remember_property(self, prop: Property) -> None:
        name_key = property_key(prop.name)
        if name_key:
            self.properties_by_name.setdefault(name_key, prop)

        address_key = _address_key(prop.street_address, prop.city)
        if address_key:
            self.properties_by_address.setdefault(address_key, prop)

        self.properties_by_id[prop.id] = prop

    # Floor plans

    def find_floor_plan(self, property_id: str, name: str) -> Optional[FloorPlan]:
        return self.floor_plans.get((property_id, (name or '').strip().lower()))

    def remember_floor_plan(self, floor_plan: FloorPlan) -> None:
        key = (floor_plan.property_id, (floor_plan.name or '').strip().lower())
        self.floor_plans.setdefault(key, floor_plan)

    # Units

    def is_duplicate_unit(self, property_id: str, unit_number: str) -> bool:
        return (property_id, unit_number) in self.unit_keys

    def remember_unit(self, property_id: str, unit_number: str) -> None:
        self.unit_keys.add((property_id, unit_number))
