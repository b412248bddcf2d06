"""
Grouping Engine and Aggregator for per-unit listing records.

Flat listings -> PropertyGroup (keyed by normalized address)
              -> PropertyAggregate (ranges, photos, display address)
              -> FloorPlanGroup per (beds, baths)
              -> PropertyDraft ready for the orchestrator
"""

import hashlib
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from logging_config import get_logger
from services.address_normalizer import normalize_address, extract_unit, street_portion
from services.enums import ImportSource, UnitStatus
from services.listing_import_types import (
    RawListingRecord, PropertyDraft, FloorPlanDraft, UnitDraft
)
from utils.datetime_utils import parse_iso_date, utc_now, utc_today

logger = get_logger(__name__)

MAX_PROPERTY_PHOTOS = 10
MAX_UNIT_NOTES_LENGTH = 500
DEFAULT_BEDS = 0
DEFAULT_BATHS = 1

Range = Tuple[Optional[float], Optional[float]]


def generate_property_id(source: str, key: str) -> str:
    """Deterministic property id for a grouping key.

    Re-importing the same address always yields the same id. The slug keeps
    ids readable; the digest keeps long addresses that share a prefix apart.
    """
    lowered = (key or '').strip().lower()
    slug = re.sub(r'[^a-z0-9]', '', lowered)[:24]
    digest = hashlib.sha1(lowered.encode('utf-8')).hexdigest()[:10]
    return f"{source}_{slug}_{digest}"


def _format_count(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def generate_floor_plan_name(beds: float, baths: float) -> str:
    """e.g. 2, 1.5 -> '2BR/1.5BA'"""
    return f"{_format_count(beds)}BR/{_format_count(baths)}BA"


def _value_range(values: Iterable[Optional[float]], allow_zero: bool = False) -> Range:
    kept = [v for v in values if v is not None and (v >= 0 if allow_zero else v > 0)]
    if not kept:
        return None, None
    return min(kept), max(kept)


@dataclass
class PropertyGroup:
    key: str
    records: List[RawListingRecord] = field(default_factory=list)


@dataclass
class PropertyAggregate:
    rent_range: Range
    beds_range: Range
    baths_range: Range
    sqft_range: Range
    photos: List[str]
    display_address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def to_fields(self) -> Dict[str, object]:
        return {
            'rent_min': self.rent_range[0],
            'rent_max': self.rent_range[1],
            'beds_min': self.beds_range[0],
            'beds_max': self.beds_range[1],
            'baths_min': self.baths_range[0],
            'baths_max': self.baths_range[1],
            'sqft_min': self.sqft_range[0],
            'sqft_max': self.sqft_range[1],
            'photos': list(self.photos),
        }


@dataclass
class FloorPlanGroup:
    beds: float
    baths: float
    name: str
    sqft: Optional[int] = None
    starting_at: Optional[int] = None
    market_rent: Optional[int] = None
    units: List[UnitDraft] = field(default_factory=list)

    @property
    def units_available(self) -> int:
        return sum(1 for unit in self.units if unit.is_available)

    def add_price(self, price: Optional[int]) -> None:
        if price is None or price <= 0:
            return
        self.starting_at = price if self.starting_at is None else min(self.starting_at, price)
        self.market_rent = price if self.market_rent is None else max(self.market_rent, price)

    def add_sqft(self, sqft: Optional[int]) -> None:
        if sqft and sqft > 0 and (self.sqft is None or sqft > self.sqft):
            self.sqft = sqft


def group_listings(records: Iterable[RawListingRecord]) -> Dict[str, PropertyGroup]:
    """Partition records by normalized address, preserving first-seen order.

    Every record with an address lands in exactly one group and is annotated
    with its extracted unit number.
    """
    groups: Dict[str, PropertyGroup] = {}
    dropped = 0

    for record in records:
        raw_address = (record.address or record.address_line1 or '').strip()
        if not raw_address:
            dropped += 1
            continue

        key = normalize_address(raw_address) or raw_address
        record.extracted_unit = extract_unit(raw_address, record.address_line2)

        group = groups.get(key)
        if group is None:
            group = PropertyGroup(key=key)
            groups[key] = group
        group.records.append(record)

    if dropped:
        logger.warning("Dropped listings without an address", count=dropped)

    return groups


def aggregate_property(group: PropertyGroup) -> PropertyAggregate:
    """Compute ranges, photos and display address for one property group."""
    records = group.records

    photos: List[str] = []
    seen = set()
    for record in records:
        for photo in record.photos or []:
            if photo and photo not in seen:
                seen.add(photo)
                photos.append(photo)
        if len(photos) >= MAX_PROPERTY_PHOTOS:
            break

    latitude = longitude = None
    for record in records:
        if record.latitude is not None and record.longitude is not None:
            latitude, longitude = record.latitude, record.longitude
            break

    first = records[0] if records else None
    display_address = ''
    if first is not None:
        display_address = street_portion(first.address_line1 or first.address)

    return PropertyAggregate(
        rent_range=_value_range(r.price for r in records),
        beds_range=_value_range((r.bedrooms for r in records), allow_zero=True),
        baths_range=_value_range(r.bathrooms for r in records),
        sqft_range=_value_range(r.square_footage for r in records),
        photos=photos[:MAX_PROPERTY_PHOTOS],
        display_address=display_address or group.key,
        latitude=latitude,
        longitude=longitude,
    )


def _unit_from_record(record: RawListingRecord, position: int) -> UnitDraft:
    status = UnitStatus.AVAILABLE.value if record.is_active else UnitStatus.UNAVAILABLE.value
    description = record.description[:MAX_UNIT_NOTES_LENGTH] if record.description else None

    return UnitDraft(
        unit_number=record.extracted_unit or f"Unit {position}",
        fields={
            'rent': record.price if record.price and record.price > 0 else None,
            'market_rent': record.price if record.price and record.price > 0 else None,
            'available_from': parse_iso_date(record.listed_date) or utc_today(),
            'is_available': record.is_active,
            'status': status,
            'notes': description,
        },
    )


def build_floor_plan_groups(group: PropertyGroup) -> List[FloorPlanGroup]:
    """Bucket a property's records by (beds, baths) in first-seen order."""
    buckets: Dict[Tuple[float, float], FloorPlanGroup] = {}

    for position, record in enumerate(group.records, start=1):
        beds = record.bedrooms if record.bedrooms is not None else DEFAULT_BEDS
        baths = record.bathrooms if record.bathrooms is not None else DEFAULT_BATHS
        key = (float(beds), float(baths))

        bucket = buckets.get(key)
        if bucket is None:
            bucket = FloorPlanGroup(beds=beds, baths=baths, name=generate_floor_plan_name(beds, baths))
            buckets[key] = bucket

        bucket.add_price(record.price)
        bucket.add_sqft(record.square_footage)
        bucket.units.append(_unit_from_record(record, position))

    return list(buckets.values())


def build_property_draft(group: PropertyGroup, source: str = ImportSource.RENTCAST.value) -> PropertyDraft:
    """Turn one property group into a PropertyDraft with floor plans and units."""
    aggregate = aggregate_property(group)
    first = group.records[0]

    aggregate_fields = aggregate.to_fields()
    aggregate_fields['last_refreshed_at'] = utc_now()

    floor_plans = []
    for plan in build_floor_plan_groups(group):
        floor_plans.append(FloorPlanDraft(
            name=plan.name,
            fields={
                'beds': plan.beds,
                'baths': plan.baths,
                'sqft': plan.sqft,
                'market_rent': plan.market_rent,
                'starting_at': plan.starting_at,
                'units_available': plan.units_available,
            },
            units=plan.units,
        ))

    return PropertyDraft(
        id=generate_property_id(source, group.key),
        name=first.property_name or group.key,
        label=group.key,
        source=source,
        street_address=aggregate.display_address,
        city=first.city,
        state=first.state,
        zip_code=first.zip_code,
        latitude=aggregate.latitude,
        longitude=aggregate.longitude,
        fields={
            'market': first.city,
            'property_type': first.property_type or 'Apartment',
            'external_id': first.external_id,
        },
        aggregate_fields=aggregate_fields,
        floor_plans=floor_plans,
    )
