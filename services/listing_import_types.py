"""
Data carriers shared by the listing import services.

RawListingRecord is the per-unit record coming out of a source adapter.
PropertyDraft / FloorPlanDraft / UnitDraft are the source-neutral shapes the
orchestrator persists. ImportResult is the per-run summary.
"""

import math
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from logging_config import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[str, int, int], None]


def to_number(value: Any) -> Optional[float]:
    """Coerce API/CSV numeric values (int, float or numeric string) to a finite float."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    text = str(value).strip().replace(',', '').replace('$', '')
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    # nan and inf parse as floats but are not usable values
    return number if math.isfinite(number) else None


def to_int(value: Any) -> Optional[int]:
    number = to_number(value)
    return int(round(number)) if number is not None else None


@dataclass
class RawListingRecord:
    """One rentable unit as published by a listings feed."""
    address: str
    external_id: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None
    square_footage: Optional[int] = None
    price: Optional[int] = None
    status: Optional[str] = None
    listed_date: Optional[str] = None
    description: Optional[str] = None
    photos: List[str] = field(default_factory=list)
    property_name: Optional[str] = None
    property_type: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    days_on_market: Optional[int] = None

    # Set by the grouping engine
    extracted_unit: Optional[str] = None

    @classmethod
    def from_api(cls, listing: Dict[str, Any]) -> 'RawListingRecord':
        """Build a record from a RentCast listing object."""
        photos = listing.get('photos') or []
        if not isinstance(photos, list):
            photos = [photos]

        return cls(
            address=listing.get('formattedAddress') or listing.get('addressLine1') or '',
            external_id=str(listing['id']) if listing.get('id') is not None else None,
            address_line1=listing.get('addressLine1'),
            address_line2=listing.get('addressLine2'),
            city=listing.get('city'),
            state=listing.get('state'),
            zip_code=listing.get('zipCode'),
            bedrooms=to_number(listing.get('bedrooms')),
            bathrooms=to_number(listing.get('bathrooms')),
            square_footage=to_int(listing.get('squareFootage')),
            price=to_int(listing.get('price')),
            status=listing.get('status'),
            listed_date=listing.get('listedDate'),
            description=listing.get('description'),
            photos=[p for p in photos if p],
            property_name=listing.get('propertyName'),
            property_type=listing.get('propertyType'),
            latitude=to_number(listing.get('latitude')),
            longitude=to_number(listing.get('longitude')),
            days_on_market=to_int(listing.get('daysOnMarket')),
        )

    @property
    def is_active(self) -> bool:
        return (self.status or '').strip().lower() == 'active'


@dataclass
class UnitDraft:
    unit_number: str
    fields: Dict[str, Any] = field(default_factory=dict)
    row_number: Optional[int] = None

    @property
    def is_available(self) -> bool:
        return bool(self.fields.get('is_available'))


@dataclass
class FloorPlanDraft:
    name: str
    fields: Dict[str, Any] = field(default_factory=dict)
    units: List[UnitDraft] = field(default_factory=list)


@dataclass
class PropertyDraft:
    """Everything needed to create or refresh one property and its children."""
    id: str
    name: str
    label: str
    source: str
    street_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    aggregate_fields: Dict[str, Any] = field(default_factory=dict)
    floor_plans: List[FloorPlanDraft] = field(default_factory=list)

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def create_kwargs(self) -> Dict[str, Any]:
        """Column values for a brand new Property row."""
        values = dict(self.fields)
        values.update(self.aggregate_fields)
        values.update(
            id=self.id,
            name=self.name,
            street_address=self.street_address,
            city=self.city,
            state=self.state,
            zip_code=self.zip_code,
            latitude=self.latitude,
            longitude=self.longitude,
            import_source=self.source,
        )
        return values


@dataclass
class ImportResult:
    """Summary of one import run. Returned to the caller, never persisted."""
    success: bool = False
    properties_created: int = 0
    properties_updated: int = 0
    properties_skipped: int = 0
    floor_plans_created: int = 0
    units_created: int = 0
    units_skipped: int = 0
    geocoded: int = 0
    geocode_failed: int = 0
    deleted_existing: int = 0
    cancelled: bool = False
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def add_error(self, error: str, **context) -> None:
        entry = dict(context)
        entry['error'] = error
        self.errors.append(entry)

    @classmethod
    def fatal(cls, error: str) -> 'ImportResult':
        result = cls(success=False)
        result.add_error(error)
        return result

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'properties_created': self.properties_created,
            'properties_updated': self.properties_updated,
            'properties_skipped': self.properties_skipped,
            'floor_plans_created': self.floor_plans_created,
            'units_created': self.units_created,
            'units_skipped': self.units_skipped,
            'geocoded': self.geocoded,
            'geocode_failed': self.geocode_failed,
            'deleted_existing': self.deleted_existing,
            'cancelled': self.cancelled,
            'errors': list(self.errors),
        }


class ProgressReporter:
    """Forwards (message, current, total) milestones to an optional callback.

    A broken callback is logged and otherwise ignored so progress reporting
    can never abort an import.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback

    def report(self, message: str, current: int, total: int) -> None:
        logger.debug("Import progress", message=message, current=current, total=total)
        if not self.callback:
            return
        try:
            self.callback(message, current, total)
        except Exception as e:
            logger.warning("Progress callback failed", message=message, error=str(e))


class CancellationToken:
    """Cooperative cancellation flag checked between property groups."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()
