"""
Listing CSV Import Service - bulk Property / Floor Plan / Unit import from CSV

One CSV row describes one unit together with its floor plan and property.
Rows are validated independently; invalid rows are reported and skipped
while the rest of the file is imported with the skip-existing policy.
"""

import csv
import io
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from werkzeug.datastructures import FileStorage

from logging_config import get_logger
from services.address_normalizer import normalize_address, property_key
from services.common.result import Result
from services.enums import ImportPolicy, ImportSource, UnitStatus
from services.listing_grouping import generate_property_id
from services.listing_import_orchestrator import ListingImportOrchestrator
from services.listing_import_types import (
    CancellationToken, FloorPlanDraft, ImportResult, ProgressCallback,
    ProgressReporter, PropertyDraft, UnitDraft, to_number
)
from utils.datetime_utils import parse_strict_date, utc_now

logger = get_logger(__name__)

TEMPLATE_FILENAME = 'listings_import_template.csv'

REQUIRED_HEADERS = (
    # Property
    'property_name', 'market',
    # Floor plan
    'floor_plan_name', 'beds', 'baths', 'market_rent', 'starting_at',
    # Unit
    'unit_number', 'available_from',
)

RECOMMENDED_HEADERS = ('city', 'street_address', 'sqft')

OPTIONAL_HEADERS = (
    'zip_code', 'phone', 'contact_email', 'leasing_link', 'neighborhood',
    'description', 'amenities', 'is_pumi', 'commission_pct', 'map_lat', 'map_lng',
    'has_concession', 'concession_type', 'concession_value', 'concession_description',
    'floor', 'unit_rent', 'unit_market_rent', 'unit_status', 'unit_notes',
)

# Column order of the downloadable template
TEMPLATE_HEADERS = (
    'property_name', 'market', 'city', 'street_address', 'zip_code', 'phone',
    'contact_email', 'leasing_link', 'neighborhood', 'description', 'amenities',
    'is_pumi', 'commission_pct', 'map_lat', 'map_lng',
    'floor_plan_name', 'beds', 'baths', 'market_rent', 'starting_at', 'sqft',
    'has_concession', 'concession_type', 'concession_value', 'concession_description',
    'unit_number', 'available_from', 'floor', 'unit_rent', 'unit_market_rent',
    'unit_status', 'unit_notes',
)

TEMPLATE_EXAMPLE_ROWS = (
    {
        'property_name': 'The Madison Apartments', 'market': 'Austin', 'city': 'Austin',
        'street_address': '123 Main St', 'zip_code': '78701', 'phone': '512-555-0100',
        'contact_email': 'leasing@madison.com', 'leasing_link': 'https://madison.com/apply',
        'neighborhood': 'Downtown', 'description': 'Luxury apartments in the heart of downtown',
        'amenities': 'Pool|Gym|Parking|Pet Friendly|Rooftop Deck', 'is_pumi': 'false',
        'commission_pct': '3.5', 'map_lat': '30.2672', 'map_lng': '-97.7431',
        'floor_plan_name': 'A1 - 1x1 Classic', 'beds': '1', 'baths': '1.0',
        'market_rent': '1500', 'starting_at': '1350', 'sqft': '650',
        'has_concession': 'true', 'concession_type': 'free_weeks',
        'concession_value': '2 weeks free',
        'concession_description': 'First 2 weeks free on 12-month lease',
        'unit_number': '101', 'available_from': '2025-11-01', 'floor': '1',
        'unit_status': 'available', 'unit_notes': 'Corner unit with great views',
    },
    {
        'property_name': 'The Madison Apartments', 'market': 'Austin', 'city': 'Austin',
        'street_address': '123 Main St', 'zip_code': '78701', 'phone': '512-555-0100',
        'contact_email': 'leasing@madison.com', 'leasing_link': 'https://madison.com/apply',
        'neighborhood': 'Downtown', 'description': 'Luxury apartments in the heart of downtown',
        'amenities': 'Pool|Gym|Parking|Pet Friendly|Rooftop Deck', 'is_pumi': 'false',
        'commission_pct': '3.5', 'map_lat': '30.2672', 'map_lng': '-97.7431',
        'floor_plan_name': 'B2 - 2x2 Deluxe', 'beds': '2', 'baths': '2.0',
        'market_rent': '2200', 'starting_at': '2000', 'sqft': '1100',
        'has_concession': 'true', 'concession_type': 'dollar_off',
        'concession_value': '$500 off', 'concession_description': '$500 off first month rent',
        'unit_number': '205', 'available_from': '2025-11-15', 'floor': '2',
        'unit_rent': '1950', 'unit_market_rent': '2200', 'unit_status': 'available',
        'unit_notes': 'Recently renovated',
    },
    {
        # Only the required columns
        'property_name': 'The Oaks Apartments', 'market': 'Dallas',
        'floor_plan_name': 'Studio', 'beds': '0', 'baths': '1.0',
        'market_rent': '1200', 'starting_at': '1100',
        'unit_number': 'S1', 'available_from': '2025-12-01',
    },
)

_INTEGER_FIELDS = ('beds', 'market_rent', 'starting_at')
_FLOAT_FIELDS = ('baths',)
_OPTIONAL_INTEGER_FIELDS = ('sqft', 'floor', 'unit_rent', 'unit_market_rent')
_OPTIONAL_FLOAT_FIELDS = ('commission_pct', 'map_lat', 'map_lng')
_TRUE_VALUES = ('true', '1', 'yes', 'y')


def parse_csv(text: str) -> List[List[str]]:
    """
    Tokenize CSV text into rows of trimmed cells.

    Single pass over the characters: quoted cells may contain commas,
    newlines and doubled quotes; CR, LF and CRLF all end a row; blank lines
    are dropped.
    """
    if not text:
        return []
    if text.startswith('\ufeff'):
        text = text[1:]

    rows: List[List[str]] = []
    row: List[str] = []
    cell: List[str] = []
    in_quotes = False
    i = 0
    length = len(text)

    while i < length:
        char = text[i]

        if char == '"':
            if in_quotes and i + 1 < length and text[i + 1] == '"':
                cell.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == ',' and not in_quotes:
            row.append(''.join(cell).strip())
            cell = []
        elif char in '\r\n' and not in_quotes:
            if cell or row:
                row.append(''.join(cell).strip())
                if any(row):
                    rows.append(row)
                row = []
                cell = []
            if char == '\r' and i + 1 < length and text[i + 1] == '\n':
                i += 1
        else:
            cell.append(char)
        i += 1

    if cell or row:
        row.append(''.join(cell).strip())
        if any(row):
            rows.append(row)

    return rows


def validate_headers(headers: List[str]) -> Result[List[str]]:
    """All required headers must be present; one error names every missing one."""
    present = set(headers)
    missing = [h for h in REQUIRED_HEADERS if h not in present]
    if missing:
        return Result.failure(f"Missing required columns: {', '.join(missing)}", code="MISSING_HEADERS")
    return Result.success(list(headers))


@dataclass
class CSVListingRow:
    """One validated CSV row with typed values"""
    row_number: int
    property_name: str
    market: str
    floor_plan_name: str
    beds: int
    baths: float
    market_rent: int
    starting_at: int
    unit_number: str
    available_from: date
    sqft: Optional[int] = None
    floor: Optional[int] = None
    unit_rent: Optional[int] = None
    unit_market_rent: Optional[int] = None
    commission_pct: Optional[float] = None
    map_lat: Optional[float] = None
    map_lng: Optional[float] = None
    unit_status: str = UnitStatus.AVAILABLE.value
    has_concession: bool = False
    is_pumi: bool = False
    amenities: List[str] = field(default_factory=list)
    text: Dict[str, Optional[str]] = field(default_factory=dict)

    def value(self, name: str) -> Optional[str]:
        return self.text.get(name) or None


def _parse_int(name: str, value: str) -> int:
    number = to_number(value)
    if number is None or not float(number).is_integer():
        raise ValueError(f"Invalid number for {name}: '{value}'")
    return int(number)


def _parse_float(name: str, value: str) -> float:
    number = to_number(value)
    if number is None:
        raise ValueError(f"Invalid number for {name}: '{value}'")
    return number


def validate_row(data: Dict[str, str], row_number: int) -> Result[CSVListingRow]:
    """Check one row independently of every other row."""
    for name in REQUIRED_HEADERS:
        if not (data.get(name) or '').strip():
            return Result.failure(f"Missing required field: {name}", code="INVALID_ROW")

    try:
        numbers: Dict[str, Any] = {}
        for name in _INTEGER_FIELDS:
            numbers[name] = _parse_int(name, data[name])
        for name in _FLOAT_FIELDS:
            numbers[name] = _parse_float(name, data[name])
        for name in _OPTIONAL_INTEGER_FIELDS:
            if (data.get(name) or '').strip():
                numbers[name] = _parse_int(name, data[name])
        for name in _OPTIONAL_FLOAT_FIELDS:
            if (data.get(name) or '').strip():
                numbers[name] = _parse_float(name, data[name])
    except ValueError as e:
        return Result.failure(str(e), code="INVALID_ROW")

    try:
        available_from = parse_strict_date(data['available_from'])
    except ValueError:
        return Result.failure(
            f"Invalid date for available_from: '{data['available_from']}' (expected YYYY-MM-DD)",
            code="INVALID_ROW"
        )

    status = (data.get('unit_status') or '').strip().lower() or UnitStatus.AVAILABLE.value
    if status not in {s.value for s in UnitStatus}:
        return Result.failure(f"Invalid unit_status: '{data.get('unit_status')}'", code="INVALID_ROW")

    amenities = [a.strip() for a in (data.get('amenities') or '').split('|') if a.strip()]

    return Result.success(CSVListingRow(
        row_number=row_number,
        property_name=data['property_name'].strip(),
        market=data['market'].strip(),
        floor_plan_name=data['floor_plan_name'].strip(),
        unit_number=data['unit_number'].strip(),
        available_from=available_from,
        unit_status=status,
        has_concession=(data.get('has_concession') or '').strip().lower() in _TRUE_VALUES,
        is_pumi=(data.get('is_pumi') or '').strip().lower() in _TRUE_VALUES,
        amenities=amenities,
        text={k: (v or '').strip() for k, v in data.items()},
        **numbers,
    ))


def generate_csv_template() -> str:
    """Header row plus three example rows (every example cell quoted)."""
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator='\n').writerow(TEMPLATE_HEADERS)
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator='\n')
    for example in TEMPLATE_EXAMPLE_ROWS:
        writer.writerow([example.get(header, '') for header in TEMPLATE_HEADERS])
    return buffer.getvalue()


def _positive_range(values) -> Tuple[Optional[float], Optional[float]]:
    kept = [v for v in values if v is not None and v > 0]
    return (min(kept), max(kept)) if kept else (None, None)


class ListingCSVImportService:
    """CSV adapter: validate rows, build drafts, persist via the orchestrator"""

    def __init__(self, orchestrator: ListingImportOrchestrator):
        self.orchestrator = orchestrator

    def import_file(self, file: FileStorage,
                    progress_callback: Optional[ProgressCallback] = None,
                    cancel_token: Optional[CancellationToken] = None) -> ImportResult:
        """Import an uploaded .csv file"""
        checked = self._check_upload(file)
        if checked.is_failure:
            logger.warning("CSV upload rejected", error=checked.error, code=checked.error_code)
            return ImportResult.fatal(checked.error)

        content = file.read()
        if isinstance(content, bytes):
            content = content.decode('utf-8-sig', errors='replace')

        return self.import_csv(content, filename=file.filename,
                               progress_callback=progress_callback, cancel_token=cancel_token)

    def import_csv(self, content: str, filename: Optional[str] = None,
                   progress_callback: Optional[ProgressCallback] = None,
                   cancel_token: Optional[CancellationToken] = None) -> ImportResult:
        """
        Import CSV text.

        Args:
            content: Raw CSV text
            filename: Original file name (logging only)
            progress_callback: (message, current, total) callable
            cancel_token: Checked between property groups

        Returns:
            ImportResult with {"row": N, "error"} entries for skipped rows
        """
        progress = ProgressReporter(progress_callback)
        progress.report('Reading CSV file...', 0, 100)

        parsed = self._read_rows(content)
        if parsed.is_failure:
            logger.warning("CSV import rejected", filename=filename, error=parsed.error,
                           code=parsed.error_code)
            return ImportResult.fatal(parsed.error)

        headers, data_rows = parsed.data
        result = ImportResult()
        valid_rows: List[CSVListingRow] = []

        progress.report(f'Validating {len(data_rows)} rows...', 10, 100)
        for index, cells in enumerate(data_rows):
            row_number = index + 2  # header is row 1
            data = {header: (cells[i] if i < len(cells) else '') for i, header in enumerate(headers)}

            validated = validate_row(data, row_number)
            if validated.is_failure:
                logger.info("Skipping invalid CSV row", row=row_number, error=validated.error)
                result.add_error(validated.error, row=row_number)
                continue
            valid_rows.append(validated.data)

        drafts = self.build_drafts(valid_rows)
        logger.info("CSV rows validated", filename=filename, rows=len(data_rows),
                    valid=len(valid_rows), properties=len(drafts))

        result = self.orchestrator.run(
            drafts,
            policy=ImportPolicy.SKIP_EXISTING,
            source=ImportSource.CSV.value,
            progress=progress,
            cancel_token=cancel_token,
            result=result,
        )

        if result.success:
            progress.report('Import complete!', 100, 100)
        return result

    def _check_upload(self, file: Optional[FileStorage]) -> Result[FileStorage]:
        if file is None or not file.filename:
            return Result.failure('Please select a CSV file', code="INVALID_FILE")
        if not file.filename.lower().endswith('.csv'):
            return Result.failure('Please upload a CSV file', code="INVALID_FILE")
        return Result.success(file)

    def _read_rows(self, content: str) -> Result[Tuple[List[str], List[List[str]]]]:
        rows = parse_csv(content or '')
        if not rows:
            return Result.failure('CSV file is empty', code="EMPTY_FILE")

        headers = [h.strip().lower() for h in rows[0]]
        checked = validate_headers(headers)
        if checked.is_failure:
            return Result.failure(checked.error, code=checked.error_code)

        if len(rows) < 2:
            return Result.failure('No data rows found in CSV', code="NO_DATA_ROWS")

        return Result.success((headers, rows[1:]))

    # Draft building

    def build_drafts(self, rows: List[CSVListingRow]) -> List[PropertyDraft]:
        """Group rows by property name, then floor plan name, in file order."""
        by_property: Dict[str, List[CSVListingRow]] = {}
        for row in rows:
            by_property.setdefault(property_key(row.property_name), []).append(row)

        return [self._property_draft(key, property_rows) for key, property_rows in by_property.items()]

    def _property_draft(self, name_key: str, rows: List[CSVListingRow]) -> PropertyDraft:
        first = rows[0]

        def detail(name):
            # First non-empty value across the property's rows
            for row in rows:
                if row.value(name):
                    return row.value(name)
            return None

        street = detail('street_address')
        city = detail('city') or first.market
        dedup_key = normalize_address(f"{street}, {city}") if street else name_key

        amenities = next((row.amenities for row in rows if row.amenities), [])
        latitude = next((row.map_lat for row in rows if row.map_lat is not None), None)
        longitude = next((row.map_lng for row in rows if row.map_lng is not None), None)
        commission = next((row.commission_pct for row in rows if row.commission_pct is not None), None)

        floor_plans = self._floor_plan_drafts(rows)

        rent_min, _ = _positive_range(fp.fields['starting_at'] for fp in floor_plans)
        _, rent_max = _positive_range(fp.fields['market_rent'] for fp in floor_plans)
        beds = [fp.fields['beds'] for fp in floor_plans if fp.fields['beds'] is not None and fp.fields['beds'] >= 0]
        baths_min, baths_max = _positive_range(fp.fields['baths'] for fp in floor_plans)
        sqft_min, sqft_max = _positive_range(fp.fields['sqft'] for fp in floor_plans)

        return PropertyDraft(
            id=generate_property_id(ImportSource.CSV.value, dedup_key),
            name=first.property_name,
            label=first.property_name,
            source=ImportSource.CSV.value,
            street_address=street,
            city=city,
            zip_code=detail('zip_code'),
            latitude=latitude if longitude is not None else None,
            longitude=longitude if latitude is not None else None,
            fields={
                'market': first.market,
                'neighborhood': detail('neighborhood'),
                'description': detail('description'),
                'amenities': amenities,
                'phone': detail('phone'),
                'contact_email': detail('contact_email'),
                'leasing_link': detail('leasing_link'),
                'is_pumi': any(row.is_pumi for row in rows),
                'commission_pct': commission,
            },
            aggregate_fields={
                'rent_min': rent_min,
                'rent_max': rent_max,
                'beds_min': min(beds) if beds else None,
                'beds_max': max(beds) if beds else None,
                'baths_min': baths_min,
                'baths_max': baths_max,
                'sqft_min': sqft_min,
                'sqft_max': sqft_max,
                'last_refreshed_at': utc_now(),
            },
            floor_plans=floor_plans,
        )

    def _floor_plan_drafts(self, rows: List[CSVListingRow]) -> List[FloorPlanDraft]:
        by_plan: Dict[str, List[CSVListingRow]] = {}
        for row in rows:
            by_plan.setdefault(row.floor_plan_name.lower(), []).append(row)

        drafts = []
        for plan_rows in by_plan.values():
            first = plan_rows[0]
            units = [self._unit_draft(row) for row in plan_rows]
            sqft_values = [row.sqft for row in plan_rows if row.sqft]
            concession_row = next((row for row in plan_rows if row.has_concession), first)

            drafts.append(FloorPlanDraft(
                name=first.floor_plan_name,
                fields={
                    'beds': first.beds,
                    'baths': first.baths,
                    'sqft': max(sqft_values) if sqft_values else None,
                    'market_rent': max(row.market_rent for row in plan_rows),
                    'starting_at': min(row.starting_at for row in plan_rows),
                    'units_available': sum(1 for unit in units if unit.is_available),
                    'has_concession': concession_row.has_concession,
                    'concession_type': concession_row.value('concession_type'),
                    'concession_value': concession_row.value('concession_value'),
                    'concession_description': concession_row.value('concession_description'),
                },
                units=units,
            ))
        return drafts

    def _unit_draft(self, row: CSVListingRow) -> UnitDraft:
        return UnitDraft(
            unit_number=row.unit_number,
            row_number=row.row_number,
            fields={
                'floor': row.floor,
                'rent': row.unit_rent,
                'market_rent': row.unit_market_rent,
                'available_from': row.available_from,
                'status': row.unit_status,
                'is_available': row.unit_status == UnitStatus.AVAILABLE.value,
                'notes': row.value('unit_notes'),
            },
        )
