"""
Tests for the listing CSV import service - tokenizer, header and row
validation, draft building and the downloadable template
"""

import csv
import io
from datetime import date
from unittest.mock import MagicMock, Mock

import pytest
from werkzeug.datastructures import FileStorage

from services.enums import ImportPolicy
from services.listing_csv_import_service import (
    REQUIRED_HEADERS,
    TEMPLATE_HEADERS,
    ListingCSVImportService,
    generate_csv_template,
    parse_csv,
    validate_headers,
    validate_row,
)
from services.listing_grouping import generate_property_id
from services.listing_import_types import ImportResult
from tests.fixtures.listing_fixtures import csv_text, make_csv_row


class TestParseCSV:

    def test_quoted_cells_with_commas_newlines_and_quotes(self):
        text = 'name,notes\n"Smith, John","He said ""hi""\nthen left"\n'

        assert parse_csv(text) == [['name', 'notes'], ['Smith, John', 'He said "hi"\nthen left']]

    @pytest.mark.parametrize('newline', ['\n', '\r\n', '\r'])
    def test_line_endings(self, newline):
        text = newline.join(['a,b', '1,2', '3,4'])

        assert parse_csv(text) == [['a', 'b'], ['1', '2'], ['3', '4']]

    def test_cells_trimmed_and_blank_lines_dropped(self):
        text = ' a , b \n\n 1 ,2 \n,\n'

        assert parse_csv(text) == [['a', 'b'], ['1', '2']]

    def test_empty_cells_kept_in_position(self):
        assert parse_csv('a,b,c\n1,,3') == [['a', 'b', 'c'], ['1', '', '3']]

    def test_byte_order_mark_stripped(self):
        assert parse_csv('\ufeffa,b\n1,2') == [['a', 'b'], ['1', '2']]

    def test_empty(self):
        assert parse_csv('') == []


class TestValidateHeaders:

    def test_all_required_present(self):
        assert validate_headers(list(REQUIRED_HEADERS)).is_success

    def test_lists_every_missing_header(self):
        headers = [h for h in REQUIRED_HEADERS if h not in ('beds', 'unit_number')]

        result = validate_headers(headers)

        assert result.is_failure
        assert result.error_code == 'MISSING_HEADERS'
        assert result.error == 'Missing required columns: beds, unit_number'


class TestValidateRow:

    def test_valid_row_is_typed(self):
        result = validate_row(make_csv_row(baths='1.5', unit_status='Pending', has_concession='YES',
                                           amenities='Pool| Gym ||Parking'), 2)

        row = result.data
        assert result.is_success
        assert row.row_number == 2
        assert row.beds == 1
        assert row.baths == 1.5
        assert row.market_rent == 1500
        assert row.sqft == 650
        assert row.available_from == date(2025, 11, 1)
        assert row.unit_status == 'pending'
        assert row.has_concession is True
        assert row.amenities == ['Pool', 'Gym', 'Parking']

    @pytest.mark.parametrize('field', ['property_name', 'beds', 'available_from', 'unit_number'])
    def test_missing_required_field(self, field):
        result = validate_row(make_csv_row(**{field: '  '}), 5)

        assert result.error == f'Missing required field: {field}'
        assert result.error_code == 'INVALID_ROW'

    def test_non_numeric(self):
        assert validate_row(make_csv_row(market_rent='lots'), 2).error == "Invalid number for market_rent: 'lots'"

    def test_fractional_integer_rejected(self):
        assert validate_row(make_csv_row(beds='1.5'), 2).error == "Invalid number for beds: '1.5'"

    @pytest.mark.parametrize('field, value', [
        ('baths', 'nan'),
        ('beds', 'inf'),
        ('market_rent', '-Infinity'),
        ('map_lat', 'inf'),
        ('map_lng', '-inf'),
        ('commission_pct', 'NaN'),
    ])
    def test_non_finite_number_rejected(self, field, value):
        result = validate_row(make_csv_row(**{field: value}), 2)

        assert result.is_failure
        assert result.error == f"Invalid number for {field}: '{value}'"

    def test_optional_numeric_validated_when_present(self):
        assert validate_row(make_csv_row(floor='second'), 2).error == "Invalid number for floor: 'second'"

    @pytest.mark.parametrize('value', ['11/01/2025', '2025-13-01', '2025-1-1'])
    def test_invalid_date(self, value):
        result = validate_row(make_csv_row(available_from=value), 2)

        assert result.error == f"Invalid date for available_from: '{value}' (expected YYYY-MM-DD)"

    def test_invalid_status(self):
        assert validate_row(make_csv_row(unit_status='vacant'), 2).error == "Invalid unit_status: 'vacant'"

    def test_status_defaults_to_available(self):
        assert validate_row(make_csv_row(), 2).data.unit_status == 'available'


class TestBuildDrafts:

    @pytest.fixture
    def service(self):
        return ListingCSVImportService(orchestrator=MagicMock())

    def _rows(self, *overrides):
        return [validate_row(make_csv_row(**o), i + 2).data for i, o in enumerate(overrides)]

    def test_groups_by_property_then_floor_plan(self, service):
        rows = self._rows(
            {'unit_number': '101'},
            {'unit_number': '102', 'property_name': 'the madison apartments'},
            {'unit_number': '201', 'floor_plan_name': 'B2', 'beds': '2', 'baths': '2',
             'market_rent': '2200', 'starting_at': '2000', 'sqft': '1100'},
            {'unit_number': 'S1', 'property_name': 'The Oaks', 'street_address': '', 'city': ''},
        )

        drafts = service.build_drafts(rows)

        assert [d.name for d in drafts] == ['The Madison Apartments', 'The Oaks']
        madison = drafts[0]
        assert [fp.name for fp in madison.floor_plans] == ['A1', 'B2']
        assert [u.unit_number for u in madison.floor_plans[0].units] == ['101', '102']
        assert madison.aggregate_fields['rent_min'] == 1350
        assert madison.aggregate_fields['rent_max'] == 2200
        assert madison.aggregate_fields['beds_min'] == 1
        assert madison.aggregate_fields['beds_max'] == 2
        assert madison.aggregate_fields['sqft_max'] == 1100

    def test_property_id_from_address_or_name(self, service):
        with_address, without_address = service.build_drafts(self._rows(
            {},
            {'property_name': 'The Oaks', 'street_address': '', 'city': ''},
        ))

        assert with_address.id == generate_property_id('csv', '123 Main St, Austin')
        assert without_address.id == generate_property_id('csv', 'the oaks')
        assert without_address.city == 'Austin'  # falls back to market

    def test_first_non_empty_detail_wins(self, service):
        draft = service.build_drafts(self._rows(
            {'phone': ''},
            {'unit_number': '102', 'phone': '512-555-0100'},
            {'unit_number': '103', 'phone': '512-555-9999'},
        ))[0]

        assert draft.fields['phone'] == '512-555-0100'

    def test_floor_plan_rent_and_concession(self, service):
        draft = service.build_drafts(self._rows(
            {'market_rent': '1500', 'starting_at': '1350'},
            {'unit_number': '102', 'market_rent': '1600', 'starting_at': '1300',
             'has_concession': 'true', 'concession_type': 'free_weeks', 'concession_value': '2 weeks free'},
        ))[0]

        fields = draft.floor_plans[0].fields
        assert fields['market_rent'] == 1600
        assert fields['starting_at'] == 1300
        assert fields['has_concession'] is True
        assert fields['concession_type'] == 'free_weeks'

    def test_unit_fields(self, service):
        draft = service.build_drafts(self._rows(
            {'unit_status': 'leased', 'unit_rent': '1450', 'floor': '3', 'unit_notes': 'Corner'},
        ))[0]

        unit = draft.floor_plans[0].units[0]
        assert unit.row_number == 2
        assert unit.fields['status'] == 'leased'
        assert unit.fields['is_available'] is False
        assert unit.fields['rent'] == 1450
        assert unit.fields['floor'] == 3
        assert unit.fields['notes'] == 'Corner'
        assert draft.floor_plans[0].fields['units_available'] == 0

    def test_coordinates_need_both_values(self, service):
        draft = service.build_drafts(self._rows({'map_lat': '30.26'}))[0]

        assert draft.latitude is None
        assert draft.longitude is None


class TestImportCSV:

    @pytest.fixture
    def orchestrator(self):
        orchestrator = MagicMock()
        orchestrator.run.side_effect = lambda drafts, policy, source, progress=None, cancel_token=None, \
            result=None: result or ImportResult()
        return orchestrator

    @pytest.fixture
    def service(self, orchestrator):
        return ListingCSVImportService(orchestrator=orchestrator)

    def test_invalid_rows_reported_and_skipped(self, service, orchestrator):
        content = csv_text([
            make_csv_row(unit_number='101'),
            make_csv_row(unit_number='102', beds='two'),
            make_csv_row(unit_number='103'),
            make_csv_row(unit_number='104', available_from='soon'),
        ])

        result = service.import_csv(content)

        assert result.errors == [
            {'row': 3, 'error': "Invalid number for beds: 'two'"},
            {'row': 5, 'error': "Invalid date for available_from: 'soon' (expected YYYY-MM-DD)"},
        ]
        drafts = orchestrator.run.call_args[0][0]
        units = [u.unit_number for fp in drafts[0].floor_plans for u in fp.units]
        assert units == ['101', '103']
        kwargs = orchestrator.run.call_args[1]
        assert kwargs['policy'] == ImportPolicy.SKIP_EXISTING
        assert kwargs['source'] == 'csv'

    def test_reports_milestones_through_completion(self, service, orchestrator):
        def run(drafts, policy, source, progress=None, cancel_token=None, result=None):
            result.success = True
            return result
        orchestrator.run.side_effect = run
        progress = Mock()

        service.import_csv(csv_text([make_csv_row()]), progress_callback=progress)

        messages = [c[0][0] for c in progress.call_args_list]
        assert messages == ['Reading CSV file...', 'Validating 1 rows...', 'Import complete!']
        assert progress.call_args_list[-1][0] == ('Import complete!', 100, 100)

    def test_no_completion_milestone_when_cancelled(self, service, orchestrator):
        def run(drafts, policy, source, progress=None, cancel_token=None, result=None):
            result.cancelled = True
            result.success = False
            return result
        orchestrator.run.side_effect = run
        progress = Mock()

        service.import_csv(csv_text([make_csv_row()]), progress_callback=progress)

        assert 'Import complete!' not in [c[0][0] for c in progress.call_args_list]

    def test_headers_case_insensitive(self, service, orchestrator):
        content = csv_text([make_csv_row()]).replace('property_name', 'Property_Name', 1)

        result = service.import_csv(content)

        assert result.errors == []
        orchestrator.run.assert_called_once()

    def test_missing_headers_fatal(self, service, orchestrator):
        content = 'property_name,market\nThe Madison,Austin\n'

        result = service.import_csv(content)

        assert result.success is False
        assert result.errors[0]['error'].startswith('Missing required columns: floor_plan_name, beds')
        orchestrator.run.assert_not_called()

    def test_empty_file_fatal(self, service, orchestrator):
        result = service.import_csv('  \n\n')

        assert result.errors == [{'error': 'CSV file is empty'}]
        orchestrator.run.assert_not_called()

    def test_header_only_fatal(self, service):
        result = service.import_csv(','.join(REQUIRED_HEADERS) + '\n')

        assert result.errors == [{'error': 'No data rows found in CSV'}]

    def test_short_rows_padded(self, service):
        content = ','.join(REQUIRED_HEADERS) + ',city\n' + 'The Madison,Austin,A1,1,1,1500,1350,101,2025-11-01\n'

        result = service.import_csv(content)

        assert result.errors == []


class TestImportFile:

    @pytest.fixture
    def service(self):
        orchestrator = MagicMock()
        orchestrator.run.side_effect = lambda drafts, policy, source, progress=None, cancel_token=None, \
            result=None: result or ImportResult()
        return ListingCSVImportService(orchestrator=orchestrator)

    def test_requires_file(self, service):
        assert service.import_file(None).errors == [{'error': 'Please select a CSV file'}]

    def test_rejects_non_csv(self, service):
        upload = FileStorage(stream=io.BytesIO(b'x'), filename='listings.xlsx')

        assert service.import_file(upload).errors == [{'error': 'Please upload a CSV file'}]

    def test_decodes_utf8_with_bom(self, service):
        body = ('\ufeff' + csv_text([make_csv_row(property_name='Café Lofts')])).encode('utf-8')
        upload = FileStorage(stream=io.BytesIO(body), filename='LISTINGS.CSV')

        result = service.import_file(upload)

        assert result.errors == []
        drafts = service.orchestrator.run.call_args[0][0]
        assert drafts[0].name == 'Café Lofts'


class TestTemplate:

    def test_template_has_headers_and_examples(self):
        rows = list(csv.reader(io.StringIO(generate_csv_template())))

        assert rows[0] == list(TEMPLATE_HEADERS)
        assert len(rows) == 4
        assert set(REQUIRED_HEADERS) <= set(rows[0])

    def test_example_rows_are_valid(self):
        rows = list(csv.DictReader(io.StringIO(generate_csv_template())))

        for index, row in enumerate(rows, start=2):
            assert validate_row(row, index).is_success, row

    def test_example_cells_quoted(self):
        lines = generate_csv_template().splitlines()

        assert not lines[0].startswith('"')
        assert lines[1].startswith('"The Madison Apartments"')
