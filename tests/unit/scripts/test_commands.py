"""
Tests for the listing import CLI commands
"""

from unittest.mock import MagicMock, patch

import pytest

from services.listing_csv_import_service import TEMPLATE_HEADERS
from services.listing_import_types import ImportResult
from tests.fixtures.listing_fixtures import csv_text, make_csv_row


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture(autouse=True)
def no_signal_handlers():
    """Commands install a SIGINT handler; keep the test process's own"""
    with patch('scripts.commands.signal.signal') as mock_signal:
        yield mock_signal


class TestSyncRentCastCommand:

    def test_prints_summary(self, app, runner):
        service = MagicMock()
        service.sync_market.return_value = ImportResult(success=True, properties_created=3, units_created=9)

        with patch.object(app.services, 'get', return_value=service):
            outcome = runner.invoke(args=['sync-rentcast', '--city', 'Austin', '--state', 'TX'])

        assert outcome.exit_code == 0
        assert 'Properties: 3 created, 0 updated, 0 skipped' in outcome.output
        assert 'Units: 9 created, 0 skipped' in outcome.output
        kwargs = service.sync_market.call_args[1]
        assert (kwargs['city'], kwargs['state']) == ('Austin', 'TX')
        assert kwargs['cancel_token'] is not None

    def test_failure_exits_nonzero(self, app, runner):
        service = MagicMock()
        service.sync_market.return_value = ImportResult.fatal('RentCast API error: 401')

        with patch.object(app.services, 'get', return_value=service):
            outcome = runner.invoke(args=['sync-rentcast'])

        assert outcome.exit_code == 1
        assert 'RentCast API error: 401' in outcome.output

    def test_interrupt_handler_cancels(self, app, runner, no_signal_handlers):
        service = MagicMock()
        service.sync_market.return_value = ImportResult(success=True)

        with patch.object(app.services, 'get', return_value=service):
            runner.invoke(args=['sync-rentcast'])

        handler = no_signal_handlers.call_args[0][1]
        token = service.sync_market.call_args[1]['cancel_token']
        handler(2, None)
        assert token.is_cancelled


class TestImportListingsCSVCommand:

    def test_imports_file(self, app, runner, tmp_path):
        path = tmp_path / 'listings.csv'
        path.write_text(csv_text([make_csv_row()]), encoding='utf-8')
        service = MagicMock()
        service.import_csv.return_value = ImportResult(success=True, properties_created=1)

        with patch.object(app.services, 'get', return_value=service):
            outcome = runner.invoke(args=['import-listings-csv', str(path)])

        assert outcome.exit_code == 0
        assert service.import_csv.call_args[0][0].startswith('property_name,market')

    def test_row_errors_are_listed(self, app, runner, tmp_path):
        path = tmp_path / 'listings.csv'
        path.write_text('x', encoding='utf-8')
        result = ImportResult(success=True)
        result.add_error("Invalid number for beds: 'two'", row=3)
        service = MagicMock()
        service.import_csv.return_value = result

        with patch.object(app.services, 'get', return_value=service):
            outcome = runner.invoke(args=['import-listings-csv', str(path)])

        assert outcome.exit_code == 0
        assert "row=3: Invalid number for beds: 'two'" in outcome.output


class TestTemplateCommand:

    def test_prints_template(self, runner):
        outcome = runner.invoke(args=['listings-csv-template'])

        assert outcome.exit_code == 0
        assert outcome.output.splitlines()[0] == ','.join(TEMPLATE_HEADERS)

    def test_writes_template_file(self, runner, tmp_path):
        path = tmp_path / 'template.csv'

        outcome = runner.invoke(args=['listings-csv-template', str(path)])

        assert outcome.exit_code == 0
        assert path.read_text(encoding='utf-8').startswith('property_name,market,city')
