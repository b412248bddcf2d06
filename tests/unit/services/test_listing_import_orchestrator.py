"""
Tests for ListingImportOrchestrator - policies, failure containment,
cancellation and progress reporting (repositories mocked)
"""

from itertools import count
from types import SimpleNamespace
from unittest.mock import MagicMock, Mock

import pytest
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from services.enums import ImportPolicy
from services.listing_import_orchestrator import ListingImportOrchestrator
from services.listing_import_types import (
    CancellationToken, FloorPlanDraft, ImportResult, PropertyDraft, UnitDraft
)


def _unit(number, available=True):
    return UnitDraft(unit_number=number, fields={'is_available': available, 'status': 'available'})


def _draft(n, units=('101', '102'), latitude=30.0, longitude=-97.0, **kwargs):
    defaults = dict(
        id=f'csv_prop{n}_{n:010d}',
        name=f'Property {n}',
        label=f'Property {n}',
        source='csv',
        street_address=f'{n} Main St',
        city='Austin',
        state='TX',
        latitude=latitude,
        longitude=longitude,
        aggregate_fields={'rent_min': 1000, 'rent_max': 2000},
        floor_plans=[FloorPlanDraft(
            name='1BR/1BA',
            fields={'beds': 1, 'baths': 1, 'units_available': len(units)},
            units=[_unit(u) for u in units],
        )],
    )
    defaults.update(kwargs)
    return PropertyDraft(**defaults)


def _multi_plan_draft(n):
    """Three floor plans under one property, units 1xx / 2xx / 3xx"""
    return _draft(n, floor_plans=[
        FloorPlanDraft(name='1BR/1BA', fields={'beds': 1, 'baths': 1}, units=[_unit('101'), _unit('102')]),
        FloorPlanDraft(name='2BR/2BA', fields={'beds': 2, 'baths': 2}, units=[_unit('201')]),
        FloorPlanDraft(name='0BR/1BA', fields={'beds': 0, 'baths': 1}, units=[_unit('301'), _unit('302')]),
    ])


@pytest.fixture
def repositories(mock_repositories):
    property_repository, floor_plan_repository, unit_repository = mock_repositories
    ids = count(1)

    property_repository.create.side_effect = lambda **kw: SimpleNamespace(**kw)
    property_repository.update.side_effect = lambda entity, **kw: entity
    floor_plan_repository.create.side_effect = lambda **kw: SimpleNamespace(id=next(ids), **kw)
    unit_repository.create_many.side_effect = lambda rows: rows
    return property_repository, floor_plan_repository, unit_repository


@pytest.fixture
def orchestrator(repositories):
    return ListingImportOrchestrator(*repositories)


class TestPersistence:

    def test_creates_properties_floor_plans_and_units(self, orchestrator, repositories):
        property_repository, floor_plan_repository, unit_repository = repositories

        result = orchestrator.run([_draft(1), _draft(2)], ImportPolicy.SKIP_EXISTING, 'csv')

        assert result.success is True
        assert result.properties_created == 2
        assert result.floor_plans_created == 2
        assert result.units_created == 4
        assert result.errors == []
        created = property_repository.create.call_args_list[0][1]
        assert created['import_source'] == 'csv'
        assert created['id'] == 'csv_prop1_0000000001'

    def test_skip_existing_leaves_property_but_adds_new_units(self, orchestrator, repositories):
        property_repository, floor_plan_repository, unit_repository = repositories
        existing = SimpleNamespace(id='csv_prop1_0000000001', name='Property 1',
                                   street_address='1 Main St', city='Austin')
        property_repository.get_all.return_value = [existing]
        unit_repository.get_unit_keys.return_value = {(existing.id, '101')}

        result = orchestrator.run([_draft(1)], ImportPolicy.SKIP_EXISTING, 'csv')

        assert result.properties_skipped == 1
        assert result.properties_created == 0
        property_repository.update.assert_not_called()
        assert result.units_skipped == 1
        assert result.units_created == 1

    def test_merge_updates_aggregates(self, orchestrator, repositories):
        property_repository = repositories[0]
        existing = Mock(id='csv_prop1_0000000001', street_address='1 Main St', city='Austin')
        existing.name = 'Property 1'
        existing.has_valid_coordinates.return_value = True
        property_repository.get_all.return_value = [existing]

        result = orchestrator.run([_draft(1)], ImportPolicy.MERGE, 'csv')

        assert result.properties_updated == 1
        property_repository.update.assert_called_once_with(existing, rent_min=1000, rent_max=2000)

    def test_merge_fills_missing_coordinates(self, orchestrator, repositories):
        property_repository = repositories[0]
        existing = Mock(id='csv_prop1_0000000001', street_address='1 Main St', city='Austin')
        existing.name = 'Property 1'
        existing.has_valid_coordinates.return_value = False
        property_repository.get_all.return_value = [existing]

        orchestrator.run([_draft(1)], ImportPolicy.MERGE, 'csv')

        updates = property_repository.update.call_args[1]
        assert updates['latitude'] == 30.0
        assert updates['longitude'] == -97.0

    def test_existing_floor_plan_reused_and_availability_bumped(self, orchestrator, repositories):
        property_repository, floor_plan_repository, unit_repository = repositories
        existing = SimpleNamespace(id='csv_prop1_0000000001', name='Property 1',
                                   street_address='1 Main St', city='Austin')
        floor_plan = SimpleNamespace(id=77, property_id=existing.id, name='1BR/1BA', units_available=3)
        property_repository.get_all.return_value = [existing]
        floor_plan_repository.get_all.return_value = [floor_plan]

        result = orchestrator.run([_draft(1)], ImportPolicy.SKIP_EXISTING, 'csv')

        floor_plan_repository.create.assert_not_called()
        assert result.floor_plans_created == 0
        assert floor_plan.units_available == 5
        rows = unit_repository.create_many.call_args[0][0]
        assert {row['floor_plan_id'] for row in rows} == {77}

    def test_duplicate_unit_numbers_within_batch_skipped(self, orchestrator):
        result = orchestrator.run([_draft(1, units=('101', '101', '102'))], ImportPolicy.SKIP_EXISTING, 'csv')

        assert result.units_created == 2
        assert result.units_skipped == 1

    def test_second_group_resolving_to_same_property_is_deduplicated(self, orchestrator, repositories):
        property_repository = repositories[0]
        first = _draft(1, units=('101',))
        second = _draft(1, units=('101', '102'))

        result = orchestrator.run([first, second], ImportPolicy.SKIP_EXISTING, 'csv')

        assert property_repository.create.call_count == 1
        assert result.properties_created == 1
        assert result.properties_skipped == 1
        assert result.units_created == 2
        assert result.units_skipped == 1


class TestFailureContainment:

    def test_property_failure_is_isolated(self, orchestrator, repositories):
        property_repository = repositories[0]

        def create(**kw):
            if kw['name'] == 'Property 2':
                raise SQLAlchemyError('value too long')
            return SimpleNamespace(**kw)
        property_repository.create.side_effect = create

        result = orchestrator.run([_draft(1), _draft(2), _draft(3)], ImportPolicy.SKIP_EXISTING, 'csv')

        assert result.properties_created == 2
        assert result.errors == [{'property': 'Property 2', 'error': 'value too long'}]
        property_repository.rollback.assert_called()
        assert result.success is True

    def test_floor_plan_failure_keeps_property(self, orchestrator, repositories):
        floor_plan_repository = repositories[1]
        floor_plan_repository.create.side_effect = SQLAlchemyError('bad floor plan')

        result = orchestrator.run([_draft(1)], ImportPolicy.SKIP_EXISTING, 'csv')

        assert result.properties_created == 1
        assert result.floor_plans_created == 0
        assert result.units_created == 0
        assert result.errors == [{'property': 'Property 1', 'floor_plan': '1BR/1BA', 'error': 'bad floor plan'}]

    def test_unit_batch_failure_reports_count(self, orchestrator, repositories):
        unit_repository = repositories[2]
        unit_repository.create_many.side_effect = IntegrityError('INSERT', {}, Exception('unique'))

        result = orchestrator.run([_draft(1), _draft(2)], ImportPolicy.SKIP_EXISTING, 'csv')

        assert result.properties_created == 2
        assert result.floor_plans_created == 2
        assert result.units_created == 0
        assert len(result.errors) == 2
        assert result.errors[0]['error'].startswith('Failed to save 2 units:')
        assert result.errors[0]['floor_plan'] == '1BR/1BA'
        unit_repository.rollback.assert_called()

    def test_unit_batch_failure_spares_sibling_floor_plans(self, orchestrator, repositories):
        unit_repository = repositories[2]
        batches = []

        def create_many(rows):
            batches.append([row['unit_number'] for row in rows])
            if len(batches) == 1:
                raise IntegrityError('INSERT', {}, Exception('unique'))
            return rows
        unit_repository.create_many.side_effect = create_many

        result = orchestrator.run([_multi_plan_draft(1)], ImportPolicy.SKIP_EXISTING, 'csv')

        assert batches == [['101', '102'], ['201'], ['301', '302']]
        assert result.properties_created == 1
        assert result.floor_plans_created == 3
        assert result.units_created == 3
        assert len(result.errors) == 1
        assert result.errors[0]['floor_plan'] == '1BR/1BA'
        assert result.errors[0]['error'].startswith('Failed to save 2 units:')

    def test_floor_plan_failure_spares_sibling_floor_plans(self, orchestrator, repositories):
        floor_plan_repository, unit_repository = repositories[1], repositories[2]
        ids = count(1)

        def create(**kw):
            if kw['name'] == '2BR/2BA':
                raise SQLAlchemyError('bad floor plan')
            return SimpleNamespace(id=next(ids), **kw)
        floor_plan_repository.create.side_effect = create

        result = orchestrator.run([_multi_plan_draft(1)], ImportPolicy.SKIP_EXISTING, 'csv')

        assert result.floor_plans_created == 2
        assert result.units_created == 4
        assert result.errors == [{'property': 'Property 1', 'floor_plan': '2BR/2BA', 'error': 'bad floor plan'}]
        saved = [row['unit_number'] for c in unit_repository.create_many.call_args_list for row in c[0][0]]
        assert saved == ['101', '102', '301', '302']
        floor_plan_repository.rollback.assert_called_once()

    def test_accumulates_into_given_result(self, orchestrator):
        result = ImportResult()
        result.add_error('Missing required field: beds', row=3)

        returned = orchestrator.run([_draft(1)], ImportPolicy.SKIP_EXISTING, 'csv', result=result)

        assert returned is result
        assert returned.errors[0] == {'row': 3, 'error': 'Missing required field: beds'}


class TestCancellation:

    def test_cancel_stops_before_next_property(self, orchestrator):
        token = CancellationToken()
        seen = []

        def progress(message, current, total):
            seen.append(message)
            if message == 'Saving property 2 of 3':
                token.cancel()

        result = orchestrator.run([_draft(1), _draft(2), _draft(3)], ImportPolicy.SKIP_EXISTING, 'csv',
                                  progress=progress, cancel_token=token)

        assert result.cancelled is True
        assert result.success is False
        assert result.properties_created == 2
        assert result.errors[-1] == {'error': 'Import cancelled after 2 of 3 properties'}
        assert 'Saving property 3 of 3' not in seen

    def test_cancelled_before_start(self, orchestrator, repositories):
        token = CancellationToken()
        token.cancel()

        result = orchestrator.run([_draft(1)], ImportPolicy.SKIP_EXISTING, 'csv', cancel_token=token)

        assert result.cancelled is True
        assert result.properties_created == 0
        repositories[0].create.assert_not_called()


class TestProgressAndGeocoding:

    def test_reports_saving_progress(self, orchestrator):
        progress = Mock()

        orchestrator.run([_draft(1), _draft(2)], ImportPolicy.SKIP_EXISTING, 'csv', progress=progress)

        progress.assert_any_call('Saving property 1 of 2', 1, 2)
        progress.assert_any_call('Saving property 2 of 2', 2, 2)

    def test_broken_progress_callback_does_not_abort(self, orchestrator):
        result = orchestrator.run([_draft(1)], ImportPolicy.SKIP_EXISTING, 'csv',
                                  progress=Mock(side_effect=RuntimeError('socket closed')))

        assert result.properties_created == 1

    def test_geocodes_only_new_properties_without_coordinates(self, repositories):
        property_repository = repositories[0]
        existing = SimpleNamespace(id='csv_prop3_0000000003', name='Property 3',
                                   street_address='3 Main St', city='Austin')
        property_repository.get_all.return_value = [existing]
        geocode_resolver = MagicMock()
        geocode_resolver.resolve.side_effect = [{'lat': 29.4, 'lng': -98.5}, None]
        orchestrator = ListingImportOrchestrator(*repositories, geocode_resolver=geocode_resolver)
        progress = Mock()

        drafts = [
            _draft(1, latitude=None, longitude=None),
            _draft(2, latitude=None, longitude=None),
            _draft(3, latitude=None, longitude=None),   # exists already
            _draft(4),                                  # has coordinates
        ]
        result = orchestrator.run(drafts, ImportPolicy.SKIP_EXISTING, 'csv', progress=progress)

        assert geocode_resolver.resolve.call_count == 2
        assert result.geocoded == 1
        assert result.geocode_failed == 1
        progress.assert_any_call('Geocoding address 1 of 2', 1, 2)
        progress.assert_any_call('Geocoding address 2 of 2', 2, 2)
        first_created = property_repository.create.call_args_list[0][1]
        assert (first_created['latitude'], first_created['longitude']) == (29.4, -98.5)
        second_created = property_repository.create.call_args_list[1][1]
        assert second_created['latitude'] is None

    def test_draft_without_street_is_not_geocoded(self, repositories):
        geocode_resolver = MagicMock()
        geocode_resolver.resolve.return_value = {'lat': 32.77, 'lng': -96.79}
        orchestrator = ListingImportOrchestrator(*repositories, geocode_resolver=geocode_resolver)
        progress = Mock()

        drafts = [
            _draft(1, latitude=None, longitude=None, street_address=None, city='Dallas'),
            _draft(2, latitude=None, longitude=None),
        ]
        result = orchestrator.run(drafts, ImportPolicy.SKIP_EXISTING, 'csv', progress=progress)

        geocode_resolver.resolve.assert_called_once_with('2 Main St', 'Austin', 'TX', None)
        assert result.geocoded == 1
        assert result.geocode_failed == 0
        assert result.properties_created == 2
        progress.assert_any_call('Geocoding address 1 of 1', 1, 1)
        streetless = repositories[0].create.call_args_list[0][1]
        assert streetless['latitude'] is None and streetless['longitude'] is None

    def test_failed_property_is_not_counted_as_geocoded(self, repositories):
        property_repository = repositories[0]
        property_repository.create.side_effect = SQLAlchemyError('value too long')
        geocode_resolver = MagicMock()
        geocode_resolver.resolve.return_value = {'lat': 29.4, 'lng': -98.5}
        orchestrator = ListingImportOrchestrator(*repositories, geocode_resolver=geocode_resolver)

        result = orchestrator.run([_draft(1, latitude=None, longitude=None)], ImportPolicy.SKIP_EXISTING, 'csv')

        assert geocode_resolver.resolve.call_count == 1
        assert result.geocoded == 0
        assert result.geocode_failed == 0
        assert result.errors == [{'property': 'Property 1', 'error': 'value too long'}]

    def test_without_geocoder_nothing_is_geocoded(self, orchestrator):
        result = orchestrator.run([_draft(1, latitude=None, longitude=None)], ImportPolicy.SKIP_EXISTING, 'csv')

        assert result.geocoded == 0
        assert result.geocode_failed == 0
        assert result.properties_created == 1
