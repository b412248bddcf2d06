"""
ListingImportOrchestrator - persists PropertyDrafts with partial-failure tolerance

Both source adapters hand their drafts to run(). Each draft moves through
resolve -> geocode (new properties only) -> persist property -> persist
floor plans -> persist units. A failure is caught at the smallest scope it
affects (property group, floor plan, unit batch), recorded on the
ImportResult, and the run continues with a rolled-back session.
"""

from typing import Iterable, List, Optional, Union

from logging_config import get_logger
from services.dedup_resolver import DedupResolver
from services.enums import ImportPolicy
from services.listing_import_types import (
    CancellationToken, FloorPlanDraft, ImportResult, ProgressCallback,
    ProgressReporter, PropertyDraft
)

logger = get_logger(__name__)


class ListingImportOrchestrator:
    """Sequential batch persistence of property drafts"""

    def __init__(self, property_repository, floor_plan_repository, unit_repository,
                 geocode_resolver=None):
        self.property_repository = property_repository
        self.floor_plan_repository = floor_plan_repository
        self.unit_repository = unit_repository
        self.geocode_resolver = geocode_resolver

    def run(self, drafts: Iterable[PropertyDraft], policy: ImportPolicy, source: str,
            progress: Union[ProgressReporter, ProgressCallback, None] = None,
            cancel_token: Optional[CancellationToken] = None,
            result: Optional[ImportResult] = None) -> ImportResult:
        """
        Persist drafts in order.

        Args:
            drafts: Property drafts from a source adapter
            policy: How existing properties are treated
            source: Provenance tag for created properties
            progress: ProgressReporter or bare (message, current, total) callable
            cancel_token: Checked before each property group
            result: Existing result to accumulate into (adapters pass their
                row errors in)

        Returns:
            ImportResult for the run
        """
        result = result or ImportResult()
        reporter = progress if isinstance(progress, ProgressReporter) else ProgressReporter(progress)
        drafts = list(drafts)
        total = len(drafts)

        resolver = DedupResolver.from_repositories(
            self.property_repository, self.floor_plan_repository, self.unit_repository
        )
        geocode_total = self._count_geocode_candidates(drafts, resolver)
        geocode_index = 0

        logger.info("Starting listing import", source=source, policy=policy.value,
                    properties=total, geocode_candidates=geocode_total)

        for index, draft in enumerate(drafts, start=1):
            if cancel_token is not None and cancel_token.is_cancelled:
                result.cancelled = True
                result.add_error(f"Import cancelled after {index - 1} of {total} properties")
                logger.warning("Listing import cancelled", source=source, processed=index - 1, total=total)
                break

            reporter.report(f"Saving property {index} of {total}", index, total)

            existing = resolver.resolve_property(draft)

            geocoded = None
            if existing is None and self._needs_geocoding(draft):
                geocode_index += 1
                reporter.report(f"Geocoding address {geocode_index} of {geocode_total}",
                                geocode_index, geocode_total)
                geocoded = self._geocode(draft)

            try:
                prop = self._persist_property(draft, existing, policy, source, resolver, result)
            except Exception as e:
                self.property_repository.rollback()
                logger.error("Failed to save property", property=draft.label, error=str(e))
                result.add_error(str(e), property=draft.label)
                continue

            # Counted only once the property row exists
            if geocoded is True:
                result.geocoded += 1
            elif geocoded is False:
                result.geocode_failed += 1

            for floor_plan_draft in draft.floor_plans:
                self._persist_floor_plan(prop.id, draft.label, floor_plan_draft, resolver, result)

        result.success = not result.cancelled
        logger.info("Listing import finished", source=source,
                    created=result.properties_created,
                    updated=result.properties_updated,
                    skipped=result.properties_skipped,
                    units_created=result.units_created,
                    units_skipped=result.units_skipped,
                    cancelled=result.cancelled,
                    error_count=len(result.errors))
        return result

    # Geocoding

    def _needs_geocoding(self, draft: PropertyDraft) -> bool:
        """Only new drafts with a street address and no coordinates are looked up"""
        if self.geocode_resolver is None or draft.has_coordinates:
            return False
        return bool((draft.street_address or '').strip())

    def _count_geocode_candidates(self, drafts: List[PropertyDraft], resolver: DedupResolver) -> int:
        if self.geocode_resolver is None:
            return 0
        return sum(1 for d in drafts if self._needs_geocoding(d) and resolver.resolve_property(d) is None)

    def _geocode(self, draft: PropertyDraft) -> bool:
        coordinates = self.geocode_resolver.resolve(
            draft.street_address, draft.city, draft.state, draft.zip_code
        )
        if coordinates:
            draft.latitude = coordinates['lat']
            draft.longitude = coordinates['lng']
            return True
        # Soft failure: the property is still created without coordinates
        return False

    # Properties

    def _persist_property(self, draft: PropertyDraft, existing, policy: ImportPolicy, source: str,
                          resolver: DedupResolver, result: ImportResult):
        if existing is None:
            values = draft.create_kwargs()
            values['import_source'] = source
            prop = self.property_repository.create(**values)
            self.property_repository.commit()
            resolver.remember_property(prop)
            result.properties_created += 1
            return prop

        if policy == ImportPolicy.SKIP_EXISTING:
            result.properties_skipped += 1
            return existing

        updates = dict(draft.aggregate_fields)
        if not existing.has_valid_coordinates() and draft.has_coordinates:
            updates.update(latitude=draft.latitude, longitude=draft.longitude)
        prop = self.property_repository.update(existing, **updates)
        self.property_repository.commit()
        result.properties_updated += 1
        return prop

    # Floor plans and units

    def _persist_floor_plan(self, property_id: str, label: str, draft: FloorPlanDraft,
                            resolver: DedupResolver, result: ImportResult) -> None:
        floor_plan = resolver.find_floor_plan(property_id, draft.name)

        if floor_plan is None:
            try:
                floor_plan = self.floor_plan_repository.create(
                    property_id=property_id, name=draft.name, **draft.fields
                )
                self.floor_plan_repository.commit()
            except Exception as e:
                self.floor_plan_repository.rollback()
                logger.error("Failed to save floor plan", property=label,
                             floor_plan=draft.name, error=str(e))
                result.add_error(str(e), property=label, floor_plan=draft.name)
                return
            resolver.remember_floor_plan(floor_plan)
            result.floor_plans_created += 1
            created_floor_plan = True
        else:
            created_floor_plan = False

        batch = []
        batch_numbers = set()
        for unit in draft.units:
            if resolver.is_duplicate_unit(property_id, unit.unit_number) or unit.unit_number in batch_numbers:
                result.units_skipped += 1
                continue
            batch_numbers.add(unit.unit_number)
            batch.append(unit)

        if not batch:
            return

        rows = []
        for unit in batch:
            values = dict(unit.fields)
            values.update(
                property_id=property_id,
                floor_plan_id=floor_plan.id,
                unit_number=unit.unit_number,
            )
            rows.append(values)

        try:
            self.unit_repository.create_many(rows)
            if not created_floor_plan:
                added_available = sum(1 for unit in batch if unit.is_available)
                floor_plan.units_available = (floor_plan.units_available or 0) + added_available
            self.unit_repository.commit()
        except Exception as e:
            self.unit_repository.rollback()
            logger.error("Failed to save units", property=label, floor_plan=draft.name,
                         units=len(rows), error=str(e))
            result.add_error(f"Failed to save {len(rows)} units: {e}",
                             property=label, floor_plan=draft.name)
            return

        for unit in batch:
            resolver.remember_unit(property_id, unit.unit_number)
        result.units_created += len(batch)
