"""
RentCastSyncService - full-refresh import of a market from the RentCast API

Fetch every page -> delete prior rentcast-owned properties -> group by
address -> aggregate -> hand drafts to the orchestrator.
"""

from typing import List, Optional

from logging_config import get_logger
from services.common.result import Result
from services.enums import ImportPolicy, ImportSource
from services.listing_grouping import group_listings, build_property_draft
from services.listing_import_orchestrator import ListingImportOrchestrator
from services.listing_import_types import (
    CancellationToken, ImportResult, ProgressCallback, ProgressReporter, RawListingRecord
)
from services.rentcast_api_client import MAX_PAGE_LIMIT, RentCastAPIClient, RentCastAPIError

logger = get_logger(__name__)

DEFAULT_PAGE_LIMIT = MAX_PAGE_LIMIT
DEFAULT_SAFETY_CAP = 2000


class RentCastSyncService:
    """Replace-existing sync of one market's rental listings"""

    def __init__(self, api_client: RentCastAPIClient, property_repository,
                 orchestrator: ListingImportOrchestrator,
                 page_limit: int = DEFAULT_PAGE_LIMIT, safety_cap: int = DEFAULT_SAFETY_CAP,
                 default_city: str = 'San Antonio', default_state: str = 'TX',
                 default_property_type: Optional[str] = 'Apartment'):
        self.api_client = api_client
        self.property_repository = property_repository
        self.orchestrator = orchestrator
        # Larger pages are capped by the API, so paging must use the capped size
        self.page_limit = max(1, min(page_limit, MAX_PAGE_LIMIT))
        self.safety_cap = safety_cap
        self.default_city = default_city
        self.default_state = default_state
        self.default_property_type = default_property_type

    def fetch_all_listings(self, city: str, state: str, property_type: Optional[str] = None,
                           progress: Optional[ProgressReporter] = None) -> Result[List[RawListingRecord]]:
        """
        Page through the listings endpoint until a short page, an empty page
        or the safety cap.

        A failure on the first page is fatal. A failure on a later page
        stops paging and keeps what was already fetched.
        """
        progress = progress or ProgressReporter()
        listings: List[dict] = []
        offset = 0

        while True:
            try:
                page = self.api_client.get_rental_listings(
                    city=city, state=state, property_type=property_type,
                    limit=self.page_limit, offset=offset,
                )
            except RentCastAPIError as e:
                if offset == 0:
                    logger.error("RentCast fetch failed", city=city, state=state, error=str(e))
                    return Result.failure(f"RentCast API error: {e}", code="API_ERROR")
                logger.warning("RentCast pagination stopped early", offset=offset,
                               fetched=len(listings), error=str(e))
                break

            if not page:
                break

            listings.extend(page)
            progress.report(f"Fetched {len(listings)} listings...", 20, 100)

            if len(page) < self.page_limit:
                break
            if len(listings) >= self.safety_cap:
                logger.warning("RentCast safety cap reached", cap=self.safety_cap, fetched=len(listings))
                break

            offset += self.page_limit

        if not listings:
            return Result.failure(f"No listings found for {city}, {state}", code="NO_LISTINGS")

        records = [RawListingRecord.from_api(listing) for listing in listings[:self.safety_cap]]
        logger.info("RentCast listings fetched", city=city, state=state, count=len(records))
        return Result.success(records, metadata={'pages': offset // self.page_limit + 1})

    def sync_market(self, city: Optional[str] = None, state: Optional[str] = None,
                    property_type: Optional[str] = None,
                    progress_callback: Optional[ProgressCallback] = None,
                    cancel_token: Optional[CancellationToken] = None) -> ImportResult:
        """
        Replace every rentcast-owned property in storage with a fresh pull.

        Returns:
            ImportResult (success False with a single error on fatal failures)
        """
        city = city or self.default_city
        state = state or self.default_state
        property_type = property_type or self.default_property_type
        progress = ProgressReporter(progress_callback)

        progress.report('Connecting to RentCast API...', 0, 100)
        progress.report(f'Fetching {city} listings...', 10, 100)

        fetched = self.fetch_all_listings(city, state, property_type, progress)
        if fetched.is_failure:
            return ImportResult.fatal(fetched.error)

        records = fetched.data
        progress.report(f'Processing {len(records)} listings...', 30, 100)

        if cancel_token is not None and cancel_token.is_cancelled:
            result = ImportResult.fatal('Import cancelled before any properties were saved')
            result.cancelled = True
            return result

        result = ImportResult()
        progress.report('Removing previously synced properties...', 35, 100)
        try:
            result.deleted_existing = self.property_repository.delete_by_source(ImportSource.RENTCAST.value)
        except Exception as e:
            logger.error("Failed to delete existing rentcast properties", error=str(e))
            return ImportResult.fatal(f"Failed to remove existing listings: {e}")

        progress.report('Grouping by property...', 40, 100)
        groups = group_listings(records)
        drafts = [build_property_draft(group, ImportSource.RENTCAST.value) for group in groups.values()]

        logger.info("Grouped RentCast listings", listings=len(records), properties=len(drafts))

        result = self.orchestrator.run(
            drafts,
            policy=ImportPolicy.REPLACE_EXISTING,
            source=ImportSource.RENTCAST.value,
            progress=progress,
            cancel_token=cancel_token,
            result=result,
        )

        if result.success:
            progress.report('Sync complete!', 100, 100)
        return result
