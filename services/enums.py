"""
Service layer enums
Shared by the import services without importing database models
"""

from enum import Enum


class ImportPolicy(str, Enum):
    """How an import treats properties that already exist"""
    MERGE = 'merge'                         # refresh aggregates of matched properties
    SKIP_EXISTING = 'skip_existing'         # leave matched properties untouched (CSV)
    REPLACE_EXISTING = 'replace_existing'   # caller wiped its own provenance first (API sync)


class ImportSource(str, Enum):
    """Provenance tag written to Property.import_source"""
    RENTCAST = 'rentcast'
    CSV = 'csv'
    MANUAL = 'manual'


class UnitStatus(str, Enum):
    """Unit availability states"""
    AVAILABLE = 'available'
    PENDING = 'pending'
    LEASED = 'leased'
    UNAVAILABLE = 'unavailable'
