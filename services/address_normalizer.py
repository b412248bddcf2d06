"""
Address normalization for listing ingestion.

Listing feeds publish one record per rentable unit, so the same building
shows up as "100 Main St Unit 4" and "100 Main St #7". Normalization strips
the unit designator so both collapse to one grouping key; extraction pulls
the unit token back out so it can become the Unit's number.

Normalization is intentionally lossy and is only ever used as a grouping
key, never persisted as-is.
"""

import re
from typing import Optional

# Recognised unit designators. '#' is handled separately because it has no
# word boundary.
UNIT_DESIGNATORS = ('Apartment', 'Apt', 'Unit', 'Suite', 'Ste', '#')

_WORD_DESIGNATORS = '|'.join(d for d in UNIT_DESIGNATORS if d != '#')
_UNIT_TOKEN = r'[A-Za-z0-9]+(?:-[A-Za-z0-9]+)?'

# Designator optionally followed by its token: used for stripping
UNIT_DESIGNATOR_PATTERN = re.compile(
    rf'(?:\b(?:{_WORD_DESIGNATORS})\b\.?|#)\s*(?:{_UNIT_TOKEN})?',
    re.IGNORECASE,
)

# Designator followed by a token: used for extraction
UNIT_NUMBER_PATTERN = re.compile(
    rf'(?:\b(?:{_WORD_DESIGNATORS})\b\.?|#)\s*({_UNIT_TOKEN})',
    re.IGNORECASE,
)

# Leading designator(s) on a secondary address line ("Apt 4B", "Unit #12")
_SECONDARY_PREFIX_PATTERN = re.compile(
    rf'^(?:\s*(?:\b(?:{_WORD_DESIGNATORS})\b\.?|#))+\s*',
    re.IGNORECASE,
)

_WHITESPACE = re.compile(r'\s+')
_COMMA_SPACING = re.compile(r'\s*,\s*')
_REPEATED_COMMAS = re.compile(r'(?:,\s*){2,}')


def normalize_address(address: Optional[str]) -> str:
    """Strip unit designators and tidy separators.

    >>> normalize_address('100 Main St Unit 4, Austin, TX')
    '100 Main St, Austin, TX'
    >>> normalize_address('100 Main St #7, Austin, TX')
    '100 Main St, Austin, TX'
    """
    if not address:
        return ''

    text = UNIT_DESIGNATOR_PATTERN.sub(' ', address)
    text = _WHITESPACE.sub(' ', text)
    text = _COMMA_SPACING.sub(', ', text)
    text = _REPEATED_COMMAS.sub(', ', text)
    return text.strip(' ,')


def extract_unit(address: Optional[str], address_line2: Optional[str] = None) -> Optional[str]:
    """Find the unit number for a listing.

    An explicit secondary line wins (designator prefix removed); otherwise
    the full address is searched for a designator followed by a token.
    Returns None when neither source carries a unit.
    """
    if address_line2 and address_line2.strip():
        unit = _SECONDARY_PREFIX_PATTERN.sub('', address_line2.strip()).strip(' ,')
        if unit:
            return unit

    if address:
        match = UNIT_NUMBER_PATTERN.search(address)
        if match:
            return match.group(1)

    return None


def street_portion(address: Optional[str]) -> str:
    """First comma-separated segment of the normalized address."""
    normalized = normalize_address(address)
    return normalized.split(',')[0].strip() if normalized else ''


def property_key(name: Optional[str]) -> str:
    """Case/whitespace-insensitive key for matching property names."""
    if not name:
        return ''
    return _WHITESPACE.sub(' ', name).strip().lower()
