"""
Geocoding for listing properties

MapboxGeocoder turns a street address into coordinates via the Mapbox
Geocoding v5 places endpoint. GeocodeResolver wraps any geocoder with the
minimum delay between calls and keeps success/failure counts for one run.
"""

import time
from typing import Callable, Dict, Optional
from urllib.parse import quote

import requests

from logging_config import get_logger, performance_logger

logger = get_logger(__name__)

MAPBOX_GEOCODING_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places"


class MapboxGeocoder:
    """Address -> {'lat', 'lng'} using Mapbox"""

    def __init__(self, access_token: str, timeout=(5, 30), base_url: str = MAPBOX_GEOCODING_URL):
        if not access_token:
            raise ValueError("Mapbox access token not configured")
        self.access_token = access_token
        self.timeout = timeout
        self.base_url = base_url.rstrip('/')

    @classmethod
    def from_config(cls, config) -> Optional['MapboxGeocoder']:
        """None when no token is configured (geocoding is then skipped)"""
        token = config.get('MAPBOX_ACCESS_TOKEN')
        if not token:
            return None
        return cls(
            token,
            timeout=(config.get('HTTP_CONNECT_TIMEOUT', 5), config.get('HTTP_READ_TIMEOUT', 30)),
        )

    @staticmethod
    def build_query(street: Optional[str], city: Optional[str], state: Optional[str],
                    zip_code: Optional[str]) -> str:
        parts = [p.strip() for p in (street, city, state, zip_code) if p and p.strip()]
        return ', '.join(parts)

    def geocode(self, street: Optional[str], city: Optional[str] = None,
                state: Optional[str] = None, zip_code: Optional[str] = None) -> Optional[Dict[str, float]]:
        """Returns None on no match, HTTP error or timeout."""
        query = self.build_query(street, city, state, zip_code)
        if not query:
            return None

        url = f"{self.base_url}/{quote(query)}.json"
        started = time.monotonic()
        try:
            response = requests.get(
                url,
                params={'access_token': self.access_token, 'limit': 1},
                timeout=self.timeout,
            )
            performance_logger.log_api_call(
                'mapbox', 'geocoding', (time.monotonic() - started) * 1000, response.status_code
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout:
            logger.warning("Geocoding timed out", address=query)
            return None
        except requests.exceptions.RequestException as e:
            logger.warning("Geocoding request failed", address=query, error=str(e))
            return None
        except ValueError as e:
            logger.warning("Geocoding returned invalid JSON", address=query, error=str(e))
            return None

        features = data.get('features') or []
        if not features:
            logger.info("No geocoding match", address=query)
            return None

        center = features[0].get('center') or []
        if len(center) < 2:
            return None

        # Mapbox returns [longitude, latitude]
        lng, lat = center[0], center[1]
        return {'lat': float(lat), 'lng': float(lng)}


class GeocodeResolver:
    """Rate-limited geocoding for one import run"""

    def __init__(self, geocoder, delay_seconds: float = 0.15,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.geocoder = geocoder
        self.delay_seconds = delay_seconds
        self._sleep = sleep
        self._clock = clock
        self._last_call: Optional[float] = None
        self.succeeded = 0
        self.failed = 0

    def _wait_for_slot(self) -> None:
        if self._last_call is None or self.delay_seconds <= 0:
            return
        remaining = self.delay_seconds - (self._clock() - self._last_call)
        if remaining > 0:
            self._sleep(remaining)

    def resolve(self, street: Optional[str], city: Optional[str] = None,
                state: Optional[str] = None, zip_code: Optional[str] = None) -> Optional[Dict[str, float]]:
        self._wait_for_slot()
        try:
            coordinates = self.geocoder.geocode(street, city, state, zip_code)
        except Exception as e:
            logger.warning("Geocoder raised", street=street, city=city, error=str(e))
            coordinates = None
        finally:
            self._last_call = self._clock()

        if coordinates:
            self.succeeded += 1
        else:
            self.failed += 1
        return coordinates
