"""
RentCast API Client

Handles all direct API communication with RentCast, including:
- Authentication (X-Api-Key header)
- Rate limiting / server error retries
- Timeouts
"""

import time
from typing import Dict, Any, List, Optional, Tuple, Callable
import requests
from flask import current_app

from logging_config import get_logger, performance_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.rentcast.io/v1"
RENTAL_LISTINGS_ENDPOINT = "listings/rental/long-term"
MAX_PAGE_LIMIT = 500


class RentCastAPIError(Exception):
    """Raised when a RentCast request fails after retries"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RentCastAPIClient:
    """Client for the RentCast listings API"""

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 timeout: Optional[Tuple[float, float]] = None, max_retries: int = 3,
                 retry_delay: float = 1, sleep: Callable[[float], None] = time.sleep):
        """
        Initialize RentCast API client.

        Args:
            api_key: RentCast API key (will use from config if not provided)
            base_url: Base URL for RentCast API
            timeout: (connect, read) timeout in seconds
            max_retries: Retries for 429 and 5xx responses
            retry_delay: Initial backoff delay in seconds
        """
        self.api_key = api_key or current_app.config.get('RENTCAST_API_KEY')
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip('/')
        self.timeout = timeout or (5, 30)  # Connection timeout, read timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep

        if not self.api_key:
            raise ValueError("RentCast API key not configured")

    @classmethod
    def from_config(cls, config) -> 'RentCastAPIClient':
        return cls(
            api_key=config.get('RENTCAST_API_KEY'),
            base_url=config.get('RENTCAST_BASE_URL'),
            timeout=(config.get('HTTP_CONNECT_TIMEOUT', 5), config.get('HTTP_READ_TIMEOUT', 30)),
        )

    def _backoff(self, retry_count: int) -> None:
        delay = self.retry_delay * (2 ** retry_count)
        logger.warning("Retrying RentCast request", retry_count=retry_count, delay=delay)
        self._sleep(delay)

    def _make_request(self, endpoint: str, params: Optional[Dict] = None,
                      retry_count: int = 0) -> Any:
        """
        GET an endpoint with retry logic.

        Returns:
            Decoded JSON body

        Raises:
            RentCastAPIError: On timeouts, non-retryable errors or exhausted retries
        """
        url = f"{self.base_url}/{endpoint}"
        headers = {
            "X-Api-Key": self.api_key,
            "Accept": "application/json",
        }

        started = time.monotonic()
        try:
            response = requests.request(
                method='GET',
                url=url,
                headers=headers,
                params=params,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.error("RentCast request timeout", endpoint=endpoint, error=str(e))
            raise RentCastAPIError(f"RentCast request timed out: {str(e)}")
        except requests.exceptions.RequestException as e:
            logger.error("RentCast request failed", endpoint=endpoint, error=str(e))
            raise RentCastAPIError(f"RentCast request failed: {str(e)}")

        performance_logger.log_api_call(
            'rentcast', endpoint, (time.monotonic() - started) * 1000, response.status_code
        )

        status = response.status_code
        if status == 429 or status >= 500:
            if retry_count < self.max_retries:
                self._backoff(retry_count)
                return self._make_request(endpoint, params, retry_count + 1)
            raise RentCastAPIError(
                f"RentCast API error {status} after {self.max_retries} retries", status_code=status
            )

        if status >= 400:
            raise RentCastAPIError(
                f"RentCast API error {status}: {response.text[:200]}", status_code=status
            )

        try:
            return response.json()
        except ValueError as e:
            raise RentCastAPIError(f"Invalid JSON from RentCast: {str(e)}", status_code=status)

    def get_rental_listings(self, city: str, state: str, status: str = 'Active',
                            property_type: Optional[str] = None, limit: int = MAX_PAGE_LIMIT,
                            offset: int = 0) -> List[Dict[str, Any]]:
        """
        Fetch one page of long-term rental listings.

        Args:
            city: City name
            state: Two-letter state code
            status: Listing status filter
            property_type: e.g. 'Apartment'
            limit: Page size (API max 500)
            offset: Records to skip

        Returns:
            List of listing objects (the API returns either a bare array or
            an object with a 'listings' key)
        """
        params = {
            'city': city,
            'state': state,
            'status': status,
            'limit': min(limit, MAX_PAGE_LIMIT),
            'offset': offset,
        }
        if property_type:
            params['propertyType'] = property_type

        logger.info("Fetching RentCast listings", city=city, state=state, offset=offset, limit=limit)

        body = self._make_request(RENTAL_LISTINGS_ENDPOINT, params=params)

        if isinstance(body, list):
            return body
        if isinstance(body, dict):
            return body.get('listings') or []
        raise RentCastAPIError("Unexpected RentCast response shape")
