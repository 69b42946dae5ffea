"""
HTTP client for reverse geocoding.

Coordinate lookup against the BigDataCloud client endpoint. There is no
IP-based fallback: the server's own address says nothing about where
the user is, so a failed lookup means no device location.
"""

import logging
from typing import Optional

import httpx

from crisis_core.config import get_settings
from crisis_core.safety.models import LocationInfo

logger = logging.getLogger(__name__)


class GeocodingError(Exception):
    """Raised when the reverse geocoding provider failed."""
    pass


class ReverseGeocoder:
    """
    Resolves coordinates to a LocationInfo.

    Usage:
        geocoder = ReverseGeocoder()
        location = await geocoder.reverse(41.4993, -81.6944)
        print(location.city)  # "Cleveland"
    """

    def __init__(
        self,
        reverse_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client.

        Args:
            reverse_url: Coordinate lookup endpoint (defaults to settings)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        settings = get_settings()
        self.reverse_url = reverse_url or settings.reverse_geocode_url
        self.timeout = timeout or settings.geolocation_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def reverse(self, latitude: float, longitude: float) -> LocationInfo:
        """Resolve coordinates to a place.

        Args:
            latitude: Device latitude
            longitude: Device longitude

        Returns:
            LocationInfo (may be insufficient if the provider returns no place)

        Raises:
            GeocodingError: If the provider is unreachable or answers badly
        """
        try:
            return await self._reverse_coordinates(latitude, longitude)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Reverse geocoding failed: {e}")
            raise GeocodingError("Reverse geocoding provider failed") from e

    async def _reverse_coordinates(self, latitude: float, longitude: float) -> LocationInfo:
        client = await self._get_client()
        response = await client.get(
            self.reverse_url,
            params={
                "latitude": latitude,
                "longitude": longitude,
                "localityLanguage": "en",
            },
        )
        response.raise_for_status()

        data = response.json()
        return LocationInfo(
            city=data.get("city") or data.get("locality") or None,
            region=data.get("principalSubdivision") or None,
            country=data.get("countryName") or None,
            lat=latitude,
            lon=longitude,
        )
