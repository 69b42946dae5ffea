"""Location resolution from message text and device coordinates."""

import asyncio
import logging
import re
from typing import Optional

from crisis_core.config import settings
from crisis_core.infra.geocoding import GeocodingError, ReverseGeocoder
from crisis_core.safety.models import Coordinates, LocationInfo
from crisis_core.safety.patterns import normalize_text

logger = logging.getLogger(__name__)

OHIO = "Ohio"

# city -> county, for the service area
GAZETTEER: dict[str, str] = {
    # Ashtabula County
    "ashtabula": "Ashtabula County",
    "jefferson": "Ashtabula County",
    "geneva": "Ashtabula County",
    "conneaut": "Ashtabula County",
    # Summit County
    "akron": "Summit County",
    "cuyahoga falls": "Summit County",
    "barberton": "Summit County",
    "hudson": "Summit County",
    "stow": "Summit County",
    # Stark County
    "canton": "Stark County",
    "north canton": "Stark County",
    "massillon": "Stark County",
    "alliance": "Stark County",
    # Cuyahoga County
    "cleveland": "Cuyahoga County",
    "lakewood": "Cuyahoga County",
    "parma": "Cuyahoga County",
    "strongsville": "Cuyahoga County",
    "westlake": "Cuyahoga County",
    # Lake County
    "mentor": "Lake County",
    "eastlake": "Lake County",
    "willoughby": "Lake County",
    "chardon": "Lake County",
}

COUNTIES = [
    "Ashtabula County",
    "Summit County",
    "Stark County",
    "Cuyahoga County",
    "Lake County",
]


# Place names that are also everyday words need a locative cue ("in Mentor")
AMBIGUOUS_NAMES = {"mentor", "alliance", "stow", "hudson", "jefferson", "geneva"}
_LOCATIVE_CUE = r"\b(in|from|near|around|outside(\s+of)?|live\s+in|living\s+in)\s+"


def _compile_gazetteer() -> list[tuple[re.Pattern, str, str]]:
    # Longest names first so "north canton" wins over "canton"
    names = sorted(GAZETTEER, key=len, reverse=True)
    compiled = []
    for name in names:
        prefix = _LOCATIVE_CUE if name in AMBIGUOUS_NAMES else r"\b"
        compiled.append(
            (re.compile(rf"{prefix}{re.escape(name)}\b"), name.title(), GAZETTEER[name])
        )
    return compiled


_CITY_PATTERNS = _compile_gazetteer()
_COUNTY_PATTERNS = [
    (re.compile(rf"\b{county.split()[0].lower()}\s+(county|co\b\.?)"), county)
    for county in COUNTIES
]
_STATE_PATTERN = re.compile(r"\bohio\b")


class LocationResolver:
    """
    Resolves the user's location for resource lookup.

    Text first (cheap, no network); device geolocation only as a
    best-effort secondary source. Neither path raises.

    Usage:
        resolver = LocationResolver()
        location = resolver.resolve_from_text("I live in Akron")
        location.region  # "Summit County"
    """

    def __init__(
        self,
        geocoder: Optional[ReverseGeocoder] = None,
        timeout: Optional[float] = None,
    ):
        """
        Args:
            geocoder: Reverse geocoding client (created lazily if omitted)
            timeout: Upper bound for device lookups in seconds
        """
        self._geocoder = geocoder
        self.timeout = timeout if timeout is not None else settings.geolocation_timeout

    def resolve_from_text(self, text: str) -> Optional[LocationInfo]:
        """
        Extract a known place from the message.

        Args:
            text: User message

        Returns:
            LocationInfo with city and/or region, or None
        """
        if not isinstance(text, str) or not text.strip():
            return None

        normalized = normalize_text(text)

        for pattern, city, county in _CITY_PATTERNS:
            if pattern.search(normalized):
                return LocationInfo(city=city, region=county, country="United States")

        for pattern, county in _COUNTY_PATTERNS:
            if pattern.search(normalized):
                return LocationInfo(region=county, country="United States")

        if _STATE_PATTERN.search(normalized):
            return LocationInfo(region=OHIO, country="United States")

        return None

    async def resolve_from_device(
        self,
        coordinates: Optional[Coordinates],
    ) -> Optional[LocationInfo]:
        """
        Reverse geocode device coordinates.

        Returns None when no coordinates were shared (permission denied),
        on timeout, or when every provider fails.

        Args:
            coordinates: Position reported by the client, if any

        Returns:
            LocationInfo or None
        """
        if coordinates is None:
            return None

        try:
            geocoder = self._get_geocoder()
            return await asyncio.wait_for(
                geocoder.reverse(coordinates.latitude, coordinates.longitude),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Device geolocation timed out after {self.timeout}s")
        except GeocodingError as e:
            logger.warning(f"Device geolocation unavailable: {e}")
        except Exception as e:
            logger.error(f"Unexpected geolocation error: {e}")
        return None

    def _get_geocoder(self) -> ReverseGeocoder:
        if self._geocoder is None:
            self._geocoder = ReverseGeocoder()
        return self._geocoder

    async def close(self) -> None:
        if self._geocoder is not None:
            await self._geocoder.close()


def is_location_sufficient(location: Optional[LocationInfo]) -> bool:
    """A location can drive resource lookup iff city or region is known."""
    return location is not None and location.is_sufficient
