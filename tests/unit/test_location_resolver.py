"""Tests for location resolution and reverse geocoding."""

import asyncio

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from crisis_core.core.location.resolver import LocationResolver, is_location_sufficient
from crisis_core.infra.geocoding import GeocodingError, ReverseGeocoder
from crisis_core.safety.models import Coordinates, LocationInfo

REVERSE_URL = "https://geo.test/reverse"


def make_geocoder(handler) -> ReverseGeocoder:
    return ReverseGeocoder(
        reverse_url=REVERSE_URL,
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


class TestResolveFromText:
    """Test gazetteer lookups in message text."""

    @pytest.fixture
    def resolver(self):
        """Create resolver without a geocoder."""
        return LocationResolver(geocoder=MagicMock())

    def test_city(self, resolver):
        """Test a known city resolves to city and county."""
        location = resolver.resolve_from_text("I live in Akron")

        assert location.city == "Akron"
        assert location.region == "Summit County"
        assert location.is_sufficient

    def test_longest_name_wins(self, resolver):
        """Test multi-word city names take precedence."""
        location = resolver.resolve_from_text("I'm in north canton right now")

        assert location.city == "North Canton"
        assert location.region == "Stark County"

    def test_ambiguous_name_needs_cue(self, resolver):
        """Test everyday-word city names need a locative cue."""
        assert resolver.resolve_from_text("my mentor said to talk to someone") is None

        location = resolver.resolve_from_text("I'm in Mentor")
        assert location.city == "Mentor"
        assert location.region == "Lake County"

    def test_county(self, resolver):
        """Test a county mention resolves to a region only."""
        location = resolver.resolve_from_text("somewhere in Lake County")

        assert location.city is None
        assert location.region == "Lake County"

    def test_state(self, resolver):
        """Test a state mention resolves to the state."""
        location = resolver.resolve_from_text("I'm from Ohio")

        assert location.region == "Ohio"
        assert location.describe() == "Ohio"

    @pytest.mark.parametrize("text", ["", "   ", None, "I feel awful"])
    def test_no_location(self, resolver, text):
        """Test text without a known place resolves to None."""
        assert resolver.resolve_from_text(text) is None


class TestResolveFromDevice:
    """Test device geolocation."""

    @pytest.mark.asyncio
    async def test_no_coordinates(self):
        """Test denied permission resolves to None without a lookup."""
        geocoder = MagicMock()
        geocoder.reverse = AsyncMock()
        resolver = LocationResolver(geocoder=geocoder)

        assert await resolver.resolve_from_device(None) is None
        geocoder.reverse.assert_not_called()

    @pytest.mark.asyncio
    async def test_primary_provider(self):
        """Test coordinates resolve through the primary provider."""
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.host == "geo.test"
            assert request.url.params["latitude"] == "41.4993"
            return httpx.Response(200, json={
                "city": "Cleveland",
                "principalSubdivision": "Ohio",
                "countryName": "United States of America",
            })

        resolver = LocationResolver(geocoder=make_geocoder(handler))
        location = await resolver.resolve_from_device(Coordinates(41.4993, -81.6944))

        assert location.city == "Cleveland"
        assert location.region == "Ohio"
        assert location.lat == 41.4993
        await resolver.close()

    @pytest.mark.asyncio
    async def test_failed_provider_has_no_ip_fallback(self):
        """Test a failed lookup yields None without an IP-based request from the server."""
        hosts = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            return httpx.Response(500)

        resolver = LocationResolver(geocoder=make_geocoder(handler))
        location = await resolver.resolve_from_device(Coordinates(41.08, -81.52))

        assert location is None
        assert hosts == ["geo.test"]
        await resolver.close()

    @pytest.mark.asyncio
    async def test_provider_unavailable(self):
        """Test provider failure resolves to None, not a default city."""
        resolver = LocationResolver(
            geocoder=make_geocoder(lambda request: httpx.Response(503))
        )

        assert await resolver.resolve_from_device(Coordinates(41.0, -81.0)) is None
        await resolver.close()

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test a lookup past the timeout is abandoned."""
        async def slow_reverse(latitude, longitude):
            await asyncio.sleep(5)
            return LocationInfo(city="Too Late")

        geocoder = MagicMock()
        geocoder.reverse = slow_reverse
        resolver = LocationResolver(geocoder=geocoder, timeout=0.01)

        assert await resolver.resolve_from_device(Coordinates(41.0, -81.0)) is None

    @pytest.mark.asyncio
    async def test_unexpected_error(self):
        """Test unexpected errors never escape."""
        geocoder = MagicMock()
        geocoder.reverse = AsyncMock(side_effect=KeyError("city"))
        resolver = LocationResolver(geocoder=geocoder)

        assert await resolver.resolve_from_device(Coordinates(41.0, -81.0)) is None


class TestReverseGeocoder:
    """Test the geocoding HTTP client directly."""

    @pytest.mark.asyncio
    async def test_raises_on_failure(self):
        """Test GeocodingError when the provider fails."""
        geocoder = make_geocoder(lambda request: httpx.Response(500))

        with pytest.raises(GeocodingError):
            await geocoder.reverse(41.0, -81.0)
        await geocoder.close()

    @pytest.mark.asyncio
    async def test_empty_place(self):
        """Test a provider answer without a place is insufficient."""
        geocoder = make_geocoder(lambda request: httpx.Response(200, json={"countryName": "Canada"}))

        location = await geocoder.reverse(45.0, -75.0)

        assert location.country == "Canada"
        assert not is_location_sufficient(location)
        await geocoder.close()


class TestLocationInfo:
    """Test location sufficiency and description."""

    def test_sufficiency(self):
        """Test a location is sufficient iff city or region is known."""
        assert LocationInfo(city="Parma").is_sufficient
        assert LocationInfo(region="Ohio").is_sufficient
        assert not LocationInfo(country="United States").is_sufficient
        assert not is_location_sufficient(None)

    def test_describe(self):
        """Test descriptions used in alerts and logs."""
        assert LocationInfo(city="Akron", region="Summit County").describe() == "Akron, Summit County"
        assert LocationInfo(country="Canada").describe() == "Canada"
        assert LocationInfo().describe() == "Unknown location"
