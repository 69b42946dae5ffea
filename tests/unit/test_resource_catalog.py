"""Tests for the crisis resource catalog."""

import pytest

from crisis_core.core.resources.catalog import (
    LIFELINE,
    NATIONAL_ANCHOR,
    NEDA,
    SAMHSA,
    REGIONAL_RESOURCES,
    Region,
    ResourceCatalog,
    clinical_resources_text,
    region_for,
)
from crisis_core.safety.models import CrisisType, LocationInfo


class TestResourceCatalog:
    """Test region-aware resource lookup."""

    @pytest.fixture
    def catalog(self):
        """Create catalog."""
        return ResourceCatalog()

    def test_no_location_is_national(self, catalog):
        """Test an absent location gets the national bundle."""
        bundle = catalog.resources_for(CrisisType.SUICIDE, None)

        assert bundle.region == Region.NATIONAL
        assert not bundle.is_local
        assert LIFELINE in bundle.resources

    def test_unknown_region_is_national(self, catalog):
        """Test places outside the service area get the national bundle."""
        bundle = catalog.resources_for(
            CrisisType.SELF_HARM,
            LocationInfo(city="Denver", region="Colorado"),
        )

        assert bundle.region == Region.NATIONAL
        assert bundle == catalog.national_resources(CrisisType.SELF_HARM)

    def test_local_eating_resources(self, catalog):
        """Test eating resources in Cleveland include the local program."""
        bundle = catalog.resources_for(
            CrisisType.EATING_DISORDER,
            LocationInfo(city="Cleveland", region="Ohio"),
        )

        assert bundle.region == Region.CUYAHOGA_COUNTY
        names = [r.name for r in bundle.resources]
        assert "The Emily Program Cleveland" in names
        assert "Windsor-Laurelwood Center" not in names
        assert bundle.resources[-1] == NEDA

    def test_local_bundle_keeps_national_anchor(self, catalog):
        """Test every local bundle ends with the category's national line."""
        bundle = catalog.resources_for(
            CrisisType.SUBSTANCE_USE,
            LocationInfo(city="Akron", region="Summit County"),
        )

        assert bundle.is_local
        assert bundle.resources[-1] == SAMHSA

    def test_city_more_specific_than_region(self, catalog):
        """Test the city decides the region before the state does."""
        location = LocationInfo(city="Canton", region="Ohio")

        assert region_for(location) == Region.STARK_COUNTY

    def test_state_abbreviation(self):
        """Test the state abbreviation maps to statewide resources."""
        assert region_for(LocationInfo(region="OH")) == Region.OHIO

    @pytest.mark.parametrize("region", list(REGIONAL_RESOURCES))
    @pytest.mark.parametrize("crisis_type", list(CrisisType))
    def test_never_empty(self, catalog, region, crisis_type):
        """Test every type and region yields resources with the anchor."""
        bundle = catalog.resources_for(crisis_type, LocationInfo(region=region.value))

        assert bundle.resources
        assert NATIONAL_ANCHOR[crisis_type] in bundle.resources

    def test_bundle_text(self, catalog):
        """Test bundles render as a bulleted list."""
        text = catalog.national_resources(CrisisType.GENERAL_CRISIS).to_text()

        assert text.startswith("- 988 Suicide & Crisis Lifeline")
        assert "911" in text


class TestClinicalResourcesText:
    """Test clinician-facing resource blocks."""

    def test_known_region(self):
        """Test a known location selects its county block."""
        text = clinical_resources_text(LocationInfo(city="Mentor", region="Lake County"))

        assert text.startswith("LAKE COUNTY / MENTOR RESOURCES")

    def test_unknown_location(self):
        """Test an unknown location selects the national block."""
        assert clinical_resources_text(None).startswith("LOCATION UNKNOWN")
