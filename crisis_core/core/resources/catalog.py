"""
Crisis Resource Catalog

Maps (CrisisType, region) to a resource bundle. Regions are a fixed set of
named service areas; anything else gets the national bundle for the type.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from crisis_core.safety.models import CrisisType, LocationInfo

logger = logging.getLogger(__name__)


class Region(str, Enum):
    """Named service regions with local resources."""

    ASHTABULA_COUNTY = "Ashtabula County"
    CUYAHOGA_COUNTY = "Cuyahoga County"
    SUMMIT_COUNTY = "Summit County"
    STARK_COUNTY = "Stark County"
    LAKE_COUNTY = "Lake County"
    OHIO = "Ohio"
    NATIONAL = "National"


@dataclass(frozen=True)
class Resource:
    """A single hotline or program."""

    name: str
    contact: str

    def render(self) -> str:
        return f"{self.name}: {self.contact}"


@dataclass(frozen=True)
class ResourceBundle:
    """Resources offered for one crisis type in one region."""

    crisis_type: CrisisType
    region: Region
    resources: tuple[Resource, ...]

    @property
    def is_local(self) -> bool:
        return self.region != Region.NATIONAL

    def to_text(self) -> str:
        """Render as a bulleted list."""
        return "\n".join(f"- {resource.render()}" for resource in self.resources)


# ==================================
# National defaults
# ==================================

LIFELINE = Resource("988 Suicide & Crisis Lifeline", "call or text 988 (or 1-800-273-8255)")
CRISIS_TEXT_LINE = Resource("Crisis Text Line", "text HOME to 741741")
VETERANS_LINE = Resource("Veterans Crisis Line", "dial 988 then press 1")
EMERGENCY_ROOM = Resource("Your nearest emergency room", "walk in any time")
EMERGENCY_911 = Resource("Emergency services", "911 for immediate danger")
NEDA = Resource("National Eating Disorders Association (NEDA) Helpline", "1-800-931-2237")
NEDA_TEXT = Resource("NEDA Crisis Text Line", "text NEDA to 741741")
SAMHSA = Resource("SAMHSA National Helpline", "1-800-662-4357 (free, confidential, 24/7)")

NATIONAL_RESOURCES: dict[CrisisType, tuple[Resource, ...]] = {
    CrisisType.SUICIDE: (LIFELINE, CRISIS_TEXT_LINE, VETERANS_LINE, EMERGENCY_ROOM, EMERGENCY_911),
    CrisisType.SELF_HARM: (LIFELINE, CRISIS_TEXT_LINE, VETERANS_LINE, EMERGENCY_ROOM, EMERGENCY_911),
    CrisisType.EATING_DISORDER: (
        NEDA,
        NEDA_TEXT,
        Resource("The Emily Program", "1-888-364-5977"),
        Resource("Eating Recovery Center", "1-877-825-8584"),
    ),
    CrisisType.SUBSTANCE_USE: (
        SAMHSA,
        Resource("Alcoholics Anonymous", "aa.org"),
        Resource("Narcotics Anonymous", "na.org"),
        Resource("National Drug Helpline", "1-844-289-0879"),
    ),
    CrisisType.GENERAL_CRISIS: (LIFELINE, CRISIS_TEXT_LINE, EMERGENCY_ROOM, EMERGENCY_911),
}

# Kept at the end of every local bundle so the national line is never lost
NATIONAL_ANCHOR: dict[CrisisType, Resource] = {
    CrisisType.SUICIDE: LIFELINE,
    CrisisType.SELF_HARM: LIFELINE,
    CrisisType.EATING_DISORDER: NEDA,
    CrisisType.SUBSTANCE_USE: SAMHSA,
    CrisisType.GENERAL_CRISIS: LIFELINE,
}


# ==================================
# Regional resources
# ==================================

# (resource, crisis types it applies to; None means every type)
_Entry = tuple[Resource, Optional[frozenset[CrisisType]]]

_SELF = frozenset({CrisisType.SUICIDE, CrisisType.SELF_HARM, CrisisType.GENERAL_CRISIS})
_EATING = frozenset({CrisisType.EATING_DISORDER})
_SUBSTANCE = frozenset({CrisisType.SUBSTANCE_USE})

REGIONAL_RESOURCES: dict[Region, list[_Entry]] = {
    Region.ASHTABULA_COUNTY: [
        (Resource("Ashtabula County 24/7 Crisis Hotline", "1-800-577-7849"), None),
        (Resource("Ashtabula County Medical Center Behavioral Health", "1-440-997-2262"), _SELF),
        (Resource("Glenbeigh Hospital (addiction treatment)", "1-877-487-5126"), _SUBSTANCE),
        (Resource("Frontline Service", "1-440-381-8347"), None),
        (Resource("Rape Crisis Center", "1-440-354-7364"), _SELF),
    ],
    Region.CUYAHOGA_COUNTY: [
        (Resource("Cuyahoga County Mobile Crisis", "1-216-623-6555"), None),
        (Resource("The Emily Program Cleveland", "1-888-272-0836"), _EATING),
        (Resource("Windsor-Laurelwood Center", "1-440-953-3000"), _SELF),
        (Resource("Highland Springs Hospital", "1-216-302-3070"), _SELF | _SUBSTANCE),
        (Resource("Project DAWN (naloxone)", "1-216-387-6290"), _SUBSTANCE),
    ],
    Region.SUMMIT_COUNTY: [
        (Resource("Summit County Mobile Crisis", "330-434-9144"), None),
        (Resource("Akron Children's Hospital Behavioral Health", "330-543-7472"), _SELF | _EATING),
        (Resource("Summit County Homeless Hotline", "330-615-0577"), frozenset({CrisisType.GENERAL_CRISIS})),
    ],
    Region.STARK_COUNTY: [
        (Resource("Stark County Mobile Crisis", "330-452-6000"), None),
        (Resource("Stark County Homeless Hotline", "330-452-4363"), frozenset({CrisisType.GENERAL_CRISIS})),
    ],
    Region.LAKE_COUNTY: [
        (Resource("Frontline Service", "1-440-381-8347"), None),
        (Resource("Ravenwood Health", "1-440-285-4552"), None),
    ],
    Region.OHIO: [
        (Resource("Ohio CareLine", "1-800-720-9616"), None),
        (Resource("Ohio Crisis Text Line", "text 4HOPE to 741741"), None),
    ],
}

# Normalized city/region strings -> region
REGION_KEYS: dict[str, Region] = {
    "ashtabula county": Region.ASHTABULA_COUNTY,
    "ashtabula": Region.ASHTABULA_COUNTY,
    "jefferson": Region.ASHTABULA_COUNTY,
    "geneva": Region.ASHTABULA_COUNTY,
    "conneaut": Region.ASHTABULA_COUNTY,
    "cuyahoga county": Region.CUYAHOGA_COUNTY,
    "cleveland": Region.CUYAHOGA_COUNTY,
    "lakewood": Region.CUYAHOGA_COUNTY,
    "parma": Region.CUYAHOGA_COUNTY,
    "strongsville": Region.CUYAHOGA_COUNTY,
    "westlake": Region.CUYAHOGA_COUNTY,
    "summit county": Region.SUMMIT_COUNTY,
    "akron": Region.SUMMIT_COUNTY,
    "cuyahoga falls": Region.SUMMIT_COUNTY,
    "barberton": Region.SUMMIT_COUNTY,
    "hudson": Region.SUMMIT_COUNTY,
    "stow": Region.SUMMIT_COUNTY,
    "stark county": Region.STARK_COUNTY,
    "canton": Region.STARK_COUNTY,
    "north canton": Region.STARK_COUNTY,
    "massillon": Region.STARK_COUNTY,
    "alliance": Region.STARK_COUNTY,
    "lake county": Region.LAKE_COUNTY,
    "mentor": Region.LAKE_COUNTY,
    "eastlake": Region.LAKE_COUNTY,
    "willoughby": Region.LAKE_COUNTY,
    "chardon": Region.LAKE_COUNTY,
    "ohio": Region.OHIO,
    "oh": Region.OHIO,
}


def _normalize_key(value: Optional[str]) -> str:
    return " ".join((value or "").lower().replace(".", " ").split())


def region_for(location: Optional[LocationInfo]) -> Region:
    """Map a location to a named region; city is more specific than region."""
    if location is None:
        return Region.NATIONAL
    for value in (location.city, location.region):
        region = REGION_KEYS.get(_normalize_key(value))
        if region is not None:
            return region
    return Region.NATIONAL


class ResourceCatalog:
    """
    Region-aware resource lookup.

    Usage:
        catalog = ResourceCatalog()
        bundle = catalog.resources_for(CrisisType.SUICIDE, location)
        print(bundle.to_text())
    """

    def resources_for(
        self,
        crisis_type: CrisisType,
        location: Optional[LocationInfo],
    ) -> ResourceBundle:
        """
        Get the resource bundle for a crisis type and location.

        Never empty for a known CrisisType; unmatched or absent locations
        get the national bundle.
        """
        region = region_for(location)
        entries = REGIONAL_RESOURCES.get(region, [])
        local = [
            resource
            for resource, applies_to in entries
            if applies_to is None or crisis_type in applies_to
        ]

        if not local:
            return self.national_resources(crisis_type)

        anchor = NATIONAL_ANCHOR[crisis_type]
        if anchor not in local:
            local.append(anchor)
        logger.debug(f"Resolved {len(local)} resources for {crisis_type.value} in {region.value}")
        return ResourceBundle(crisis_type=crisis_type, region=region, resources=tuple(local))

    def national_resources(self, crisis_type: CrisisType) -> ResourceBundle:
        """National bundle for a crisis type, used wherever no local entry applies."""
        return ResourceBundle(
            crisis_type=crisis_type,
            region=Region.NATIONAL,
            resources=NATIONAL_RESOURCES[crisis_type],
        )


# ==================================
# Clinician-facing resource text
# ==================================

CLINICAL_RESOURCE_TEXT: dict[Region, str] = {
    Region.ASHTABULA_COUNTY: (
        "ASHTABULA COUNTY RESOURCES:\n"
        "- Ashtabula County 24/7 Crisis Hotline: 1-800-577-7849\n"
        "- Ashtabula County Medical Center (ACMC) Behavioral Health: 1-440-997-2262\n"
        "- Glenbeigh Hospital: 1-877-487-5126\n"
        "- Frontline Service: 1-440-381-8347\n"
        "- Rape Crisis Center: 1-440-354-7364"
    ),
    Region.CUYAHOGA_COUNTY: (
        "CUYAHOGA COUNTY / CLEVELAND RESOURCES:\n"
        "- Cuyahoga County Mobile Crisis: 1-216-623-6555\n"
        "- The Emily Program Cleveland: 1-888-272-0836\n"
        "- Windsor-Laurelwood Center: 1-440-953-3000\n"
        "- Project DAWN: 1-216-387-6290\n"
        "- Highland Springs Hospital: 1-216-302-3070"
    ),
    Region.SUMMIT_COUNTY: (
        "SUMMIT COUNTY / AKRON RESOURCES:\n"
        "- Summit County Mobile Crisis: 330-434-9144\n"
        "- Akron Children's Hospital Behavioral Health: 330-543-7472\n"
        "- Summit County Homeless Hotline: 330-615-0577"
    ),
    Region.STARK_COUNTY: (
        "STARK COUNTY / CANTON RESOURCES:\n"
        "- Stark County Mobile Crisis: 330-452-6000\n"
        "- Stark County Homeless Hotline: 330-452-4363"
    ),
    Region.LAKE_COUNTY: (
        "LAKE COUNTY / MENTOR RESOURCES:\n"
        "- Frontline Service: 1-440-381-8347\n"
        "- Ravenwood Health: 1-440-285-4552"
    ),
    Region.OHIO: (
        "OHIO STATEWIDE RESOURCES:\n"
        "- Ohio CareLine: 1-800-720-9616\n"
        "- Ohio Crisis Text Line: text 4HOPE to 741741\n"
        "- 988 Suicide & Crisis Lifeline: 988"
    ),
    Region.NATIONAL: (
        "LOCATION UNKNOWN - NATIONAL RESOURCES:\n"
        "- 988 Suicide & Crisis Lifeline: 988\n"
        "- Crisis Text Line: text HOME to 741741\n"
        "- Emergency services: 911\n"
        "Consider asking the patient for their location at follow-up."
    ),
}


def clinical_resources_text(location: Optional[LocationInfo]) -> str:
    """Region-specific resource block for clinician notifications."""
    return CLINICAL_RESOURCE_TEXT[region_for(location)]
