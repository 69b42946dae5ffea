"""Region-aware crisis resource catalog."""

from .catalog import (
    Region,
    Resource,
    ResourceBundle,
    ResourceCatalog,
    region_for,
    clinical_resources_text,
)

__all__ = [
    "Region",
    "Resource",
    "ResourceBundle",
    "ResourceCatalog",
    "region_for",
    "clinical_resources_text",
]
