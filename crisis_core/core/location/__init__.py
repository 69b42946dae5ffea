"""Location resolution from message text and device coordinates."""

from .resolver import LocationResolver, is_location_sufficient

__all__ = [
    "LocationResolver",
    "is_location_sufficient",
]
