from .geocoder import (
    GeocodeResult,
    GeocodingError,
    Geocoder,
    build_geocoder,
    compose_address,
)
from .distance import haversine_m, latitude_band

__all__ = [
    "GeocodeResult",
    "GeocodingError",
    "Geocoder",
    "build_geocoder",
    "compose_address",
    "haversine_m",
    "latitude_band",
]
