from __future__ import annotations

import math

# Mean Earth radius (IUGG), metres
EARTH_RADIUS_M = 6_371_008.8
# Longest possible great-circle distance
HALF_CIRCUMFERENCE_M = math.pi * EARTH_RADIUS_M


def haversine_m(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Great-circle distance in metres between two (lon, lat) points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = phi2 - phi1
    dlmb = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))


def latitude_band(lat: float, radius_m: float) -> tuple[float, float] | None:
    """Latitude interval that contains every point within ``radius_m``.

    Returns None when the radius covers the whole globe. Only latitude is
    bounded: it is exact at the poles and across the antimeridian.
    """
    if radius_m >= HALF_CIRCUMFERENCE_M:
        return None
    delta = math.degrees(radius_m / EARTH_RADIUS_M)
    return max(-90.0, lat - delta), min(90.0, lat + delta)
