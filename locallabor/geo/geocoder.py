"""Free-text city -> coordinates, through a pluggable external provider.

Providers never raise for "no match"; they return ``None``. Transport errors,
non-2xx responses, timeouts and unparseable payloads raise
:class:`GeocodingError`. What to do about either outcome (sentinel vs. reject)
is the caller's degradation policy, not the provider's.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

import requests

from locallabor.config import Settings

LOGGER = logging.getLogger(__name__)

NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
OPENCAGE_URL = "https://api.opencagedata.com/geocode/v1/json"


@dataclass(frozen=True)
class GeocodeResult:
    longitude: float
    latitude: float
    formatted_address: str


class GeocodingError(Exception):
    """The provider failed (network, timeout, bad response)."""


class Geocoder(Protocol):
    name: str

    def resolve(self, city_text: str) -> Optional[GeocodeResult]: ...


def compose_address(
    formatted: Optional[str],
    city: Optional[str],
    country: Optional[str],
    fallback: str,
) -> str:
    """Prefer the provider's formatted address, then "city, country", then the input."""
    if formatted and formatted.strip():
        return formatted.strip()
    if city and country:
        return f"{city}, {country}"
    return fallback


def _get_json(url: str, *, params: dict, headers: dict, timeout: float):
    try:
        resp = requests.get(url, params=params, headers=headers, timeout=timeout)
        resp.raise_for_status()
        return resp.json()
    except requests.Timeout as exc:
        raise GeocodingError(f"geocoder timed out after {timeout}s") from exc
    except requests.RequestException as exc:
        raise GeocodingError(f"geocoder request failed: {exc}") from exc
    except ValueError as exc:
        raise GeocodingError("geocoder returned invalid JSON") from exc


class NominatimGeocoder:
    """OpenStreetMap Nominatim; no key, but a descriptive User-Agent is mandatory."""

    name = "nominatim"

    def __init__(self, timeout: float = 5.0, user_agent: str = "LocalLabor/1.0", url: str = NOMINATIM_URL):
        self.timeout = timeout
        self.user_agent = user_agent
        self.url = url

    def resolve(self, city_text: str) -> Optional[GeocodeResult]:
        data = _get_json(
            self.url,
            params={"q": city_text, "format": "jsonv2", "addressdetails": 1, "limit": 1},
            headers={"User-Agent": self.user_agent, "Accept": "application/json"},
            timeout=self.timeout,
        )
        if not isinstance(data, list) or not data:
            return None
        best = data[0]
        address = best.get("address") or {}
        city = address.get("city") or address.get("town") or address.get("village")
        try:
            return GeocodeResult(
                longitude=float(best["lon"]),
                latitude=float(best["lat"]),
                formatted_address=compose_address(
                    best.get("display_name"), city, address.get("country"), city_text
                ),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise GeocodingError("nominatim result without usable coordinates") from exc


class OpenCageGeocoder:
    name = "opencage"

    def __init__(self, api_key: str, timeout: float = 5.0, url: str = OPENCAGE_URL):
        if not api_key:
            raise ValueError("opencage geocoder requires LABOR_GEOCODER_API_KEY")
        self.api_key = api_key
        self.timeout = timeout
        self.url = url

    def resolve(self, city_text: str) -> Optional[GeocodeResult]:
        data = _get_json(
            self.url,
            params={"q": city_text, "key": self.api_key, "limit": 1, "no_annotations": 1},
            headers={"Accept": "application/json"},
            timeout=self.timeout,
        )
        results = (data or {}).get("results") if isinstance(data, dict) else None
        if not results:
            return None
        best = results[0]
        geometry = best.get("geometry") or {}
        components = best.get("components") or {}
        city = components.get("city") or components.get("town") or components.get("village")
        try:
            return GeocodeResult(
                longitude=float(geometry["lng"]),
                latitude=float(geometry["lat"]),
                formatted_address=compose_address(
                    best.get("formatted"), city, components.get("country"), city_text
                ),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise GeocodingError("opencage result without usable coordinates") from exc


class DisabledGeocoder:
    """Offline mode: every city is unresolved, so jobs get the sentinel point."""

    name = "disabled"

    def resolve(self, city_text: str) -> Optional[GeocodeResult]:
        return None


# Provider registry, keyed by LABOR_GEOCODER
REGISTRY: Dict[str, Callable[[Settings], Geocoder]] = {
    "nominatim": lambda s: NominatimGeocoder(timeout=s.geocoder_timeout, user_agent=s.geocoder_user_agent),
    "opencage": lambda s: OpenCageGeocoder(api_key=s.geocoder_api_key, timeout=s.geocoder_timeout),
    "disabled": lambda s: DisabledGeocoder(),
}


def build_geocoder(settings: Settings) -> Geocoder:
    name = (settings.geocoder or "nominatim").strip().lower()
    try:
        factory = REGISTRY[name]
    except KeyError:
        raise ValueError(f"unknown geocoder provider {name!r}; expected one of {sorted(REGISTRY)}") from None
    LOGGER.debug("geocoder provider=%s timeout=%s", name, settings.geocoder_timeout)
    return factory(settings)
