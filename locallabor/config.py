"""Runtime settings for the discovery service.

Resolution order (later wins):
  1. defaults below
  2. optional YAML file named by ``LABOR_SETTINGS_FILE``
  3. environment variables (a ``.env`` file is loaded first, see
     :mod:`locallabor.db.session`)

Environment variables
---------------------
LABOR_GEOCODER            nominatim | opencage | disabled   (default nominatim)
LABOR_GEOCODER_API_KEY    provider credential (opencage)
LABOR_GEOCODER_TIMEOUT    seconds per geocoding request     (default 5)
LABOR_GEOCODER_USER_AGENT User-Agent sent to the provider
LABOR_GEOCODE_STRICT      "true" rejects writes whose city cannot be resolved
LABOR_DEFAULT_PAGE_SIZE   (default 10)
LABOR_MAX_PAGE_SIZE       (default 100)
LABOR_DEFAULT_IMAGE_URL   placeholder used when a job has no image
LABOR_UPLOAD_DIR          where application documents and job images are written
LABOR_MAX_IMAGE_BYTES     job image size cap                (default 5 MB)
"""
from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Union

import yaml

DEFAULT_IMAGE_URL = "/uploads/geo_job_default.jpg"


@dataclass(frozen=True)
class Settings:
    geocoder: str = "nominatim"
    geocoder_api_key: str = ""
    geocoder_timeout: float = 5.0
    geocoder_user_agent: str = "LocalLabor/1.0 (+https://example.com/contact)"
    geocode_strict: bool = False
    default_page_size: int = 10
    max_page_size: int = 100
    default_image_url: str = DEFAULT_IMAGE_URL
    upload_dir: str = "uploads"
    max_image_bytes: int = 5 * 1024 * 1024


_ENV_KEYS = {
    "geocoder": "LABOR_GEOCODER",
    "geocoder_api_key": "LABOR_GEOCODER_API_KEY",
    "geocoder_timeout": "LABOR_GEOCODER_TIMEOUT",
    "geocoder_user_agent": "LABOR_GEOCODER_USER_AGENT",
    "geocode_strict": "LABOR_GEOCODE_STRICT",
    "default_page_size": "LABOR_DEFAULT_PAGE_SIZE",
    "max_page_size": "LABOR_MAX_PAGE_SIZE",
    "default_image_url": "LABOR_DEFAULT_IMAGE_URL",
    "upload_dir": "LABOR_UPLOAD_DIR",
    "max_image_bytes": "LABOR_MAX_IMAGE_BYTES",
}


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in {"1", "true", "yes", "y", "on"}


def _coerce(name: str, value: Any) -> Any:
    field_type = {f.name: f.type for f in fields(Settings)}[name]
    if field_type == "bool":
        return _parse_bool(value)
    if field_type == "int":
        return int(value)
    if field_type == "float":
        return float(value)
    return str(value).strip()


def load_settings_file(path: Union[str, Path]) -> dict:
    path = Path(path)
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        return {}
    known = {f.name for f in fields(Settings)}
    return {k: v for k, v in data.items() if k in known}


def load_settings(env: dict | None = None) -> Settings:
    env = os.environ if env is None else env
    overrides: dict[str, Any] = {}

    settings_file = env.get("LABOR_SETTINGS_FILE")
    if settings_file:
        overrides.update(load_settings_file(settings_file))

    for name, key in _ENV_KEYS.items():
        raw = env.get(key)
        if raw is not None and raw != "":
            overrides[name] = raw

    settings = Settings()
    if overrides:
        settings = replace(settings, **{k: _coerce(k, v) for k, v in overrides.items()})
    return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """FastAPI dependency; tests override it through ``app.dependency_overrides``."""
    return load_settings()
