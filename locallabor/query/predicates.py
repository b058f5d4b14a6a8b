"""Turn raw listing parameters into a typed, store-independent filter.

``build_job_query`` only decides what each parameter *means*; lowering the
clauses into SQL lives in :mod:`locallabor.query.compiler`. Parameters arrive
as untrusted strings (query string values), so parsing is lenient: unusable
values are dropped, except where dropping would widen an explicitly scoped
query (``employerId``), in which case the query fails closed.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Mapping, Optional, Union

from locallabor.db.models import utcnow
from locallabor.errors import ValidationError

DATE_POSTED_WINDOWS: dict[str, timedelta] = {
    "24h": timedelta(hours=24),
    "3d": timedelta(days=3),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}


# --- Clauses -----------------------------------------------------------------

@dataclass(frozen=True)
class StatusIs:
    status: str


@dataclass(frozen=True)
class JobTypeIn:
    job_types: tuple[str, ...]  # lower-cased


@dataclass(frozen=True)
class CityContains:
    text: str


@dataclass(frozen=True)
class SkillsAny:
    skills: tuple[str, ...]  # lower-cased


@dataclass(frozen=True)
class PostedSince:
    cutoff: datetime


@dataclass(frozen=True)
class PayMaxAtLeast:
    """Caller's lower bound: the job's range must reach it (pay_rate_max >= amount)."""
    amount: float


@dataclass(frozen=True)
class PayMinAtMost:
    """Caller's upper bound: the job's range must start under it (pay_rate_min <= amount)."""
    amount: float


@dataclass(frozen=True)
class EmployerIs:
    employer_id: int


@dataclass(frozen=True)
class TextSearch:
    text: str


@dataclass(frozen=True)
class MatchNothing:
    reason: str


Predicate = Union[
    StatusIs,
    JobTypeIn,
    CityContains,
    SkillsAny,
    PostedSince,
    PayMaxAtLeast,
    PayMinAtMost,
    EmployerIs,
    TextSearch,
    MatchNothing,
]


@dataclass(frozen=True)
class Proximity:
    longitude: float
    latitude: float
    max_distance_m: float


@dataclass(frozen=True)
class JobQuery:
    predicates: tuple[Predicate, ...] = field(default_factory=tuple)
    proximity: Optional[Proximity] = None

    def with_predicate(self, predicate: Predicate) -> "JobQuery":
        return JobQuery(predicates=self.predicates + (predicate,), proximity=self.proximity)


# --- Parsing helpers ---------------------------------------------------------

def _clean(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _split_csv(value: object) -> list[str]:
    text = _clean(value)
    if not text:
        return []
    return [part.strip() for part in text.split(",") if part.strip()]


def _parse_float(value: object) -> Optional[float]:
    text = _clean(value)
    if text is None:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if math.isnan(number):
        return None
    return number


def _first(params: Mapping[str, object], *names: str) -> object:
    for name in names:
        value = params.get(name)
        if _clean(value) is not None:
            return value
    return None


def parse_proximity(lon: object, lat: object, max_distance: object) -> Optional[Proximity]:
    """All three values or nothing; a complete but unusable triple is a client error."""
    if _clean(lon) is None or _clean(lat) is None or _clean(max_distance) is None:
        return None

    lon_f = _parse_float(lon)
    lat_f = _parse_float(lat)
    dist_f = _parse_float(max_distance)
    if lon_f is None or lat_f is None or dist_f is None:
        raise ValidationError("lon, lat and maxDistance must be numbers")
    if not -180.0 <= lon_f <= 180.0:
        raise ValidationError("lon must be between -180 and 180")
    if not -90.0 <= lat_f <= 90.0:
        raise ValidationError("lat must be between -90 and 90")
    if dist_f < 0:
        raise ValidationError("maxDistance must not be negative")
    return Proximity(longitude=lon_f, latitude=lat_f, max_distance_m=dist_f)


# --- Builder -----------------------------------------------------------------

def build_job_query(params: Mapping[str, object], *, now: Optional[datetime] = None) -> JobQuery:
    """Build a :class:`JobQuery` from listing parameters.

    Recognised keys: status, jobType, city, skills, datePosted, minPay, maxPay,
    employerId, q (alias search), lon (alias long), lat, maxDistance.
    Clause order is fixed so equal inputs always compile to equal SQL.
    """
    now = now or utcnow()
    clauses: list[Predicate] = []

    status = _clean(params.get("status"))
    if status:
        clauses.append(StatusIs(status))

    job_types = _split_csv(params.get("jobType"))
    if job_types:
        clauses.append(JobTypeIn(tuple(dict.fromkeys(t.lower() for t in job_types))))

    city = _clean(params.get("city"))
    if city:
        clauses.append(CityContains(city))

    skills = _split_csv(params.get("skills"))
    if skills:
        clauses.append(SkillsAny(tuple(dict.fromkeys(s.lower() for s in skills))))

    window = DATE_POSTED_WINDOWS.get(_clean(params.get("datePosted")) or "")
    if window is not None:
        clauses.append(PostedSince(now - window))

    min_pay = _parse_float(params.get("minPay"))
    if min_pay is not None:
        clauses.append(PayMaxAtLeast(min_pay))

    max_pay = _parse_float(params.get("maxPay"))
    if max_pay is not None:
        clauses.append(PayMinAtMost(max_pay))

    employer_raw = _clean(params.get("employerId"))
    if employer_raw is not None:
        try:
            clauses.append(EmployerIs(int(employer_raw)))
        except ValueError:
            clauses.append(MatchNothing(f"employerId {employer_raw!r} is not a valid id"))

    search = _clean(_first(params, "q", "search"))
    if search:
        clauses.append(TextSearch(search))

    proximity = parse_proximity(
        _first(params, "lon", "long"),
        params.get("lat"),
        params.get("maxDistance"),
    )
    return JobQuery(predicates=tuple(clauses), proximity=proximity)


__all__ = [
    "DATE_POSTED_WINDOWS",
    "StatusIs",
    "JobTypeIn",
    "CityContains",
    "SkillsAny",
    "PostedSince",
    "PayMaxAtLeast",
    "PayMinAtMost",
    "EmployerIs",
    "TextSearch",
    "MatchNothing",
    "Predicate",
    "Proximity",
    "JobQuery",
    "build_job_query",
    "parse_proximity",
]
