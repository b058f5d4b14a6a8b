"""Re-geocode jobs that were stored with the sentinel location.

Jobs land on the sentinel when the geocoder was down or found no match at
write time. They stay listable but never match a proximity search until
this runs and resolves them.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from locallabor.db.models import SENTINEL_LATITUDE, SENTINEL_LONGITUDE, Job
from locallabor.geo.geocoder import Geocoder, GeocodingError

LOGGER = logging.getLogger(__name__)


@dataclass
class BackfillSummary:
    checked: int = 0
    updated: int = 0
    unresolved: int = 0
    failed: int = 0
    dry_run: bool = False
    sample: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def backfill_locations(
    session: Session,
    geocoder: Geocoder,
    *,
    limit: Optional[int] = None,
    dry_run: bool = False,
    sample_size: int = 10,
) -> BackfillSummary:
    stmt = (
        select(Job.id, Job.city)
        .where(Job.longitude == SENTINEL_LONGITUDE, Job.latitude == SENTINEL_LATITUDE)
        .order_by(Job.id)
    )
    if limit:
        stmt = stmt.limit(limit)
    pending = session.execute(stmt).all()
    # No transaction stays open across geocoder calls
    session.commit()

    summary = BackfillSummary(dry_run=dry_run)
    resolved: dict[int, tuple[float, float, str]] = {}
    for job_id, city in pending:
        summary.checked += 1
        try:
            result = geocoder.resolve(city)
        except GeocodingError as exc:
            LOGGER.warning("backfill geocoding failed job=%s city=%r error=%s", job_id, city, exc)
            summary.failed += 1
            continue
        if result is None:
            summary.unresolved += 1
            continue
        resolved[job_id] = (result.longitude, result.latitude, result.formatted_address)
        if len(summary.sample) < sample_size:
            summary.sample.append(
                {"id": job_id, "city": city, "coordinates": [result.longitude, result.latitude]}
            )

    summary.updated = len(resolved)
    if resolved and not dry_run:
        for job in session.scalars(select(Job).where(Job.id.in_(list(resolved)))):
            job.longitude, job.latitude, job.address_text = resolved[job.id]
        session.commit()

    LOGGER.info(
        "location backfill checked=%s updated=%s unresolved=%s failed=%s dry_run=%s",
        summary.checked,
        summary.updated,
        summary.unresolved,
        summary.failed,
        dry_run,
    )
    return summary
