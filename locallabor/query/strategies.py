"""Two ways to turn compiled clauses into one ranked page of jobs.

Both strategies receive the *same* list of compiled clauses; the only thing
proximity changes is ordering and the radius cut. Keep it that way: any
filter added to one path must come from the shared clause list.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Sequence

from sqlalchemy import ColumnElement, func, select
from sqlalchemy.orm import Session, selectinload

from locallabor.db.models import Job
from locallabor.geo.distance import haversine_m, latitude_band
from locallabor.query.paging import PageRequest
from locallabor.query.predicates import JobQuery, Proximity

LOGGER = logging.getLogger(__name__)


@dataclass
class RankedPage:
    jobs: list[Job]
    total: int
    distances: dict[int, float] = field(default_factory=dict)


class RankingStrategy(ABC):
    name: str

    @abstractmethod
    def fetch(
        self,
        session: Session,
        clauses: Sequence[ColumnElement[bool]],
        page: PageRequest,
    ) -> RankedPage:
        """Return the requested page and the total match count before paging."""


class PlainFilterStrategy(RankingStrategy):
    """Unordered filter, newest first."""

    name = "plain"

    def fetch(self, session, clauses, page):
        total = session.scalar(select(func.count()).select_from(Job).where(*clauses)) or 0
        if total == 0 or page.offset >= total:
            return RankedPage(jobs=[], total=total)

        stmt = (
            select(Job)
            .where(*clauses)
            .options(selectinload(Job.skills))
            .order_by(Job.posted_at.desc(), Job.id.desc())
            .offset(page.offset)
            .limit(page.size)
        )
        return RankedPage(jobs=list(session.scalars(stmt).all()), total=total)


class ProximityStrategy(RankingStrategy):
    """Pre-filter in SQL, then rank by great-circle distance.

    Candidates are narrowed by a latitude band before distances are computed;
    only the ids on the requested page are loaded as full rows.
    """

    name = "proximity"

    def __init__(self, proximity: Proximity):
        self.proximity = proximity

    def fetch(self, session, clauses, page):
        p = self.proximity
        stmt = select(Job.id, Job.longitude, Job.latitude, Job.posted_at).where(*clauses)
        band = latitude_band(p.latitude, p.max_distance_m)
        if band is not None:
            stmt = stmt.where(Job.latitude.between(*band))

        ranked: list[tuple[float, object, int]] = []
        candidates = 0
        for job_id, lon, lat, posted_at in session.execute(stmt):
            candidates += 1
            distance = haversine_m(p.longitude, p.latitude, lon, lat)
            if distance <= p.max_distance_m:
                ranked.append((distance, posted_at, job_id))

        # distance asc, then posted_at desc, then id desc (stable sorts, last key first)
        ranked.sort(key=lambda r: r[2], reverse=True)
        ranked.sort(key=lambda r: r[1], reverse=True)
        ranked.sort(key=lambda r: r[0])

        total = len(ranked)
        window = ranked[page.offset: page.offset + page.size]
        if not window:
            return RankedPage(jobs=[], total=total)

        ids = [job_id for _, _, job_id in window]
        rows = session.scalars(
            select(Job).where(Job.id.in_(ids)).options(selectinload(Job.skills))
        ).all()
        by_id = {job.id: job for job in rows}
        LOGGER.debug(
            "proximity candidates=%s within_radius=%s page=%s",
            candidates,
            total,
            page.page,
        )
        return RankedPage(
            jobs=[by_id[i] for i in ids if i in by_id],
            total=total,
            distances={job_id: distance for distance, _, job_id in window},
        )


def select_strategy(query: JobQuery) -> RankingStrategy:
    if query.proximity is not None:
        return ProximityStrategy(query.proximity)
    return PlainFilterStrategy()
