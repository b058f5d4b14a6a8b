"""Read-only decoration of job rows for responses.

Every helper here issues at most one query for a whole page; nothing writes
back to the ORM objects it is given.
"""
from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import exists, func, select
from sqlalchemy.orm import Session

from locallabor.db.models import Application, Job, User
from locallabor.query.paging import PageRequest, total_pages
from locallabor.query.strategies import RankedPage
from locallabor.schemas import EmployerSummary, JobOut, JobsPage, LocationOut


def employer_summaries(session: Session, employer_ids: Iterable[int]) -> dict[int, EmployerSummary]:
    ids = sorted(set(employer_ids))
    if not ids:
        return {}
    users = session.scalars(select(User).where(User.id.in_(ids))).all()
    return {u.id: EmployerSummary.model_validate(u) for u in users}


def applicant_counts(session: Session, job_ids: Iterable[int]) -> dict[int, int]:
    """Applications per job, one GROUP BY for all ids; jobs without applicants map to 0."""
    ids = sorted(set(job_ids))
    if not ids:
        return {}
    rows = session.execute(
        select(Application.job_id, func.count(Application.id))
        .where(Application.job_id.in_(ids))
        .group_by(Application.job_id)
    ).all()
    counts = {job_id: 0 for job_id in ids}
    counts.update({job_id: count for job_id, count in rows})
    return counts


def has_applied(session: Session, job_id: int, applicant_id: int) -> bool:
    return bool(
        session.scalar(
            select(
                exists().where(
                    Application.job_id == job_id,
                    Application.applicant_id == applicant_id,
                )
            )
        )
    )


def job_to_out(
    job: Job,
    *,
    employer: Optional[EmployerSummary] = None,
    distance_meters: Optional[float] = None,
    applicants_count: Optional[int] = None,
    out_type: type[JobOut] = JobOut,
    **extra,
) -> JobOut:
    return out_type(
        id=job.id,
        employer_id=job.employer_id,
        employer=employer,
        title=job.title,
        description=job.description,
        job_type=job.job_type,
        city=job.city,
        location=LocationOut(
            coordinates=[job.longitude, job.latitude],
            address_text=job.address_text,
        ),
        location_known=job.location_known,
        pay_rate_min=job.pay_rate_min,
        pay_rate_max=job.pay_rate_max,
        pay_type=job.pay_type,
        application_deadline=job.application_deadline,
        required_skills=job.required_skills,
        image_url=job.image_url,
        status=job.status,
        posted_at=job.posted_at,
        created_at=job.created_at,
        updated_at=job.updated_at,
        distance_meters=distance_meters,
        applicants_count=applicants_count,
        **extra,
    )


def project_page(
    session: Session,
    ranked: RankedPage,
    page: PageRequest,
    *,
    with_applicant_counts: bool = False,
) -> JobsPage:
    employers = employer_summaries(session, (j.employer_id for j in ranked.jobs))
    counts = applicant_counts(session, (j.id for j in ranked.jobs)) if with_applicant_counts else {}
    items = [
        job_to_out(
            job,
            employer=employers.get(job.employer_id),
            distance_meters=ranked.distances.get(job.id),
            applicants_count=counts.get(job.id) if with_applicant_counts else None,
        )
        for job in ranked.jobs
    ]
    return JobsPage(
        jobs=items,
        total=ranked.total,
        current_page=page.page,
        total_pages=total_pages(ranked.total, page.size),
    )
