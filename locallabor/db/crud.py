from typing import Iterable, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from locallabor.db.models import Application, Job, JobSkill, Rating, User


def _normalize_skills(skills: Iterable[str]) -> list[str]:
    """
    Strip blanks and drop case-insensitive duplicates, keeping the first spelling.
    Order is irrelevant to matching but kept stable for display.
    """
    seen: set[str] = set()
    out: list[str] = []
    for raw in skills:
        skill = str(raw).strip()
        if not skill or skill.lower() in seen:
            continue
        seen.add(skill.lower())
        out.append(skill[:80])
    return out


def _apply_job_skills(job: Job, skills: Optional[Iterable[str]]) -> None:
    """
    Replace the job's skill set with the provided iterable.
    If skills is None, do nothing (keeps existing values).
    """
    if skills is None:
        return
    current = {s.skill: s for s in job.skills}
    job.skills = [current.get(skill) or JobSkill(skill=skill) for skill in _normalize_skills(skills)]


# --- Jobs --------------------------------------------------------------------

def create_job(session: Session, job_data: dict) -> Job:
    """
    Create a Job row. `skills` (list[str]) in job_data is written to job_skills.
    posted_at defaults to now when absent.
    """
    skills = job_data.pop("skills", None)

    job = Job(**job_data)
    _apply_job_skills(job, skills or [])
    session.add(job)

    session.commit()
    session.refresh(job)
    return job


def get_job_by_id(session: Session, job_id: int) -> Optional[Job]:
    return session.scalars(
        select(Job).where(Job.id == job_id).options(selectinload(Job.skills))
    ).first()


def update_job(session: Session, job: Job, changes: dict) -> Job:
    """
    Apply `changes` to an existing job. Keys whose value is None are skipped;
    `skills` replaces job_skills when present.
    """
    skills = changes.pop("skills", None)
    for key, value in changes.items():
        if key == "id" or value is None:
            continue
        setattr(job, key, value)
    _apply_job_skills(job, skills)

    session.commit()
    session.refresh(job)
    return job


def delete_job(session: Session, job: Job) -> None:
    # Applications and skills go with the job (ORM cascade); ratings keep their row
    session.execute(update(Rating).where(Rating.job_id == job.id).values(job_id=None))
    session.delete(job)
    session.commit()


# --- User directory ----------------------------------------------------------

def get_user(session: Session, user_id: int) -> Optional[User]:
    return session.get(User, user_id)


# --- Applications ------------------------------------------------------------

def find_application(session: Session, job_id: int, applicant_id: int) -> Optional[Application]:
    return session.scalars(
        select(Application).where(
            Application.job_id == job_id,
            Application.applicant_id == applicant_id,
        )
    ).first()


def create_application(session: Session, application_data: dict) -> Application:
    """Insert an application; a duplicate (job, applicant) raises IntegrityError."""
    application = Application(**application_data)
    session.add(application)
    session.commit()
    session.refresh(application)
    return application


def get_application(session: Session, application_id: int) -> Optional[Application]:
    return session.scalars(
        select(Application)
        .where(Application.id == application_id)
        .options(selectinload(Application.job))
    ).first()


def applications_for_job(session: Session, job_id: int) -> Sequence[Application]:
    return session.scalars(
        select(Application)
        .where(Application.job_id == job_id)
        .options(selectinload(Application.applicant))
        .order_by(Application.created_at.desc(), Application.id.desc())
    ).all()


def applications_for_applicant(session: Session, applicant_id: int) -> Sequence[Application]:
    return session.scalars(
        select(Application)
        .where(Application.applicant_id == applicant_id)
        .options(selectinload(Application.job))
        .order_by(Application.created_at.desc(), Application.id.desc())
    ).all()


def set_application_status(session: Session, application: Application, status: str) -> Application:
    application.status = status
    session.commit()
    session.refresh(application)
    return application


# --- Ratings -----------------------------------------------------------------

def find_rating(session: Session, rater_id: int, target_id: int, job_id: int) -> Optional[Rating]:
    return session.scalars(
        select(Rating).where(
            Rating.rater_id == rater_id,
            Rating.target_id == target_id,
            Rating.job_id == job_id,
        )
    ).first()


def create_rating(session: Session, rating_data: dict) -> Rating:
    rating = Rating(**rating_data)
    session.add(rating)
    session.commit()
    session.refresh(rating)
    return rating


def ratings_for_user(session: Session, target_id: int) -> Sequence[Rating]:
    return session.scalars(
        select(Rating)
        .where(Rating.target_id == target_id)
        .order_by(Rating.created_at.desc(), Rating.id.desc())
    ).all()


def ratings_for_job(session: Session, job_id: int) -> Sequence[Rating]:
    return session.scalars(
        select(Rating).where(Rating.job_id == job_id).order_by(Rating.created_at.desc(), Rating.id.desc())
    ).all()


def rating_average(session: Session, target_id: int) -> tuple[Optional[float], int]:
    avg, total = session.execute(
        select(func.avg(Rating.rating), func.count(Rating.id)).where(Rating.target_id == target_id)
    ).one()
    return (float(avg) if avg is not None else None), int(total or 0)
