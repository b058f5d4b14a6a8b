from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Float,
    ForeignKey,
    Enum,
    UniqueConstraint,
    CheckConstraint,
    Text,
    Index,
    Integer,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Naive UTC timestamp; every datetime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# --- SQLAlchemy base ---------------------------------------------------------

class Base(DeclarativeBase):
    """Declarative base for all models."""
    pass


# --- Enums -------------------------------------------------------------------

USER_TYPES = ("laborer", "employer", "admin")

JOB_TYPES = ("Full-time", "Part-time", "Contract", "Temporary", "Seasonal")

PAY_TYPES = ("Hourly", "Fixed Price", "Daily", "Weekly", "Monthly")

JOB_STATUSES = ("Active", "Filled", "Closed")
TERMINAL_JOB_STATUSES = ("Filled", "Closed")

APPLICATION_STATUSES = ("Pending", "Reviewed", "Interview Scheduled", "Accepted", "Rejected")

# Stored when the geocoder could not resolve the city: "location unknown".
SENTINEL_LONGITUDE = 0.0
SENTINEL_LATITUDE = 0.0

DEFAULT_PROFILE_PICTURE = "https://via.placeholder.com/150"


# --- Models ------------------------------------------------------------------

class User(Base):
    """Directory entry. Accounts are created by the auth service, not here."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    user_type: Mapped[str] = mapped_column(
        Enum(*USER_TYPES, name="user_type_enum", native_enum=False), nullable=False, index=True
    )
    phone_number: Mapped[Optional[str]] = mapped_column(String(40))
    company_name: Mapped[Optional[str]] = mapped_column(String(200))
    profile_picture_url: Mapped[str] = mapped_column(
        String(600), default=DEFAULT_PROFILE_PICTURE, nullable=False
    )
    city: Mapped[Optional[str]] = mapped_column(String(200))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    jobs: Mapped[list["Job"]] = relationship(back_populates="employer")

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<User id={self.id} type={self.user_type} username={self.username!r}>"


class Job(Base):
    __tablename__ = "jobs"
    __table_args__ = (
        Index("ix_jobs_status_type_posted_at", "status", "job_type", "posted_at"),
        Index("ix_jobs_geo", "latitude", "longitude"),
        Index("ix_jobs_posted_at", "posted_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # Ownership never transfers
    employer_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    employer: Mapped["User"] = relationship(back_populates="jobs")

    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    job_type: Mapped[str] = mapped_column(
        Enum(*JOB_TYPES, name="job_type_enum", native_enum=False), nullable=False
    )

    # Location: `city` is what the employer typed, the point is for ranking only
    city: Mapped[str] = mapped_column(String(200), nullable=False)
    address_text: Mapped[str] = mapped_column(String(500), nullable=False)
    longitude: Mapped[float] = mapped_column(Float, default=SENTINEL_LONGITUDE, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, default=SENTINEL_LATITUDE, nullable=False)

    # Compensation (min > max is tolerated)
    pay_rate_min: Mapped[float] = mapped_column(Float, nullable=False)
    pay_rate_max: Mapped[float] = mapped_column(Float, nullable=False)
    pay_type: Mapped[str] = mapped_column(
        Enum(*PAY_TYPES, name="pay_type_enum", native_enum=False), nullable=False
    )

    application_deadline: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    image_url: Mapped[str] = mapped_column(String(600), nullable=False)
    status: Mapped[str] = mapped_column(
        Enum(*JOB_STATUSES, name="job_status_enum", native_enum=False), default="Active", nullable=False
    )

    # posted_at drives recency filters; created_at/updated_at are audit only
    posted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    skills: Mapped[list["JobSkill"]] = relationship(
        back_populates="job", cascade="all, delete-orphan", order_by="JobSkill.id"
    )
    applications: Mapped[list["Application"]] = relationship(
        back_populates="job", cascade="all, delete-orphan"
    )

    @property
    def required_skills(self) -> list[str]:
        return [s.skill for s in self.skills]

    @property
    def location_known(self) -> bool:
        return not (self.longitude == SENTINEL_LONGITUDE and self.latitude == SENTINEL_LATITUDE)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Job id={self.id} status={self.status} title={self.title!r}>"


class JobSkill(Base):
    """One required skill per row; the set is replaced wholesale on update."""

    __tablename__ = "job_skills"
    __table_args__ = (UniqueConstraint("job_id", "skill", name="uq_job_skill"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    job_id: Mapped[int] = mapped_column(ForeignKey("jobs.id", ondelete="CASCADE"), index=True)
    job: Mapped["Job"] = relationship(back_populates="skills")

    skill: Mapped[str] = mapped_column(String(80), nullable=False)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<JobSkill job_id={self.job_id} skill={self.skill!r}>"


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        # The database, not the request handler, is the authority on duplicates
        UniqueConstraint("job_id", "applicant_id", name="uq_application_job_applicant"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    job_id: Mapped[int] = mapped_column(ForeignKey("jobs.id", ondelete="CASCADE"), index=True)
    job: Mapped["Job"] = relationship(back_populates="applications")
    applicant_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    applicant: Mapped["User"] = relationship()

    status: Mapped[str] = mapped_column(
        Enum(*APPLICATION_STATUSES, name="application_status_enum", native_enum=False),
        default="Pending",
        nullable=False,
    )
    resume_url: Mapped[str] = mapped_column(String(600), nullable=False)
    cover_letter_url: Mapped[Optional[str]] = mapped_column(String(600))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Application id={self.id} job_id={self.job_id} applicant_id={self.applicant_id}>"


class Rating(Base):
    __tablename__ = "ratings"
    __table_args__ = (
        UniqueConstraint("rater_id", "target_id", "job_id", name="uq_rating_rater_target_job"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_rating_range"),
        CheckConstraint("rater_id <> target_id", name="ck_rating_not_self"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    rater_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    rater: Mapped["User"] = relationship(foreign_keys=[rater_id])
    target_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    job_id: Mapped[Optional[int]] = mapped_column(ForeignKey("jobs.id", ondelete="SET NULL"), index=True)
    job: Mapped[Optional["Job"]] = relationship()

    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Rating id={self.id} target_id={self.target_id} rating={self.rating}>"


__all__ = [
    "Base",
    "User",
    "Job",
    "JobSkill",
    "Application",
    "Rating",
    "USER_TYPES",
    "JOB_TYPES",
    "PAY_TYPES",
    "JOB_STATUSES",
    "TERMINAL_JOB_STATUSES",
    "APPLICATION_STATUSES",
    "SENTINEL_LONGITUDE",
    "SENTINEL_LATITUDE",
    "utcnow",
]
