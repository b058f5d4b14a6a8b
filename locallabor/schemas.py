from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from locallabor.db.models import APPLICATION_STATUSES, JOB_TYPES, PAY_TYPES


def _split_skills(value: Union[str, List[str], None]) -> Optional[List[str]]:
    if value is None:
        return None
    parts = value.split(",") if isinstance(value, str) else value
    skills = [str(s).strip() for s in parts if str(s).strip()]
    return skills or None


def _one_of(value: Optional[str], allowed: tuple[str, ...], label: str) -> Optional[str]:
    if value is None:
        return None
    if value not in allowed:
        raise ValueError(f"{label} must be one of: {', '.join(allowed)}")
    return value


# -------------------------
# Responses
# -------------------------
class EmployerSummary(BaseModel):
    id: int
    full_name: str
    company_name: Optional[str] = None
    email: str
    phone_number: Optional[str] = None
    profile_picture_url: Optional[str] = None

    class Config:
        from_attributes = True  # pydantic v2


class LocationOut(BaseModel):
    type: str = "Point"
    coordinates: List[float]  # [longitude, latitude]
    address_text: str


class JobOut(BaseModel):
    id: int
    employer_id: int
    employer: Optional[EmployerSummary] = None
    title: str
    description: str
    job_type: str
    city: str
    location: LocationOut
    location_known: bool
    pay_rate_min: float
    pay_rate_max: float
    pay_type: str
    application_deadline: Optional[datetime] = None
    required_skills: List[str] = []
    image_url: str
    status: str
    posted_at: datetime
    created_at: datetime
    updated_at: datetime
    distance_meters: Optional[float] = None
    applicants_count: Optional[int] = None


class JobDetailOut(JobOut):
    has_applied: Optional[bool] = None


class JobsPage(BaseModel):
    jobs: List[JobOut]
    total: int
    current_page: int
    total_pages: int


class DeletedOut(BaseModel):
    message: str
    id: int


class ApplicantSummary(BaseModel):
    id: int
    full_name: str
    email: str
    phone_number: Optional[str] = None
    profile_picture_url: Optional[str] = None

    class Config:
        from_attributes = True


class ApplicationOut(BaseModel):
    id: int
    job_id: int
    applicant_id: int
    status: str
    resume_url: str
    cover_letter_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    applicant: Optional[ApplicantSummary] = None
    job_title: Optional[str] = None
    job_status: Optional[str] = None


class RatingOut(BaseModel):
    id: int
    rater_id: int
    target_id: int
    job_id: Optional[int] = None
    rating: int
    comment: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class RatingAverage(BaseModel):
    average_rating: float
    total_ratings: int


# -------------------------
# Requests
# -------------------------
class JobCreate(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: str = Field(min_length=1)
    job_type: str
    city: str = Field(min_length=1, max_length=200)
    pay_rate_min: float = Field(ge=0)
    pay_rate_max: float = Field(ge=0)
    pay_type: str
    application_deadline: Optional[datetime] = None
    required_skills: Union[str, List[str], None] = None

    @field_validator("title", "description", "city")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("job_type")
    @classmethod
    def _job_type(cls, v: str) -> str:
        return _one_of(v, JOB_TYPES, "job_type")

    @field_validator("pay_type")
    @classmethod
    def _pay_type(cls, v: str) -> str:
        return _one_of(v, PAY_TYPES, "pay_type")

    def skills(self) -> List[str]:
        return _split_skills(self.required_skills) or []


class JobUpdate(BaseModel):
    """Partial update: a missing, null or empty value leaves the field unchanged."""

    title: Optional[str] = None
    description: Optional[str] = None
    job_type: Optional[str] = None
    city: Optional[str] = None
    pay_rate_min: Optional[float] = Field(default=None, ge=0)
    pay_rate_max: Optional[float] = Field(default=None, ge=0)
    pay_type: Optional[str] = None
    application_deadline: Optional[datetime] = None
    required_skills: Union[str, List[str], None] = None
    status: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _empty_means_unchanged(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        if isinstance(v, list) and not v:
            return None
        return v

    @field_validator("title", "description", "city")
    @classmethod
    def _strip(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else None

    def skills(self) -> Optional[List[str]]:
        return _split_skills(self.required_skills)


class ApplicationStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def _status(cls, v: str) -> str:
        return _one_of(v, APPLICATION_STATUSES, "status")


class RatingCreate(BaseModel):
    target_id: int
    job_id: Optional[int] = None
    rating: int
    comment: Optional[str] = Field(default=None, max_length=500)
