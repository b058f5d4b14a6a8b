from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from fastapi import Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from locallabor.api.deps import (
    job_create_body,
    job_service,
    job_update_body,
    optional_user,
    rating_service,
    require_roles,
    current_user,
)
from locallabor.config import get_settings
from locallabor.db.models import User
from locallabor.errors import LaborError
from locallabor.log import configure_logging
from locallabor.schemas import (
    ApplicationOut,
    ApplicationStatusUpdate,
    DeletedOut,
    JobCreate,
    JobDetailOut,
    JobOut,
    JobsPage,
    JobUpdate,
    RatingAverage,
    RatingCreate,
    RatingOut,
)
from locallabor.services import JobDiscoveryService, RatingService, Upload

configure_logging()
LOGGER = logging.getLogger(__name__)


# -------------------------
# FastAPI setup
# -------------------------
app = FastAPI(title="Local Labor API", version="0.1.0")

# CORS (open for now; tighten before public deploy)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Uploaded documents and job images
app.mount("/uploads", StaticFiles(directory=get_settings().upload_dir, check_dir=False), name="uploads")


@app.exception_handler(LaborError)
async def labor_error_handler(request: Request, exc: LaborError):
    if exc.status_code >= 500:
        LOGGER.warning("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


EmployerOrAdmin = require_roles("employer", "admin")
Laborer = require_roles("laborer")


# -------------------------
# Routes
# -------------------------
@app.get("/", tags=["meta"])  # small friendly root
async def root():
    return {"message": "Local Labor API is running"}


@app.get("/healthz", tags=["meta"])  # k8s/Render probes
async def healthz():
    return {"status": "ok"}


@app.get("/jobs", response_model=JobsPage, tags=["jobs"])
def get_jobs(
    page: Optional[str] = Query(None, description="1-based page number; invalid values fall back to 1"),
    limit: Optional[str] = Query(None, description="Page size; invalid values fall back to the default"),
    status: Optional[str] = Query(None, description="Exact status: Active|Filled|Closed"),
    job_type: Optional[str] = Query(None, alias="jobType", description="Comma-separated job types; match any"),
    city: Optional[str] = Query(None, description="Case-insensitive substring of the city"),
    skills: Optional[str] = Query(None, description="Comma-separated skills; match any"),
    date_posted: Optional[str] = Query(None, alias="datePosted", description="24h|3d|7d|30d"),
    min_pay: Optional[str] = Query(None, alias="minPay", description="Job pay range must reach this amount"),
    max_pay: Optional[str] = Query(None, alias="maxPay", description="Job pay range must start at or below this"),
    employer_id: Optional[str] = Query(None, alias="employerId"),
    q: Optional[str] = Query(None, description="Free-text search over title, description and location"),
    search: Optional[str] = Query(None, description="Alias of q"),
    lon: Optional[str] = Query(None, description="Longitude for proximity search"),
    long: Optional[str] = Query(None, description="Alias of lon"),
    lat: Optional[str] = Query(None, description="Latitude for proximity search"),
    max_distance: Optional[str] = Query(None, alias="maxDistance", description="Radius in metres"),
    service: JobDiscoveryService = Depends(job_service),
):
    """List jobs with filters & pagination.

    Proximity applies only when lon, lat and maxDistance are all present; the
    results are then ordered by distance instead of recency.
    """
    params = {
        "status": status,
        "jobType": job_type,
        "city": city,
        "skills": skills,
        "datePosted": date_posted,
        "minPay": min_pay,
        "maxPay": max_pay,
        "employerId": employer_id,
        "q": q,
        "search": search,
        "lon": lon,
        "long": long,
        "lat": lat,
        "maxDistance": max_distance,
    }
    return service.list_jobs(params, page=page, limit=limit)


@app.post("/jobs", response_model=JobOut, status_code=201, tags=["jobs"])
def create_job(
    user: User = Depends(EmployerOrAdmin),
    body: Tuple[JobCreate, Optional[Upload]] = Depends(job_create_body),
    service: JobDiscoveryService = Depends(job_service),
):
    """Create a job from JSON, or from multipart fields plus an optional ``job_image`` file."""
    payload, image = body
    return service.create_job(user, payload, image)


@app.get("/jobs/my-jobs", response_model=JobsPage, tags=["jobs"])
def get_my_jobs(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    user: User = Depends(EmployerOrAdmin),
    service: JobDiscoveryService = Depends(job_service),
):
    return service.my_jobs(user, {"status": status}, page=page, limit=limit)


@app.get("/jobs/my-applications", response_model=List[ApplicationOut], tags=["applications"])
def get_my_applications(
    user: User = Depends(Laborer),
    service: JobDiscoveryService = Depends(job_service),
):
    return service.my_applications(user)


@app.put("/jobs/applications/{application_id}/status", response_model=ApplicationOut, tags=["applications"])
def update_application_status(
    application_id: int,
    payload: ApplicationStatusUpdate,
    user: User = Depends(EmployerOrAdmin),
    service: JobDiscoveryService = Depends(job_service),
):
    return service.update_application_status(application_id, user, payload.status)


@app.get("/jobs/{job_id}", response_model=JobDetailOut, tags=["jobs"])
def get_job_detail(
    job_id: int,
    viewer: Optional[User] = Depends(optional_user),
    service: JobDiscoveryService = Depends(job_service),
):
    return service.get_job(job_id, viewer)


@app.put("/jobs/{job_id}", response_model=JobOut, tags=["jobs"])
def update_job(
    job_id: int,
    user: User = Depends(EmployerOrAdmin),
    body: Tuple[JobUpdate, Optional[Upload]] = Depends(job_update_body),
    service: JobDiscoveryService = Depends(job_service),
):
    payload, image = body
    return service.update_job(job_id, user, payload, image)


@app.delete("/jobs/{job_id}", response_model=DeletedOut, tags=["jobs"])
def delete_job(
    job_id: int,
    user: User = Depends(EmployerOrAdmin),
    service: JobDiscoveryService = Depends(job_service),
):
    return service.delete_job(job_id, user)


@app.post("/jobs/{job_id}/apply", response_model=ApplicationOut, status_code=201, tags=["applications"])
def apply_for_job(
    job_id: int,
    resume: UploadFile = File(...),
    cover_letter: Optional[UploadFile] = File(None),
    user: User = Depends(Laborer),
    service: JobDiscoveryService = Depends(job_service),
):
    cover = (
        Upload(cover_letter.filename, cover_letter.file, cover_letter.content_type)
        if cover_letter is not None
        else None
    )
    return service.apply_for_job(job_id, user, Upload(resume.filename, resume.file, resume.content_type), cover)


@app.get("/jobs/{job_id}/applicants", response_model=List[ApplicationOut], tags=["applications"])
def get_applicants(
    job_id: int,
    user: User = Depends(EmployerOrAdmin),
    service: JobDiscoveryService = Depends(job_service),
):
    return service.list_applicants(job_id, user)


@app.post("/ratings", response_model=RatingOut, status_code=201, tags=["ratings"])
def create_rating(
    payload: RatingCreate,
    user: User = Depends(current_user),
    service: RatingService = Depends(rating_service),
):
    return service.create_rating(user, payload)


@app.get("/ratings/user/{target_id}", response_model=List[RatingOut], tags=["ratings"])
def get_ratings_for_user(target_id: int, service: RatingService = Depends(rating_service)):
    return service.ratings_for_user(target_id)


@app.get("/ratings/user/{target_id}/average", response_model=RatingAverage, tags=["ratings"])
def get_average_rating(target_id: int, service: RatingService = Depends(rating_service)):
    return service.average_for_user(target_id)


@app.get("/ratings/job/{job_id}", response_model=List[RatingOut], tags=["ratings"])
def get_ratings_for_job(job_id: int, service: RatingService = Depends(rating_service)):
    return service.ratings_for_job(job_id)
