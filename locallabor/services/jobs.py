"""Job discovery service: the one entry point the HTTP layer talks to.

Collaborator failures are mapped onto :mod:`locallabor.errors` here and
nowhere else. The geocoder is always called before anything is written, with
no transaction held open.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO, Iterator, Mapping, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from locallabor import storage
from locallabor.config import Settings
from locallabor.db import crud
from locallabor.db.models import (
    APPLICATION_STATUSES,
    JOB_STATUSES,
    JOB_TYPES,
    PAY_TYPES,
    SENTINEL_LATITUDE,
    SENTINEL_LONGITUDE,
    TERMINAL_JOB_STATUSES,
    Application,
    Job,
    User,
    utcnow,
)
from locallabor.errors import (
    AuthorizationError,
    ConflictError,
    LaborError,
    NotFoundError,
    StoreError,
    UpstreamDependencyError,
    ValidationError,
)
from locallabor.geo.geocoder import Geocoder, GeocodingError
from locallabor.query.compiler import compile_predicates
from locallabor.query.paging import PageRequest
from locallabor.query.predicates import EmployerIs, JobQuery, build_job_query
from locallabor.query.projection import employer_summaries, has_applied, job_to_out, project_page
from locallabor.query.strategies import select_strategy
from locallabor.schemas import (
    ApplicantSummary,
    ApplicationOut,
    DeletedOut,
    JobCreate,
    JobDetailOut,
    JobOut,
    JobsPage,
    JobUpdate,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Upload:
    filename: Optional[str]
    fileobj: BinaryIO
    content_type: Optional[str] = None


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def application_to_out(app: Application, *, with_applicant: bool = False, with_job: bool = False) -> ApplicationOut:
    return ApplicationOut(
        id=app.id,
        job_id=app.job_id,
        applicant_id=app.applicant_id,
        status=app.status,
        resume_url=app.resume_url,
        cover_letter_url=app.cover_letter_url,
        created_at=app.created_at,
        updated_at=app.updated_at,
        applicant=ApplicantSummary.model_validate(app.applicant) if with_applicant and app.applicant else None,
        job_title=app.job.title if with_job and app.job else None,
        job_status=app.job.status if with_job and app.job else None,
    )


class JobDiscoveryService:
    def __init__(self, session: Session, settings: Settings, geocoder: Geocoder):
        self.session = session
        self.settings = settings
        self.geocoder = geocoder

    # -------------------------
    # plumbing
    # -------------------------
    @contextmanager
    def _store(self, action: str) -> Iterator[None]:
        try:
            yield
        except LaborError:
            raise
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.exception("store failure during %s", action)
            raise StoreError() from exc

    def _release_transaction(self) -> None:
        # Reads may have begun a transaction; end it before a slow external call.
        if self.session.in_transaction():
            self.session.commit()

    def _page(self, page: object, limit: object) -> PageRequest:
        return PageRequest.coerce(
            page,
            limit,
            default_size=self.settings.default_page_size,
            max_size=self.settings.max_page_size,
        )

    def _require_job(self, job_id: int) -> Job:
        with self._store("load job"):
            job = crud.get_job_by_id(self.session, job_id)
        if job is None:
            raise NotFoundError("Job not found")
        return job

    @staticmethod
    def _require_owner_or_admin(job: Job, actor: User, verb: str) -> None:
        if actor.user_type != "admin" and job.employer_id != actor.id:
            raise AuthorizationError(f"Not authorized to {verb} this job")

    # -------------------------
    # geocoding policy
    # -------------------------
    def _sentinel(self, city: str) -> dict:
        return {"longitude": SENTINEL_LONGITUDE, "latitude": SENTINEL_LATITUDE, "address_text": city}

    def _locate(self, city: str) -> dict:
        """Resolve `city` into location columns, applying the degradation policy."""
        strict = self.settings.geocode_strict
        try:
            result = self.geocoder.resolve(city)
        except GeocodingError as exc:
            if strict:
                LOGGER.error("geocoding failed city=%r error=%s (strict mode)", city, exc)
                raise UpstreamDependencyError() from exc
            LOGGER.warning("geocoding failed city=%r error=%s; storing sentinel location", city, exc)
            return self._sentinel(city)

        if result is None:
            if strict:
                raise ValidationError(
                    f'Could not find coordinates for the city: "{city}". Please enter a valid city.'
                )
            LOGGER.warning("geocoding found no match city=%r; storing sentinel location", city)
            return self._sentinel(city)

        return {
            "longitude": result.longitude,
            "latitude": result.latitude,
            "address_text": result.formatted_address,
        }

    # -------------------------
    # listing
    # -------------------------
    def _run(self, query: JobQuery, page: PageRequest, *, with_applicant_counts: bool = False) -> JobsPage:
        try:
            clauses = compile_predicates(query.predicates)
        except (TypeError, ValueError) as exc:
            LOGGER.warning("job listing failed closed: %s", exc)
            return JobsPage(jobs=[], total=0, current_page=page.page, total_pages=0)

        strategy = select_strategy(query)
        LOGGER.debug(
            "job listing strategy=%s clauses=%s page=%s size=%s",
            strategy.name,
            [type(p).__name__ for p in query.predicates],
            page.page,
            page.size,
        )
        with self._store("list jobs"):
            ranked = strategy.fetch(self.session, clauses, page)
            return project_page(self.session, ranked, page, with_applicant_counts=with_applicant_counts)

    def list_jobs(self, params: Mapping[str, object], page: object = None, limit: object = None) -> JobsPage:
        return self._run(build_job_query(params), self._page(page, limit))

    def my_jobs(
        self,
        owner: User,
        params: Optional[Mapping[str, object]] = None,
        page: object = None,
        limit: object = None,
    ) -> JobsPage:
        scoped = {k: v for k, v in (params or {}).items() if k != "employerId"}
        query = build_job_query(scoped).with_predicate(EmployerIs(owner.id))
        return self._run(query, self._page(page, limit), with_applicant_counts=True)

    def get_job(self, job_id: int, viewer: Optional[User] = None) -> JobDetailOut:
        job = self._require_job(job_id)
        with self._store("decorate job"):
            employer = employer_summaries(self.session, [job.employer_id]).get(job.employer_id)
            applied = None
            if viewer is not None and viewer.user_type == "laborer":
                applied = has_applied(self.session, job.id, viewer.id)
        return job_to_out(job, employer=employer, out_type=JobDetailOut, has_applied=applied)

    def _job_out(self, job: Job) -> JobOut:
        employer = employer_summaries(self.session, [job.employer_id]).get(job.employer_id)
        return job_to_out(job, employer=employer)

    # -------------------------
    # writes
    # -------------------------
    def _save_image(self, image: Upload) -> str:
        try:
            return storage.save_image(
                self.settings.upload_dir,
                image.filename,
                image.content_type,
                image.fileobj,
                max_bytes=self.settings.max_image_bytes,
            )
        except ValueError as exc:
            raise ValidationError(f"job_image: {exc}") from exc
        except OSError as exc:
            LOGGER.exception("could not store job image")
            raise StoreError("Could not store job image") from exc

    def _drop_image(self, url: Optional[str]) -> None:
        storage.remove_media(
            self.settings.upload_dir,
            url,
            subdir=storage.JOB_IMAGES_DIR,
            keep=(self.settings.default_image_url,),
        )

    def create_job(self, owner: User, payload: JobCreate, image: Optional[Upload] = None) -> JobOut:
        owner_id = owner.id
        self._release_transaction()
        location = self._locate(payload.city)
        image_url = self._save_image(image) if image is not None else None

        data = {
            "employer_id": owner_id,
            "title": payload.title,
            "description": payload.description,
            "job_type": payload.job_type,
            "city": payload.city,
            "pay_rate_min": payload.pay_rate_min,
            "pay_rate_max": payload.pay_rate_max,
            "pay_type": payload.pay_type,
            "application_deadline": _naive_utc(payload.application_deadline),
            "image_url": image_url or self.settings.default_image_url,
            "status": "Active",
            "posted_at": utcnow(),
            "skills": payload.skills(),
            **location,
        }
        try:
            with self._store("create job"):
                job = crud.create_job(self.session, data)
                out = self._job_out(job)
        except LaborError:
            self._drop_image(image_url)
            raise
        LOGGER.info(
            "job created id=%s employer=%s location_known=%s",
            out.id,
            owner_id,
            out.location_known,
        )
        return out

    def _check_status_change(self, current: str, new: str, actor: User) -> None:
        if new not in JOB_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(JOB_STATUSES)}")
        if new == current or actor.user_type == "admin":
            return
        if current in TERMINAL_JOB_STATUSES:
            raise ValidationError(f"A {current} job cannot be changed back; ask an administrator.")

    def update_job(self, job_id: int, actor: User, patch: JobUpdate, image: Optional[Upload] = None) -> JobOut:
        job = self._require_job(job_id)
        self._require_owner_or_admin(job, actor, "update")

        changes: dict = {}
        for name in ("title", "description", "pay_rate_min", "pay_rate_max"):
            value = getattr(patch, name)
            if value is not None:
                changes[name] = value
        if patch.job_type is not None:
            if patch.job_type not in JOB_TYPES:
                raise ValidationError(f"job_type must be one of: {', '.join(JOB_TYPES)}")
            changes["job_type"] = patch.job_type
        if patch.pay_type is not None:
            if patch.pay_type not in PAY_TYPES:
                raise ValidationError(f"pay_type must be one of: {', '.join(PAY_TYPES)}")
            changes["pay_type"] = patch.pay_type
        if patch.application_deadline is not None:
            changes["application_deadline"] = _naive_utc(patch.application_deadline)
        if patch.status is not None:
            self._check_status_change(job.status, patch.status, actor)
            changes["status"] = patch.status
        skills = patch.skills()
        if skills is not None:
            changes["skills"] = skills

        # Only a different city re-runs the geocoder
        if patch.city and patch.city != job.city:
            changes["city"] = patch.city
            self._release_transaction()
            changes.update(self._locate(patch.city))

        old_image = job.image_url
        if image is not None:
            changes["image_url"] = self._save_image(image)

        try:
            with self._store("update job"):
                job = crud.update_job(self.session, job, changes)
                out = self._job_out(job)
        except LaborError:
            self._drop_image(changes.get("image_url"))
            raise

        if "image_url" in changes:
            self._drop_image(old_image)
        LOGGER.info("job updated id=%s fields=%s", job_id, sorted(changes))
        return out

    def delete_job(self, job_id: int, actor: User) -> DeletedOut:
        job = self._require_job(job_id)
        self._require_owner_or_admin(job, actor, "delete")

        image_url = job.image_url
        documents: list[Optional[str]] = []
        with self._store("delete job"):
            for app in job.applications:
                documents.extend([app.resume_url, app.cover_letter_url])
            crud.delete_job(self.session, job)

        self._drop_image(image_url)
        self._discard(documents)
        LOGGER.info("job deleted id=%s by=%s", job_id, actor.id)
        return DeletedOut(message="Job removed successfully", id=job_id)

    # -------------------------
    # applications
    # -------------------------
    def _save_upload(self, field_name: str, upload: Upload) -> str:
        try:
            return storage.save_document(self.settings.upload_dir, field_name, upload.filename, upload.fileobj)
        except ValueError as exc:
            raise ValidationError(f"{field_name}: {exc}") from exc
        except OSError as exc:
            LOGGER.exception("could not store %s upload", field_name)
            raise StoreError("Could not store uploaded documents") from exc

    def apply_for_job(
        self,
        job_id: int,
        applicant: User,
        resume: Upload,
        cover_letter: Optional[Upload] = None,
    ) -> ApplicationOut:
        job = self._require_job(job_id)
        if job.status != "Active":
            raise ValidationError("This job is no longer accepting applications")
        with self._store("check application"):
            existing = crud.find_application(self.session, job.id, applicant.id)
        if existing is not None:
            raise ConflictError("You have already applied for this job")

        saved: list[str] = []
        try:
            saved.append(self._save_upload("resume", resume))
            cover_url = None
            if cover_letter is not None:
                cover_url = self._save_upload("cover_letter", cover_letter)
                saved.append(cover_url)
            application = crud.create_application(
                self.session,
                {
                    "job_id": job.id,
                    "applicant_id": applicant.id,
                    "resume_url": saved[0],
                    "cover_letter_url": cover_url,
                },
            )
        except IntegrityError as exc:
            # Lost the race against a concurrent request; the unique constraint decided
            self.session.rollback()
            self._discard(saved)
            raise ConflictError("You have already applied for this job") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            self._discard(saved)
            LOGGER.exception("store failure during apply job=%s", job_id)
            raise StoreError() from exc
        except LaborError:
            self._discard(saved)
            raise

        LOGGER.info("application created id=%s job=%s applicant=%s", application.id, job_id, applicant.id)
        return application_to_out(application)

    def _discard(self, urls: list[Optional[str]]) -> None:
        for url in urls:
            storage.remove_media(self.settings.upload_dir, url, subdir=storage.APPLICATION_DOCS_DIR)

    def list_applicants(self, job_id: int, actor: User) -> list[ApplicationOut]:
        job = self._require_job(job_id)
        self._require_owner_or_admin(job, actor, "view applicants for")
        with self._store("list applicants"):
            apps = crud.applications_for_job(self.session, job.id)
            return [application_to_out(a, with_applicant=True) for a in apps]

    def my_applications(self, applicant: User) -> list[ApplicationOut]:
        with self._store("list applications"):
            apps = crud.applications_for_applicant(self.session, applicant.id)
            return [application_to_out(a, with_job=True) for a in apps]

    def update_application_status(self, application_id: int, actor: User, status: str) -> ApplicationOut:
        if status not in APPLICATION_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(APPLICATION_STATUSES)}")
        with self._store("load application"):
            application = crud.get_application(self.session, application_id)
        if application is None:
            raise NotFoundError("Application not found")
        if actor.user_type != "admin" and application.job.employer_id != actor.id:
            raise AuthorizationError("Not authorized to update this application")
        with self._store("update application"):
            application = crud.set_application_status(self.session, application, status)
            return application_to_out(application, with_job=True)
