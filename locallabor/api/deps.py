from __future__ import annotations

from functools import lru_cache
from typing import Callable, Generator, Optional

from fastapi import Depends, Header, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile as StarletteUploadFile

from locallabor.config import Settings, get_settings
from locallabor.db import crud
from locallabor.db.models import User
from locallabor.db.session import get_session
from locallabor.errors import AuthenticationError, AuthorizationError
from locallabor.geo.geocoder import Geocoder, build_geocoder
from locallabor.schemas import JobCreate, JobUpdate
from locallabor.services import JobDiscoveryService, RatingService, Upload

IMAGE_FIELD = "job_image"
_FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def db_session() -> Generator[Session, None, None]:
    """One session per request, closed when the response is done."""
    with get_session() as session:
        yield session


@lru_cache(maxsize=4)
def _geocoder_for(settings: Settings) -> Geocoder:
    return build_geocoder(settings)


def get_geocoder(settings: Settings = Depends(get_settings)) -> Geocoder:
    return _geocoder_for(settings)


def _lookup_user(session: Session, raw_id: Optional[str]) -> Optional[User]:
    if not raw_id:
        return None
    try:
        user_id = int(raw_id)
    except ValueError:
        return None
    return crud.get_user(session, user_id)


def current_user(
    x_user_id: Optional[str] = Header(default=None),
    session: Session = Depends(db_session),
) -> User:
    """Caller identity. An upstream auth layer sets X-User-Id (or overrides this dependency)."""
    if not x_user_id:
        raise AuthenticationError("Not authorized, no credentials")
    user = _lookup_user(session, x_user_id)
    if user is None:
        raise AuthenticationError("Not authorized, unknown user")
    return user


def optional_user(
    x_user_id: Optional[str] = Header(default=None),
    session: Session = Depends(db_session),
) -> Optional[User]:
    return _lookup_user(session, x_user_id)


def require_roles(*roles: str) -> Callable[..., User]:
    def dependency(user: User = Depends(current_user)) -> User:
        if user.user_type not in roles:
            raise AuthorizationError()
        return user

    return dependency


def job_service(
    session: Session = Depends(db_session),
    settings: Settings = Depends(get_settings),
    geocoder: Geocoder = Depends(get_geocoder),
) -> JobDiscoveryService:
    return JobDiscoveryService(session, settings, geocoder)


def rating_service(session: Session = Depends(db_session)) -> RatingService:
    return RatingService(session)


async def _job_fields(request: Request) -> tuple[dict, Optional[Upload]]:
    """Job fields from a JSON body, or from a form that may carry ``job_image``."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(_FORM_TYPES):
        form = await request.form()
        fields: dict = {}
        image = None
        for key in form.keys():
            values = form.getlist(key)
            if key == IMAGE_FIELD:
                upload = values[-1]
                if isinstance(upload, StarletteUploadFile) and upload.filename:
                    image = Upload(upload.filename, upload.file, upload.content_type)
                continue
            fields[key] = values if len(values) > 1 else values[0]
        return fields, image

    try:
        body = await request.json()
    except ValueError:
        raise RequestValidationError(
            [{"type": "json_invalid", "loc": ("body",), "msg": "JSON decode error", "input": {}}]
        )
    if not isinstance(body, dict):
        raise RequestValidationError(
            [{"type": "dict_type", "loc": ("body",), "msg": "Input should be a valid dictionary", "input": body}]
        )
    return body, None


def _validated(model, fields: dict):
    try:
        return model.model_validate(fields)
    except PydanticValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False)) from exc


async def job_create_body(request: Request) -> tuple[JobCreate, Optional[Upload]]:
    fields, image = await _job_fields(request)
    return _validated(JobCreate, fields), image


async def job_update_body(request: Request) -> tuple[JobUpdate, Optional[Upload]]:
    fields, image = await _job_fields(request)
    return _validated(JobUpdate, fields), image


__all__ = [
    "db_session",
    "get_geocoder",
    "current_user",
    "optional_user",
    "require_roles",
    "job_service",
    "rating_service",
    "job_create_body",
    "job_update_body",
]
