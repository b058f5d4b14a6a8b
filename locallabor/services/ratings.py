from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from locallabor.db import crud
from locallabor.errors import ConflictError, NotFoundError, StoreError, ValidationError
from locallabor.db.models import User
from locallabor.schemas import RatingAverage, RatingCreate, RatingOut

LOGGER = logging.getLogger(__name__)


class RatingService:
    """Reputation records. One rating per (rater, target, job); job-less ratings accumulate."""

    def __init__(self, session: Session):
        self.session = session

    def create_rating(self, rater: User, payload: RatingCreate) -> RatingOut:
        if not 1 <= payload.rating <= 5:
            raise ValidationError("Rating must be between 1 and 5.")
        if rater.id == payload.target_id:
            raise ValidationError("Cannot rate yourself.")
        if crud.get_user(self.session, payload.target_id) is None:
            raise NotFoundError("Target user not found.")
        if payload.job_id is not None:
            if crud.get_job_by_id(self.session, payload.job_id) is None:
                raise NotFoundError("Associated job not found.")
            if crud.find_rating(self.session, rater.id, payload.target_id, payload.job_id) is not None:
                raise ConflictError("You have already rated this user for this job.")

        try:
            rating = crud.create_rating(
                self.session,
                {
                    "rater_id": rater.id,
                    "target_id": payload.target_id,
                    "job_id": payload.job_id,
                    "rating": payload.rating,
                    "comment": payload.comment,
                },
            )
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("You have already rated this user for this job.") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            LOGGER.exception("store failure during create rating")
            raise StoreError() from exc
        return RatingOut.model_validate(rating)

    def ratings_for_user(self, target_id: int) -> list[RatingOut]:
        return [RatingOut.model_validate(r) for r in crud.ratings_for_user(self.session, target_id)]

    def ratings_for_job(self, job_id: int) -> list[RatingOut]:
        return [RatingOut.model_validate(r) for r in crud.ratings_for_job(self.session, job_id)]

    def average_for_user(self, target_id: int) -> RatingAverage:
        average, total = crud.rating_average(self.session, target_id)
        if not total:
            return RatingAverage(average_rating=0.0, total_ratings=0)
        return RatingAverage(average_rating=round(average, 1), total_ratings=total)
