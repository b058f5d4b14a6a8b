from __future__ import annotations

import logging
from typing import Callable, Iterable

from sqlalchemy import ColumnElement, false, func, or_, select

from locallabor.db.models import Job, JobSkill
from locallabor.query.predicates import (
    CityContains,
    EmployerIs,
    JobTypeIn,
    MatchNothing,
    PayMaxAtLeast,
    PayMinAtMost,
    PostedSince,
    Predicate,
    SkillsAny,
    StatusIs,
    TextSearch,
)

LOGGER = logging.getLogger(__name__)


def _skills_any(p: SkillsAny) -> ColumnElement[bool]:
    # EXISTS avoids duplicating job rows the way a join would
    return (
        select(JobSkill.id)
        .where(JobSkill.job_id == Job.id)
        .where(func.lower(JobSkill.skill).in_(p.skills))
        .exists()
    )


def _text_search(p: TextSearch) -> ColumnElement[bool]:
    return or_(
        Job.title.icontains(p.text, autoescape=True),
        Job.description.icontains(p.text, autoescape=True),
        Job.city.icontains(p.text, autoescape=True),
        Job.address_text.icontains(p.text, autoescape=True),
    )


def _match_nothing(p: MatchNothing) -> ColumnElement[bool]:
    LOGGER.debug("query fails closed: %s", p.reason)
    return false()


_LOWERINGS: dict[type, Callable[..., ColumnElement[bool]]] = {
    StatusIs: lambda p: Job.status == p.status,
    JobTypeIn: lambda p: func.lower(Job.job_type).in_(p.job_types),
    CityContains: lambda p: Job.city.icontains(p.text, autoescape=True),
    SkillsAny: _skills_any,
    PostedSince: lambda p: Job.posted_at >= p.cutoff,
    PayMaxAtLeast: lambda p: Job.pay_rate_max >= p.amount,
    PayMinAtMost: lambda p: Job.pay_rate_min <= p.amount,
    EmployerIs: lambda p: Job.employer_id == p.employer_id,
    TextSearch: _text_search,
    MatchNothing: _match_nothing,
}


def compile_predicate(predicate: Predicate) -> ColumnElement[bool]:
    try:
        lower = _LOWERINGS[type(predicate)]
    except KeyError:
        raise TypeError(f"no SQL lowering for {type(predicate).__name__}") from None
    return lower(predicate)


def compile_predicates(predicates: Iterable[Predicate]) -> list[ColumnElement[bool]]:
    """Lower every clause; the result is ANDed by the caller (``.where(*clauses)``)."""
    return [compile_predicate(p) for p in predicates]
