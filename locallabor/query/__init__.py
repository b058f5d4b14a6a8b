from .predicates import JobQuery, Proximity, build_job_query
from .compiler import compile_predicates
from .paging import PageRequest
from .strategies import PlainFilterStrategy, ProximityStrategy, RankedPage, select_strategy

__all__ = [
    "JobQuery",
    "Proximity",
    "build_job_query",
    "compile_predicates",
    "PageRequest",
    "PlainFilterStrategy",
    "ProximityStrategy",
    "RankedPage",
    "select_strategy",
]
