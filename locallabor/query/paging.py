from __future__ import annotations

import math
from dataclasses import dataclass

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def _positive_int(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(str(value).strip())
    except ValueError:
        return None
    return number if number > 0 else None


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    size: int = DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size

    @classmethod
    def coerce(
        cls,
        page: object = None,
        size: object = None,
        *,
        default_size: int = DEFAULT_PAGE_SIZE,
        max_size: int = MAX_PAGE_SIZE,
    ) -> "PageRequest":
        """Invalid or non-positive values fall back to page 1 / ``default_size``."""
        resolved_size = _positive_int(size) or default_size
        return cls(page=_positive_int(page) or 1, size=min(resolved_size, max_size))


def total_pages(total: int, size: int) -> int:
    return math.ceil(total / size) if size > 0 else 0
