"""
Listing helpers - pagination math and search for admin dashboards.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

DEFAULT_PER_PAGE = 10
# Page links shown on each side of the current page
PAGE_WINDOW = 2


@dataclass(frozen=True)
class Page:
    page: int
    per_page: int
    total: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.per_page

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.per_page) if self.total else 0

    @property
    def first_item(self) -> int:
        return self.skip + 1 if self.total else 0

    @property
    def last_item(self) -> int:
        return min(self.page * self.per_page, self.total)

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    def visible_pages(self) -> list[int]:
        """First, last, and pages within PAGE_WINDOW of the current one."""
        last = self.total_pages
        return [
            p
            for p in range(1, last + 1)
            if p == 1 or p == last or abs(p - self.page) <= PAGE_WINDOW
        ]

    def summary(self, noun: str) -> str:
        return f"Showing {self.first_item} to {self.last_item} of {self.total} {noun}"

    def slice(self, records: list[Any]) -> list[Any]:
        """Records on this page, for lists the backend returns unpaginated."""
        return records[self.skip : self.skip + self.per_page]


def field_value(record: dict[str, Any], name: str) -> Any:
    """Look up a field; dotted names such as ``institution.name`` reach into nested records."""
    value: Any = record
    for part in name.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def search(records: Iterable[dict[str, Any]], term: str, fields: list[str]) -> list[dict[str, Any]]:
    """Case-insensitive substring match over the named fields."""
    needle = term.strip().lower()
    if not needle:
        return list(records)
    return [
        record
        for record in records
        if any(needle in str(field_value(record, name) or "").lower() for name in fields)
    ]


def filter_by(records: Iterable[dict[str, Any]], **criteria: Any) -> list[dict[str, Any]]:
    """Keep records whose fields equal every non-empty criterion ("all" matches any)."""
    active = {k: v for k, v in criteria.items() if v not in (None, "", "all")}
    return [r for r in records if all(field_value(r, k) == v for k, v in active.items())]
