from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from prevalence.config import PAGE_SIZE
from prevalence.features import Feature
from prevalence.formatting import format_decimal, format_number


TABLE_HEADERS = ("Practice", "Patients", "Prevalence per 1,000", "Prevalence per 1,000 (50+)")


def sort_features(features: Sequence[Feature]) -> List[Feature]:
    # sorted() is stable with reverse=True, so ties keep encounter order.
    return sorted(features, key=lambda f: f.patients, reverse=True)


@dataclass(frozen=True)
class Pagination:
    total_items: int
    page: int = 1
    page_size: int = PAGE_SIZE

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_items / self.page_size) if self.total_items > 0 else 0

    @property
    def start(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def stop(self) -> int:
        return min(self.start + self.page_size, self.total_items)

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    def go_to(self, page: int) -> "Pagination":
        """Move to ``page``; out-of-range requests leave the cursor where it is."""
        try:
            page = int(page)
        except (TypeError, ValueError):
            return self
        if page < 1 or page > self.total_pages or page == self.page:
            return self
        return replace(self, page=page)

    def next(self) -> "Pagination":
        return self.go_to(self.page + 1)

    def previous(self) -> "Pagination":
        return self.go_to(self.page - 1)


@dataclass(frozen=True)
class TableRow:
    id: str
    name: str
    patients: str
    prevalence: str
    prevalence50: str


def table_row(feature: Feature) -> TableRow:
    return TableRow(
        id=feature.id,
        name=feature.name,
        patients=format_number(feature.patients),
        prevalence=format_decimal(feature.prevalence),
        prevalence50=format_decimal(feature.prevalence50),
    )


def page_rows(sorted_features: Sequence[Feature], pagination: Pagination) -> List[TableRow]:
    return [table_row(f) for f in sorted_features[pagination.start : pagination.stop]]


@dataclass(frozen=True)
class PageButton:
    label: str
    target: int
    disabled: bool = False
    current: bool = False


@dataclass(frozen=True)
class PaginationControls:
    page: int
    total_pages: int
    buttons: List[PageButton]


def pagination_controls(pagination: Pagination) -> Optional[PaginationControls]:
    if pagination.total_pages <= 1:
        return None
    buttons = [PageButton("‹ Prev", pagination.page - 1, disabled=not pagination.has_previous)]
    for n in range(1, pagination.total_pages + 1):
        buttons.append(PageButton(str(n), n, current=n == pagination.page))
    buttons.append(PageButton("Next ›", pagination.page + 1, disabled=not pagination.has_next))
    return PaginationControls(page=pagination.page, total_pages=pagination.total_pages, buttons=buttons)
