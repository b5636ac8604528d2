from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from prevalence.config import DashboardSettings
from prevalence.dataset import ConditionTotals, Dataset
from prevalence.features import Feature, derive_features
from prevalence.formatting import format_decimal, format_number
from prevalence.spatial import MercatorProjection, SpatialView, build_spatial_view
from prevalence.table import (
    TABLE_HEADERS,
    Pagination,
    PaginationControls,
    TableRow,
    page_rows,
    pagination_controls,
    sort_features,
)


logger = logging.getLogger(__name__)


class ControllerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADED = "loaded"
    SELECTED = "selected"
    FAILED = "failed"


@dataclass(frozen=True)
class ScoreCards:
    total_patients: str
    prevalence: str
    prevalence50: str


def score_cards(totals: ConditionTotals) -> ScoreCards:
    return ScoreCards(
        total_patients=format_number(totals.total_patients),
        prevalence=format_decimal(totals.prevalence_per_1000),
        prevalence50=format_decimal(totals.prevalence_over50_per_1000),
    )


@dataclass(frozen=True)
class DashboardView:
    condition: str
    conditions: List[str]
    score_cards: ScoreCards
    table: List[TableRow]
    pagination: Optional[PaginationControls]
    spatial: SpatialView
    page: Pagination
    headers: tuple = field(default=TABLE_HEADERS)


class DashboardController:
    """Owns the active condition, its feature list and the page cursor.

    Only ``load``, ``select_condition`` and the page handlers mutate that
    state; each call recomputes what it needs and returns a fresh
    :class:`DashboardView` before returning.
    """

    def __init__(self, settings: Optional[DashboardSettings] = None):
        self.settings = settings or DashboardSettings()
        self.projection = MercatorProjection.from_settings(self.settings)
        self.state = ControllerState.UNINITIALIZED
        self.error: Optional[str] = None
        self.dataset: Optional[Dataset] = None
        self.conditions: List[str] = []
        self.condition: Optional[str] = None
        self.features: List[Feature] = []
        self.sorted_features: List[Feature] = []
        self.pagination = Pagination(total_items=0)
        self._spatial: Optional[SpatialView] = None
        self._view: Optional[DashboardView] = None

    # ---------------- events ----------------
    def load(self, dataset: Dataset) -> Optional[DashboardView]:
        self.dataset = dataset
        self.conditions = dataset.conditions()
        self.error = None
        self.state = ControllerState.LOADED
        logger.info("dataset loaded with %d conditions", len(self.conditions))
        if not self.conditions:
            return None
        return self.select_condition(self.conditions[0])

    def load_failed(self, error: BaseException | str) -> None:
        self.error = str(error)
        self.state = ControllerState.FAILED
        logger.error("dataset load failed: %s", self.error)

    def select_condition(self, condition: str) -> DashboardView:
        if self.dataset is None:
            raise RuntimeError("no dataset loaded")
        if condition not in self.dataset.condition_data:
            raise KeyError(condition)

        features = derive_features(self.dataset, condition)
        self.condition = condition
        self.features = features
        self.sorted_features = sort_features(features)
        self.pagination = Pagination(total_items=len(features))
        self._spatial = build_spatial_view(features, self.settings, self.projection)
        self.state = ControllerState.SELECTED
        return self._render()

    def go_to_page(self, page: int) -> Optional[DashboardView]:
        if self.state is not ControllerState.SELECTED:
            return None
        moved = self.pagination.go_to(page)
        if moved is self.pagination:
            return self._view
        self.pagination = moved
        return self._render()

    def next_page(self) -> Optional[DashboardView]:
        return self.go_to_page(self.pagination.page + 1)

    def previous_page(self) -> Optional[DashboardView]:
        return self.go_to_page(self.pagination.page - 1)

    # ---------------- view ----------------
    def view(self) -> Optional[DashboardView]:
        return self._view

    def _render(self) -> DashboardView:
        cards = score_cards(self.dataset.condition_totals[self.condition])
        rows = page_rows(self.sorted_features, self.pagination)
        controls = pagination_controls(self.pagination)
        self._view = DashboardView(
            condition=self.condition,
            conditions=list(self.conditions),
            score_cards=cards,
            table=rows,
            pagination=controls,
            spatial=self._spatial,
            page=self.pagination,
        )
        return self._view
