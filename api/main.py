from __future__ import annotations

from dataclasses import asdict
import logging
import math
from typing import Any, Dict

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.schemas import DashboardRequestModel, DatasetDocumentModel, MetaListResponse
from prevalence.charts import spatial_chart, to_vega_spec
from prevalence.config import DashboardSettings, normalize_settings
from prevalence.controller import DashboardController, DashboardView
from prevalence.data import load_dashboard_data
from prevalence.dataset import Dataset, DatasetError, to_document


app = FastAPI(title="Prevalence Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _settings_from_model(model: DashboardRequestModel) -> DashboardSettings:
    return normalize_settings(model.settings.model_dump())


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with NaN/inf mapped to null."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(status_code=status_code, content=jsonable_encoder(data, custom_encoder={float: _safe_float}))


def _error(status_code: int, exc: BaseException) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _load() -> Dataset:
    return load_dashboard_data()


def view_payload(view: DashboardView) -> Dict[str, Any]:
    spatial = view.spatial
    charts: Dict[str, Any] = {}
    if not spatial.is_empty:
        charts["map"] = to_vega_spec(spatial_chart(spatial))
    return {
        "condition": view.condition,
        "conditions": view.conditions,
        "score_cards": asdict(view.score_cards),
        "headers": list(view.headers),
        "table": [asdict(row) for row in view.table],
        "pagination": asdict(view.pagination) if view.pagination is not None else None,
        "page": {
            "page": view.page.page,
            "page_size": view.page.page_size,
            "total_items": view.page.total_items,
            "total_pages": view.page.total_pages,
        },
        "spatial": {
            "width": spatial.width,
            "height": spatial.height,
            "cells": spatial.cell_geojson(),
            "outline": spatial.outline_geojson(),
            "legend": [{"colour": b.colour, "low": b.low, "high": b.high, "label": b.label} for b in spatial.legend],
        },
        "charts": charts,
    }


@app.get("/meta/conditions", response_model=MetaListResponse)
def meta_conditions():
    try:
        dataset = _load()
    except (FileNotFoundError, DatasetError) as exc:
        logger.exception("meta_conditions failed")
        return _error(503, exc)
    return MetaListResponse(values=dataset.conditions())


@app.get("/dataset", response_model=DatasetDocumentModel)
def dataset_document():
    try:
        dataset = _load()
    except (FileNotFoundError, DatasetError) as exc:
        logger.exception("dataset_document failed")
        return _error(503, exc)
    return DatasetDocumentModel.model_validate(to_document(dataset))


@app.post("/dashboard")
def dashboard(request: DashboardRequestModel):
    try:
        dataset = _load()
    except (FileNotFoundError, DatasetError) as exc:
        logger.exception("dashboard failed")
        return _error(503, exc)

    try:
        controller = DashboardController(_settings_from_model(request))
        view = controller.load(dataset)
        if request.condition is not None:
            view = controller.select_condition(request.condition)
        if view is None:
            return JSONResponse(status_code=404, content={"error": "dataset has no conditions", "type": "NotFound"})
        view = controller.go_to_page(request.page)
        return _json(view_payload(view))
    except KeyError as exc:
        return JSONResponse(status_code=404, content={"error": f"unknown condition {exc.args[0]!r}", "type": "NotFound"})
    except Exception as exc:
        logger.exception("dashboard failed")
        return _error(500, exc)
