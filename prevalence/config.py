from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple


REPO_ROOT = Path(__file__).resolve().parents[1]

WORKBOOK_NAME = "rdptd-tables-2025.xlsx"
POSTCODES_NAME = "BT postcodes.csv"
DATASET_RELATIVE_PATH = Path("dashboard") / "ni_prevalence_data.json"

PREVALENCE_SHEET_NAME = "Table 5a Prevalence 2025"
PRACTICE_SHEET_NAME = "Table 4 GP practice details"

# 0-based sheet rows; the prevalence header spans HEADER_ROW and HEADER_ROW + 1.
HEADER_ROW = 4
PRACTICE_HEADER_ROW = 7

PRACTICE_ID_COLUMN = "Practice Id"
LIST_SIZE_COLUMN = "Practice List Size"
SUBSET_POPULATION_COLUMN = "Target population size|50+"
SUMMARY_ROW_ID = "Northern Ireland"
PLACEHOLDER_PREFIX = "Unnamed"

DETAILS_ID_COLUMN = "Practice ID"
DETAILS_NAME_COLUMN = "PracticeName"
DETAILS_POSTCODE_COLUMN = "Postcode"

POSTCODE_COLUMN = "Postcode"
LATITUDE_COLUMN = "Latitude"
LONGITUDE_COLUMN = "Longitude"

PATIENT_CATEGORY = "Number of patients on register"
FULL_PREVALENCE_CATEGORY = "Prevalence per 1000 patients using full list"
SUBSET_MARKER = "subset"
PREVALENCE_MARKER = "Prevalence"

RATE_DECIMALS = 10
PAGE_SIZE = 10

# d3.schemeBlues[7]
BLUES_7: Tuple[str, ...] = ("#eff3ff", "#c6dbef", "#9ecae1", "#6baed6", "#4292c6", "#2171b5", "#084594")
PLACEHOLDER_GLYPH = "–"


def data_dir() -> Path:
    return Path(os.getenv("PREVALENCE_DATA_DIR", str(REPO_ROOT)))


def workbook_path() -> Path:
    return data_dir() / WORKBOOK_NAME


def postcodes_path() -> Path:
    return data_dir() / POSTCODES_NAME


def dataset_path() -> Path:
    override = os.getenv("PREVALENCE_DATASET_PATH")
    if override:
        return Path(override)
    return data_dir() / DATASET_RELATIVE_PATH


@dataclass(frozen=True)
class DashboardSettings:
    width: int = 800
    height: int = 600
    center: Tuple[float, float] = (-6.7, 54.6)
    scale: float = 8000.0
    palette: Tuple[str, ...] = field(default=BLUES_7)
    unknown_colour: str = "#d9d9d9"


def _as_float(value: object, default: float) -> float:
    try:
        return float(value)  # type: ignore[arg-type]
    except Exception:
        return default


def normalize_settings(raw: Optional[dict] = None) -> DashboardSettings:
    raw = raw or {}
    defaults = DashboardSettings()

    width = int(_as_float(raw.get("width"), defaults.width))
    height = int(_as_float(raw.get("height"), defaults.height))
    width = max(100, min(4000, width))
    height = max(100, min(4000, height))

    center = raw.get("center") or defaults.center
    try:
        lon, lat = (float(center[0]), float(center[1]))
    except Exception:
        lon, lat = defaults.center

    scale = _as_float(raw.get("scale"), defaults.scale)
    if scale <= 0:
        scale = defaults.scale

    palette = tuple(str(c) for c in (raw.get("palette") or defaults.palette) if c)
    if not palette:
        palette = defaults.palette

    unknown_colour = str(raw.get("unknown_colour") or defaults.unknown_colour)
    return DashboardSettings(
        width=width,
        height=height,
        center=(lon, lat),
        scale=scale,
        palette=palette,
        unknown_colour=unknown_colour,
    )
