from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional, Tuple

import pandas as pd

from prevalence.aggregate import aggregate_registers
from prevalence.config import (
    HEADER_ROW,
    PRACTICE_HEADER_ROW,
    PRACTICE_SHEET_NAME,
    PREVALENCE_SHEET_NAME,
    dataset_path,
)
from prevalence.dataset import Dataset, load_dataset
from prevalence.geocode import build_practice_directory, cover_orphan_practices, prepare_postcode_lookup
from prevalence.normalize import normalize_prevalence_table


logger = logging.getLogger(__name__)


def file_signature(path: Path) -> Tuple[str, float]:
    return (str(path), path.stat().st_mtime)


# ---------------- Loaders ----------------
def read_prevalence_sheet(path: Path, sheet_name: str = PREVALENCE_SHEET_NAME) -> pd.DataFrame:
    return pd.read_excel(path, sheet_name=sheet_name, header=None, dtype=object, engine="openpyxl")


def read_practice_details(path: Path, sheet_name: str = PRACTICE_SHEET_NAME, header_row: int = PRACTICE_HEADER_ROW) -> pd.DataFrame:
    df = pd.read_excel(path, sheet_name=sheet_name, header=header_row, dtype=object, engine="openpyxl")
    df.columns = [str(c).strip() for c in df.columns]
    return df


def read_postcode_table(path: Path) -> pd.DataFrame:
    df = pd.read_csv(path, dtype=str, encoding="utf-8-sig")
    df.columns = [str(c).strip() for c in df.columns]
    return df


# ---------------- Offline build ----------------
def build_dataset_from_frames(
    prevalence_raw: pd.DataFrame,
    practice_details: pd.DataFrame,
    postcodes: pd.DataFrame,
    *,
    header_row: int = HEADER_ROW,
) -> Dataset:
    table = normalize_prevalence_table(prevalence_raw, header_row=header_row)
    logger.info(
        "normalized %d practice rows, %d columns (%d repeated, %d rows dropped)",
        len(table.frame),
        len(table.columns),
        table.duplicate_columns,
        table.dropped_rows,
    )
    condition_totals, condition_data = aggregate_registers(table)

    lookup = prepare_postcode_lookup(postcodes)
    directory = build_practice_directory(practice_details, lookup)
    directory = cover_orphan_practices(directory, condition_data)

    return Dataset(
        practice_info=directory,
        condition_totals=condition_totals,
        condition_data=condition_data,
    ).validate()


def build_dataset(workbook: Path, postcodes: Path, *, header_row: int = HEADER_ROW) -> Dataset:
    logger.info("reading %s and %s", workbook, postcodes)
    return build_dataset_from_frames(
        read_prevalence_sheet(workbook),
        read_practice_details(workbook),
        read_postcode_table(postcodes),
        header_row=header_row,
    )


# ---------------- Public API (Streamlit + FastAPI use) ----------------
@lru_cache(maxsize=4)
def _load_dashboard_data_cached(signature: Tuple[str, float]) -> Dataset:
    return load_dataset(Path(signature[0]))


def load_dashboard_data(path: Optional[Path] = None) -> Dataset:
    """Load the interchange document once per file version."""
    path = Path(path) if path is not None else dataset_path()
    return _load_dashboard_data_cached(file_signature(path))


def dataset_summary(dataset: Dataset) -> Dict[str, int]:
    geocoded = sum(1 for rec in dataset.practice_info.values() if rec.has_coordinates)
    return {
        "conditions": len(dataset.condition_data),
        "practices": len(dataset.practice_info),
        "geocoded_practices": geocoded,
    }
