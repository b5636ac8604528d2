from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Optional

import pandas as pd

from prevalence.config import (
    DETAILS_ID_COLUMN,
    DETAILS_NAME_COLUMN,
    DETAILS_POSTCODE_COLUMN,
    LATITUDE_COLUMN,
    LONGITUDE_COLUMN,
    POSTCODE_COLUMN,
)
from prevalence.dataset import ConditionMetric, PracticeRecord
from prevalence.normalize import HeaderShapeError, normalize_practice_id, numericize


logger = logging.getLogger(__name__)


def clean_postcode(value: object) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    s = str(value).strip()
    return s or None


def _require(df: pd.DataFrame, cols: Iterable[str], what: str) -> None:
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise HeaderShapeError(f"{what} is missing columns: {', '.join(missing)}")


def prepare_postcode_lookup(df: pd.DataFrame) -> pd.DataFrame:
    """Trimmed postcode -> lat/lon, first row per postcode, rows lacking either coordinate dropped."""
    _require(df, [POSTCODE_COLUMN, LATITUDE_COLUMN, LONGITUDE_COLUMN], "postcode table")
    lookup = df[[POSTCODE_COLUMN, LATITUDE_COLUMN, LONGITUDE_COLUMN]].copy()
    lookup[POSTCODE_COLUMN] = lookup[POSTCODE_COLUMN].map(clean_postcode)
    lookup = numericize(lookup, [LATITUDE_COLUMN, LONGITUDE_COLUMN])
    lookup = lookup.dropna(subset=[POSTCODE_COLUMN, LATITUDE_COLUMN, LONGITUDE_COLUMN])
    return lookup.drop_duplicates(subset=[POSTCODE_COLUMN], keep="first").reset_index(drop=True)


def build_practice_directory(details: pd.DataFrame, lookup: pd.DataFrame) -> Dict[str, PracticeRecord]:
    _require(details, [DETAILS_ID_COLUMN, DETAILS_NAME_COLUMN, DETAILS_POSTCODE_COLUMN], "practice details")
    practices = details[[DETAILS_ID_COLUMN, DETAILS_NAME_COLUMN, DETAILS_POSTCODE_COLUMN]].copy()
    practices["practice_id"] = practices[DETAILS_ID_COLUMN].map(normalize_practice_id)
    practices = practices.dropna(subset=["practice_id"]).drop_duplicates(subset=["practice_id"], keep="first")
    practices["postcode"] = practices[DETAILS_POSTCODE_COLUMN].map(clean_postcode)

    merged = practices.merge(
        lookup.rename(columns={POSTCODE_COLUMN: "postcode"}),
        on="postcode",
        how="left",
    )

    directory: Dict[str, PracticeRecord] = {}
    for row in merged.to_dict(orient="records"):
        lat = row.get(LATITUDE_COLUMN)
        lon = row.get(LONGITUDE_COLUMN)
        name = row.get(DETAILS_NAME_COLUMN)
        directory[row["practice_id"]] = PracticeRecord(
            practice_id=row["practice_id"],
            name=str(name).strip() if name is not None and not pd.isna(name) else row["practice_id"],
            latitude=float(lat) if pd.notna(lat) else None,
            longitude=float(lon) if pd.notna(lon) else None,
            postcode=row["postcode"],
        )

    unmatched = sum(1 for rec in directory.values() if not rec.has_coordinates)
    logger.info("geocoded %d of %d practices (%d unmatched)", len(directory) - unmatched, len(directory), unmatched)
    return directory


def cover_orphan_practices(
    directory: Mapping[str, PracticeRecord],
    condition_data: Mapping[str, Mapping[str, ConditionMetric]],
) -> Dict[str, PracticeRecord]:
    """Add a coordinate-less record for practice ids only seen in the register data."""
    covered = dict(directory)
    for metrics in condition_data.values():
        for pid in metrics:
            if pid not in covered:
                logger.warning("practice %s has register data but no details row", pid)
                covered[pid] = PracticeRecord(practice_id=pid, name=pid)
    return covered
