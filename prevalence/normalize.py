from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional

import numpy as np
import pandas as pd

from prevalence.config import (
    HEADER_ROW,
    LIST_SIZE_COLUMN,
    PATIENT_CATEGORY,
    PLACEHOLDER_PREFIX,
    PRACTICE_ID_COLUMN,
    SUBSET_POPULATION_COLUMN,
    SUMMARY_ROW_ID,
)


logger = logging.getLogger(__name__)

NULL_TOKENS = {"nan", "none", "null", "<na>", "na", "n/a"}


class HeaderShapeError(ValueError):
    """The two-row header did not produce the columns the aggregation needs."""


@dataclass(frozen=True)
class NormalizedTable:
    columns: List[str]
    frame: pd.DataFrame
    duplicate_columns: int = 0
    dropped_rows: int = 0


def parse_or_null(value: object) -> Optional[float]:
    """Coerce a cell to float; anything unparseable becomes None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if math.isnan(out) or math.isinf(out):
        return None
    return out


def numericize(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col].map(parse_or_null), errors="coerce")
    return df


def _header_cell(value: object) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    s = str(value).strip()
    if s.startswith(PLACEHOLDER_PREFIX):
        return ""
    return s


def collapse_header_pair(first: object, second: object) -> str:
    a = _header_cell(first)
    b = _header_cell(second)
    if a and b:
        return f"{a}|{b}"
    return a or b


def collapse_headers(header_rows: pd.DataFrame) -> List[str]:
    if len(header_rows) != 2:
        raise HeaderShapeError(f"expected two header rows, got {len(header_rows)}")
    first, second = header_rows.iloc[0], header_rows.iloc[1]
    return [collapse_header_pair(first.iloc[i], second.iloc[i]) for i in range(header_rows.shape[1])]


def normalize_practice_id(value: object) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    s = str(value).strip()
    if not s or s.lower() in NULL_TOKENS:
        return None
    return s


def find_header_row(df: pd.DataFrame, keywords: Iterable[str], search_rows: int = 25) -> Optional[int]:
    lowered = [k.lower() for k in keywords]
    for idx in range(min(search_rows, len(df))):
        text = " ".join(str(v).lower() for v in df.iloc[idx].tolist() if pd.notna(v))
        if any(k in text for k in lowered):
            return idx
    return None


def is_numeric_column(column: str) -> bool:
    return "|" in column or column in {LIST_SIZE_COLUMN, SUBSET_POPULATION_COLUMN}


def _check_header_shape(raw: pd.DataFrame, columns: List[str], header_row: int) -> None:
    missing = [c for c in (PRACTICE_ID_COLUMN, LIST_SIZE_COLUMN) if c not in columns]
    has_registers = any(c.startswith(PATIENT_CATEGORY + "|") for c in columns)
    if not missing and has_registers:
        return
    problems = [f"missing column {c!r}" for c in missing]
    if not has_registers:
        problems.append(f"no {PATIENT_CATEGORY!r} register columns")
    found = find_header_row(raw, [PRACTICE_ID_COLUMN])
    hint = f"; {PRACTICE_ID_COLUMN!r} appears at row {found}" if found is not None else ""
    raise HeaderShapeError(f"header at row {header_row} is malformed: {', '.join(problems)}{hint}")


def normalize_prevalence_table(raw: pd.DataFrame, *, header_row: int = HEADER_ROW) -> NormalizedTable:
    """Collapse the two-row header of a raw sheet and return cleaned practice rows.

    ``raw`` is the sheet read without a header (every cell as found). Columns
    whose collapsed key is empty are dropped, and only the first physical
    column of each key is kept. Rows with no practice id and the regional
    summary row are removed. Numeric-bearing columns are coerced with
    :func:`parse_or_null`.
    """
    if len(raw) < header_row + 2:
        raise HeaderShapeError(f"sheet has {len(raw)} rows, header expected at row {header_row}")

    columns = collapse_headers(raw.iloc[header_row : header_row + 2])
    keys = pd.Index(columns)
    keep = (keys != "") & ~keys.duplicated()
    duplicate_columns = int(((keys != "") & keys.duplicated()).sum())
    if duplicate_columns:
        logger.debug("dropping %d repeated canonical columns", duplicate_columns)

    kept = [c for c, k in zip(columns, keep) if k]
    _check_header_shape(raw, kept, header_row)

    body = raw.iloc[header_row + 2 :, np.flatnonzero(keep)].copy()
    body.columns = kept
    total_rows = len(body)

    body[PRACTICE_ID_COLUMN] = body[PRACTICE_ID_COLUMN].map(normalize_practice_id)
    body = body[body[PRACTICE_ID_COLUMN].notna()]
    body = body[body[PRACTICE_ID_COLUMN] != SUMMARY_ROW_ID]

    repeated = body[PRACTICE_ID_COLUMN].duplicated(keep="first")
    if repeated.any():
        logger.warning("ignoring %d repeated practice rows", int(repeated.sum()))
        body = body[~repeated]

    body = numericize(body, [c for c in kept if is_numeric_column(c)])
    body = body.set_index(PRACTICE_ID_COLUMN, drop=False)
    body.index.name = None

    return NormalizedTable(
        columns=kept,
        frame=body,
        duplicate_columns=duplicate_columns,
        dropped_rows=total_rows - len(body),
    )
