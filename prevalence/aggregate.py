from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from prevalence.config import (
    FULL_PREVALENCE_CATEGORY,
    LIST_SIZE_COLUMN,
    PATIENT_CATEGORY,
    PREVALENCE_MARKER,
    RATE_DECIMALS,
    SUBSET_MARKER,
    SUBSET_POPULATION_COLUMN,
)
from prevalence.dataset import ConditionMetric, ConditionTotals
from prevalence.normalize import NormalizedTable


logger = logging.getLogger(__name__)

_REPEAT_SUFFIX = re.compile(r"\.[0-9]+$")
_AGE_BAND_SUFFIX = re.compile(r" [0-9]+\+$")


@dataclass(frozen=True)
class ColumnRoles:
    patients: List[str] = field(default_factory=list)
    prevalence: List[str] = field(default_factory=list)
    subset: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RegisterGroup:
    patients: List[str] = field(default_factory=list)
    prevalence: List[str] = field(default_factory=list)
    subset: List[str] = field(default_factory=list)


# base condition -> the physical columns that feed it, in patient-column order
RegisterMap = Dict[str, RegisterGroup]


def round_rate(value: object, ndigits: int = RATE_DECIMALS) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def register_of(column: str) -> str:
    return column.split("|", 1)[1] if "|" in column else ""


def base_condition(register: str) -> str:
    """Strip a repetition suffix (``.2``) then an age band (`` 17+``)."""
    name = _REPEAT_SUFFIX.sub("", register)
    name = _AGE_BAND_SUFFIX.sub("", name)
    return name.strip()


def classify_columns(columns: Iterable[str]) -> ColumnRoles:
    patients: List[str] = []
    prevalence: List[str] = []
    subset: List[str] = []
    for col in columns:
        if "|" not in col:
            continue
        if col.startswith(PATIENT_CATEGORY + "|"):
            patients.append(col)
        elif col.startswith(FULL_PREVALENCE_CATEGORY + "|"):
            prevalence.append(col)
        elif SUBSET_MARKER in col and PREVALENCE_MARKER in col:
            subset.append(col)
    return ColumnRoles(patients=patients, prevalence=prevalence, subset=subset)


def build_register_map(columns: Iterable[str]) -> RegisterMap:
    roles = classify_columns(columns)
    groups: Dict[str, Dict[str, List[str]]] = {}
    for col in roles.patients:
        base = base_condition(register_of(col))
        if not base:
            continue
        groups.setdefault(base, {"patients": [], "prevalence": [], "subset": []})["patients"].append(col)

    for role, cols in (("prevalence", roles.prevalence), ("subset", roles.subset)):
        for col in cols:
            base = base_condition(register_of(col))
            if base in groups:
                groups[base][role].append(col)
            else:
                logger.debug("%s column %r has no matching register", role, col)

    return {base: RegisterGroup(**cols) for base, cols in groups.items()}


def _row_mean(frame: pd.DataFrame, cols: List[str]) -> pd.Series:
    if not cols:
        return pd.Series(np.nan, index=frame.index, dtype=float)
    return frame[cols].mean(axis=1, skipna=True)


def aggregate_practice_metrics(table: NormalizedTable, register_map: RegisterMap) -> Dict[str, Dict[str, ConditionMetric]]:
    frame = table.frame
    condition_data: Dict[str, Dict[str, ConditionMetric]] = {}
    for base, group in register_map.items():
        # counts are whole patients; round before deciding who reports
        patients = frame[group.patients].sum(axis=1, skipna=True, min_count=1).round()
        reporting = patients.notna() & (patients >= 1)
        prevalence = _row_mean(frame, group.prevalence)
        subset = _row_mean(frame, group.subset)

        metrics: Dict[str, ConditionMetric] = {}
        for pid, pts, prev, sub in zip(
            frame.index[reporting],
            patients[reporting],
            prevalence[reporting],
            subset[reporting],
        ):
            metrics[str(pid)] = ConditionMetric(
                patients=int(pts),
                prevalence_per_1000=round_rate(prev),
                prevalence_over50_per_1000=round_rate(sub),
            )
        condition_data[base] = metrics
    return condition_data


def population_denominators(table: NormalizedTable) -> Tuple[Optional[float], Optional[float]]:
    """List-size and subset-population sums over every practice row."""
    frame = table.frame
    population = float(frame[LIST_SIZE_COLUMN].sum(skipna=True)) if LIST_SIZE_COLUMN in frame.columns else None
    subset_population = (
        float(frame[SUBSET_POPULATION_COLUMN].sum(skipna=True)) if SUBSET_POPULATION_COLUMN in frame.columns else None
    )
    return population, subset_population


def _rate(count: int, denominator: Optional[float]) -> Optional[float]:
    if denominator is None or pd.isna(denominator) or denominator <= 0:
        return None
    return round_rate(count / denominator * 1000)


def aggregate_registers(table: NormalizedTable) -> Tuple[Dict[str, ConditionTotals], Dict[str, Dict[str, ConditionMetric]]]:
    register_map = build_register_map(table.columns)
    condition_data = aggregate_practice_metrics(table, register_map)
    population, subset_population = population_denominators(table)
    if subset_population is None:
        logger.info("no %r column; subset rates are undefined", SUBSET_POPULATION_COLUMN)

    condition_totals: Dict[str, ConditionTotals] = {}
    for base, metrics in condition_data.items():
        total = sum(m.patients for m in metrics.values())
        condition_totals[base] = ConditionTotals(
            total_patients=total,
            prevalence_per_1000=_rate(total, population),
            prevalence_over50_per_1000=_rate(total, subset_population),
        )
    logger.info("aggregated %d base conditions over %d practices", len(condition_totals), len(table.frame))
    return condition_totals, condition_data
