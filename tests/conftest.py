from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from prevalence.dataset import ConditionMetric, ConditionTotals, Dataset, PracticeRecord

NAN = np.nan

PATIENTS = "Number of patients on register"
FULL = "Prevalence per 1000 patients using full list"
SUBSET = "Prevalence per 1000 patients using subset of list"

HEADER_FIRST = [NAN, NAN, "Practice List Size", "Target population size", PATIENTS, PATIENTS, PATIENTS, PATIENTS, FULL, FULL, FULL, FULL, SUBSET, "Unnamed: 13", PATIENTS]
HEADER_SECOND = ["Practice Id", "Practice Name", NAN, "50+", "Asthma 6+", "Stroke", "Stroke.1", "Diabetes 17+", "Asthma 6+", "Stroke", "Stroke.1", "Diabetes 17+", "Diabetes 17+", NAN, "Stroke"]

DATA_ROWS = [
    [101, "Alpha Surgery", 1000, 400, 60, 10, 5, 50, 60.0, 10.0, "5", 50.0, 125.0, "note", 999],
    ["102", "Beta Practice", "2000", 800, 0, NAN, NAN, 100, NAN, NAN, NAN, "bad", NAN, NAN, 999],
    [NAN, NAN, NAN, NAN, NAN, NAN, NAN, NAN, NAN, NAN, NAN, NAN, NAN, NAN, NAN],
    [103.0, "Gamma Health", 500, 200, 20, 3, NAN, 25, 40.0, 6.0, NAN, 50.0, 125.0, NAN, 999],
    ["Northern Ireland", NAN, 3500, 1400, 80, 13, 5, 175, 22.9, 3.7, 1.4, 50.0, 125.0, NAN, 999],
]


def build_raw_sheet(first=HEADER_FIRST, second=HEADER_SECOND, rows=DATA_ROWS) -> pd.DataFrame:
    width = len(second)
    titles = [
        ["Table 5a: Raw disease prevalence by GP practice"] + [NAN] * (width - 1),
        ["Source: disease registers"] + [NAN] * (width - 1),
        ["Published 2025"] + [NAN] * (width - 1),
        ["Notes apply"] + [NAN] * (width - 1),
    ]
    return pd.DataFrame(titles + [list(first), list(second)] + [list(r) for r in rows], dtype=object)


@pytest.fixture()
def raw_sheet() -> pd.DataFrame:
    return build_raw_sheet()


@pytest.fixture()
def practice_details() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Practice ID": [101, 102, 103, 104],
            "PracticeName": ["Alpha Surgery", "Beta Practice", "Gamma Health", "Delta Medical"],
            "Postcode": ["BT1 1AA", " BT2 2BB ", "BT9 9ZZ", "BT1 1AA"],
        }
    )


@pytest.fixture()
def postcodes() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Postcode": ["BT1 1AA", "BT1 1AA", "BT2 2BB", "BT3 3CC"],
            "Latitude": ["54.60", "0", "54.35", ""],
            "Longitude": ["-5.93", "0", "-6.65", "-6.0"],
        }
    )


def make_dataset(counts, condition: str = "Asthma", with_coords: bool = True) -> Dataset:
    """Dataset with one practice per count, spread on a small grid around Belfast."""
    practice_info = {}
    metrics = {}
    for i, count in enumerate(counts):
        pid = f"P{i:03d}"
        lat = 54.2 + 0.05 * (i // 6) if with_coords else None
        lon = -6.9 + 0.08 * (i % 6) if with_coords else None
        practice_info[pid] = PracticeRecord(practice_id=pid, name=f"Practice {i}", latitude=lat, longitude=lon)
        metrics[pid] = ConditionMetric(patients=count, prevalence_per_1000=float(count) / 10.0, prevalence_over50_per_1000=None)
    total = sum(counts)
    return Dataset(
        practice_info=practice_info,
        condition_totals={
            condition: ConditionTotals(total_patients=total, prevalence_per_1000=12.3456, prevalence_over50_per_1000=None),
            "Zeta": ConditionTotals(total_patients=0),
        },
        condition_data={condition: metrics, "Zeta": {}},
    )


@pytest.fixture()
def small_dataset() -> Dataset:
    return make_dataset([50, 50, 30, 80, 10, 20, 60, 70, 40, 90])
