from __future__ import annotations

import pytest

from conftest import DATA_ROWS, HEADER_FIRST, HEADER_SECOND, build_raw_sheet
from prevalence.aggregate import (
    aggregate_registers,
    base_condition,
    build_register_map,
    classify_columns,
    population_denominators,
    register_of,
    round_rate,
)
from prevalence.normalize import normalize_prevalence_table


@pytest.fixture()
def table(raw_sheet):
    return normalize_prevalence_table(raw_sheet)


@pytest.mark.parametrize(
    "register, expected",
    [
        ("Stroke.2", "Stroke"),
        ("Stroke 17+", "Stroke"),
        ("Stroke 17+.1", "Stroke"),
        ("  Asthma 6+ ", "Asthma 6+"),
        ("Atrial Fibrillation", "Atrial Fibrillation"),
    ],
)
def test_base_condition(register, expected) -> None:
    assert base_condition(register) == expected


def test_register_of() -> None:
    assert register_of("Number of patients on register|Stroke.1") == "Stroke.1"
    assert register_of("Practice Id") == ""


def test_classify_columns_roles_are_disjoint(table) -> None:
    roles = classify_columns(table.columns)

    assert roles.patients == [
        "Number of patients on register|Asthma 6+",
        "Number of patients on register|Stroke",
        "Number of patients on register|Stroke.1",
        "Number of patients on register|Diabetes 17+",
    ]
    assert len(roles.prevalence) == 4
    assert roles.subset == ["Prevalence per 1000 patients using subset of list|Diabetes 17+"]
    assert not set(roles.patients) & set(roles.prevalence)
    assert not set(roles.prevalence) & set(roles.subset)
    assert "Practice List Size" not in roles.patients + roles.prevalence + roles.subset


def test_register_map_groups_repeated_columns(table) -> None:
    register_map = build_register_map(table.columns)

    assert list(register_map) == ["Asthma", "Stroke", "Diabetes"]
    assert register_map["Stroke"].patients == [
        "Number of patients on register|Stroke",
        "Number of patients on register|Stroke.1",
    ]
    assert len(register_map["Stroke"].prevalence) == 2
    assert register_map["Stroke"].subset == []
    assert register_map["Diabetes"].subset == ["Prevalence per 1000 patients using subset of list|Diabetes 17+"]


def test_practice_metrics_sum_patients_and_average_rates(table) -> None:
    _, data = aggregate_registers(table)

    stroke = data["Stroke"]
    assert stroke["101"].patients == 15
    assert stroke["101"].prevalence_per_1000 == 7.5
    assert stroke["103"].patients == 3
    assert stroke["103"].prevalence_per_1000 == 6.0
    assert stroke["101"].prevalence_over50_per_1000 is None


def test_zero_or_missing_patients_are_absent(table) -> None:
    _, data = aggregate_registers(table)

    assert "102" not in data["Asthma"]
    assert "102" not in data["Stroke"]
    for metrics in data.values():
        for metric in metrics.values():
            assert metric.patients > 0


def test_unparseable_rate_degrades_to_null(table) -> None:
    _, data = aggregate_registers(table)

    beta = data["Diabetes"]["102"]
    assert beta.patients == 100
    assert beta.prevalence_per_1000 is None
    assert beta.prevalence_over50_per_1000 is None
    assert data["Diabetes"]["101"].prevalence_over50_per_1000 == 125.0


def test_totals_match_sum_of_practices(table) -> None:
    totals, data = aggregate_registers(table)

    assert set(totals) == set(data)
    for condition, metrics in data.items():
        assert totals[condition].total_patients == sum(m.patients for m in metrics.values())


def test_national_rates_use_whole_practice_set(table) -> None:
    totals, _ = aggregate_registers(table)

    assert population_denominators(table) == (3500.0, 1400.0)
    asthma = totals["Asthma"]
    assert asthma.total_patients == 80
    assert asthma.prevalence_per_1000 == 22.8571428571
    assert asthma.prevalence_over50_per_1000 == 57.1428571429
    assert totals["Diabetes"].total_patients == 175
    assert totals["Diabetes"].prevalence_per_1000 == 50.0


def test_subset_rate_undefined_without_target_population_column() -> None:
    first = list(HEADER_FIRST)
    second = list(HEADER_SECOND)
    first[3] = "Unnamed: 3"
    second[3] = None
    table = normalize_prevalence_table(build_raw_sheet(first, second))
    totals, _ = aggregate_registers(table)

    assert population_denominators(table)[1] is None
    assert all(t.prevalence_over50_per_1000 is None for t in totals.values())
    assert totals["Asthma"].prevalence_per_1000 is not None


def test_round_rate() -> None:
    assert round_rate(1 / 3) == 0.3333333333
    assert round_rate(2 / 3) == 0.6666666667
    assert round_rate(None) is None
    assert round_rate(float("nan")) is None


def test_fractional_count_below_one_is_not_stored() -> None:
    rows = [list(r) for r in DATA_ROWS]
    rows[0][4] = "0.4"
    rows[3][4] = "19.6"
    totals, data = aggregate_registers(normalize_prevalence_table(build_raw_sheet(rows=rows)))

    assert "101" not in data["Asthma"]
    assert data["Asthma"]["103"].patients == 20
    assert totals["Asthma"].total_patients == 20
    for metrics in data.values():
        assert all(m.patients >= 1 for m in metrics.values())
