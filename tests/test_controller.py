from __future__ import annotations

import pytest

from conftest import make_dataset
from prevalence.config import normalize_settings
from prevalence.controller import ControllerState, DashboardController
from prevalence.dataset import ConditionTotals, Dataset


@pytest.fixture()
def controller(small_dataset) -> DashboardController:
    c = DashboardController()
    c.load(small_dataset)
    return c


def test_starts_uninitialized() -> None:
    c = DashboardController()
    assert c.state is ControllerState.UNINITIALIZED
    assert c.view() is None
    assert c.next_page() is None


def test_load_selects_first_condition(controller) -> None:
    view = controller.view()

    assert controller.state is ControllerState.SELECTED
    assert view.condition == "Asthma"
    assert view.conditions == ["Asthma", "Zeta"]
    assert view.page.page == 1
    assert [row.patients for row in view.table] == ["90", "80", "70", "60", "50", "50", "40", "30", "20", "10"]
    assert [row.id for row in view.table][4:6] == ["P000", "P001"]


def test_score_cards_are_formatted(controller) -> None:
    cards = controller.view().score_cards

    assert cards.total_patients == "500"
    assert cards.prevalence == "12.35"
    assert cards.prevalence50 == "–"


def test_select_resets_page() -> None:
    c = DashboardController()
    c.load(make_dataset(list(range(1, 24))))
    assert c.go_to_page(3).page.page == 3

    view = c.select_condition("Asthma")
    assert view.page.page == 1
    assert len(view.table) == 10


def test_unknown_condition_leaves_state_untouched(controller) -> None:
    before = controller.view()
    with pytest.raises(KeyError):
        controller.select_condition("Gout")
    assert controller.condition == "Asthma"
    assert controller.view() is before


def test_select_before_load_is_an_error() -> None:
    with pytest.raises(RuntimeError):
        DashboardController().select_condition("Asthma")


def test_condition_without_features_renders_empty(controller) -> None:
    view = controller.select_condition("Zeta")

    assert view.table == []
    assert view.pagination is None
    assert view.spatial.is_empty
    assert view.spatial.legend == []
    assert view.score_cards.total_patients == "0"


def test_page_moves_and_no_ops() -> None:
    c = DashboardController()
    c.load(make_dataset(list(range(1, 24))))

    first = c.view()
    assert c.previous_page() is first
    assert c.go_to_page(99) is first

    second = c.next_page()
    assert second.page.page == 2
    assert second.pagination.buttons[0].disabled is False
    assert second.spatial is first.spatial

    third = c.go_to_page(3)
    assert len(third.table) == 3
    assert c.next_page() is third


def test_load_failed() -> None:
    c = DashboardController()
    c.load_failed(FileNotFoundError("dashboard/ni_prevalence_data.json"))

    assert c.state is ControllerState.FAILED
    assert "ni_prevalence_data.json" in c.error
    assert c.go_to_page(2) is None


def test_load_with_no_conditions() -> None:
    c = DashboardController()
    assert c.load(Dataset(practice_info={}, condition_totals={}, condition_data={})) is None
    assert c.state is ControllerState.LOADED


def test_normalize_settings_clamps() -> None:
    settings = normalize_settings({"width": 10, "height": "9000", "scale": -1, "center": ["x"]})

    assert settings.width == 100
    assert settings.height == 4000
    assert settings.scale == 8000.0
    assert settings.center == (-6.7, 54.6)


def test_projection_is_shared_across_conditions() -> None:
    base = make_dataset([50, 50, 30, 80, 10, 20, 60, 70, 40, 90])
    copd = {pid: m for pid, m in base.condition_data["Asthma"].items() if pid in {"P000", "P002", "P003"}}
    dataset = Dataset(
        practice_info=base.practice_info,
        condition_totals={**base.condition_totals, "COPD": ConditionTotals(total_patients=160)},
        condition_data={**base.condition_data, "COPD": copd},
    )
    c = DashboardController()
    c.load(dataset)

    wide = {cell.feature.id: (cell.x, cell.y) for cell in c.select_condition("Asthma").spatial.cells}
    narrow = {cell.feature.id: (cell.x, cell.y) for cell in c.select_condition("COPD").spatial.cells}

    assert len(narrow) == 3 < len(wide)
    for pid, point in narrow.items():
        assert point == wide[pid]
