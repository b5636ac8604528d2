from __future__ import annotations

from pathlib import Path

from streamlit.testing.v1 import AppTest

from conftest import make_dataset
from prevalence.dataset import write_dataset

APP = Path(__file__).resolve().parents[1] / "app.py"


def test_app_renders_dashboard(tmp_path, monkeypatch) -> None:
    path = write_dataset(make_dataset(list(range(1, 24))), tmp_path / "data.json")
    monkeypatch.setenv("PREVALENCE_DATASET_PATH", str(path))

    at = AppTest.from_file(str(APP), default_timeout=60).run()

    assert not at.exception
    assert not at.error
    assert at.selectbox[0].value == "Asthma"
    assert len(at.metric) == 3
    assert len(at.dataframe) == 1
    assert "Next ›" in [b.label for b in at.button]


def test_app_reports_missing_dataset(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("PREVALENCE_DATASET_PATH", str(tmp_path / "missing.json"))

    at = AppTest.from_file(str(APP), default_timeout=60).run()

    assert len(at.error) == 1
    assert "missing.json" in at.error[0].value
