from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from prevalence.normalize import parse_or_null


logger = logging.getLogger(__name__)


class DatasetError(ValueError):
    """Malformed interchange document or broken key invariant."""


@dataclass(frozen=True)
class PracticeRecord:
    practice_id: str
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    # Join key only; never written to the interchange document.
    postcode: Optional[str] = field(default=None, compare=False, repr=False)

    @property
    def has_coordinates(self) -> bool:
        return (
            self.latitude is not None
            and self.longitude is not None
            and math.isfinite(self.latitude)
            and math.isfinite(self.longitude)
        )


@dataclass(frozen=True)
class ConditionMetric:
    patients: int
    prevalence_per_1000: Optional[float] = None
    prevalence_over50_per_1000: Optional[float] = None


@dataclass(frozen=True)
class ConditionTotals:
    total_patients: int
    prevalence_per_1000: Optional[float] = None
    prevalence_over50_per_1000: Optional[float] = None


@dataclass(frozen=True)
class Dataset:
    practice_info: Dict[str, PracticeRecord]
    condition_totals: Dict[str, ConditionTotals]
    condition_data: Dict[str, Dict[str, ConditionMetric]]

    def conditions(self) -> List[str]:
        return sorted(self.condition_data.keys())

    def orphan_practice_ids(self) -> List[str]:
        orphans = set()
        for metrics in self.condition_data.values():
            orphans.update(pid for pid in metrics if pid not in self.practice_info)
        return sorted(orphans)

    def validate(self) -> "Dataset":
        orphans = self.orphan_practice_ids()
        if orphans:
            sample = ", ".join(orphans[:5])
            raise DatasetError(f"{len(orphans)} practice ids in condition data are missing from practice_info: {sample}")
        missing_totals = sorted(set(self.condition_data) - set(self.condition_totals))
        if missing_totals:
            raise DatasetError(f"conditions without totals: {', '.join(missing_totals)}")
        return self


def _json_float(value: Optional[float]) -> Optional[float]:
    if value is None or not math.isfinite(value):
        return None
    return float(value)


def to_document(dataset: Dataset) -> Dict[str, Any]:
    dataset.validate()
    return {
        "practice_info": {
            pid: {
                "name": rec.name,
                "latitude": _json_float(rec.latitude),
                "longitude": _json_float(rec.longitude),
            }
            for pid, rec in dataset.practice_info.items()
        },
        "condition_totals": {
            name: {
                "total_patients": int(t.total_patients),
                "prevalence_per_1000": _json_float(t.prevalence_per_1000),
                "prevalence_over50_per_1000": _json_float(t.prevalence_over50_per_1000),
            }
            for name, t in dataset.condition_totals.items()
        },
        "condition_data": {
            name: {
                pid: {
                    "patients": int(m.patients),
                    "prevalence_per_1000": _json_float(m.prevalence_per_1000),
                    "prevalence_over50_per_1000": _json_float(m.prevalence_over50_per_1000),
                }
                for pid, m in metrics.items()
            }
            for name, metrics in dataset.condition_data.items()
        },
    }


def _section(doc: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = doc.get(key)
    if not isinstance(value, dict):
        raise DatasetError(f"document section {key!r} is missing or not a mapping")
    return value


def _patients(raw: Dict[str, Any], where: str) -> int:
    value = parse_or_null(raw.get("patients", raw.get("total_patients")))
    if value is None:
        raise DatasetError(f"{where} has no patient count")
    return int(value)


def from_document(doc: Any) -> Dataset:
    if not isinstance(doc, dict):
        raise DatasetError("document root must be a mapping")
    practice_info: Dict[str, PracticeRecord] = {}
    for pid, info in _section(doc, "practice_info").items():
        info = info or {}
        practice_info[str(pid)] = PracticeRecord(
            practice_id=str(pid),
            name=str(info.get("name") or pid),
            latitude=parse_or_null(info.get("latitude")),
            longitude=parse_or_null(info.get("longitude")),
        )

    condition_totals: Dict[str, ConditionTotals] = {}
    for name, raw in _section(doc, "condition_totals").items():
        raw = raw or {}
        condition_totals[str(name)] = ConditionTotals(
            total_patients=_patients(raw, f"totals for {name!r}"),
            prevalence_per_1000=parse_or_null(raw.get("prevalence_per_1000")),
            prevalence_over50_per_1000=parse_or_null(raw.get("prevalence_over50_per_1000")),
        )

    condition_data: Dict[str, Dict[str, ConditionMetric]] = {}
    for name, metrics in _section(doc, "condition_data").items():
        if not isinstance(metrics, dict):
            raise DatasetError(f"condition data for {name!r} is not a mapping")
        condition_data[str(name)] = {
            str(pid): ConditionMetric(
                patients=_patients(raw or {}, f"{name!r} / {pid!r}"),
                prevalence_per_1000=parse_or_null((raw or {}).get("prevalence_per_1000")),
                prevalence_over50_per_1000=parse_or_null((raw or {}).get("prevalence_over50_per_1000")),
            )
            for pid, raw in metrics.items()
        }

    return Dataset(
        practice_info=practice_info,
        condition_totals=condition_totals,
        condition_data=condition_data,
    ).validate()


def write_dataset(dataset: Dataset, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    document = to_document(dataset)
    path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("wrote %d conditions for %d practices to %s", len(document["condition_data"]), len(document["practice_info"]), path)
    return path


def load_dataset(path: Path) -> Dataset:
    path = Path(path)
    try:
        doc = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise DatasetError(f"{path} is not valid JSON: {exc}") from exc
    return from_document(doc)
