from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from prevalence.dataset import Dataset


@dataclass(frozen=True)
class Feature:
    id: str
    name: str
    latitude: float
    longitude: float
    patients: int
    prevalence: Optional[float]
    prevalence50: Optional[float]


def derive_features(dataset: Dataset, condition: str) -> List[Feature]:
    """One feature per practice with coordinates and data for ``condition``.

    Practices are visited in directory order; anything else is skipped
    without complaint.
    """
    metrics = dataset.condition_data[condition]
    features: List[Feature] = []
    for pid, rec in dataset.practice_info.items():
        metric = metrics.get(pid)
        if metric is None or not rec.has_coordinates:
            continue
        features.append(
            Feature(
                id=pid,
                name=rec.name,
                latitude=float(rec.latitude),
                longitude=float(rec.longitude),
                patients=metric.patients,
                prevalence=metric.prevalence_per_1000,
                prevalence50=metric.prevalence_over50_per_1000,
            )
        )
    return features
