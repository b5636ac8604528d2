from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field


class PracticeInfoModel(BaseModel):
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class ConditionTotalsModel(BaseModel):
    total_patients: int
    prevalence_per_1000: Optional[float] = None
    prevalence_over50_per_1000: Optional[float] = None


class ConditionMetricModel(BaseModel):
    patients: int
    prevalence_per_1000: Optional[float] = None
    prevalence_over50_per_1000: Optional[float] = None


class DatasetDocumentModel(BaseModel):
    practice_info: Dict[str, PracticeInfoModel] = Field(default_factory=dict)
    condition_totals: Dict[str, ConditionTotalsModel] = Field(default_factory=dict)
    condition_data: Dict[str, Dict[str, ConditionMetricModel]] = Field(default_factory=dict)


class DashboardSettingsModel(BaseModel):
    width: int = 800
    height: int = 600
    center: Tuple[float, float] = (-6.7, 54.6)
    scale: float = 8000.0


class DashboardRequestModel(BaseModel):
    condition: Optional[str] = None
    page: int = 1
    settings: DashboardSettingsModel = Field(default_factory=DashboardSettingsModel)


class MetaListResponse(BaseModel):
    values: List[str]
