from __future__ import annotations

from typing import Optional

import pandas as pd

from prevalence.config import PLACEHOLDER_GLYPH


def format_number(value: object) -> str:
    if value is None or pd.isna(value):
        return PLACEHOLDER_GLYPH
    return f"{int(value):,}"


def format_decimal(value: Optional[float], decimals: int = 2) -> str:
    if value is None or pd.isna(value):
        return PLACEHOLDER_GLYPH
    return f"{float(value):,.{decimals}f}"


def format_range(low: Optional[float], high: Optional[float]) -> str:
    return f"{format_decimal(low)} – {format_decimal(high)}"
