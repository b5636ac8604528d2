"""Core (UI-agnostic) prevalence dashboard logic.

This package contains:
- workbook normalization and register aggregation (offline build)
- postcode geocoding and the interchange document
- the dashboard controller with its table and spatial view models
- chart helpers (Altair -> Vega-Lite spec dict)
"""
