from __future__ import annotations

from typing import Any, Dict

import altair as alt

from prevalence.spatial import SpatialView

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _pixel_projection(chart: alt.Chart) -> alt.Chart:
    # Geometry is already in surface pixels; stop Vega-Lite from refitting it.
    return chart.project(type="identity", reflectY=False, scale=1, translate=[0, 0])


def spatial_chart(view: SpatialView) -> alt.LayerChart:
    """Voronoi cells coloured by quantile bin, with the hull drawn on top."""
    cells = _pixel_projection(
        alt.Chart(alt.Data(values=view.cell_geojson()))
        .mark_geoshape(stroke="#fff", strokeWidth=0.3)
        .encode(
            color=alt.Color("properties.colour:N", scale=None, legend=None),
            tooltip=[
                alt.Tooltip("properties.name:N", title="Practice"),
                alt.Tooltip("properties.patients:N", title="Patients"),
                alt.Tooltip("properties.prevalence:N", title="Prevalence per 1,000"),
                alt.Tooltip("properties.prevalence50:N", title="Prevalence per 1,000 (50+)"),
            ],
        )
    )
    layers = [cells]

    outline = view.outline_geojson()
    if outline is not None:
        layers.append(
            _pixel_projection(
                alt.Chart(alt.Data(values=[outline])).mark_geoshape(filled=False, stroke="#4b5563", strokeWidth=1)
            )
        )

    return alt.layer(*layers).properties(width=view.width, height=view.height).configure_view(stroke=None)
