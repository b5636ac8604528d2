import altair as alt
import pandas as pd
import streamlit as st
from contextlib import contextmanager
from typing import List, Optional

from prevalence.charts import spatial_chart
from prevalence.config import dataset_path
from prevalence.controller import ControllerState, DashboardController, DashboardView
from prevalence.data import load_dashboard_data
from prevalence.dataset import DatasetError
from prevalence.spatial import LegendBin

alt.data_transformers.disable_max_rows()


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .legend-item {display: flex;align-items: center;gap: 8px;font-size: 0.85rem;color: #374151;margin: 2px 0;}
        .color-box {width: 18px;height: 12px;border: 1px solid #d1d5db;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


# ---------- controller lifecycle ----------
def get_controller() -> DashboardController:
    controller = st.session_state.get("controller")
    if controller is None:
        controller = DashboardController()
        try:
            controller.load(load_dashboard_data())
        except (FileNotFoundError, DatasetError) as exc:
            controller.load_failed(exc)
        st.session_state["controller"] = controller
    return controller


def on_condition_change():
    st.session_state["controller"].select_condition(st.session_state["condition_select"])


def on_page_click(page: int):
    st.session_state["controller"].go_to_page(page)


# ---------- renderers ----------
def render_score_cards(view: DashboardView):
    cols = st.columns(3)
    cols[0].metric("Patients on register", view.score_cards.total_patients)
    cols[1].metric("Prevalence per 1,000", view.score_cards.prevalence)
    cols[2].metric(
        "Prevalence per 1,000 (50+)",
        view.score_cards.prevalence50,
        help="Uses the over-50 target population where the register defines one.",
    )


def render_table(view: DashboardView):
    if not view.table:
        st.info("No practices with location and data for this register.")
        return
    rows = pd.DataFrame(
        [[r.name, r.patients, r.prevalence, r.prevalence50] for r in view.table],
        columns=list(view.headers),
    )
    st.dataframe(rows, hide_index=True, width="stretch")


def render_pagination(view: DashboardView):
    controls = view.pagination
    if controls is None:
        return
    cols = st.columns(len(controls.buttons))
    for col, button in zip(cols, controls.buttons):
        col.button(
            button.label,
            key=f"page_btn_{button.label}",
            disabled=button.disabled or button.current,
            type="primary" if button.current else "secondary",
            on_click=on_page_click,
            args=(button.target,),
        )
    st.caption(f"Page {controls.page} of {controls.total_pages}")


def render_legend(bins: List[LegendBin]):
    items = "".join(
        f"<div class='legend-item'><div class='color-box' style='background-color:{b.colour}'></div><span>{b.label}</span></div>"
        for b in bins
    )
    st.markdown(items, unsafe_allow_html=True)


def render_spatial(view: DashboardView):
    spatial = view.spatial
    if spatial.is_empty:
        return
    map_col, legend_col = st.columns([5, 1])
    with map_col:
        st.altair_chart(spatial_chart(spatial), width="content")
    with legend_col:
        render_legend(spatial.legend)


def render_dashboard(controller: DashboardController, view: Optional[DashboardView]):
    if view is None:
        st.warning("The dataset contains no registers.")
        return
    st.selectbox(
        "Clinical register",
        options=controller.conditions,
        index=controller.conditions.index(view.condition),
        key="condition_select",
        on_change=on_condition_change,
    )
    with card("National totals"):
        render_score_cards(view)
    with card("Practices by patients on register"):
        render_table(view)
        render_pagination(view)
    with card("Prevalence per 1,000 by practice"):
        render_spatial(view)


# ---------- UI setup ----------
st.set_page_config(page_title="Disease Prevalence Dashboard", layout="wide")
inject_base_styles()
st.title("Disease Prevalence by GP Practice")
st.caption("Registers from the published prevalence tables, one practice per cell.")

controller = get_controller()
if controller.state is ControllerState.FAILED:
    st.error(f"Could not load {dataset_path()}: {controller.error}. Run `python -m prevalence.precompute` first.")
    st.stop()

render_dashboard(controller, controller.view())
