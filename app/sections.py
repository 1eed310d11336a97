from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pandas as pd
import plotly.express as px
import pydeck as pdk
import streamlit as st

try:
    from flood_pipeline.config import PipelineConfig
    from flood_pipeline.metrics import format_large_number, format_number
    from flood_pipeline.reports import (
        ReportTable,
        annual_type_trend_metrics,
        contractor_ranking_metrics,
        regional_efficiency_metrics,
    )
except ModuleNotFoundError:
    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))
    from flood_pipeline.config import PipelineConfig
    from flood_pipeline.metrics import format_large_number, format_number
    from flood_pipeline.reports import (
        ReportTable,
        annual_type_trend_metrics,
        contractor_ranking_metrics,
        regional_efficiency_metrics,
    )


def render_summary_section(summary: dict[str, Any], exported: dict[str, Any]) -> None:
    cards = st.columns(5)
    cards[0].metric("Projects", f"{summary['total_projects']:,}")
    cards[1].metric("Contractors", f"{summary['total_contractors']:,}")
    cards[2].metric("Provinces", f"{summary['total_provinces']:,}")
    cards[3].metric("Avg Delay (days)", format_number(summary["global_avg_delay"], 1))
    cards[4].metric("Total Savings", format_large_number(summary["total_savings"]))

    if exported and exported != summary:
        st.caption("The exported summary.json differs from the current selection. Export again to refresh it.")


def _render_table(table: ReportTable) -> None:
    st.dataframe(table.to_frame(), use_container_width=True, hide_index=True)
    st.caption(f"{len(table)} rows | exported as `{table.filename}`")


def render_regional_section(projects: pd.DataFrame, table: ReportTable, config: PipelineConfig) -> None:
    st.subheader(table.title)
    metrics = regional_efficiency_metrics(projects, config)
    if metrics.empty:
        st.info("No regions in the selected years.")
        return

    fig = px.bar(
        metrics,
        x="region",
        y="efficiency_score",
        color="main_island",
        labels={"region": "Region", "efficiency_score": "Efficiency Score", "main_island": "Main Island"},
    )
    fig.update_layout(yaxis_range=[0, 100])
    st.plotly_chart(fig, use_container_width=True)
    _render_table(table)


def render_contractor_section(projects: pd.DataFrame, table: ReportTable, config: PipelineConfig) -> None:
    st.subheader(table.title)
    ranked = contractor_ranking_metrics(projects, config)
    if ranked.empty:
        st.info(f"No contractor has at least {config.min_contractor_projects} projects in the selected years.")
        return

    fig = px.bar(
        ranked,
        x="total_cost",
        y="contractor",
        color="risk_flag",
        orientation="h",
        labels={"total_cost": "Total Contract Cost", "contractor": "Contractor", "risk_flag": "Risk"},
    )
    fig.update_layout(yaxis={"categoryorder": "total ascending"})
    st.plotly_chart(fig, use_container_width=True)
    _render_table(table)


def render_trends_section(projects: pd.DataFrame, table: ReportTable, config: PipelineConfig) -> None:
    st.subheader(table.title)
    trends = annual_type_trend_metrics(projects, config)
    if trends.empty:
        st.info("No project types in the selected years.")
        return

    fig = px.line(
        trends.sort_values("funding_year"),
        x="funding_year",
        y="avg_savings",
        color="type_of_work",
        markers=True,
        labels={"funding_year": "Funding Year", "avg_savings": "Average Savings", "type_of_work": "Type of Work"},
    )
    fig.update_xaxes(dtick=1)
    st.plotly_chart(fig, use_container_width=True)
    _render_table(table)


def render_spatial_section(projects: pd.DataFrame) -> None:
    st.subheader("Project Locations")
    points = projects.loc[:, ["region", "province", "latitude", "longitude", "cost_savings"]].dropna(
        subset=["latitude", "longitude"]
    )
    missing = len(projects) - len(points)
    if points.empty:
        st.info("No coordinates available after province-level imputation.")
        return

    points = points.assign(
        color=points["cost_savings"].apply(lambda value: [214, 69, 65, 160] if value < 0 else [47, 128, 237, 160])
    )
    layer = pdk.Layer(
        "ScatterplotLayer",
        data=points,
        get_position="[longitude, latitude]",
        get_fill_color="color",
        get_radius=1500,
        pickable=True,
    )
    view = pdk.ViewState(
        latitude=float(points["latitude"].mean()),
        longitude=float(points["longitude"].mean()),
        zoom=4.5,
    )
    st.pydeck_chart(
        pdk.Deck(
            layers=[layer],
            initial_view_state=view,
            tooltip={"text": "{province}, {region}"},
        )
    )
    if missing:
        st.caption(f"{missing:,} projects have no coordinates even after imputation.")
