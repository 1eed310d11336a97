from __future__ import annotations

import json

import streamlit as st

try:
    from app.sections import (
        render_contractor_section,
        render_regional_section,
        render_spatial_section,
        render_summary_section,
        render_trends_section,
    )
    from app.shared import (
        load_exported_summary_cached,
        load_processed_cached,
        render_load_issues,
        render_sidebar_controls,
    )
except ModuleNotFoundError:
    from sections import (
        render_contractor_section,
        render_regional_section,
        render_spatial_section,
        render_summary_section,
        render_trends_section,
    )
    from shared import (
        load_exported_summary_cached,
        load_processed_cached,
        render_load_issues,
        render_sidebar_controls,
    )

from flood_pipeline.errors import SourceReadError
from flood_pipeline.model import write_report, write_summary
from flood_pipeline.reports import build_reports, build_summary

st.set_page_config(
    page_title="Flood Control Projects Dashboard",
    layout="wide",
    initial_sidebar_state="expanded",
)
st.title("Flood Control Projects")

controls = render_sidebar_controls()
config = controls["config"]
input_path = controls["input_path"]

if input_path is None or not input_path.is_file():
    st.error("Input CSV not found. Place the dataset in the data directory or enter its path.")
    st.stop()

try:
    projects, stats = load_processed_cached(str(input_path), config.start_year, config.end_year)
except SourceReadError as exc:
    st.error(f"Error loading file: {exc}")
    st.stop()
st.caption(
    f"{stats['raw_count']:,} rows loaded from `{input_path}`, "
    f"{stats['filtered_count']:,} filtered for {config.start_year}-{config.end_year}"
)
render_load_issues(stats, config.max_reported_errors)

if projects.empty:
    st.info("No data loaded. The filtered dataset is empty.")
    st.stop()

regional, contractors, trends = build_reports(projects, config)
summary = build_summary(projects)

render_summary_section(summary, load_exported_summary_cached(str(controls["out_dir"])))

if st.sidebar.button("Export reports"):
    for table in (regional, contractors, trends):
        write_report(table, controls["out_dir"])
    write_summary(summary, controls["out_dir"])
    load_exported_summary_cached.clear()
    st.sidebar.success(f"Outputs saved to `{controls['out_dir']}`")

tabs = st.tabs(["Regional Efficiency", "Contractors", "Annual Trends", "Map", "Summary JSON"])
with tabs[0]:
    render_regional_section(projects, regional, config)
with tabs[1]:
    render_contractor_section(projects, contractors, config)
with tabs[2]:
    render_trends_section(projects, trends, config)
with tabs[3]:
    render_spatial_section(projects)
with tabs[4]:
    st.code(json.dumps(summary, indent=2), language="json")
