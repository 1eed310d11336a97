from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pandas as pd
import streamlit as st

try:
    from flood_pipeline.config import PipelineConfig
    from flood_pipeline.errors import SourceNotFoundError
    from flood_pipeline.etl import discover_input_file, load_dataset
    from flood_pipeline.model import load_summary
except ModuleNotFoundError:
    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))
    from flood_pipeline.config import PipelineConfig
    from flood_pipeline.errors import SourceNotFoundError
    from flood_pipeline.etl import discover_input_file, load_dataset
    from flood_pipeline.model import load_summary


@st.cache_data(show_spinner=False)
def load_processed_cached(
    input_path: str,
    start_year: int,
    end_year: int,
) -> tuple[pd.DataFrame, dict[str, Any]]:
    config = PipelineConfig(start_year=start_year, end_year=end_year)
    context = load_dataset(Path(input_path), config)
    stats = {
        "raw_count": context.raw_count,
        "cleaned_count": context.cleaned_count,
        "filtered_count": context.filtered_count,
        "issues": [issue.describe() for issue in context.issues],
    }
    return context.processed, stats


@st.cache_data(show_spinner=False)
def load_exported_summary_cached(out_dir: str) -> dict[str, Any]:
    return load_summary(Path(out_dir))


def resolve_input_path(data_dir: Path, explicit: str) -> Path | None:
    if explicit.strip():
        return Path(explicit.strip())
    try:
        return discover_input_file(data_dir)
    except SourceNotFoundError:
        return None


def render_sidebar_controls() -> dict[str, Any]:
    defaults = PipelineConfig()
    st.sidebar.header("Dataset")
    data_dir = st.sidebar.text_input("Data directory", value=str(defaults.data_dir))
    explicit = st.sidebar.text_input("Input CSV (optional)", value="")
    out_dir = st.sidebar.text_input("Output directory", value=str(defaults.out_dir))
    start_year, end_year = st.sidebar.slider(
        "Funding years",
        min_value=2015,
        max_value=2030,
        value=(defaults.start_year, defaults.end_year),
    )
    if st.sidebar.button("Reload dataset"):
        st.cache_data.clear()

    return {
        "input_path": resolve_input_path(Path(data_dir), explicit),
        "out_dir": Path(out_dir),
        "config": PipelineConfig(
            start_year=int(start_year),
            end_year=int(end_year),
            out_dir=Path(out_dir),
        ),
    }


def render_load_issues(stats: dict[str, Any], limit: int = 10) -> None:
    issues = stats.get("issues", [])
    if not issues:
        return

    with st.expander(f"Validation errors ({len(issues)} invalid records)"):
        for message in issues[:limit]:
            st.write(f"- {message}")
        if len(issues) > limit:
            st.caption(f"... and {len(issues) - limit} more errors")
        st.caption(f"Valid records: {stats['cleaned_count']} out of {stats['raw_count']}")
