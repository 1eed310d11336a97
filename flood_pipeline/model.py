from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pandas as pd

from flood_pipeline.reports import ReportTable

logger = logging.getLogger(__name__)

SUMMARY_FILENAME = "summary.json"


def write_report(table: ReportTable, out_dir: Path = Path("output")) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / table.filename
    table.to_frame().to_csv(path, index=False)
    return path


def write_summary(summary: dict[str, Any], out_dir: Path = Path("output")) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / SUMMARY_FILENAME
    path.write_text(json.dumps(summary, indent=2), encoding="utf-8")
    return path


def render_preview(table: ReportTable, limit: int = 5) -> str:
    lines = [f"{table.title} (preview)"]

    if not table.rows:
        lines.append("(no rows)")
        return "\n".join(lines)

    lines.append(table.to_frame().head(limit).to_string(index=False))
    remaining = len(table) - limit
    if remaining > 0:
        lines.append(f"... ({remaining} more rows)")
    return "\n".join(lines)


def load_report(filename: str, out_dir: Path = Path("output")) -> pd.DataFrame:
    path = out_dir / filename
    if not path.exists():
        return pd.DataFrame()
    return pd.read_csv(path, dtype=str, keep_default_na=False)


def load_summary(out_dir: Path = Path("output")) -> dict[str, Any]:
    path = out_dir / SUMMARY_FILENAME
    if not path.exists():
        return {}

    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        logger.warning("Could not parse %s: %s", path, exc)
        return {}
