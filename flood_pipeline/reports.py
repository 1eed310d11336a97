from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from flood_pipeline.config import PipelineConfig
from flood_pipeline.errors import ReportSchemaError
from flood_pipeline.metrics import (
    clamp,
    format_large_number,
    format_number,
    mean,
    median,
    percentage,
    round_half_up,
)

REGIONAL_HEADERS = (
    "Region",
    "MainIsland",
    "TotalBudget",
    "MedianSavings",
    "AvgDelay",
    "HighDelayPct",
    "EfficiencyScore",
)

CONTRACTOR_HEADERS = (
    "Rank",
    "Contractor",
    "TotalCost",
    "NumProjects",
    "AvgDelay",
    "TotalSavings",
    "ReliabilityIndex",
    "RiskFlag",
)

TRENDS_HEADERS = (
    "FundingYear",
    "TypeOfWork",
    "TotalProjects",
    "AvgSavings",
    "OverrunRate",
    "YoYChange",
)

# Regions whose projects carry no measurable delay score zero. An alternative
# reading treats them as fully efficient (100); see DESIGN.md.
NO_DELAY_EFFICIENCY_SCORE = 0.0

HIGH_RISK = "High Risk"
LOW_RISK = "Low Risk"


class ReportRow(Mapping[str, str]):
    """Immutable, ordered report row whose keys must equal the declared headers."""

    __slots__ = ("_values",)

    def __init__(self, headers: Sequence[str], values: Mapping[str, Any]) -> None:
        missing = [header for header in headers if header not in values]
        unexpected = [key for key in values if key not in headers]
        if missing or unexpected or len(set(headers)) != len(headers):
            raise ReportSchemaError(
                f"Report row does not match headers {list(headers)}: "
                f"missing={missing} unexpected={unexpected}"
            )
        self._values = {header: str(values[header]) for header in headers}

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ReportRow({self._values!r})"


@dataclass(slots=True)
class ReportTable:
    title: str
    filename: str
    headers: tuple[str, ...]
    rows: list[ReportRow] = field(default_factory=list)

    def add_row(self, values: Mapping[str, Any]) -> ReportRow:
        row = ReportRow(self.headers, values)
        self.rows.append(row)
        return row

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([dict(row) for row in self.rows], columns=list(self.headers))

    def __len__(self) -> int:
        return len(self.rows)


def _present_delays(frame: pd.DataFrame) -> pd.Series:
    return pd.to_numeric(frame["completion_delay_days"], errors="coerce").dropna().astype(float)


def efficiency_score(median_savings: float, avg_delay: float) -> float:
    if avg_delay <= 0:
        return NO_DELAY_EFFICIENCY_SCORE
    return clamp(median_savings / avg_delay * 100)


def reliability_index(
    avg_delay: float,
    total_savings: float,
    total_cost: float,
    delay_baseline_days: float = 90.0,
) -> float:
    if total_cost <= 0:
        return 0.0
    delay_factor = max(0.0, 1 - avg_delay / delay_baseline_days)
    return clamp(delay_factor * (total_savings / total_cost) * 100)


def yoy_change(value: float, baseline: float | None) -> float:
    if baseline is None or pd.isna(baseline) or baseline == 0:
        return 0.0
    return (value - baseline) / abs(baseline) * 100


def regional_efficiency_metrics(
    frame: pd.DataFrame,
    config: PipelineConfig | None = None,
) -> pd.DataFrame:
    config = config or PipelineConfig()
    columns = [
        "region",
        "main_island",
        "total_budget",
        "median_savings",
        "avg_delay",
        "high_delay_pct",
        "efficiency_score",
    ]

    rows = []
    for region, group in frame.groupby("region", sort=False):
        main_island = str(group["main_island"].iloc[0]).strip() or "Unknown"
        delays = _present_delays(group)
        median_savings = median(group["cost_savings"])
        avg_delay = mean(delays)
        high_delay = int((delays > config.high_delay_threshold_days).sum())

        rows.append(
            {
                "region": region,
                "main_island": main_island,
                "total_budget": float(group["approved_budget"].sum()),
                "median_savings": median_savings,
                "avg_delay": avg_delay,
                "high_delay_pct": percentage(high_delay, len(delays)),
                "efficiency_score": efficiency_score(median_savings, avg_delay),
            }
        )

    metrics = pd.DataFrame(rows, columns=columns)
    return metrics.sort_values("efficiency_score", ascending=False, kind="stable").reset_index(drop=True)


def contractor_ranking_metrics(
    frame: pd.DataFrame,
    config: PipelineConfig | None = None,
) -> pd.DataFrame:
    config = config or PipelineConfig()
    columns = [
        "rank",
        "contractor",
        "total_cost",
        "num_projects",
        "avg_delay",
        "total_savings",
        "reliability_index",
        "risk_flag",
    ]

    rows = []
    for contractor, group in frame.groupby("contractor", sort=False):
        if len(group) < config.min_contractor_projects:
            continue

        total_cost = float(group["contract_cost"].sum())
        total_savings = float(group["cost_savings"].sum())
        avg_delay = mean(_present_delays(group))
        reliability = reliability_index(
            avg_delay,
            total_savings,
            total_cost,
            config.reliability_delay_days,
        )

        rows.append(
            {
                "rank": 0,
                "contractor": contractor,
                "total_cost": total_cost,
                "num_projects": len(group),
                "avg_delay": avg_delay,
                "total_savings": total_savings,
                "reliability_index": reliability,
                "risk_flag": HIGH_RISK if reliability < config.risk_threshold else LOW_RISK,
            }
        )

    ranked = (
        pd.DataFrame(rows, columns=columns)
        .sort_values("total_cost", ascending=False, kind="stable")
        .head(config.top_contractors)
        .reset_index(drop=True)
    )
    ranked["rank"] = range(1, len(ranked) + 1)
    return ranked


def annual_type_trend_metrics(
    frame: pd.DataFrame,
    config: PipelineConfig | None = None,
) -> pd.DataFrame:
    config = config or PipelineConfig()
    columns = [
        "funding_year",
        "type_of_work",
        "total_projects",
        "avg_savings",
        "overrun_rate",
        "yoy_change",
    ]

    rows = []
    for (funding_year, type_of_work), group in frame.groupby(["funding_year", "type_of_work"], sort=False):
        savings = pd.to_numeric(group["cost_savings"], errors="coerce")
        rows.append(
            {
                "funding_year": int(funding_year),
                "type_of_work": type_of_work,
                "total_projects": len(group),
                "avg_savings": mean(savings),
                "overrun_rate": percentage(int((savings < 0).sum()), len(group)),
                "yoy_change": 0.0,
            }
        )

    trends = pd.DataFrame(rows, columns=columns)
    if trends.empty:
        return trends

    baselines = trends.loc[trends["funding_year"] == config.baseline_year].set_index("type_of_work")[
        "avg_savings"
    ]
    trends["yoy_change"] = [
        0.0 if year == config.baseline_year else yoy_change(value, baselines.get(type_of_work))
        for year, type_of_work, value in zip(
            trends["funding_year"],
            trends["type_of_work"],
            trends["avg_savings"],
        )
    ]

    return trends.sort_values(
        ["funding_year", "avg_savings"],
        ascending=[True, False],
        kind="stable",
    ).reset_index(drop=True)


def regional_efficiency_report(
    frame: pd.DataFrame,
    config: PipelineConfig | None = None,
) -> ReportTable:
    table = ReportTable(
        title="Regional Flood Mitigation Efficiency Summary",
        filename="report1_regional_efficiency.csv",
        headers=REGIONAL_HEADERS,
    )
    for row in regional_efficiency_metrics(frame, config).itertuples(index=False):
        table.add_row(
            {
                "Region": row.region,
                "MainIsland": row.main_island,
                "TotalBudget": format_large_number(row.total_budget),
                "MedianSavings": format_number(row.median_savings),
                "AvgDelay": format_number(row.avg_delay),
                "HighDelayPct": format_number(row.high_delay_pct),
                "EfficiencyScore": format_number(row.efficiency_score),
            }
        )
    return table


def contractor_ranking_report(
    frame: pd.DataFrame,
    config: PipelineConfig | None = None,
) -> ReportTable:
    table = ReportTable(
        title="Top Contractors Performance Ranking",
        filename="report2_contractor_ranking.csv",
        headers=CONTRACTOR_HEADERS,
    )
    for row in contractor_ranking_metrics(frame, config).itertuples(index=False):
        table.add_row(
            {
                "Rank": int(row.rank),
                "Contractor": row.contractor,
                "TotalCost": format_large_number(row.total_cost),
                "NumProjects": int(row.num_projects),
                "AvgDelay": format_number(row.avg_delay),
                "TotalSavings": format_large_number(row.total_savings),
                "ReliabilityIndex": format_number(row.reliability_index),
                "RiskFlag": row.risk_flag,
            }
        )
    return table


def annual_type_trends_report(
    frame: pd.DataFrame,
    config: PipelineConfig | None = None,
) -> ReportTable:
    table = ReportTable(
        title="Annual Project Type Cost Overrun Trends",
        filename="report3_cost_overrun_trends.csv",
        headers=TRENDS_HEADERS,
    )
    for row in annual_type_trend_metrics(frame, config).itertuples(index=False):
        table.add_row(
            {
                "FundingYear": int(row.funding_year),
                "TypeOfWork": row.type_of_work,
                "TotalProjects": int(row.total_projects),
                "AvgSavings": format_number(row.avg_savings),
                "OverrunRate": format_number(row.overrun_rate),
                "YoYChange": format_number(row.yoy_change),
            }
        )
    return table


def build_reports(
    frame: pd.DataFrame,
    config: PipelineConfig | None = None,
) -> list[ReportTable]:
    return [
        regional_efficiency_report(frame, config),
        contractor_ranking_report(frame, config),
        annual_type_trends_report(frame, config),
    ]


def build_summary(frame: pd.DataFrame) -> dict[str, int | float]:
    contractors = frame["contractor"].astype("string").fillna("").str.strip()
    provinces = frame["province"].astype("string").fillna("").str.strip()
    contractors = contractors[(contractors != "") & (contractors != "Unknown")]
    provinces = provinces[provinces != ""]

    total_savings = pd.to_numeric(frame["cost_savings"], errors="coerce").sum()

    return {
        "total_projects": int(len(frame)),
        "total_contractors": int(contractors.nunique()),
        "total_provinces": int(provinces.nunique()),
        "global_avg_delay": round_half_up(mean(_present_delays(frame)), 1),
        "total_savings": int(round_half_up(total_savings, 0)),
    }
