from __future__ import annotations

from datetime import date, timedelta

import pandas as pd
import pytest

from flood_pipeline.config import PipelineConfig
from flood_pipeline.errors import ReportSchemaError
from flood_pipeline.etl import add_derived_fields, coerce_cleaned_schema
from flood_pipeline.reports import (
    CONTRACTOR_HEADERS,
    REGIONAL_HEADERS,
    TRENDS_HEADERS,
    ReportRow,
    ReportTable,
    annual_type_trend_metrics,
    annual_type_trends_report,
    build_reports,
    build_summary,
    contractor_ranking_metrics,
    contractor_ranking_report,
    efficiency_score,
    regional_efficiency_metrics,
    regional_efficiency_report,
    reliability_index,
    yoy_change,
)

START = date(2022, 1, 1)


def _projects(rows: list[dict]) -> pd.DataFrame:
    base = {
        "region": "Region VII",
        "main_island": "Visayas",
        "province": "Bohol",
        "funding_year": 2022,
        "type_of_work": "Dike",
        "contractor": "Visayan Builders",
        "approved_budget": 100.0,
        "contract_cost": 100.0,
        "start_date": None,
        "actual_completion_date": None,
        "latitude": None,
        "longitude": None,
    }
    records = []
    for row in rows:
        row = dict(row)
        delay = row.pop("delay", None)
        savings = row.pop("savings", None)
        record = {**base, **row}
        if delay is not None:
            record["start_date"] = START
            record["actual_completion_date"] = START + timedelta(days=delay)
        if savings is not None:
            record["approved_budget"] = record["contract_cost"] + savings
        records.append(record)
    return add_derived_fields(coerce_cleaned_schema(pd.DataFrame(records)))


def test_efficiency_score_policy_for_zero_delay() -> None:
    assert efficiency_score(500.0, 0.0) == 0.0
    assert efficiency_score(500.0, 2.0) == 100.0
    assert efficiency_score(-10.0, 5.0) == 0.0
    assert efficiency_score(1.0, 4.0) == 25.0


def test_regional_report_ranks_by_efficiency_score() -> None:
    frame = _projects(
        [
            {"region": "Region V", "main_island": "Luzon", "savings": 0.4, "delay": 1},
            {"region": "Region X", "main_island": "Mindanao", "savings": 0.8, "delay": 1},
        ]
    )

    metrics = regional_efficiency_metrics(frame)

    assert metrics["region"].tolist() == ["Region X", "Region V"]
    assert metrics.loc[0, "efficiency_score"] == pytest.approx(80.0)
    assert metrics.loc[1, "efficiency_score"] == pytest.approx(40.0)


def test_regional_metrics_delay_statistics() -> None:
    frame = _projects(
        [
            {"savings": 10.0, "delay": 10},
            {"savings": 20.0, "delay": 40},
            {"savings": 40.0, "delay": 55},
            {"savings": 30.0},
        ]
    )

    row = regional_efficiency_metrics(frame).iloc[0]

    assert row["median_savings"] == 25.0
    assert row["avg_delay"] == pytest.approx(35.0)
    assert row["high_delay_pct"] == pytest.approx(200 / 3)
    assert row["efficiency_score"] == pytest.approx(25.0 / 35.0 * 100)
    assert row["total_budget"] == pytest.approx(frame["approved_budget"].sum())


def test_regional_metrics_without_any_delay_scores_zero() -> None:
    frame = _projects([{"savings": 50.0}, {"savings": 70.0}])

    row = regional_efficiency_metrics(frame).iloc[0]

    assert row["avg_delay"] == 0.0
    assert row["high_delay_pct"] == 0.0
    assert row["efficiency_score"] == 0.0


def test_regional_report_formats_columns_in_header_order() -> None:
    frame = _projects([{"contract_cost": 1_000_000.0, "savings": 234_567.5, "delay": 10}])

    table = regional_efficiency_report(frame)

    assert table.headers == REGIONAL_HEADERS
    assert list(table.rows[0]) == list(REGIONAL_HEADERS)
    assert table.rows[0]["TotalBudget"] == "1,234,568"
    assert table.rows[0]["MedianSavings"] == "234,567.50"
    assert table.rows[0]["AvgDelay"] == "10.00"
    assert table.rows[0]["EfficiencyScore"] == "100.00"


def test_contractor_report_requires_minimum_projects() -> None:
    frame = _projects(
        [{"contractor": "Four Corners"} for _ in range(4)] + [{"contractor": "High Five"} for _ in range(5)]
    )

    ranked = contractor_ranking_metrics(frame)

    assert ranked["contractor"].tolist() == ["High Five"]
    assert ranked.loc[0, "num_projects"] == 5


def test_contractor_report_keeps_top_fifteen_by_total_cost() -> None:
    rows = []
    for index in range(17):
        rows.extend({"contractor": f"Contractor {index:02d}", "contract_cost": 100.0 + index} for _ in range(5))
    frame = _projects(rows)

    table = contractor_ranking_report(frame)

    assert table.headers == CONTRACTOR_HEADERS
    assert len(table) == 15
    assert table.rows[0]["Rank"] == "1"
    assert table.rows[0]["Contractor"] == "Contractor 16"
    assert table.rows[-1]["Rank"] == "15"
    assert table.rows[-1]["Contractor"] == "Contractor 02"


def test_contractor_reliability_and_risk_flag() -> None:
    frame = _projects(
        [{"contractor": "Steady", "contract_cost": 100.0, "savings": 100.0, "delay": 45} for _ in range(5)]
        + [{"contractor": "Costly", "contract_cost": 200.0, "savings": 20.0, "delay": 0} for _ in range(5)]
        + [{"contractor": "Free", "contract_cost": 0.0, "savings": 0.0} for _ in range(5)]
    )

    ranked = contractor_ranking_metrics(frame).set_index("contractor")

    assert ranked.loc["Steady", "reliability_index"] == pytest.approx(50.0)
    assert ranked.loc["Steady", "risk_flag"] == "Low Risk"
    assert ranked.loc["Costly", "reliability_index"] == pytest.approx(10.0)
    assert ranked.loc["Costly", "risk_flag"] == "High Risk"
    assert ranked.loc["Free", "reliability_index"] == 0.0
    assert ranked.loc["Free", "risk_flag"] == "High Risk"


def test_reliability_index_caps_delay_factor_and_score() -> None:
    assert reliability_index(180.0, 50.0, 100.0) == 0.0
    assert reliability_index(0.0, 500.0, 100.0) == 100.0
    assert reliability_index(10.0, 10.0, 0.0) == 0.0


def test_yoy_change_requires_non_zero_baseline() -> None:
    assert yoy_change(30.0, 20.0) == 50.0
    assert yoy_change(-10.0, -20.0) == 50.0
    assert yoy_change(5.0, 0.0) == 0.0
    assert yoy_change(5.0, None) == 0.0


def test_annual_trends_baseline_and_ordering() -> None:
    frame = _projects(
        [
            {"funding_year": 2021, "type_of_work": "Dike", "savings": 10.0},
            {"funding_year": 2021, "type_of_work": "Dike", "savings": 30.0},
            {"funding_year": 2022, "type_of_work": "Dike", "savings": 30.0},
            {"funding_year": 2023, "type_of_work": "Dike", "savings": -10.0},
            {"funding_year": 2022, "type_of_work": "Pump", "savings": 12.0},
            {"funding_year": 2021, "type_of_work": "Wall", "savings": 0.0},
            {"funding_year": 2022, "type_of_work": "Wall", "savings": 5.0},
        ]
    )

    trends = annual_type_trend_metrics(frame)

    assert list(zip(trends["funding_year"], trends["type_of_work"])) == [
        (2021, "Dike"),
        (2021, "Wall"),
        (2022, "Dike"),
        (2022, "Pump"),
        (2022, "Wall"),
        (2023, "Dike"),
    ]
    by_key = trends.set_index(["funding_year", "type_of_work"])
    assert by_key.loc[(2021, "Dike"), "avg_savings"] == 20.0
    assert by_key.loc[(2021, "Dike"), "yoy_change"] == 0.0
    assert by_key.loc[(2022, "Dike"), "yoy_change"] == pytest.approx(50.0)
    assert by_key.loc[(2023, "Dike"), "yoy_change"] == pytest.approx(-150.0)
    assert by_key.loc[(2023, "Dike"), "overrun_rate"] == 100.0
    assert by_key.loc[(2022, "Pump"), "yoy_change"] == 0.0
    assert by_key.loc[(2022, "Wall"), "yoy_change"] == 0.0


def test_annual_trends_report_formats_rows() -> None:
    frame = _projects(
        [
            {"funding_year": 2021, "savings": 1500.0},
            {"funding_year": 2021, "savings": -500.0},
        ]
    )

    table = annual_type_trends_report(frame)

    assert table.headers == TRENDS_HEADERS
    assert dict(table.rows[0]) == {
        "FundingYear": "2021",
        "TypeOfWork": "Dike",
        "TotalProjects": "2",
        "AvgSavings": "500.00",
        "OverrunRate": "50.00",
        "YoYChange": "0.00",
    }


def test_build_summary_counts_and_rounding() -> None:
    frame = _projects(
        [
            {"contractor": "Alpha", "province": "Bohol", "savings": 0.25, "delay": 10},
            {"contractor": "Alpha", "province": "Cebu", "savings": 0.25, "delay": 11},
            {"contractor": "Unknown", "province": "", "savings": 0.0},
            {"contractor": "Beta", "province": "Cebu", "savings": 0.0},
        ]
    )

    summary = build_summary(frame)

    assert summary == {
        "total_projects": 4,
        "total_contractors": 2,
        "total_provinces": 2,
        "global_avg_delay": 10.5,
        "total_savings": 1,
    }


def test_build_reports_on_empty_frame_returns_empty_tables() -> None:
    frame = _projects([{"funding_year": 2022}]).iloc[0:0]

    tables = build_reports(frame, PipelineConfig())

    assert [len(table) for table in tables] == [0, 0, 0]
    assert build_summary(frame)["total_projects"] == 0


def test_report_row_rejects_column_drift() -> None:
    with pytest.raises(ReportSchemaError):
        ReportRow(("Region", "MainIsland"), {"Region": "NCR"})

    with pytest.raises(ReportSchemaError):
        ReportRow(("Region",), {"Region": "NCR", "Extra": "x"})

    row = ReportRow(("B", "A"), {"A": 1, "B": 2.5})
    assert list(row.items()) == [("B", "2.5"), ("A", "1")]


def test_report_table_to_frame_uses_declared_header_order() -> None:
    table = ReportTable(title="t", filename="t.csv", headers=("B", "A"))
    table.add_row({"A": "1", "B": "2"})

    frame = table.to_frame()

    assert frame.columns.tolist() == ["B", "A"]
    assert frame.iloc[0].tolist() == ["2", "1"]
