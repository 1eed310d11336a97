from __future__ import annotations

import argparse
import json
import logging
import math
import re
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from flood_pipeline.config import INPUT_COLUMNS, INPUT_FILENAMES, VALID_YEAR_RANGE, PipelineConfig
from flood_pipeline.errors import EmptyDatasetError, RowIssue, SourceNotFoundError, SourceReadError
from flood_pipeline.model import render_preview, write_report, write_summary
from flood_pipeline.reports import ReportTable, build_reports, build_summary

logger = logging.getLogger(__name__)

CLEANED_FIELDS = [
    "region",
    "main_island",
    "province",
    "funding_year",
    "type_of_work",
    "contractor",
    "approved_budget",
    "contract_cost",
    "start_date",
    "actual_completion_date",
    "latitude",
    "longitude",
]

PROCESSED_FIELDS = CLEANED_FIELDS + ["cost_savings", "completion_delay_days"]

DATE_FIELDS = ["start_date", "actual_completion_date"]

NUMERIC_FIELDS = ["approved_budget", "contract_cost", "latitude", "longitude"]

STRING_FIELDS = ["region", "main_island", "province", "type_of_work", "contractor"]

MISSING_MARKERS = {"", "N/A"}

UNKNOWN = "Unknown"

_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")
_DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
_NUMBER_PATTERN = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


@dataclass(slots=True, frozen=True)
class ValidationResult:
    is_valid: bool
    errors: tuple[str, ...] = ()


@dataclass(slots=True)
class PipelineContext:
    source_path: Path
    raw_count: int
    cleaned_count: int
    processed: pd.DataFrame
    issues: list[RowIssue] = field(default_factory=list)

    @property
    def filtered_count(self) -> int:
        return int(len(self.processed))


def discover_input_file(
    data_dir: Path = Path("data"),
    fallback_dir: Path = Path("."),
) -> Path:
    for directory in (data_dir, fallback_dir):
        for name in INPUT_FILENAMES:
            candidate = directory / name
            if candidate.is_file():
                return candidate

    raise SourceNotFoundError(f"CSV file not found. Looked for: {', '.join(INPUT_FILENAMES)}")


def read_raw_records(path: Path) -> pd.DataFrame:
    if not path.is_file():
        raise SourceNotFoundError(f"File not found: {path}")

    try:
        frame = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise SourceReadError(f"Could not parse {path}: {exc}") from exc
    frame.columns = [str(column).strip() for column in frame.columns]

    missing_columns = [column for column in INPUT_COLUMNS if column not in frame.columns]
    if missing_columns:
        logger.warning("Input file=%s is missing columns=%s", path, missing_columns)
        for column in missing_columns:
            frame[column] = ""

    return frame


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def _is_blank(value: Any) -> bool:
    return _text(value) == ""


def parse_int(value: Any) -> int | None:
    text = _text(value)
    if not _INTEGER_PATTERN.fullmatch(text):
        return None
    return int(text)


def parse_number(value: Any) -> float | None:
    text = _text(value).replace(",", "").strip()
    if text in MISSING_MARKERS or not _NUMBER_PATTERN.fullmatch(text):
        return None
    number = float(text)
    return number if math.isfinite(number) else None


def parse_date(value: Any) -> date | None:
    text = _text(value)
    if not _DATE_PATTERN.fullmatch(text):
        return None
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        return None


def validate_record(
    record: Mapping[str, Any],
    valid_years: tuple[int, int] = VALID_YEAR_RANGE,
) -> ValidationResult:
    errors: list[str] = []

    if _is_blank(record.get("Region")):
        errors.append("Missing Region")

    if _is_blank(record.get("MainIsland")):
        errors.append("Missing MainIsland")

    year = parse_int(record.get("FundingYear"))
    if year is None or not valid_years[0] <= year <= valid_years[1]:
        errors.append(f"Invalid FundingYear: {_text(record.get('FundingYear'))}")

    if _is_blank(record.get("ApprovedBudgetForContract")):
        errors.append("Missing ApprovedBudgetForContract")

    if _is_blank(record.get("ContractCost")):
        errors.append("Missing ContractCost")

    return ValidationResult(is_valid=not errors, errors=tuple(errors))


def parse_failures(record: Mapping[str, Any]) -> list[str]:
    messages = []
    for column in ("ApprovedBudgetForContract", "ContractCost"):
        if parse_number(record.get(column)) is None:
            messages.append(f"Invalid {column}: {_text(record.get(column))}")
    return messages


def clean_record(
    record: Mapping[str, Any],
    valid_years: tuple[int, int] = VALID_YEAR_RANGE,
) -> dict[str, Any] | None:
    if not validate_record(record, valid_years).is_valid:
        return None

    approved_budget = parse_number(record.get("ApprovedBudgetForContract"))
    contract_cost = parse_number(record.get("ContractCost"))
    if approved_budget is None or contract_cost is None:
        return None

    return {
        "region": _text(record.get("Region")),
        "main_island": _text(record.get("MainIsland")),
        "province": _text(record.get("Province")),
        "funding_year": parse_int(record.get("FundingYear")),
        "type_of_work": _text(record.get("TypeOfWork")) or UNKNOWN,
        "contractor": _text(record.get("Contractor")) or UNKNOWN,
        "approved_budget": approved_budget,
        "contract_cost": contract_cost,
        "start_date": parse_date(record.get("StartDate")),
        "actual_completion_date": parse_date(record.get("ActualCompletionDate")),
        "latitude": parse_number(record.get("ProjectLatitude")),
        "longitude": parse_number(record.get("ProjectLongitude")),
    }


def coerce_cleaned_schema(frame: pd.DataFrame) -> pd.DataFrame:
    cleaned = frame.copy()

    for column in CLEANED_FIELDS:
        if column not in cleaned.columns:
            cleaned[column] = pd.NA

    cleaned = cleaned.loc[:, CLEANED_FIELDS]

    for column in DATE_FIELDS:
        cleaned[column] = pd.to_datetime(cleaned[column], errors="coerce")

    for column in NUMERIC_FIELDS:
        cleaned[column] = pd.to_numeric(cleaned[column], errors="coerce").astype(float)

    cleaned["funding_year"] = pd.to_numeric(cleaned["funding_year"], errors="coerce").astype("Int64")

    for column in STRING_FIELDS:
        cleaned[column] = cleaned[column].astype("string").fillna("").str.strip()

    return cleaned


def add_derived_fields(frame: pd.DataFrame) -> pd.DataFrame:
    enriched = frame.copy()
    enriched["cost_savings"] = enriched["approved_budget"] - enriched["contract_cost"]

    start = pd.to_datetime(enriched["start_date"], errors="coerce")
    completion = pd.to_datetime(enriched["actual_completion_date"], errors="coerce")
    enriched["completion_delay_days"] = (completion - start).dt.days.astype("Int64")
    return enriched


def _has_province(frame: pd.DataFrame) -> pd.Series:
    return frame["province"].astype("string").fillna("").str.strip() != ""


def province_coordinate_means(frame: pd.DataFrame) -> pd.DataFrame:
    known = frame.loc[_has_province(frame), ["province", "latitude", "longitude"]]
    if known.empty:
        return pd.DataFrame(columns=["latitude", "longitude"], dtype=float)
    return known.groupby("province")[["latitude", "longitude"]].mean()


def impute_coordinates(frame: pd.DataFrame) -> pd.DataFrame:
    imputed = frame.copy()
    means = province_coordinate_means(imputed)
    eligible = _has_province(imputed)

    for column in ("latitude", "longitude"):
        lookup = {str(province): value for province, value in means[column].items()}
        fill = pd.to_numeric(imputed["province"].astype(object).map(lookup), errors="coerce")
        missing = imputed[column].isna() & eligible
        imputed.loc[missing, column] = fill[missing]

    return imputed


def filter_by_year_range(frame: pd.DataFrame, start_year: int, end_year: int) -> pd.DataFrame:
    years = pd.to_numeric(frame["funding_year"], errors="coerce")
    in_range = years.between(start_year, end_year).fillna(False).astype(bool)
    return frame.loc[in_range].reset_index(drop=True)


def _log_issues(issues: list[RowIssue], raw_count: int, valid_count: int, limit: int) -> None:
    if not issues:
        return

    logger.warning("Validation errors detected: %s invalid records", len(issues))
    for issue in issues[:limit]:
        logger.warning("  - %s", issue.describe())
    if len(issues) > limit:
        logger.warning("  ... and %s more errors", len(issues) - limit)
    logger.warning("Valid records: %s out of %s", valid_count, raw_count)


def load_dataset(path: Path, config: PipelineConfig | None = None) -> PipelineContext:
    config = config or PipelineConfig()
    raw = read_raw_records(path)
    logger.info("Raw records loaded: file=%s rows=%s", path, len(raw))

    cleaned: list[dict[str, Any]] = []
    issues: list[RowIssue] = []

    # CSV line numbers: the header is line 1.
    for row_number, record in enumerate(raw.to_dict("records"), start=2):
        validation = validate_record(record)
        if not validation.is_valid:
            issues.append(RowIssue(row_number, "validation", list(validation.errors)))
            continue

        cleaned_record = clean_record(record)
        if cleaned_record is None:
            issues.append(RowIssue(row_number, "parse", parse_failures(record)))
            continue

        cleaned.append(cleaned_record)

    _log_issues(issues, len(raw), len(cleaned), config.max_reported_errors)

    projects = add_derived_fields(coerce_cleaned_schema(pd.DataFrame(cleaned, columns=CLEANED_FIELDS)))

    missing_before = projects[["latitude", "longitude"]].isna().sum()
    projects = impute_coordinates(projects)
    filled = missing_before - projects[["latitude", "longitude"]].isna().sum()
    logger.info(
        "Imputed coordinates latitude=%s longitude=%s",
        int(filled["latitude"]),
        int(filled["longitude"]),
    )

    processed = filter_by_year_range(projects, config.start_year, config.end_year)
    logger.info(
        "(%s rows loaded, %s filtered for %s-%s)",
        len(raw),
        len(processed),
        config.start_year,
        config.end_year,
    )

    return PipelineContext(
        source_path=path,
        raw_count=int(len(raw)),
        cleaned_count=len(cleaned),
        processed=processed,
        issues=issues,
    )


def generate_reports(
    context: PipelineContext | None,
    config: PipelineConfig | None = None,
) -> tuple[list[ReportTable], dict[str, int | float]]:
    if context is None or context.processed.empty:
        raise EmptyDatasetError("No data loaded. Load the input file before generating reports.")

    tables = build_reports(context.processed, config)
    summary = build_summary(context.processed)
    return tables, summary


def run_pipeline(
    input_path: Path,
    config: PipelineConfig | None = None,
) -> tuple[PipelineContext, list[ReportTable], dict[str, int | float]]:
    config = config or PipelineConfig()
    context = load_dataset(input_path, config)
    tables, summary = generate_reports(context, config)

    for table in tables:
        path = write_report(table, config.out_dir)
        logger.info("Report written to: %s rows=%s", path, len(table))

    summary_path = write_summary(summary, config.out_dir)
    logger.info("Summary written to: %s", summary_path)

    return context, tables, summary


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    defaults = PipelineConfig()
    parser = argparse.ArgumentParser(description="Run the flood control projects ETL and reports")
    parser.add_argument("--input", type=Path, default=None, help="Input CSV (discovered when omitted)")
    parser.add_argument("--data-dir", type=Path, default=defaults.data_dir)
    parser.add_argument("--out-dir", type=Path, default=defaults.out_dir)
    parser.add_argument("--start-year", type=int, default=defaults.start_year)
    parser.add_argument("--end-year", type=int, default=defaults.end_year)
    parser.add_argument("--preview-rows", type=int, default=defaults.preview_rows)
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> PipelineConfig:
    return PipelineConfig(
        start_year=args.start_year,
        end_year=args.end_year,
        preview_rows=args.preview_rows,
        data_dir=args.data_dir,
        out_dir=args.out_dir,
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(message)s")

    config = config_from_args(args)

    try:
        input_path = args.input or discover_input_file(config.data_dir)
        _, tables, summary = run_pipeline(input_path, config)
    except (SourceNotFoundError, SourceReadError) as exc:
        logger.error("Error loading file: %s", exc)
        return 1
    except EmptyDatasetError as exc:
        logger.error("Error: %s", exc)
        return 0

    for table in tables:
        print(render_preview(table, config.preview_rows))
        print()

    print("Summary Stats (summary.json):")
    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
