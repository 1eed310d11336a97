from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

INPUT_FILENAMES = (
    "dpwh_flood_control_projects.csv",
    "dpwh_flood_control_projects-1.csv",
)

VALID_YEAR_RANGE = (2021, 2023)

INPUT_COLUMNS = [
    "Region",
    "MainIsland",
    "FundingYear",
    "ApprovedBudgetForContract",
    "ContractCost",
    "StartDate",
    "ActualCompletionDate",
    "ProjectLatitude",
    "ProjectLongitude",
    "Province",
    "Contractor",
    "TypeOfWork",
]


@dataclass(slots=True, frozen=True)
class PipelineConfig:
    start_year: int = 2021
    end_year: int = 2023
    baseline_year: int = 2021
    high_delay_threshold_days: int = 30
    min_contractor_projects: int = 5
    top_contractors: int = 15
    reliability_delay_days: float = 90.0
    risk_threshold: float = 50.0
    preview_rows: int = 5
    max_reported_errors: int = 10
    data_dir: Path = Path("data")
    out_dir: Path = Path("output")

    def __post_init__(self) -> None:
        if self.start_year > self.end_year:
            raise ValueError(
                f"start_year ({self.start_year}) must not be after end_year ({self.end_year})."
            )
