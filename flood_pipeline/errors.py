from __future__ import annotations

from dataclasses import dataclass, field


class SourceNotFoundError(FileNotFoundError):
    """Raised when the input CSV cannot be located. Aborts the run."""


class SourceReadError(RuntimeError):
    """Raised when the input CSV exists but cannot be parsed. Aborts the run."""


class EmptyDatasetError(RuntimeError):
    """Raised when reports are requested without any processed records."""


class ReportSchemaError(ValueError):
    """Raised when a report row does not carry exactly the declared columns."""


@dataclass(slots=True)
class RowIssue:
    row_number: int
    issue_type: str
    messages: list[str] = field(default_factory=list)

    def describe(self) -> str:
        return f"Row {self.row_number}: {', '.join(self.messages)}"
