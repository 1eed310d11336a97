from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

import pandas as pd


def _to_numeric(values: Iterable[object] | pd.Series) -> pd.Series:
    series = values if isinstance(values, pd.Series) else pd.Series(list(values), dtype="object")
    return pd.to_numeric(series, errors="coerce").dropna().astype(float)


def median(values: Iterable[object] | pd.Series) -> float:
    numeric = _to_numeric(values)
    if numeric.empty:
        return 0.0
    return float(numeric.median())


def mean(values: Iterable[object] | pd.Series) -> float:
    numeric = _to_numeric(values)
    if numeric.empty:
        return 0.0
    return float(numeric.mean())


def percentage(part: float, total: float) -> float:
    if total == 0:
        return 0.0
    return float(part) / float(total) * 100


def clamp(value: float, lower: float = 0.0, upper: float = 100.0) -> float:
    return max(lower, min(upper, float(value)))


def _round_decimal(value: float | int, decimals: int) -> Decimal:
    exponent = Decimal(1).scaleb(-decimals)
    rounded = Decimal(repr(float(value))).quantize(exponent, rounding=ROUND_HALF_UP)
    if rounded == 0:
        rounded = abs(rounded)
    return rounded


def round_half_up(value: float | int, decimals: int = 0) -> float:
    return float(_round_decimal(value, decimals))


def format_number(value: float | int | None, decimals: int = 2) -> str:
    """Render ``value`` rounded half-up to ``decimals`` places with thousands grouping.

    Ties round away from zero. Missing values render as zero so a report cell
    is never blank.
    """
    if value is None or pd.isna(value):
        value = 0
    return f"{_round_decimal(value, decimals):,.{decimals}f}"


def format_large_number(value: float | int | None) -> str:
    return format_number(value, decimals=0)
