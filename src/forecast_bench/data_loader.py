"""
Price series loading.

This module:
- Parses raw semicolon-delimited text ("date;price", header row first).
- Drops malformed rows silently (bad price, empty or unparsable date).
- Sorts rows chronologically and keeps the first row seen for each date.
- Enforces the minimum history needed by the rest of the pipeline.

Public helpers:
    - parse_price_csv()
    - prices_to_series()
    - price_values()
"""

from __future__ import annotations

import datetime
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from . import config
from .errors import InsufficientDataError, ParseError
from .logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PricePoint:
    """A single daily closing price."""

    date: datetime.date
    price: float

    def __post_init__(self) -> None:
        if not self.price > 0:
            raise ValueError(f"price ({self.price}) must be > 0")


# ---------------------------------------------------------------------------
# Field parsing
# ---------------------------------------------------------------------------


def parse_date(value: str) -> Optional[datetime.date]:
    """
    Parse a date field.

    DD.MM.YYYY is tried first; anything else goes through pandas' generic
    parser. Returns None when neither succeeds.
    """
    value = value.strip()
    if not value:
        return None

    try:
        return datetime.datetime.strptime(value, config.DATE_FORMAT).date()
    except ValueError:
        pass

    try:
        parsed = pd.to_datetime(value, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return parsed.date()


def parse_price(value: str) -> Optional[float]:
    """Return the price as a finite positive float, or None."""
    try:
        price = float(value.strip())
    except ValueError:
        return None
    if not math.isfinite(price) or price <= 0:
        return None
    return price


# ---------------------------------------------------------------------------
# CSV parsing
# ---------------------------------------------------------------------------


def parse_price_csv(
    raw_text: str,
    min_rows: int = config.MIN_ROWS,
    delimiter: str = config.DELIMITER,
) -> List[PricePoint]:
    """Parse raw price text into an ascending, date-unique list of PricePoint.

    Args:
        raw_text: Full file contents. The first line is a header and is skipped.
        min_rows: Minimum number of valid rows required.
        delimiter: Field separator.

    Returns:
        PricePoints sorted by date. When a date appears more than once the
        first row (in input order) wins.

    Raises:
        ParseError: If the text holds no data rows at all.
        InsufficientDataError: If fewer than ``min_rows`` valid rows remain.
    """
    lines = raw_text.strip().splitlines()
    data_lines = [line.strip() for line in lines[1:] if line.strip()]
    if not data_lines:
        raise ParseError("No data rows found after the header line.")

    points: List[PricePoint] = []
    rejected = 0
    for line in data_lines:
        parts = line.split(delimiter)
        if len(parts) < 2:
            rejected += 1
            continue

        date = parse_date(parts[0])
        price = parse_price(parts[1])
        if date is None or price is None:
            rejected += 1
            continue

        points.append(PricePoint(date=date, price=price))

    # sorted() is stable, so the first row seen for a date stays first
    points = sorted(points, key=lambda p: p.date)
    unique: List[PricePoint] = []
    seen = set()
    for point in points:
        if point.date in seen:
            continue
        seen.add(point.date)
        unique.append(point)

    duplicates = len(points) - len(unique)
    logger.info(
        "Parsed %d price rows (%d rejected, %d duplicate dates dropped)",
        len(unique),
        rejected,
        duplicates,
    )

    if len(unique) < min_rows:
        raise InsufficientDataError(
            f"Insufficient data. Need at least {min_rows} days, got {len(unique)}",
            required=min_rows,
            available=len(unique),
        )

    logger.info("Date range: %s -> %s", unique[0].date, unique[-1].date)
    return unique


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------


def price_values(points: Iterable[PricePoint]) -> np.ndarray:
    """Prices as a float64 array, in the same order as ``points``."""
    return np.array([p.price for p in points], dtype="float64")


def prices_to_series(points: Sequence[PricePoint]) -> pd.Series:
    """Prices as a pandas Series indexed by a DatetimeIndex named 'date'."""
    index = pd.DatetimeIndex([pd.Timestamp(p.date) for p in points], name="date")
    return pd.Series(price_values(points), index=index, name="price")
