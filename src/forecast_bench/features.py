"""
Returns and rolling statistics derived from a daily price series.

This module:
- Computes simple day-over-day returns.
- Computes 20-day rolling (annualized) volatility, SMA-50 / SMA-200,
  running-peak max drawdown and a Sharpe-like ratio.
- Bundles everything into a read-only Insights snapshot for display.
- Converts predicted returns back into a compounded price path.

Public helpers:
    - compute_returns()
    - compute_insights()
    - compound_forecast()
"""

from __future__ import annotations

import datetime
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from ta.trend import SMAIndicator

from . import config
from .errors import InsufficientHistoryError, ZeroVarianceError
from .logging import get_logger

logger = get_logger(__name__)

TREND_BULLISH = "Bullish"
TREND_BEARISH = "Bearish"
TREND_UNAVAILABLE = "Unavailable"


@dataclass(frozen=True)
class Insights:
    """
    Snapshot of summary statistics for one loaded price series.

    Ratios are fractions (0.06 means 6 %). Values that cannot be computed
    for the given history are None (or TREND_UNAVAILABLE for ``trend``).
    """

    total_days: int
    start_date: Optional[datetime.date]
    end_date: Optional[datetime.date]
    first_price: float
    last_price: float
    total_return: float
    max_drawdown: float
    mean_daily_return: Optional[float]
    std_daily_return: Optional[float]
    annualized_volatility: Optional[float]
    sharpe_ratio: Optional[float]
    positive_days: Optional[float]
    trend: str
    sma_50: Optional[float]
    sma_200: Optional[float]
    above_sma_200: Optional[bool]
    trend_strength: Optional[float]
    current_rolling_volatility: Optional[float]
    avg_rolling_volatility: Optional[float]
    max_rolling_volatility: Optional[float]
    min_rolling_volatility: Optional[float]
    rolling_volatility: Tuple[float, ...]
    sma_50_series: Tuple[float, ...]
    sma_200_series: Tuple[float, ...]


# ---------------------------------------------------------------------------
# Returns
# ---------------------------------------------------------------------------


def compute_returns(prices: Sequence[float]) -> np.ndarray:
    """
    Simple returns:

      returns[i] = (price[i+1] - price[i]) / price[i]

    The result has one element fewer than ``prices``.
    """
    prices = np.asarray(prices, dtype="float64")
    if len(prices) < 2:
        return np.empty(0, dtype="float64")
    return np.diff(prices) / prices[:-1]


# ---------------------------------------------------------------------------
# Rolling statistics
# ---------------------------------------------------------------------------


def rolling_volatility(
    returns: Sequence[float],
    window: int = config.VOLATILITY_WINDOW,
    trading_days: int = config.TRADING_DAYS,
) -> np.ndarray:
    """
    Annualized volatility over each trailing window of ``window`` returns.

    For i in [window, len(returns)] the value is the population standard
    deviation of returns[i - window : i] times sqrt(trading_days).
    Returns an empty array when there are fewer than ``window`` returns.
    """
    returns = np.asarray(returns, dtype="float64")
    if len(returns) < window:
        return np.empty(0, dtype="float64")

    rolling_std = pd.Series(returns).rolling(window=window).std(ddof=0).dropna()
    return rolling_std.to_numpy() * math.sqrt(trading_days)


def simple_moving_average(prices: Sequence[float], window: int) -> np.ndarray:
    """
    SMA over the last ``window`` prices, defined from index window-1 onward.

    Returns an empty array when there are fewer than ``window`` prices.
    """
    close = pd.Series(np.asarray(prices, dtype="float64"))
    sma = SMAIndicator(close=close, window=window).sma_indicator()
    return sma.dropna().to_numpy()


def detect_trend(sma_short: Sequence[float], sma_long: Sequence[float]) -> str:
    """
    Moving-average crossover label: Bullish if the last short SMA is above
    the last long SMA, else Bearish.

    Raises:
        InsufficientHistoryError: If either SMA series is empty.
    """
    if len(sma_short) == 0 or len(sma_long) == 0:
        raise InsufficientHistoryError(
            "Trend needs at least one value of both moving averages "
            f"(got {len(sma_short)} short, {len(sma_long)} long).",
            required=1,
            available=min(len(sma_short), len(sma_long)),
        )
    return TREND_BULLISH if sma_short[-1] > sma_long[-1] else TREND_BEARISH


def max_drawdown(prices: Sequence[float]) -> float:
    """Largest (peak - price) / peak over the series, using a running peak."""
    prices = np.asarray(prices, dtype="float64")
    if len(prices) == 0:
        return 0.0
    peaks = np.maximum.accumulate(prices)
    drawdowns = (peaks - prices) / peaks
    return float(drawdowns.max())


def sharpe_ratio(
    returns: Sequence[float],
    trading_days: int = config.TRADING_DAYS,
) -> float:
    """
    Annualized mean / std of daily returns (no risk-free rate).

    Raises:
        ZeroVarianceError: If there are no returns or their std is within
            ZERO_STD_TOLERANCE of 0 (float noise from constant growth).
    """
    returns = np.asarray(returns, dtype="float64")
    if len(returns) == 0:
        raise ZeroVarianceError("Sharpe ratio needs at least one return.")
    std = float(np.std(returns))
    if np.isclose(std, 0.0, atol=config.ZERO_STD_TOLERANCE):
        raise ZeroVarianceError(
            "Sharpe ratio is undefined for a series with zero volatility.",
            context={"n_returns": len(returns)},
        )
    return float(np.mean(returns)) / std * math.sqrt(trading_days)


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------


def _last_or_none(values: np.ndarray) -> Optional[float]:
    return float(values[-1]) if len(values) else None


def compute_insights(
    prices: Sequence[float],
    returns: Sequence[float],
    dates: Optional[Sequence[datetime.date]] = None,
) -> Insights:
    """Build the Insights snapshot for a price series and its returns.

    Args:
        prices: Chronological prices (at least one).
        returns: Simple returns derived from ``prices``.
        dates: Optional dates aligned with ``prices``, used for the date range.

    Returns:
        A fully populated Insights instance. Trend and Sharpe failures are
        recorded as sentinels instead of raised.
    """
    prices = np.asarray(prices, dtype="float64")
    returns = np.asarray(returns, dtype="float64")
    if len(prices) == 0:
        raise ValueError("compute_insights() needs at least one price.")

    first_price = float(prices[0])
    last_price = float(prices[-1])

    if len(returns):
        mean_return = float(np.mean(returns))
        std_return = float(np.std(returns))
        annualized_vol = std_return * math.sqrt(config.TRADING_DAYS)
        positive_days = float(np.mean(returns > 0))
    else:
        mean_return = std_return = annualized_vol = positive_days = None

    try:
        sharpe = sharpe_ratio(returns)
    except ZeroVarianceError as exc:
        logger.warning("Sharpe ratio unavailable: %s", exc)
        sharpe = None

    vols = rolling_volatility(returns)
    sma_short = simple_moving_average(prices, config.SMA_SHORT)
    sma_long = simple_moving_average(prices, config.SMA_LONG)

    try:
        trend = detect_trend(sma_short, sma_long)
    except InsufficientHistoryError as exc:
        logger.warning("Trend unavailable: %s", exc)
        trend = TREND_UNAVAILABLE

    last_short = _last_or_none(sma_short)
    last_long = _last_or_none(sma_long)
    if last_long is not None:
        above_long = last_price > last_long
        trend_strength = (
            abs((last_short - last_long) / last_long) if last_short is not None else None
        )
    else:
        above_long = None
        trend_strength = None

    return Insights(
        total_days=len(prices),
        start_date=dates[0] if dates is not None and len(dates) else None,
        end_date=dates[-1] if dates is not None and len(dates) else None,
        first_price=first_price,
        last_price=last_price,
        total_return=(last_price - first_price) / first_price,
        max_drawdown=max_drawdown(prices),
        mean_daily_return=mean_return,
        std_daily_return=std_return,
        annualized_volatility=annualized_vol,
        sharpe_ratio=sharpe,
        positive_days=positive_days,
        trend=trend,
        sma_50=last_short,
        sma_200=last_long,
        above_sma_200=above_long,
        trend_strength=trend_strength,
        current_rolling_volatility=_last_or_none(vols),
        avg_rolling_volatility=float(vols.mean()) if len(vols) else None,
        max_rolling_volatility=float(vols.max()) if len(vols) else None,
        min_rolling_volatility=float(vols.min()) if len(vols) else None,
        rolling_volatility=tuple(float(v) for v in vols),
        sma_50_series=tuple(float(v) for v in sma_short),
        sma_200_series=tuple(float(v) for v in sma_long),
    )


# ---------------------------------------------------------------------------
# Price-space forecasts
# ---------------------------------------------------------------------------


def compound_forecast(last_price: float, predicted_returns: Sequence[float]) -> np.ndarray:
    """
    Turn predicted returns into prices:

      price_{t+1} = price_t * (1 + r_{t+1})

    starting from ``last_price``. The starting price is not included.
    """
    growth = 1.0 + np.asarray(predicted_returns, dtype="float64")
    return float(last_price) * np.cumprod(growth)
