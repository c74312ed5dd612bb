import datetime
import math

import numpy as np
import pytest

from forecast_bench import features
from forecast_bench.errors import InsufficientHistoryError, ZeroVarianceError


SCENARIO_PRICES = [100.0, 102.0, 101.0, 103.0, 106.0]


# --------------------------------------------------------------------------------------
# compute_returns
# --------------------------------------------------------------------------------------


def test_compute_returns_scenario():
    """
    prices [100, 102, 101, 103, 106]
      -> returns [0.02, -0.0098, 0.0198, 0.0291]
    """
    returns = features.compute_returns(SCENARIO_PRICES)

    assert len(returns) == len(SCENARIO_PRICES) - 1
    np.testing.assert_allclose(
        returns, [0.02, -1.0 / 102.0, 2.0 / 101.0, 3.0 / 103.0], rtol=1e-12
    )
    np.testing.assert_allclose(returns, [0.02, -0.0098, 0.0198, 0.0291], atol=1e-4)


def test_compute_returns_single_price_is_empty():
    assert features.compute_returns([100.0]).shape == (0,)


# --------------------------------------------------------------------------------------
# Rolling statistics
# --------------------------------------------------------------------------------------


def test_rolling_volatility_length_and_value():
    """
    Alternating +1% / -1% returns have mean 0 and population std 0.01 in
    every 20-day window, so each value is 0.01 * sqrt(252).
    """
    returns = np.array([0.01, -0.01] * 15)  # 30 returns

    vols = features.rolling_volatility(returns, window=20)

    assert len(vols) == 30 - 20 + 1
    np.testing.assert_allclose(vols, 0.01 * math.sqrt(252), rtol=1e-6)


def test_rolling_volatility_first_window_matches_numpy():
    rng = np.random.default_rng(0)
    returns = rng.normal(0.0, 0.02, size=25)

    vols = features.rolling_volatility(returns, window=20)

    assert vols[0] == pytest.approx(np.std(returns[:20]) * math.sqrt(252), rel=1e-6)
    assert vols[-1] == pytest.approx(np.std(returns[-20:]) * math.sqrt(252), rel=1e-6)


def test_rolling_volatility_short_series_is_empty():
    assert len(features.rolling_volatility([0.01] * 5, window=20)) == 0


def test_simple_moving_average_starts_at_window_minus_one():
    prices = np.arange(1.0, 11.0)  # 1..10

    sma = features.simple_moving_average(prices, 3)

    # (1+2+3)/3 = 2, ..., (8+9+10)/3 = 9
    np.testing.assert_allclose(sma, np.arange(2.0, 10.0))


def test_simple_moving_average_short_series_is_empty():
    assert len(features.simple_moving_average([1.0, 2.0], 50)) == 0


def test_detect_trend_labels():
    assert features.detect_trend([1.0, 3.0], [2.0]) == features.TREND_BULLISH
    assert features.detect_trend([3.0, 1.0], [2.0]) == features.TREND_BEARISH
    # equal SMAs are not bullish
    assert features.detect_trend([2.0], [2.0]) == features.TREND_BEARISH


def test_detect_trend_without_history_raises():
    with pytest.raises(InsufficientHistoryError):
        features.detect_trend([1.0], [])
    with pytest.raises(InsufficientHistoryError):
        features.detect_trend([], [])


def test_max_drawdown_scenario():
    """The 102 -> 101 dip is the only drawdown: 1/102 ~ 0.98%."""
    assert features.max_drawdown(SCENARIO_PRICES) == pytest.approx(1.0 / 102.0)
    assert features.max_drawdown(SCENARIO_PRICES) == pytest.approx(0.0098, abs=1e-4)


def test_max_drawdown_uses_running_peak():
    # peak 120, trough 90 -> 25%; the later 110 -> 100 dip is smaller
    prices = [100.0, 120.0, 90.0, 110.0, 100.0]
    assert features.max_drawdown(prices) == pytest.approx(0.25)


def test_max_drawdown_monotonic_increase_is_zero():
    assert features.max_drawdown([1.0, 2.0, 3.0]) == 0.0


def test_sharpe_ratio_known_value():
    # mean 0.02, population std 0.01 -> 2 * sqrt(252)
    assert features.sharpe_ratio([0.01, 0.03]) == pytest.approx(2.0 * math.sqrt(252))


def test_sharpe_ratio_zero_std_raises():
    with pytest.raises(ZeroVarianceError):
        features.sharpe_ratio([0.25, 0.25, 0.25, 0.25])
    with pytest.raises(ZeroVarianceError):
        features.sharpe_ratio([])


def test_sharpe_ratio_float_noise_std_raises():
    """
    Constant 1% growth gives returns that differ only by float noise
    (std ~1e-16); that is zero volatility, not a Sharpe of ~1e15.
    """
    prices = 100.0 * 1.01 ** np.arange(80)
    returns = features.compute_returns(prices)

    with pytest.raises(ZeroVarianceError):
        features.sharpe_ratio(returns)


# --------------------------------------------------------------------------------------
# compute_insights
# --------------------------------------------------------------------------------------


def test_compute_insights_scenario_short_history():
    """
    With five prices there is no SMA or rolling volatility: those fields
    must be sentinels, never NaN.
    """
    returns = features.compute_returns(SCENARIO_PRICES)
    dates = [datetime.date(2024, 1, d) for d in range(1, 6)]

    insights = features.compute_insights(SCENARIO_PRICES, returns, dates=dates)

    assert insights.total_days == 5
    assert insights.start_date == datetime.date(2024, 1, 1)
    assert insights.end_date == datetime.date(2024, 1, 5)
    assert insights.total_return == pytest.approx(0.06)
    assert insights.max_drawdown == pytest.approx(1.0 / 102.0)
    assert insights.positive_days == pytest.approx(0.75)
    assert insights.annualized_volatility == pytest.approx(
        np.std(returns) * math.sqrt(252)
    )
    assert insights.sharpe_ratio is not None

    assert insights.trend == features.TREND_UNAVAILABLE
    assert insights.sma_50 is None
    assert insights.sma_200 is None
    assert insights.above_sma_200 is None
    assert insights.trend_strength is None
    assert insights.current_rolling_volatility is None
    assert insights.rolling_volatility == ()


def test_compute_insights_long_uptrend_is_bullish():
    prices = np.linspace(100.0, 200.0, 250)
    returns = features.compute_returns(prices)

    insights = features.compute_insights(prices, returns)

    assert insights.trend == features.TREND_BULLISH
    assert insights.above_sma_200 is True
    assert len(insights.sma_50_series) == 250 - 50 + 1
    assert len(insights.sma_200_series) == 250 - 200 + 1
    assert len(insights.rolling_volatility) == 249 - 20 + 1
    assert insights.sma_50 == pytest.approx(np.mean(prices[-50:]))
    assert insights.sma_200 == pytest.approx(np.mean(prices[-200:]))
    assert insights.trend_strength == pytest.approx(
        abs(insights.sma_50 - insights.sma_200) / insights.sma_200
    )
    assert insights.min_rolling_volatility <= insights.avg_rolling_volatility
    assert insights.avg_rolling_volatility <= insights.max_rolling_volatility
    assert insights.start_date is None


def test_compute_insights_constant_prices_guard_sharpe():
    prices = [50.0] * 10
    returns = features.compute_returns(prices)

    insights = features.compute_insights(prices, returns)

    assert insights.sharpe_ratio is None
    assert insights.total_return == 0.0
    assert insights.max_drawdown == 0.0


def test_compute_insights_constant_growth_guard_sharpe():
    prices = 100.0 * 1.01 ** np.arange(80)
    returns = features.compute_returns(prices)

    insights = features.compute_insights(prices, returns)

    assert insights.sharpe_ratio is None
    assert insights.mean_daily_return == pytest.approx(0.01)


def test_compute_insights_requires_prices():
    with pytest.raises(ValueError):
        features.compute_insights([], [])


# --------------------------------------------------------------------------------------
# compound_forecast
# --------------------------------------------------------------------------------------


def test_compound_forecast_compounds_across_horizon():
    prices = features.compound_forecast(100.0, [0.1, -0.1, 0.0])
    np.testing.assert_allclose(prices, [110.0, 99.0, 99.0])


def test_compound_forecast_empty_horizon():
    assert features.compound_forecast(100.0, []).shape == (0,)
