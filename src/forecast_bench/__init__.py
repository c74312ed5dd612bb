"""
Top-level package for the price-series forecasting benchmark.

This package provides:

- config: Central configuration (windowing, rolling windows, GRU hyperparameters).
- data_loader: Parsing of raw "date;price" text into a chronological price series.
- features: Returns, rolling volatility, SMAs, drawdown, Sharpe and Insights.
- preprocessing: Min-max normalization and chronological window building.
- models: GRU sequence model and the random-walk baseline.
- evaluation: RMSE/MAE/direction-accuracy metrics and model comparison.
- pipeline: End-to-end orchestration of the full workflow.

Typical entry points:

    from forecast_bench import config
    from forecast_bench.pipeline import ForecastPipeline, run_pipeline

"""

from __future__ import annotations

from . import config

__version__ = "0.1.0"

__all__ = ["config"]
