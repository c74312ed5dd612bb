"""
End-to-end pipeline orchestration for the forecasting benchmark.

This module coordinates the main steps:

    1. Parse raw "date;price" text into a chronological price series.
    2. Compute returns and the Insights snapshot.
    3. Normalize returns and build chronologically split windows.
    4. Fit the random-walk baseline and train the sequence model.
    5. Evaluate both on the test windows (in return space) and compare.
    6. Forecast the next horizon from the latest window, in price space.

All state lives on a ForecastPipeline instance; there are no module-level
singletons. The pipeline owns the sequence model handed to it and
releases it (and every derived buffer) on reload, on release(), and when
used as a context manager, on exit.

Typical usage:

    from forecast_bench.pipeline import run_pipeline
    report = run_pipeline(raw_text)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from . import config
from .data_loader import PricePoint, parse_price_csv, price_values
from .errors import InsufficientDataError, PipelineStateError
from .evaluation import ModelComparison, compare_models, comparison_table, evaluate
from .features import Insights, compound_forecast, compute_insights, compute_returns
from .logging import get_logger
from .models.baselines import RandomWalkBaseline
from .models.gru import EpochCallback, GRUForecaster, SequencePredictor
from .preprocessing import ReturnNormalizer, WindowedDataset, build_windows

logger = get_logger(__name__)


@dataclass(frozen=True)
class Forecast:
    """Predicted returns for the horizon and the compounded price path."""

    returns: np.ndarray
    prices: np.ndarray


@dataclass(frozen=True)
class PipelineReport:
    """Everything the display layer needs from one pipeline run."""

    insights: Insights
    comparison: ModelComparison
    model_forecast: Forecast
    baseline_forecast: Forecast
    results_table: pd.DataFrame
    training_history: List[dict]


class ForecastPipeline:
    """Per-load context holding every stage's output."""

    def __init__(
        self,
        model: Optional[SequencePredictor] = None,
        baseline: Optional[RandomWalkBaseline] = None,
        min_rows: int = config.MIN_ROWS,
    ) -> None:
        self.model = model
        self.baseline = baseline or RandomWalkBaseline()
        self.min_rows = min_rows
        self.normalizer = ReturnNormalizer()

        self.prices: List[PricePoint] = []
        self.returns: Optional[np.ndarray] = None
        self.insights: Optional[Insights] = None
        self.normalized: Optional[np.ndarray] = None
        self.dataset: Optional[WindowedDataset] = None
        self.comparison: Optional[ModelComparison] = None

    # ------------------------------------------------------------------
    # Resource handling
    # ------------------------------------------------------------------

    def __enter__(self) -> "ForecastPipeline":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def _invalidate(self) -> None:
        """Drop everything derived from the current series."""
        self.returns = None
        self.insights = None
        self.normalized = None
        self.dataset = None
        self.comparison = None
        self.normalizer.reset()
        self.baseline.reset()
        if self.model is not None:
            self.model.dispose()

    def release(self) -> None:
        """Free all buffers, including the sequence model's."""
        self._invalidate()
        self.prices = []
        logger.debug("Pipeline resources released")

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def load(self, raw_text: str) -> Insights:
        """Parse ``raw_text`` and recompute returns, insights and normalization."""
        self._invalidate()
        self.prices = []

        points = parse_price_csv(raw_text, min_rows=self.min_rows)
        prices = price_values(points)
        returns = compute_returns(prices)

        self.prices = points
        self.returns = returns
        self.insights = compute_insights(prices, returns, dates=[p.date for p in points])
        self.normalizer.fit(returns)
        self.normalized = self.normalizer.apply(returns)

        logger.info(
            "Loaded %d prices (%s -> %s), %d returns",
            len(points),
            points[0].date,
            points[-1].date,
            len(returns),
        )
        return self.insights

    def prepare(
        self,
        window_size: int = config.WINDOW_SIZE,
        horizon: int = config.HORIZON,
        test_split: float = config.TEST_SPLIT,
    ) -> WindowedDataset:
        """Window the normalized returns and split them chronologically."""
        if self.normalized is None:
            raise PipelineStateError("No data available. Call load() first.")
        self.dataset = build_windows(self.normalized, window_size, horizon, test_split)
        self.comparison = None
        return self.dataset

    def _require_dataset(self) -> WindowedDataset:
        if self.dataset is None:
            raise PipelineStateError("Windows not prepared. Call prepare() first.")
        return self.dataset

    def train_baseline(self) -> RandomWalkBaseline:
        """
        Fit the random walk on the returns observed before the first test
        target, so no test-period outcome leaks into the baseline.
        """
        dataset = self._require_dataset()
        cutoff = dataset.split_index + dataset.window_size
        self.baseline.reset()
        self.baseline.fit(self.returns[:cutoff])
        return self.baseline

    def train_model(
        self,
        model: Optional[SequencePredictor] = None,
        epochs: Optional[int] = None,
        on_epoch_end: Optional[EpochCallback] = None,
    ):
        """Train the sequence model on the training windows.

        Args:
            model: Replaces (and disposes) the current model when given.
                Defaults to a GRUForecaster sized for the prepared windows.
            epochs: Training epochs; the model's own default when None.
            on_epoch_end: Called as ``on_epoch_end(epoch, logs)`` once per epoch.

        Returns:
            Whatever the model's fit() returns (the GRU returns its history).
        """
        dataset = self._require_dataset()
        if model is not None and model is not self.model:
            if self.model is not None:
                self.model.dispose()
            self.model = model
        if self.model is None:
            self.model = GRUForecaster(
                window_size=dataset.window_size, horizon=dataset.horizon
            )

        X_train, y_train = dataset.train_arrays()
        if len(X_train) == 0:
            raise InsufficientDataError(
                "No training windows; lower test_split or load more data.",
                required=1,
                available=0,
            )

        self.comparison = None
        try:
            return self.model.fit(X_train, y_train, epochs=epochs, on_epoch_end=on_epoch_end)
        except Exception:
            self.model.dispose()
            raise

    def _test_returns(self) -> Tuple[np.ndarray, np.ndarray]:
        """Raw-return (histories, targets) for every test window."""
        dataset = self._require_dataset()
        w, h = dataset.window_size, dataset.horizon
        histories = np.array(
            [self.returns[s.start : s.start + w] for s in dataset.test]
        ).reshape(-1, w)
        actuals = np.array(
            [self.returns[s.start + w : s.start + w + h] for s in dataset.test]
        ).reshape(-1, h)
        return histories, actuals

    def evaluate(self) -> ModelComparison:
        """
        Score the model and the baseline on the test windows.

        Model outputs are denormalized before scoring so both predictors
        are measured against the same raw returns.
        """
        dataset = self._require_dataset()
        if self.model is None or not self.model.is_trained:
            raise PipelineStateError("Model not trained. Call train_model() first.")
        if not self.baseline.is_trained:
            raise PipelineStateError("Baseline not trained. Call train_baseline() first.")

        histories, actuals = self._test_returns()

        X_test, _ = dataset.test_arrays()
        if len(X_test):
            model_pred = self.normalizer.invert(self.model.predict(X_test))
        else:
            model_pred = np.empty((0, dataset.horizon))
        baseline_pred = self.baseline.predict_batch(histories, dataset.horizon)

        baseline_result = evaluate(baseline_pred, actuals)
        candidate_result = evaluate(model_pred, actuals)
        self.comparison = compare_models(baseline_result, candidate_result)
        return self.comparison

    def forecast(self) -> Tuple[Forecast, Forecast]:
        """(model, baseline) forecasts for the horizon after the last price."""
        dataset = self._require_dataset()
        if self.model is None or not self.model.is_trained:
            raise PipelineStateError("Model not trained. Call train_model() first.")
        if not self.baseline.is_trained:
            raise PipelineStateError("Baseline not trained. Call train_baseline() first.")

        w, h = dataset.window_size, dataset.horizon
        last_price = self.prices[-1].price

        last_window = self.normalized[-w:].reshape(1, w, 1)
        model_returns = np.asarray(
            self.normalizer.invert(self.model.predict(last_window)[0]), dtype="float64"
        )
        baseline_returns = self.baseline.predict(self.returns[-w:], h)

        return (
            Forecast(model_returns, compound_forecast(last_price, model_returns)),
            Forecast(baseline_returns, compound_forecast(last_price, baseline_returns)),
        )


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


def run_pipeline(
    raw_text: str,
    model: Optional[SequencePredictor] = None,
    window_size: int = config.WINDOW_SIZE,
    horizon: int = config.HORIZON,
    test_split: float = config.TEST_SPLIT,
    epochs: Optional[int] = None,
    on_epoch_end: Optional[EpochCallback] = None,
    seed: Optional[int] = config.RANDOM_SEED,
) -> PipelineReport:
    """Run the full load -> prepare -> train -> evaluate -> forecast cycle.

    Args:
        raw_text: Semicolon-delimited price text with a header row.
        model: Sequence model to train; a GRUForecaster when None.
        window_size, horizon, test_split: Windowing parameters.
        epochs: Training epochs for the model.
        on_epoch_end: Progress callback, forwarded to the model.
        seed: Seed for the random-walk baseline.

    Returns:
        A PipelineReport. All model buffers are released before returning.
    """
    with ForecastPipeline(model=model, baseline=RandomWalkBaseline(seed=seed)) as pipeline:
        logger.info("=== STEP 1: Load price series ===")
        insights = pipeline.load(raw_text)

        logger.info("=== STEP 2: Build windows ===")
        pipeline.prepare(window_size, horizon, test_split)

        logger.info("=== STEP 3: Fit random-walk baseline ===")
        pipeline.train_baseline()

        logger.info("=== STEP 4: Train sequence model ===")
        history = pipeline.train_model(epochs=epochs, on_epoch_end=on_epoch_end)

        logger.info("=== STEP 5: Evaluate model vs. baseline ===")
        comparison = pipeline.evaluate()

        logger.info("=== STEP 6: Forecast next %d days ===", horizon)
        model_forecast, baseline_forecast = pipeline.forecast()

        table = comparison_table(
            {"RandomWalk": comparison.baseline, "Model": comparison.candidate}
        )
        logger.info("Model comparison on test windows:\n%s", table.to_string(index=False))

    return PipelineReport(
        insights=insights,
        comparison=comparison,
        model_forecast=model_forecast,
        baseline_forecast=baseline_forecast,
        results_table=table,
        training_history=list(history) if isinstance(history, list) else [],
    )
