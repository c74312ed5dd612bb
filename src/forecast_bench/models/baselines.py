"""
Random-walk baseline for comparison with the GRU.

This module does NOT evaluate anything itself. The baseline's error is
always obtained by passing its predictions through
``forecast_bench.evaluation.evaluate``.

The predictor assumes no structure beyond the historical mean/std of
returns. Each step is drawn independently (no autoregressive feedback):

    - with a history: resample uniformly from the history
    - without one:    mean + std * (sum of 12 U(0,1) - 6)

and every draw is clamped to [-RW_CLIP, RW_CLIP].
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from .. import config
from ..errors import NotFittedError
from ..logging import get_logger

logger = get_logger(__name__)


class RandomWalkBaseline:
    """Stochastic, intentionally weak baseline forecaster for daily returns."""

    def __init__(self, seed: Optional[int] = config.RANDOM_SEED) -> None:
        self.seed = seed
        self._rng = np.random.default_rng(seed)
        self.mean_return = config.RW_DEFAULT_MEAN
        self.std_return = config.RW_DEFAULT_STD
        self.is_trained = False

    def fit(self, returns: Sequence[float]) -> "RandomWalkBaseline":
        """
        Estimate mean/std from ``returns``.

        Non-finite values and |r| >= RW_MAX_ABS_RETURN are ignored. The
        variance is floored at RW_VARIANCE_FLOOR before the square root.
        """
        values = np.asarray(returns, dtype="float64")
        valid = values[np.isfinite(values) & (np.abs(values) < config.RW_MAX_ABS_RETURN)]

        if len(valid) > 0:
            self.mean_return = float(valid.mean())
            variance = float(np.mean((valid - self.mean_return) ** 2))
            self.std_return = float(np.sqrt(max(variance, config.RW_VARIANCE_FLOOR)))
        else:
            logger.warning(
                "No valid returns for random walk (%d given); keeping defaults",
                len(values),
            )

        self.is_trained = True
        logger.info(
            "Random walk fitted: mean=%.6f, std=%.6f", self.mean_return, self.std_return
        )
        return self

    def _normal_draw(self) -> float:
        # Irwin-Hall approximation of a standard normal
        return self.mean_return + self.std_return * (self._rng.random(12).sum() - 6.0)

    def predict(
        self,
        recent_returns: Optional[Sequence[float]] = None,
        num_predictions: int = config.HORIZON,
    ) -> np.ndarray:
        """Draw ``num_predictions`` independent returns.

        Args:
            recent_returns: Optional history to resample from. When given and
                the model is not fitted yet, it is also used to fit.
            num_predictions: Number of future steps.

        Returns:
            1-D array of predicted returns in [-RW_CLIP, RW_CLIP].

        Raises:
            NotFittedError: If unfitted and no history is supplied.
        """
        history = (
            np.asarray(recent_returns, dtype="float64")
            if recent_returns is not None
            else np.empty(0, dtype="float64")
        )

        if not self.is_trained:
            if len(history) == 0:
                raise NotFittedError("Random walk used before fit() with no history.")
            self.fit(history)

        predictions = np.empty(num_predictions, dtype="float64")
        for i in range(num_predictions):
            if len(history) > 0:
                predictions[i] = history[self._rng.integers(len(history))]
            else:
                predictions[i] = self._normal_draw()

        return np.clip(predictions, -config.RW_CLIP, config.RW_CLIP)

    def predict_batch(
        self,
        histories: Optional[Sequence[Sequence[float]]],
        horizon: int = config.HORIZON,
        n_samples: Optional[int] = None,
    ) -> np.ndarray:
        """
        Predict one horizon per sample, shape (n, horizon).

        With ``histories`` each row resamples from its own history; with
        ``histories=None`` ``n_samples`` rows are drawn from the fitted
        distribution.
        """
        if histories is None:
            if n_samples is None:
                raise ValueError("n_samples is required when histories is None")
            rows = [self.predict(None, horizon) for _ in range(n_samples)]
        else:
            rows = [self.predict(h, horizon) for h in histories]

        if not rows:
            return np.empty((0, horizon), dtype="float64")
        return np.vstack(rows)

    def reset(self) -> None:
        """Forget the fitted distribution and restart the random stream."""
        self._rng = np.random.default_rng(self.seed)
        self.mean_return = config.RW_DEFAULT_MEAN
        self.std_return = config.RW_DEFAULT_STD
        self.is_trained = False
