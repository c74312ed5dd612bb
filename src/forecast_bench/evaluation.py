"""
Forecast evaluation utilities.

This module:
- Computes RMSE/MSE/MAE (magnitude) and direction accuracy for any
  predictor's multi-step outputs against held-out targets.
- Pools errors over every sample and every horizon step (no per-step
  averaging).
- Compares a candidate model against the random-walk baseline.

Evaluation runs inside reporting paths, so numeric edge cases (empty
input, zero baseline error, non-finite predictions) resolve to guarded
values instead of raising. Shape mismatches still raise.

Typical usage:

    from forecast_bench.evaluation import evaluate, compare_models

    baseline = evaluate(rw_predictions, y_test)
    candidate = evaluate(gru_predictions, y_test)
    comparison = compare_models(baseline, candidate)
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd
from sklearn.metrics import accuracy_score, mean_absolute_error, mean_squared_error

from .errors import ShapeMismatchError
from .logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class BenchmarkResult:
    """Pooled error metrics; direction_accuracy is a percentage in [0, 100]."""

    rmse: float
    mse: float
    mae: float
    direction_accuracy: float
    sample_size: int

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class ModelComparison:
    """Baseline vs. candidate metrics plus the candidate's RMSE improvement (%)."""

    baseline: BenchmarkResult
    candidate: BenchmarkResult
    improvement_pct: float

    @property
    def candidate_wins(self) -> bool:
        return self.candidate.rmse < self.baseline.rmse


EMPTY_RESULT = BenchmarkResult(
    rmse=0.0, mse=0.0, mae=0.0, direction_accuracy=0.0, sample_size=0
)


# ---------------------------------------------------------------------------
# Shape handling
# ---------------------------------------------------------------------------


def _pool(
    predictions: Sequence[Sequence[float]],
    actuals: Sequence[Sequence[float]],
) -> tuple[np.ndarray, np.ndarray]:
    """
    Check that both inputs have identical outer and per-row lengths, then
    flatten them into two aligned 1-D arrays.
    """
    if len(predictions) != len(actuals):
        raise ShapeMismatchError(
            f"Got {len(predictions)} prediction rows but {len(actuals)} actual rows.",
            context={"predictions": len(predictions), "actuals": len(actuals)},
        )

    pred_rows: List[np.ndarray] = []
    true_rows: List[np.ndarray] = []
    for i, (pred_row, true_row) in enumerate(zip(predictions, actuals)):
        pred_row = np.atleast_1d(np.asarray(pred_row, dtype="float64"))
        true_row = np.atleast_1d(np.asarray(true_row, dtype="float64"))
        if pred_row.shape != true_row.shape:
            raise ShapeMismatchError(
                f"Row {i}: prediction shape {pred_row.shape} "
                f"!= actual shape {true_row.shape}.",
                context={"row": i},
            )
        pred_rows.append(pred_row.ravel())
        true_rows.append(true_row.ravel())

    if not pred_rows:
        return np.empty(0), np.empty(0)
    return np.concatenate(pred_rows), np.concatenate(true_rows)


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


def direction_accuracy(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """
    Percentage of pairs whose signs agree, with 0 counted as non-negative:
    (actual >= 0 and predicted >= 0) or (actual < 0 and predicted < 0).
    """
    if len(y_true) == 0:
        return 0.0
    return float(accuracy_score(y_true >= 0.0, y_pred >= 0.0)) * 100.0


def evaluate(
    predictions: Sequence[Sequence[float]],
    actuals: Sequence[Sequence[float]],
) -> BenchmarkResult:
    """Compute pooled RMSE, MSE, MAE and direction accuracy.

    Args:
        predictions: One row of horizon predictions per test sample.
        actuals: Matching rows of realized values.

    Returns:
        BenchmarkResult over every scalar pair with a finite actual value.
        Non-finite predictions count as 0. Empty input (or no finite
        actuals) gives an all-zero result with sample_size 0.

    Raises:
        ShapeMismatchError: If the outer length or any row length differs.
    """
    y_pred, y_true = _pool(predictions, actuals)
    if y_true.size == 0:
        logger.warning("evaluate() called with no samples; returning zero metrics")
        return EMPTY_RESULT

    finite_true = np.isfinite(y_true)
    if not np.all(finite_true):
        logger.warning(
            "%d pairs with non-finite actuals dropped",
            int(np.count_nonzero(~finite_true)),
        )
        y_pred, y_true = y_pred[finite_true], y_true[finite_true]
        if y_true.size == 0:
            return EMPTY_RESULT

    if not np.all(np.isfinite(y_pred)):
        logger.warning(
            "%d non-finite predictions replaced by 0",
            int(np.count_nonzero(~np.isfinite(y_pred))),
        )
        y_pred = np.nan_to_num(y_pred, nan=0.0, posinf=0.0, neginf=0.0)

    mse = float(mean_squared_error(y_true, y_pred))
    return BenchmarkResult(
        rmse=float(np.sqrt(max(mse, 0.0))),
        mse=mse,
        mae=float(mean_absolute_error(y_true, y_pred)),
        direction_accuracy=direction_accuracy(y_true, y_pred),
        sample_size=int(y_true.size),
    )


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------


def compare(baseline: BenchmarkResult, candidate: BenchmarkResult) -> float:
    """
    RMSE improvement of ``candidate`` over ``baseline`` in percent:

      (baseline.rmse - candidate.rmse) / baseline.rmse * 100

    Returns 0.0 when the baseline RMSE is 0.
    """
    if baseline.rmse == 0:
        return 0.0
    return (baseline.rmse - candidate.rmse) / baseline.rmse * 100.0


def compare_models(baseline: BenchmarkResult, candidate: BenchmarkResult) -> ModelComparison:
    improvement = compare(baseline, candidate)
    logger.info(
        "RMSE baseline=%.6f candidate=%.6f improvement=%.2f%%",
        baseline.rmse,
        candidate.rmse,
        improvement,
    )
    return ModelComparison(
        baseline=baseline, candidate=candidate, improvement_pct=improvement
    )


def comparison_table(results: Dict[str, BenchmarkResult]) -> pd.DataFrame:
    """One row per model with all metric columns, sorted by RMSE."""
    rows = [{"model": name, **result.as_dict()} for name, result in results.items()]
    results_df = pd.DataFrame(
        rows,
        columns=["model", "rmse", "mse", "mae", "direction_accuracy", "sample_size"],
    )
    return results_df.sort_values(by="rmse").reset_index(drop=True)
