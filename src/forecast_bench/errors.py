"""
Error taxonomy for the forecasting benchmark.

Every exception carries an optional ``context`` dict so callers can build
an end-user message (row counts, shapes, ...) without parsing strings.
All of them are recoverable: reloading the input data resets the pipeline.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ForecastBenchError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}


class ParseError(ForecastBenchError, ValueError):
    """Raw price text could not be turned into any usable rows."""


class InsufficientDataError(ForecastBenchError, ValueError):
    """Not enough points for parsing, windowing or rolling statistics."""

    def __init__(
        self,
        message: str,
        required: Optional[int] = None,
        available: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.required = required
        self.available = available


class InsufficientHistoryError(InsufficientDataError):
    """Moving-average trend requested without enough price history."""


class NotFittedError(ForecastBenchError, RuntimeError):
    """Normalizer or predictor used before fit()."""


class ShapeMismatchError(ForecastBenchError, ValueError):
    """Predictions and actuals do not have identical shapes."""


class ZeroVarianceError(ForecastBenchError, ZeroDivisionError):
    """A ratio was requested over a series with zero standard deviation."""


class PipelineStateError(ForecastBenchError, RuntimeError):
    """A pipeline stage was called before the stage it depends on."""
