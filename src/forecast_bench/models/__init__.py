"""
Models subpackage for the forecasting benchmark.

This subpackage contains:

- baselines: Random-walk baseline fitted from historical return mean/std.
- gru:       GRU sequence model predicting a multi-step return horizon.

Typical usage:

    from forecast_bench.models import GRUForecaster, RandomWalkBaseline

For most users, you don't need to import this directly: the pipeline
already wires both models together.
"""

from __future__ import annotations

from .baselines import RandomWalkBaseline
from .gru import GRUForecaster, SequencePredictor, build_gru_model

__all__ = [
    "RandomWalkBaseline",
    "GRUForecaster",
    "SequencePredictor",
    "build_gru_model",
]
