"""
Preprocessing to create GRU-ready windowed sequences.

- Scales returns to [0, 1] with MinMaxScaler (fit once per loaded series).
- Builds sliding (input window, horizon) pairs, stride 1.
- Splits the pairs chronologically: train prefix, test suffix, no shuffling.

Public helpers:
    - ReturnNormalizer
    - create_windows()
    - build_windows()
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from sklearn.preprocessing import MinMaxScaler

from . import config
from .errors import InsufficientDataError, NotFittedError
from .logging import get_logger

logger = get_logger(__name__)

ArrayLike = Union[float, Sequence[float], np.ndarray]


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NormalizationParams:
    """
    Read-only view of a MinMaxScaler fitted on a return series.

    ``min``/``max`` are the scaler's ``data_min_``/``data_max_``; ``apply``
    and ``invert`` go through the scaler itself, so the params and the
    owning ReturnNormalizer always agree. The map is
        norm   = (r - min) / range
        denorm = norm * range + min
    where range = max - min, or 1 when the series is constant.
    """

    min: float
    max: float
    scaler: MinMaxScaler = field(repr=False, compare=False)

    @classmethod
    def from_scaler(cls, scaler: MinMaxScaler) -> "NormalizationParams":
        return cls(
            min=float(scaler.data_min_[0]),
            max=float(scaler.data_max_[0]),
            scaler=scaler,
        )

    @property
    def range(self) -> float:
        # MinMaxScaler substitutes a unit range for constant input
        return 1.0 / float(self.scaler.scale_[0])

    def apply(self, value: ArrayLike):
        """Scale returns to [0, 1]. Scalars in, scalars out."""
        arr = np.asarray(value, dtype="float64")
        out = self.scaler.transform(arr.reshape(-1, 1)).reshape(arr.shape)
        return float(out) if arr.ndim == 0 else out

    def invert(self, value: ArrayLike):
        """Map normalized values back to returns."""
        arr = np.asarray(value, dtype="float64")
        out = self.scaler.inverse_transform(arr.reshape(-1, 1)).reshape(arr.shape)
        return float(out) if arr.ndim == 0 else out


class ReturnNormalizer:
    """Min-max scaler for a single return series."""

    def __init__(self) -> None:
        self._params: Optional[NormalizationParams] = None

    @property
    def is_fitted(self) -> bool:
        return self._params is not None

    @property
    def params(self) -> NormalizationParams:
        if self._params is None:
            raise NotFittedError("Normalization parameters not available; call fit() first.")
        return self._params

    def fit(self, returns: Sequence[float]) -> NormalizationParams:
        """Fit min/max on ``returns`` and return the parameters."""
        values = np.asarray(returns, dtype="float64").reshape(-1, 1)
        if values.size == 0:
            raise ValueError("Cannot fit a normalizer on an empty return series.")
        if not np.all(np.isfinite(values)):
            raise ValueError("Return series contains NaN or infinite values.")

        scaler = MinMaxScaler(feature_range=(0, 1))
        scaler.fit(values)

        self._params = NormalizationParams.from_scaler(scaler)
        logger.info(
            "Normalizer fitted: min=%.6f max=%.6f", self._params.min, self._params.max
        )
        return self._params

    def _require_params(self) -> NormalizationParams:
        if self._params is None:
            raise NotFittedError("Normalizer used before fit().")
        return self._params

    def apply(self, values: ArrayLike):
        """Scale returns to the fitted range. Scalars in, scalars out."""
        return self._require_params().apply(values)

    def invert(self, values: ArrayLike):
        """Map normalized values back to returns."""
        return self._require_params().invert(values)

    def reset(self) -> None:
        self._params = None


# ---------------------------------------------------------------------------
# Windowing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WindowedSample:
    """One supervised pair; ``start`` is the index of inputs[0] in the series."""

    start: int
    inputs: np.ndarray
    target: np.ndarray


@dataclass
class WindowedDataset:
    """Chronologically split samples; every test start is after every train start."""

    train: List[WindowedSample]
    test: List[WindowedSample]
    window_size: int
    horizon: int
    split_index: int = field(default=0)

    def __len__(self) -> int:
        return len(self.train) + len(self.test)

    def _stack(self, samples: List[WindowedSample]) -> Tuple[np.ndarray, np.ndarray]:
        if not samples:
            return (
                np.empty((0, self.window_size, 1), dtype="float32"),
                np.empty((0, self.horizon), dtype="float32"),
            )
        X = np.stack([s.inputs for s in samples]).astype("float32")
        y = np.stack([s.target for s in samples]).astype("float32")
        return X[..., np.newaxis], y

    def train_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """(X_train, y_train) shaped (n, window, 1) and (n, horizon)."""
        return self._stack(self.train)

    def test_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """(X_test, y_test) shaped (n, window, 1) and (n, horizon)."""
        return self._stack(self.test)


def _validate_window_args(window_size: int, horizon: int) -> None:
    if window_size < 1:
        raise ValueError(f"window_size must be >= 1, got {window_size}")
    if horizon < 1:
        raise ValueError(f"horizon must be >= 1, got {horizon}")


def create_windows(
    series: Sequence[float],
    window_size: int = config.WINDOW_SIZE,
    horizon: int = config.HORIZON,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Build sliding windows for the sequence model.

    For each i in [0, len(series) - window_size - horizon]:
      X[i] = series[i : i + window_size]
      y[i] = series[i + window_size : i + window_size + horizon]

    Raises:
        InsufficientDataError: If not a single window fits.
    """
    _validate_window_args(window_size, horizon)
    series = np.asarray(series, dtype="float64")

    total = len(series) - window_size - horizon + 1
    if total <= 0:
        raise InsufficientDataError(
            f"Not enough data for windowing: need at least {window_size + horizon} "
            f"points, got {len(series)}",
            required=window_size + horizon,
            available=len(series),
        )

    X_seqs = []
    y_seqs = []
    for i in range(total):
        X_seqs.append(series[i : i + window_size])
        y_seqs.append(series[i + window_size : i + window_size + horizon])

    return np.array(X_seqs), np.array(y_seqs)


def build_windows(
    series: Sequence[float],
    window_size: int = config.WINDOW_SIZE,
    horizon: int = config.HORIZON,
    test_split: float = config.TEST_SPLIT,
) -> WindowedDataset:
    """Window the normalized series and split it chronologically.

    Args:
        series: Normalized return series.
        window_size: Inputs per sample.
        horizon: Targets per sample.
        test_split: Fraction of samples assigned to the test suffix, in [0, 1).

    Returns:
        WindowedDataset with train = samples [0, split) and
        test = samples [split, total), split = floor(total * (1 - test_split)).
    """
    if not 0.0 <= test_split < 1.0:
        raise ValueError(f"test_split must be in [0, 1), got {test_split}")

    X, y = create_windows(series, window_size, horizon)
    total = len(X)
    split = math.floor(total * (1 - test_split))

    samples = [WindowedSample(start=i, inputs=X[i], target=y[i]) for i in range(total)]
    dataset = WindowedDataset(
        train=samples[:split],
        test=samples[split:],
        window_size=window_size,
        horizon=horizon,
        split_index=split,
    )
    logger.info(
        "Created %d samples: %d train, %d test (window=%d, horizon=%d)",
        total,
        len(dataset.train),
        len(dataset.test),
        window_size,
        horizon,
    )
    return dataset
