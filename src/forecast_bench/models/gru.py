"""
GRU model: build, train, and predict multi-step normalized returns.

- Consumes (n, window, 1) input windows and (n, horizon) targets built by
  `preprocessing.build_windows()`.
- Predicts the next `horizon` normalized returns in one shot (Dense(horizon)).
- Reports the real training loss of every epoch through a callback.

Any object with the same fit/predict/is_trained/last_loss/dispose surface
(see SequencePredictor) can replace GRUForecaster in the pipeline.

Public helpers:
    - build_gru_model()
    - GRUForecaster
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Protocol

import numpy as np
import tensorflow as tf
from tensorflow.keras import Input, Sequential
from tensorflow.keras.callbacks import LambdaCallback
from tensorflow.keras.layers import GRU, Dense, Dropout

from .. import config
from ..errors import NotFittedError
from ..logging import get_logger

logger = get_logger(__name__)

EpochCallback = Callable[[int, Dict[str, float]], None]


class SequencePredictor(Protocol):
    """Contract the pipeline expects from a sequence model."""

    is_trained: bool
    last_loss: Optional[float]

    def fit(
        self,
        inputs: np.ndarray,
        targets: np.ndarray,
        epochs: Optional[int] = None,
        on_epoch_end: Optional[EpochCallback] = None,
    ) -> Any: ...

    def predict(self, inputs: np.ndarray) -> np.ndarray: ...

    def dispose(self) -> None: ...


# ---------------------------------------------------------------------------
# Model definition
# ---------------------------------------------------------------------------


def build_gru_model(
    window_size: int,
    horizon: int,
    gru_config: Optional[Dict[str, Any]] = None,
) -> tf.keras.Model:
    """
    Build a Sequential model with one GRU layer and a Dense(horizon) linear
    output for multi-step regression of normalized returns.

    Architecture (configurable via config.GRU_CONFIG):
      - Input(shape=(window_size, 1))
      - GRU(units)
      - Dropout(dropout)
      - Dense(dense_units, activation='relu')
      - Dense(horizon, activation='linear')
    """
    cfg = dict(config.GRU_CONFIG)
    if gru_config:
        cfg.update(gru_config)

    model = Sequential(
        [
            Input(shape=(window_size, 1)),
            GRU(cfg["units"], return_sequences=False),
            Dropout(cfg["dropout"]),
            Dense(cfg["dense_units"], activation="relu", kernel_initializer="he_normal"),
            Dense(horizon, activation="linear"),
        ]
    )

    model.compile(
        optimizer=tf.keras.optimizers.Adam(learning_rate=cfg["learning_rate"]),
        loss="mse",
        metrics=["mae"],
    )
    return model


def _as_model_input(inputs: np.ndarray, window_size: int) -> np.ndarray:
    """Accept (window,), (n, window) or (n, window, 1) and return (n, window, 1)."""
    X = np.asarray(inputs, dtype="float32")
    if X.ndim == 1:
        X = X.reshape(1, -1)
    if X.ndim == 2:
        X = X[..., np.newaxis]
    if X.shape[1:] != (window_size, 1):
        raise ValueError(
            f"Expected windows of shape ({window_size}, 1), got {X.shape[1:]}"
        )
    return X


# ---------------------------------------------------------------------------
# Forecaster
# ---------------------------------------------------------------------------


class GRUForecaster:
    """Keras GRU wrapped in the SequencePredictor contract."""

    def __init__(
        self,
        window_size: int = config.WINDOW_SIZE,
        horizon: int = config.HORIZON,
        gru_config: Optional[Dict[str, Any]] = None,
        seed: Optional[int] = config.RANDOM_SEED,
    ) -> None:
        self.window_size = window_size
        self.horizon = horizon
        self.config = dict(config.GRU_CONFIG)
        if gru_config:
            self.config.update(gru_config)
        self.seed = seed

        self.model: Optional[tf.keras.Model] = None
        self.is_trained = False
        self.last_loss: Optional[float] = None
        self.history: List[Dict[str, Optional[float]]] = []

    def build(self) -> tf.keras.Model:
        """(Re)build a fresh, untrained model."""
        self.dispose()
        if self.seed is not None:
            tf.keras.utils.set_random_seed(self.seed)
        self.model = build_gru_model(self.window_size, self.horizon, self.config)
        return self.model

    def fit(
        self,
        inputs: np.ndarray,
        targets: np.ndarray,
        epochs: Optional[int] = None,
        on_epoch_end: Optional[EpochCallback] = None,
    ) -> List[Dict[str, Optional[float]]]:
        """
        Train on (inputs, targets).

        ``on_epoch_end(epoch, logs)`` is called once per epoch with the
        Keras logs of that epoch (``logs["loss"]`` is the epoch's training
        loss). Returns the per-epoch history.
        """
        X = _as_model_input(inputs, self.window_size)
        if len(X) == 0:
            raise ValueError("Cannot train on an empty training set.")
        y = np.asarray(targets, dtype="float32").reshape(len(X), -1)
        if y.shape[1] != self.horizon:
            raise ValueError(f"Expected targets with {self.horizon} steps, got {y.shape[1]}")

        epochs = epochs if epochs is not None else self.config["epochs"]
        if epochs < 1:
            raise ValueError(f"epochs must be >= 1, got {epochs}")

        if self.model is None:
            self.build()

        batch_size = min(self.config["batch_size"], len(X))
        # Keras refuses a split that leaves either side empty
        val_split = self.config["validation_split"]
        if int(len(X) * val_split) < 1:
            val_split = 0.0

        self.history = []

        def _record(epoch: int, logs: Optional[Dict[str, float]]) -> None:
            logs = dict(logs or {})
            loss = float(logs["loss"])
            val_loss = logs.get("val_loss")
            self.history.append(
                {
                    "epoch": epoch + 1,
                    "loss": loss,
                    "val_loss": float(val_loss) if val_loss is not None else None,
                }
            )
            self.last_loss = loss
            logger.debug("Epoch %d/%d - loss: %.6f", epoch + 1, epochs, loss)
            if on_epoch_end is not None:
                on_epoch_end(epoch, logs)

        logger.info(
            "Training GRU: %d samples, batch=%d, epochs=%d", len(X), batch_size, epochs
        )
        self.model.fit(
            X,
            y,
            validation_split=val_split,
            epochs=epochs,
            batch_size=batch_size,
            callbacks=[LambdaCallback(on_epoch_end=_record)],
            verbose=0,
            shuffle=False,  # respect temporal order
        )

        self.is_trained = True
        logger.info("GRU training finished, final loss=%.6f", self.last_loss)
        return self.history

    def predict(self, inputs: np.ndarray) -> np.ndarray:
        """Predict (n, horizon) normalized returns; NaN/inf become 0."""
        if self.model is None or not self.is_trained:
            raise NotFittedError("GRU model used before fit().")
        X = _as_model_input(inputs, self.window_size)
        predictions = self.model.predict(X, verbose=0)
        return np.nan_to_num(
            np.asarray(predictions, dtype="float64"), nan=0.0, posinf=0.0, neginf=0.0
        )

    def dispose(self) -> None:
        """
        Release the Keras model and its backend state.

        ``tf.keras.backend.clear_session()`` is process-wide: it resets the
        Keras global graph and name counters for every live model, not only
        this forecaster's. Models built elsewhere in the same process stay
        usable for predict(), but should be rebuilt before further training.
        Only a forecaster that actually holds a model clears the session.
        """
        if self.model is not None:
            self.model = None
            tf.keras.backend.clear_session()
        self.is_trained = False
        self.last_loss = None
        self.history = []
