import numpy as np
import pytest

from forecast_bench.errors import NotFittedError
from forecast_bench.models import gru


SMALL_CONFIG = {"units": 4, "dense_units": 4, "batch_size": 8, "validation_split": 0.1}


# --------------------------------------------------------------------------------------
# Helpers
# --------------------------------------------------------------------------------------


def _make_small_windows(n: int = 24, window_size: int = 6, horizon: int = 3):
    """Small synthetic normalized windows in [0, 1]."""
    rng = np.random.default_rng(0)
    X = rng.random((n, window_size, 1)).astype("float32")
    y = rng.random((n, horizon)).astype("float32")
    return X, y


# --------------------------------------------------------------------------------------
# build_gru_model
# --------------------------------------------------------------------------------------


def test_build_gru_model_respects_config():
    """
    build_gru_model should honor the config overrides and produce a model
    with input (None, window, 1) and a Dense(horizon) output.
    """
    from tensorflow.keras.layers import GRU as GRULayer, Dense as DenseLayer

    model = gru.build_gru_model(window_size=7, horizon=4, gru_config={"units": 5})

    assert model.input_shape == (None, 7, 1)

    gru_layers = [layer for layer in model.layers if isinstance(layer, GRULayer)]
    assert [layer.units for layer in gru_layers] == [5]

    dense_layers = [layer for layer in model.layers if isinstance(layer, DenseLayer)]
    assert dense_layers[-1].units == 4
    assert model.output_shape == (None, 4)


# --------------------------------------------------------------------------------------
# GRUForecaster
# --------------------------------------------------------------------------------------


def test_fit_reports_true_loss_every_epoch():
    X, y = _make_small_windows()
    forecaster = gru.GRUForecaster(window_size=6, horizon=3, gru_config=SMALL_CONFIG, seed=1)

    calls = []
    history = forecaster.fit(
        X, y, epochs=3, on_epoch_end=lambda epoch, logs: calls.append((epoch, logs["loss"]))
    )

    assert [epoch for epoch, _ in calls] == [0, 1, 2]
    assert [entry["epoch"] for entry in history] == [1, 2, 3]
    assert [loss for _, loss in calls] == pytest.approx([h["loss"] for h in history])
    assert all(np.isfinite(loss) and loss > 0 for _, loss in calls)
    assert forecaster.is_trained
    assert forecaster.last_loss == pytest.approx(history[-1]["loss"])
    assert history[-1]["val_loss"] is not None


def test_predict_shape_and_single_window():
    X, y = _make_small_windows()
    forecaster = gru.GRUForecaster(window_size=6, horizon=3, gru_config=SMALL_CONFIG, seed=1)
    forecaster.fit(X, y, epochs=1)

    batch = forecaster.predict(X[:5])
    single = forecaster.predict(X[0, :, 0])

    assert batch.shape == (5, 3)
    assert single.shape == (1, 3)
    assert np.all(np.isfinite(batch))
    np.testing.assert_allclose(single[0], batch[0], rtol=1e-5, atol=1e-6)


def test_predict_before_fit_raises():
    forecaster = gru.GRUForecaster(window_size=6, horizon=3, gru_config=SMALL_CONFIG)
    with pytest.raises(NotFittedError):
        forecaster.predict(np.zeros((1, 6, 1)))


def test_fit_rejects_wrong_window_or_horizon():
    X, y = _make_small_windows(window_size=6, horizon=3)
    forecaster = gru.GRUForecaster(window_size=5, horizon=3, gru_config=SMALL_CONFIG)
    with pytest.raises(ValueError):
        forecaster.fit(X, y, epochs=1)

    forecaster = gru.GRUForecaster(window_size=6, horizon=2, gru_config=SMALL_CONFIG)
    with pytest.raises(ValueError):
        forecaster.fit(X, y, epochs=1)


def test_fit_tiny_training_set_skips_validation_split():
    X, y = _make_small_windows(n=4)
    forecaster = gru.GRUForecaster(window_size=6, horizon=3, gru_config=SMALL_CONFIG, seed=1)

    history = forecaster.fit(X, y, epochs=1)

    assert len(history) == 1
    assert history[0]["val_loss"] is None


def test_dispose_resets_state():
    X, y = _make_small_windows()
    forecaster = gru.GRUForecaster(window_size=6, horizon=3, gru_config=SMALL_CONFIG, seed=1)
    forecaster.fit(X, y, epochs=1)

    forecaster.dispose()

    assert forecaster.model is None
    assert not forecaster.is_trained
    assert forecaster.last_loss is None
    assert forecaster.history == []
    with pytest.raises(NotFittedError):
        forecaster.predict(X[:1])


def test_fit_rejects_explicit_zero_epochs():
    """epochs=0 is an error, not a request for the configured default."""
    X, y = _make_small_windows()
    forecaster = gru.GRUForecaster(window_size=6, horizon=3, gru_config=SMALL_CONFIG, seed=1)

    with pytest.raises(ValueError):
        forecaster.fit(X, y, epochs=0)

    assert forecaster.model is None
    assert not forecaster.is_trained


def test_fit_epochs_none_uses_configured_default():
    X, y = _make_small_windows()
    config = dict(SMALL_CONFIG, epochs=2)
    forecaster = gru.GRUForecaster(window_size=6, horizon=3, gru_config=config, seed=1)

    history = forecaster.fit(X, y)

    assert [entry["epoch"] for entry in history] == [1, 2]


def test_dispose_clears_session_only_when_holding_a_model(monkeypatch):
    """
    clear_session() is process-wide, so a forecaster that never built a
    model must not call it.
    """
    calls = []
    monkeypatch.setattr(gru.tf.keras.backend, "clear_session", lambda: calls.append(1))

    gru.GRUForecaster(window_size=6, horizon=3, gru_config=SMALL_CONFIG).dispose()
    assert calls == []

    X, y = _make_small_windows()
    forecaster = gru.GRUForecaster(window_size=6, horizon=3, gru_config=SMALL_CONFIG, seed=1)
    forecaster.fit(X, y, epochs=1)
    calls.clear()

    forecaster.dispose()
    assert calls == [1]
