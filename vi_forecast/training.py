"""
Model fitting
=============

Standardization, the model interface and backend selection. The
closed-form linear model lives here; the PyTorch network lives in
`vi_forecast.network` and is only imported when PyTorch is installed.
"""

import importlib.util
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from sklearn.metrics import mean_squared_error

from .config import ModelConfig, clamp
from .debug import DebugLogger
from .errors import BackendUnavailableError, InsufficientDataError
from .features import Dataset
from .linalg import solve_normal_equations


# ===================== STANDARDIZATION =====================

def _column_std(values: np.ndarray, mean: np.ndarray) -> np.ndarray:
    n = values.shape[0]
    return np.sqrt(np.sum((values - mean) ** 2, axis=0) / max(1, n - 1))


@dataclass(frozen=True)
class StandardizationParams:
    """Column and label mean/std computed once over the training set"""
    x_mean: np.ndarray
    x_std: np.ndarray
    y_mean: float
    y_std: float
    constant: np.ndarray

    @classmethod
    def fit(cls, dataset: Dataset, epsilon: float = ModelConfig.STD_EPSILON) -> "StandardizationParams":
        if len(dataset) == 0:
            raise InsufficientDataError("Cannot standardize an empty dataset")

        x_mean = dataset.x.mean(axis=0)
        x_std = _column_std(dataset.x, x_mean)
        constant = x_std <= epsilon
        x_std = np.where(constant, 1.0, x_std)

        y_mean = float(dataset.y.mean())
        y_std = float(_column_std(dataset.y.reshape(-1, 1), np.array([y_mean]))[0])
        if y_std <= epsilon:
            y_std = 1.0

        return cls(x_mean=x_mean, x_std=x_std, y_mean=y_mean, y_std=y_std, constant=constant)

    def transform_rows(self, rows) -> np.ndarray:
        return (np.asarray(rows, dtype=float) - self.x_mean) / self.x_std

    def inverse_rows(self, rows) -> np.ndarray:
        return np.asarray(rows, dtype=float) * self.x_std + self.x_mean

    def transform_labels(self, labels) -> np.ndarray:
        return (np.asarray(labels, dtype=float) - self.y_mean) / self.y_std

    def inverse_labels(self, labels) -> np.ndarray:
        return np.asarray(labels, dtype=float) * self.y_std + self.y_mean


# ===================== MODELS =====================

class FittedModel(ABC):
    """A model fitted once on one dataset; callers only ever use `infer`"""

    kind = "base"

    def __init__(self, params: StandardizationParams):
        self.params = params
        self.training_rmse = float("nan")

    @abstractmethod
    def _predict_standardized(self, rows: np.ndarray) -> np.ndarray:
        """Standardized outputs for standardized rows"""

    def predict(self, rows) -> np.ndarray:
        """Original-scale predictions for raw feature rows"""
        rows = np.atleast_2d(np.asarray(rows, dtype=float))
        return self.params.inverse_labels(self._predict_standardized(self.params.transform_rows(rows)))

    def infer(self, row: Sequence[float]) -> float:
        """Prediction for one raw (non-standardized) feature row"""
        return float(self.predict([row])[0])

    def _score(self, dataset: Dataset) -> float:
        self.training_rmse = float(np.sqrt(mean_squared_error(dataset.y, self.predict(dataset.x))))
        return self.training_rmse


class LinearModel(FittedModel):
    """Ordinary least squares in standardized space"""

    kind = "linear"

    def __init__(self, params: StandardizationParams, weights: np.ndarray):
        super().__init__(params)
        self.weights = np.asarray(weights, dtype=float)

    def _predict_standardized(self, rows: np.ndarray) -> np.ndarray:
        return rows @ self.weights


def fit_linear(dataset: Dataset, config: Optional[ModelConfig] = None) -> LinearModel:
    """
    Closed-form least squares via the normal equations.

    Constant columns are all zero once centered, so they are left out of
    the solve and keep a zero weight. Any other rank deficiency raises
    SingularMatrixError.
    """
    config = config or ModelConfig()
    params = StandardizationParams.fit(dataset, config.STD_EPSILON)
    x = params.transform_rows(dataset.x)
    y = params.transform_labels(dataset.y)

    active = np.flatnonzero(~params.constant)
    weights = np.zeros(x.shape[1])
    if active.size:
        weights[active] = solve_normal_equations(
            x[:, active], y, ridge=config.RIDGE, tolerance=config.PIVOT_TOLERANCE
        )

    model = LinearModel(params, weights)
    model._score(dataset)
    return model


# ===================== BACKEND SELECTION =====================

def torch_available() -> bool:
    return importlib.util.find_spec("torch") is not None


def select_backend(backend: str = "auto") -> str:
    """Resolves 'auto' to the richest installed backend"""
    if backend == "auto":
        return "network" if torch_available() else "linear"
    if backend == "network" and not torch_available():
        raise BackendUnavailableError("The network backend requires PyTorch")
    if backend not in ("linear", "network"):
        raise ValueError(f"Unknown backend: {backend}")
    return backend


def train_model(dataset: Dataset, epochs: int = ModelConfig.EPOCHS,
                learning_rate: float = ModelConfig.LEARNING_RATE,
                backend: str = "auto", seed: Optional[int] = None,
                config: Optional[ModelConfig] = None) -> FittedModel:
    """Fits the selected backend and records its in-sample RMSE"""
    if len(dataset) == 0:
        raise InsufficientDataError("No training rows")

    config = config or ModelConfig()
    resolved = select_backend(backend)
    DebugLogger.log_data_shape("Training features", dataset.x)

    if resolved == "network":
        from .network import fit_network

        model = fit_network(
            dataset,
            epochs=clamp(int(epochs), *config.EPOCHS_RANGE),
            learning_rate=clamp(float(learning_rate), *config.LEARNING_RATE_RANGE),
            seed=seed,
            config=config,
        )
    else:
        model = fit_linear(dataset, config)

    print(f"✅ Trained {model.kind} model on {len(dataset)} rows. RMSE (train): {model.training_rmse:.4f}")
    return model
