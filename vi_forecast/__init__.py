"""
Vegetation Index Forecasting
============================

30-day NDVI/EVI forecasts at one point from composite history, windowed
weather and a regression model fitted per request.
"""

from .config import ConfigManager, DataConfig, ForecastRequest, ModelConfig
from .errors import (
    BackendUnavailableError, InsufficientDataError, SingularMatrixError,
    UpstreamError, VIForecastError,
)
from .features import Dataset, build_dataset
from .forecasting import ForecastPoint, forecast_next_days
from .loader import SeriesLoader, VISample
from .pipeline import ForecastResult, ForecastStatus, VIForecaster
from .training import FittedModel, LinearModel, StandardizationParams, train_model
from .weather import WeatherAligner, WeatherSummary, align_weather

__version__ = "0.1.0"
