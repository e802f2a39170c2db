"""Autoregressive multi-day forecasting"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional, Protocol, Sequence, Tuple

import numpy as np

from .config import DataConfig, clamp
from .features import build_feature_row, rolling_mean
from .loader import VISample
from .weather import WeatherSummary, WeatherWindow


class Predictor(Protocol):
    def infer(self, row: Sequence[float]) -> float:
        ...


@dataclass(frozen=True)
class ForecastPoint:
    date: date
    value: Optional[float]


def weather_proxy(weather: WeatherWindow,
                  window: int = DataConfig.WEATHER_PROXY_WINDOW) -> WeatherSummary:
    """
    Constant stand-in for future weather.

    Uses the last `window` entries of the WeatherWindow: the mean of their
    temperatures and the sum of their precipitation totals, skipping
    missing values, with fixed defaults when nothing is left.
    """
    recent = list(weather.values())[-window:] if window > 0 else []
    temperatures = [w.t_mean for w in recent if w.t_mean is not None]
    precipitation = [w.p_sum for w in recent if w.p_sum is not None]
    return WeatherSummary(
        t_mean=float(np.mean(temperatures)) if temperatures else DataConfig.DEFAULT_TEMPERATURE,
        p_sum=float(np.sum(precipitation)) if precipitation else DataConfig.DEFAULT_PRECIPITATION,
    )


def clip_value(value: float, bounds: Tuple[float, float] = DataConfig.VALUE_RANGE) -> float:
    return float(clamp(value, *bounds))


def forecast_next_days(history: Sequence[VISample], weather: WeatherWindow, model: Predictor,
                       horizon: int = DataConfig.HORIZON_DAYS) -> List[ForecastPoint]:
    """
    Forecasts the days following the last historical date.

    Each clipped prediction is appended to the running history so it feeds
    the lag and rolling-mean features of the next step. Steps whose lags
    cannot be built yield a point with value None.
    """
    if not history:
        raise ValueError("Forecasting needs at least one historical sample")

    horizon = clamp(int(horizon), 1, DataConfig.HORIZON_DAYS)
    proxy = weather_proxy(weather)

    values = [s.value for s in history]
    current = history[-1].date
    points = []

    for _ in range(horizon):
        current = current + timedelta(days=1)
        n = len(values)
        row = build_feature_row(
            values[-1] if n >= 1 else None,
            values[-2] if n >= 2 else None,
            rolling_mean(values, n - 1),
            current,
            proxy,
        )
        if row is None:
            points.append(ForecastPoint(current, None))
            continue

        value = clip_value(model.infer(row))
        points.append(ForecastPoint(current, value))
        values.append(value)

    return points
