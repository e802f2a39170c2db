"""Shared fakes for the forecasting tests"""

import math
from datetime import date, timedelta
from typing import Dict, List, Optional

import numpy as np
import pytest

from vi_forecast.errors import UpstreamError
from vi_forecast.loader import VISample
from vi_forecast.sources import DailyWeather
from vi_forecast.weather import WeatherSummary


class FakeSeriesSource:
    """Serves composite tokens and raw band values from memory"""

    def __init__(self, raw_by_token: Dict[str, Optional[float]],
                 failing_tokens=(), dates_error: Optional[UpstreamError] = None,
                 token_error: Optional[Exception] = None):
        self.raw_by_token = dict(raw_by_token)
        self.failing_tokens = set(failing_tokens)
        self.token_error = token_error if token_error is not None else UpstreamError("subset", 500)
        self.dates_error = dates_error
        self.value_calls: List[str] = []

    def fetch_composite_dates(self, product, lat, lng):
        if self.dates_error is not None:
            raise self.dates_error
        return list(self.raw_by_token)

    def fetch_composite_value(self, product, lat, lng, date_token, vi_type):
        self.value_calls.append(date_token)
        if date_token in self.failing_tokens:
            raise self.token_error
        return self.raw_by_token[date_token]


class FakeWeatherSource:
    """Serves daily readings from memory, restricted to the requested range"""

    def __init__(self, daily: Dict[date, DailyWeather], error: Optional[UpstreamError] = None):
        self.daily = daily
        self.error = error
        self.calls = []

    def fetch_daily_weather(self, lat, lng, start, end):
        self.calls.append((start, end))
        if self.error is not None:
            raise self.error
        return {d: w for d, w in self.daily.items() if start <= d <= end}


def seasonal_history(n: int = 70, start: date = date(2020, 1, 1), step: int = 16) -> List[VISample]:
    samples = []
    for i in range(n):
        day = start + timedelta(days=i * step)
        angle = 2 * math.pi * day.timetuple().tm_yday / 365
        noise = 0.01 * ((i * 7) % 5 - 2)
        samples.append(VISample(day, round(0.5 + 0.25 * math.sin(angle) + noise, 4)))
    return samples


def random_daily_weather(start: date, end: date, seed: int = 0) -> Dict[date, DailyWeather]:
    rng = np.random.default_rng(seed)
    daily = {}
    day = start
    while day <= end:
        daily[day] = DailyWeather(
            temperature=float(rng.normal(15, 5)),
            precipitation=float(rng.uniform(0, 6)),
        )
        day += timedelta(days=1)
    return daily


def to_raw_tokens(history: List[VISample]) -> Dict[str, Optional[float]]:
    """Inverse of the loader: 'YYYY-DDD' tokens with unscaled integer values"""
    return {
        f"{s.date.year}-{s.date.timetuple().tm_yday:03d}": round(s.value / 0.0001)
        for s in history
    }


@pytest.fixture
def history():
    return seasonal_history()


@pytest.fixture
def daily_weather(history):
    return random_daily_weather(history[0].date - timedelta(days=10),
                                history[-1].date + timedelta(days=10))


@pytest.fixture
def constant_weather():
    def build(dates, t_mean=15.0, p_sum=5.0):
        return {d: WeatherSummary(t_mean, p_sum) for d in dates}
    return build
