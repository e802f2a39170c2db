"""Per-sample weather summaries"""

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Mapping, Optional

import numpy as np

from .config import DataConfig
from .debug import DebugLogger
from .sources import DailyWeather, WeatherSource


@dataclass(frozen=True)
class WeatherSummary:
    """Windowed weather around one sample date; None when the window had no valid readings"""
    t_mean: Optional[float]
    p_sum: Optional[float]


# Insertion order follows the sample order
WeatherWindow = Dict[date, WeatherSummary]


def is_valid_reading(value: Optional[float]) -> bool:
    """False for missing, non-finite and sentinel readings"""
    return value is not None and math.isfinite(value) and value > DataConfig.WEATHER_VALID_ABOVE


def summarize_window(daily: Mapping[date, DailyWeather], center: date,
                     half_window: int = DataConfig.WEATHER_HALF_WINDOW) -> WeatherSummary:
    """Mean temperature and total precipitation over center ± half_window days"""
    temperatures, precipitation = [], []
    for offset in range(-half_window, half_window + 1):
        day = daily.get(center + timedelta(days=offset))
        if day is None:
            continue
        if is_valid_reading(day.temperature):
            temperatures.append(day.temperature)
        if is_valid_reading(day.precipitation):
            precipitation.append(day.precipitation)

    return WeatherSummary(
        t_mean=float(np.mean(temperatures)) if temperatures else None,
        p_sum=float(np.sum(precipitation)) if precipitation else None,
    )


def align_weather(dates: Iterable[date], daily: Mapping[date, DailyWeather],
                  half_window: int = DataConfig.WEATHER_HALF_WINDOW) -> WeatherWindow:
    """WeatherWindow covering exactly the given dates"""
    return {day: summarize_window(daily, day, half_window) for day in dates}


class WeatherAligner:
    """Fetches daily weather once and summarizes it around every sample date"""

    def __init__(self, source: WeatherSource, half_window: int = DataConfig.WEATHER_HALF_WINDOW):
        self.source = source
        self.half_window = half_window

    def align(self, dates: List[date], lat: float, lng: float) -> WeatherWindow:
        if not dates:
            return {}

        start, end = min(dates), max(dates)
        print(f"🌤️  Getting weather data: {start} - {end}")

        # Fetch failures propagate and abort the run
        daily = self.source.fetch_daily_weather(lat, lng, start, end)
        DebugLogger.log_data_shape("Daily weather", daily)

        window = align_weather(dates, daily, self.half_window)
        missing = sum(1 for s in window.values() if s.t_mean is None or s.p_sum is None)
        if missing:
            print(f"⚠️  {missing} of {len(window)} dates have incomplete weather windows")
        print(f"✅ Aligned weather for {len(window)} dates")
        return window
