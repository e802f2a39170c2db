"""Supervised dataset construction from a VI history"""

import math
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .loader import VISample
from .weather import WeatherSummary, WeatherWindow

FEATURE_NAMES = (
    "lag1", "lag2", "rolling_mean3", "season_sin", "season_cos", "t_mean", "p_sum",
)
N_FEATURES = len(FEATURE_NAMES)


@dataclass(frozen=True)
class Dataset:
    """Feature rows, their labels and the dates they were built for"""
    x: np.ndarray
    y: np.ndarray
    dates: Tuple[date, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.y)

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[float]], labels: Sequence[float],
                  dates: Sequence[date] = ()) -> "Dataset":
        x = np.asarray(rows, dtype=float).reshape(len(rows), N_FEATURES)
        return cls(x=x, y=np.asarray(labels, dtype=float), dates=tuple(dates))


def day_of_year(day: date) -> int:
    return day.timetuple().tm_yday


def seasonal_pair(day: date) -> Tuple[float, float]:
    """Yearly sine/cosine encoding of the day of year"""
    angle = 2 * math.pi * day_of_year(day) / 365
    return math.sin(angle), math.cos(angle)


def rolling_mean(values: Sequence[Optional[float]], end: int, window: int = 3) -> Optional[float]:
    """Mean of the non-null values in the window ending at index `end`"""
    recent = [v for v in values[max(0, end - window + 1):end + 1] if v is not None]
    return sum(recent) / len(recent) if recent else None


def build_feature_row(lag1: Optional[float], lag2: Optional[float], mean3: Optional[float],
                      day: date, weather: Optional[WeatherSummary]) -> Optional[List[float]]:
    """The 7-feature vector, or None when any field is missing"""
    if weather is None:
        return None
    if None in (lag1, lag2, mean3, weather.t_mean, weather.p_sum):
        return None
    sin_doy, cos_doy = seasonal_pair(day)
    return [lag1, lag2, mean3, sin_doy, cos_doy, weather.t_mean, weather.p_sum]


def build_dataset(series: Sequence[VISample], weather: WeatherWindow) -> Dataset:
    """
    One labeled row per sample from the third onward.

    Rows lacking a lag, the rolling mean, a weather summary or the label
    are skipped individually.
    """
    values = [s.value for s in series]
    rows, labels, dates = [], [], []

    for i in range(2, len(series)):
        label = values[i]
        row = build_feature_row(
            values[i - 1], values[i - 2], rolling_mean(values, i),
            series[i].date, weather.get(series[i].date)
        )
        if row is None or label is None:
            continue
        rows.append(row)
        labels.append(label)
        dates.append(series[i].date)

    return Dataset.from_rows(rows, labels, dates)
