"""Vegetation-index history loading"""

import math
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

import requests

from .config import DataConfig, ForecastRequest
from .debug import DebugLogger
from .errors import UpstreamError
from .sources import SeriesSource

T = TypeVar("T")
R = TypeVar("R")

_YEAR_DOY = re.compile(r"^A?(\d{4})-?(\d{3})$")
_YEAR_MONTH_DAY = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

# Failures that drop a single composite date instead of the whole load
PER_DATE_ERRORS = (UpstreamError, requests.RequestException, ValueError)


@dataclass(frozen=True)
class VISample:
    """One composite observation of a vegetation index"""
    date: date
    value: float


def parse_date_token(token: str) -> Optional[date]:
    """Converts 'YYYY-DDD', 'AYYYYDDD' or 'YYYY-MM-DD' to a date, None if unconvertible"""
    token = str(token).strip()

    match = _YEAR_DOY.match(token)
    if match and (token.startswith("A") or "-" in token):
        year, doy = int(match.group(1)), int(match.group(2))
        if not 1 <= doy <= 366:
            return None
        result = date(year, 1, 1) + timedelta(days=doy - 1)
        return result if result.year == year else None

    match = _YEAR_MONTH_DAY.match(token)
    if match:
        try:
            return date(*(int(part) for part in match.groups()))
        except ValueError:
            return None

    return None


def scale_raw_value(raw: Optional[float]) -> Optional[float]:
    """Scales an on-disk band value, None for fill/invalid values"""
    if raw is None:
        return None
    raw = float(raw)
    if not math.isfinite(raw) or raw <= DataConfig.FILL_THRESHOLD:
        return None
    return raw * DataConfig.SCALE_FACTOR


def lookback_count(years: int) -> int:
    """Number of ~16-day composites covering the lookback window"""
    return math.ceil((365 / DataConfig.COMPOSITE_PERIOD_DAYS) * years)


def run_pool(tasks: Iterable[T], worker: Callable[[T], R],
             max_workers: int = DataConfig.MAX_WORKERS,
             on_error: Optional[Callable[[T, Exception], None]] = None,
             errors: tuple = (UpstreamError,)) -> List[R]:
    """
    Runs independent fetch tasks on a fixed-width pool.

    Results come back in completion order. Tasks failing with one of
    `errors` are reported to `on_error` and left out; anything else
    propagates.
    """
    tasks = list(tasks)
    if not tasks:
        return []

    results = []
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(tasks)))) as executor:
        future_to_task = {executor.submit(worker, task): task for task in tasks}
        for future in as_completed(future_to_task):
            try:
                results.append(future.result())
            except errors as e:
                if on_error is not None:
                    on_error(future_to_task[future], e)
    return results


class SeriesLoader:
    """Builds a clean VISample history from a composite product source"""

    def __init__(self, source: SeriesSource, max_workers: int = DataConfig.MAX_WORKERS):
        self.source = source
        self.max_workers = max_workers

    def load(self, request: ForecastRequest) -> List[VISample]:
        """Ascending, duplicate-free history for the request's point and lookback"""
        lat, lng = request.latitude, request.longitude
        print(f"🛰️  Getting {request.vi_type.upper()} composites: {request.product} "
              f"({request.years} years)")

        # Failure here is fatal to the whole load
        tokens = self.source.fetch_composite_dates(request.product, lat, lng)
        tokens = tokens[-lookback_count(request.years):] if tokens else []
        if not tokens:
            print("⚠️  No composite dates available for this location")
            return []

        def fetch(task: Tuple[int, str]) -> Tuple[int, Optional[VISample]]:
            index, token = task
            day = parse_date_token(token)
            if day is None:
                return index, None
            raw = self.source.fetch_composite_value(request.product, lat, lng, token, request.vi_type)
            value = scale_raw_value(raw)
            return index, (None if value is None else VISample(day, value))

        fetched = run_pool(
            enumerate(tokens), fetch, self.max_workers,
            on_error=lambda task, e: DebugLogger.log_skipped("subset", task[1], e),
            errors=PER_DATE_ERRORS,
        )
        # Token order decides which sample survives a repeated date
        fetched.sort(key=lambda item: item[0])
        series = sort_samples(sample for _, sample in fetched if sample is not None)

        DebugLogger.log_vi_stats([s.value for s in series], request.vi_type.upper(), "MODIS RST")
        print(f"✅ Got {len(series)} of {len(tokens)} composites")
        return series


def sort_samples(samples: Iterable[VISample]) -> List[VISample]:
    """Sorts by date and keeps the first sample for any repeated date"""
    seen = set()
    ordered = []
    for sample in sorted(samples, key=lambda s: s.date):
        if sample.date in seen:
            continue
        seen.add(sample.date)
        ordered.append(sample)
    return ordered
