"""
Data providers
==============

Narrow, swappable interfaces for the collaborators that feed the core,
together with the concrete HTTP adapters:

- ModisRstClient: MODIS composite dates and band values (ORNL RST service)
- NasaPowerClient: daily temperature and precipitation (NASA POWER)
- OpenMeteoClient: daily temperature and precipitation (Open-Meteo archive)
"""

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Protocol, Tuple

import openmeteo_requests
import requests
import requests_cache
from retry_requests import retry

from .config import CACHE_FILE, DataConfig
from .errors import UpstreamError

MODIS_RST_URL = "https://modis.ornl.gov/rst/api/v1"
POWER_DAILY_URL = "https://power.larc.nasa.gov/api/temporal/daily/point"
OPEN_METEO_ARCHIVE_URL = "https://archive-api.open-meteo.com/v1/archive"


@dataclass(frozen=True)
class DailyWeather:
    """One day of provider weather; DataConfig.WEATHER_SENTINEL marks a missing reading"""
    temperature: float
    precipitation: float


# ===================== INTERFACES =====================

class SeriesSource(Protocol):
    def fetch_composite_dates(self, product: str, lat: float, lng: float) -> List[str]:
        ...

    def fetch_composite_value(self, product: str, lat: float, lng: float,
                              date_token: str, vi_type: str) -> Optional[float]:
        ...


class WeatherSource(Protocol):
    def fetch_daily_weather(self, lat: float, lng: float,
                            start: date, end: date) -> Dict[date, DailyWeather]:
        ...


class LocationProvider(Protocol):
    def current_location(self) -> Tuple[float, float]:
        ...


@dataclass(frozen=True)
class FixedLocation:
    """Location provider for a single selected point"""
    latitude: float
    longitude: float

    def current_location(self) -> Tuple[float, float]:
        return self.latitude, self.longitude


# ===================== HTTP =====================

def create_session(cache_file: str = CACHE_FILE,
                   expire_after: int = DataConfig.CACHE_EXPIRE_AFTER,
                   retries: int = DataConfig.HTTP_RETRIES) -> requests.Session:
    """Cached HTTP session; retries default to zero so every item is attempted once"""
    cache_session = requests_cache.CachedSession(cache_file, expire_after=expire_after)
    # The final 5xx response reaches the caller so its status code is reported
    return retry(cache_session, retries=retries, backoff_factor=0.2, raise_on_status=False)


def _get_json(session: requests.Session, stage: str, url: str,
              params: Dict[str, Any], timeout: float) -> Any:
    try:
        response = session.get(url, params=params, timeout=timeout)
    except requests.RequestException as e:
        raise UpstreamError(stage, detail=str(e)) from e

    if not response.ok:
        raise UpstreamError(stage, response.status_code)

    try:
        return response.json()
    except ValueError as e:
        raise UpstreamError(stage, response.status_code, "malformed JSON payload") from e


# ===================== MODIS =====================

def parse_composite_dates(payload: Any) -> List[str]:
    """Extracts date tokens from a RST dates payload"""
    if not isinstance(payload, dict) or not isinstance(payload.get("dates", []), list):
        raise UpstreamError("dates", detail="unexpected payload structure")

    tokens = []
    for entry in payload.get("dates", []):
        token = entry.get("modis_date") if isinstance(entry, dict) else entry
        if token:
            tokens.append(str(token))
    return tokens


def parse_band_value(payload: Any, vi_type: str) -> Optional[float]:
    """First pixel of the band whose name contains the VI type, None if absent"""
    if not isinstance(payload, dict):
        raise UpstreamError("subset", detail="unexpected payload structure")

    bands = payload.get("subset") or []
    if not isinstance(bands, list):
        raise UpstreamError("subset", detail="unexpected payload structure")

    for band in bands:
        if not isinstance(band, dict):
            raise UpstreamError("subset", detail=f"unexpected band entry {band!r}")
        if vi_type.lower() not in str(band.get("band", "")).lower():
            continue
        data = band.get("data")
        raw = data[0] if isinstance(data, list) and data else data
        if raw is None or isinstance(raw, list):
            return None
        try:
            return float(raw)
        except (TypeError, ValueError) as e:
            raise UpstreamError("subset", detail=f"non-numeric band value {raw!r}") from e
    return None


class ModisRstClient:
    """MODIS composite product access via the ORNL RST web service"""

    def __init__(self, session: Optional[requests.Session] = None,
                 base_url: str = MODIS_RST_URL, timeout: float = DataConfig.HTTP_TIMEOUT):
        self.session = session if session is not None else create_session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def fetch_composite_dates(self, product: str, lat: float, lng: float) -> List[str]:
        """Composite date tokens available at a point, oldest first"""
        payload = _get_json(
            self.session, "dates", f"{self.base_url}/{product}/dates",
            {"latitude": lat, "longitude": lng}, self.timeout
        )
        return parse_composite_dates(payload)

    def fetch_composite_value(self, product: str, lat: float, lng: float,
                              date_token: str, vi_type: str) -> Optional[float]:
        """Raw (unscaled) band value for one composite date"""
        params = {
            "latitude": lat,
            "longitude": lng,
            "startDate": date_token,
            "endDate": date_token,
            "kmAboveBelow": 0,
            "kmLeftRight": 0,
        }
        payload = _get_json(
            self.session, "subset", f"{self.base_url}/{product}/subset", params, self.timeout
        )
        return parse_band_value(payload, vi_type)


# ===================== WEATHER =====================

def _to_reading(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DataConfig.WEATHER_SENTINEL
    return number if math.isfinite(number) else DataConfig.WEATHER_SENTINEL


def parse_power_daily(payload: Any) -> Dict[date, DailyWeather]:
    """Turns a POWER daily point payload into per-day readings"""
    try:
        parameters = payload["properties"]["parameter"]
    except (KeyError, TypeError) as e:
        raise UpstreamError("weather", detail="missing properties.parameter") from e

    temperature = parameters.get("T2M") or {}
    precipitation = parameters.get("PRECTOTCORR") or {}

    daily = {}
    for key in sorted(set(temperature) | set(precipitation)):
        try:
            day = date(int(key[:4]), int(key[4:6]), int(key[6:8]))
        except ValueError:
            continue
        daily[day] = DailyWeather(
            temperature=_to_reading(temperature.get(key)),
            precipitation=_to_reading(precipitation.get(key)),
        )
    return daily


class NasaPowerClient:
    """Daily T2M and PRECTOTCORR from the NASA POWER point API"""

    def __init__(self, session: Optional[requests.Session] = None,
                 url: str = POWER_DAILY_URL, timeout: float = DataConfig.HTTP_TIMEOUT):
        self.session = session if session is not None else create_session()
        self.url = url
        self.timeout = timeout

    def fetch_daily_weather(self, lat: float, lng: float,
                            start: date, end: date) -> Dict[date, DailyWeather]:
        params = {
            "parameters": "T2M,PRECTOTCORR",
            "community": "AG",
            "longitude": lng,
            "latitude": lat,
            "start": start.strftime("%Y%m%d"),
            "end": end.strftime("%Y%m%d"),
            "format": "JSON",
        }
        payload = _get_json(self.session, "weather", self.url, params, self.timeout)
        return parse_power_daily(payload)


class OpenMeteoClient:
    """Daily mean temperature and precipitation from the Open-Meteo archive"""

    def __init__(self, client: Optional[openmeteo_requests.Client] = None,
                 url: str = OPEN_METEO_ARCHIVE_URL):
        self.client = client if client is not None else openmeteo_requests.Client(session=create_session())
        self.url = url

    def fetch_daily_weather(self, lat: float, lng: float,
                            start: date, end: date) -> Dict[date, DailyWeather]:
        params = {
            "latitude": lat,
            "longitude": lng,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "daily": ["temperature_2m_mean", "precipitation_sum"],
            "timezone": "UTC",
        }
        try:
            response = self.client.weather_api(self.url, params=params)[0]
        except Exception as e:
            raise UpstreamError("weather", detail=str(e)) from e

        daily = response.Daily()
        if daily is None:
            raise UpstreamError("weather", detail="response carries no daily data")

        try:
            temperatures = daily.Variables(0).ValuesAsNumpy()
            precipitation = daily.Variables(1).ValuesAsNumpy()
            first_day = date(1970, 1, 1) + timedelta(seconds=int(daily.Time()))
            step_days = max(1, int(daily.Interval()) // 86400)
        except (AttributeError, TypeError, ValueError) as e:
            raise UpstreamError("weather", detail=f"malformed daily data: {e}") from e

        return {
            first_day + timedelta(days=i * step_days): DailyWeather(
                temperature=_to_reading(t), precipitation=_to_reading(p)
            )
            for i, (t, p) in enumerate(zip(temperatures, precipitation))
        }
