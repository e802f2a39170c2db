import threading
from datetime import date, datetime, timezone
from http.server import BaseHTTPRequestHandler, HTTPServer

import numpy as np
import pytest
import requests

from vi_forecast.config import DataConfig
from vi_forecast.errors import UpstreamError
from vi_forecast.sources import (
    DailyWeather, FixedLocation, ModisRstClient, NasaPowerClient, OpenMeteoClient, create_session,
    parse_band_value, parse_composite_dates, parse_power_daily,
)


class FakeResponse:
    def __init__(self, payload=None, status_code=200, bad_json=False):
        self.payload = payload
        self.status_code = status_code
        self.bad_json = bad_json

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self.bad_json:
            raise ValueError("Expecting value")
        return self.payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params))
        if self.error is not None:
            raise self.error
        return self.response


def test_parse_composite_dates():
    payload = {"dates": [
        {"modis_date": "A2020001", "calendar_date": "2020-01-01"},
        {"modis_date": "A2020017", "calendar_date": "2020-01-17"},
        "2020-033",
    ]}
    assert parse_composite_dates(payload) == ["A2020001", "A2020017", "2020-033"]
    assert parse_composite_dates({}) == []


def test_parse_band_value_picks_requested_index():
    payload = {"subset": [
        {"band": "250m_16_days_EVI", "data": [3100]},
        {"band": "250m_16_days_NDVI", "data": [5234]},
        {"band": "250m_16_days_pixel_reliability", "data": [0]},
    ]}
    assert parse_band_value(payload, "ndvi") == 5234
    assert parse_band_value(payload, "evi") == 3100
    assert parse_band_value({"subset": []}, "ndvi") is None
    assert parse_band_value({"subset": [{"band": "NDVI", "data": []}]}, "ndvi") is None


def test_parse_band_value_rejects_garbage():
    with pytest.raises(UpstreamError):
        parse_band_value({"subset": [{"band": "NDVI", "data": ["n/a"]}]}, "ndvi")


def test_parse_power_daily_keeps_sentinel():
    payload = {"properties": {"parameter": {
        "T2M": {"20200101": 4.5, "20200102": -999.0},
        "PRECTOTCORR": {"20200101": 0.0, "20200102": 2.25},
    }}}
    assert parse_power_daily(payload) == {
        date(2020, 1, 1): DailyWeather(4.5, 0.0),
        date(2020, 1, 2): DailyWeather(DataConfig.WEATHER_SENTINEL, 2.25),
    }


def test_parse_power_daily_malformed():
    with pytest.raises(UpstreamError) as exc:
        parse_power_daily({"messages": ["bad request"]})
    assert exc.value.stage == "weather"


def test_modis_client_requests_single_pixel_subset():
    session = FakeSession(FakeResponse({"subset": [{"band": "250m_16_days_NDVI", "data": [6000]}]}))
    client = ModisRstClient(session=session)

    assert client.fetch_composite_value("MOD13Q1", 38.9, -77.0, "A2020017", "ndvi") == 6000
    url, params = session.requests[0]
    assert url == "https://modis.ornl.gov/rst/api/v1/MOD13Q1/subset"
    assert params["startDate"] == params["endDate"] == "A2020017"
    assert params["kmAboveBelow"] == 0 and params["kmLeftRight"] == 0


def test_modis_client_status_error():
    client = ModisRstClient(session=FakeSession(FakeResponse(status_code=503)))
    with pytest.raises(UpstreamError) as exc:
        client.fetch_composite_dates("MOD13Q1", 38.9, -77.0)
    assert exc.value.stage == "dates"
    assert exc.value.status_code == 503


def test_modis_client_transport_and_json_errors():
    client = ModisRstClient(session=FakeSession(error=requests.ConnectionError("down")))
    with pytest.raises(UpstreamError):
        client.fetch_composite_dates("MOD13Q1", 38.9, -77.0)

    client = ModisRstClient(session=FakeSession(FakeResponse(bad_json=True)))
    with pytest.raises(UpstreamError, match="malformed"):
        client.fetch_composite_dates("MOD13Q1", 38.9, -77.0)


def test_power_client_query():
    payload = {"properties": {"parameter": {"T2M": {"20200301": 8.0}, "PRECTOTCORR": {"20200301": 1.0}}}}
    session = FakeSession(FakeResponse(payload))
    daily = NasaPowerClient(session=session).fetch_daily_weather(38.9, -77.0, date(2020, 3, 1), date(2020, 3, 31))

    assert daily == {date(2020, 3, 1): DailyWeather(8.0, 1.0)}
    _, params = session.requests[0]
    assert params["parameters"] == "T2M,PRECTOTCORR"
    assert params["community"] == "AG"
    assert (params["start"], params["end"]) == ("20200301", "20200331")


def test_fixed_location():
    assert FixedLocation(10.5, -3.25).current_location() == (10.5, -3.25)


@pytest.mark.parametrize("payload", [
    {"subset": ["malformed"]},
    {"subset": {"band": "NDVI"}},
])
def test_parse_band_value_rejects_unexpected_structure(payload):
    with pytest.raises(UpstreamError) as exc:
        parse_band_value(payload, "ndvi")
    assert exc.value.stage == "subset"


class BadGatewayHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        self.send_response(502)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def log_message(self, format, *args):
        pass


@pytest.fixture
def bad_gateway_url():
    server = HTTPServer(("127.0.0.1", 0), BadGatewayHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_port}"
    server.shutdown()
    server.server_close()


def test_cached_session_reports_server_error_status(tmp_path, bad_gateway_url):
    client = ModisRstClient(session=create_session(str(tmp_path / "http_cache")), base_url=bad_gateway_url)

    with pytest.raises(UpstreamError) as exc:
        client.fetch_composite_dates("MOD13Q1", 38.9, -77.0)
    assert exc.value.stage == "dates"
    assert exc.value.status_code == 502


class FakeVariable:
    def __init__(self, values):
        self.values = values

    def ValuesAsNumpy(self):
        return np.asarray(self.values, dtype=np.float32)


class FakeDaily:
    def __init__(self, start, temperatures, precipitation):
        self.start = int(datetime(start.year, start.month, start.day, tzinfo=timezone.utc).timestamp())
        self.variables = [FakeVariable(temperatures), FakeVariable(precipitation)]

    def Variables(self, index):
        return self.variables[index]

    def Time(self):
        return self.start

    def Interval(self):
        return 86400


class FakeWeatherResponse:
    def __init__(self, daily):
        self.daily = daily

    def Daily(self):
        return self.daily


class FakeOpenMeteo:
    def __init__(self, daily):
        self.daily = daily
        self.calls = []

    def weather_api(self, url, params=None):
        self.calls.append((url, params))
        return [FakeWeatherResponse(self.daily)]


def test_open_meteo_daily_weather():
    client = FakeOpenMeteo(FakeDaily(date(2020, 3, 1), [5.5, float("nan"), 7.0], [0.0, 1.5, float("nan")]))

    daily = OpenMeteoClient(client=client).fetch_daily_weather(38.9, -77.0, date(2020, 3, 1), date(2020, 3, 3))

    assert daily == {
        date(2020, 3, 1): DailyWeather(5.5, 0.0),
        date(2020, 3, 2): DailyWeather(DataConfig.WEATHER_SENTINEL, 1.5),
        date(2020, 3, 3): DailyWeather(7.0, DataConfig.WEATHER_SENTINEL),
    }
    _, params = client.calls[0]
    assert (params["start_date"], params["end_date"]) == ("2020-03-01", "2020-03-03")
    assert params["daily"] == ["temperature_2m_mean", "precipitation_sum"]


def test_open_meteo_without_daily_block():
    client = OpenMeteoClient(client=FakeOpenMeteo(None))
    with pytest.raises(UpstreamError) as exc:
        client.fetch_daily_weather(38.9, -77.0, date(2020, 3, 1), date(2020, 3, 3))
    assert exc.value.stage == "weather"


def test_open_meteo_transport_failure():
    class Failing:
        def weather_api(self, url, params=None):
            raise requests.ConnectionError("unreachable")

    with pytest.raises(UpstreamError) as exc:
        OpenMeteoClient(client=Failing()).fetch_daily_weather(38.9, -77.0, date(2020, 3, 1), date(2020, 3, 3))
    assert exc.value.stage == "weather"
