from datetime import date, timedelta

import pytest

from vi_forecast.features import build_dataset
from vi_forecast.forecasting import ForecastPoint, clip_value, forecast_next_days, weather_proxy
from vi_forecast.loader import VISample
from vi_forecast.training import train_model
from vi_forecast.weather import WeatherSummary, align_weather


class ConstantModel:
    def __init__(self, value):
        self.value = value
        self.rows = []

    def infer(self, row):
        self.rows.append(list(row))
        return self.value


def seed_history(n=10, start=date(2023, 3, 1), value=0.5):
    return [VISample(start + timedelta(days=16 * i), value) for i in range(n)]


def test_runaway_predictions_clip_to_upper_bound(constant_weather):
    history = seed_history()
    model = ConstantModel(2.0)

    forecast = forecast_next_days(history, constant_weather([s.date for s in history]), model)

    assert len(forecast) == 30
    assert [p.value for p in forecast] == [1.0] * 30
    # Clipped values, not raw outputs, feed the next step's lags
    assert model.rows[1][0] == 1.0
    assert model.rows[3][:3] == [1.0, 1.0, 1.0]


def test_lower_bound_clip(constant_weather):
    history = seed_history()
    forecast = forecast_next_days(history, constant_weather([s.date for s in history]), ConstantModel(-5.0))
    assert all(p.value == -0.1 for p in forecast)


def test_forecast_dates_follow_last_sample(constant_weather):
    history = seed_history()
    forecast = forecast_next_days(history, constant_weather([s.date for s in history]), ConstantModel(0.5))

    last = history[-1].date
    assert [p.date for p in forecast] == [last + timedelta(days=k) for k in range(1, 31)]


def test_rows_use_constant_weather_proxy():
    history = seed_history(3)
    weather = {
        history[0].date: WeatherSummary(10.0, 2.0),
        history[1].date: WeatherSummary(None, 3.0),
        history[2].date: WeatherSummary(20.0, None),
    }
    model = ConstantModel(0.4)

    forecast_next_days(history, weather, model)

    assert {tuple(row[5:]) for row in model.rows} == {(15.0, 5.0)}


def test_weather_proxy_uses_last_thirty_entries():
    start = date(2020, 1, 1)
    weather = {start + timedelta(days=i): WeatherSummary(float(i), 1.0) for i in range(40)}
    proxy = weather_proxy(weather)
    assert proxy.t_mean == pytest.approx(sum(range(10, 40)) / 30)
    assert proxy.p_sum == pytest.approx(30.0)


def test_weather_proxy_defaults():
    assert weather_proxy({}) == WeatherSummary(10.0, 10.0)
    only_missing = {date(2020, 1, 1): WeatherSummary(None, None)}
    assert weather_proxy(only_missing) == WeatherSummary(10.0, 10.0)


def test_single_sample_history_yields_absent_values(constant_weather):
    history = seed_history(1)
    model = ConstantModel(0.5)

    forecast = forecast_next_days(history, constant_weather([history[0].date]), model)

    assert len(forecast) == 30
    assert all(p.value is None for p in forecast)
    assert forecast[-1].date == history[0].date + timedelta(days=30)
    assert model.rows == []


def test_empty_history_rejected():
    with pytest.raises(ValueError):
        forecast_next_days([], {}, ConstantModel(0.5))


def test_history_is_not_modified(constant_weather):
    history = seed_history()
    snapshot = list(history)
    forecast_next_days(history, constant_weather([s.date for s in history]), ConstantModel(0.7))
    assert history == snapshot


def test_trained_model_forecast_stays_in_range(history, daily_weather):
    weather = align_weather([s.date for s in history], daily_weather)
    model = train_model(build_dataset(history, weather), backend="linear")

    first = forecast_next_days(history, weather, model)
    second = forecast_next_days(history, weather, model)

    assert first == second
    assert all(-0.1 <= p.value <= 1.0 for p in first)


def test_horizon_is_bounded(constant_weather):
    history = seed_history()
    weather = constant_weather([s.date for s in history])
    assert len(forecast_next_days(history, weather, ConstantModel(0.5), horizon=7)) == 7
    assert len(forecast_next_days(history, weather, ConstantModel(0.5), horizon=90)) == 30


def test_clip_value():
    assert clip_value(1.7) == 1.0
    assert clip_value(-0.4) == -0.1
    assert clip_value(0.33) == 0.33
    assert ForecastPoint(date(2020, 1, 1), None).value is None
