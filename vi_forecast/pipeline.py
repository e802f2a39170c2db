"""
Vegetation Index Forecasting Pipeline
=====================================

Runs one forecast request end to end:

- SeriesLoader: composite history at the selected point
- WeatherAligner: windowed weather around every composite date
- build_dataset: lag, seasonal and weather features
- train_model: closed-form or network regression
- forecast_next_days: autoregressive 30-day forecast
"""

import argparse
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence

import pandas as pd

from .config import CONFIG_FILE, ConfigManager, DataConfig, ForecastRequest
from .debug import DebugLogger
from .features import build_dataset
from .forecasting import ForecastPoint, forecast_next_days
from .loader import SeriesLoader, VISample
from .plotting import build_forecast_figure, format_forecast_table
from .sources import (
    LocationProvider, ModisRstClient, NasaPowerClient, OpenMeteoClient,
    SeriesSource, WeatherSource, create_session,
)
from .training import train_model
from .weather import WeatherAligner


class ForecastStatus(str, Enum):
    OK = "ok"
    NO_HISTORY = "no_history"
    INSUFFICIENT_DATA = "insufficient_data"


@dataclass
class ForecastResult:
    """Outcome of one forecast request"""
    status: ForecastStatus
    message: str
    history: List[VISample] = field(default_factory=list)
    forecast: List[ForecastPoint] = field(default_factory=list)
    n_samples: int = 0
    training_rmse: Optional[float] = None
    backend: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is ForecastStatus.OK

    def to_frame(self) -> pd.DataFrame:
        """History and forecast as one chart-ready frame"""
        rows = [{'date': p.date, 'value': p.value, 'kind': 'history'} for p in self.history]
        rows += [{'date': p.date, 'value': p.value, 'kind': 'forecast'} for p in self.forecast]
        df = pd.DataFrame(rows, columns=['date', 'value', 'kind'])
        df['date'] = pd.to_datetime(df['date'])
        return df


def default_weather_source(name: str) -> WeatherSource:
    if name == "open-meteo":
        return OpenMeteoClient()
    return NasaPowerClient(create_session())


class VIForecaster:
    """Main class for vegetation index forecasting"""

    def __init__(self, series_source: Optional[SeriesSource] = None,
                 weather_source: Optional[WeatherSource] = None,
                 max_workers: int = DataConfig.MAX_WORKERS):
        self.series_source = series_source
        self.weather_source = weather_source
        self.max_workers = max_workers

    def run(self, request: ForecastRequest) -> ForecastResult:
        """Loads, trains and forecasts for one request"""
        print(f"🌿 Forecasting {request.vi_type.upper()} at "
              f"{request.latitude:.4f}, {request.longitude:.4f}")
        print("=" * 60)
        start_time = datetime.now()

        series_source = self.series_source or ModisRstClient()
        weather_source = self.weather_source or default_weather_source(request.weather_source)

        history = SeriesLoader(series_source, self.max_workers).load(request)
        if not history:
            return ForecastResult(ForecastStatus.NO_HISTORY, "No VI history here.")

        weather = WeatherAligner(weather_source).align(
            [s.date for s in history], request.latitude, request.longitude
        )

        print("📦 Building dataset...")
        dataset = build_dataset(history, weather)
        DebugLogger.log_data_shape("Dataset", dataset.x)
        if len(dataset) < DataConfig.MIN_TRAINING_ROWS:
            return ForecastResult(
                ForecastStatus.INSUFFICIENT_DATA,
                f"Not enough samples to train: {len(dataset)} rows, "
                f"{DataConfig.MIN_TRAINING_ROWS} needed.",
                history=history,
                n_samples=len(dataset),
            )

        model = train_model(
            dataset,
            epochs=request.epochs,
            learning_rate=request.learning_rate,
            backend=request.backend,
            seed=request.seed,
        )

        print(f"🔮 Forecasting next {DataConfig.HORIZON_DAYS} days...")
        forecast = forecast_next_days(history, weather, model)

        print(f"⏱️  Execution time: {datetime.now() - start_time}")
        print("=" * 60)
        return ForecastResult(
            ForecastStatus.OK,
            f"Done. Samples: {len(dataset)}, RMSE (train): {model.training_rmse:.4f}",
            history=history,
            forecast=forecast,
            n_samples=len(dataset),
            training_rmse=model.training_rmse,
            backend=model.kind,
        )

    def run_at(self, location: LocationProvider, **params) -> ForecastResult:
        """Reads the selected location once and runs a request there"""
        lat, lng = location.current_location()
        return self.run(ForecastRequest.create(lat, lng, **params))


# ===================== MAIN FUNCTION =====================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main function"""
    parser = argparse.ArgumentParser(description="30-day NDVI/EVI forecast at one point")
    parser.add_argument("--config", default=CONFIG_FILE, help="JSON configuration file")
    parser.add_argument("--plot", default=None, help="Write an HTML chart to this path")
    args = parser.parse_args(argv)

    try:
        request = ConfigManager.validate_config(ConfigManager.load_config(args.config))
        result = VIForecaster().run(request)

        print(result.message)
        if not result.ok:
            return 1

        print(format_forecast_table(result.history, result.forecast))
        if args.plot:
            build_forecast_figure(result.history, result.forecast, request.vi_type).write_html(args.plot)
            print(f"✅ Chart saved: {args.plot}")
        return 0

    except KeyboardInterrupt:
        print("\n⏹️  Forecast interrupted by user")
        return 130
    except Exception as e:
        print(f"\n💥 Critical error: {e}")
        raise


if __name__ == "__main__":
    raise SystemExit(main())
