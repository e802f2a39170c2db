"""
Configuration for the vegetation-index forecasting engine
=========================================================

Model and data constants, the per-request context and the JSON
configuration loader.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

# ===================== CONSTANTS =====================

@dataclass
class ModelConfig:
    """Model configuration"""
    HIDDEN_UNITS: Tuple[int, int] = (32, 16)
    BATCH_SIZE: int = 32
    EPOCHS: int = 120
    LEARNING_RATE: float = 0.01
    EPOCHS_RANGE: Tuple[int, int] = (20, 1000)
    LEARNING_RATE_RANGE: Tuple[float, float] = (0.001, 0.1)
    PIVOT_TOLERANCE: float = 1e-10
    STD_EPSILON: float = 1e-12
    RIDGE: float = 0.0


@dataclass
class DataConfig:
    """Data configuration"""
    SCALE_FACTOR: float = 0.0001
    FILL_THRESHOLD: float = -9000
    COMPOSITE_PERIOD_DAYS: int = 16
    YEARS_RANGE: Tuple[int, int] = (1, 8)
    WEATHER_HALF_WINDOW: int = 8
    WEATHER_SENTINEL: float = -999.0
    WEATHER_VALID_ABOVE: float = -900
    VALUE_RANGE: Tuple[float, float] = (-0.1, 1.0)
    HORIZON_DAYS: int = 30
    WEATHER_PROXY_WINDOW: int = 30
    DEFAULT_TEMPERATURE: float = 10.0
    DEFAULT_PRECIPITATION: float = 10.0
    MIN_TRAINING_ROWS: int = 24
    MAX_WORKERS: int = 4
    HTTP_TIMEOUT: float = 60.0
    CACHE_EXPIRE_AFTER: int = 3600
    HTTP_RETRIES: int = 0


VI_TYPES = ("ndvi", "evi")
BACKENDS = ("auto", "linear", "network")
WEATHER_SOURCES = ("power", "open-meteo")

DEFAULT_PRODUCT = "MOD13Q1"
DEFAULT_YEARS = 3

CONFIG_FILE = "configs/config_forecast.json"
CACHE_FILE = ".cache"


def clamp(value, low, high):
    """Clamps a value into [low, high]"""
    return max(low, min(high, value))


# ===================== REQUEST CONTEXT =====================

@dataclass(frozen=True)
class ForecastRequest:
    """Everything one forecast run needs, read once at the start of the run"""
    latitude: float
    longitude: float
    product: str = DEFAULT_PRODUCT
    vi_type: str = "ndvi"
    years: int = DEFAULT_YEARS
    epochs: int = ModelConfig.EPOCHS
    learning_rate: float = ModelConfig.LEARNING_RATE
    backend: str = "auto"
    weather_source: str = "power"
    seed: Optional[int] = None

    @classmethod
    def create(cls, latitude: float, longitude: float, **params: Any) -> "ForecastRequest":
        """Builds a request with caller parameters validated and clamped"""
        vi_type = str(params.get("vi_type", "ndvi")).lower()
        if vi_type not in VI_TYPES:
            raise ValueError(f"vi_type must be one of {VI_TYPES}, got {vi_type!r}")

        backend = str(params.get("backend", "auto")).lower()
        if backend not in BACKENDS:
            raise ValueError(f"backend must be one of {BACKENDS}, got {backend!r}")

        weather_source = str(params.get("weather_source", "power")).lower()
        if weather_source not in WEATHER_SOURCES:
            raise ValueError(f"weather_source must be one of {WEATHER_SOURCES}, got {weather_source!r}")

        if not -90 <= float(latitude) <= 90 or not -180 <= float(longitude) <= 180:
            raise ValueError(f"Invalid coordinates: {latitude}, {longitude}")

        seed = params.get("seed")
        return cls(
            latitude=float(latitude),
            longitude=float(longitude),
            product=str(params.get("product") or DEFAULT_PRODUCT),
            vi_type=vi_type,
            years=clamp(int(params.get("years", DEFAULT_YEARS)), *DataConfig.YEARS_RANGE),
            epochs=clamp(int(params.get("epochs", ModelConfig.EPOCHS)), *ModelConfig.EPOCHS_RANGE),
            learning_rate=clamp(
                float(params.get("learning_rate", ModelConfig.LEARNING_RATE)),
                *ModelConfig.LEARNING_RATE_RANGE
            ),
            backend=backend,
            weather_source=weather_source,
            seed=None if seed is None else int(seed),
        )


# ===================== CONFIG MANAGER =====================

class ConfigManager:
    """Configuration management"""

    @staticmethod
    def load_config(config_path: str = CONFIG_FILE) -> Dict[str, Any]:
        """Loads configuration from JSON file"""
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config = json.load(f)
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file {config_path} not found")
        except json.JSONDecodeError:
            raise ValueError(f"Invalid JSON in file {config_path}")

        print(f"✅ Configuration loaded from {config_path}")
        return config

    @staticmethod
    def validate_config(config: Dict[str, Any]) -> ForecastRequest:
        """Validates configuration and turns it into a clamped request"""
        required_keys = ['latitude', 'longitude']
        missing_keys = [key for key in required_keys if key not in config]

        if missing_keys:
            raise ValueError(f"Missing required parameters: {missing_keys}")

        params = {k: v for k, v in config.items() if k not in required_keys}
        request = ForecastRequest.create(config['latitude'], config['longitude'], **params)

        print(f"📍 Location: {request.latitude:.4f}, {request.longitude:.4f}")
        print(f"🔧 Parameters: product={request.product}, vi={request.vi_type}, "
              f"years={request.years}, epochs={request.epochs}, lr={request.learning_rate}")
        print("✅ Configuration is valid")
        return request
