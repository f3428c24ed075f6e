"""
Configuration management for the candle signal network.
Loads settings from environment variables and provides typed access.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MARKET_PROVIDERS = ("binance", "oanda")
DECODE_MODES = ("exact", "argmax")

# Numbers per candle in a flattened input vector
FEATURES_PER_CANDLE = 8
OUTPUT_SIZE = 5
# Leading one-hot position slots of an output vector
CATEGORICAL_OUTPUTS = 3


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: str = Field(default="development", description="Runtime environment")
    log_level: str = Field(default="INFO", description="Logging level")

    # Market data
    market_provider: str = Field(
        default="binance", description="Candle source (binance or oanda)"
    )
    binance_futures_url: str = Field(
        default="https://fapi.binance.com", description="Binance futures REST base URL"
    )
    oanda_api_key: Optional[str] = Field(default=None, description="OANDA API key")
    oanda_account_id: Optional[str] = Field(default=None, description="OANDA account ID")
    oanda_environment: str = Field(
        default="practice", description="OANDA environment (practice or live)"
    )
    reference_symbol: str = Field(
        default="BTCUSDT", description="Symbol the correlation feature is measured against"
    )
    market_timezone: str = Field(
        default="UTC", description="Timezone of end-time strings (yyyy-MM-dd HH:mm:ss)"
    )
    candle_limit: int = Field(default=500, description="Candles per learning sample")
    candle_interval: str = Field(default="1h", description="Default candle interval")

    # Storage
    dataset_path: str = Field(
        default="data/learning_data.json", description="Training examples file"
    )
    brain_path: str = Field(
        default="data/brain.pkl", description="Serialized network state file"
    )

    # Network
    network_hidden_layers: str = Field(
        default="64,32", description="Hidden layer sizes (comma-separated)"
    )
    learning_rate: float = Field(default=0.3, description="Training learning rate")
    training_iterations: int = Field(default=20000, description="Training iterations")
    training_error: float = Field(default=0.005, description="Target training error")
    training_log_interval: int = Field(
        default=100, description="Iterations between progress log lines"
    )
    training_cost: str = Field(default="cross_entropy", description="Cost function")
    decode_mode: str = Field(
        default="exact", description="Output decoding (exact or argmax)"
    )

    # Indicators
    sma_short_period: int = Field(default=50, description="Short moving average period")
    sma_long_period: int = Field(default=200, description="Long moving average period")
    rsi_period: int = Field(default=14, description="Momentum oscillator period")

    @field_validator("network_hidden_layers")
    @classmethod
    def parse_hidden_layers(cls, v: str) -> str:
        """Validate hidden layer sizes format."""
        sizes = [s.strip() for s in v.split(",") if s.strip()]
        if not sizes:
            raise ValueError("At least one hidden layer is required")
        for size in sizes:
            if not size.isdigit() or int(size) <= 0:
                raise ValueError(f"Invalid hidden layer size: {size}")
        return v

    @field_validator("market_provider")
    @classmethod
    def check_market_provider(cls, v: str) -> str:
        """Validate market provider name."""
        v = v.lower()
        if v not in MARKET_PROVIDERS:
            raise ValueError(f"Unknown market provider: {v}")
        return v

    @field_validator("decode_mode")
    @classmethod
    def check_decode_mode(cls, v: str) -> str:
        """Validate decode mode name."""
        v = v.lower()
        if v not in DECODE_MODES:
            raise ValueError(f"Unknown decode mode: {v}")
        return v

    def get_hidden_layers_list(self) -> List[int]:
        """Get hidden layer sizes as a list."""
        return [int(s.strip()) for s in self.network_hidden_layers.split(",") if s.strip()]

    @property
    def network_input_size(self) -> int:
        """Input vector size for a learning sample of `candle_limit` candles."""
        return FEATURES_PER_CANDLE * self.candle_limit

    @property
    def network_output_size(self) -> int:
        return OUTPUT_SIZE


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses LRU cache to ensure singleton pattern.
    """
    return Settings()


# Convenience instance for direct import
settings = get_settings()
