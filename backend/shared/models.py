"""
Data model shared by the feature pipeline, the dataset and the network.

Attribute names are snake_case; aliases reproduce the camelCase layout of the
persisted learning data file.
"""

import re
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

END_TIME_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$")


class PositionType(str, Enum):
    """Position state a decision opens."""

    LONG = "LONG"
    SHORT = "SHORT"
    NO = "NO"


class Candle(BaseModel):
    """Raw OHLCV candle as returned by a market client."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    open_time: int = Field(alias="openTime")
    open: float
    high: float
    low: float
    close: float
    volume: float
    close_time: int = Field(alias="closeTime")
    quote_volume: float = Field(default=0.0, alias="quoteVolume")
    trades: int = 0
    base_asset_volume: float = Field(default=0.0, alias="baseAssetVolume")
    quote_asset_volume: float = Field(default=0.0, alias="quoteAssetVolume")


class EnrichedCandle(BaseModel):
    """Candle plus the indicator values computed at its index."""

    model_config = ConfigDict(populate_by_name=True)

    candle: Candle
    sma_short: float
    sma_long: float
    rsi: float
    correlation: float = Field(alias="btc_correlation")


class LearningData(BaseModel):
    """Chronological (oldest first) enriched candles for one symbol/interval."""

    symbol: str
    interval: str
    candles: List[EnrichedCandle]


class Decision(BaseModel):
    """Trading decision: position plus take-profit and stop-loss levels."""

    model_config = ConfigDict(populate_by_name=True)

    position_type: PositionType = Field(alias="positionType")
    take_profit_price: float = Field(alias="takeProfitPrice")
    stop_loss_price: float = Field(alias="stopLossPrice")


class TrainingExample(BaseModel):
    """Supervised pair of learning data and the decision taken on it."""

    model_config = ConfigDict(populate_by_name=True)

    learning_data: LearningData = Field(alias="input")
    decision: Decision = Field(alias="output")


class MarketOptions(BaseModel):
    """Parameters for recording a market-order training example."""

    symbol: str
    interval: str
    limit: int = Field(gt=0)
    end_time: str
    position_type: PositionType
    take_profit_price: float
    stop_loss_price: float

    @field_validator("end_time")
    @classmethod
    def check_end_time(cls, v: str) -> str:
        """End time must read yyyy-MM-dd HH:mm:ss."""
        if not END_TIME_PATTERN.match(v):
            raise ValueError(f"End time must be 'YYYY-MM-DD HH:MM:SS', got {v!r}")
        return v

    def to_decision(self) -> Decision:
        return Decision(
            position_type=self.position_type,
            take_profit_price=self.take_profit_price,
            stop_loss_price=self.stop_loss_price,
        )


class LimitOptions(MarketOptions):
    """Market options plus the limit order price."""

    order_price: float
