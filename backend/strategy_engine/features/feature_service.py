"""
Feature service for fetching candle data and calculating features.

Fetches candles for a symbol and its reference symbol through a market
client and turns them into enriched learning data.
"""

import logging
from typing import List, Optional, Tuple

from data_ingestion.market_client import MarketClient
from shared.models import Candle, LearningData

from .indicators import IndicatorCalculator

logger = logging.getLogger(__name__)


class FeatureService:
    """
    Service for fetching candle data and calculating features.

    The market client is passed into each call; the service holds only the
    indicator periods.
    """

    def __init__(
        self,
        short_period: int = IndicatorCalculator.SMA_SHORT_PERIOD,
        long_period: int = IndicatorCalculator.SMA_LONG_PERIOD,
        rsi_period: int = IndicatorCalculator.RSI_PERIOD,
    ):
        """
        Initialize with indicator periods.

        Args:
            short_period: Short SMA period (default 50)
            long_period: Long SMA period (default 200)
            rsi_period: RSI period (default 14)
        """
        self.short_period = short_period
        self.long_period = long_period
        self.rsi_period = rsi_period
        self.indicator_calculator = IndicatorCalculator()

    def get_candles(
        self,
        client: MarketClient,
        symbol: str,
        reference_symbol: str,
        interval: str,
        limit: int,
        end_time: int,
    ) -> Tuple[List[Candle], List[Candle]]:
        """
        Fetch candles for the symbol and the reference symbol.

        Both requests share interval, limit and end time. They are issued one
        after the other and returned together.

        Args:
            client: Market client
            symbol: Traded symbol
            reference_symbol: Symbol used for the correlation feature
            interval: Candle interval
            limit: Number of candles
            end_time: End of range in epoch milliseconds

        Returns:
            Tuple of (candles, reference_candles)
        """
        candles = client.fetch_candles(symbol, interval, limit, end_time)
        reference_candles = client.fetch_candles(reference_symbol, interval, limit, end_time)

        logger.info(
            f"Fetched {len(candles)} {symbol} and {len(reference_candles)} "
            f"{reference_symbol} candles ({interval}, end={end_time})"
        )

        return candles, reference_candles

    def enrich(
        self,
        candles: List[Candle],
        reference_candles: List[Candle],
        symbol: str = "",
        interval: str = "",
    ) -> LearningData:
        """
        Calculate indicators and wrap them as learning data.

        Args:
            candles: Candles of the traded symbol, oldest first
            reference_candles: Candles of the reference symbol, oldest first
            symbol: Symbol identifier stored with the data
            interval: Interval identifier stored with the data

        Returns:
            LearningData with one enriched candle per input candle
        """
        if len(candles) < self.long_period:
            logger.warning(
                f"Only {len(candles)} candles for {symbol or 'symbol'}; "
                f"long SMA needs {self.long_period}"
            )

        if len(reference_candles) < len(candles):
            logger.warning(
                f"Reference series has {len(reference_candles)} candles for "
                f"{len(candles)} target candles; correlation is 0 past its end"
            )

        enriched = self.indicator_calculator.enrich(
            candles,
            reference_candles,
            short_period=self.short_period,
            long_period=self.long_period,
            rsi_period=self.rsi_period,
        )

        return LearningData(symbol=symbol, interval=interval, candles=enriched)

    def build_learning_data(
        self,
        client: MarketClient,
        symbol: str,
        interval: str,
        limit: int,
        end_time: int,
        reference_symbol: Optional[str] = None,
    ) -> LearningData:
        """
        Fetch candles and build enriched learning data.

        Args:
            client: Market client
            symbol: Traded symbol (e.g., "ETHUSDT")
            interval: Candle interval (e.g., "1h")
            limit: Number of candles
            end_time: End of range in epoch milliseconds
            reference_symbol: Correlation reference (default "BTCUSDT")

        Returns:
            LearningData for the symbol

        Example:
            >>> service = FeatureService()
            >>> data = service.build_learning_data(
            ...     client, "ETHUSDT", "1h", 500, 1705314600000
            ... )
            >>> len(data.candles)
            500
        """
        reference_symbol = reference_symbol or "BTCUSDT"

        candles, reference_candles = self.get_candles(
            client, symbol, reference_symbol, interval, limit, end_time
        )

        return self.enrich(candles, reference_candles, symbol=symbol, interval=interval)
