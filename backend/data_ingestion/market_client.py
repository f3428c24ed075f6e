"""
Market client capability consumed by the feature pipeline.

The pipeline only needs ordered candles for a symbol; any exchange client
exposing `fetch_candles` can be passed in. Callers that create a client
release it with `close()`.
"""

import logging
from datetime import datetime
from typing import List, Optional, Protocol

import pytz

from shared.config import Settings, settings as default_settings
from shared.models import Candle

logger = logging.getLogger(__name__)

END_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class MarketClient(Protocol):
    """Anything that can fetch historical candles."""

    def fetch_candles(
        self, symbol: str, interval: str, limit: int, end_time: int
    ) -> List[Candle]:
        """
        Fetch candles ending at `end_time`.

        Args:
            symbol: Instrument identifier (e.g., "ETHUSDT")
            interval: Candle interval (e.g., "1h")
            limit: Maximum number of candles
            end_time: End of range in epoch milliseconds

        Returns:
            Candles ordered oldest first
        """
        ...

    def close(self) -> None:
        """Release the underlying connection."""
        ...


def parse_end_time(value: str, timezone: str = "UTC") -> int:
    """
    Parse a "YYYY-MM-DD HH:MM:SS" string into epoch milliseconds.

    Args:
        value: Date-time string
        timezone: Timezone the string is expressed in

    Returns:
        Epoch milliseconds

    Raises:
        ValueError: If the string does not match the format
    """
    naive = datetime.strptime(value, END_TIME_FORMAT)
    localized = pytz.timezone(timezone).localize(naive)
    return int(localized.timestamp() * 1000)


def create_market_client(config: Optional[Settings] = None) -> MarketClient:
    """
    Build the market client selected by `market_provider`.

    Args:
        config: Settings to use (default: module settings)

    Returns:
        Binance futures or OANDA client
    """
    config = config or default_settings

    if config.market_provider == "oanda":
        from data_ingestion.oanda_client import OANDAClient

        return OANDAClient(
            api_key=config.oanda_api_key,
            account_id=config.oanda_account_id,
            environment=config.oanda_environment,
        )

    from data_ingestion.binance_client import BinanceFuturesClient

    return BinanceFuturesClient(base_url=config.binance_futures_url)
