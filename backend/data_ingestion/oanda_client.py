"""
OANDA API client wrapper for candle ingestion.
Implements the market client capability on top of oandapyV20.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

import oandapyV20
import oandapyV20.endpoints.instruments as instruments
import pandas as pd
import pytz
from oandapyV20.exceptions import V20Error

from shared.config import settings
from shared.models import Candle

logger = logging.getLogger(__name__)


class OANDAClient:
    """
    OANDA API client for fetching historical candles.

    Supports both practice and live environments based on configuration.
    OANDA candles carry no quote volume, trade count or asset volumes; those
    fields are left at 0.
    """

    # Granularity to seconds mapping
    GRANULARITY_SECONDS = {
        "S5": 5,
        "S10": 10,
        "S15": 15,
        "S30": 30,
        "M1": 60,
        "M2": 120,
        "M4": 240,
        "M5": 300,
        "M10": 600,
        "M15": 900,
        "M30": 1800,
        "H1": 3600,
        "H2": 7200,
        "H3": 10800,
        "H4": 14400,
        "H6": 21600,
        "H8": 28800,
        "H12": 43200,
        "D": 86400,
        "W": 604800,
    }
    MAX_COUNT = 5000

    def __init__(
        self,
        api_key: Optional[str] = None,
        account_id: Optional[str] = None,
        environment: Optional[str] = None,
        client: Optional[oandapyV20.API] = None,
    ):
        """
        Initialize OANDA client with credentials (default from settings).

        Args:
            api_key: OANDA API key
            account_id: OANDA account ID
            environment: "practice" or "live"
            client: Pre-built oandapyV20.API instance
        """
        self.api_key = api_key or settings.oanda_api_key
        self.account_id = account_id or settings.oanda_account_id
        self.environment = environment or settings.oanda_environment

        self.client = client or oandapyV20.API(
            access_token=self.api_key, environment=self.environment
        )

        logger.info(f"Initialized OANDA client for {self.environment} environment")

    @staticmethod
    def _format_time(end_time: int) -> str:
        dt = datetime.fromtimestamp(end_time / 1000, tz=pytz.UTC)
        return dt.strftime("%Y-%m-%dT%H:%M:%SZ")

    def _parse_candle(self, candle: Dict, granularity: str) -> Candle:
        mid = candle.get("mid", {})
        open_time = int(pd.Timestamp(candle.get("time")).value // 1_000_000)
        duration_ms = self.GRANULARITY_SECONDS[granularity] * 1000

        return Candle(
            open_time=open_time,
            open=float(mid.get("o", 0)),
            high=float(mid.get("h", 0)),
            low=float(mid.get("l", 0)),
            close=float(mid.get("c", 0)),
            volume=float(candle.get("volume", 0)),
            close_time=open_time + duration_ms - 1,
        )

    def fetch_candles(
        self, symbol: str, interval: str, limit: int, end_time: int
    ) -> List[Candle]:
        """
        Fetch historical candlestick data ending at `end_time`.

        Args:
            symbol: Trading pair in OANDA format (e.g., "EUR_USD")
            interval: Granularity (M1, M5, M15, H1, H4, D, ...)
            limit: Number of candles to fetch (max 5000)
            end_time: End of range in epoch milliseconds

        Returns:
            Complete candles ordered oldest first
        """
        if interval not in self.GRANULARITY_SECONDS:
            raise ValueError(f"Unknown granularity: {interval}")

        try:
            params = {
                "granularity": interval,
                "count": min(limit, self.MAX_COUNT),
                "to": self._format_time(end_time),
            }

            endpoint = instruments.InstrumentsCandles(instrument=symbol, params=params)
            response = self.client.request(endpoint)

            result = []
            for candle in response.get("candles", []):
                if not candle.get("complete"):
                    continue  # Skip incomplete candles
                result.append(self._parse_candle(candle, interval))

            logger.info(f"Fetched {len(result)} candles for {symbol} ({interval})")

            return result

        except V20Error as e:
            logger.error(f"Failed to fetch candles for {symbol}: {e}")
            raise

    def close(self) -> None:
        self.client.close()
