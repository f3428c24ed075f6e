"""Binance USD-M futures kline client."""

import logging
from typing import List, Optional

import httpx

from shared.models import Candle

logger = logging.getLogger(__name__)


class BinanceFuturesClient:
    """Retrieve futures candles from the Binance REST API."""

    KLINES_PATH = "/fapi/v1/klines"
    MAX_LIMIT = 1500

    def __init__(
        self,
        base_url: str = "https://fapi.binance.com",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def fetch_candles(
        self, symbol: str, interval: str, limit: int, end_time: int
    ) -> List[Candle]:
        """
        Fetch klines ending at `end_time`.

        Args:
            symbol: Futures symbol (e.g., "ETHUSDT")
            interval: Kline interval (e.g., "1h")
            limit: Number of klines (capped at 1500)
            end_time: End of range in epoch milliseconds

        Returns:
            Candles ordered oldest first
        """
        params = {
            "symbol": symbol,
            "interval": interval,
            "limit": min(limit, self.MAX_LIMIT),
            "endTime": end_time,
        }

        try:
            response = self._client.get(self.KLINES_PATH, params=params)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch candles for {symbol}: {e}")
            raise

        candles = [self._parse_kline(row) for row in response.json()]

        logger.info(f"Fetched {len(candles)} candles for {symbol} ({interval})")

        return candles

    @staticmethod
    def _parse_kline(row: list) -> Candle:
        return Candle(
            open_time=int(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=float(row[5]),
            close_time=int(row[6]),
            quote_volume=float(row[7]),
            trades=int(row[8]),
            base_asset_volume=float(row[9]),
            quote_asset_volume=float(row[10]),
        )

    def close(self) -> None:
        self._client.close()
