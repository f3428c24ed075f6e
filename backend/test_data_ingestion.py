#!/usr/bin/env python3
"""
Test market data ingestion.

Tests:
1. End-time parsing
2. Binance futures kline client
3. OANDA candle client
4. Feature service fetching target and reference candles
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest
from oandapyV20.exceptions import V20Error

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from data_ingestion.binance_client import BinanceFuturesClient
from data_ingestion.market_client import create_market_client, parse_end_time
from data_ingestion.oanda_client import OANDAClient
from shared.config import Settings
from shared.models import Candle
from strategy_engine.features import FeatureService

END_MS = 1_705_312_800_000  # 2024-01-15 10:00:00 UTC

KLINE = [
    1705309200000,
    "2500.10",
    "2510.00",
    "2490.50",
    "2505.20",
    "1234.5",
    1705312799999,
    "3090000.5",
    4321,
    "600.2",
    "1500000.1",
    "0",
]


class TestParseEndTime:
    def test_utc(self):
        assert parse_end_time("2024-01-15 10:00:00") == END_MS

    def test_other_timezone(self):
        assert parse_end_time("2024-01-15 05:00:00", "America/New_York") == END_MS

    def test_malformed(self):
        with pytest.raises(ValueError):
            parse_end_time("2024-01-15T10:00:00")


class TestBinanceFuturesClient:
    def make_client(self, handler):
        return BinanceFuturesClient(
            base_url="https://fapi.test", transport=httpx.MockTransport(handler)
        )

    def test_fetch_candles(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=[KLINE])

        candles = self.make_client(handler).fetch_candles("ETHUSDT", "1h", 500, END_MS)

        assert requests[0].url.path == "/fapi/v1/klines"
        assert dict(requests[0].url.params) == {
            "symbol": "ETHUSDT",
            "interval": "1h",
            "limit": "500",
            "endTime": str(END_MS),
        }
        assert candles == [
            Candle(
                open_time=1705309200000,
                open=2500.10,
                high=2510.00,
                low=2490.50,
                close=2505.20,
                volume=1234.5,
                close_time=1705312799999,
                quote_volume=3090000.5,
                trades=4321,
                base_asset_volume=600.2,
                quote_asset_volume=1500000.1,
            )
        ]

    def test_limit_is_capped(self):
        seen = {}

        def handler(request):
            seen["limit"] = request.url.params["limit"]
            return httpx.Response(200, json=[])

        assert self.make_client(handler).fetch_candles("ETHUSDT", "1h", 5000, END_MS) == []
        assert seen["limit"] == "1500"

    def test_http_error_propagates(self):
        def handler(request):
            return httpx.Response(500, json={"msg": "boom"})

        with pytest.raises(httpx.HTTPStatusError):
            self.make_client(handler).fetch_candles("ETHUSDT", "1h", 10, END_MS)


class TestOANDAClient:
    RESPONSE = {
        "candles": [
            {
                "complete": True,
                "time": "2024-01-15T09:00:00.000000000Z",
                "volume": 120,
                "mid": {"o": "1.0950", "h": "1.0960", "l": "1.0940", "c": "1.0955"},
            },
            {
                "complete": False,
                "time": "2024-01-15T10:00:00.000000000Z",
                "volume": 3,
                "mid": {"o": "1.0955", "h": "1.0956", "l": "1.0954", "c": "1.0955"},
            },
        ]
    }

    def test_fetch_candles(self):
        api = MagicMock()
        api.request.return_value = self.RESPONSE
        client = OANDAClient(api_key="key", account_id="acct", client=api)

        with patch("data_ingestion.oanda_client.instruments.InstrumentsCandles") as endpoint:
            candles = client.fetch_candles("EUR_USD", "H1", 100, END_MS)

        endpoint.assert_called_once_with(
            instrument="EUR_USD",
            params={"granularity": "H1", "count": 100, "to": "2024-01-15T10:00:00Z"},
        )
        api.request.assert_called_once_with(endpoint.return_value)
        assert len(candles) == 1
        candle = candles[0]
        assert candle.open_time == 1705309200000
        assert candle.close_time == 1705312799999
        assert candle.close == pytest.approx(1.0955)
        assert candle.volume == 120.0
        assert candle.trades == 0
        assert candle.quote_volume == 0.0

    def test_unknown_granularity(self):
        client = OANDAClient(api_key="key", account_id="acct", client=MagicMock())

        with pytest.raises(ValueError):
            client.fetch_candles("EUR_USD", "1h", 100, END_MS)

    def test_api_error_propagates(self):
        api = MagicMock()
        api.request.side_effect = V20Error(400, "Invalid value specified for 'to'")
        client = OANDAClient(api_key="key", account_id="acct", client=api)

        with pytest.raises(V20Error):
            client.fetch_candles("EUR_USD", "M5", 10, END_MS)

    def test_close_releases_session(self):
        api = MagicMock()

        OANDAClient(api_key="key", account_id="acct", client=api).close()

        api.close.assert_called_once()


class TestCreateMarketClient:
    def test_binance(self):
        client = create_market_client(Settings(market_provider="binance"))
        assert isinstance(client, BinanceFuturesClient)
        client.close()

    def test_oanda(self):
        client = create_market_client(
            Settings(market_provider="oanda", oanda_api_key="key", oanda_account_id="acct")
        )
        assert isinstance(client, OANDAClient)
        assert client.account_id == "acct"
        client.close()


class TestFeatureService:
    def test_build_learning_data(self):
        client = MagicMock()
        target = [
            Candle(open_time=i, open=10.0, high=11.0, low=9.0, close=10.0 + i, volume=1.0, close_time=i + 1)
            for i in range(6)
        ]
        reference = [c.model_copy(update={"close": 100.0 - c.close}) for c in target[:4]]
        client.fetch_candles.side_effect = [target, reference]

        data = FeatureService(short_period=3, long_period=5, rsi_period=2).build_learning_data(
            client, "ETHUSDT", "1h", 6, END_MS, reference_symbol="BTCUSDT"
        )

        assert [c.args for c in client.fetch_candles.call_args_list] == [
            ("ETHUSDT", "1h", 6, END_MS),
            ("BTCUSDT", "1h", 6, END_MS),
        ]
        assert data.symbol == "ETHUSDT"
        assert data.interval == "1h"
        assert len(data.candles) == 6
        assert data.candles[2].sma_short == pytest.approx(11.0)
        assert data.candles[3].correlation == pytest.approx(-1.0)
        assert data.candles[4].correlation == 0
        assert data.candles[5].correlation == 0

    def test_default_reference_symbol(self):
        client = MagicMock()
        client.fetch_candles.return_value = []

        data = FeatureService().build_learning_data(client, "SOLUSDT", "4h", 10, END_MS)

        assert client.fetch_candles.call_args_list[1].args[0] == "BTCUSDT"
        assert data.candles == []


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
