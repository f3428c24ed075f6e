#!/usr/bin/env python3
"""
Test configuration and command line wiring.

Tests:
1. Settings defaults and validators
2. Command line argument parsing
3. Recording, training and predicting through the CLI with fakes
"""

import json
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
from pydantic import ValidationError

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from shared.config import Settings
from shared.models import (
    Candle,
    Decision,
    EnrichedCandle,
    LearningData,
    PositionType,
    TrainingExample,
)
from strategy_engine import main as cli
from strategy_engine.models import Dataset, ModelStore, TrainingProgress

HOUR_MS = 3_600_000


def make_candles(count, base):
    return [
        Candle(
            open_time=i * HOUR_MS,
            open=base + i,
            high=base + i + 1,
            low=base + i - 1,
            close=base + i + 0.5,
            volume=1.0,
            close_time=(i + 1) * HOUR_MS - 1,
        )
        for i in range(count)
    ]


def make_training_example(count=4):
    candles = [
        EnrichedCandle(candle=c, sma_short=0.0, sma_long=0.0, rsi=0.0, correlation=0.0)
        for c in make_candles(count, 100.0)
    ]
    return TrainingExample(
        learning_data=LearningData(symbol="ETHUSDT", interval="1h", candles=candles),
        decision=Decision(
            position_type=PositionType.LONG, take_profit_price=110.0, stop_loss_price=95.0
        ),
    )


class TestSettings:
    def test_defaults(self):
        config = Settings()

        assert config.reference_symbol == "BTCUSDT"
        assert config.training_error == 0.005
        assert config.training_cost == "cross_entropy"
        assert config.decode_mode == "exact"
        assert (config.sma_short_period, config.sma_long_period, config.rsi_period) == (50, 200, 14)

    def test_network_sizes(self):
        config = Settings(candle_limit=30, network_hidden_layers="16, 8")

        assert config.network_input_size == 240
        assert config.network_output_size == 5
        assert config.get_hidden_layers_list() == [16, 8]

    @pytest.mark.parametrize("layers", ["", "16,x", "16,0"])
    def test_invalid_hidden_layers(self, layers):
        with pytest.raises(ValidationError):
            Settings(network_hidden_layers=layers)

    def test_invalid_provider(self):
        with pytest.raises(ValidationError):
            Settings(market_provider="kraken")

    def test_decode_mode_normalized(self):
        assert Settings(decode_mode="ARGMAX").decode_mode == "argmax"
        with pytest.raises(ValidationError):
            Settings(decode_mode="softmax")

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("REFERENCE_SYMBOL", "ETHUSDT")
        monkeypatch.setenv("CANDLE_LIMIT", "120")

        config = Settings()

        assert config.reference_symbol == "ETHUSDT"
        assert config.candle_limit == 120


class TestCommandLine:
    def test_parse_add_limit(self):
        args = cli.build_parser().parse_args(
            [
                "--dataset", "d.json",
                "add-limit", "ETHUSDT",
                "--end-time", "2024-01-15 10:00:00",
                "--position", "SHORT",
                "--take-profit", "2400",
                "--stop-loss", "2600",
                "--order-price", "2550",
            ]
        )

        assert args.dataset == "d.json"
        assert args.command == "add-limit"
        assert args.order_price == 2550.0
        assert args.handler is cli.add_example

    def test_rejects_unknown_position(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(
                [
                    "add-market", "ETHUSDT",
                    "--end-time", "2024-01-15 10:00:00",
                    "--position", "FLAT",
                    "--take-profit", "1",
                    "--stop-loss", "1",
                ]
            )

    def test_add_market_records_example(self, tmp_path):
        path = tmp_path / "data.json"
        client = MagicMock()
        client.fetch_candles.side_effect = [make_candles(6, 2500.0), make_candles(6, 42000.0)]

        with patch.object(cli, "create_market_client", return_value=client):
            code = cli.main(
                [
                    "--dataset", str(path),
                    "add-market", "ETHUSDT",
                    "--limit", "6",
                    "--end-time", "2024-01-15 10:00:00",
                    "--position", "LONG",
                    "--take-profit", "2700",
                    "--stop-loss", "2450",
                ]
            )

        records = json.loads(path.read_text())
        assert code == 0
        assert len(records) == 1
        assert len(records[0]["input"]["candles"]) == 6
        assert records[0]["output"]["positionType"] == "LONG"
        client.close.assert_called_once()

    def test_predict_prints_decision(self, tmp_path, capsys):
        client = MagicMock()
        client.fetch_candles.side_effect = [make_candles(4, 2500.0), make_candles(4, 42000.0)]
        network = MagicMock()
        network.activate.return_value = np.array([1.0, 0.0, 0.0, 2700.0, 2450.0])

        with patch.object(cli, "create_market_client", return_value=client), patch.object(
            cli, "build_network", return_value=network
        ):
            code = cli.main(
                [
                    "--brain", str(tmp_path / "missing.pkl"),
                    "predict", "ETHUSDT",
                    "--limit", "4",
                    "--end-time", "2024-01-15 10:00:00",
                ]
            )

        decision = json.loads(capsys.readouterr().out)
        assert code == 0
        assert decision == {
            "positionType": "LONG",
            "takeProfitPrice": 2700.0,
            "stopLossPrice": 2450.0,
        }
        assert len(network.activate.call_args.args[0]) == 32
        client.close.assert_called_once()

    def test_client_closed_when_fetch_fails(self, tmp_path):
        client = MagicMock()
        client.fetch_candles.side_effect = RuntimeError("exchange unavailable")

        with patch.object(cli, "create_market_client", return_value=client):
            with pytest.raises(RuntimeError):
                cli.main(
                    [
                        "--dataset", str(tmp_path / "data.json"),
                        "add-market", "ETHUSDT",
                        "--end-time", "2024-01-15 10:00:00",
                        "--position", "NO",
                        "--take-profit", "1",
                        "--stop-loss", "1",
                    ]
                )

        client.close.assert_called_once()

    def test_train_continues_from_saved_state(self, tmp_path, caplog):
        dataset_path = tmp_path / "data.json"
        brain = tmp_path / "brain.pkl"
        Dataset(str(dataset_path)).append(make_training_example())
        previous = MagicMock()
        previous.serialize.return_value = b"old-state"
        ModelStore().save(previous, str(brain), metadata={"samples": 7, "error": 0.25})

        network = MagicMock()
        network.serialize.return_value = b"new-state"
        network.train.return_value = iter([TrainingProgress(iterations=1, error=0.1)])
        caplog.set_level("INFO")

        with patch.object(cli, "build_network", return_value=network):
            code = cli.main(
                [
                    "--dataset", str(dataset_path),
                    "--brain", str(brain),
                    "train",
                    "--iterations", "1",
                ]
            )

        assert code == 0
        network.deserialize.assert_called_once_with(b"old-state")
        assert "Continuing from state saved at" in caplog.text
        assert "7 examples, error=0.25" in caplog.text
        assert brain.read_bytes() == b"new-state"
        assert ModelStore().load_metadata(str(brain))["error"] == 0.1


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
