#!/usr/bin/env python3
"""
Candle Signal Network - Entry Point

Records training examples, trains the network and runs predictions.

Usage:
    python -m strategy_engine.main add-market ETHUSDT --end-time "2024-01-15 10:00:00" \\
        --position LONG --take-profit 2700 --stop-loss 2450
    python -m strategy_engine.main train --iterations 20000
    python -m strategy_engine.main predict ETHUSDT --end-time "2024-01-16 10:00:00"
"""

import argparse
import logging
import sys
from contextlib import closing
from pathlib import Path
from typing import List, Optional

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from data_ingestion.market_client import create_market_client, parse_end_time
from shared.config import settings
from shared.models import LimitOptions, MarketOptions, PositionType
from strategy_engine.features import DecodeMode, FeatureEngineer, FeatureService
from strategy_engine.models import Dataset, ModelTrainer, NeuralNetwork, Predictor

logger = logging.getLogger(__name__)


def build_network() -> NeuralNetwork:
    return NeuralNetwork(
        input_size=settings.network_input_size,
        hidden_layers=settings.get_hidden_layers_list(),
        output_size=settings.network_output_size,
    )


def build_feature_service() -> FeatureService:
    return FeatureService(
        short_period=settings.sma_short_period,
        long_period=settings.sma_long_period,
        rsi_period=settings.rsi_period,
    )


def add_example(args: argparse.Namespace) -> int:
    """Record a market or limit training example."""
    fields = dict(
        symbol=args.symbol,
        interval=args.interval,
        limit=args.limit,
        end_time=args.end_time,
        position_type=PositionType(args.position),
        take_profit_price=args.take_profit,
        stop_loss_price=args.stop_loss,
    )

    dataset = Dataset(args.dataset, feature_service=build_feature_service())

    with closing(create_market_client(settings)) as client:
        if args.command == "add-limit":
            dataset.append_from_limit(
                LimitOptions(order_price=args.order_price, **fields), client, args.reference
            )
        else:
            dataset.append_from_market(MarketOptions(**fields), client, args.reference)

    logger.info(f"Dataset now holds {len(dataset)} examples")
    return 0


def train(args: argparse.Namespace) -> int:
    """Train the network on the dataset and save its state."""
    network = build_network()
    dataset = Dataset(args.dataset, feature_service=build_feature_service())

    trainer = ModelTrainer(
        network=network,
        dataset=dataset,
        brain_path=args.brain,
        error=settings.training_error,
        log_interval=settings.training_log_interval,
        cost=settings.training_cost,
    )
    # Continue from the saved state when there is one
    if trainer.model_store.load(network, args.brain):
        previous = trainer.model_store.load_metadata(args.brain)
        if previous:
            logger.info(
                f"Continuing from state saved at {previous.get('saved_at')} "
                f"({previous.get('samples')} examples, error={previous.get('error')})"
            )

    metrics = trainer.train(args.learning_rate, args.iterations)

    logger.info(
        f"Trained {metrics['iterations']} iterations on {metrics['samples']} examples, "
        f"final error={metrics['error']}"
    )
    return 0


def predict(args: argparse.Namespace) -> int:
    """Fetch candles for a symbol and print the predicted decision."""
    predictor = Predictor(
        network=build_network(),
        feature_engineer=FeatureEngineer(DecodeMode(settings.decode_mode)),
        brain_path=args.brain,
    )

    with closing(create_market_client(settings)) as client:
        learning_data = build_feature_service().build_learning_data(
            client,
            args.symbol,
            args.interval,
            args.limit,
            parse_end_time(args.end_time, settings.market_timezone),
            reference_symbol=args.reference,
        )

    decision = predictor.predict(learning_data)
    print(decision.model_dump_json(by_alias=True, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Candle feature pipeline and signal network",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--dataset", default=settings.dataset_path, help="Dataset JSON file")
    parser.add_argument("--brain", default=settings.brain_path, help="Network state file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_market_arguments(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("symbol", help="Symbol (e.g., ETHUSDT)")
        sub.add_argument("--interval", default=settings.candle_interval)
        sub.add_argument("--limit", type=int, default=settings.candle_limit)
        sub.add_argument(
            "--end-time", required=True, help='End of candle range, "YYYY-MM-DD HH:MM:SS"'
        )
        sub.add_argument("--reference", default=settings.reference_symbol)

    for name in ("add-market", "add-limit"):
        sub = subparsers.add_parser(name, help=f"Record a {name[4:]} order training example")
        add_market_arguments(sub)
        sub.add_argument(
            "--position", required=True, choices=[p.value for p in PositionType]
        )
        sub.add_argument("--take-profit", type=float, required=True)
        sub.add_argument("--stop-loss", type=float, required=True)
        if name == "add-limit":
            sub.add_argument("--order-price", type=float, required=True)
        sub.set_defaults(handler=add_example)

    sub = subparsers.add_parser("train", help="Train the network on the dataset")
    sub.add_argument("--learning-rate", type=float, default=settings.learning_rate)
    sub.add_argument("--iterations", type=int, default=settings.training_iterations)
    sub.set_defaults(handler=train)

    sub = subparsers.add_parser("predict", help="Predict a decision for live candles")
    add_market_arguments(sub)
    sub.set_defaults(handler=predict)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the command line interface."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    args = build_parser().parse_args(argv)
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
