"""
Training example storage.

The dataset is a JSON array of {input, output} records kept in insertion
order. Appends rewrite the whole file through a temporary file so a failed
write never leaves a partial dataset behind.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterator, List, Optional

from data_ingestion.market_client import MarketClient, parse_end_time
from shared.config import settings
from shared.models import LearningData, LimitOptions, MarketOptions, TrainingExample
from strategy_engine.features import FeatureService

logger = logging.getLogger(__name__)


class Dataset:
    """
    Ordered, append-only collection of training examples.

    Examples are never reordered or deduplicated.
    """

    def __init__(
        self,
        file_path: str,
        feature_service: Optional[FeatureService] = None,
        timezone: Optional[str] = None,
    ):
        """
        Initialize and load the dataset file.

        Args:
            file_path: Dataset JSON file (created empty if missing)
            feature_service: Service used to build learning data from market
                candles (default: FeatureService with settings periods)
            timezone: Timezone of option end times (default from settings)
        """
        self.file_path = Path(file_path)
        self.feature_service = feature_service or FeatureService(
            short_period=settings.sma_short_period,
            long_period=settings.sma_long_period,
            rsi_period=settings.rsi_period,
        )
        self.timezone = timezone or settings.market_timezone
        self.examples: List[TrainingExample] = self.load()

    def __len__(self) -> int:
        return len(self.examples)

    def __iter__(self) -> Iterator[TrainingExample]:
        return iter(self.examples)

    def __getitem__(self, index: int) -> TrainingExample:
        return self.examples[index]

    @staticmethod
    def _read(file_path: Path) -> List[TrainingExample]:
        with open(file_path, "r", encoding="utf-8") as f:
            records = json.load(f)

        if not isinstance(records, list):
            raise ValueError(f"Dataset {file_path} must hold a JSON array")

        return [TrainingExample.model_validate(record) for record in records]

    @staticmethod
    def _write(file_path: Path, examples: List[TrainingExample]) -> None:
        # Python mode keeps NaN/inf floats; json writes them as NaN/Infinity
        records = [example.model_dump(by_alias=True) for example in examples]

        file_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2)
            os.replace(tmp_path, file_path)
        except BaseException:
            os.unlink(tmp_path)
            raise

    def load(self) -> List[TrainingExample]:
        """
        Load examples from the dataset file.

        Creates the file with an empty array if it does not exist.

        Returns:
            Examples in stored order

        Raises:
            json.JSONDecodeError, ValueError, pydantic.ValidationError:
                If the file content is not a valid dataset
        """
        if not self.file_path.exists():
            self._write(self.file_path, [])
            logger.info(f"File not found. Created new file at {self.file_path}")
            return []

        examples = self._read(self.file_path)
        logger.info(f"Loaded {len(examples)} training examples from {self.file_path}")

        return examples

    def append(self, example: TrainingExample, file_path: Optional[str] = None) -> None:
        """
        Append an example to a dataset file.

        Re-reads the destination, adds the example at the end and writes the
        full sequence back.

        Args:
            example: Training example to add
            file_path: Destination file (default: this dataset's file)
        """
        destination = Path(file_path) if file_path else self.file_path

        examples = self._read(destination) if destination.exists() else []
        examples.append(example)
        self._write(destination, examples)

        if destination.resolve() == self.file_path.resolve():
            self.examples = examples

        logger.info(
            f"Appended {example.decision.position_type.value} example for "
            f"{example.learning_data.symbol} to {destination} ({len(examples)} total)"
        )

    def _build_example(
        self,
        options: MarketOptions,
        client: MarketClient,
        reference_symbol: Optional[str],
    ) -> TrainingExample:
        end_time = parse_end_time(options.end_time, self.timezone)

        learning_data: LearningData = self.feature_service.build_learning_data(
            client,
            options.symbol,
            options.interval,
            options.limit,
            end_time,
            reference_symbol=reference_symbol or settings.reference_symbol,
        )

        return TrainingExample(learning_data=learning_data, decision=options.to_decision())

    def append_from_market(
        self,
        options: MarketOptions,
        client: MarketClient,
        reference_symbol: Optional[str] = None,
        file_path: Optional[str] = None,
    ) -> TrainingExample:
        """
        Record a market-order example from live candles.

        Args:
            options: Symbol, interval, limit, end time and decision
            client: Market client used for both symbols
            reference_symbol: Correlation reference (default from settings)
            file_path: Destination file (default: this dataset's file)

        Returns:
            The appended example
        """
        example = self._build_example(options, client, reference_symbol)
        self.append(example, file_path)
        return example

    def append_from_limit(
        self,
        options: LimitOptions,
        client: MarketClient,
        reference_symbol: Optional[str] = None,
        file_path: Optional[str] = None,
    ) -> TrainingExample:
        """
        Record a limit-order example from live candles.

        The order price is not part of the stored example.

        Args:
            options: Market options plus order price
            client: Market client used for both symbols
            reference_symbol: Correlation reference (default from settings)
            file_path: Destination file (default: this dataset's file)

        Returns:
            The appended example
        """
        logger.info(f"Recording limit example for {options.symbol} at {options.order_price}")

        example = self._build_example(options, client, reference_symbol)
        self.append(example, file_path)
        return example
