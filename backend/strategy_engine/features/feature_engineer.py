"""
Feature vector encoding for the signal network.

Flattens enriched candle sequences into input vectors and decisions into
output vectors, and decodes network output back into a decision. Vector
positions are the only place meaning survives, so the layout lives here.
"""

import logging
from enum import Enum
from typing import List, Sequence

import numpy as np

from shared.models import Decision, LearningData, PositionType

logger = logging.getLogger(__name__)


class DecodeMode(str, Enum):
    """How the one-hot position slots of an output vector are read."""

    EXACT = "exact"  # slot must equal 1
    ARGMAX = "argmax"


class FeatureEngineer:
    """
    Encode learning data and decisions as flat numeric vectors.

    Input layout, repeated per candle (oldest first):
        open, high, low, close, sma_short, sma_long, rsi, correlation

    Output layout:
        LONG, SHORT, NO (one-hot), take_profit_price, stop_loss_price
    """

    POSITION_SLOTS = [PositionType.LONG, PositionType.SHORT, PositionType.NO]
    OUTPUT_SIZE = 5

    def __init__(self, decode_mode: DecodeMode = DecodeMode.EXACT):
        """
        Initialize with a decode mode.

        Args:
            decode_mode: EXACT requires a slot to equal 1 (default);
                ARGMAX picks the largest of the three position slots
        """
        self.decode_mode = DecodeMode(decode_mode)

    @staticmethod
    def flatten_input(learning_data: LearningData) -> np.ndarray:
        """
        Flatten learning data into an input vector.

        Args:
            learning_data: Enriched candles, oldest first

        Returns:
            Vector of length 8 * len(learning_data.candles)
        """
        values: List[float] = []
        for enriched in learning_data.candles:
            candle = enriched.candle
            values.extend(
                [
                    candle.open,
                    candle.high,
                    candle.low,
                    candle.close,
                    enriched.sma_short,
                    enriched.sma_long,
                    enriched.rsi,
                    enriched.correlation,
                ]
            )
        return np.array(values, dtype=float)

    @classmethod
    def flatten_output(cls, decision: Decision) -> np.ndarray:
        """
        Flatten a decision into an output vector.

        Returns:
            Vector [long, short, no, take_profit_price, stop_loss_price]
        """
        one_hot = [
            1.0 if decision.position_type == position else 0.0
            for position in cls.POSITION_SLOTS
        ]
        return np.array(
            one_hot + [decision.take_profit_price, decision.stop_loss_price],
            dtype=float,
        )

    def unflatten_output(self, output: Sequence[float]) -> Decision:
        """
        Decode a network output vector into a decision.

        In EXACT mode slot 0 equal to 1 means LONG, otherwise slot 1 equal to
        1 means SHORT, otherwise NO. Prices are read from slots 3 and 4.

        Args:
            output: Vector with at least 5 elements

        Returns:
            Decoded Decision
        """
        if len(output) < self.OUTPUT_SIZE:
            raise ValueError(
                f"Output vector needs {self.OUTPUT_SIZE} values, got {len(output)}"
            )

        if self.decode_mode == DecodeMode.ARGMAX:
            position = self.POSITION_SLOTS[int(np.argmax(np.asarray(output[:3], dtype=float)))]
        elif output[0] == 1:
            position = PositionType.LONG
        elif output[1] == 1:
            position = PositionType.SHORT
        else:
            position = PositionType.NO

        return Decision(
            position_type=position,
            take_profit_price=float(output[3]),
            stop_loss_price=float(output[4]),
        )
