"""
Prediction service for trading decisions.

Encodes learning data, activates the network once and decodes the output.
"""

import logging
from typing import Optional

from shared.models import Decision, LearningData
from strategy_engine.features import FeatureEngineer

from .model_store import ModelStore
from .network import SignalNetwork

logger = logging.getLogger(__name__)


class Predictor:
    """
    Turn enriched candles into a trading decision.

    Holds no dataset state; the result depends only on the network's current
    weights and the input.
    """

    def __init__(
        self,
        network: SignalNetwork,
        feature_engineer: Optional[FeatureEngineer] = None,
        brain_path: Optional[str] = None,
        model_store: Optional[ModelStore] = None,
    ):
        """
        Initialize predictor.

        Args:
            network: Network used for activation
            feature_engineer: Vector codec (default FeatureEngineer())
            brain_path: Saved state to load; a missing file leaves the
                network unchanged
            model_store: State persistence (default ModelStore())
        """
        self.network = network
        self.feature_engineer = feature_engineer or FeatureEngineer()
        self.model_store = model_store or ModelStore()

        if brain_path:
            self.model_store.load(self.network, brain_path)

    def predict(self, learning_data: LearningData) -> Decision:
        """
        Generate a decision from learning data.

        Args:
            learning_data: Enriched candles, oldest first

        Returns:
            Decoded Decision
        """
        input_vector = self.feature_engineer.flatten_input(learning_data)
        output = self.network.activate(input_vector)
        decision = self.feature_engineer.unflatten_output(output)

        logger.info(
            f"Prediction for {learning_data.symbol}: {decision.position_type.value} "
            f"(tp={decision.take_profit_price}, sl={decision.stop_loss_price})"
        )

        return decision
