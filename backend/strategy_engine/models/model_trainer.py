"""
Network trainer for the signal dataset.

Encodes every training example, runs the network's training routine and
persists the learned state once training completes.
"""

import logging
from typing import Callable, Dict, Iterator, List, Optional

from strategy_engine.features import FeatureEngineer

from .dataset import Dataset
from .model_store import ModelStore
from .network import SignalNetwork, TrainingConfig, TrainingPair, TrainingProgress

logger = logging.getLogger(__name__)

ProgressObserver = Callable[[TrainingProgress], None]


class ModelTrainer:
    """
    Train a signal network on the full dataset.

    Training is not resumable: each run starts from the network's current
    weights and uses every example currently in the dataset.
    """

    def __init__(
        self,
        network: SignalNetwork,
        dataset: Dataset,
        brain_path: str,
        feature_engineer: Optional[FeatureEngineer] = None,
        model_store: Optional[ModelStore] = None,
        error: float = 0.005,
        log_interval: int = 100,
        cost: str = "cross_entropy",
    ):
        """
        Initialize model trainer.

        Args:
            network: Network to train
            dataset: Training examples
            brain_path: Where the learned state is saved
            feature_engineer: Vector encoder (default FeatureEngineer())
            model_store: State persistence (default ModelStore())
            error: Target mean error (default 0.005)
            log_interval: Iterations between progress log lines (default 100)
            cost: Cost function name (default cross_entropy)
        """
        self.network = network
        self.dataset = dataset
        self.brain_path = brain_path
        self.feature_engineer = feature_engineer or FeatureEngineer()
        self.model_store = model_store or ModelStore()
        self.error = error
        self.log_interval = log_interval
        self.cost = cost

        self.training_metrics: Dict = {}

    def build_training_set(self) -> List[TrainingPair]:
        """
        Encode every example, in dataset order.

        Returns:
            List of (input_vector, output_vector) pairs
        """
        return [
            (
                self.feature_engineer.flatten_input(example.learning_data),
                self.feature_engineer.flatten_output(example.decision),
            )
            for example in self.dataset
        ]

    def make_config(self, learning_rate: float, iterations: int) -> TrainingConfig:
        return TrainingConfig(
            rate=learning_rate,
            iterations=iterations,
            error=self.error,
            shuffle=True,
            log=self.log_interval,
            cost=self.cost,
            categorical_slots=len(self.feature_engineer.POSITION_SLOTS),
        )

    def iter_train(self, learning_rate: float, iterations: int) -> Iterator[TrainingProgress]:
        """
        Train the network, yielding a progress event per iteration.

        The learned state is saved after the last event, once the generator
        is exhausted.

        Args:
            learning_rate: Learning rate
            iterations: Maximum iterations

        Yields:
            TrainingProgress events
        """
        training_set = self.build_training_set()
        if not training_set:
            raise ValueError(f"No training examples in {self.dataset.file_path}")

        config = self.make_config(learning_rate, iterations)

        logger.info(
            f"Training on {len(training_set)} examples "
            f"(rate={learning_rate}, iterations={iterations}, error={config.error})"
        )

        last: Optional[TrainingProgress] = None
        for progress in self.network.train(training_set, config):
            last = progress
            if progress.iterations % config.log == 0:
                logger.info(
                    f"Progress: {progress.iterations}/{iterations} iterations, "
                    f"error={progress.error:.6f}"
                )
            yield progress

        logger.info("Training completed")

        self.training_metrics = {
            "samples": len(training_set),
            "learning_rate": learning_rate,
            "iterations_requested": iterations,
            "iterations": last.iterations if last else 0,
            "error": last.error if last else None,
            "target_error": config.error,
            "cost": config.cost,
        }

        self.model_store.save(self.network, self.brain_path, metadata=self.training_metrics)

    def train(
        self,
        learning_rate: float,
        iterations: int,
        observer: Optional[ProgressObserver] = None,
    ) -> Dict:
        """
        Train the network to completion and save its state.

        Args:
            learning_rate: Learning rate
            iterations: Maximum iterations
            observer: Optional callback receiving every progress event

        Returns:
            Dictionary with training metrics
        """
        for progress in self.iter_train(learning_rate, iterations):
            if observer is not None:
                observer(progress)

        return self.training_metrics
