"""
Signal network contract and the bundled feed-forward implementation.

The trainer and predictor only rely on the `SignalNetwork` protocol:
train / activate / serialize / deserialize. `NeuralNetwork` fulfils it with a
scikit-learn multi-layer perceptron trained one pass at a time.
"""

import logging
import pickle
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Protocol, Sequence, Tuple

import numpy as np
from pydantic import BaseModel, Field, field_validator
from sklearn.exceptions import NotFittedError
from sklearn.neural_network import MLPRegressor
from sklearn.utils import shuffle as shuffle_arrays
from sklearn.utils.validation import check_is_fitted

from shared.config import CATEGORICAL_OUTPUTS

logger = logging.getLogger(__name__)

EPSILON = 1e-15

TrainingPair = Tuple[np.ndarray, np.ndarray]


def cross_entropy(
    target: np.ndarray, output: np.ndarray, categorical_slots: Optional[int] = None
) -> np.ndarray:
    """
    Cross-entropy summed over the last axis.

    The leading `categorical_slots` entries (all entries when None) hold
    0/1 class targets and get binary log loss, with outputs clipped to
    [EPSILON, 1 - EPSILON]. The remaining entries hold price targets and
    get squared error.
    """
    target = np.asarray(target, dtype=float)
    output = np.asarray(output, dtype=float)
    split = target.shape[-1] if categorical_slots is None else categorical_slots

    class_target = target[..., :split]
    clipped = np.clip(output[..., :split], EPSILON, 1 - EPSILON)
    log_loss = -(
        class_target * np.log(clipped) + (1 - class_target) * np.log(1 - clipped)
    )
    squared = (target[..., split:] - output[..., split:]) ** 2

    return np.sum(log_loss, axis=-1) + np.sum(squared, axis=-1)


def mse(
    target: np.ndarray, output: np.ndarray, categorical_slots: Optional[int] = None
) -> np.ndarray:
    """Mean squared error over the last axis. Every slot is treated alike."""
    return np.mean((np.asarray(target) - np.asarray(output)) ** 2, axis=-1)


CostFunction = Callable[[np.ndarray, np.ndarray, Optional[int]], np.ndarray]

COST_FUNCTIONS: Dict[str, CostFunction] = {
    "cross_entropy": cross_entropy,
    "mse": mse,
}


def get_cost(name: str) -> CostFunction:
    if name not in COST_FUNCTIONS:
        raise ValueError(f"Unknown cost function: {name}")
    return COST_FUNCTIONS[name]


class TrainingConfig(BaseModel):
    """Options for one training run."""

    rate: float = Field(gt=0, description="Learning rate")
    iterations: int = Field(gt=0, description="Maximum passes over the training set")
    error: float = Field(default=0.005, description="Stop once mean error is at or below")
    shuffle: bool = Field(default=True, description="Shuffle the set before every pass")
    log: int = Field(default=100, gt=0, description="Iterations between progress log lines")
    cost: str = Field(default="cross_entropy", description="Cost function name")
    categorical_slots: int = Field(
        default=CATEGORICAL_OUTPUTS,
        ge=0,
        description="Leading output slots holding one-hot class targets",
    )

    @field_validator("cost")
    @classmethod
    def check_cost(cls, v: str) -> str:
        get_cost(v)
        return v


@dataclass(frozen=True)
class TrainingProgress:
    """Progress notification emitted after every training pass."""

    iterations: int
    error: float


class SignalNetwork(Protocol):
    """Trainable predictor consumed by the trainer and the predictor service."""

    def train(
        self, training_set: Sequence[TrainingPair], config: TrainingConfig
    ) -> Iterator[TrainingProgress]:
        ...

    def activate(self, input_vector: Sequence[float]) -> np.ndarray:
        ...

    def serialize(self) -> bytes:
        ...

    def deserialize(self, state: bytes) -> None:
        ...


class NeuralNetwork:
    """
    Feed-forward network with logistic hidden layers.

    Wraps sklearn's MLPRegressor trained by plain SGD on single samples, one
    `partial_fit` pass per iteration. Input and output sizes are fixed at
    construction. Non-finite input values (warm-up NaNs, unguarded
    indicator divisions) are fed to the estimator as 0.

    The estimator always minimizes squared error. `TrainingConfig.cost` is
    the error reported per pass and compared against `TrainingConfig.error`.
    """

    def __init__(
        self,
        input_size: int,
        hidden_layers: List[int],
        output_size: int,
        random_state: Optional[int] = None,
    ):
        """
        Initialize network layout.

        Args:
            input_size: Length of input vectors
            hidden_layers: Sizes of hidden layers
            output_size: Length of output vectors
            random_state: Seed for weight init and shuffling
        """
        if not hidden_layers:
            raise ValueError("At least one hidden layer is required")

        self.input_size = input_size
        self.hidden_layers = list(hidden_layers)
        self.output_size = output_size
        self.random_state = random_state
        self.estimator = self._build_estimator(rate=0.3)

    def _build_estimator(self, rate: float) -> MLPRegressor:
        return MLPRegressor(
            hidden_layer_sizes=tuple(self.hidden_layers),
            activation="logistic",
            solver="sgd",
            learning_rate="constant",
            learning_rate_init=rate,
            momentum=0.0,
            alpha=0.0,
            batch_size=1,
            shuffle=False,
            random_state=self.random_state,
        )

    def _set_learning_rate(self, rate: float) -> None:
        """
        Change the step size of an already fitted estimator.

        `partial_fit` keeps the SGD optimizer built on the first pass and
        only creates a new one, from `learning_rate_init`, when the estimator
        holds none. Dropping the cached optimizer keeps the learned weights.
        Momentum is 0, so no velocity state is lost.
        """
        self.estimator.set_params(learning_rate_init=rate)
        if hasattr(self.estimator, "_optimizer"):
            del self.estimator._optimizer
        logger.debug(f"Learning rate set to {rate}")

    @staticmethod
    def _sanitize(values: np.ndarray) -> np.ndarray:
        return np.nan_to_num(values, nan=0.0, posinf=0.0, neginf=0.0)

    def _check_size(self, vector: np.ndarray, expected: int, kind: str) -> None:
        if vector.shape[-1] != expected:
            raise ValueError(
                f"{kind} size mismatch: network expects {expected}, got {vector.shape[-1]}"
            )

    @property
    def is_trained(self) -> bool:
        try:
            check_is_fitted(self.estimator)
        except NotFittedError:
            return False
        return True

    def train(
        self, training_set: Sequence[TrainingPair], config: TrainingConfig
    ) -> Iterator[TrainingProgress]:
        """
        Train on the set, yielding progress after every pass.

        Stops after `config.iterations` passes or once the mean cost over the
        set drops to `config.error`.

        Args:
            training_set: Sequence of (input_vector, output_vector) pairs
            config: Training options

        Yields:
            TrainingProgress per pass
        """
        if not training_set:
            raise ValueError("Training set is empty")

        X = np.array([pair[0] for pair in training_set], dtype=float)
        y = np.array([pair[1] for pair in training_set], dtype=float)
        self._check_size(X, self.input_size, "Input")
        self._check_size(y, self.output_size, "Output")
        X = self._sanitize(X)

        cost = get_cost(config.cost)
        rng = np.random.RandomState(self.random_state)

        if not self.is_trained:
            self.estimator = self._build_estimator(config.rate)
        elif self.estimator.learning_rate_init != config.rate:
            self._set_learning_rate(config.rate)

        logger.debug(
            f"Training on {len(X)} samples (rate={config.rate}, "
            f"iterations={config.iterations}, cost={config.cost})"
        )

        for iteration in range(1, config.iterations + 1):
            if config.shuffle:
                X_pass, y_pass = shuffle_arrays(X, y, random_state=rng)
            else:
                X_pass, y_pass = X, y

            self.estimator.partial_fit(X_pass, y_pass)

            output = self.estimator.predict(X).reshape(len(X), self.output_size)
            error = float(np.mean(cost(y, output, config.categorical_slots)))

            yield TrainingProgress(iterations=iteration, error=error)

            if error <= config.error:
                break

    def activate(self, input_vector: Sequence[float]) -> np.ndarray:
        """
        Run one forward pass.

        Args:
            input_vector: Vector of length `input_size`

        Returns:
            Output vector of length `output_size`
        """
        x = np.asarray(input_vector, dtype=float).reshape(1, -1)
        self._check_size(x, self.input_size, "Input")
        check_is_fitted(self.estimator)

        return self.estimator.predict(self._sanitize(x)).reshape(self.output_size)

    def serialize(self) -> bytes:
        """Serialize layout and learned weights."""
        return pickle.dumps(
            {
                "input_size": self.input_size,
                "hidden_layers": self.hidden_layers,
                "output_size": self.output_size,
                "random_state": self.random_state,
                "estimator": self.estimator,
            }
        )

    def deserialize(self, state: bytes) -> None:
        """Replace layout and weights with a serialized state."""
        data = pickle.loads(state)
        self.input_size = data["input_size"]
        self.hidden_layers = list(data["hidden_layers"])
        self.output_size = data["output_size"]
        self.random_state = data["random_state"]
        self.estimator = data["estimator"]
