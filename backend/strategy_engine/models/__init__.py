"""
Network training and inference module.

Provides the training dataset, the network contract and implementation,
model training, persistence and prediction.
"""

from .dataset import Dataset
from .model_store import ModelStore
from .model_trainer import ModelTrainer
from .network import NeuralNetwork, SignalNetwork, TrainingConfig, TrainingProgress
from .predictor import Predictor

__all__ = [
    "Dataset",
    "ModelStore",
    "ModelTrainer",
    "NeuralNetwork",
    "Predictor",
    "SignalNetwork",
    "TrainingConfig",
    "TrainingProgress",
]
