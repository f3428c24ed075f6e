"""
Feature engineering module for network input.

Calculates technical indicators from candle data and encodes enriched
candles and decisions as flat numeric vectors.
"""

from .feature_engineer import DecodeMode, FeatureEngineer
from .feature_service import FeatureService
from .indicators import IndicatorCalculator, RSIState

__all__ = ["IndicatorCalculator", "RSIState", "FeatureEngineer", "DecodeMode", "FeatureService"]
