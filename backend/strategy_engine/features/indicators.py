"""
Technical indicator calculations using pandas and numpy.

Implements the indicators fed to the signal network:
- Trend: short and long SMA
- Momentum: RSI with incrementally carried gain/loss accumulators
- Cross-asset: expanding-window Pearson correlation against a reference symbol

Every series has the length of its input; indices inside an indicator's
warm-up period hold 0.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
import pandas as pd

from shared.models import Candle, EnrichedCandle

logger = logging.getLogger(__name__)

WARMUP_VALUE = 0.0


@dataclass
class RSIState:
    """
    Gain/loss accumulators carried from one RSI step to the next.

    `gains` and `losses` hold the sums of positive and (absolute) negative
    close-to-close changes currently inside the window.
    """

    gains: float = 0.0
    losses: float = 0.0

    def add(self, change: float) -> None:
        if change > 0:
            self.gains += change
        else:
            self.losses -= change

    def retire(self, change: float) -> None:
        if change > 0:
            self.gains -= change
        else:
            self.losses += change


class IndicatorCalculator:
    """
    Calculate technical indicators from candle data.

    Uses pandas and numpy for the window arithmetic. Degenerate inputs
    (zero average loss, zero variance) are not special-cased: the resulting
    inf/NaN values are returned as computed.
    """

    SMA_SHORT_PERIOD = 50
    SMA_LONG_PERIOD = 200
    RSI_PERIOD = 14

    @staticmethod
    def candles_to_frame(candles: Sequence[Candle]) -> pd.DataFrame:
        """
        Convert candles to a DataFrame.

        Args:
            candles: Chronologically ordered candles

        Returns:
            DataFrame with columns [open_time, open, high, low, close, volume]
        """
        data = {
            "open_time": np.array([c.open_time for c in candles], dtype=np.int64),
            "open": np.array([c.open for c in candles], dtype=float),
            "high": np.array([c.high for c in candles], dtype=float),
            "low": np.array([c.low for c in candles], dtype=float),
            "close": np.array([c.close for c in candles], dtype=float),
            "volume": np.array([c.volume for c in candles], dtype=float),
        }
        return pd.DataFrame(data)

    @staticmethod
    def calculate_sma(series: pd.Series, period: int) -> pd.Series:
        """
        Calculate Simple Moving Average.

        Indices before the first full window hold 0.
        """
        if period <= 0:
            raise ValueError(f"SMA period must be positive, got {period}")
        sma = series.rolling(window=period, min_periods=period).mean()
        return sma.fillna(WARMUP_VALUE)

    @staticmethod
    def rsi_step(state: RSIState, closes: np.ndarray, index: int, period: int) -> float:
        """
        Advance the RSI accumulators to `index` and return the RSI there.

        Adds the change ending at `index`. Once `index >= period` the value is
        computed from the accumulators and the change ending at
        `index - period + 1` is retired, so the next step sees the following
        window. Returns 0 before the warm-up completes.

        Args:
            state: Accumulators after step `index - 1` (mutated in place)
            closes: Close prices
            index: Candle index, >= 1
            period: RSI period

        Returns:
            RSI value at `index`
        """
        state.add(closes[index] - closes[index - 1])

        if index < period:
            return WARMUP_VALUE

        avg_gain = np.float64(state.gains) / period
        avg_loss = np.float64(state.losses) / period
        with np.errstate(divide="ignore", invalid="ignore"):
            rs = avg_gain / avg_loss
            rsi = 100 - (100 / (1 + rs))

        state.retire(closes[index - period + 1] - closes[index - period])

        return float(rsi)

    @classmethod
    def calculate_rsi(cls, series: pd.Series, period: int = 14) -> pd.Series:
        """
        Calculate Relative Strength Index.

        Args:
            series: Price series (typically close)
            period: RSI period (default 14)

        Returns:
            RSI values (0-100), 0 for indices below `period`
        """
        if period <= 0:
            raise ValueError(f"RSI period must be positive, got {period}")

        closes = series.to_numpy(dtype=float)
        rsi = np.full(len(closes), WARMUP_VALUE)
        state = RSIState()

        for i in range(1, len(closes)):
            rsi[i] = cls.rsi_step(state, closes, i, period)

        return pd.Series(rsi, index=series.index)

    @staticmethod
    def calculate_correlation(series: pd.Series, reference: pd.Series) -> pd.Series:
        """
        Calculate expanding-window Pearson correlation.

        The value at index i uses every observation from the start of both
        series through i. Indices past the end of `reference` hold 0.

        Args:
            series: Price series of the traded symbol
            reference: Price series of the reference symbol

        Returns:
            Correlation values aligned with `series`
        """
        a = series.to_numpy(dtype=float)
        b = reference.to_numpy(dtype=float)
        correlation = np.full(len(a), WARMUP_VALUE)

        with np.errstate(divide="ignore", invalid="ignore"):
            for i in range(min(len(a), len(b))):
                dev_a = a[: i + 1] - a[: i + 1].mean()
                dev_b = b[: i + 1] - b[: i + 1].mean()
                cov = (dev_a * dev_b).sum()
                var_a = (dev_a**2).sum()
                var_b = (dev_b**2).sum()
                correlation[i] = cov / np.sqrt(var_a * var_b)

        return pd.Series(correlation, index=series.index)

    @classmethod
    def calculate_all(
        cls,
        df: pd.DataFrame,
        reference_df: pd.DataFrame,
        short_period: int = SMA_SHORT_PERIOD,
        long_period: int = SMA_LONG_PERIOD,
        rsi_period: int = RSI_PERIOD,
    ) -> pd.DataFrame:
        """
        Calculate all indicators.

        Adds columns:
        - sma_short, sma_long
        - rsi
        - correlation (against reference_df close)

        Args:
            df: DataFrame with at least a close column, oldest row first
            reference_df: Reference symbol DataFrame with a close column

        Returns:
            DataFrame with indicator columns added
        """
        df = df.copy()
        close = df["close"]

        df["sma_short"] = cls.calculate_sma(close, short_period)
        df["sma_long"] = cls.calculate_sma(close, long_period)
        df["rsi"] = cls.calculate_rsi(close, rsi_period)
        df["correlation"] = cls.calculate_correlation(
            close, reference_df["close"].reset_index(drop=True)
        ).to_numpy()

        logger.info(f"Calculated indicators for {len(df)} candles")

        return df

    @classmethod
    def enrich(
        cls,
        candles: Sequence[Candle],
        reference_candles: Sequence[Candle],
        short_period: int = SMA_SHORT_PERIOD,
        long_period: int = SMA_LONG_PERIOD,
        rsi_period: int = RSI_PERIOD,
    ) -> List[EnrichedCandle]:
        """
        Attach indicator values to every candle.

        Args:
            candles: Candles of the traded symbol, oldest first
            reference_candles: Candles of the reference symbol, oldest first

        Returns:
            One EnrichedCandle per input candle, index-aligned
        """
        df = cls.calculate_all(
            cls.candles_to_frame(candles),
            cls.candles_to_frame(reference_candles),
            short_period=short_period,
            long_period=long_period,
            rsi_period=rsi_period,
        )

        return [
            EnrichedCandle(
                candle=candle,
                sma_short=float(row.sma_short),
                sma_long=float(row.sma_long),
                rsi=float(row.rsi),
                correlation=float(row.correlation),
            )
            for candle, row in zip(candles, df.itertuples(index=False))
        ]
