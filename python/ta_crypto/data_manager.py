"""Data manager: computes indicators once per series and provides snapshots.

The decision engine only ever sees :class:`IndicatorSnapshot` objects; this
module is where the arrays from :mod:`indicators` get aligned by index.
"""

from __future__ import annotations

from datetime import date
from typing import Iterator, Optional

import numpy as np
import pandas as pd

from .config import RuleParams
from .indicators import (
    all_time_high,
    atr_close,
    bollinger,
    macd,
    pi_cycle_line,
    pi_cycle_top,
    roc,
    rsi,
    sma,
    vwma,
)
from .types import IndicatorSnapshot, PriceSeries

CLOSE = "close"
VOLUME = "volume"
BB_MID = "bb_mid"
BB_UPPER = "bb_upper"
BB_LOWER = "bb_lower"
RSI = "rsi"
MACD_LINE = "macd_line"
MACD_SIGNAL = "macd_signal"
MACD_HIST = "macd_hist"
PI_CYCLE_TOP = "pi_cycle_top"
PI_CYCLE_LINE = "pi_cycle_line"
ROC = "roc"
VWMA = "vwma"
ATR = "atr"
ATH = "ath"

# Informational indicators carried from the daily report; no rule reads them.
ROC_PERIOD = 12
VWMA_WINDOW = 20
ATR_WINDOW = 14


def sma_key(window: int) -> str:
    return f"sma_{int(window)}"


def _value(x: float) -> Optional[float]:
    return float(x) if np.isfinite(x) else None


class IndicatorFrame:
    """Holds the close series and every indicator series for a single symbol."""

    def __init__(self, series: PriceSeries, params: RuleParams):
        self.symbol = series.symbol
        self.series = series
        self.params = params
        self.timestamps: list[date] = series.timestamps()
        self.columns: dict[str, np.ndarray] = {}

        self._compute_indicators()

    def _compute_indicators(self) -> None:
        p = self.params
        close = self.series.closes()
        volume = self.series.volumes()

        cols = self.columns
        cols[CLOSE] = close
        cols[VOLUME] = volume

        for w in p.sma_windows:
            cols[sma_key(w)] = sma(close, w)

        bands = bollinger(close, p.bollinger_window, p.bollinger_k)
        cols[BB_MID] = bands.mid
        cols[BB_UPPER] = bands.upper
        cols[BB_LOWER] = bands.lower

        cols[RSI] = rsi(close, p.rsi_period)

        m = macd(close, p.macd_fast, p.macd_slow, p.macd_signal)
        cols[MACD_LINE] = m.line
        cols[MACD_SIGNAL] = m.signal
        cols[MACD_HIST] = m.hist

        cols[PI_CYCLE_TOP] = pi_cycle_top(close, p.pi_fast_window, p.pi_slow_window, p.pi_multiplier)
        cols[PI_CYCLE_LINE] = pi_cycle_line(close, p.pi_slow_window, p.pi_multiplier)

        cols[ROC] = roc(close, ROC_PERIOD)
        cols[VWMA] = vwma(close, volume, VWMA_WINDOW)
        cols[ATR] = atr_close(close, ATR_WINDOW)
        cols[ATH] = all_time_high(close)

    def __len__(self) -> int:
        return len(self.timestamps)

    def close(self, i: int) -> Optional[float]:
        return _value(self.columns[CLOSE][i])

    def snapshot(self, i: int) -> IndicatorSnapshot:
        """Indicator values at index i (negative indices count from the end)."""
        n = len(self)
        if not -n <= i < n:
            raise IndexError(f"{self.symbol}: index {i} out of range for {n} points")
        values = {name: _value(arr[i]) for name, arr in self.columns.items()}
        return IndicatorSnapshot(timestamp=self.timestamps[i], values=values)

    def snapshots(self) -> Iterator[IndicatorSnapshot]:
        for i in range(len(self)):
            yield self.snapshot(i)

    def to_frame(self) -> pd.DataFrame:
        """All indicator columns as a DataFrame indexed by date (for export)."""
        df = pd.DataFrame(self.columns, index=pd.DatetimeIndex(pd.to_datetime(self.timestamps), name="Date"))
        return df
