"""Performance metrics over an equity curve."""

from __future__ import annotations

from datetime import date
from typing import Sequence

import pandas as pd


def equity_series(curve: Sequence[tuple[date, float]]) -> pd.Series:
    """Equity curve as a Series indexed by date."""
    if not curve:
        return pd.Series([], dtype=float, index=pd.DatetimeIndex([], name="Date"), name="Equity")
    dates, values = zip(*curve)
    return pd.Series(values, index=pd.DatetimeIndex(pd.to_datetime(list(dates)), name="Date"), name="Equity", dtype=float)


def roi_pct(initial: float, final: float) -> float:
    return (float(final) / float(initial) - 1.0) * 100.0


def max_drawdown(equity: pd.Series) -> float:
    """Largest peak-to-trough loss as a positive fraction (0.25 = -25%)."""
    if equity.empty:
        return float("nan")
    peak = equity.astype(float).cummax()
    return float((1.0 - equity / peak).max())


def cagr(equity: pd.Series) -> float:
    """Compound annual growth between the first and last point (365-day year)."""
    if len(equity) < 2 or not equity.iloc[0] > 0:
        return float("nan")
    days = (equity.index[-1] - equity.index[0]).days
    if days <= 0:
        return float("nan")
    return float((equity.iloc[-1] / equity.iloc[0]) ** (365.0 / days) - 1.0)
