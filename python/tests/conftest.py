"""Shared fixtures: synthetic daily series and a small-window rule profile."""

from datetime import date, timedelta

import numpy as np
import pytest

from ta_crypto.config import RuleParams
from ta_crypto.types import PriceSeries

START = date(2023, 1, 1)


def make_series(closes, symbol="TEST", start=START, volumes=None) -> PriceSeries:
    closes = [None if c is None or (isinstance(c, float) and np.isnan(c)) else float(c) for c in closes]
    timestamps = [start + timedelta(days=i) for i in range(len(closes))]
    return PriceSeries.from_closes(symbol, timestamps, closes, volumes)


def random_walk(n=400, seed=7, start_price=100.0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    steps = rng.normal(0.0, 0.03, size=n)
    return start_price * np.exp(np.cumsum(steps))


@pytest.fixture
def small_params() -> RuleParams:
    """Short windows so a few hundred points exercise every rule."""
    return RuleParams(
        sma_windows=(5, 10),
        bollinger_window=10,
        bollinger_k=1.0,
        rsi_period=5,
        buy_rsi_threshold=45.0,
        sell_rsi_threshold=60.0,
        macd_fast=3,
        macd_slow=6,
        macd_signal=3,
        pi_fast_window=5,
        pi_slow_window=20,
        pi_multiplier=1.2,
        extreme_greed_threshold=80,
        extreme_fear_threshold=20,
        fee_rate=0.005,
    )


@pytest.fixture
def reference_params() -> RuleParams:
    return RuleParams.reference()
