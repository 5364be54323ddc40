"""Indicator computation utilities.

Every function takes float arrays (NaN = missing observation) and returns a
same-length float array where NaN means "undefined". A window that touches a
missing point is undefined; recursive indicators (EMA, RSI) restart their
seeding after a gap. Nothing is interpolated and nothing is cached between
calls.
"""

from __future__ import annotations

from typing import NamedTuple

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view


class Bands(NamedTuple):
    mid: np.ndarray
    upper: np.ndarray
    lower: np.ndarray


class Macd(NamedTuple):
    line: np.ndarray
    signal: np.ndarray
    hist: np.ndarray


def _as_array(x) -> np.ndarray:
    arr = np.asarray(x, dtype=np.float64)
    if arr.ndim != 1:
        raise ValueError("expected a 1-D series")
    return arr


def _check_window(w: int, name: str = "window") -> None:
    if w <= 0:
        raise ValueError(f"{name} must be positive")


def _windows(x: np.ndarray, w: int) -> np.ndarray:
    return sliding_window_view(x, w)


def sma(x, window: int) -> np.ndarray:
    """Simple moving average over the trailing ``window`` points."""
    _check_window(window)
    x = _as_array(x)
    out = np.full(len(x), np.nan)
    if len(x) < window:
        return out
    # NaN inside a window propagates through the mean
    out[window - 1:] = _windows(x, window).mean(axis=1)
    return out


def rolling_std(x, window: int) -> np.ndarray:
    """Population standard deviation (ddof=0) over the trailing window."""
    _check_window(window)
    x = _as_array(x)
    out = np.full(len(x), np.nan)
    if len(x) < window:
        return out
    out[window - 1:] = _windows(x, window).std(axis=1)
    return out


def bollinger(x, window: int, k: float) -> Bands:
    """Bollinger bands: SMA +/- k population standard deviations.

    A flat window has zero deviation and the bands collapse onto the SMA.
    """
    if k < 0:
        raise ValueError("k must be >= 0")
    mid = sma(x, window)
    width = k * rolling_std(x, window)
    return Bands(mid=mid, upper=mid + width, lower=mid - width)


def ema(x, span: int) -> np.ndarray:
    """Exponential moving average, alpha = 2 / (span + 1).

    The recursion is seeded with the SMA of the first ``span`` consecutive
    valid values, so the first ``span - 1`` points of every run are undefined.
    """
    _check_window(span, "span")
    x = _as_array(x)
    alpha = 2.0 / (span + 1.0)
    out = np.full(len(x), np.nan)

    prev = np.nan
    run = 0
    for i, v in enumerate(x):
        if not np.isfinite(v):
            prev = np.nan
            run = 0
            continue
        run += 1
        if np.isnan(prev):
            if run < span:
                continue
            prev = float(x[i - span + 1:i + 1].mean())
        else:
            prev = alpha * v + (1.0 - alpha) * prev
        out[i] = prev
    return out


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    # no losses in the smoothing window: report neutral instead of dividing by zero
    if avg_loss == 0.0:
        return 50.0
    rs = avg_gain / avg_loss
    return float(min(100.0, max(0.0, 100.0 - 100.0 / (1.0 + rs))))


def rsi(x, period: int) -> np.ndarray:
    """Relative Strength Index with Wilder smoothing.

    Needs ``period + 1`` consecutive prices; the first averages are plain means
    of the first ``period`` gains/losses, then
    ``avg = (avg * (period - 1) + current) / period``.
    """
    _check_window(period, "period")
    x = _as_array(x)
    out = np.full(len(x), np.nan)

    avg_gain = np.nan
    avg_loss = np.nan
    seed_gains: list[float] = []
    seed_losses: list[float] = []
    for i in range(1, len(x)):
        a, b = x[i - 1], x[i]
        if not (np.isfinite(a) and np.isfinite(b)):
            avg_gain = avg_loss = np.nan
            seed_gains.clear()
            seed_losses.clear()
            continue

        delta = float(b - a)
        gain = delta if delta > 0 else 0.0
        loss = -delta if delta < 0 else 0.0

        if np.isnan(avg_gain):
            seed_gains.append(gain)
            seed_losses.append(loss)
            if len(seed_gains) < period:
                continue
            avg_gain = sum(seed_gains) / period
            avg_loss = sum(seed_losses) / period
        else:
            avg_gain = (avg_gain * (period - 1) + gain) / period
            avg_loss = (avg_loss * (period - 1) + loss) / period
        out[i] = _rsi_value(avg_gain, avg_loss)
    return out


def macd(x, fast: int, slow: int, signal: int) -> Macd:
    """MACD line, signal line, and histogram."""
    if fast >= slow:
        raise ValueError("fast must be smaller than slow")
    line = ema(x, fast) - ema(x, slow)
    signal_line = ema(line, signal)
    return Macd(line=line, signal=signal_line, hist=line - signal_line)


def pi_cycle_line(x, slow: int = 350, multiplier: float = 2.0) -> np.ndarray:
    return multiplier * sma(x, slow)


def pi_cycle_top(x, fast: int = 111, slow: int = 350, multiplier: float = 2.0) -> np.ndarray:
    """Pi Cycle Top trigger.

    1.0 on the step where SMA(fast) crosses above ``multiplier`` x SMA(slow)
    (previous step <=, current >), 0.0 otherwise, NaN until both averages are
    defined. The first defined step cannot observe a cross and reports 0.0.
    """
    fast_ma = sma(x, fast)
    line = pi_cycle_line(x, slow, multiplier)

    out = np.full(len(fast_ma), np.nan)
    defined = np.isfinite(fast_ma) & np.isfinite(line)
    out[defined] = 0.0

    above = fast_ma > line
    prev_defined = np.zeros_like(defined)
    prev_defined[1:] = defined[:-1]
    prev_above = np.zeros_like(above)
    prev_above[1:] = above[:-1]

    cross = defined & prev_defined & above & ~prev_above
    out[cross] = 1.0
    return out


def roc(x, period: int) -> np.ndarray:
    """Rate of change in percent versus ``period`` steps ago."""
    _check_window(period, "period")
    x = _as_array(x)
    out = np.full(len(x), np.nan)
    if len(x) > period:
        out[period:] = (x[period:] / x[:-period] - 1.0) * 100.0
    return out


def vwma(x, volume, window: int) -> np.ndarray:
    """Volume-weighted moving average; undefined when the window has no volume."""
    _check_window(window)
    x = _as_array(x)
    v = _as_array(volume)
    if len(x) != len(v):
        raise ValueError("price and volume must have the same length")
    out = np.full(len(x), np.nan)
    if len(x) < window:
        return out
    pv = _windows(x * v, window).sum(axis=1)
    vol = _windows(v, window).sum(axis=1)
    with np.errstate(divide="ignore", invalid="ignore"):
        res = np.where(vol > 0, pv / vol, np.nan)
    out[window - 1:] = res
    return out


def atr_close(x, window: int) -> np.ndarray:
    """Average absolute close-to-close move (close-only ATR proxy)."""
    x = _as_array(x)
    tr = np.full(len(x), np.nan)
    if len(x) > 1:
        tr[1:] = np.abs(np.diff(x))
    return sma(tr, window)


def all_time_high(x) -> np.ndarray:
    """Running maximum, skipping missing points (NaN before the first price)."""
    x = _as_array(x)
    if len(x) == 0:
        return x.copy()
    return np.fmax.accumulate(x)


def validate_sentiment(value) -> int:
    """Fear & Greed score pass-through; must be an integer in [0, 100]."""
    if isinstance(value, bool):
        raise ValueError(f"sentiment must be an integer in [0, 100], got {value!r}")
    try:
        v = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"sentiment must be an integer in [0, 100], got {value!r}") from None
    if v != value or not 0 <= v <= 100:
        raise ValueError(f"sentiment must be an integer in [0, 100], got {value!r}")
    return v
