"""Tests for the indicator library."""

import numpy as np
import pytest

from conftest import random_walk
from ta_crypto.indicators import (
    all_time_high,
    atr_close,
    bollinger,
    ema,
    macd,
    pi_cycle_top,
    roc,
    rolling_std,
    rsi,
    sma,
    validate_sentiment,
    vwma,
)

nan = np.nan


class TestSMA:
    """Tests for SMA calculation."""

    def test_sma_basic(self):
        """Mean of the trailing window, undefined before it fills."""
        result = sma(np.arange(1, 11, dtype=float), 3)

        assert np.isnan(result[0])
        assert np.isnan(result[1])
        assert result[2] == pytest.approx(2.0)
        assert result[3] == pytest.approx(3.0)
        assert result[9] == pytest.approx(9.0)

    @pytest.mark.parametrize("n", [0, 1, 4])
    def test_short_series_is_undefined(self, n):
        """Series shorter than the window are undefined everywhere, no exception."""
        result = sma(np.ones(n), 5)
        assert len(result) == n
        assert np.isnan(result).all()

    def test_gap_propagates(self):
        """Every window that touches a missing point is undefined."""
        x = np.array([1, 2, 3, 4, 5, nan, 7, 8, 9, 10], dtype=float)
        result = sma(x, 3)

        assert result[4] == pytest.approx(4.0)
        assert np.isnan(result[5:8]).all()
        assert result[8] == pytest.approx(8.0)

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            sma([1.0, 2.0], 0)


class TestBollinger:
    """Tests for Bollinger bands."""

    @pytest.mark.parametrize("k", [0.0, 1.0, 2.0, 3.5])
    def test_band_ordering(self, k):
        """upper >= mid >= lower wherever defined."""
        bands = bollinger(random_walk(300), 20, k)
        defined = ~np.isnan(bands.mid)

        assert defined.sum() == 300 - 19
        assert (bands.upper[defined] >= bands.mid[defined]).all()
        assert (bands.mid[defined] >= bands.lower[defined]).all()

    def test_flat_window_collapses(self):
        """Zero variance collapses the bands onto the SMA."""
        bands = bollinger(np.full(30, 100.0), 20, 2.0)

        assert bands.upper[-1] == pytest.approx(100.0)
        assert bands.lower[-1] == pytest.approx(100.0)
        assert bands.mid[-1] == pytest.approx(100.0)

    def test_population_std(self):
        """Standard deviation uses ddof=0."""
        result = rolling_std(np.array([2, 4, 4, 4, 5, 5, 7, 9], dtype=float), 8)
        assert result[-1] == pytest.approx(2.0)

    def test_negative_k(self):
        with pytest.raises(ValueError):
            bollinger(np.ones(30), 20, -1.0)


class TestEMA:
    """Tests for EMA calculation."""

    def test_ema_seeded_with_sma(self):
        """First value is the SMA of the first span points, then the recursion."""
        result = ema(np.arange(1, 11, dtype=float), 5)

        assert np.isnan(result[:4]).all()
        assert result[4] == pytest.approx(3.0)
        # alpha = 1/3
        assert result[5] == pytest.approx(6.0 / 3.0 + 3.0 * 2.0 / 3.0)

    def test_ema_restarts_after_gap(self):
        """A missing point resets seeding."""
        x = np.array([1, 2, 3, 4, 5, nan, 1, 2, 3, 4], dtype=float)
        result = ema(x, 3)

        assert np.isnan(result[5:8]).all()
        assert result[8] == pytest.approx(2.0)

    def test_ema_insufficient_data(self):
        result = ema(np.array([100.0, 101.0, 102.0]), 10)
        assert np.isnan(result).all()


class TestRSI:
    """Tests for Wilder RSI."""

    def test_rsi_bounds(self):
        """RSI stays within [0, 100] for any finite series."""
        for seed in range(5):
            result = rsi(random_walk(400, seed=seed), 14)
            defined = result[~np.isnan(result)]
            assert len(defined) == 400 - 14
            assert (defined >= 0.0).all()
            assert (defined <= 100.0).all()

    def test_first_defined_index(self):
        """Needs period + 1 prices."""
        result = rsi(random_walk(30), 14)
        assert np.isnan(result[:14]).all()
        assert not np.isnan(result[14])

    def test_known_values(self):
        """Seed average then Wilder smoothing."""
        result = rsi(np.array([1.0, 2.0, 1.0, 3.0]), 2)

        assert result[2] == pytest.approx(50.0)
        # avg_gain = (0.5 + 2) / 2, avg_loss = (0.5 + 0) / 2 -> RS = 5
        assert result[3] == pytest.approx(100.0 - 100.0 / 6.0)

    def test_zero_loss_is_neutral(self):
        """No losses in the window resolves to 50 instead of dividing by zero."""
        result = rsi(np.linspace(100.0, 200.0, 50), 14)
        assert result[-1] == pytest.approx(50.0)

    def test_falling_series(self):
        result = rsi(np.linspace(200.0, 100.0, 50), 14)
        assert result[-1] == pytest.approx(0.0)

    def test_short_series(self):
        assert np.isnan(rsi(np.ones(14), 14)).all()

    def test_gap_restarts_seeding(self):
        x = random_walk(40)
        x[20] = nan
        result = rsi(x, 5)

        assert np.isnan(result[20:26]).all()
        assert not np.isnan(result[26])


class TestMACD:
    """Tests for MACD."""

    def test_definition_points(self):
        """Line defined once EMA(slow) is, signal after `signal` more points."""
        m = macd(random_walk(60), 12, 26, 9)

        assert np.isnan(m.line[:25]).all()
        assert not np.isnan(m.line[25])
        assert np.isnan(m.signal[:33]).all()
        assert not np.isnan(m.signal[33])
        defined = ~np.isnan(m.hist)
        assert m.hist[defined] == pytest.approx(m.line[defined] - m.signal[defined])

    def test_flat_series_has_zero_histogram(self):
        m = macd(np.full(60, 100.0), 12, 26, 9)
        assert m.hist[-1] == pytest.approx(0.0)

    def test_fast_must_be_faster(self):
        with pytest.raises(ValueError):
            macd(np.ones(60), 26, 12, 9)


class TestPiCycle:
    """Tests for the Pi Cycle Top trigger."""

    def test_cross_fires_once(self):
        """1.0 only on the step SMA(fast) crosses above multiplier x SMA(slow)."""
        x = np.array([10, 10, 10, 10, 10, 20, 20], dtype=float)
        result = pi_cycle_top(x, fast=2, slow=4, multiplier=1.0)

        assert np.isnan(result[:3]).all()
        assert result[3] == 0.0
        assert result[4] == 0.0
        assert result[5] == 1.0
        assert result[6] == 0.0

    def test_undefined_without_slow_average(self):
        result = pi_cycle_top(random_walk(300), 111, 350, 2.0)
        assert np.isnan(result).all()


class TestExtras:
    """Tests for ROC, VWMA, ATR and all-time high."""

    def test_roc(self):
        result = roc(np.array([100.0, 110.0, 121.0]), 1)
        assert np.isnan(result[0])
        assert result[1] == pytest.approx(10.0)
        assert result[2] == pytest.approx(10.0)

    def test_vwma(self):
        x = np.array([10.0, 20.0, 30.0])
        v = np.array([1.0, 1.0, 2.0])
        result = vwma(x, v, 2)
        assert result[1] == pytest.approx(15.0)
        assert result[2] == pytest.approx((20.0 + 60.0) / 3.0)

    def test_vwma_without_volume(self):
        result = vwma(np.ones(5), np.zeros(5), 3)
        assert np.isnan(result).all()

    def test_atr_close(self):
        result = atr_close(np.array([10.0, 12.0, 11.0, 14.0]), 2)
        assert np.isnan(result[1])
        assert result[2] == pytest.approx(1.5)
        assert result[3] == pytest.approx(2.0)

    def test_all_time_high_skips_gaps(self):
        result = all_time_high(np.array([nan, 5.0, 3.0, nan, 7.0, 6.0]))
        assert np.isnan(result[0])
        assert list(result[1:]) == [5.0, 5.0, 5.0, 7.0, 7.0]


class TestSentiment:
    """Tests for Fear & Greed ingestion."""

    @pytest.mark.parametrize("value", [0, 50, 100])
    def test_valid(self, value):
        assert validate_sentiment(value) == value

    @pytest.mark.parametrize("value", [-1, 101, 50.5, True, "high", None])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            validate_sentiment(value)
