"""Tests for reporting and ranking."""

from datetime import date

import pandas as pd
import pytest

from conftest import make_series
from ta_crypto.metrics import cagr, equity_series, max_drawdown
from ta_crypto.report import correlation_matrix, format_table, rank, ranking_frame, write_report
from ta_crypto.types import SimulationResult


def make_result(symbol, roi, trades=0, initial=10_000.0, final_value=None) -> SimulationResult:
    return SimulationResult(
        symbol=symbol,
        initial_cash=initial,
        final_value=initial * (1.0 + roi / 100.0) if final_value is None else final_value,
        roi_pct=roi,
        trade_count=trades,
        total_fees=0.0,
    )


class TestRank:
    """Tests for ROI ranking."""

    def test_roi_descending(self):
        ranked = rank({"A": make_result("A", 10.0), "B": make_result("B", 5.0), "C": make_result("C", 20.0)})

        assert [x.symbol for x in ranked] == ["C", "A", "B"]
        assert [x.rank for x in ranked] == [1, 2, 3]

    def test_tie_prefers_fewer_trades(self):
        ranked = rank({"A": make_result("A", 10.0, trades=4), "B": make_result("B", 10.0, trades=2)})
        assert [x.symbol for x in ranked] == ["B", "A"]

    def test_tie_prefers_higher_final_value(self):
        """Equal ROI and trade count: the larger final value ranks first."""
        ranked = rank(
            {
                "A": make_result("A", 10.0, trades=2, initial=1_000.0, final_value=1_100.0),
                "B": make_result("B", 10.0, trades=2, initial=5_000.0, final_value=5_500.0),
            }
        )
        assert [x.symbol for x in ranked] == ["B", "A"]

    def test_empty(self):
        assert rank({}) == []

    def test_ranking_frame(self):
        df = ranking_frame(rank({"A": make_result("A", 10.0), "B": make_result("B", -5.0)}))

        assert list(df["symbol"]) == ["A", "B"]
        assert df.loc[0, "roi_pct"] == pytest.approx(10.0)
        assert df.loc[1, "final_value"] == pytest.approx(9_500.0)

    def test_format_table(self):
        text = format_table(rank({"BTC": make_result("BTC", 12.5, trades=3)}))
        assert "BTC" in text
        assert "12.50%" in text


class TestCorrelation:
    """Tests for the close-price correlation matrix."""

    def test_matrix(self):
        a = make_series([1.0, 2.0, 3.0, 4.0], symbol="A")
        b = make_series([2.0, 4.0, 6.0, 8.0], symbol="B")
        c = make_series([4.0, 3.0, 2.0, 1.0], symbol="C")
        corr = correlation_matrix({"A": a, "B": b, "C": c})

        assert corr.loc["A", "A"] == pytest.approx(1.0)
        assert corr.loc["A", "B"] == pytest.approx(1.0)
        assert corr.loc["A", "C"] == pytest.approx(-1.0)

    def test_empty(self):
        assert correlation_matrix({}).empty


class TestWriteReport:
    """Tests for CSV export."""

    def test_files(self, tmp_path):
        results = {"A": make_result("A", 10.0), "B": make_result("B", 5.0)}
        paths = write_report(results, tmp_path, failures={"C": "data unavailable for C: timeout"})

        ranking = pd.read_csv(paths["ranking"])
        assert list(ranking["symbol"]) == ["A", "B"]
        assert paths["trades_A"].exists()
        assert paths["equity_B"].exists()
        failures = pd.read_csv(paths["failures"])
        assert list(failures["symbol"]) == ["C"]

    def test_no_failures_file(self, tmp_path):
        paths = write_report({"A": make_result("A", 1.0)}, tmp_path)
        assert "failures" not in paths


class TestMetrics:
    """Tests for equity-curve metrics."""

    def test_cagr_one_year_double(self):
        eq = equity_series([(date(2023, 1, 1), 100.0), (date(2024, 1, 1), 200.0)])
        assert cagr(eq) == pytest.approx(1.0)

    def test_empty_curve(self):
        assert pd.isna(max_drawdown(equity_series([])))
