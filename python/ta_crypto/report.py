"""Reporting and ranking across assets.

Pure aggregation over finished SimulationResults; nothing is re-simulated.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from pathlib import Path

import pandas as pd

from .metrics import cagr, equity_series
from .types import PriceSeries, SimulationResult


@dataclass(frozen=True)
class RankedResult:
    rank: int
    symbol: str
    result: SimulationResult

    @property
    def roi_pct(self) -> float:
        return self.result.roi_pct


def _sort_key(item: tuple[str, SimulationResult]):
    _, r = item
    return (-r.roi_pct, r.trade_count, -r.final_value)


def rank(results: Mapping[str, SimulationResult]) -> list[RankedResult]:
    """ROI descending; ties go to fewer trades, then to the higher final value."""
    ordered = sorted(results.items(), key=_sort_key)
    return [RankedResult(rank=i + 1, symbol=sym, result=r) for i, (sym, r) in enumerate(ordered)]


def ranking_frame(ranked: list[RankedResult]) -> pd.DataFrame:
    rows = [
        {
            "rank": x.rank,
            "symbol": x.symbol,
            "roi_pct": x.result.roi_pct,
            "final_value": x.result.final_value,
            "trade_count": x.result.trade_count,
            "total_fees": x.result.total_fees,
            "max_drawdown": x.result.max_drawdown,
            "cagr": cagr(equity_series(x.result.equity_curve)),
            "open_position": x.result.open_position,
        }
        for x in ranked
    ]
    columns = ["rank", "symbol", "roi_pct", "final_value", "trade_count", "total_fees", "max_drawdown", "cagr", "open_position"]
    return pd.DataFrame(rows, columns=columns)


def format_table(ranked: list[RankedResult]) -> str:
    """Fixed-width text table (for logs and the CLI)."""
    lines = [f"{'Rank':<5} {'Crypto':<10} {'ROI':>10} {'Final Value':>15} {'# Trades':>9}", "-" * 53]
    for x in ranked:
        r = x.result
        lines.append(f"{x.rank:<5} {x.symbol:<10} {r.roi_pct:>9.2f}% {r.final_value:>14.2f}$ {r.trade_count:>9}")
    return "\n".join(lines)


def correlation_matrix(series_by_symbol: Mapping[str, PriceSeries]) -> pd.DataFrame:
    """Pearson correlation of daily closes, aligned on date (pairwise complete)."""
    closes = {
        sym: pd.Series(s.closes(), index=pd.to_datetime(s.timestamps()), dtype=float)
        for sym, s in series_by_symbol.items()
    }
    if not closes:
        return pd.DataFrame()
    return pd.DataFrame(closes).corr(method="pearson")


def write_report(
    results: Mapping[str, SimulationResult],
    output_dir: str | Path,
    failures: Mapping[str, str] | None = None,
) -> dict[str, Path]:
    """Write ranking, trades, equity curves and failures as CSV files."""
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    paths: dict[str, Path] = {}

    ranked = rank(results)
    ranking_path = out_dir / "ranking.csv"
    ranking_frame(ranked).to_csv(ranking_path, index=False, encoding="utf-8")
    paths["ranking"] = ranking_path

    for sym, r in results.items():
        safe = sym.replace(".", "_").replace("/", "_")
        tr_path = out_dir / f"trades_{safe}.csv"
        eq_path = out_dir / f"equity_{safe}.csv"
        pd.DataFrame([asdict(t) for t in r.trades]).to_csv(tr_path, index=False, encoding="utf-8")
        equity_series(r.equity_curve).to_frame().to_csv(eq_path, encoding="utf-8")
        paths[f"trades_{sym}"] = tr_path
        paths[f"equity_{sym}"] = eq_path

    if failures:
        fail_path = out_dir / "failures.csv"
        pd.DataFrame(
            [{"symbol": s, "error": e} for s, e in failures.items()], columns=["symbol", "error"]
        ).to_csv(fail_path, index=False, encoding="utf-8")
        paths["failures"] = fail_path

    return paths
