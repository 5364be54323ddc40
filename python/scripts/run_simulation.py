"""Backtest one crypto (or the whole portfolio) over the last N days and rank by ROI."""

from __future__ import annotations

import argparse
from pathlib import Path

from loguru import logger

from _common import add_common_args, build_provider, build_sentiment, load_params
from ta_crypto.backtest import ALL, run_simulation
from ta_crypto.config import BacktestConfig, DataSettings, load_portfolio
from ta_crypto.logger_config import init_logger
from ta_crypto.report import correlation_matrix, format_table, rank, write_report


def main() -> None:
    p = argparse.ArgumentParser()
    p.add_argument("--symbol", type=str, default=ALL, help='Crypto symbol (e.g. BTC) or "ALL" for the portfolio.')
    p.add_argument("--days", type=int, default=365, help="Simulated window in days.")
    p.add_argument("--initial_capital", type=float, default=10_000.0)
    p.add_argument("--max_workers", type=int, default=1)
    p.add_argument("--output_dir", type=str, default="outputs")
    p.add_argument("--correlation", action="store_true", help="Also write the close-price correlation matrix.")
    add_common_args(p)
    args = p.parse_args()

    init_logger(args.log_level)
    settings = DataSettings.from_env()
    params = load_params(args.params_json)
    config = BacktestConfig(initial_capital=args.initial_capital, max_workers=args.max_workers)
    provider = build_provider(args, settings)
    sentiment = build_sentiment(args.sentiment, settings)

    portfolio = None
    if args.symbol.strip().upper() == ALL:
        portfolio = load_portfolio(args.portfolio)

    run = run_simulation(
        args.symbol,
        args.days,
        params,
        provider=provider,
        sentiment=sentiment,
        config=config,
        portfolio=portfolio,
    )
    results = {run.symbol: run} if portfolio is None else run
    failures = getattr(run, "failures", None)

    paths = write_report(results, args.output_dir, failures=failures)
    print(format_table(rank(results)))

    if args.correlation and portfolio is not None and len(run.series) > 1:
        corr_path = Path(args.output_dir) / "correlation.csv"
        correlation_matrix(run.series).to_csv(corr_path, encoding="utf-8")
        paths["correlation"] = corr_path

    for name, path in paths.items():
        logger.info("{}: {}", name, path)


if __name__ == "__main__":
    main()
