"""Backtest runner: fetch, compute indicators, replay signals, rank."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date
from typing import Iterator, Optional, Union

from loguru import logger

from .config import BacktestConfig, RuleParams
from .data_manager import IndicatorFrame
from .data_provider import PriceProvider, SentimentProvider
from .errors import DataUnavailable, InvalidConfiguration
from .report import RankedResult, format_table, rank
from .signals import generate_signals
from .simulator import simulate
from .types import PriceSeries, SimulationResult

ALL = "ALL"

SentimentSource = Union[None, int, Mapping[date, int], SentimentProvider]


class MultiAssetRun(Mapping):
    """Per-symbol results of one multi-asset run plus the assets that failed.

    Iteration follows the requested symbol order; failed symbols are only in
    ``failures`` (symbol -> error message). ``series`` holds the simulated
    window of each successful asset, for reports that need the prices.
    """

    def __init__(
        self,
        results: dict[str, SimulationResult],
        failures: dict[str, str],
        series: Optional[dict[str, PriceSeries]] = None,
    ):
        self._results = dict(results)
        self.failures = dict(failures)
        self.series = dict(series or {})

    def __getitem__(self, symbol: str) -> SimulationResult:
        return self._results[symbol]

    def __iter__(self) -> Iterator[str]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def ranked(self) -> list[RankedResult]:
        return rank(self._results)


def simulate_series(
    series: PriceSeries,
    params: RuleParams,
    *,
    days: Optional[int] = None,
    sentiment: Union[None, int, Mapping[date, int]] = None,
    initial_capital: float = 10_000.0,
) -> SimulationResult:
    """Indicators over the whole series, simulation over the last ``days`` points.

    Earlier points are warmup: they feed the indicator windows and the prior
    snapshot of the first simulated step but never trade.
    """
    frame = IndicatorFrame(series, params)
    start = 0 if days is None else max(0, len(series) - int(days))
    signals = generate_signals(frame, params, sentiment, start=start)
    window = series.tail(len(series) - start)
    return simulate(window, signals[start:], params.fee_rate, initial_capital)


def _resolve_sentiment(sentiment: SentimentSource, history_days: int):
    if sentiment is None or isinstance(sentiment, (int, Mapping)):
        return sentiment
    try:
        return sentiment.fetch_sentiment_history(history_days)
    except DataUnavailable as e:
        logger.warning("Sentiment unavailable ({}); running without the sentiment gate", e.reason)
        return None


def _resolve_symbols(symbol_or_all, portfolio: Optional[Sequence[str]]) -> Optional[list[str]]:
    """None for a single-symbol run, else the ordered, de-duplicated symbol list."""
    if isinstance(symbol_or_all, str):
        if symbol_or_all.strip().upper() != ALL:
            return None
        if not portfolio:
            raise InvalidConfiguration("symbol 'ALL' needs a portfolio list")
        symbols = portfolio
    else:
        symbols = symbol_or_all
    return list(dict.fromkeys(s.strip().upper() for s in symbols))


def run_simulation(
    symbol_or_all: Union[str, Sequence[str]],
    days: int,
    params: RuleParams,
    *,
    provider: PriceProvider,
    sentiment: SentimentSource = None,
    config: BacktestConfig = BacktestConfig(),
    portfolio: Optional[Sequence[str]] = None,
) -> Union[SimulationResult, MultiAssetRun]:
    """Backtest one symbol (-> SimulationResult) or many (-> MultiAssetRun).

    ``symbol_or_all`` is a symbol, ``"ALL"`` (uses ``portfolio``) or a sequence
    of symbols. ``sentiment`` may be a fixed reading, a date -> reading map or a
    SentimentProvider.
    """
    history_days = config.history_days(params, days)
    symbols = _resolve_symbols(symbol_or_all, portfolio)
    gate = _resolve_sentiment(sentiment, history_days)

    def run_one(symbol: str) -> tuple[PriceSeries, SimulationResult]:
        series = provider.fetch_history(symbol, history_days)
        if len(series) < days:
            logger.warning("{}: only {} of {} requested days available", symbol, len(series), days)
        result = simulate_series(
            series, params, days=days, sentiment=gate, initial_capital=config.initial_capital
        )
        logger.debug("{}: ROI {:.2f}% over {} trades", symbol, result.roi_pct, result.trade_count)
        return series.tail(days), result

    if symbols is None:
        return run_one(symbol_or_all.strip().upper())[1]

    results: dict[str, tuple[PriceSeries, SimulationResult]] = {}
    failures: dict[str, str] = {}

    def record(symbol: str, exc: Exception) -> None:
        failures[symbol] = str(exc)
        logger.warning("{}: skipped ({})", symbol, exc)

    if config.max_workers > 1 and len(symbols) > 1:
        with ThreadPoolExecutor(max_workers=config.max_workers) as pool:
            futures = {pool.submit(run_one, s): s for s in symbols}
            for fut in as_completed(futures):
                symbol = futures[fut]
                try:
                    results[symbol] = fut.result()
                except (DataUnavailable, ValueError) as e:
                    record(symbol, e)
    else:
        for symbol in symbols:
            try:
                results[symbol] = run_one(symbol)
            except (DataUnavailable, ValueError) as e:
                record(symbol, e)

    done = [s for s in symbols if s in results]
    run = MultiAssetRun(
        {s: results[s][1] for s in done},
        {s: failures[s] for s in symbols if s in failures},
        {s: results[s][0] for s in done},
    )
    logger.info(
        "Simulated {} assets over {} days ({} failed)\n{}",
        len(run),
        days,
        len(run.failures),
        format_table(run.ranked()),
    )
    return run
