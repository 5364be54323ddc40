"""Live decisioning: one decision per asset per cycle, alerts on change."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Optional, Union

from loguru import logger

from .alerts import AlertSink, AssetStatus, LoggingAlertSink, MemoryStatusStore, StatusStore
from .config import RuleParams
from .data_manager import IndicatorFrame
from .data_provider import PriceProvider
from .errors import DataUnavailable
from .signals import decide
from .types import Action, AlertEvent, PriceSeries, Signal

LatestData = Mapping[str, Union[PriceSeries, DataUnavailable]]


def fetch_latest(assets: Sequence[str], provider: PriceProvider, days: int) -> dict:
    """Fetch history for each asset; a failed fetch is kept as its DataUnavailable."""
    out: dict[str, Union[PriceSeries, DataUnavailable]] = {}
    for symbol in assets:
        try:
            out[symbol] = provider.fetch_history(symbol, days)
        except DataUnavailable as e:
            out[symbol] = e
    return out


def decide_latest(
    series: PriceSeries,
    params: RuleParams,
    sentiment: Optional[int],
    *,
    in_market: bool,
) -> Signal:
    """Decision on the last point of ``series`` (with its predecessor as prior)."""
    if len(series) == 0:
        raise DataUnavailable(series.symbol, "empty history")
    frame = IndicatorFrame(series, params)
    last = len(frame) - 1
    prior = frame.snapshot(last - 1) if last > 0 else None
    return decide(frame.snapshot(last), prior, sentiment, params, in_market=in_market)


def run_decision_cycle(
    assets: Sequence[str],
    latest_data: LatestData,
    params: RuleParams,
    *,
    sentiment: Optional[int] = None,
    status_store: Optional[StatusStore] = None,
    alert_sink: Optional[AlertSink] = None,
) -> dict[str, Signal]:
    """Decide every asset once.

    Assets whose data is missing or failed are skipped (logged, absent from the
    result). The in-market flag of each asset comes from ``status_store``; an
    AlertEvent goes to ``alert_sink`` only when the action differs from the
    stored one (Hold for an asset with no status yet), and the store is then
    updated. Sink and store failures are logged per asset and never stop the
    cycle; an asset whose status cannot be read is skipped.
    """
    store = status_store if status_store is not None else MemoryStatusStore()
    sink = alert_sink if alert_sink is not None else LoggingAlertSink()

    decisions: dict[str, Signal] = {}
    for symbol in assets:
        data = latest_data.get(symbol)
        if data is None:
            logger.warning("{}: no data in this cycle, skipped", symbol)
            continue
        if isinstance(data, DataUnavailable):
            logger.warning("{}: skipped ({})", symbol, data.reason)
            continue

        try:
            status = store.get(symbol)
        except Exception:
            logger.exception("{}: status store read failed, skipped", symbol)
            continue
        in_market = status.in_market if status is not None else False
        try:
            signal = decide_latest(data, params, sentiment, in_market=in_market)
        except DataUnavailable as e:
            logger.warning("{}: skipped ({})", symbol, e.reason)
            continue
        decisions[symbol] = signal

        previous = status.action if status is not None else None
        # an asset never seen before counts as Hold
        if signal.action is not (previous or Action.HOLD):
            event = AlertEvent(
                symbol=symbol,
                timestamp=data.points[-1].timestamp,
                signal=signal,
                previous_action=previous,
            )
            try:
                sink.send(event)
            except Exception:
                # delivery failure still records the new status
                logger.exception("{}: alert delivery failed", symbol)
        if signal.action is Action.BUY:
            in_market = True
        elif signal.action is Action.SELL:
            in_market = False
        try:
            store.set(AssetStatus(symbol=symbol, action=signal.action, in_market=in_market))
        except Exception:
            logger.exception("{}: status store write failed", symbol)

    logger.info(
        "Decision cycle: {}",
        ", ".join(f"{s}={sig.action.value}" for s, sig in decisions.items()) or "no decisions",
    )
    return decisions
