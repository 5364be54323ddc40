"""Single-asset, single-position portfolio simulator.

Replays a signal stream against cash/quantity accounting:
- Buy while out of market converts all cash at the close (fee taken first)
- Sell while in market converts all quantity back to cash (fee from proceeds)
- Hold, Buy-while-in and Sell-while-out change nothing
- a position still open at the end is marked to the last known close and
  left open (no TradeRecord)

No leverage, no shorts, no randomness.
"""

from __future__ import annotations

import math
from datetime import date
from typing import List, Optional, Sequence, Tuple

from loguru import logger

from .cost_model import FeeModel
from .errors import InvariantViolation
from .metrics import equity_series, max_drawdown, roi_pct
from .types import Action, Mode, PortfolioState, PriceSeries, SimulationResult, Signal, TradeRecord


def _is_finite(x: Optional[float]) -> bool:
    return x is not None and math.isfinite(x)


class PortfolioSimulator:
    """Deterministic single pass over (timestamp, close, signal) steps."""

    def __init__(self, symbol: str, fee_rate: float, initial_cash: float):
        if not initial_cash > 0:
            raise ValueError("initial_cash must be positive")
        self.symbol = symbol
        self.fee_model = FeeModel(fee_rate)
        self.initial_cash = float(initial_cash)

        self.state = PortfolioState(cash=self.initial_cash)
        self.trade_log: List[TradeRecord] = []
        self.equity_curve: List[Tuple[date, float]] = []
        self.fills = 0
        self.total_fees = 0.0

        self._last_price = float("nan")

    # ---------- public API ----------

    def run(self, series: PriceSeries, signals: Sequence[Signal]) -> SimulationResult:
        if len(series) != len(signals):
            raise ValueError(
                f"{self.symbol}: {len(signals)} signals for {len(series)} price points"
            )
        for point, signal in zip(series.points, signals):
            self.step(point.timestamp, None if point.missing else float(point.close), signal)
        return self.result()

    def step(self, ts: date, price: Optional[float], signal: Signal) -> None:
        """Process one time step."""
        if _is_finite(price):
            self._last_price = float(price)

        action = signal.action
        if action is not Action.HOLD and not _is_finite(price):
            raise ValueError(f"{self.symbol}: {action.value} signal at {ts} has no price")

        if action is Action.BUY and self.state.mode is Mode.OUT_OF_MARKET:
            self._enter(ts, float(price), signal)
        elif action is Action.SELL and self.state.mode is Mode.IN_MARKET:
            self._exit(ts, float(price), signal)

        self._check_invariants(ts)
        self._append_equity(ts)

    def value(self) -> float:
        """Cash plus holdings marked at the last known close."""
        if self.state.quantity == 0.0:
            return float(self.state.cash)
        return float(self.state.cash + self.state.quantity * self._last_price)

    def result(self) -> SimulationResult:
        final_value = self.value()
        mdd = max_drawdown(equity_series(self.equity_curve))
        return SimulationResult(
            symbol=self.symbol,
            initial_cash=self.initial_cash,
            final_value=final_value,
            roi_pct=roi_pct(self.initial_cash, final_value),
            trade_count=self.fills,
            total_fees=self.total_fees,
            trades=tuple(self.trade_log),
            equity_curve=tuple(self.equity_curve),
            max_drawdown=mdd,
            open_position=self.state.mode is Mode.IN_MARKET,
        )

    # ---------- execution/accounting ----------

    def _enter(self, ts: date, price: float, signal: Signal) -> None:
        st = self.state
        cost = st.cash
        qty, fee = self.fee_model.buy(cost, price)

        st.cash = 0.0
        st.quantity = qty
        st.mode = Mode.IN_MARKET
        st.entry_price = price
        st.entry_timestamp = ts
        st.entry_cost = cost
        st.entry_fee = fee

        self.fills += 1
        self.total_fees += fee
        logger.debug(
            "{} BUY {} @ {:.6g} qty={:.8g} fee={:.4f} rules={}",
            self.symbol, ts, price, qty, fee, ",".join(signal.rules),
        )

    def _exit(self, ts: date, price: float, signal: Signal) -> None:
        st = self.state
        proceeds, fee = self.fee_model.sell(st.quantity, price)
        pnl = proceeds - st.entry_cost

        self.trade_log.append(
            TradeRecord(
                symbol=self.symbol,
                entry_timestamp=st.entry_timestamp,
                entry_price=st.entry_price,
                exit_timestamp=ts,
                exit_price=price,
                quantity=st.quantity,
                fee_paid=st.entry_fee + fee,
                pnl=pnl,
            )
        )
        logger.debug(
            "{} SELL {} @ {:.6g} pnl={:.4f} fee={:.4f} rules={}",
            self.symbol, ts, price, pnl, fee, ",".join(signal.rules),
        )

        st.cash = proceeds
        st.quantity = 0.0
        st.mode = Mode.OUT_OF_MARKET
        st.entry_price = float("nan")
        st.entry_timestamp = None
        st.entry_cost = 0.0
        st.entry_fee = 0.0

        self.fills += 1
        self.total_fees += fee

    def _check_invariants(self, ts: date) -> None:
        st = self.state
        if not (math.isfinite(st.cash) and math.isfinite(st.quantity)):
            raise InvariantViolation(f"{self.symbol} @ {ts}: non-finite balance {st}")
        if st.cash < 0.0 or st.quantity < 0.0:
            raise InvariantViolation(f"{self.symbol} @ {ts}: negative balance {st}")
        if st.mode is Mode.OUT_OF_MARKET and st.quantity != 0.0:
            raise InvariantViolation(f"{self.symbol} @ {ts}: holdings while out of market")
        if st.mode is Mode.IN_MARKET and (st.cash != 0.0 or st.quantity <= 0.0):
            raise InvariantViolation(f"{self.symbol} @ {ts}: cash and holdings both non-zero")

    def _append_equity(self, ts: date) -> None:
        self.equity_curve.append((ts, self.value()))


def simulate(
    series: PriceSeries,
    signals: Sequence[Signal],
    fee_rate: float,
    initial_cash: float = 10_000.0,
) -> SimulationResult:
    """Replay ``signals`` (aligned index-by-index with ``series``)."""
    return PortfolioSimulator(series.symbol, fee_rate, initial_cash).run(series, signals)
