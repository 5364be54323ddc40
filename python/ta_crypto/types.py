"""Shared types for the crypto signal engine.

The guiding principle is to keep the runtime objects small and explicit.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterable, Mapping, Optional

import numpy as np

from .errors import InsufficientHistory


def _is_missing(x: Optional[float]) -> bool:
    return x is None or (isinstance(x, float) and math.isnan(x))


@dataclass(frozen=True)
class PricePoint:
    """Daily close.

    ``close=None`` (or NaN) marks a missing observation; indicators never
    interpolate across it.
    """

    timestamp: date
    close: Optional[float]
    volume: Optional[float] = None

    def __post_init__(self):
        if not _is_missing(self.close) and not float(self.close) > 0:
            raise ValueError(f"close must be positive at {self.timestamp}, got {self.close}")

    @property
    def missing(self) -> bool:
        return _is_missing(self.close)


@dataclass(frozen=True)
class PriceSeries:
    """Ordered daily history for one asset (read-only to the engine)."""

    symbol: str
    points: tuple[PricePoint, ...]

    def __post_init__(self):
        object.__setattr__(self, "points", tuple(self.points))
        for prev, cur in zip(self.points, self.points[1:]):
            if not cur.timestamp > prev.timestamp:
                raise ValueError(
                    f"{self.symbol}: timestamps must be strictly increasing "
                    f"({prev.timestamp} -> {cur.timestamp})"
                )

    @classmethod
    def from_closes(
        cls,
        symbol: str,
        timestamps: Iterable[date],
        closes: Iterable[Optional[float]],
        volumes: Optional[Iterable[Optional[float]]] = None,
    ) -> "PriceSeries":
        ts = list(timestamps)
        cs = list(closes)
        vs = list(volumes) if volumes is not None else [None] * len(cs)
        if not (len(ts) == len(cs) == len(vs)):
            raise ValueError("timestamps, closes and volumes must have the same length")
        return cls(symbol=symbol, points=tuple(PricePoint(t, c, v) for t, c, v in zip(ts, cs, vs)))

    def __len__(self) -> int:
        return len(self.points)

    def timestamps(self) -> list[date]:
        return [p.timestamp for p in self.points]

    def closes(self) -> np.ndarray:
        return np.array(
            [float("nan") if p.missing else float(p.close) for p in self.points], dtype=np.float64
        )

    def volumes(self) -> np.ndarray:
        return np.array(
            [float("nan") if _is_missing(p.volume) else float(p.volume) for p in self.points],
            dtype=np.float64,
        )

    def tail(self, n: int) -> "PriceSeries":
        if n <= 0:
            return PriceSeries(symbol=self.symbol, points=())
        return PriceSeries(symbol=self.symbol, points=self.points[-n:])


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Indicator values at one timestamp; ``None`` means undefined."""

    timestamp: date
    values: Mapping[str, Optional[float]]

    def get(self, name: str) -> Optional[float]:
        return self.values.get(name)

    def require(self, name: str) -> float:
        v = self.values.get(name)
        if v is None:
            raise InsufficientHistory(name)
        return v


class Action(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


@dataclass(frozen=True)
class Signal:
    """Discrete action plus the rule tags that produced it (for auditability)."""

    action: Action
    rules: tuple[str, ...] = ()
    gated_by: Optional[str] = None

    @classmethod
    def hold(cls, gated_by: Optional[str] = None, rules: tuple[str, ...] = ()) -> "Signal":
        return cls(action=Action.HOLD, rules=rules, gated_by=gated_by)


class Mode(str, Enum):
    OUT_OF_MARKET = "OUT_OF_MARKET"
    IN_MARKET = "IN_MARKET"


@dataclass
class PortfolioState:
    """Single-asset, single-position account. Mutated forward in time by the simulator."""

    cash: float
    mode: Mode = Mode.OUT_OF_MARKET
    quantity: float = 0.0
    entry_price: float = float("nan")
    entry_timestamp: Optional[date] = None
    entry_cost: float = 0.0  # cash committed at entry (fee included)
    entry_fee: float = 0.0


@dataclass(frozen=True)
class TradeRecord:
    """A closed round trip (Buy -> Sell)."""

    symbol: str
    entry_timestamp: date
    entry_price: float
    exit_timestamp: date
    exit_price: float
    quantity: float
    fee_paid: float  # entry + exit fee
    pnl: float  # exit proceeds - entry cost


@dataclass(frozen=True)
class SimulationResult:
    symbol: str
    initial_cash: float
    final_value: float
    roi_pct: float
    trade_count: int  # executed fills (buys + sells)
    total_fees: float
    trades: tuple[TradeRecord, ...] = ()
    equity_curve: tuple[tuple[date, float], ...] = field(default=(), repr=False)
    max_drawdown: float = field(default=float("nan"), compare=False)
    open_position: bool = False


@dataclass(frozen=True)
class AlertEvent:
    """Emitted by the live cycle when an asset's action changes."""

    symbol: str
    timestamp: date
    signal: Signal
    previous_action: Optional[Action] = None

    @property
    def rules(self) -> tuple[str, ...]:
        return self.signal.rules
