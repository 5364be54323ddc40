"""Configuration objects.

Style rules:
- keep signatures stable (no alias chaos)
- prefer explicit field names
- RuleParams has no defaults: every policy value is supplied by the caller
  (``RuleParams.reference()`` is the one named profile)
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import InvalidConfiguration


@dataclass(frozen=True)
class RuleParams:
    """Per-asset indicator windows, rule thresholds and fee rate.

    Immutable for the duration of one run. Validation happens here so a
    malformed profile fails before any asset is touched.
    """

    sma_windows: tuple[int, ...]
    bollinger_window: int
    bollinger_k: float
    rsi_period: int
    buy_rsi_threshold: float
    sell_rsi_threshold: float
    macd_fast: int
    macd_slow: int
    macd_signal: int
    pi_fast_window: int
    pi_slow_window: int
    pi_multiplier: float
    extreme_greed_threshold: int
    extreme_fear_threshold: int
    fee_rate: float

    def __post_init__(self):
        if isinstance(self.sma_windows, (str, bytes)) or not hasattr(self.sma_windows, "__iter__"):
            raise InvalidConfiguration(f"sma_windows must be a sequence of window lengths, got {self.sma_windows!r}")
        object.__setattr__(self, "sma_windows", tuple(self.sma_windows))
        windows = {
            "bollinger_window": self.bollinger_window,
            "rsi_period": self.rsi_period,
            "macd_fast": self.macd_fast,
            "macd_slow": self.macd_slow,
            "macd_signal": self.macd_signal,
            "pi_fast_window": self.pi_fast_window,
            "pi_slow_window": self.pi_slow_window,
        }
        for i, w in enumerate(self.sma_windows):
            windows[f"sma_windows[{i}]"] = w
        for name, w in windows.items():
            if isinstance(w, bool) or not isinstance(w, int) or w <= 0:
                raise InvalidConfiguration(f"{name} must be a positive integer, got {w!r}")

        if self.macd_fast >= self.macd_slow:
            raise InvalidConfiguration("macd_fast must be smaller than macd_slow")
        if self.pi_fast_window >= self.pi_slow_window:
            raise InvalidConfiguration("pi_fast_window must be smaller than pi_slow_window")
        if not self.bollinger_k >= 0:
            raise InvalidConfiguration(f"bollinger_k must be >= 0, got {self.bollinger_k}")
        if not self.pi_multiplier > 0:
            raise InvalidConfiguration(f"pi_multiplier must be > 0, got {self.pi_multiplier}")

        for name in ("buy_rsi_threshold", "sell_rsi_threshold"):
            v = getattr(self, name)
            if not 0.0 <= v <= 100.0:
                raise InvalidConfiguration(f"{name} must be within [0, 100], got {v}")
        if self.buy_rsi_threshold >= self.sell_rsi_threshold:
            raise InvalidConfiguration("buy_rsi_threshold must be below sell_rsi_threshold")

        for name in ("extreme_greed_threshold", "extreme_fear_threshold"):
            v = getattr(self, name)
            if not 0 <= v <= 100:
                raise InvalidConfiguration(f"{name} must be within [0, 100], got {v}")
        if self.extreme_fear_threshold >= self.extreme_greed_threshold:
            raise InvalidConfiguration("extreme_fear_threshold must be below extreme_greed_threshold")

        if not 0.0 <= self.fee_rate < 1.0:
            raise InvalidConfiguration(f"fee_rate must be within [0, 1), got {self.fee_rate}")

    @property
    def max_lookback(self) -> int:
        """Longest history any indicator needs before it becomes defined."""
        return max(
            max(self.sma_windows, default=1),
            self.bollinger_window,
            self.rsi_period + 1,
            self.macd_slow + self.macd_signal,
            self.pi_slow_window + 1,
        )

    @classmethod
    def reference(cls) -> "RuleParams":
        """Reference profile of the original alerting system.

        SMA 5/25/50/111/350, Bollinger 20 x 2.0, RSI 14 (buy <= 30, sell >= 70),
        MACD 12/26/9, Pi Cycle 111 vs 2 x 350, sentiment fear <= 20 / greed >= 80,
        fee 0.5%.
        """
        return cls(
            sma_windows=(5, 25, 50, 111, 350),
            bollinger_window=20,
            bollinger_k=2.0,
            rsi_period=14,
            buy_rsi_threshold=30.0,
            sell_rsi_threshold=70.0,
            macd_fast=12,
            macd_slow=26,
            macd_signal=9,
            pi_fast_window=111,
            pi_slow_window=350,
            pi_multiplier=2.0,
            extreme_greed_threshold=80,
            extreme_fear_threshold=20,
            fee_rate=0.005,
        )

    @classmethod
    def from_params_dict(cls, d: dict) -> "RuleParams":
        """Create RuleParams from a JSON-style dict.

        Keys may be snake_case or PascalCase (e.g., BollingerK). Unknown keys are
        ignored; missing keys raise InvalidConfiguration (no silent defaults).
        """
        mapping = {
            "SmaWindows": "sma_windows",
            "BollingerWindow": "bollinger_window",
            "BollingerK": "bollinger_k",
            "RsiPeriod": "rsi_period",
            "BuyRsiThreshold": "buy_rsi_threshold",
            "SellRsiThreshold": "sell_rsi_threshold",
            "MacdFast": "macd_fast",
            "MacdSlow": "macd_slow",
            "MacdSignal": "macd_signal",
            "PiFastWindow": "pi_fast_window",
            "PiSlowWindow": "pi_slow_window",
            "PiMultiplier": "pi_multiplier",
            "ExtremeGreedThreshold": "extreme_greed_threshold",
            "ExtremeFearThreshold": "extreme_fear_threshold",
            "FeeRate": "fee_rate",
        }
        names = {f.name for f in fields(cls)}
        kwargs = {}
        for k, v in (d or {}).items():
            if k in mapping:
                kwargs[mapping[k]] = v
            elif k in names:
                kwargs[k] = v

        missing = sorted(names - set(kwargs))
        if missing:
            raise InvalidConfiguration(f"missing rule parameters: {missing}")
        return cls(**kwargs)


@dataclass(frozen=True)
class BacktestConfig:
    """Backtest run configuration.

    Notes:
    - the simulated window length is passed per run; indicators are computed
      on ``days + warmup_days`` points so long windows (SMA350) are defined
      inside the window.
    - ``warmup_days=None`` means "use RuleParams.max_lookback".
    """

    initial_capital: float = 10_000.0
    warmup_days: Optional[int] = None
    max_workers: int = 1

    def __post_init__(self):
        if not self.initial_capital > 0:
            raise InvalidConfiguration("initial_capital must be positive")
        if self.warmup_days is not None and self.warmup_days < 0:
            raise InvalidConfiguration("warmup_days must be >= 0")
        if self.max_workers <= 0:
            raise InvalidConfiguration("max_workers must be positive")

    def history_days(self, params: RuleParams, days: int) -> int:
        if days <= 0:
            raise InvalidConfiguration("days must be positive")
        warmup = params.max_lookback if self.warmup_days is None else int(self.warmup_days)
        return int(days) + warmup


@dataclass(frozen=True)
class DataSettings:
    """Credentials and endpoints for the data collaborators (loaded from .env)."""

    cryptocompare_api_keys: tuple[str, ...] = ()
    quote_currency: str = "USD"
    http_timeout: float = 30.0
    status_path: Path = field(default=Path("data/status.json"))

    @classmethod
    def from_env(cls) -> "DataSettings":
        load_dotenv()
        raw = os.getenv("CRYPTOCOMPARE_API_KEYS") or os.getenv("CRYPTOCOMPARE_API_KEY", "")
        keys = tuple(k.strip() for k in raw.split(",") if k.strip())
        return cls(
            cryptocompare_api_keys=keys,
            quote_currency=os.getenv("QUOTE_CURRENCY", "USD").upper(),
            http_timeout=float(os.getenv("HTTP_TIMEOUT", "30")),
            status_path=Path(os.getenv("STATUS_PATH", "data/status.json")),
        )


def load_portfolio(path: str | Path) -> list[str]:
    """Read the asset list file: ``[{"portfolio": ["BTC", "ETH", ...]}, ...]``.

    Symbols are trimmed, upper-cased and de-duplicated (first occurrence wins).
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(str(path))
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = [data]
    symbols: list[str] = []
    for entry in data:
        if not isinstance(entry, dict) or "portfolio" not in entry:
            raise InvalidConfiguration(f"{path}: every entry needs a 'portfolio' list")
        for s in entry["portfolio"]:
            sym = str(s).strip().strip('"').upper()
            if sym:
                symbols.append(sym)
    return list(dict.fromkeys(symbols))
