"""Error taxonomy.

- InsufficientHistory: an indicator is undefined at a step; rules treat it as "no fire".
- DataUnavailable: an upstream fetch failed; the asset is skipped for this run/cycle.
- InvalidConfiguration: malformed RuleParams / BacktestConfig; raised at construction.
- InvariantViolation: accounting bug inside the simulator; never corrected silently.

Degenerate computations (flat windows, zero average loss) are resolved by
fallback values inside the indicator functions and are not errors.
"""

from __future__ import annotations


class TaCryptoError(Exception):
    """Base class for all engine errors."""


class InsufficientHistory(TaCryptoError):
    def __init__(self, indicator: str):
        super().__init__(f"indicator '{indicator}' is undefined at this step")
        self.indicator = indicator


class DataUnavailable(TaCryptoError):
    def __init__(self, symbol: str, reason: str):
        super().__init__(f"data unavailable for {symbol}: {reason}")
        self.symbol = symbol
        self.reason = reason


class InvalidConfiguration(TaCryptoError, ValueError):
    pass


class InvariantViolation(TaCryptoError, AssertionError):
    pass
