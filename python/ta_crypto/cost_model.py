"""Flat proportional fee model used by the portfolio simulator."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidConfiguration


@dataclass(frozen=True)
class FeeModel:
    """Costs:
    - buy: fee = cash committed x fee_rate, taken before conversion to quantity
    - sell: fee = notional x fee_rate, taken from the proceeds
    """

    fee_rate: float

    def __post_init__(self):
        if not 0.0 <= self.fee_rate < 1.0:
            raise InvalidConfiguration(f"fee_rate must be within [0, 1), got {self.fee_rate}")

    def buy(self, cash: float, price: float) -> tuple[float, float]:
        """Return (quantity, fee) for converting all of ``cash`` at ``price``."""
        fee = float(cash) * self.fee_rate
        return (float(cash) - fee) / float(price), fee

    def sell(self, quantity: float, price: float) -> tuple[float, float]:
        """Return (proceeds, fee) for selling ``quantity`` at ``price``."""
        notional = float(quantity) * float(price)
        fee = notional * self.fee_rate
        return notional - fee, fee
