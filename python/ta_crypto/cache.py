"""Optional price cache keyed by (symbol, date).

The engine never needs it for correctness. :class:`CachingProvider` writes
every successful fetch through and serves the cached history when the
upstream provider fails.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Optional, Protocol

from loguru import logger

from .data_provider import PriceProvider
from .errors import DataUnavailable
from .types import PricePoint, PriceSeries


class PriceCache(Protocol):
    def get(self, symbol: str, day: date) -> Optional[PricePoint]: ...

    def put(self, symbol: str, point: PricePoint) -> None: ...

    def latest(self, symbol: str) -> Optional[date]: ...


class MemoryCache:
    def __init__(self):
        self._data: dict[tuple[str, date], PricePoint] = {}
        self._latest: dict[str, date] = {}

    def get(self, symbol: str, day: date) -> Optional[PricePoint]:
        return self._data.get((symbol.upper(), day))

    def put(self, symbol: str, point: PricePoint) -> None:
        sym = symbol.upper()
        self._data[(sym, point.timestamp)] = point
        if sym not in self._latest or point.timestamp > self._latest[sym]:
            self._latest[sym] = point.timestamp

    def latest(self, symbol: str) -> Optional[date]:
        return self._latest.get(symbol.upper())

    def __len__(self) -> int:
        return len(self._data)


class CachingProvider:
    """Write-through cache in front of a PriceProvider, used as fallback on failure."""

    def __init__(self, provider: PriceProvider, cache: PriceCache):
        self.provider = provider
        self.cache = cache

    def fetch_history(self, symbol: str, days: int) -> PriceSeries:
        try:
            series = self.provider.fetch_history(symbol, days)
        except DataUnavailable as e:
            cached = self._from_cache(symbol, days)
            if cached is None:
                raise
            logger.warning("{}: {}; using {} cached points", symbol, e.reason, len(cached))
            return cached

        for point in series.points:
            if not point.missing:
                self.cache.put(symbol, point)
        return series

    def _from_cache(self, symbol: str, days: int) -> Optional[PriceSeries]:
        last = self.cache.latest(symbol)
        if last is None:
            return None
        points = []
        for offset in range(int(days) - 1, -1, -1):
            day = last - timedelta(days=offset)
            points.append(self.cache.get(symbol, day) or PricePoint(day, None))
        return PriceSeries(symbol=symbol.upper(), points=tuple(points))
