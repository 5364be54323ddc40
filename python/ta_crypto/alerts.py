"""Alert sink and per-asset status store used by the live decision cycle.

Delivery (email, chat, ...) is out of scope; :class:`LoggingAlertSink` just
logs the event. The status store remembers the last action per asset so the
cycle can alert on changes only and knows whether the asset is held.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from loguru import logger

from .types import Action, AlertEvent


class AlertSink(Protocol):
    def send(self, event: AlertEvent) -> None: ...


class LoggingAlertSink:
    def send(self, event: AlertEvent) -> None:
        prev = event.previous_action.value if event.previous_action else "-"
        rules = ",".join(event.rules) or "-"
        logger.info(
            "ALERT {} {}: {} -> {} (rules: {})",
            event.symbol,
            event.timestamp,
            prev,
            event.signal.action.value,
            rules,
        )


@dataclass(frozen=True)
class AssetStatus:
    symbol: str
    action: Action
    in_market: bool = False


class StatusStore(Protocol):
    def get(self, symbol: str) -> Optional[AssetStatus]: ...

    def set(self, status: AssetStatus) -> None: ...


class MemoryStatusStore:
    def __init__(self):
        self._data: dict[str, AssetStatus] = {}

    def get(self, symbol: str) -> Optional[AssetStatus]:
        return self._data.get(symbol)

    def set(self, status: AssetStatus) -> None:
        self._data[status.symbol] = status


class JsonStatusStore:
    """File-backed status store: ``{"BTC": {"action": "BUY", "in_market": true}, ...}``."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            return json.load(f)

    def get(self, symbol: str) -> Optional[AssetStatus]:
        entry = self._load().get(symbol)
        if entry is None:
            return None
        return AssetStatus(symbol=symbol, action=Action(entry["action"]), in_market=bool(entry["in_market"]))

    def set(self, status: AssetStatus) -> None:
        data = self._load()
        data[status.symbol] = {"action": status.action.value, "in_market": status.in_market}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
