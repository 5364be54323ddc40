"""Tests for alert sinks, status stores and logger setup."""

from datetime import date

import pytest
from loguru import logger

from ta_crypto.alerts import AssetStatus, JsonStatusStore, LoggingAlertSink, MemoryStatusStore
from ta_crypto.logger_config import init_logger
from ta_crypto.types import Action, AlertEvent, Signal


@pytest.fixture
def captured():
    messages = []
    handler_id = logger.add(messages.append, level="INFO", format="{message}")
    yield messages
    logger.remove(handler_id)


class TestLoggingAlertSink:
    def test_logs_transition(self, captured):
        event = AlertEvent(
            symbol="BTC",
            timestamp=date(2024, 5, 1),
            signal=Signal(Action.SELL, rules=("SELL_UPPER_BAND", "SELL_RSI_OVERBOUGHT")),
            previous_action=Action.BUY,
        )
        LoggingAlertSink().send(event)

        assert len(captured) == 1
        line = str(captured[0])
        assert "ALERT BTC 2024-05-01: BUY -> SELL" in line
        assert "SELL_UPPER_BAND,SELL_RSI_OVERBOUGHT" in line


class TestStatusStores:
    """Tests for the per-asset status stores."""

    def test_memory(self):
        store = MemoryStatusStore()
        assert store.get("BTC") is None
        store.set(AssetStatus("BTC", Action.BUY, in_market=True))
        assert store.get("BTC").in_market

    def test_json_persists(self, tmp_path):
        path = tmp_path / "nested" / "status.json"
        JsonStatusStore(path).set(AssetStatus("ETH", Action.SELL, in_market=False))
        JsonStatusStore(path).set(AssetStatus("BTC", Action.BUY, in_market=True))

        store = JsonStatusStore(path)
        assert store.get("ETH") == AssetStatus("ETH", Action.SELL, in_market=False)
        assert store.get("BTC") == AssetStatus("BTC", Action.BUY, in_market=True)


class TestInitLogger:
    def test_level_and_file_sink(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        try:
            level = init_logger("debug", log_dir=tmp_path / "logs")
            logger.info("hello")
            logger.complete()
            assert level == "DEBUG"
            assert (tmp_path / "logs" / "ta_crypto.log").exists()
        finally:
            logger.remove()
