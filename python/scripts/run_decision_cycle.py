"""Run one live decision cycle over the portfolio and alert on changed actions."""

from __future__ import annotations

import argparse

from loguru import logger

from _common import add_common_args, build_provider, build_sentiment, load_params
from ta_crypto.alerts import JsonStatusStore, LoggingAlertSink
from ta_crypto.config import DataSettings, load_portfolio
from ta_crypto.errors import DataUnavailable
from ta_crypto.live import fetch_latest, run_decision_cycle
from ta_crypto.logger_config import init_logger


def main() -> None:
    p = argparse.ArgumentParser()
    p.add_argument("--symbols", type=str, nargs="*", default=None, help="Override the portfolio file.")
    p.add_argument("--status_path", type=str, default=None, help="JSON status store (default from STATUS_PATH).")
    add_common_args(p)
    args = p.parse_args()

    init_logger(args.log_level)
    settings = DataSettings.from_env()
    params = load_params(args.params_json)
    provider = build_provider(args, settings)

    assets = [s.upper() for s in args.symbols] if args.symbols else load_portfolio(args.portfolio)
    latest = fetch_latest(assets, provider, params.max_lookback + 1)

    sentiment = build_sentiment(args.sentiment, settings)
    if sentiment is not None and not isinstance(sentiment, int):
        try:
            sentiment = sentiment.fetch_sentiment()
        except DataUnavailable as e:
            logger.warning("Sentiment unavailable ({}); deciding without the gate", e.reason)
            sentiment = None

    decisions = run_decision_cycle(
        assets,
        latest,
        params,
        sentiment=sentiment,
        status_store=JsonStatusStore(args.status_path or settings.status_path),
        alert_sink=LoggingAlertSink(),
    )
    for symbol, signal in decisions.items():
        print(f"{symbol:<10} {signal.action.value:<5} {','.join(signal.rules) or '-'}")


if __name__ == "__main__":
    main()
