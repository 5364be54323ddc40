"""Shared argument handling for the command-line scripts."""

from __future__ import annotations

import argparse
import json

from ta_crypto.cache import CachingProvider, MemoryCache
from ta_crypto.config import DataSettings, RuleParams
from ta_crypto.data_provider import CryptoCompareProvider, CsvProvider, FearGreedProvider, KeyRotation, YfinanceProvider


def add_common_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--source", type=str, default="cryptocompare", choices=["cryptocompare", "yfinance", "csv"])
    p.add_argument("--csv_dir", type=str, default="data/prices", help="Directory of <SYMBOL>.csv files (--source csv).")
    p.add_argument("--portfolio", type=str, default="assets/options.json", help='Asset list file ([{"portfolio": [...]}]).')
    p.add_argument("--params_json", type=str, default=None, help="RuleParams JSON (snake_case or PascalCase keys).")
    p.add_argument(
        "--sentiment",
        type=str,
        default="feed",
        help='Fear & Greed reading: an integer 0-100, "feed" (alternative.me) or "none".',
    )
    p.add_argument("--cache", action="store_true", help="Serve the last good fetch when the source fails.")
    p.add_argument("--log_level", type=str, default=None)


def load_params(path: str | None) -> RuleParams:
    if not path:
        return RuleParams.reference()
    with open(path, "r", encoding="utf-8") as f:
        return RuleParams.from_params_dict(json.load(f))


def build_provider(args, settings: DataSettings):
    if args.source == "csv":
        provider = CsvProvider(args.csv_dir)
    elif args.source == "yfinance":
        provider = YfinanceProvider(quote_currency=settings.quote_currency)
    else:
        provider = CryptoCompareProvider(
            KeyRotation(settings.cryptocompare_api_keys),
            quote_currency=settings.quote_currency,
            timeout=settings.http_timeout,
        )
    if getattr(args, "cache", False):
        return CachingProvider(provider, MemoryCache())
    return provider


def build_sentiment(value: str, settings: DataSettings):
    """None, a fixed int, or a FearGreedProvider."""
    value = (value or "none").strip().lower()
    if value == "none":
        return None
    if value == "feed":
        return FearGreedProvider(timeout=settings.http_timeout)
    return int(value)
