"""Data providers (CSV / yfinance / CryptoCompare) and the Fear & Greed feed.

Every provider returns a :class:`PriceSeries` on a continuous daily calendar:
dates absent from the source become missing points, so indicator windows
that span them stay undefined. Every failure surfaces as DataUnavailable.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Protocol

import httpx
import pandas as pd
from loguru import logger

from .errors import DataUnavailable
from .indicators import validate_sentiment
from .types import PriceSeries


class PriceProvider(Protocol):
    def fetch_history(self, symbol: str, days: int) -> PriceSeries: ...


class SentimentProvider(Protocol):
    def fetch_sentiment(self) -> int: ...

    def fetch_sentiment_history(self, days: int) -> dict[date, int]: ...


def _to_series(df: pd.DataFrame, symbol: str, days: Optional[int] = None) -> PriceSeries:
    """Close/Volume frame (DatetimeIndex) -> PriceSeries on a daily calendar."""
    if "Close" not in df.columns:
        raise DataUnavailable(symbol, "no Close column in source data")
    df = df.copy()
    df.index = pd.to_datetime(df.index).normalize()
    if df.index.tz is not None:
        df.index = df.index.tz_localize(None)
    df = df[~df.index.duplicated(keep="last")].sort_index()
    if "Volume" not in df.columns:
        df["Volume"] = float("nan")
    df = df[["Close", "Volume"]].astype(float)
    # non-positive closes are bad prints, treated as missing
    df.loc[~(df["Close"] > 0), "Close"] = float("nan")

    if len(df) == 0:
        raise DataUnavailable(symbol, "empty history")
    calendar = pd.date_range(df.index[0], df.index[-1], freq="D")
    df = df.reindex(calendar)
    if days is not None:
        df = df.iloc[-int(days):]

    return PriceSeries.from_closes(
        symbol,
        [ts.date() for ts in df.index],
        [None if pd.isna(c) else float(c) for c in df["Close"]],
        [None if pd.isna(v) else float(v) for v in df["Volume"]],
    )


class CsvProvider:
    """Load daily history from ``<directory>/<SYMBOL>.csv`` (Date, Close[, Volume])."""

    def __init__(self, directory: str | Path, datetime_col: str = "Date"):
        self.directory = Path(directory)
        self.datetime_col = datetime_col

    def fetch_history(self, symbol: str, days: int) -> PriceSeries:
        path = self.directory / f"{symbol.upper()}.csv"
        if not path.exists():
            raise DataUnavailable(symbol, f"{path} not found")

        df = pd.read_csv(path)
        datetime_col = self.datetime_col
        if datetime_col not in df.columns:
            # try common alternatives
            for cand in ["Datetime", "datetime", "date", "timestamp", "Time", "time"]:
                if cand in df.columns:
                    datetime_col = cand
                    break
        if datetime_col not in df.columns:
            raise DataUnavailable(symbol, f"{path} has no datetime column")

        df = df.rename(columns={c: c.strip().capitalize() for c in df.columns if c.strip().lower() in ("close", "volume")})
        df[datetime_col] = pd.to_datetime(df[datetime_col])
        df = df.set_index(datetime_col)
        return _to_series(df, symbol.upper(), days)


class YfinanceProvider:
    """Fetch daily closes from yfinance (``BTC`` -> ``BTC-USD``)."""

    def __init__(self, quote_currency: str = "USD"):
        self.quote_currency = quote_currency

    def ticker(self, symbol: str) -> str:
        return symbol if "-" in symbol else f"{symbol.upper()}-{self.quote_currency}"

    def fetch_history(self, symbol: str, days: int) -> PriceSeries:
        import yfinance as yf  # local import to keep dependency optional in some environments

        end = date.today() + timedelta(days=1)
        start = end - timedelta(days=int(days) + 1)
        try:
            df = yf.download(
                tickers=self.ticker(symbol),
                start=start.isoformat(),
                end=end.isoformat(),
                interval="1d",
                auto_adjust=False,
                progress=False,
            )
        except Exception as e:
            raise DataUnavailable(symbol, f"yfinance error: {e}") from e
        if df is None or len(df) == 0:
            raise DataUnavailable(symbol, "yfinance returned empty data")

        # yfinance can return MultiIndex columns (field, ticker)
        if isinstance(df.columns, pd.MultiIndex):
            df = df.copy()
            df.columns = df.columns.get_level_values(0)
        return _to_series(df, symbol.upper(), days)


@dataclass(frozen=True)
class KeyRotation:
    """Explicit API-key selection: the caller decides which key a request uses."""

    keys: tuple[str, ...]
    index: int = 0

    @property
    def current(self) -> Optional[str]:
        if not self.keys:
            return None
        return self.keys[self.index % len(self.keys)]

    def advance(self) -> "KeyRotation":
        return KeyRotation(keys=self.keys, index=(self.index + 1) % max(1, len(self.keys)))


class CryptoCompareProvider:
    """CryptoCompare ``histoday`` client."""

    BASE_URL = "https://min-api.cryptocompare.com"

    def __init__(
        self,
        rotation: KeyRotation,
        quote_currency: str = "USD",
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        self.rotation = rotation
        self.quote_currency = quote_currency
        self._client = client or httpx.Client(base_url=self.BASE_URL, timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def with_rotation(self, rotation: KeyRotation) -> "CryptoCompareProvider":
        return CryptoCompareProvider(rotation, self.quote_currency, client=self._client)

    def fetch_history(self, symbol: str, days: int) -> PriceSeries:
        symbol = symbol.strip().upper()
        headers = {}
        if self.rotation.current:
            headers["authorization"] = f"Apikey {self.rotation.current}"
        params = {"fsym": symbol, "tsym": self.quote_currency, "limit": int(days)}
        logger.debug("Fetching {} days of {} from CryptoCompare", days, symbol)
        try:
            response = self._client.get("/data/v2/histoday", params=params, headers=headers)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise DataUnavailable(symbol, f"cryptocompare request failed: {e}") from e

        try:
            return _to_series(self._parse_histoday(symbol, payload), symbol, days)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise DataUnavailable(symbol, f"malformed cryptocompare payload: {e!r}") from e

    @staticmethod
    def _parse_histoday(symbol: str, payload: dict) -> pd.DataFrame:
        if payload.get("Response") != "Success":
            raise DataUnavailable(symbol, str(payload.get("Message") or "cryptocompare error"))
        rows = ((payload.get("Data") or {}).get("Data")) or []
        if not rows:
            raise DataUnavailable(symbol, "cryptocompare returned no rows")
        return pd.DataFrame(
            {
                "Close": [r.get("close") for r in rows],
                "Volume": [r.get("volumefrom") for r in rows],
            },
            index=pd.to_datetime([int(r["time"]) for r in rows], unit="s"),
        )


class FearGreedProvider:
    """Crypto Fear & Greed Index from alternative.me."""

    BASE_URL = "https://api.alternative.me"

    def __init__(self, timeout: float = 30.0, client: Optional[httpx.Client] = None):
        self._client = client or httpx.Client(base_url=self.BASE_URL, timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def _get(self, limit: int) -> list[dict]:
        try:
            response = self._client.get("/fng/", params={"limit": int(limit), "format": "json"})
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise DataUnavailable("FGI", f"fear & greed request failed: {e}") from e
        try:
            error = (payload.get("metadata") or {}).get("error")
            data = payload.get("data") or []
        except AttributeError as e:
            raise DataUnavailable("FGI", f"malformed fear & greed payload: {e!r}") from e
        if error:
            raise DataUnavailable("FGI", str(error))
        if not data:
            raise DataUnavailable("FGI", "empty response")
        return data

    def fetch_sentiment(self) -> int:
        data = self._get(1)
        try:
            return validate_sentiment(int(data[0]["value"]))
        except (KeyError, TypeError, ValueError, IndexError) as e:
            raise DataUnavailable("FGI", f"malformed fear & greed row: {e!r}") from e

    def fetch_sentiment_history(self, days: int) -> dict[date, int]:
        out: dict[date, int] = {}
        try:
            for row in self._get(days):
                ts = datetime.fromtimestamp(int(row["timestamp"]), tz=timezone.utc).date()
                out[ts] = validate_sentiment(int(row["value"]))
        except (KeyError, TypeError, ValueError, OverflowError, OSError) as e:
            raise DataUnavailable("FGI", f"malformed fear & greed row: {e!r}") from e
        return dict(sorted(out.items()))
