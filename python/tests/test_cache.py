"""Tests for the price cache and the caching provider."""

import argparse
from datetime import date, timedelta

import pytest

from _common import add_common_args, build_provider
from conftest import make_series
from ta_crypto.cache import CachingProvider, MemoryCache
from ta_crypto.config import DataSettings
from ta_crypto.data_provider import CsvProvider
from ta_crypto.errors import DataUnavailable


class FlakyProvider:
    def __init__(self, series):
        self.series = series
        self.fail = False

    def fetch_history(self, symbol, days):
        if self.fail:
            raise DataUnavailable(symbol, "rate limit")
        return self.series.tail(days)


class TestCachingProvider:
    """Tests for write-through and fallback."""

    def test_write_through(self):
        cache = MemoryCache()
        provider = CachingProvider(FlakyProvider(make_series([1.0, None, 3.0], symbol="BTC")), cache)
        provider.fetch_history("BTC", 3)

        assert len(cache) == 2
        assert cache.latest("btc") == date(2023, 1, 3)

    def test_fallback_on_failure(self):
        upstream = FlakyProvider(make_series([1.0, 2.0, 3.0, 4.0], symbol="BTC"))
        provider = CachingProvider(upstream, MemoryCache())
        provider.fetch_history("BTC", 4)

        upstream.fail = True
        series = provider.fetch_history("BTC", 3)

        assert [p.close for p in series.points] == [2.0, 3.0, 4.0]
        assert series.timestamps()[-1] == date(2023, 1, 4)

    def test_fallback_keeps_gaps(self):
        upstream = FlakyProvider(make_series([1.0, None, 3.0], symbol="BTC"))
        provider = CachingProvider(upstream, MemoryCache())
        provider.fetch_history("BTC", 3)

        upstream.fail = True
        series = provider.fetch_history("BTC", 5)

        assert len(series) == 5
        assert series.timestamps()[0] == date(2023, 1, 3) - timedelta(days=4)
        assert [p.close for p in series.points] == [None, None, 1.0, None, 3.0]

    def test_empty_cache_reraises(self):
        upstream = FlakyProvider(make_series([1.0]))
        upstream.fail = True
        with pytest.raises(DataUnavailable):
            CachingProvider(upstream, MemoryCache()).fetch_history("BTC", 3)


class TestCacheFlag:
    """Tests for the --cache option of the scripts."""

    @staticmethod
    def parse(*argv):
        p = argparse.ArgumentParser()
        add_common_args(p)
        return p.parse_args(list(argv))

    def test_off_by_default(self, tmp_path):
        provider = build_provider(self.parse("--source", "csv", "--csv_dir", str(tmp_path)), DataSettings())
        assert isinstance(provider, CsvProvider)

    def test_wraps_provider(self, tmp_path):
        args = self.parse("--source", "csv", "--csv_dir", str(tmp_path), "--cache")
        provider = build_provider(args, DataSettings())

        assert isinstance(provider, CachingProvider)
        assert isinstance(provider.provider, CsvProvider)

    def test_serves_last_fetch_when_file_is_gone(self, tmp_path):
        path = tmp_path / "BTC.csv"
        path.write_text("date,close\n2024-01-01,10\n2024-01-02,11\n2024-01-03,12\n")
        provider = build_provider(
            self.parse("--source", "csv", "--csv_dir", str(tmp_path), "--cache"), DataSettings()
        )
        provider.fetch_history("BTC", 3)

        path.unlink()
        series = provider.fetch_history("BTC", 2)

        assert [p.close for p in series.points] == [11.0, 12.0]
        assert series.timestamps()[-1] == date(2024, 1, 3)
