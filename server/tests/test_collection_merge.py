"""Tests for merging per-timeframe collection lists."""

from nftscout.schemas.collection import TrendingCollection
from nftscout.services.collection_merge import merge_timeframes


def _collection(symbol: str, **kwargs) -> TrendingCollection:
    return TrendingCollection(symbol=symbol, name=symbol.upper(), image="", **kwargs)


class TestMergeTimeframes:
    def test_first_timeframe_wins(self):
        data = {
            "1h": [_collection("a", floor_price=1.0)],
            "1d": [_collection("a", floor_price=2.0)],
        }
        merged = merge_timeframes(data, ["1h", "1d"])

        assert len(merged) == 1
        assert merged[0].primary_timeframe == "1h"
        assert merged[0].other_timeframes == ["1d"]
        # Fields come from the highest-priority bucket
        assert merged[0].floor_price == 1.0

    def test_priority_follows_timeframe_order_not_dict_order(self):
        data = {
            "7d": [_collection("a")],
            "1h": [_collection("a")],
        }
        merged = merge_timeframes(data, ["1h", "1d", "7d"])

        assert merged[0].primary_timeframe == "1h"
        assert merged[0].other_timeframes == ["7d"]

    def test_symbol_in_all_three_buckets(self):
        data = {tf: [_collection("a")] for tf in ("1h", "1d", "7d")}
        merged = merge_timeframes(data, ["1h", "1d", "7d"])

        assert merged[0].primary_timeframe == "1h"
        assert merged[0].other_timeframes == ["1d", "7d"]

    def test_preserves_bucket_ranking(self):
        data = {
            "1h": [_collection("b"), _collection("a")],
            "1d": [_collection("c"), _collection("a")],
        }
        merged = merge_timeframes(data, ["1h", "1d"])

        assert [c.symbol for c in merged] == ["b", "a", "c"]

    def test_symbols_are_unique(self):
        data = {
            "1h": [_collection("a"), _collection("b")],
            "1d": [_collection("b"), _collection("a")],
            "7d": [_collection("b")],
        }
        merged = merge_timeframes(data, ["1h", "1d", "7d"])

        symbols = [c.symbol for c in merged]
        assert len(symbols) == len(set(symbols))

    def test_empty_and_missing_buckets(self):
        merged = merge_timeframes({"1h": []}, ["1h", "1d", "7d"])
        assert merged == []

    def test_inputs_are_not_mutated(self):
        original = _collection("a")
        data = {"1h": [original], "1d": [_collection("a")]}
        merge_timeframes(data, ["1h", "1d"])

        assert original.primary_timeframe is None
        assert original.other_timeframes == []

    def test_duplicate_within_bucket_is_not_listed_as_other(self):
        data = {"1h": [_collection("a"), _collection("a")]}
        merged = merge_timeframes(data, ["1h"])

        assert len(merged) == 1
        assert merged[0].other_timeframes == []
