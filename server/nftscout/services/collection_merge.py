"""Merge per-timeframe collection lists into one deduplicated view."""

from collections.abc import Mapping, Sequence

from nftscout.schemas.collection import TrendingCollection


def merge_timeframes(
    timeframe_data: Mapping[str, Sequence[TrendingCollection]],
    timeframes: Sequence[str],
) -> list[TrendingCollection]:
    """Merge bucket lists in priority order, keeping one entry per symbol.

    The first timeframe (in ``timeframes`` order) that contains a symbol becomes
    its ``primary_timeframe``; every later timeframe containing it is appended to
    ``other_timeframes``. Order within the result follows first appearance, so
    each bucket's ranking is preserved.
    """
    merged: dict[str, TrendingCollection] = {}
    for timeframe in timeframes:
        for collection in timeframe_data.get(timeframe, []):
            existing = merged.get(collection.symbol)
            if existing is None:
                merged[collection.symbol] = collection.model_copy(
                    update={"primary_timeframe": timeframe, "other_timeframes": []}
                )
            elif (
                timeframe != existing.primary_timeframe
                and timeframe not in existing.other_timeframes
            ):
                existing.other_timeframes.append(timeframe)
    return list(merged.values())
