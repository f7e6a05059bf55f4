"""
Export fetched series as pandas DataFrames (long format, one row per point).
"""
from __future__ import annotations

from typing import Iterable, Union

import pandas as pd

from .merge import MergedToken
from .providers.base import FetchResult

SERIES_COLUMNS = [
    "token_id", "symbol", "platform", "source", "ts_utc", "market_cap_usd",
]


def results_to_frame(results: Iterable[Union[FetchResult, MergedToken]]) -> pd.DataFrame:
    """
    Flatten results into rows. MergedToken entries are unwrapped; tokens with
    no data contribute no rows. ts_utc is a tz-aware UTC timestamp.
    """
    rows = []
    for item in results:
        r = item.result if isinstance(item, MergedToken) else item
        for p in r.data:
            rows.append((r.token.id, r.token.symbol, r.token.platform, r.source.value, p.x, p.y))
    df = pd.DataFrame(rows, columns=SERIES_COLUMNS)
    if df.empty:
        return df
    df["ts_utc"] = pd.to_datetime(df["ts_utc"], unit="ms", utc=True)
    df["market_cap_usd"] = pd.to_numeric(df["market_cap_usd"], errors="coerce")
    return df.sort_values(["token_id", "ts_utc"], kind="stable").reset_index(drop=True)


def wide_market_caps(df: pd.DataFrame) -> pd.DataFrame:
    """Pivot a long frame to one column per symbol, indexed by timestamp."""
    if df.empty:
        return pd.DataFrame()
    return df.pivot_table(index="ts_utc", columns="symbol", values="market_cap_usd", aggfunc="last")
