"""
Typed views of upstream JSON payloads.

Each parse_* function validates one response shape and returns frozen
dataclasses. A payload whose envelope is wrong raises ParseAnomalyError; an
individual row that cannot be read is skipped, so the result is deterministic
for a given payload.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..core.errors import ParseAnomalyError

logger = logging.getLogger(__name__)


def _safe_get(d: Any, path: str, default: Any = None) -> Any:
    cur: Any = d
    for key in path.split("."):
        if not isinstance(cur, dict) or key not in cur:
            return default
        cur = cur[key]
    return cur


def _to_float(x: Any) -> Optional[float]:
    if x is None:
        return None
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


def _to_int(x: Any) -> Optional[int]:
    f = _to_float(x)
    if f is None or f != f:
        return None
    try:
        return int(f)
    except (OverflowError, ValueError):
        return None


def _require_dict(provider: str, payload: Any, what: str) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ParseAnomalyError(provider, f"{what}: expected object, got {type(payload).__name__}")
    return payload


# ---------------------------------------------------------------------------
# GeckoTerminal
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GeckoTokenInfo:
    fdv_usd: Optional[float]
    market_cap_usd: Optional[float]
    price_usd: Optional[float]


@dataclass(frozen=True)
class GeckoPool:
    address: str
    reserve_in_usd: float
    base_token_price_usd: Optional[float]


@dataclass(frozen=True)
class OhlcvCandle:
    timestamp_s: int
    open: Optional[float]
    high: Optional[float]
    low: Optional[float]
    close: float
    volume: Optional[float]


def parse_gecko_token(provider: str, payload: Any) -> GeckoTokenInfo:
    attrs = _safe_get(_require_dict(provider, payload, "token info"), "data.attributes")
    if not isinstance(attrs, dict):
        raise ParseAnomalyError(provider, "token info: missing data.attributes")
    return GeckoTokenInfo(
        fdv_usd=_to_float(attrs.get("fdv_usd")),
        market_cap_usd=_to_float(attrs.get("market_cap_usd")),
        price_usd=_to_float(attrs.get("price_usd")),
    )


def parse_gecko_pools(provider: str, payload: Any) -> List[GeckoPool]:
    rows = _require_dict(provider, payload, "pools").get("data")
    if not isinstance(rows, list):
        raise ParseAnomalyError(provider, "pools: data is not a list")
    pools: List[GeckoPool] = []
    for row in rows:
        attrs = _safe_get(row, "attributes")
        if not isinstance(attrs, dict) or not attrs.get("address"):
            continue
        pools.append(
            GeckoPool(
                address=str(attrs["address"]),
                reserve_in_usd=_to_float(attrs.get("reserve_in_usd")) or 0.0,
                base_token_price_usd=_to_float(attrs.get("base_token_price_usd")),
            )
        )
    return pools


def parse_gecko_ohlcv(provider: str, payload: Any) -> List[OhlcvCandle]:
    rows = _safe_get(_require_dict(provider, payload, "ohlcv"), "data.attributes.ohlcv_list")
    if not isinstance(rows, list):
        raise ParseAnomalyError(provider, "ohlcv: missing data.attributes.ohlcv_list")
    candles: List[OhlcvCandle] = []
    skipped = 0
    for row in rows:
        if not isinstance(row, (list, tuple)) or len(row) < 5:
            skipped += 1
            continue
        ts = _to_int(row[0])
        close = _to_float(row[4])
        if ts is None or close is None:
            skipped += 1
            continue
        candles.append(
            OhlcvCandle(
                timestamp_s=ts,
                open=_to_float(row[1]),
                high=_to_float(row[2]),
                low=_to_float(row[3]),
                close=close,
                volume=_to_float(row[5]) if len(row) > 5 else None,
            )
        )
    if skipped:
        logger.debug("%s: skipped %d malformed candles", provider, skipped)
    return candles


# ---------------------------------------------------------------------------
# CoinGecko
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CoinSearchHit:
    id: str
    symbol: str
    name: str


@dataclass(frozen=True)
class MarketChart:
    prices: List[tuple]
    market_caps: List[tuple]


def parse_coin_search(provider: str, payload: Any) -> List[CoinSearchHit]:
    coins = _require_dict(provider, payload, "search").get("coins")
    if coins is None:
        return []
    if not isinstance(coins, list):
        raise ParseAnomalyError(provider, "search: coins is not a list")
    hits: List[CoinSearchHit] = []
    for c in coins:
        if not isinstance(c, dict) or not c.get("id") or c.get("symbol") is None:
            continue
        hits.append(CoinSearchHit(id=str(c["id"]), symbol=str(c["symbol"]), name=str(c.get("name") or "")))
    return hits


def _parse_series(rows: Any) -> List[tuple]:
    out: List[tuple] = []
    if not isinstance(rows, list):
        return out
    for row in rows:
        if not isinstance(row, (list, tuple)) or len(row) < 2:
            continue
        ts = _to_int(row[0])
        value = _to_float(row[1])
        if ts is None or value is None:
            continue
        out.append((ts, value))
    return out


def parse_market_chart(provider: str, payload: Any) -> MarketChart:
    data = _require_dict(provider, payload, "market chart")
    caps = data.get("market_caps")
    if caps is not None and not isinstance(caps, list):
        raise ParseAnomalyError(provider, "market chart: market_caps is not a list")
    return MarketChart(prices=_parse_series(data.get("prices")), market_caps=_parse_series(caps))


# ---------------------------------------------------------------------------
# DexScreener
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DexPair:
    chain_id: str
    pair_address: str
    price_usd: Optional[float]
    liquidity_usd: float
    fdv: Optional[float]
    market_cap: Optional[float]


def parse_dex_pairs(provider: str, payload: Any) -> List[DexPair]:
    pairs = _require_dict(provider, payload, "token pairs").get("pairs")
    if pairs is None:
        return []
    if not isinstance(pairs, list):
        raise ParseAnomalyError(provider, "token pairs: pairs is not a list")
    out: List[DexPair] = []
    for p in pairs:
        if not isinstance(p, dict):
            continue
        out.append(
            DexPair(
                chain_id=str(p.get("chainId") or "").strip().lower(),
                pair_address=str(p.get("pairAddress") or ""),
                price_usd=_to_float(p.get("priceUsd")),
                liquidity_usd=_to_float(_safe_get(p, "liquidity.usd")) or 0.0,
                fdv=_to_float(p.get("fdv")),
                market_cap=_to_float(p.get("marketCap")),
            )
        )
    return out
