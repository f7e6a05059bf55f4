"""
Token roster and preference collaborators.

The engine only needs a list of Token objects; where they come from (a remote
registry, a static list) and where `enabled` flags are persisted are outside
its concern. This module defines those two seams and ships the built-in
Base agent roster as the default source.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from .providers.base import Platform, Token

# Bankr tokenized agents, all on Base. Used when no registry is available.
DEFAULT_TOKENS: List[Dict[str, Any]] = [
    {"id": "bnkr", "symbol": "BNKR", "name": "Bankr", "color": "#4CAF50",
     "contract": "0x22af33fe49fd1fa80c7149773dde5890d3c76f3b"},
    {"id": "clawd", "symbol": "CLAWD", "name": "Clawd", "color": "#9C27B0",
     "contract": "0x9f86db9fc6f7c9408e8fda3ff8ce4e78ac7a6b07"},
    {"id": "starkbot", "symbol": "STARKBOT", "name": "Starkbot", "color": "#FF5722",
     "contract": "0x587cd533f418825521f3a1daa7ccd1e7339a1b07"},
    {"id": "clonk", "symbol": "CLONK", "name": "Clonk", "color": "#2196F3",
     "contract": "0xad6c0fe4fc0c11d46032ee3ef8e1a3c37c677b07"},
    {"id": "ember", "symbol": "EMBER", "name": "Ember", "color": "#FF9800",
     "contract": "0x7ffbe850d2d45242efdb914d7d4dbb682d0c9b07"},
    {"id": "molt", "symbol": "MOLT", "name": "Molt", "color": "#E91E63",
     "contract": "0xb695559b26bb2c9703ef1935c37aeae9526bab07"},
    {"id": "clawdia", "symbol": "CLAWDIA", "name": "Clawdia", "color": "#00BCD4",
     "contract": "0xbbd9ade16525acb4b336b6dad3b9762901522b07"},
    {"id": "solvr", "symbol": "SOLVR", "name": "Solvr", "color": "#8BC34A",
     "contract": "0x6dfb7bfa06e7c2b6c20c22c0afb44852c201eb07"},
    {"id": "clawditor", "symbol": "CLAWDITOR", "name": "Clawditor", "color": "#673AB7",
     "contract": "0xba7cd6d68dd9df817d1a86f534e29afe54461b07"},
]


def _to_int32(n: int) -> int:
    n &= 0xFFFFFFFF
    return n - (1 << 32) if n & 0x80000000 else n


def generate_token_color(name: str) -> str:
    """Stable, bright HSL color derived from a name hash."""
    h = 0
    for ch in name:
        h = ord(ch) + (_to_int32(_to_int32(h) << 5) - h)
    h32 = _to_int32(h)
    hue = abs(h) % 360
    saturation = 70 + abs(h32 >> 8) % 20
    lightness = 55 + abs(h32 >> 16) % 15
    return f"hsl({hue}, {saturation}%, {lightness}%)"


def token_from_dict(raw: Mapping[str, Any]) -> Token:
    """
    Build a Token from a registry row. `symbol` is required; id defaults to the
    lower-cased symbol, platform to base, color to a hash of the name.
    """
    symbol = str(raw["symbol"]).strip()
    if not symbol:
        raise ValueError("token symbol must not be empty")
    name = str(raw.get("name") or symbol)
    return Token(
        id=str(raw.get("id") or symbol.lower()),
        symbol=symbol.upper(),
        name=name,
        platform=str(raw.get("platform") or Platform.BASE.value),
        contract=str(raw.get("contract") or "").lower(),
        enabled=bool(raw.get("enabled", True)),
        color=str(raw.get("color") or generate_token_color(name)),
    )


class TokenSource(Protocol):
    """Supplies the initial roster."""

    def load(self) -> List[Token]: ...


class PreferenceStore(Protocol):
    """Persists per-token `enabled` flags across sessions."""

    def load(self) -> Dict[str, bool]: ...

    def save(self, enabled_by_id: Mapping[str, bool]) -> None: ...


class StaticTokenSource:
    """Roster from a fixed list of dicts (the built-in agents by default)."""

    def __init__(self, rows: Optional[Iterable[Mapping[str, Any]]] = None) -> None:
        self._rows = list(rows) if rows is not None else list(DEFAULT_TOKENS)

    def load(self) -> List[Token]:
        return [token_from_dict(r) for r in self._rows]


class MemoryPreferenceStore:
    def __init__(self, initial: Optional[Mapping[str, bool]] = None) -> None:
        self._prefs: Dict[str, bool] = dict(initial or {})

    def load(self) -> Dict[str, bool]:
        return dict(self._prefs)

    def save(self, enabled_by_id: Mapping[str, bool]) -> None:
        self._prefs = dict(enabled_by_id)


def apply_preferences(tokens: Iterable[Token], store: PreferenceStore) -> List[Token]:
    """Restore saved `enabled` flags onto tokens in place; tokens without a saved flag keep theirs."""
    prefs = store.load()
    out = []
    for t in tokens:
        if t.id in prefs:
            t.enabled = bool(prefs[t.id])
        out.append(t)
    return out


def snapshot_preferences(tokens: Iterable[Token]) -> Dict[str, bool]:
    return {t.id: t.enabled for t in tokens}
