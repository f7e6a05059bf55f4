"""
Token variant merging.

The same project can be tracked under several contracts (one per chain).
Results are grouped by symbol; the variant with the most data points is shown
and the others are kept, tagged as hidden, so nothing is dropped.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .providers.base import FetchResult, MarketCapPoint, Token


@dataclass(frozen=True)
class VariantInfo:
    id: str
    platform: str
    contract: str
    data_points: int


@dataclass
class MergedToken:
    """A FetchResult plus display metadata derived from its symbol group."""

    result: FetchResult
    is_merged: bool = False
    variants: List[VariantInfo] = field(default_factory=list)
    hidden_variant_ids: List[str] = field(default_factory=list)
    is_hidden_variant: bool = False
    primary_variant_id: Optional[str] = None

    @property
    def token(self) -> Token:
        return self.result.token

    @property
    def id(self) -> str:
        return self.result.token.id

    @property
    def symbol(self) -> str:
        return self.result.token.symbol

    @property
    def name(self) -> str:
        return self.result.token.name

    @property
    def platform(self) -> str:
        return self.result.token.platform

    @property
    def contract(self) -> str:
        return self.result.token.contract

    @property
    def enabled(self) -> bool:
        return self.result.token.enabled

    @property
    def color(self) -> str:
        return self.result.token.color

    @property
    def data(self) -> List[MarketCapPoint]:
        return self.result.data


def merge_token_variants(results: Sequence[FetchResult]) -> List[MergedToken]:
    """
    Group by case-insensitive symbol (groups keep first-seen order).

    Single-member groups pass through. For larger groups the members are
    stably sorted by point count, descending: the head becomes the visible
    entry with a `variants` manifest (input order) and `hidden_variant_ids`,
    and each remaining member follows it tagged `is_hidden_variant`.
    """
    groups: Dict[str, List[FetchResult]] = {}
    for r in results:
        groups.setdefault(r.token.symbol.upper(), []).append(r)

    merged: List[MergedToken] = []
    for members in groups.values():
        if len(members) == 1:
            merged.append(MergedToken(result=members[0]))
            continue

        ranked = sorted(members, key=lambda r: len(r.data), reverse=True)
        best, others = ranked[0], ranked[1:]
        merged.append(
            MergedToken(
                result=best,
                is_merged=True,
                variants=[
                    VariantInfo(
                        id=m.token.id,
                        platform=m.token.platform,
                        contract=m.token.contract,
                        data_points=len(m.data),
                    )
                    for m in members
                ],
                hidden_variant_ids=[m.token.id for m in others],
            )
        )
        for other in others:
            merged.append(
                MergedToken(result=other, is_hidden_variant=True, primary_variant_id=best.token.id)
            )
    return merged


def get_display_tokens(tokens: Sequence[MergedToken]) -> List[MergedToken]:
    """Tokens to show in a UI: everything except hidden variants."""
    return [t for t in tokens if not t.is_hidden_variant]


def has_variants(token: MergedToken) -> bool:
    return token.is_merged and len(token.variants) > 1


def platform_label(token: MergedToken) -> str:
    # Only the displayed variant's chain is shown, even for merged tokens.
    return token.platform
