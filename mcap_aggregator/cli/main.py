"""
Top-level CLI dispatcher: mcap-aggregator <command> [args...].

  fetch  Fetch market-cap history for the roster, merge chain variants, print or export.
  info   Look up token metadata by platform and contract.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from .. import __version__, config
from ..merge import MergedToken, get_display_tokens, merge_token_variants
from ..providers.chain import FetchProgress
from ..providers.defaults import create_market_cap_chain
from ..providers.resilience import RateLimitState
from ..series import results_to_frame, wide_market_caps
from ..tokens import StaticTokenSource

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_days(value: str) -> Optional[int]:
    if value == "max":
        return None
    days = int(value)
    if days <= 0:
        raise argparse.ArgumentTypeError("days must be positive or 'max'")
    return days


def _print_progress(event: FetchProgress) -> None:
    print(f"[{event.current}/{event.total}] {event.token.symbol}...", file=sys.stderr, flush=True)


def _print_rate_limit(state: RateLimitState) -> None:
    # Countdown ticks are printed every 15 seconds.
    if state.is_waiting and state.seconds_remaining % 15 != 0:
        return
    print(state.message or f"{state.source} ready", file=sys.stderr, flush=True)


def _format_usd(value: float) -> str:
    if value >= 1e9:
        return f"${value / 1e9:.2f}B"
    if value >= 1e6:
        return f"${value / 1e6:.2f}M"
    if value >= 1e3:
        return f"${value / 1e3:.1f}K"
    return f"${value:.0f}"


def _to_json(entry: MergedToken) -> Dict[str, Any]:
    r = entry.result
    return {
        "id": entry.id,
        "symbol": entry.symbol,
        "platform": entry.platform,
        "contract": entry.contract,
        "source": r.source.value,
        "error": r.error,
        "current_market_cap": r.current_market_cap,
        "current_price": r.current_price,
        "last_updated": r.last_updated,
        "is_merged": entry.is_merged,
        "is_hidden_variant": entry.is_hidden_variant,
        "primary_variant_id": entry.primary_variant_id,
        "variants": [asdict(v) for v in entry.variants],
        "data": [[p.x, p.y] for p in r.data],
    }


def _print_table(entries: List[MergedToken]) -> None:
    print(f"{'SYMBOL':<12}{'PLATFORM':<10}{'SOURCE':<14}{'POINTS':>7}  {'MCAP':>10}")
    for e in entries:
        r = e.result
        mcap = "-" if r.error else _format_usd(r.current_market_cap)
        tag = " (hidden)" if e.is_hidden_variant else (f" (+{len(e.hidden_variant_ids)} variants)" if e.is_merged else "")
        print(f"{e.symbol:<12}{e.platform:<10}{r.source.value:<14}{len(r.data):>7}  {mcap:>10}{tag}")


def _cmd_fetch(args: argparse.Namespace) -> int:
    tokens = StaticTokenSource().load()
    if args.symbol:
        wanted = {s.upper() for s in args.symbol}
        tokens = [t for t in tokens if t.symbol.upper() in wanted]
    elif not args.all:
        tokens = [t for t in tokens if t.enabled]
    if not tokens:
        print("No tokens selected.", file=sys.stderr)
        return 2

    days = args.days if args.days != 0 else config.default_days()
    with create_market_cap_chain() as chain:
        unsubscribe = chain.subscribe(_print_rate_limit)
        try:
            results = chain.fetch_many(tokens, days, on_progress=None if args.quiet else _print_progress)
        finally:
            unsubscribe()

    merged = merge_token_variants(results)
    entries = merged if args.show_hidden else get_display_tokens(merged)

    if args.json:
        print(json.dumps([_to_json(e) for e in entries], indent=2))
    else:
        _print_table(entries)

    if args.csv:
        frame = results_to_frame(entries)
        if args.wide:
            frame = wide_market_caps(frame)
        frame.to_csv(args.csv, index=args.wide)
        print(f"Wrote {args.csv}", file=sys.stderr)

    return 0 if any(not r.error for r in results) else 1


def _cmd_info(args: argparse.Namespace) -> int:
    with create_market_cap_chain() as chain:
        info = chain.get_token_info(args.platform, args.contract)
    if info is None:
        print(f"No token info for {args.contract} on {args.platform}", file=sys.stderr)
        return 1
    print(json.dumps(asdict(info), indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    parser = argparse.ArgumentParser(
        prog="mcap-aggregator",
        description="Multi-provider token market-cap history",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    subparsers = parser.add_subparsers(dest="command", help="command")

    p_fetch = subparsers.add_parser("fetch", help="Fetch and merge market-cap series")
    p_fetch.add_argument("--days", type=_parse_days, default=0, help="day range or 'max' (default: config)")
    p_fetch.add_argument("--symbol", action="append", help="only these symbols (repeatable)")
    p_fetch.add_argument("--all", action="store_true", help="include disabled tokens")
    p_fetch.add_argument("--show-hidden", action="store_true", help="also list hidden chain variants")
    p_fetch.add_argument("--json", action="store_true", help="print JSON instead of a table")
    p_fetch.add_argument("--csv", metavar="PATH", help="write series to CSV")
    p_fetch.add_argument("--wide", action="store_true", help="CSV with one column per symbol")
    p_fetch.add_argument("-q", "--quiet", action="store_true", help="no progress output")

    p_info = subparsers.add_parser("info", help="Token metadata by contract")
    p_info.add_argument("platform", help="ethereum, base, solana or a raw network id")
    p_info.add_argument("contract")

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    _configure_logging(args.verbose)
    if args.command == "fetch":
        return _cmd_fetch(args)
    if args.command == "info":
        return _cmd_info(args)
    parser.print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
