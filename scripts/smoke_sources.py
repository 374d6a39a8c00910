"""Live smoke check: one listing (and optionally one detail) per source.

Usage:
  python scripts/smoke_sources.py --sources anime,film --detail
  python scripts/smoke_sources.py --search "one piece"
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List

sys.path.append(str(Path(__file__).resolve().parents[1]))

from adapters.registry import ADAPTER_CLASSES
from errors import CatalogError
from services.aggregator import CatalogAggregator
from services.cache_service import CacheService

LOGGER = logging.getLogger("smoke_sources")


def _setup_logging(level: str) -> None:
    numeric = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def _split_csv(value: str) -> List[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def _make_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Smoke-test the catalog sources against the live upstreams.")
    parser.add_argument(
        "--sources",
        default=",".join(ADAPTER_CLASSES),
        help="Comma separated source ids or content kinds (default: every source).",
    )
    parser.add_argument("--page", type=int, default=1, help="Listing page to request.")
    parser.add_argument("--detail", action="store_true", help="Also fetch the detail of the first listed item.")
    parser.add_argument("--search", default="", help="Run a combined search for this query instead of listings.")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ERROR).")
    return parser


async def _smoke_source(aggregator: CatalogAggregator, source: str, page: int, with_detail: bool) -> dict:
    summary = {"source": source, "items": 0, "has_next": False, "detail": None}
    listing = await aggregator.list_latest(source, page)
    summary["items"] = len(listing.data)
    summary["has_next"] = listing.has_next
    if with_detail and listing.data:
        first = listing.data[0]
        try:
            detail = await aggregator.get_detail(source, first.slug)
        except CatalogError as exc:
            LOGGER.warning("Detail failed source=%s slug=%s: %s", source, first.slug, exc)
            summary["detail"] = f"error: {exc}"
        else:
            summary["detail"] = (
                None
                if detail is None
                else {"slug": detail.slug, "episodes": len(detail.episodes), "chapters": len(detail.chapters)}
            )
    return summary


async def _async_main(args: argparse.Namespace) -> int:
    # Live checks must hit the upstreams, never a warm cache.
    aggregator = CatalogAggregator(cache=CacheService(None))
    try:
        if args.search:
            results = await aggregator.search_all(args.search, args.page)
            report = {source: len(listing.data) for source, listing in results.items()}
            print(json.dumps({"search": args.search, "results": report}, ensure_ascii=False, indent=2))
            return 0

        failures = 0
        for source in _split_csv(args.sources):
            try:
                summary = await _smoke_source(aggregator, source, args.page, args.detail)
            except CatalogError as exc:
                failures += 1
                LOGGER.error("Source unusable source=%s: %s", source, exc)
                continue
            if not summary["items"]:
                failures += 1
            print(json.dumps(summary, ensure_ascii=False))
        return 1 if failures else 0
    finally:
        await aggregator.close()


def main() -> int:
    parser = _make_arg_parser()
    args = parser.parse_args()
    _setup_logging(args.log_level)
    return asyncio.run(_async_main(args))


if __name__ == "__main__":
    raise SystemExit(main())
