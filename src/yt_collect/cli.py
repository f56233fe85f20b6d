"""
Command line entry point.

Usage:
  yt-collect trending
  yt-collect keywords
  yt-collect add-keyword "seoul hotel"
  yt-collect init-tables

Env: see yt_collect.config.
"""
from __future__ import annotations
import argparse
import json
import logging
import sys
from typing import List, Optional

from yt_collect.collectors import collect_keyword_videos, collect_trending
from yt_collect.config import CollectorContext


def _print(payload) -> None:
    print(json.dumps(payload, ensure_ascii=False))


def main(argv: Optional[List[str]] = None, context: Optional[CollectorContext] = None) -> int:
    ap = argparse.ArgumentParser(prog="yt-collect")
    ap.add_argument("--debug", action="store_true")
    sub = ap.add_subparsers(dest="command", required=True)
    sub.add_parser("trending", help="Store today's trending snapshot")
    sub.add_parser("keywords", help="Collect videos for the next keyword in rotation")
    sub.add_parser("init-tables", help="Create the BigQuery dataset and tables if missing")
    add = sub.add_parser("add-keyword", help="Register a keyword for rotation")
    add.add_argument("keyword")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="[%(asctime)s] [%(levelname)s] %(name)s - %(message)s",
    )

    ctx = context or CollectorContext.from_env()

    if args.command == "init-tables":
        ctx.store.ensure_tables()
        _print({"status": "ok"})
        return 0

    if args.command == "add-keyword":
        inserted = ctx.store.register_keyword(args.keyword)
        _print({"keyword": args.keyword.strip(), "inserted": inserted})
        return 0

    collector = collect_trending if args.command == "trending" else collect_keyword_videos
    result = collector(ctx)
    _print(result.to_payload())
    return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(main())
