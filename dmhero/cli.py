# dmhero/cli.py
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from dmhero.config import load_settings, settings
from dmhero.db import apply_schema, get_connection
from dmhero.exceptions import InvalidScopeError, UnknownEntityTypeError
from dmhero.search import (
    SEARCH_PLANS,
    DistanceBands,
    ScoringWeights,
    SqliteEntityStore,
    search_entities,
    search_entity_type,
)

log = logging.getLogger(__name__)

EXIT_USAGE = 2


def _section(title: str) -> None:
    print(f"=== {title} ===")


def _print_hits(query: str, hits: list[dict[str, Any]]) -> None:
    _section(f"Results for {query!r}")

    if not hits:
        print("  (no matches)")
        print()
        return

    header = f"{'#':>3} {'type':10} {'id':>6} name"
    print("  " + header)
    print("  " + "-" * len(header))

    for i, hit in enumerate(hits, start=1):
        name = str(hit.get("name") or "")
        etype = str(hit.get("type") or "")
        print(f"  {i:3d} {etype:10} {int(hit['id']):6d} {name}")
        linked = hit.get("linkedEntities") or []
        if linked:
            print(f"  {'':3} {'':10} {'':6} linked: {', '.join(linked)}")

    print()


def _print_listing(entity_type: str, rows: list[dict[str, Any]]) -> None:
    _section(f"{entity_type} listing")

    if not rows:
        print("  (no entries)")
        print()
        return

    for row in rows:
        print(f"  {int(row['id']):6d} {row.get('name') or ''}")
    print()


def _cmd_search(args: argparse.Namespace) -> int:
    """
    Global search (ranked) or, with --type, a typed listing search.
    """
    cfg = load_settings()
    conn = get_connection(args.db or cfg.database_path())
    try:
        store = SqliteEntityStore(conn)
        if args.type:
            try:
                rows = search_entity_type(
                    store,
                    args.type,
                    args.campaign,
                    args.query,
                    bands=DistanceBands.from_tuple(cfg.scoped_bands),
                    min_word_length=cfg.min_word_length,
                )
            except (InvalidScopeError, UnknownEntityTypeError) as exc:
                print(f"error: {exc}", file=sys.stderr)
                return EXIT_USAGE
            if args.json:
                print(json.dumps(rows, indent=2, ensure_ascii=False, default=str))
            else:
                _print_listing(args.type, rows)
            return 0

        results = search_entities(
            store,
            args.query,
            args.campaign,
            bands=DistanceBands.from_tuple(cfg.global_bands),
            weights=ScoringWeights.from_settings(cfg),
        )
        hits = [h.to_dict() for h in results]
        if args.limit is not None:
            hits = hits[: args.limit]
        if args.json:
            print(json.dumps(hits, indent=2, ensure_ascii=False))
        else:
            _print_hits(args.query, hits)
        return 0
    finally:
        conn.close()


def _cmd_apply_schema(args: argparse.Namespace) -> int:
    conn = get_connection(args.db)
    try:
        apply_schema(conn, seed_types=not args.no_seed)
    finally:
        conn.close()
    print("Schema applied.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dmhero",
        description="DM Hero campaign search tools.",
    )
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite database path (default: DMHERO_DB_URL / DMHERO_DB_PATH / dev.db).",
    )
    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        help=f"Logging level (default: {settings.LOG_LEVEL}).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    search_parser = subparsers.add_parser(
        "search",
        help="Search a campaign's entities.",
    )
    search_parser.add_argument("query", help="Free-text search query.")
    search_parser.add_argument(
        "--campaign",
        required=True,
        help="Campaign id to search in.",
    )
    search_parser.add_argument(
        "--type",
        choices=sorted(SEARCH_PLANS),
        default=None,
        help="Run the typed listing search for one entity type instead of global search.",
    )
    search_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Show at most N global results (the ranker already caps at 20).",
    )
    search_parser.add_argument(
        "--json",
        action="store_true",
        help="Emit JSON instead of a human-readable table.",
    )
    search_parser.set_defaults(func=_cmd_search)

    schema_parser = subparsers.add_parser(
        "apply-schema",
        help="Create the campaign tables if missing.",
    )
    schema_parser.add_argument(
        "--no-seed",
        action="store_true",
        help="Do not insert the core entity types.",
    )
    schema_parser.set_defaults(func=_cmd_apply_schema)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=str(args.log_level).upper(),
            format="%(levelname)s %(name)s %(message)s",
            stream=sys.stderr,
        )

    func = getattr(args, "func", None)
    if func is None:
        parser.error("no command specified")
        return 1

    return int(func(args))


if __name__ == "__main__":
    raise SystemExit(main())
