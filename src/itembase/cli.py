"""itembase export CLI.

Drains one collection of one user into a JSON lines file.

Usage:
    itembase-export --user USER_ID --collection products
    itembase-export --user USER_ID --collection transactions --created-from 2024-01-01T00:00:00Z
    itembase-export --user USER_ID --collection buyers --max 500 --output buyers.jsonl
"""

import argparse
import json
import sys
from contextlib import nullcontext

from .accumulators import DocumentCollection
from .client import ItembaseClient
from .config import get_config
from .errors import ItembaseError
from .logging_config import configure_logging
from .oauth import console_permission_handler
from .timestamps import parse_rfc3339
from .token_store import FileTokenStore, MemoryTokenStore

COLLECTIONS = ("transactions", "products", "buyers", "profiles")

EXIT_SUCCESS = 0
EXIT_ERROR = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="itembase-export",
        description="Export an itembase collection to JSON lines",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration (environment or .env):
  ITEMBASE_CLIENT_ID=...
  ITEMBASE_CLIENT_SECRET=...
  ITEMBASE_SCOPES=user.minimal,connection.transaction
  ITEMBASE_REDIRECT_URL=https://example.com/oauth/callback
  ITEMBASE_PRODUCTION=false
  ITEMBASE_TOKEN_STORE_PATH=~/.itembase/tokens.json
        """,
    )
    parser.add_argument("--user", required=True, metavar="USER_ID", help="itembase user id")
    parser.add_argument("--collection", required=True, choices=COLLECTIONS)
    parser.add_argument("--created-from", type=parse_rfc3339, metavar="TS")
    parser.add_argument("--created-to", type=parse_rfc3339, metavar="TS")
    parser.add_argument("--updated-from", type=parse_rfc3339, metavar="TS")
    parser.add_argument("--updated-to", type=parse_rfc3339, metavar="TS")
    parser.add_argument("--limit", type=int, metavar="N", help="Documents per request")
    parser.add_argument("--max", type=int, default=0, metavar="N", help="Stop after N documents")
    parser.add_argument("--output", "-o", metavar="FILE", help="Output file (default: stdout)")
    return parser


def run_export(args, client: ItembaseClient) -> int:
    query = getattr(client.user(args.user), args.collection)()

    if args.created_from:
        query = query.created_at_from(args.created_from)
    if args.created_to:
        query = query.created_at_to(args.created_to)
    if args.updated_from:
        query = query.updated_at_from(args.updated_from)
    if args.updated_to:
        query = query.updated_at_to(args.updated_to)
    if args.limit:
        query = query.limit(args.limit)
    if args.max:
        query = query.max_results(args.max)

    documents = DocumentCollection()
    result = query.get_all_into(documents)

    sink = open(args.output, "w", encoding="utf-8") if args.output else nullcontext(sys.stdout)
    with sink as out:
        for document in documents:
            out.write(json.dumps(document) + "\n")

    summary = f"{result.outcome.value}: {result.added} documents ({result.total_found} found)"
    if result.anomaly:
        summary += f", stopped on {result.anomaly.value}"
    print(summary, file=sys.stderr)
    return EXIT_SUCCESS


def main(argv=None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = get_config()
    except Exception as e:
        print(f"Error: Failed to load configuration: {e}", file=sys.stderr)
        return EXIT_ERROR

    configure_logging(config.log_level, config.log_format)

    if config.token_store_path is not None:
        store = FileTokenStore(config.token_store_path)
    else:
        print("Warning: ITEMBASE_TOKEN_STORE_PATH not set, tokens are not kept", file=sys.stderr)
        store = MemoryTokenStore()

    try:
        with ItembaseClient(config, handlers=store.handlers(console_permission_handler)) as client:
            return run_export(args, client)
    except KeyboardInterrupt:
        print("\nExport interrupted by user", file=sys.stderr)
        return 130
    except ItembaseError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
