import argparse
import asyncio
import logging
import sys

import uvicorn

from transaction_reports.config import load_settings
from transaction_reports.data.db import TransactionDB
from transaction_reports.errors import TransactionsAPIError
from transaction_reports.services.seeder import seed_database
from transaction_reports.utils.logger import configure_logging

logger = logging.getLogger(__name__)


async def seed(settings) -> int:
    db = TransactionDB.connect(settings)
    try:
        return await seed_database(db, settings.seed_url, settings.seed_timeout_seconds)
    finally:
        db.close()


def serve(settings, reload: bool = False):
    uvicorn.run(
        "transaction_reports.interfaces.api:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="transaction-reports", description="Transactions API")
    parser.add_argument("--env-file", default=None, help="path to a .env file")
    sub = parser.add_subparsers(dest="command", required=True)

    serve_p = sub.add_parser("serve", help="run the HTTP API")
    serve_p.add_argument("--host", default=None)
    serve_p.add_argument("--port", type=int, default=None)
    serve_p.add_argument("--reload", action="store_true")

    sub.add_parser("seed", help="replace the collection with the upstream dataset")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.env_file)
    except TransactionsAPIError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    if args.command == "serve":
        if args.host:
            settings.host = args.host
        if args.port:
            settings.port = args.port
        serve(settings, reload=args.reload)
        return 0

    try:
        inserted = asyncio.run(seed(settings))
    except TransactionsAPIError as e:
        logger.error("Seeding failed: %s", e)
        return 1
    print(f"Database seeded successfully ({inserted} transactions)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
