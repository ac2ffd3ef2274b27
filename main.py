"""
meetbook — Entry Point.

Maintenance commands against the configured database:

    python main.py refresh <user_id>
    python main.py dashboard <user_id> <bucket> [--search TERM] [--page N]
"""

import argparse
import logging
import sys

from meetbook.config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from meetbook.core.engine import create_engine
from meetbook.data.models import BUCKETS

logger = logging.getLogger("meetbook")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="meetbook")
    commands = parser.add_subparsers(dest="command", required=True)

    refresh = commands.add_parser("refresh", help="Rebuild a user's booking dashboard")
    refresh.add_argument("user_id")

    dashboard = commands.add_parser("dashboard", help="Show one bucket of a user's dashboard")
    dashboard.add_argument("user_id")
    dashboard.add_argument("bucket", choices=BUCKETS)
    dashboard.add_argument("--search", default=None)
    dashboard.add_argument("--page", type=int, default=1)
    dashboard.add_argument("--limit", type=int, default=None)
    return parser


def main(argv=None) -> int:
    args = _build_parser().parse_args(argv)
    engine = create_engine()

    if args.command == "refresh":
        response = engine.meetings.refresh_booking(args.user_id)
        print(response.message)
        if response.success:
            for name, count in response.data.counts().items():
                print(f"  {name}: {count}")
        return 0 if response.success else 1

    response = engine.dashboard.get_bucket(
        args.user_id, args.bucket, search_term=args.search, page=args.page, limit=args.limit,
    )
    print(response.message)
    if not response.success:
        return 1
    for item in response.data:
        print(f"  {item.date} {item.start_time}-{item.end_time}  {item.title} [{item.status}]")
    p = response.pagination
    print(f"page {p.page} ({p.total} total)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
