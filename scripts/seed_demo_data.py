"""
Seed an empty prayer wall database with a sample challenge and intentions.
"""

from __future__ import annotations

import argparse
import logging
import sys

from prayerwall.config import get_settings
from prayerwall.db import PostgresDbClient
from prayerwall.seed import seed_demo_data

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed prayer wall demo data")
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="SQLAlchemy URL (defaults to DATABASE_URL)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    database_url = args.database_url or get_settings().database_url
    if not database_url:
        logger.error("No database configured; pass --database-url or set DATABASE_URL")
        return 1

    created = seed_demo_data(PostgresDbClient(database_url))
    logger.info("Done, %d record(s) created", created)
    return 0


if __name__ == "__main__":
    sys.exit(main())
