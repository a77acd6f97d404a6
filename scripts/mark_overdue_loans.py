#!/usr/bin/env python3
"""
Mark every active loan past its due date as overdue.

Meant to run from cron or any other periodic scheduler:

    python scripts/mark_overdue_loans.py [--database-url URL]
"""

import argparse
import logging
import sys

from library_circulation.database import CirculationRepository, get_db_manager

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Mark overdue library loans")
    parser.add_argument("--database-url", help="Override default database URL")
    args = parser.parse_args()

    db_manager = get_db_manager(args.database_url)
    try:
        with db_manager.session_scope() as session:
            count = CirculationRepository(session).mark_overdue_loans()
        logger.info("%d loans marked overdue", count)
    except Exception:
        logger.exception("Overdue sweep failed")
        sys.exit(1)
    finally:
        db_manager.close()


if __name__ == "__main__":
    main()
