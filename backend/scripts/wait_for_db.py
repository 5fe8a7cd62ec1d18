"""
Wait until the database accepts connections.

Usage:
    python scripts/wait_for_db.py [--attempts 30] [--interval 2]

Exits with status 0 once a connection succeeds and 1 if every attempt failed.
Intended for container entrypoints that start the API after the database.
"""

import sys
import os
import time
import argparse
import logging
from dotenv import load_dotenv

load_dotenv()

# Add the parent directory to sys.path to allow imports from backend
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Settings
from database import check_db_connection, create_db_engine

logger = logging.getLogger("wait_for_db")


def wait_for_database(engine, attempts: int = 30, interval: float = 2.0, sleep=time.sleep) -> bool:
    for attempt in range(1, attempts + 1):
        if check_db_connection(engine):
            logger.info("Database ready after %s attempt(s)", attempt)
            return True
        if attempt % 5 == 0:
            logger.info("Waiting for database... attempt %s/%s", attempt, attempts)
        if attempt < attempts:
            sleep(interval)
    logger.error("Database not ready after %s attempts", attempts)
    return False


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Wait until the database accepts connections")
    parser.add_argument("--attempts", type=int, default=30)
    parser.add_argument("--interval", type=float, default=2.0, help="Seconds between attempts")
    args = parser.parse_args(argv)

    settings = Settings()
    logger.info(
        "Waiting for %s:%s/%s as %s",
        settings.postgres_server, settings.postgres_port, settings.postgres_db, settings.postgres_user,
    )
    engine = create_db_engine(settings)
    try:
        return 0 if wait_for_database(engine, attempts=args.attempts, interval=args.interval) else 1
    finally:
        engine.dispose()


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    sys.exit(main())
