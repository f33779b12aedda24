"""
Run a channel import for every active mapping, once.

Meant for cron or any other timer:

    python -m lodge_reservations.pollers.sync
"""

import sys

import structlog

from lodge_reservations.config import DRY_RUN
from lodge_reservations.db.engine import engine
from lodge_reservations.logging_config import setup_logging
from lodge_reservations.services.channel_sync import sync_all_mappings

# Setup logging
setup_logging()
logger = structlog.get_logger(__name__)


def main() -> int:
    summary = sync_all_mappings(engine, dry_run=DRY_RUN)
    logger.info("channel_sync_poll_finished", synced=summary["synced"], failed=summary["failed"])
    return 1 if summary["failed"] else 0


if __name__ == "__main__":
    sys.exit(main())
