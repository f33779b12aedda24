import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import structlog

from lodge_reservations.db.engine import engine
from lodge_reservations.logging_config import setup_logging
from lodge_reservations.services.channel_sync import sync_mapping

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    """
    Import a single channel mapping by id.

    Usage: python scripts/sync_one_mapping.py <mapping_id> [--dry-run]
    """
    args = [a for a in sys.argv[1:] if a != "--dry-run"]
    if len(args) != 1:
        print("usage: sync_one_mapping.py <mapping_id> [--dry-run]", file=sys.stderr)
        sys.exit(2)

    mapping_id = args[0]
    dry_run = "--dry-run" in sys.argv[1:]

    logger.info("mapping_sync_started", mapping_id=mapping_id, dry_run=dry_run)

    try:
        result = sync_mapping(engine, mapping_id, dry_run=dry_run)
        logger.info("mapping_sync_completed", **result.snapshot())
    except Exception:
        logger.exception("mapping_sync_failed", mapping_id=mapping_id)
        raise


if __name__ == "__main__":
    main()
