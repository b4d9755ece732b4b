#!/usr/bin/env python
"""Scheduled gateway sync.

Entry point for cron or any other scheduler. Runs one sync for a gateway
source and logs the same summary a manual trigger returns. Gateways that
are disabled or have ``auto_sync`` turned off are skipped unless
``--force`` is given.

Exit codes: 0 on success or skip, 1 on a failed run, 2 when a sync for
the gateway is already running, 3 on an unknown source.

Usage:
    python -m scripts.sync_gateway paypal
    python -m scripts.sync_gateway paypal_nvp --type historical
    python -m scripts.sync_gateway stripe --force
    python -m scripts.sync_gateway --purge
"""

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import settings
from database import get_session_local
from integrations.exceptions import UnknownGatewayError
from integrations.gateway_registry import ALL_SOURCE_NAMES, gateway_for_source
from logging_config import setup_logging
from services.credential_store import CredentialStore
from services.exceptions import SyncAlreadyRunningError
from services.gateway_settings_service import GatewaySettingsService
from services.sync_run_tracker import SyncRunTracker
from services.sync_service import SyncService
from utils.actor import SCHEDULER_ACTOR

logger = logging.getLogger("scripts.sync_gateway")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ALREADY_RUNNING = 2
EXIT_UNKNOWN_SOURCE = 3


def should_run(store: CredentialStore, source: str) -> tuple[bool, str]:
    """Decide whether a scheduled run should proceed.

    Returns:
        ``(True, "")`` to run, or ``(False, reason)`` to skip.
    """
    credential = store.get_credentials(gateway_for_source(source))
    if not credential.enabled:
        return False, "gateway is disabled"
    if credential.get("auto_sync").strip().lower() not in ("1", "true", "yes", "on"):
        return False, "auto sync is off"
    return True, ""


def run_scheduled_sync(db, source: str, force: bool = False, sync_type: str = "cron",
                       service: SyncService | None = None) -> int:
    """Run one scheduled sync and return the process exit code."""
    try:
        gateway_id = gateway_for_source(source)
    except UnknownGatewayError:
        logger.error("Unknown source %r. Valid sources: %s", source, ", ".join(ALL_SOURCE_NAMES))
        return EXIT_UNKNOWN_SOURCE

    if not force:
        ok, reason = should_run(CredentialStore(GatewaySettingsService(db)), source)
        if not ok:
            logger.info("Skipping %s sync: %s", source, reason)
            return EXIT_OK
        if SyncRunTracker(db).is_running(gateway_id):
            logger.info("Skipping %s sync: a %s sync is already running", source, gateway_id)
            return EXIT_ALREADY_RUNNING

    service = service or SyncService(actor=SCHEDULER_ACTOR)
    try:
        result = service.run(db, source, sync_type=sync_type, actor=SCHEDULER_ACTOR)
    except SyncAlreadyRunningError:
        logger.info("Skipping %s sync: a %s sync is already running", source, gateway_id)
        return EXIT_ALREADY_RUNNING

    if result.succeeded:
        logger.info("%s", result.summary())
        return EXIT_OK
    logger.warning("%s", result.summary())
    return EXIT_FAILED


def main(argv: list[str] | None = None) -> int:
    """Entry point: parse args and run the sync."""
    parser = argparse.ArgumentParser(
        description="Run a scheduled payment gateway sync.",
    )
    parser.add_argument(
        "source",
        nargs="?",
        help=f"Sync source: {', '.join(ALL_SOURCE_NAMES)}",
    )
    parser.add_argument(
        "--type",
        dest="sync_type",
        choices=("cron", "manual", "historical"),
        default="cron",
        help="Sync type recorded on the run (default: cron)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Run even if the gateway has auto sync turned off",
    )
    parser.add_argument(
        "--purge",
        action="store_true",
        help=f"Delete sync runs older than {settings.SYNC_RUN_RETENTION_DAYS} days",
    )
    args = parser.parse_args(argv)
    if not args.source and not args.purge:
        parser.error("a source is required unless --purge is given")

    setup_logging()
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        if args.purge:
            SyncRunTracker(db).purge_older_than(settings.SYNC_RUN_RETENTION_DAYS)
        if not args.source:
            return EXIT_OK
        return run_scheduled_sync(db, args.source, force=args.force, sync_type=args.sync_type)
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
