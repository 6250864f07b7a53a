"""Toto settlement worker - Main Entry Point."""

import asyncio
import logging
import signal
import sys

from pydantic import ValidationError as SettingsError

from config import get_settings
from toto.api import Credentials, PocketBaseClient
from toto.utils import setup_logging
from toto.worker import SettlementWorker

logger = logging.getLogger("toto")


def build_client(settings) -> PocketBaseClient:
    """Create the data service client from settings."""
    return PocketBaseClient(
        base_url=settings.service_url,
        auth_path=settings.service_auth_path,
        matches_collection=settings.matches_collection,
        bets_collection=settings.bets_collection,
        timeout=settings.service_timeout_s,
        page_size=settings.page_size,
        session_ttl_s=settings.session_ttl_s,
    )


async def main() -> int:
    """Run settlement cycles until SIGINT/SIGTERM."""
    setup_logging()
    try:
        settings = get_settings()
    except SettingsError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    setup_logging(settings.log_level)

    # Validate required settings
    missing = settings.missing()
    if missing:
        logger.error("Missing configuration: %s not set in environment or .env", ", ".join(missing))
        return 1
    if settings.poll_interval_ms <= 0:
        logger.error("POLL_INTERVAL_MS must be positive, got %d", settings.poll_interval_ms)
        return 2

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows: SIGINT still arrives as KeyboardInterrupt
            pass

    client = build_client(settings)
    worker = SettlementWorker(
        service=client,
        credentials=Credentials(settings.service_user, settings.service_password),
        interval_s=settings.poll_interval_s,
    )

    logger.info("Data service: %s", settings.service_url)
    try:
        await worker.run_forever(stop)
    finally:
        await client.close()

    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(0)
