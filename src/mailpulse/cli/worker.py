"""Email ingestion worker - keeps every configured mailbox connected and indexed."""

from __future__ import annotations

import signal
import threading

from loguru import logger

from mailpulse.application.ingestion import IngestionCoordinator
from mailpulse.cli.log_config import configure_logging
from mailpulse.domain.entities.account import Account
from mailpulse.infrastructure.container import Container
from mailpulse.infrastructure.settings import get_settings

STATS_INTERVAL_SECONDS = 300


class EmailWorker:
    """
    Long-running ingestion worker.

    Backfills every mailbox, then watches them until SIGINT/SIGTERM.
    """

    def __init__(self, container: Container, accounts: list[Account]):
        self.container = container
        self.accounts = accounts
        self.coordinator: IngestionCoordinator | None = None
        self._shutdown = threading.Event()

    def _log_stats(self) -> None:
        if self.coordinator is None:
            return
        stats = self.coordinator.stats.summary()
        states = {a: s.status.value for a, s in self.coordinator.snapshots().items()}
        logger.info(
            f"Worker stats: "
            f"backfilled={stats['backfilled']}, "
            f"live={stats['live']}, "
            f"errors={stats['errors']}, "
            f"sessions={states}"
        )

    def _handle_shutdown(self, signum, frame) -> None:
        """Handle graceful shutdown."""
        logger.info(f"Received signal {signum}, shutting down...")
        self._shutdown.set()

    def stop(self) -> None:
        self._shutdown.set()

    def run(self) -> int:
        """Run until a shutdown signal arrives."""
        signal.signal(signal.SIGTERM, self._handle_shutdown)
        signal.signal(signal.SIGINT, self._handle_shutdown)

        logger.info(f"Email worker starting with {len(self.accounts)} mailbox(es)")
        for account in self.accounts:
            logger.info(f"  - {account.email} ({account.host}:{account.port}/{account.folder})")

        try:
            self.container.ensure_schema()
            self.coordinator = self.container.build_coordinator()
        except Exception as e:
            logger.error(f"Failed to initialize infrastructure: {e}")
            return 1

        try:
            self.coordinator.start(self.accounts)
            while not self._shutdown.wait(STATS_INTERVAL_SECONDS):
                self._log_stats()
        finally:
            self.coordinator.shutdown()
            self.container.close()

        logger.info("Worker shutdown complete")
        return 0


def main() -> int:
    """Entry point for the email worker."""
    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info("=" * 60)
    logger.info(f"{settings.app_name} Email Worker")
    logger.info("=" * 60)

    accounts = settings.accounts()
    if not accounts:
        logger.error("No mailboxes configured! Set EMAIL_ACCOUNTS")
        return 1

    worker = EmailWorker(Container(settings), accounts)
    return worker.run()


if __name__ == "__main__":
    raise SystemExit(main())
