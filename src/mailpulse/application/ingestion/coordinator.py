"""Ingestion coordinator: one mailbox session per account, fanned into one pipeline."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from loguru import logger

from mailpulse.application.ingestion.session import MailboxSession
from mailpulse.application.ports.email_source import RawEmail
from mailpulse.application.use_cases.process_email import ProcessingPipeline
from mailpulse.domain.entities.account import Account
from mailpulse.domain.entities.email_message import EmailMessage
from mailpulse.domain.errors import AuthError, IndexWriteError
from mailpulse.domain.models import SessionSnapshot
from mailpulse.infrastructure.email.providers.imap.mapper import rfc822_to_email_message

SessionFactory = Callable[[Account], MailboxSession]
Normalizer = Callable[[RawEmail], EmailMessage]


@dataclass
class IngestionStats:
    """Track coordinator statistics. Watcher threads update it concurrently."""
    backfilled: int = 0
    live_processed: int = 0
    errors: int = 0
    started_at: Optional[datetime] = None
    by_account: dict[str, int] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_error(self) -> None:
        with self._lock:
            self.errors += 1

    def record_backfill(self, account: str, count: int) -> None:
        with self._lock:
            self.backfilled += count
            self.by_account[account] = self.by_account.get(account, 0) + count

    def record_live(self, account: str) -> None:
        with self._lock:
            self.live_processed += 1
            self.by_account[account] = self.by_account.get(account, 0) + 1

    def summary(self) -> dict[str, object]:
        with self._lock:
            return {
                "backfilled": self.backfilled,
                "live": self.live_processed,
                "errors": self.errors,
                "by_account": dict(self.by_account),
            }


class IngestionCoordinator:
    """
    Supervises mailbox sessions and isolates their failures.

    Startup is sequential per account. Each live account then gets its own
    watcher thread feeding ProcessingPipeline.process_one. shutdown() may be
    called from another thread while start() is still running.
    """

    def __init__(
        self,
        pipeline: ProcessingPipeline,
        session_factory: SessionFactory,
        sync_window_days: int = 30,
        normalizer: Normalizer = rfc822_to_email_message,
    ) -> None:
        self.pipeline = pipeline
        self.session_factory = session_factory
        self.sync_window_days = sync_window_days
        self.normalizer = normalizer

        self.sessions: dict[str, MailboxSession] = {}
        self.down_accounts: dict[str, str] = {}
        self.stats = IngestionStats()
        self._threads: dict[str, threading.Thread] = {}
        # Guards sessions and _threads against a concurrent shutdown()
        self._lock = threading.Lock()
        self._stopping = threading.Event()

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def _register(self, account: Account) -> Optional[MailboxSession]:
        with self._lock:
            if self._stopping.is_set():
                return None
            if account.id in self.sessions:
                logger.warning(f"Account {account.id} configured twice, ignoring duplicate")
                return None
            session = self.session_factory(account)
            self.sessions[account.id] = session
            return session

    def _open_sessions(self, accounts: Iterable[Account]) -> dict[str, list[RawEmail]]:
        backlog: dict[str, list[RawEmail]] = {}
        for account in accounts:
            if self._stopping.is_set():
                logger.info("Shutdown requested, skipping remaining accounts")
                break
            session = self._register(account)
            if session is None:
                continue
            try:
                logger.info(f"Connecting to {account.id} ({account.host}:{account.port})")
                session.connect()
                logger.info(f"Fetching historical emails for {account.id}...")
                backlog[account.id] = session.fetch_since(self.sync_window_days)
            except AuthError as e:
                self.down_accounts[account.id] = str(e)
                self.stats.record_error()
                logger.error(f"Authentication failed for {account.id}; account stays down until restart: {e}")
            except Exception as e:
                if self._stopping.is_set():
                    logger.info(f"Startup of {account.id} interrupted by shutdown")
                    break
                self.stats.record_error()
                logger.error(f"Startup failed for {account.id}, live watch will keep retrying: {e}")
        return backlog

    def _normalize(self, raws: Iterable[RawEmail]) -> list[EmailMessage]:
        messages: list[EmailMessage] = []
        for raw in raws:
            try:
                messages.append(self.normalizer(raw))
            except Exception as e:
                self.stats.record_error()
                logger.error(f"Could not normalize UID {raw.uid} from {raw.account}: {e}")
        return messages

    def _process_backfill(self, account_id: str, raws: list[RawEmail]) -> int:
        if not raws:
            logger.info(f"No emails to backfill for {account_id}")
            return 0

        messages = self._normalize(raws)
        try:
            self.pipeline.process_batch(messages)
        except IndexWriteError as e:
            self.stats.record_error()
            logger.error(f"Backfill indexing failed for {account_id} ({len(messages)} emails): {e}")
            session = self.sessions.get(account_id)
            if session is not None:
                # Unseen ones come back through the live stream
                session.release(raw.uid for raw in raws)
            return 0

        self.stats.record_backfill(account_id, len(messages))
        return len(messages)

    def backfill(self, accounts: Iterable[Account]) -> int:
        """Connect, backfill every account once, then disconnect."""
        backlog = self._open_sessions(accounts)
        try:
            return sum(self._process_backfill(account_id, raws) for account_id, raws in backlog.items())
        finally:
            self.disconnect_all()

    def start(self, accounts: Iterable[Account]) -> None:
        """Connect and backfill every account, then start one watcher per live account."""
        self.stats.started_at = datetime.now(timezone.utc)
        backlog = self._open_sessions(list(accounts))

        for account_id, raws in backlog.items():
            if self._stopping.is_set():
                break
            self._process_backfill(account_id, raws)

        with self._lock:
            if self._stopping.is_set():
                logger.info("Shutdown requested during startup, no watchers started")
                return
            for account_id, session in self.sessions.items():
                if account_id in self.down_accounts or account_id in self._threads:
                    continue
                thread = threading.Thread(
                    target=self._watch_account,
                    args=(session,),
                    name=f"mailbox-{account_id}",
                    daemon=True,
                )
                self._threads[account_id] = thread
                thread.start()
            live = len(self._threads)

        logger.info(
            f"Ingestion started: {live} live account(s), "
            f"{len(self.down_accounts)} down, {self.stats.backfilled} emails backfilled"
        )

    # ------------------------------------------------------------------
    # Live path
    # ------------------------------------------------------------------

    def _watch_account(self, session: MailboxSession) -> None:
        account_id = session.account.id
        try:
            while not session.stopped and not self._stopping.is_set():
                try:
                    for raw in session.watch():
                        self._process_live(session, raw)
                    return
                except AuthError as e:
                    self.down_accounts[account_id] = str(e)
                    self.stats.record_error()
                    logger.error(f"Authentication failed for {account_id} on reconnect; account is down: {e}")
                    return
                except Exception as e:
                    self.stats.record_error()
                    delay = session.backoff.max_delay
                    logger.exception(f"Watcher for {account_id} crashed, restarting in {delay:.0f}s: {e}")
                    self._stopping.wait(delay)
        finally:
            logger.info(f"Watcher for {account_id} exited")

    def _process_live(self, session: MailboxSession, raw: RawEmail) -> None:
        try:
            msg = self.normalizer(raw)
            self.pipeline.process_one(msg)
        except IndexWriteError as e:
            self.stats.record_error()
            logger.error(f"Indexing failed for UID {raw.uid} ({raw.account}), will retry on next check: {e}")
            session.release([raw.uid])
            return
        except Exception as e:
            self.stats.record_error()
            logger.exception(f"Processing failed for UID {raw.uid} ({raw.account}): {e}")
            session.release([raw.uid])
            return

        self.stats.record_live(raw.account)

    # ------------------------------------------------------------------
    # Shutdown and health
    # ------------------------------------------------------------------

    def disconnect_all(self) -> None:
        """Stop every session: cancel waits and close transports. Never raises."""
        with self._lock:
            sessions = list(self.sessions.items())
        for account_id, session in sessions:
            try:
                session.stop()
            except Exception as e:
                logger.warning(f"Error stopping session {account_id}: {e}")

    def shutdown(self, timeout: float = 10.0) -> None:
        logger.info("Shutting down ingestion...")
        with self._lock:
            self._stopping.set()
            threads = list(self._threads.items())
        self.disconnect_all()
        for account_id, thread in threads:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning(f"Watcher for {account_id} did not exit within {timeout}s")
        self.pipeline.close(wait=True)
        summary = self.stats.summary()
        logger.info(
            f"Ingestion stopped: backfilled={summary['backfilled']}, "
            f"live={summary['live']}, errors={summary['errors']}, "
            f"by_account={summary['by_account']}"
        )

    def snapshots(self) -> dict[str, SessionSnapshot]:
        with self._lock:
            sessions = list(self.sessions.items())
        return {account_id: session.snapshot() for account_id, session in sessions}
