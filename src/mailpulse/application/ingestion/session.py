"""Mailbox session: one live connection to one account.

State machine::

    disconnected -> connecting -> connected_push | connected_poll
    connected_*  -> reconnecting -> connecting        (TransportError)
    connecting   -> disconnected                      (AuthError, not retried)
    any          -> stopped                           (stop())

A session is driven by whoever iterates ``watch()``; the waits (IDLE, poll
timer, retry delay) all wake up when ``stop()`` is called.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Iterator, Optional

from loguru import logger

from mailpulse.application.ingestion.backoff import BackoffPolicy
from mailpulse.application.ports.email_source import MailboxTransport, RawEmail
from mailpulse.domain.entities.account import Account
from mailpulse.domain.errors import AuthError, ParseError, TransportError
from mailpulse.domain.models import SessionSnapshot, SessionStatus
from mailpulse.infrastructure.email.rfc822 import ensure_rfc822

TransportFactory = Callable[[Account], MailboxTransport]

FETCH_CHUNK = 100


def _chunks(uids: list[int], size: int) -> Iterable[list[int]]:
    for i in range(0, len(uids), size):
        yield uids[i : i + size]


class MailboxSession:
    """Owns one transport for one account, plus its reconnect policy."""

    def __init__(
        self,
        account: Account,
        transport_factory: TransportFactory,
        poll_interval: float = 30.0,
        idle_timeout: float = 300.0,
        backoff: Optional[BackoffPolicy] = None,
        provider: str = "imap",
    ) -> None:
        self.account = account
        self.transport_factory = transport_factory
        self.poll_interval = poll_interval
        self.idle_timeout = idle_timeout
        self.backoff = backoff or BackoffPolicy()
        self.provider = provider

        self.last_connected_at: Optional[datetime] = None
        self.retry_delay: float = 0.0
        self.last_error: Optional[str] = None

        self._status = SessionStatus.DISCONNECTED
        self._transport: Optional[MailboxTransport] = None
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._attempt = 0
        # UIDs emitted (or deliberately skipped) during this run
        self._seen: set[int] = set()
        self._uidvalidity: Optional[int] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def _set_status(self, status: SessionStatus) -> None:
        if self._status is SessionStatus.STOPPED and status is not SessionStatus.STOPPED:
            return
        if status is not self._status:
            logger.info(f"[{self.account.id}] {self._status.value} -> {status.value}")
            self._status = status

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            account=self.account.id,
            status=self._status,
            last_connected_at=self.last_connected_at,
            retry_delay_seconds=self.retry_delay,
            last_error=self.last_error,
        )

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Open a fresh connection and pick push or poll mode.

        Raises AuthError (session stays disconnected) or TransportError
        (session moves to reconnecting).
        """
        if self._stop.is_set():
            raise TransportError(f"Session for {self.account.id} is stopped")

        self._drop_transport()
        self._set_status(SessionStatus.CONNECTING)
        transport = self.transport_factory(self.account)
        try:
            transport.connect()
            uidvalidity = transport.select_folder(self.account.folder)
            push = transport.supports_push()
        except AuthError as e:
            transport.close()
            self.last_error = str(e)
            self._set_status(SessionStatus.DISCONNECTED)
            raise
        except TransportError as e:
            transport.close()
            self.last_error = str(e)
            self._set_status(SessionStatus.RECONNECTING)
            raise
        except Exception as e:
            transport.close()
            self.last_error = str(e)
            self._set_status(SessionStatus.RECONNECTING)
            raise TransportError(f"Unexpected error connecting {self.account.id}: {e}") from e

        with self._lock:
            if self._stop.is_set():
                transport.close()
                raise TransportError(f"Session for {self.account.id} stopped while connecting")
            self._transport = transport

        if self._uidvalidity is not None and uidvalidity != self._uidvalidity:
            logger.warning(f"[{self.account.id}] UIDVALIDITY changed, forgetting seen UIDs")
            self._seen.clear()
        self._uidvalidity = uidvalidity

        self._attempt = 0
        self.retry_delay = 0.0
        self.last_error = None
        self.last_connected_at = datetime.now(timezone.utc)

        if push:
            self._set_status(SessionStatus.CONNECTED_PUSH)
        else:
            logger.info(f"[{self.account.id}] IDLE not supported, polling every {self.poll_interval:.0f}s")
            self._set_status(SessionStatus.CONNECTED_POLL)

    def stop(self) -> None:
        """Cancel pending waits and close the transport. Never raises."""
        self._stop.set()
        self._drop_transport()
        self._set_status(SessionStatus.STOPPED)

    def _drop_transport(self) -> None:
        with self._lock:
            transport, self._transport = self._transport, None
        if transport is None:
            return
        try:
            transport.close()
        except Exception as e:
            logger.debug(f"[{self.account.id}] Ignoring close error: {e}")

    def _require_transport(self) -> MailboxTransport:
        transport = self._transport
        if transport is None or not self._status.is_connected:
            raise TransportError(f"Session for {self.account.id} is not connected")
        return transport

    def _schedule_retry(self, error: Exception) -> None:
        self.last_error = str(error)
        self._drop_transport()
        self._set_status(SessionStatus.RECONNECTING)
        delay = self.backoff.delay_for(self._attempt)
        self._attempt += 1
        self.retry_delay = delay
        logger.warning(
            f"[{self.account.id}] Connection lost ({error}); "
            f"reconnecting in {delay:.1f}s (attempt {self._attempt})"
        )
        self._stop.wait(delay)

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def _decode(self, uid: int, data: Optional[bytes]) -> Optional[RawEmail]:
        try:
            ensure_rfc822(data)
        except ParseError as e:
            logger.warning(f"[{self.account.id}] Skipping UID {uid}: {e}")
            return None
        return RawEmail(
            provider=self.provider,
            account=self.account.id,
            folder=self.account.folder,
            uid=uid,
            rfc822_bytes=bytes(data),
        )

    def fetch_since(self, window_days: int) -> list[RawEmail]:
        """Fetch every message in the folder from the last ``window_days`` days."""
        transport = self._require_transport()
        since = (datetime.now(timezone.utc) - timedelta(days=window_days)).date()

        try:
            uids = transport.search_since(since)
            if not uids:
                logger.info(f"[{self.account.id}] No emails found in last {window_days} days")
                return []

            logger.info(f"[{self.account.id}] Found {len(uids)} emails in last {window_days} days")
            results: list[RawEmail] = []
            for chunk in _chunks(uids, FETCH_CHUNK):
                fetched = transport.fetch(chunk)
                for uid in chunk:
                    self._seen.add(uid)
                    raw = self._decode(uid, fetched.get(uid))
                    if raw is not None:
                        results.append(raw)
        except TransportError as e:
            self.last_error = str(e)
            self._drop_transport()
            self._set_status(SessionStatus.RECONNECTING)
            raise

        logger.info(f"[{self.account.id}] Fetched {len(results)} historical emails")
        return results

    def _drain_unseen(self) -> Iterator[RawEmail]:
        transport = self._require_transport()
        uids = [uid for uid in transport.search_unseen() if uid not in self._seen]
        if not uids:
            return

        logger.info(f"[{self.account.id}] Fetching {len(uids)} new email(s)")
        for chunk in _chunks(uids, FETCH_CHUNK):
            fetched = transport.fetch(chunk)
            for uid in chunk:
                if self._stop.is_set():
                    return
                self._seen.add(uid)
                raw = self._decode(uid, fetched.get(uid))
                if raw is not None:
                    yield raw

    def _wait_for_mail(self) -> None:
        if self._status is SessionStatus.CONNECTED_PUSH:
            transport = self._require_transport()
            if transport.wait_for_push(self.idle_timeout):
                logger.debug(f"[{self.account.id}] New mail event")
        else:
            self._stop.wait(self.poll_interval)

    def release(self, uids: Iterable[int]) -> None:
        """Forget UIDs so the next unseen query emits them again."""
        for uid in uids:
            self._seen.discard(uid)

    def watch(self) -> Iterator[RawEmail]:
        """Yield new messages until stop() is called.

        Transport failures are retried forever with backoff. AuthError is
        raised to the caller: the account stays down.
        """
        try:
            while not self._stop.is_set():
                try:
                    if not self._status.is_connected:
                        self.connect()
                    yield from self._drain_unseen()
                    if self._stop.is_set():
                        break
                    self._wait_for_mail()
                except AuthError:
                    raise
                except TransportError as e:
                    if self._stop.is_set():
                        break
                    self._schedule_retry(e)
                except Exception as e:
                    if self._stop.is_set():
                        break
                    logger.exception(f"[{self.account.id}] Unexpected error in watch loop: {e}")
                    self._schedule_retry(e)
        finally:
            if self._stop.is_set():
                self._set_status(SessionStatus.STOPPED)
