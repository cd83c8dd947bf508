"""Classify, index and notify ingested emails."""

from __future__ import annotations

import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from typing import Callable, Optional, TypeVar

from loguru import logger

from mailpulse.application.ports.classifier import Classifier
from mailpulse.application.ports.notifier import Notifier
from mailpulse.application.ports.search_index import SearchIndex
from mailpulse.domain.entities.email_message import EmailMessage
from mailpulse.domain.errors import IndexWriteError
from mailpulse.domain.models import Category

T = TypeVar("T")

NOTIFY_CATEGORIES = frozenset({Category.INTERESTED})


class ProcessingPipeline:
    """Turn normalized emails into classified, indexed, notified records.

    Flow:
    1. Classify (failures fall back to Uncategorized, per message)
    2. Upsert into the search index (bulk for backfill, single for live);
       index failures surface as IndexWriteError
    3. Fire notifications for Interested emails on a thread pool; the caller
       never waits for them and their failures are only logged

    Re-running either path on the same email overwrites its record.
    """

    def __init__(
        self,
        index: SearchIndex,
        classifier: Classifier,
        notifier: Notifier,
        notification_workers: int = 4,
        executor: Optional[Executor] = None,
    ) -> None:
        self.index = index
        self.classifier = classifier
        self.notifier = notifier
        self._executor = executor or ThreadPoolExecutor(
            max_workers=notification_workers,
            thread_name_prefix="notify",
        )
        self._pending: set[Future] = set()
        self._pending_lock = threading.Lock()
        self._closed = False

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def classify(self, msg: EmailMessage) -> Category:
        """Classify one email in place. Never raises."""
        try:
            category = self.classifier.classify(msg)
            if not isinstance(category, Category):
                category = Category.parse(str(category) if category is not None else None)
        except Exception as e:
            logger.warning(f"Classification failed for {msg.id} ({msg.subject[:50]}): {e}")
            category = Category.UNCATEGORIZED

        msg.category = category
        return category

    def _write(self, op: str, fn: Callable[[T], None], arg: T) -> None:
        try:
            fn(arg)
        except IndexWriteError:
            raise
        except Exception as e:
            raise IndexWriteError(f"{op} failed: {e}") from e

    def _notify_safely(self, msg: EmailMessage) -> None:
        try:
            self.notifier.notify(msg)
        except Exception as e:
            logger.error(f"Notification failed for {msg.id} ({msg.subject[:50]}): {e}")

    def _dispatch(self, msg: EmailMessage) -> bool:
        if msg.category not in NOTIFY_CATEGORIES:
            return False
        if self._closed:
            logger.warning(f"Pipeline closed, dropping notification for {msg.id}")
            return False

        try:
            # Notifiers get their own copy; the caller keeps ownership of msg
            future = self._executor.submit(self._notify_safely, msg.model_copy(deep=True))
        except RuntimeError as e:
            logger.error(f"Could not schedule notification for {msg.id}: {e}")
            return False

        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return True

    def _forget(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def process_batch(self, messages: list[EmailMessage]) -> list[EmailMessage]:
        """Backfill path: classify all, one bulk upsert, then notify."""
        if not messages:
            return []

        logger.info(f"Processing {len(messages)} emails...")
        for msg in messages:
            self.classify(msg)

        self._write("Bulk upsert", self.index.upsert_many, messages)
        logger.info(f"Indexed {len(messages)} emails")

        notified = sum(1 for msg in messages if self._dispatch(msg))
        if notified:
            logger.info(f"Sending {notified} notification(s)...")

        return messages

    def process_one(self, msg: EmailMessage) -> EmailMessage:
        """Live path: classify, upsert, notify without waiting."""
        logger.info(f"Processing new email: {msg.subject[:80]} ({msg.account})")
        category = self.classify(msg)
        self._write("Upsert", self.index.upsert_one, msg)
        if self._dispatch(msg):
            logger.info(f"Notification scheduled for {msg.id} ({category.value})")
        return msg

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for scheduled notifications. Returns False on timeout."""
        with self._pending_lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait_futures(pending, timeout=timeout)
        return not not_done

    def close(self, wait: bool = True) -> None:
        """Stop accepting notifications; in-flight ones are allowed to finish."""
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=wait)
