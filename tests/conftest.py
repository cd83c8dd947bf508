"""
Shared fixtures: an in-memory IMAP server stand-in, recording notifier and
message builders.
"""
import threading
import time
from concurrent.futures import Executor, Future
from datetime import datetime, timezone
from email.message import EmailMessage as MimeMessage
from typing import Callable, Optional

import pytest

from mailpulse.application.ingestion import BackoffPolicy, MailboxSession
from mailpulse.application.ports import RawEmail
from mailpulse.domain import Account, AuthError, Category, EmailMessage, TransportError
from mailpulse.infrastructure.stores import InMemoryEmailStore

FAST_BACKOFF = BackoffPolicy(base_delay=0.01, max_delay=0.05)


def make_rfc822(
    subject: Optional[str] = "Hello",
    body: str = "Hi there",
    sender: Optional[str] = "Alice Example <alice@example.com>",
    to: Optional[str] = "me@example.com",
    cc: Optional[str] = None,
    message_id: Optional[str] = "<msg-1@example.com>",
    date: Optional[str] = "Mon, 06 Oct 2025 10:00:00 +0000",
    html: Optional[str] = None,
    attachments: tuple = (),
) -> bytes:
    """Build raw RFC822 bytes; pass None to leave a header out."""
    msg = MimeMessage()
    if sender is not None:
        msg["From"] = sender
    if to is not None:
        msg["To"] = to
    if cc is not None:
        msg["Cc"] = cc
    if subject is not None:
        msg["Subject"] = subject
    if message_id is not None:
        msg["Message-ID"] = message_id
    if date is not None:
        msg["Date"] = date

    if html is not None and not body:
        msg.set_content(html, subtype="html")
    else:
        msg.set_content(body)
        if html is not None:
            msg.add_alternative(html, subtype="html")

    for filename, data in attachments:
        msg.add_attachment(data, maintype="application", subtype="octet-stream", filename=filename)
    return msg.as_bytes()


def make_raw(account: str = "me@example.com", uid: int = 1, **kwargs) -> RawEmail:
    kwargs.setdefault("message_id", f"<msg-{uid}@example.com>")
    return RawEmail(
        provider="imap",
        account=account,
        folder="INBOX",
        uid=uid,
        rfc822_bytes=make_rfc822(**kwargs),
    )


def make_email(email_id: str = "e1", **overrides) -> EmailMessage:
    data = dict(
        id=email_id,
        message_id=f"<{email_id}@example.com>",
        account="me@example.com",
        folder="INBOX",
        sender="alice@example.com",
        sender_name="Alice",
        to=["me@example.com"],
        subject="Hello",
        text="Just checking in.",
        date=datetime(2025, 10, 6, 10, 0, tzinfo=timezone.utc),
    )
    data.update(overrides)
    return EmailMessage(**data)


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class FakeMailbox:
    """Server-side state of one mailbox, shared by every connection to it."""

    def __init__(self, messages: Optional[dict[int, bytes]] = None, push: bool = True, uidvalidity: int = 1):
        self.messages: dict[int, bytes] = dict(messages or {})
        self.unseen: set[int] = set(self.messages)
        self.push = push
        self.uidvalidity = uidvalidity
        self.auth_error = False
        self.connect_failures = 0
        self.drop_next_wait = False
        self.connects = 0
        self.new_mail = threading.Event()

    def deliver(self, uid: int, data: bytes) -> None:
        self.messages[uid] = data
        self.unseen.add(uid)
        self.new_mail.set()


class FakeTransport:
    """MailboxTransport over a FakeMailbox. Never touches the unseen set."""

    def __init__(self, account: Account, mailbox: FakeMailbox):
        self.account = account
        self.mailbox = mailbox
        self.connected = False
        self.closed = False
        self.fetched: list[list[int]] = []

    def _require(self) -> None:
        if not self.connected or self.closed:
            raise TransportError("not connected")

    def connect(self) -> None:
        self.mailbox.connects += 1
        if self.mailbox.auth_error:
            raise AuthError(self.account.email, "AUTHENTICATIONFAILED")
        if self.mailbox.connect_failures > 0:
            self.mailbox.connect_failures -= 1
            raise TransportError("connection refused")
        self.connected = True

    def select_folder(self, folder: str) -> int:
        self._require()
        return self.mailbox.uidvalidity

    def supports_push(self) -> bool:
        return self.mailbox.push

    def search_since(self, since) -> list[int]:
        self._require()
        return sorted(self.mailbox.messages)

    def search_unseen(self) -> list[int]:
        self._require()
        return sorted(self.mailbox.unseen)

    def fetch(self, uids: list[int]) -> dict[int, bytes]:
        self._require()
        self.fetched.append(list(uids))
        return {u: self.mailbox.messages[u] for u in uids if u in self.mailbox.messages}

    def wait_for_push(self, timeout: float) -> bool:
        self._require()
        if self.mailbox.drop_next_wait:
            self.mailbox.drop_next_wait = False
            raise TransportError("connection reset by peer")
        arrived = self.mailbox.new_mail.wait(timeout)
        self.mailbox.new_mail.clear()
        return arrived and not self.closed

    def close(self) -> None:
        self.closed = True
        self.connected = False
        self.mailbox.new_mail.set()


class FakeServer:
    """Routes accounts to mailboxes and records every transport it hands out."""

    def __init__(self):
        self.mailboxes: dict[str, FakeMailbox] = {}
        self.transports: list[FakeTransport] = []

    def add(self, email: str, mailbox: Optional[FakeMailbox] = None) -> FakeMailbox:
        self.mailboxes[email] = mailbox or FakeMailbox()
        return self.mailboxes[email]

    def transport_factory(self, account: Account) -> FakeTransport:
        transport = FakeTransport(account, self.mailboxes[account.email])
        self.transports.append(transport)
        return transport

    def session_factory(self, poll_interval: float = 0.05, idle_timeout: float = 0.05):
        def factory(account: Account) -> MailboxSession:
            return MailboxSession(
                account,
                transport_factory=self.transport_factory,
                poll_interval=poll_interval,
                idle_timeout=idle_timeout,
                backoff=FAST_BACKOFF,
            )

        return factory


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[EmailMessage] = []
        self._lock = threading.Lock()

    def notify(self, msg: EmailMessage) -> None:
        with self._lock:
            self.calls.append(msg)
        if self.fail:
            raise RuntimeError("webhook unreachable")


class FailingIndex(InMemoryEmailStore):
    """Rejects the first ``failures`` writes, then behaves normally."""

    def __init__(self, failures: int = 1_000_000):
        super().__init__()
        self.failures = failures
        self.attempts = 0

    def _maybe_fail(self) -> None:
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("index unavailable")

    def upsert_one(self, msg: EmailMessage) -> None:
        self._maybe_fail()
        super().upsert_one(msg)

    def upsert_many(self, msgs: list[EmailMessage]) -> None:
        self._maybe_fail()
        super().upsert_many(msgs)


class ImmediateExecutor(Executor):
    """Runs submitted work inline so notification effects are visible at once."""

    def submit(self, fn, /, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class StaticClassifier:
    def __init__(self, category: Category = Category.UNCATEGORIZED):
        self.category = category

    def classify(self, msg: EmailMessage) -> Category:
        return self.category


@pytest.fixture
def account() -> Account:
    return Account(email="me@example.com", password="secret", host="imap.example.com")


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def index() -> InMemoryEmailStore:
    return InMemoryEmailStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
