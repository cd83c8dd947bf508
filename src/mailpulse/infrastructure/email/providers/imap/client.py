from __future__ import annotations

from datetime import date
from typing import Any, Callable, Optional, TypeVar

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError
from loguru import logger

from mailpulse.domain.entities.account import Account
from mailpulse.domain.errors import TransportError
from mailpulse.infrastructure.email.providers.imap.auth import ImapAuthenticator

PUSH_CAPABILITY = "IDLE"
BODY_FETCH = "BODY.PEEK[]"  # PEEK leaves \Seen alone; read state belongs to the mail system
BODY_KEY = b"BODY[]"

T = TypeVar("T")


class ImapMailboxTransport:
    """MailboxTransport over imapclient. One instance == one connection."""

    def __init__(self, authenticator: ImapAuthenticator) -> None:
        self.authenticator = authenticator
        self.account: Account = authenticator.account
        self._client: Optional[IMAPClient] = None
        self._idling = False

    def connect(self) -> None:
        if self._client is None:
            self._client = self.authenticator.login()

    def _require(self) -> IMAPClient:
        if self._client is None:
            raise TransportError(f"Not connected to {self.account.email}")
        return self._client

    def _call(self, op: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return fn(*args, **kwargs)
        except (IMAPClientError, OSError, EOFError) as e:
            raise TransportError(f"{op} failed for {self.account.email}: {e}") from e

    def select_folder(self, folder: str) -> int:
        client = self._require()
        info = self._call("SELECT", client.select_folder, folder, readonly=True)
        uidvalidity = info.get(b"UIDVALIDITY", 0)
        logger.debug(f"Selected {folder} for {self.account.email} (UIDVALIDITY {uidvalidity})")
        return int(uidvalidity or 0)

    def supports_push(self) -> bool:
        client = self._require()
        return bool(self._call("CAPABILITY", client.has_capability, PUSH_CAPABILITY))

    def search_since(self, since: date) -> list[int]:
        client = self._require()
        return sorted(self._call("SEARCH", client.search, ["SINCE", since]))

    def search_unseen(self) -> list[int]:
        client = self._require()
        return sorted(self._call("SEARCH", client.search, ["UNSEEN"]))

    def fetch(self, uids: list[int]) -> dict[int, bytes]:
        if not uids:
            return {}
        client = self._require()
        response = self._call("FETCH", client.fetch, uids, [BODY_FETCH])

        results: dict[int, bytes] = {}
        for uid, data in response.items():
            body = data.get(BODY_KEY)
            if body is None:
                logger.warning(f"FETCH returned no body for UID {uid} ({self.account.email})")
                continue
            results[int(uid)] = body
        return results

    def wait_for_push(self, timeout: float) -> bool:
        client = self._require()
        self._call("IDLE", client.idle)
        self._idling = True
        try:
            responses = self._call("IDLE", client.idle_check, timeout=timeout)
        finally:
            self._idling = False

        if self._client is None:
            # close() dropped the connection while we were waiting
            return False
        self._call("DONE", client.idle_done)

        new_mail = False
        for response in responses:
            if not isinstance(response, (tuple, list)) or len(response) < 2:
                continue
            kind = response[1] if isinstance(response[0], int) else response[0]
            if isinstance(kind, bytes):
                kind = kind.decode("ascii", errors="replace")
            kind = str(kind).upper()
            if kind == "BYE":
                raise TransportError(f"Server closed connection for {self.account.email}")
            if kind in ("EXISTS", "RECENT"):
                new_mail = True
        return new_mail

    def close(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            if self._idling:
                # Another thread is blocked in IDLE; drop the socket to wake it
                client.shutdown()
            else:
                client.logout()
        except Exception as e:
            logger.debug(f"Ignoring error while closing {self.account.email}: {e}")
            try:
                client.shutdown()
            except Exception:
                pass


def imap_transport_factory(
    connect_timeout: float = 60.0,
    auth_timeout: float = 10.0,
    read_timeout: float = 120.0,
) -> Callable[[Account], ImapMailboxTransport]:
    """Build a per-account transport factory for MailboxSession."""

    def factory(account: Account) -> ImapMailboxTransport:
        return ImapMailboxTransport(
            ImapAuthenticator(
                account,
                connect_timeout=connect_timeout,
                auth_timeout=auth_timeout,
                read_timeout=read_timeout,
            )
        )

    return factory
