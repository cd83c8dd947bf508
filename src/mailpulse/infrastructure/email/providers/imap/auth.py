from __future__ import annotations

from imapclient import IMAPClient, SocketTimeout
from imapclient.exceptions import IMAPClientError, LoginError
from loguru import logger

from mailpulse.domain.entities.account import Account
from mailpulse.domain.errors import AuthError, TransportError


class ImapAuthenticator:
    """
    Responsible ONLY for establishing an authenticated IMAP connection.
    No folder logic, no fetching, no parsing.
    """

    def __init__(
        self,
        account: Account,
        connect_timeout: float = 60.0,
        auth_timeout: float = 10.0,
        read_timeout: float = 120.0,
    ) -> None:
        self.account = account
        self.connect_timeout = connect_timeout
        self.auth_timeout = auth_timeout
        self.read_timeout = read_timeout

    def login(self) -> IMAPClient:
        """
        Returns an authenticated IMAPClient.
        Raises AuthError on rejected credentials, TransportError otherwise.
        """
        acct = self.account
        try:
            client = IMAPClient(
                host=acct.host,
                port=acct.port,
                ssl=acct.tls,
                timeout=SocketTimeout(connect=self.connect_timeout, read=self.auth_timeout),
            )
        except (IMAPClientError, OSError) as e:
            raise TransportError(f"Could not reach {acct.host}:{acct.port} for {acct.email}: {e}") from e

        try:
            client.login(acct.email, acct.password)
        except LoginError as e:
            _shutdown_quietly(client)
            raise AuthError(acct.email, str(e)) from e
        except IMAPClientError as e:
            _shutdown_quietly(client)
            if "AUTHENTICATIONFAILED" in str(e).upper():
                raise AuthError(acct.email, str(e)) from e
            raise TransportError(f"Login failed for {acct.email}: {e}") from e
        except OSError as e:
            _shutdown_quietly(client)
            raise TransportError(f"Login failed for {acct.email}: {e}") from e

        # Authentication is short; mailbox traffic gets the longer read timeout
        try:
            client.socket().settimeout(self.read_timeout)
        except OSError as e:
            logger.debug(f"Could not widen socket timeout for {acct.email}: {e}")

        logger.info(f"Logged in to {acct.host} as {acct.email}")
        return client


def _shutdown_quietly(client: IMAPClient) -> None:
    try:
        client.shutdown()
    except Exception as e:
        logger.debug(f"Ignoring error while closing IMAP socket: {e}")
