"""
Test mailbox session connection lifecycle, fetching and reconnects.
"""
import threading

import pytest
from conftest import FakeMailbox, make_rfc822, wait_until

from mailpulse.application.ingestion import BackoffPolicy, MailboxSession
from mailpulse.domain import AuthError, SessionStatus, TransportError


def _session(server, account, **kwargs) -> MailboxSession:
    kwargs.setdefault("poll_interval", 0.05)
    kwargs.setdefault("idle_timeout", 0.05)
    kwargs.setdefault("backoff", BackoffPolicy(base_delay=0.01, max_delay=0.05))
    return MailboxSession(account, transport_factory=server.transport_factory, **kwargs)


class TestConnect:
    """Test connect() and mode selection"""

    def test_push_mode_when_idle_supported(self, server, account):
        server.add(account.email, FakeMailbox(push=True))
        session = _session(server, account)

        session.connect()

        assert session.status == SessionStatus.CONNECTED_PUSH
        assert session.last_connected_at is not None

    def test_poll_mode_without_idle(self, server, account):
        """Test sessions fall back to polling when IDLE is missing"""
        server.add(account.email, FakeMailbox(push=False))
        session = _session(server, account)

        session.connect()

        assert session.status == SessionStatus.CONNECTED_POLL

    def test_auth_error_leaves_session_disconnected(self, server, account):
        """Test rejected credentials are surfaced and not retried"""
        mailbox = server.add(account.email)
        mailbox.auth_error = True
        session = _session(server, account)

        with pytest.raises(AuthError):
            session.connect()

        assert session.status == SessionStatus.DISCONNECTED
        assert "AUTHENTICATIONFAILED" in session.last_error

    def test_transport_error_moves_to_reconnecting(self, server, account):
        mailbox = server.add(account.email)
        mailbox.connect_failures = 1
        session = _session(server, account)

        with pytest.raises(TransportError):
            session.connect()

        assert session.status == SessionStatus.RECONNECTING
        assert server.transports[0].closed

    def test_connect_after_stop_fails(self, server, account):
        server.add(account.email)
        session = _session(server, account)
        session.stop()

        with pytest.raises(TransportError):
            session.connect()
        assert session.status == SessionStatus.STOPPED


class TestFetchSince:
    """Test historical fetch"""

    def test_returns_parseable_messages(self, server, account):
        """Test malformed messages are skipped and the rest returned"""
        server.add(account.email, FakeMailbox({
            1: make_rfc822(message_id="<1@x>"),
            2: b"",
            3: make_rfc822(message_id="<3@x>"),
        }))
        session = _session(server, account)
        session.connect()

        raws = session.fetch_since(30)

        assert [r.uid for r in raws] == [1, 3]
        assert all(r.account == account.email and r.folder == "INBOX" for r in raws)

    def test_empty_mailbox(self, server, account):
        server.add(account.email)
        session = _session(server, account)
        session.connect()

        assert session.fetch_since(30) == []

    def test_requires_connection(self, server, account):
        server.add(account.email)
        session = _session(server, account)

        with pytest.raises(TransportError):
            session.fetch_since(30)

    def test_does_not_mark_messages_seen(self, server, account):
        """Test fetching leaves the server-side unseen state alone"""
        mailbox = server.add(account.email, FakeMailbox({1: make_rfc822(), 2: make_rfc822(message_id="<2@x>")}))
        session = _session(server, account)
        session.connect()
        session.fetch_since(30)

        assert mailbox.unseen == {1, 2}


class TestWatch:
    """Test the live watch loop"""

    def test_backfilled_messages_are_not_emitted_again(self, server, account):
        """Test the live stream starts after the backfill"""
        mailbox = server.add(account.email, FakeMailbox({1: make_rfc822(message_id="<1@x>")}))
        session = _session(server, account)
        session.connect()
        session.fetch_since(30)
        mailbox.deliver(2, make_rfc822(message_id="<2@x>"))

        stream = session.watch()
        try:
            assert next(stream).uid == 2
        finally:
            session.stop()
            stream.close()

    def test_new_mail_wakes_push_wait(self, server, account):
        mailbox = server.add(account.email, FakeMailbox(push=True))
        session = _session(server, account, idle_timeout=5.0)
        received = []

        def run():
            for raw in session.watch():
                received.append(raw.uid)

        thread = threading.Thread(target=run, daemon=True)
        thread.start()
        assert wait_until(lambda: session.status == SessionStatus.CONNECTED_PUSH)

        mailbox.deliver(5, make_rfc822(message_id="<5@x>"))
        assert wait_until(lambda: received == [5])

        session.stop()
        thread.join(2)
        assert not thread.is_alive()

    def test_poll_mode_picks_up_new_mail(self, server, account):
        mailbox = server.add(account.email, FakeMailbox(push=False))
        session = _session(server, account, poll_interval=0.02)
        session.connect()
        stream = session.watch()
        mailbox.messages[9] = make_rfc822(message_id="<9@x>")
        mailbox.unseen.add(9)

        try:
            assert next(stream).uid == 9
        finally:
            session.stop()
            stream.close()

    def test_reconnects_with_backoff(self, server, account):
        """Test transient connect failures are retried until they succeed"""
        mailbox = server.add(account.email, FakeMailbox({1: make_rfc822()}))
        mailbox.connect_failures = 2
        session = _session(server, account)
        stream = session.watch()

        try:
            assert next(stream).uid == 1
            assert mailbox.connects == 3
            assert session.status == SessionStatus.CONNECTED_PUSH
            assert session.retry_delay == 0.0
        finally:
            session.stop()
            stream.close()

    def test_dropped_connection_reconnects(self, server, account):
        """Test a transport failure while idling leads to a fresh connection"""
        mailbox = server.add(account.email)
        mailbox.drop_next_wait = True
        session = _session(server, account)
        stream = session.watch()

        def deliver_after_reconnect():
            wait_until(lambda: mailbox.connects >= 2)
            mailbox.deliver(3, make_rfc822(message_id="<3@x>"))

        helper = threading.Thread(target=deliver_after_reconnect, daemon=True)
        helper.start()
        try:
            assert next(stream).uid == 3
            assert mailbox.connects >= 2
            assert server.transports[0].closed
        finally:
            session.stop()
            stream.close()

    def test_auth_error_on_reconnect_propagates(self, server, account):
        mailbox = server.add(account.email)
        mailbox.auth_error = True
        session = _session(server, account)

        with pytest.raises(AuthError):
            next(session.watch())

    def test_stop_ends_watch(self, server, account):
        """Test stop() cancels a long poll wait promptly"""
        server.add(account.email, FakeMailbox(push=False))
        session = _session(server, account, poll_interval=30)
        thread = threading.Thread(target=lambda: list(session.watch()), daemon=True)
        thread.start()
        assert wait_until(lambda: session.status == SessionStatus.CONNECTED_POLL)

        session.stop()
        thread.join(2)

        assert not thread.is_alive()
        assert session.status == SessionStatus.STOPPED

    def test_release_re_emits(self, server, account):
        """Test released UIDs come back on the next check"""
        server.add(account.email, FakeMailbox({4: make_rfc822(message_id="<4@x>")}))
        session = _session(server, account)
        stream = session.watch()

        try:
            assert next(stream).uid == 4
            session.release([4])
            assert next(stream).uid == 4
        finally:
            session.stop()
            stream.close()

    def test_uidvalidity_change_forgets_seen(self, server, account):
        mailbox = server.add(account.email, FakeMailbox({1: make_rfc822()}))
        session = _session(server, account)
        session.connect()
        session.fetch_since(30)

        mailbox.uidvalidity = 2
        session.connect()
        stream = session.watch()
        try:
            assert next(stream).uid == 1
        finally:
            session.stop()
            stream.close()


class TestSnapshot:
    def test_snapshot_reflects_state(self, server, account):
        server.add(account.email)
        session = _session(server, account)
        session.connect()

        snap = session.snapshot()

        assert snap.account == account.email
        assert snap.status == SessionStatus.CONNECTED_PUSH
        assert snap.last_error is None


class TestBackoffPolicy:
    """Test reconnect delays"""

    def test_exponential_growth(self):
        policy = BackoffPolicy()
        assert policy.delay_for(0) == 5
        assert policy.delay_for(1) == 10
        assert policy.delay_for(2) == 20

    def test_capped(self):
        policy = BackoffPolicy(base_delay=5, max_delay=300)
        assert policy.delay_for(10) == 300
        assert policy.delay_for(50) == 300

    def test_jitter_bounds(self):
        policy = BackoffPolicy(base_delay=10, max_delay=10, jitter=0.5)
        for attempt in range(20):
            assert 10 <= policy.delay_for(attempt) <= 15

    def test_huge_attempt_count_stays_capped(self):
        """Test days of failed reconnects never overflow the delay"""
        policy = BackoffPolicy(base_delay=5, max_delay=300)
        assert policy.delay_for(10_000) == 300
        assert BackoffPolicy(base_delay=5, max_delay=300, jitter=0.5).delay_for(10_000) <= 450


class TestLongOutage:
    def test_reconnects_after_many_failed_attempts(self, server, account):
        """Test a session that has failed for a very long time still reconnects"""
        mailbox = server.add(account.email, FakeMailbox({7: make_rfc822()}))
        mailbox.connect_failures = 1
        session = _session(server, account)
        session._attempt = 10_000
        stream = session.watch()

        try:
            assert next(stream).uid == 7
            assert session.status.is_connected
        finally:
            session.stop()
            stream.close()
