"""
Test settings loading.
"""
import json

from mailpulse.infrastructure.settings import Settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("EMAIL_ACCOUNTS", raising=False)
        settings = Settings(_env_file=None)

        assert settings.sync_days == 30
        assert settings.poll_interval_seconds == 30
        assert settings.reconnect_base_delay == 5
        assert settings.index_backend == "milvus"
        assert settings.accounts() == []
        assert settings.milvus_uri == "http://localhost:19530"

    def test_accounts_from_env(self, monkeypatch):
        monkeypatch.setenv("EMAIL_ACCOUNTS", json.dumps([
            {"email": "one@example.com", "password": "pw1"},
            {"email": "two@example.com", "password": "pw2", "host": "mail.example.com", "folder": "Sales"},
        ]))
        settings = Settings(_env_file=None)

        accounts = settings.accounts()

        assert [a.email for a in accounts] == ["one@example.com", "two@example.com"]
        assert accounts[0].host == "imap.gmail.com"
        assert accounts[1].folder == "Sales"
        assert accounts[1].password == "pw2"

    def test_secrets_are_masked(self, monkeypatch):
        monkeypatch.setenv("EMAIL_ACCOUNTS", json.dumps([{"email": "one@example.com", "password": "hunter2"}]))
        monkeypatch.setenv("SLACK_WEBHOOK_URL", "https://hooks.slack.test/secret")
        settings = Settings(_env_file=None)

        assert "hunter2" not in repr(settings)
        assert "hooks.slack.test/secret" not in repr(settings)
        assert "hunter2" not in repr(settings.accounts()[0])
