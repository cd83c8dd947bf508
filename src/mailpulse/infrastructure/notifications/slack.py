"""Slack incoming-webhook notifier for interested emails."""

from __future__ import annotations

from mailpulse.domain.entities.email_message import EmailMessage
from mailpulse.infrastructure.notifications.base import HttpNotifier

PREVIEW_CHARS = 200


def build_slack_payload(msg: EmailMessage) -> dict:
    sender = f"{msg.sender_name} <{msg.sender}>" if msg.sender_name else msg.sender
    preview = msg.text[:PREVIEW_CHARS]
    if len(msg.text) > PREVIEW_CHARS:
        preview += "..."
    return {
        "text": "New Interested Email!",
        "blocks": [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": "New Interested Email"},
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*From:*\n{sender}"},
                    {"type": "mrkdwn", "text": f"*Subject:*\n{msg.subject}"},
                    {"type": "mrkdwn", "text": f"*Account:*\n{msg.account}"},
                    {"type": "mrkdwn", "text": f"*Date:*\n{msg.date:%Y-%m-%d %H:%M %Z}"},
                ],
            },
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"*Preview:*\n{preview}"},
            },
        ],
    }


class SlackNotifier(HttpNotifier):
    """Posts a summary block to a Slack incoming webhook."""

    channel = "slack"

    def build_payload(self, msg: EmailMessage) -> dict:
        return build_slack_payload(msg)
