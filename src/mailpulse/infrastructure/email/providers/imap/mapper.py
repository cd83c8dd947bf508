"""Normalize raw IMAP messages into EmailMessage records.

This is the one place transport quirks are absorbed: the mapper never raises,
every missing field falls back to a documented default.
"""

from __future__ import annotations

import hashlib
import html as html_lib
import re
from datetime import datetime, timezone
from email.message import Message
from email.utils import getaddresses
from typing import Optional

from loguru import logger

from mailpulse.application.ports.email_source import RawEmail
from mailpulse.domain.entities.email_message import EmailMessage
from mailpulse.infrastructure.email.rfc822 import extract_attachment_metadata, parse_rfc822

NO_SUBJECT = "(No Subject)"

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"[ \t]+")


def make_email_id(account: str, message_id: str, rfc822_bytes: bytes) -> str:
    """Content-derived id: stable across re-fetches of the same message."""
    h = hashlib.sha256(account.lower().encode())
    h.update(b"\x00")
    if message_id:
        h.update(message_id.encode("utf-8", errors="replace"))
    else:
        h.update(rfc822_bytes)
    return h.hexdigest()


def _header(em: Message, name: str) -> str:
    try:
        value = em.get(name)
    except Exception:
        # policy.default can choke on some malformed structured headers
        logger.debug(f"Unreadable {name} header, using default")
        return ""
    return str(value).strip() if value is not None else ""


def _addresses(em: Message, *names: str) -> list[tuple[str, str]]:
    values: list[str] = []
    for name in names:
        try:
            values.extend(str(v) for v in (em.get_all(name) or []))
        except Exception:
            logger.debug(f"Unreadable {name} header, ignoring")
    return [(n.strip(), a.strip()) for n, a in getaddresses(values) if a.strip()]


def _date(em: Message) -> datetime:
    # Date parsing can be messy; default to now if absent/unparseable
    try:
        dt = em.get("Date")
        parsed = dt.datetime if dt else None
    except Exception:
        parsed = None
    if parsed is None:
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _part_text(part: Optional[Message]) -> Optional[str]:
    if part is None:
        return None
    try:
        return part.get_content()
    except Exception:
        payload = part.get_payload(decode=True) or b""
        charset = part.get_content_charset() or "utf-8"
        try:
            return payload.decode(charset, errors="replace")
        except LookupError:
            return payload.decode("utf-8", errors="replace")


def _strip_html(markup: str) -> str:
    text = _TAG_RE.sub(" ", markup)
    text = html_lib.unescape(text)
    lines = [_WS_RE.sub(" ", line).strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


def _bodies(em: Message) -> tuple[str, Optional[str]]:
    # Prefer text/plain; fall back to stripped HTML
    try:
        plain = _part_text(em.get_body(preferencelist=("plain",)))
        rich = _part_text(em.get_body(preferencelist=("html",)))
    except Exception:
        logger.debug("Could not walk MIME structure, using raw payload")
        payload = em.get_payload(decode=True) if not em.is_multipart() else None
        plain = payload.decode("utf-8", errors="replace") if payload else None
        rich = None

    if plain is None and rich is not None:
        plain = _strip_html(rich)
    return (plain or "").strip(), rich


def _header_bag(em: Message) -> dict[str, str]:
    bag: dict[str, str] = {}
    for key in em.keys():
        try:
            value = str(em.get(key, ""))
        except Exception:
            continue
        k = key.lower()
        bag[k] = f"{bag[k]}, {value}" if k in bag else value
    return bag


def rfc822_to_email_message(raw: RawEmail, account: Optional[str] = None, folder: Optional[str] = None) -> EmailMessage:
    account = account or raw.account
    folder = folder or raw.folder
    em = parse_rfc822(raw.rfc822_bytes)

    message_id = _header(em, "Message-Id")
    email_id = make_email_id(account, message_id, raw.rfc822_bytes)

    senders = _addresses(em, "From")
    sender_name, sender = senders[0] if senders else ("", "")

    text, rich = _bodies(em)

    try:
        attachments = extract_attachment_metadata(em)
    except Exception as e:
        logger.warning(f"Attachment metadata unavailable for {email_id}: {e}")
        attachments = []

    return EmailMessage(
        id=email_id,
        message_id=message_id or email_id,
        account=account,
        folder=folder,
        sender=sender,
        sender_name=sender_name or None,
        to=[addr for _, addr in _addresses(em, "To")],
        cc=[addr for _, addr in _addresses(em, "Cc")],
        subject=_header(em, "Subject") or NO_SUBJECT,
        text=text,
        html=rich,
        date=_date(em),
        attachments=attachments,
        headers=_header_bag(em),
    )
