from __future__ import annotations
from email import policy
from email.message import EmailMessage as MimeMessage, Message
from email.parser import BytesParser

from mailpulse.domain.entities.attachment import AttachmentMeta
from mailpulse.domain.errors import ParseError


def parse_rfc822(rfc822_bytes: bytes) -> MimeMessage:
    # The default policy parser is lenient: it records defects instead of raising
    return BytesParser(policy=policy.default).parsebytes(rfc822_bytes)


def ensure_rfc822(rfc822_bytes: bytes | None) -> MimeMessage:
    """Parse raw bytes, raising ParseError when they are not a mail message at all."""
    if not rfc822_bytes or not isinstance(rfc822_bytes, (bytes, bytearray)):
        raise ParseError("empty or missing message body")
    try:
        em = parse_rfc822(bytes(rfc822_bytes))
    except Exception as e:
        raise ParseError(f"unparseable message: {e}") from e
    if not em.keys():
        raise ParseError("message has no header block")
    return em


def extract_attachment_metadata(em: Message) -> list[AttachmentMeta]:
    out: list[AttachmentMeta] = []
    for part in em.walk():
        if part.is_multipart():
            continue

        filename = part.get_filename()
        disp = (part.get("Content-Disposition") or "").lower()

        # capture explicit attachments + common inline-with-filename cases
        if not filename and "attachment" not in disp:
            continue

        try:
            payload = part.get_payload(decode=True) or b""
        except Exception:
            payload = b""

        out.append(
            AttachmentMeta(
                filename=filename or "unknown",
                content_type=part.get_content_type(),
                size_bytes=len(payload),
            )
        )
    return out
