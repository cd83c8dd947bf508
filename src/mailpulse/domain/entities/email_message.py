from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from mailpulse.domain.entities.attachment import AttachmentMeta
from mailpulse.domain.models import Category


class EmailMessage(BaseModel):
    """Canonical email record.

    ``id`` is fixed at normalization time. ``category`` is the only field the
    pipeline changes afterwards.
    """

    id: str
    message_id: str
    account: str
    folder: str
    sender: str
    sender_name: Optional[str] = None
    to: list[str] = Field(default_factory=list)
    cc: list[str] = Field(default_factory=list)
    subject: str
    text: str = ""
    html: Optional[str] = None
    date: datetime
    category: Category = Category.UNCATEGORIZED
    attachments: list[AttachmentMeta] = Field(default_factory=list)
    headers: dict[str, str] = Field(default_factory=dict)
