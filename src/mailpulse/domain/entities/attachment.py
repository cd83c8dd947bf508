from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class AttachmentMeta:
    # Metadata only; payload bytes are never retained
    filename: str
    content_type: str
    size_bytes: int
