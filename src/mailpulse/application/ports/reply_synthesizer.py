from __future__ import annotations
from typing import Protocol


class ReplySynthesizer(Protocol):
    def synthesize(self, body: str, context: str) -> str: ...
