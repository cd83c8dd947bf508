from __future__ import annotations
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class ContextHit:
    text: str
    score: float


class ContextStore(Protocol):
    def nearest(self, text: str, k: int = 1) -> list[ContextHit]: ...
