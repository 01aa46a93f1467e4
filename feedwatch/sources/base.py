"""Shared base classes for feed listing sources."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class FeedSnapshot:
    id: int
    name: str
    listeners: int
    alert: Optional[str] = None


@dataclass
class SourceResult:
    provider: str
    feeds: List[FeedSnapshot] = field(default_factory=list)
    ok: bool = True
    error: Optional[str] = None
    latency_ms: Optional[int] = None


class SourceError(RuntimeError):
    pass


class BaseSource:
    provider: str = "base"

    def fetch(self, state_feeds_id: Optional[int] = None) -> SourceResult:
        raise NotImplementedError
