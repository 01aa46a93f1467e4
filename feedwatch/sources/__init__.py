"""Sources package exports."""

from .base import BaseSource, FeedSnapshot, SourceError, SourceResult
from .broadcastify import BroadcastifyClient

__all__ = [
    "BaseSource",
    "BroadcastifyClient",
    "FeedSnapshot",
    "SourceError",
    "SourceResult",
]
