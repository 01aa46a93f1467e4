"""Per-feed baseline tracking and spike confirmation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional, Tuple

import numpy as np

from .config_models import Config, UnskewedAverageConfig
from .sources.base import FeedSnapshot
from .thresholds import adaptive_threshold

LOGGER = logging.getLogger(__name__)


@dataclass
class FeedStats:
    baseline: np.float32
    consecutive_over_threshold: int = 0
    last_listener_count: int = 0
    last_threshold: np.float32 = np.float32(0.0)
    notified: bool = False
    last_seen_cycle: int = 0

    def jump(self, listeners: int) -> int:
        return listeners - self.last_listener_count


class BaselineTracker:
    """Owns the unskewed average for every feed seen so far."""

    def __init__(self) -> None:
        self.stats: Dict[int, FeedStats] = {}

    def __len__(self) -> int:
        return len(self.stats)

    def get(self, feed_id: int) -> Optional[FeedStats]:
        return self.stats.get(feed_id)

    def update(self, feed_id: int, observed_count: int, config: Config, cycle: int = 0) -> Tuple[np.float32, bool]:
        stats = self.stats.get(feed_id)
        if stats is None:
            stats = FeedStats(baseline=np.float32(observed_count), last_listener_count=observed_count)
            self.stats[feed_id] = stats
        threshold = adaptive_threshold(stats.baseline, observed_count, config.spike_for(feed_id))
        is_over = bool(observed_count > threshold)
        stats.baseline = unskew(stats.baseline, observed_count, is_over, config.unskewed_average)
        stats.last_threshold = threshold
        stats.last_listener_count = observed_count
        stats.last_seen_cycle = cycle
        if is_over:
            stats.consecutive_over_threshold += 1
        else:
            stats.consecutive_over_threshold = 0
            stats.notified = False
        return stats.baseline, is_over

    def evict_idle(self, current_cycle: int, max_idle: int) -> int:
        stale = [feed_id for feed_id, stats in self.stats.items() if current_cycle - stats.last_seen_cycle > max_idle]
        for feed_id in stale:
            del self.stats[feed_id]
        return len(stale)


def unskew(baseline: np.float32, observed_count: int, is_over: bool, unskewed: UnskewedAverageConfig) -> np.float32:
    """Move the baseline toward `observed_count` unless the feed is spiking.

    A drop below `reset_pcnt` of the baseline snaps straight to the new count.
    """
    observed = np.float32(observed_count)
    if observed < baseline * (np.float32(1.0) - np.float32(unskewed.reset_pcnt)):
        return observed
    if is_over:
        return baseline
    adjusted = baseline + (observed - baseline) * np.float32(unskewed.adjust_pcnt)
    return max(adjusted, np.float32(0.0))


class SpikeDecision(Enum):
    NONE = "none"
    PENDING = "pending"
    CONFIRMED = "confirmed"


@dataclass
class SpikeResult:
    feed: FeedSnapshot
    decision: SpikeDecision
    should_notify: bool
    prior: FeedStats
    baseline: float
    threshold: float

    @property
    def jump(self) -> int:
        return self.prior.jump(self.feed.listeners)


class SignalsEngine:
    def __init__(self, config: Config) -> None:
        self.config = config
        self.tracker = BaselineTracker()
        self.cycle = 0
        # Cycles whose fetch succeeded; idleness is measured in these
        self.updates = 0

    def begin_cycle(self) -> int:
        self.cycle += 1
        return self.cycle

    def begin_update(self) -> int:
        """Start the per-feed update for a cycle that fetched successfully."""
        self.updates += 1
        max_idle = self.config.misc.evict_after_cycles
        if max_idle:
            evicted = self.tracker.evict_idle(self.updates, max_idle)
            if evicted:
                LOGGER.debug("Evicted %d idle feeds", evicted)
        return self.updates

    def evaluate(self, feed: FeedSnapshot) -> SpikeResult:
        existing = self.tracker.get(feed.id)
        prior = replace(existing) if existing else None
        baseline, is_over = self.tracker.update(feed.id, feed.listeners, self.config, cycle=self.updates)
        stats = self.tracker.stats[feed.id]
        if prior is None:
            prior = replace(stats)
        should_notify = False
        if not is_over:
            decision = SpikeDecision.NONE
        elif stats.consecutive_over_threshold < self.config.unskewed_average.spikes_required:
            decision = SpikeDecision.PENDING
        else:
            decision = SpikeDecision.CONFIRMED
            if not stats.notified:
                stats.notified = True
                should_notify = True
        LOGGER.debug(
            "Feed %s listeners=%d baseline=%.2f threshold=%.2f decision=%s",
            feed.id,
            feed.listeners,
            baseline,
            stats.last_threshold,
            decision.value,
        )
        return SpikeResult(
            feed=feed,
            decision=decision,
            should_notify=should_notify,
            prior=prior,
            baseline=float(baseline),
            threshold=float(stats.last_threshold),
        )
