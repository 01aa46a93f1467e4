"""Polling loop that turns feed listings into spike notifications."""

from __future__ import annotations

import logging
import signal
import threading
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .alerting import AlertDispatcher
from .config_models import Config
from .signals import SignalsEngine, SpikeDecision, SpikeResult
from .sources.base import BaseSource, FeedSnapshot
from .sources.broadcastify import BroadcastifyClient

LOGGER = logging.getLogger(__name__)


@dataclass
class CycleSummary:
    cycle: int
    fetched: int = 0
    tracked: int = 0
    pending: int = 0
    confirmed: int = 0
    notified: int = 0
    ok: bool = True
    error: Optional[str] = None


def filter_feeds(feeds: Iterable[FeedSnapshot], config: Config) -> List[FeedSnapshot]:
    """Dedupe by id, then apply the deny list, allow list and listener floor."""
    kept: List[FeedSnapshot] = []
    seen = set()
    for feed in feeds:
        if feed.id in seen:
            continue
        seen.add(feed.id)
        if config.is_denied(feed) or not config.is_allowed(feed):
            continue
        if feed.listeners < config.misc.minimum_listeners:
            continue
        kept.append(feed)
    return kept


class FeedAlertsRunner:
    def __init__(
        self,
        config: Config,
        dry_run: bool = False,
        source: Optional[BaseSource] = None,
        dispatcher: Optional[AlertDispatcher] = None,
    ) -> None:
        self.config = config
        self.dry_run = dry_run
        self.source = source or BroadcastifyClient()
        self.dispatcher = dispatcher or AlertDispatcher(config.outputs, dry_run=dry_run)
        self.signals = SignalsEngine(config)

    def run_cycle(self) -> CycleSummary:
        summary = CycleSummary(cycle=self.signals.begin_cycle())
        try:
            result = self.source.fetch(self.config.misc.state_feeds_id)
        except Exception as err:
            LOGGER.exception("Feed fetch raised")
            summary.ok, summary.error = False, str(err) or type(err).__name__
        else:
            summary.fetched = len(result.feeds)
            if not result.ok:
                summary.ok, summary.error = False, result.error or "unknown error"
        if not summary.ok:
            LOGGER.warning("Skipping cycle %d, fetch failed: %s", summary.cycle, summary.error)
            if self.config.misc.notify_errors:
                self.dispatcher.create_error(f"Failed to fetch feeds: {summary.error}")
            return summary

        self.signals.begin_update()
        confirmed: List[SpikeResult] = []
        for feed in filter_feeds(result.feeds, self.config):
            spike = self.signals.evaluate(feed)
            summary.tracked += 1
            if spike.decision is SpikeDecision.PENDING:
                summary.pending += 1
            elif spike.decision is SpikeDecision.CONFIRMED:
                summary.confirmed += 1
                if spike.should_notify:
                    confirmed.append(spike)

        for index, spike in enumerate(confirmed, start=1):
            LOGGER.info(
                "Spike on %s (%d): %d listeners, baseline %.1f",
                spike.feed.name,
                spike.feed.id,
                spike.feed.listeners,
                spike.baseline,
            )
            channels = self.dispatcher.create_update(index, len(confirmed), spike.feed, spike.prior)
            if any(channels.values()):
                summary.notified += 1

        LOGGER.info(
            "Cycle %d: fetched=%d tracked=%d pending=%d confirmed=%d notified=%d",
            summary.cycle,
            summary.fetched,
            summary.tracked,
            summary.pending,
            summary.confirmed,
            summary.notified,
        )
        return summary

    def run_forever(self, stop: threading.Event) -> None:
        interval = self.config.misc.update_time
        LOGGER.info("Starting feed watch (interval=%ss, dry_run=%s)", interval, self.dry_run)
        while not stop.is_set():
            try:
                self.run_cycle()
            except Exception:
                LOGGER.exception("Cycle %d failed", self.signals.cycle)
            stop.wait(interval)
        LOGGER.info("Stopped after %d cycles", self.signals.cycle)


def install_signal_handlers(stop: threading.Event) -> None:
    def _handle(signum, frame) -> None:
        LOGGER.info("Received signal %s, stopping after this cycle", signum)
        stop.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def run(config: Config, dry_run: bool = False, once: bool = False) -> None:
    runner = FeedAlertsRunner(config, dry_run=dry_run)
    if once:
        runner.run_cycle()
        return
    stop = threading.Event()
    install_signal_handlers(stop)
    runner.run_forever(stop)
