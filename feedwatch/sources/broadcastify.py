"""Broadcastify top-feed and state listing scraper."""

from __future__ import annotations

import logging
import os
import re
import time
from typing import Iterable, List, Optional

import requests
from bs4 import BeautifulSoup

from .base import BaseSource, FeedSnapshot, SourceError, SourceResult

LOGGER = logging.getLogger(__name__)

BASE_URL = "https://www.broadcastify.com"
TOP_URL = f"{BASE_URL}/listen/top"
STATE_URL = f"{BASE_URL}/listen/stid/{{state_id}}"
USER_AGENT = os.getenv("FEEDWATCH_USER_AGENT", "feedwatch/0.1 (+https://www.broadcastify.com/listen/top)")

FEED_LINK = 'a[href*="/listen/feed/"]'
LISTENER_CELL = "td.c.m"
ALERT_SELECTOR = 'div.messageBox, font[style*="bold"], font[class*="bold"]'
FEED_ID_RE = re.compile(r"/listen/feed/(\d+)")


def feed_url(feed_id: int) -> str:
    return f"{BASE_URL}/listen/feed/{feed_id}"


def _parse_row(row) -> Optional[FeedSnapshot]:
    link = row.select_one(FEED_LINK)
    cell = row.select_one(LISTENER_CELL)
    if link is None or cell is None:
        return None
    match = FEED_ID_RE.search(link.get("href", ""))
    if not match:
        raise ValueError(f"feed link without an id: {link.get('href')!r}")
    name = link.get_text(" ", strip=True)
    if not name:
        raise ValueError(f"feed {match.group(1)} has no name")
    alert_tag = row.select_one(ALERT_SELECTOR)
    alert = alert_tag.get_text(" ", strip=True) if alert_tag else None
    return FeedSnapshot(
        id=int(match.group(1)),
        name=name,
        listeners=int(cell.get_text(strip=True)),
        alert=alert or None,
    )


def parse_listing(html: str) -> List[FeedSnapshot]:
    """Extract every feed row from a listing page.

    Rows that fail to parse are dropped; a page with no feeds at all raises
    SourceError since it usually means the layout changed or we were blocked.
    """
    soup = BeautifulSoup(html, "lxml")
    feeds: List[FeedSnapshot] = []
    for row in soup.find_all("tr"):
        # Nested tables put the same feed in the outer row too
        if row.find("tr") is not None:
            continue
        try:
            feed = _parse_row(row)
        except ValueError as exc:
            LOGGER.debug("Dropping malformed feed row: %s", exc)
            continue
        if feed is not None:
            feeds.append(feed)
    if not feeds:
        raise SourceError("no feeds found")
    return feeds


def merge_feeds(primary: Iterable[FeedSnapshot], secondary: Iterable[FeedSnapshot]) -> List[FeedSnapshot]:
    merged: List[FeedSnapshot] = []
    seen = set()
    for feed in [*primary, *secondary]:
        if feed.id in seen:
            continue
        seen.add(feed.id)
        merged.append(feed)
    return merged


class BroadcastifyClient(BaseSource):
    provider = "broadcastify"

    def __init__(self, timeout: int = 20) -> None:
        self.timeout = timeout

    def fetch(self, state_feeds_id: Optional[int] = None) -> SourceResult:
        start = time.perf_counter()
        try:
            feeds = parse_listing(self._download(TOP_URL))
            if state_feeds_id is not None:
                try:
                    state_feeds = parse_listing(self._download(STATE_URL.format(state_id=state_feeds_id)))
                except SourceError as exc:
                    raise SourceError(f"state feeds {state_feeds_id}: {exc}") from exc
                feeds = merge_feeds(feeds, state_feeds)
        except (requests.RequestException, SourceError) as exc:
            latency_ms = int((time.perf_counter() - start) * 1000)
            return SourceResult(provider=self.provider, ok=False, error=str(exc), latency_ms=latency_ms)
        latency_ms = int((time.perf_counter() - start) * 1000)
        return SourceResult(provider=self.provider, feeds=feeds, latency_ms=latency_ms)

    def _download(self, url: str) -> str:
        resp = requests.get(url, headers={"User-Agent": USER_AGENT}, timeout=self.timeout)
        resp.raise_for_status()
        return resp.text
