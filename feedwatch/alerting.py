"""Desktop and Pushover delivery helpers."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from dataclasses import dataclass
from typing import Dict, Optional

import requests

from .config_models import OutputsConfig
from .signals import FeedStats
from .sources.base import FeedSnapshot
from .sources.broadcastify import feed_url

LOGGER = logging.getLogger(__name__)

UPDATE_ICON = "emblem-sound"
ERROR_ICON = "dialog-error"

# Toasts need a registered app id; PowerShell's own is always present
WINDOWS_APP_ID = r"{1AC14E77-02E7-4E5D-B744-2EB1AE5198B7}\WindowsPowerShell\v1.0\powershell.exe"
WINDOWS_TOAST = (
    "[Windows.UI.Notifications.ToastNotificationManager, Windows.UI.Notifications, ContentType = WindowsRuntime] | Out-Null; "
    "$xml = [Windows.UI.Notifications.ToastNotificationManager]::GetTemplateContent("
    "[Windows.UI.Notifications.ToastTemplateType]::ToastText02); "
    "$text = $xml.GetElementsByTagName('text'); "
    "$text.Item(0).AppendChild($xml.CreateTextNode('{title}')) | Out-Null; "
    "$text.Item(1).AppendChild($xml.CreateTextNode('{body}')) | Out-Null; "
    "$toast = [Windows.UI.Notifications.ToastNotification]::new($xml); "
    "[Windows.UI.Notifications.ToastNotificationManager]::CreateToastNotifier('{app_id}').Show($toast)"
)


@dataclass
class AlertPayload:
    title: str
    body: str
    icon: str = UPDATE_ICON
    url: Optional[str] = None


class DesktopNotifier:
    """Shows a native notification through the platform's command line tool."""

    def __init__(self, platform: Optional[str] = None) -> None:
        self.platform = platform or sys.platform

    def command(self, payload: AlertPayload) -> Optional[list[str]]:
        if self.platform.startswith("linux"):
            if not shutil.which("notify-send"):
                return None
            return ["notify-send", "--icon", payload.icon, payload.title, payload.body]
        if self.platform == "darwin":
            body = payload.body.replace("\\", "\\\\").replace('"', '\\"')
            title = payload.title.replace("\\", "\\\\").replace('"', '\\"')
            return ["osascript", "-e", f'display notification "{body}" with title "{title}"']
        if self.platform == "win32":
            script = WINDOWS_TOAST.format(
                title=payload.title.replace("'", "''"),
                body=payload.body.replace("'", "''"),
                app_id=WINDOWS_APP_ID,
            )
            return ["powershell", "-NoProfile", "-NonInteractive", "-Command", script]
        return None

    def send(self, payload: AlertPayload, dry_run: bool) -> bool:
        cmd = self.command(payload)
        if cmd is None:
            if self.platform.startswith("linux"):
                LOGGER.info("Skipping desktop notification, notify-send not found")
            else:
                LOGGER.info("Skipping desktop notification, unsupported on %s", self.platform)
            return False
        if dry_run:
            LOGGER.info("[DRY] Would notify desktop: %s", payload.title)
            return True
        try:
            subprocess.run(cmd, check=True, capture_output=True, timeout=10)
        except (OSError, ValueError, subprocess.CalledProcessError, subprocess.TimeoutExpired) as err:
            LOGGER.error("Desktop notification failed: %s", err)
            return False
        return True


class PushoverClient:
    API_URL = "https://api.pushover.net/1/messages.json"

    def __init__(self, user_key: Optional[str], app_token: Optional[str]) -> None:
        self.user_key = user_key
        self.app_token = app_token

    def send(self, payload: AlertPayload, dry_run: bool) -> bool:
        if not self.user_key or not self.app_token:
            LOGGER.info("Skipping Pushover send, missing credentials")
            return False
        if dry_run:
            LOGGER.info("[DRY] Would send Pushover: %s", payload.title)
            return True
        data: Dict[str, str | int] = {
            "token": self.app_token,
            "user": self.user_key,
            "title": payload.title,
            "message": payload.body,
        }
        if payload.url:
            data["url"] = payload.url
        try:
            resp = requests.post(self.API_URL, data=data, timeout=10)
            resp.raise_for_status()
        except requests.RequestException as err:
            LOGGER.error("Pushover send failed: %s", err)
            return False
        return True


class AlertDispatcher:
    def __init__(self, outputs: Optional[OutputsConfig] = None, dry_run: bool = False) -> None:
        outputs = outputs or OutputsConfig()
        self.use_desktop = outputs.use_desktop
        self.use_pushover = outputs.use_pushover
        self.dry_run = dry_run
        self.desktop = DesktopNotifier()
        self.pushover = PushoverClient(os.getenv("PUSHOVER_USER_KEY"), os.getenv("PUSHOVER_APP_TOKEN"))

    def dispatch(self, payload: AlertPayload) -> Dict[str, bool]:
        results = {"desktop": False, "pushover": False}
        if self.use_desktop:
            results["desktop"] = self.desktop.send(payload, self.dry_run)
        if self.use_pushover:
            results["pushover"] = self.pushover.send(payload, self.dry_run)
        if not any(results.values()):
            LOGGER.warning("Notification not delivered: %s", payload.title)
        return results

    def create_update(self, index: int, max_index: int, feed: FeedSnapshot, stats: FeedStats) -> Dict[str, bool]:
        """Announce a confirmed spike; `stats` are the feed's stats before this cycle."""
        return self.dispatch(update_payload(index, max_index, feed, stats))

    def create_error(self, body: str) -> Dict[str, bool]:
        return self.dispatch(AlertPayload(title="Broadcastify Update Error", body=body, icon=ERROR_ICON))


def update_payload(index: int, max_index: int, feed: FeedSnapshot, stats: FeedStats) -> AlertPayload:
    url = feed_url(feed.id)
    alert = f"\nAlert: {feed.alert}" if feed.alert else ""
    body = (
        f"Name: {feed.name}\n"
        f"Listeners: {feed.listeners} (^{stats.jump(feed.listeners)}){alert}\n"
        f"Link: {url}"
    )
    return AlertPayload(title=f"Broadcastify Update ({index} of {max_index})", body=body, url=url)
