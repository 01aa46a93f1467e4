import subprocess

import numpy as np
import requests

from feedwatch.alerting import AlertDispatcher, AlertPayload, DesktopNotifier, PushoverClient, update_payload
from feedwatch.config_models import OutputsConfig
from feedwatch.signals import FeedStats
from feedwatch.sources.base import FeedSnapshot


def _boom(*args, **kwargs):
    raise requests.RequestException("boom")


def test_update_payload_formats_jump_and_alert():
    feed = FeedSnapshot(id=1234, name="Chicago Police Zone 10", listeners=300, alert="Shots fired")
    stats = FeedStats(baseline=np.float32(200), last_listener_count=220)
    payload = update_payload(2, 3, feed, stats)
    assert payload.title == "Broadcastify Update (2 of 3)"
    assert "Listeners: 300 (^80)" in payload.body
    assert "Alert: Shots fired" in payload.body
    assert payload.body.endswith("https://www.broadcastify.com/listen/feed/1234")


def test_update_payload_omits_missing_alert():
    feed = FeedSnapshot(id=1, name="County Fire", listeners=50)
    payload = update_payload(1, 1, feed, FeedStats(baseline=np.float32(20), last_listener_count=20))
    assert "Alert:" not in payload.body


def test_pushover_failure_is_contained(monkeypatch):
    monkeypatch.setattr("feedwatch.alerting.requests.post", _boom)
    client = PushoverClient("user", "token")
    assert client.send(AlertPayload(title="t", body="b"), dry_run=False) is False


def test_pushover_skips_without_credentials():
    assert PushoverClient(None, None).send(AlertPayload(title="t", body="b"), dry_run=False) is False


def test_desktop_unsupported_platform():
    notifier = DesktopNotifier(platform="sunos5")
    assert notifier.send(AlertPayload(title="t", body="b"), dry_run=False) is False


def test_desktop_command_failure_is_contained(monkeypatch):
    def fail(cmd, **kwargs):
        raise subprocess.CalledProcessError(1, cmd)

    monkeypatch.setattr("feedwatch.alerting.shutil.which", lambda name: "/usr/bin/notify-send")
    monkeypatch.setattr("feedwatch.alerting.subprocess.run", fail)
    notifier = DesktopNotifier(platform="linux")
    assert notifier.send(AlertPayload(title="t", body="b"), dry_run=False) is False


def test_desktop_dry_run_does_not_spawn(monkeypatch):
    calls = []
    monkeypatch.setattr("feedwatch.alerting.shutil.which", lambda name: "/usr/bin/notify-send")
    monkeypatch.setattr("feedwatch.alerting.subprocess.run", lambda *a, **k: calls.append(a))
    assert DesktopNotifier(platform="linux").send(AlertPayload(title="t", body="b"), dry_run=True)
    assert calls == []


def test_macos_command_escapes_quotes():
    cmd = DesktopNotifier(platform="darwin").command(AlertPayload(title='Say "hi"', body="b"))
    assert cmd[0] == "osascript"
    assert 'with title "Say \\"hi\\""' in cmd[2]


def test_dispatcher_respects_outputs(monkeypatch):
    monkeypatch.setattr("feedwatch.alerting.requests.post", _boom)
    dispatcher = AlertDispatcher(OutputsConfig(use_desktop=False, use_pushover=False))
    assert dispatcher.create_error("fetch failed") == {"desktop": False, "pushover": False}


def test_windows_command_builds_toast():
    cmd = DesktopNotifier(platform="win32").command(AlertPayload(title="Feed's up", body="It's 300"))
    assert cmd[0] == "powershell"
    script = cmd[-1]
    assert "ToastText02" in script
    assert "CreateTextNode('Feed''s up')" in script
    assert "CreateTextNode('It''s 300')" in script
    assert "{1AC14E77-02E7-4E5D-B744-2EB1AE5198B7}" in script


def test_linux_without_notify_send_says_so(monkeypatch, caplog):
    monkeypatch.setattr("feedwatch.alerting.shutil.which", lambda name: None)
    with caplog.at_level("INFO", logger="feedwatch.alerting"):
        assert DesktopNotifier(platform="linux").send(AlertPayload(title="t", body="b"), dry_run=False) is False
    assert "notify-send not found" in caplog.text
    assert "unsupported" not in caplog.text


def test_desktop_invalid_argument_is_contained(monkeypatch):
    def reject(cmd, **kwargs):
        raise ValueError("embedded null byte")

    monkeypatch.setattr("feedwatch.alerting.shutil.which", lambda name: "/usr/bin/notify-send")
    monkeypatch.setattr("feedwatch.alerting.subprocess.run", reject)
    assert DesktopNotifier(platform="linux").send(AlertPayload(title="t", body="b\x00"), dry_run=False) is False
