from pathlib import Path

from click.testing import CliRunner

from feedwatch.cli import cli
from feedwatch.sources.base import FeedSnapshot, SourceResult


def test_validate_prints_effective_config(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text("unskewed_average:\n  spikes_required: 0\n", encoding="utf-8")
    result = CliRunner().invoke(cli, ["validate", "--config", str(path)])
    assert result.exit_code == 0
    assert '"spikes_required": 1' in result.output


def test_validate_rejects_bad_config(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text("blacklist:\n  - {id: 1, name: both}\n", encoding="utf-8")
    result = CliRunner().invoke(cli, ["validate", "--config", str(path)])
    assert result.exit_code != 0
    assert "Validation failed" in result.output


class _FakeClient:
    calls = []

    def fetch(self, state_feeds_id=None):
        _FakeClient.calls.append(state_feeds_id)
        return SourceResult(
            provider="broadcastify",
            feeds=[
                FeedSnapshot(id=1234, name="Chicago Police Zone 10", listeners=250, alert="Shots fired"),
                FeedSnapshot(id=99, name="County Fire", listeners=8),
            ],
        )


class _FakeDispatcher:
    instances = []

    def __init__(self, outputs=None, dry_run=False):
        self.dry_run = dry_run
        self.errors = []
        _FakeDispatcher.instances.append(self)

    def create_update(self, index, max_index, feed, stats):
        return {"desktop": True}

    def create_error(self, body):
        self.errors.append(body)
        return {"desktop": True}


def test_run_once_polls_a_single_cycle(monkeypatch, tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text("misc:\n  state_feeds_id: 17\n", encoding="utf-8")
    _FakeClient.calls = []
    _FakeDispatcher.instances = []
    monkeypatch.setattr("feedwatch.feed_alerts.BroadcastifyClient", _FakeClient)
    monkeypatch.setattr("feedwatch.feed_alerts.AlertDispatcher", _FakeDispatcher)
    result = CliRunner().invoke(cli, ["run", "--once", "--dry-run", "--config", str(path)])
    assert result.exit_code == 0, result.output
    assert _FakeClient.calls == [17]
    assert len(_FakeDispatcher.instances) == 1
    assert _FakeDispatcher.instances[0].dry_run is True
    assert _FakeDispatcher.instances[0].errors == []


def test_show_feeds_prints_tracked_feeds(monkeypatch, tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text("misc:\n  minimum_listeners: 15\n", encoding="utf-8")
    monkeypatch.setattr("feedwatch.sources.broadcastify.BroadcastifyClient.fetch", _FakeClient.fetch)
    result = CliRunner().invoke(cli, ["show-feeds", "--config", str(path)])
    assert result.exit_code == 0, result.output
    assert "fetched=2 tracked=1" in result.output
    assert "Chicago Police Zone 10 | Shots fired" in result.output
    assert "County Fire" not in result.output


def test_show_feeds_reports_fetch_failure(monkeypatch, tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text("{}\n", encoding="utf-8")
    monkeypatch.setattr(
        "feedwatch.sources.broadcastify.BroadcastifyClient.fetch",
        lambda self, state_feeds_id=None: SourceResult(provider="broadcastify", ok=False, error="no feeds found"),
    )
    result = CliRunner().invoke(cli, ["show-feeds", "--config", str(path)])
    assert result.exit_code != 0
    assert "no feeds found" in result.output
