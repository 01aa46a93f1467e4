"""Command line entrypoints for feedwatch."""

from __future__ import annotations

import logging
from pathlib import Path
import sys
from typing import Optional

import click

if __package__ in (None, ""):
    sys.path.append(str(Path(__file__).resolve().parents[1]))

try:
    from . import feed_alerts
    from .config_models import Config
    from .validate import DEFAULT_CONFIG_PATH, ConfigError, load_config
except ImportError:  # pragma: no cover
    from feedwatch import feed_alerts
    from feedwatch.config_models import Config
    from feedwatch.validate import DEFAULT_CONFIG_PATH, ConfigError, load_config

LOGGER = logging.getLogger(__name__)

config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"Config file (default: {DEFAULT_CONFIG_PATH}).",
)


def resolve_config(config_path: Optional[Path]) -> Config:
    if config_path is None and not DEFAULT_CONFIG_PATH.exists():
        LOGGER.info("No config at %s, using defaults", DEFAULT_CONFIG_PATH)
        return Config()
    try:
        return load_config(config_path or DEFAULT_CONFIG_PATH)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log per-feed decisions.")
def cli(verbose: bool) -> None:
    """Broadcastify listener spike alerts."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command("run")
@config_option
@click.option("--dry-run", is_flag=True, help="Log notifications instead of sending them.")
@click.option("--once", is_flag=True, help="Run a single cycle and exit.")
def run(config_path: Optional[Path], dry_run: bool, once: bool) -> None:
    """Poll the feed listings and notify on listener spikes."""
    config = resolve_config(config_path)
    feed_alerts.run(config, dry_run=dry_run, once=once)


@cli.command("validate")
@config_option
def validate(config_path: Optional[Path]) -> None:
    """Check a config file and print the effective settings."""
    try:
        config = load_config(config_path or DEFAULT_CONFIG_PATH)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(config.model_dump_json(indent=2))


@cli.command("show-feeds")
@config_option
@click.option("--limit", type=int, default=25, help="Max feeds to print")
def show_feeds(config_path: Optional[Path], limit: int) -> None:
    """Fetch the listings once and print the feeds that would be tracked."""
    from .sources.broadcastify import BroadcastifyClient

    config = resolve_config(config_path)
    result = BroadcastifyClient().fetch(config.misc.state_feeds_id)
    if not result.ok:
        raise click.ClickException(f"Fetch failed: {result.error}")
    feeds = feed_alerts.filter_feeds(result.feeds, config)
    click.echo(f"fetched={len(result.feeds)} tracked={len(feeds)} latency_ms={result.latency_ms}")
    for feed in feeds[:limit]:
        alert = f" | {feed.alert}" if feed.alert else ""
        click.echo(f"- {feed.id:>6} {feed.listeners:>6}  {feed.name}{alert}")


@cli.command("send-test")
@config_option
@click.option("--title", default="[TEST] Broadcastify Update", help="Alert title")
@click.option("--body", default="This is a manual test of the notification path.", help="Alert body")
def send_test(config_path: Optional[Path], title: str, body: str) -> None:
    """Send a one-off test notification via configured outputs."""
    from .alerting import AlertDispatcher, AlertPayload

    config = resolve_config(config_path)
    dispatcher = AlertDispatcher(config.outputs, dry_run=False)
    result = dispatcher.dispatch(AlertPayload(title=title, body=body))
    click.echo(f"Sent test alert: {result}")


if __name__ == "__main__":
    cli()
