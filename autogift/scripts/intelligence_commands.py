"""CLI commands for operating the intelligence engine.

Usage:
    flask scan-opportunities --user 1
    flask scan-opportunities --user 1 --window-days 30 --timing recipient_preference
    flask purge-intelligence-cache
    flask scan-telemetry
"""

from __future__ import annotations

import json
from dataclasses import asdict

import click
from flask.cli import with_appcontext

from autogift.core.intelligence.constants import TIMING_STRATEGIES
from autogift.core.intelligence.errors import ScanCancelled, ScanFailed
from autogift.core.intelligence.intelligence_cache import DatabaseIntelligenceCache
from autogift.extensions import intelligence


@click.command("scan-opportunities")
@click.option("--user", "-u", "user_id", type=int, required=True, help="Requester user ID")
@click.option("--window-days", type=click.IntRange(min=1), default=None, help="Look-ahead window in days")
@click.option("--timing", type=click.Choice(TIMING_STRATEGIES), default=None, help="Purchase timing strategy")
@with_appcontext
def scan_opportunities_command(user_id: int, window_days: int | None, timing: str | None):
    """Run an opportunity scan for one user and print one JSON line per opportunity."""
    engine = intelligence.engine
    try:
        opportunities = engine.scan(user_id, window_days=window_days, timing_strategy=timing)
    except (ScanFailed, ScanCancelled) as exc:
        click.echo(f"Scan failed: {exc}", err=True)
        raise click.Abort()

    for opportunity in opportunities:
        click.echo(opportunity.model_dump_json())
    click.echo(f"{len(opportunities)} opportunities for user {user_id}", err=True)


@click.command("purge-intelligence-cache")
@with_appcontext
def purge_intelligence_cache_command():
    """Delete expired rows from gift_intelligence_cache."""
    removed = DatabaseIntelligenceCache().purge_expired()
    click.echo(f"Purged {removed} expired cache rows")


@click.command("scan-telemetry")
@with_appcontext
def scan_telemetry_command():
    """Print the in-process scan telemetry snapshot."""
    snapshot = intelligence.engine.telemetry.snapshot()
    click.echo(json.dumps(asdict(snapshot), indent=2, default=str))


def register_commands(app):
    """Register CLI commands with the app."""
    app.cli.add_command(scan_opportunities_command)
    app.cli.add_command(purge_intelligence_cache_command)
    app.cli.add_command(scan_telemetry_command)
