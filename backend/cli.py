#!/usr/bin/env python3
"""
CLI for the Ward Analytics Dashboard

Builds the same snapshots the API serves, straight from the upstreams
(no cache), for cron jobs and debugging.

Commands:
    overview     - Collection counts, monthly users, ward analytics
    interests    - Interested-ward counts and top wards
    users        - Registration and login metrics
    collections  - List Appwrite collections with full document counts

Usage:
    python cli.py overview
    python cli.py interests --top 5
    python cli.py users --json
"""

import asyncio
import json
import sys

import click


def get_service():
    from services.dashboard_service import get_dashboard_service
    return get_dashboard_service()


def build_snapshot(view: str):
    """Fresh snapshot, exit 1 on upstream failure."""
    from services.upstream import UpstreamError

    try:
        return get_service().get_snapshot(view, refresh=True)
    except UpstreamError as e:
        click.secho(f"Error: {e}", fg="red")
        if e.endpoint:
            click.echo(f"Endpoint: {e.endpoint}")
        sys.exit(1)


def echo_json(snapshot) -> None:
    click.echo(json.dumps(snapshot.to_json_dict(), indent=2, default=str))


def echo_warnings(warnings) -> None:
    if not warnings:
        return
    click.echo()
    click.secho(f"WARNINGS ({len(warnings)}):", fg="yellow", bold=True)
    for warning in warnings:
        click.echo(f"  - {warning}")


def echo_histogram(histogram) -> None:
    peak = max((bucket.count for bucket in histogram.buckets), default=0)
    for bucket in histogram.buckets:
        bar = "#" * (int(bucket.count / peak * 40) if peak else 0)
        click.echo(f"  {bucket.key:>7}  {bucket.count:>6}  {bar}")
    if histogram.undated_count:
        click.echo(f"  (no date: {histogram.undated_count})")


@click.group()
@click.version_option(version="1.0.0", prog_name="ward-dashboard")
@click.option("--log-level", default="WARNING", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
def cli(log_level):
    """Ward Analytics Dashboard CLI - build dashboard snapshots from the upstreams."""
    from app import configure_logging
    configure_logging(log_level)


@cli.command("overview")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def overview(output_json):
    """Collection counts, monthly users and per-ward analytics."""
    snapshot = build_snapshot('overview')
    if output_json:
        echo_json(snapshot)
        return

    stats = snapshot.stats
    click.echo("=" * 60)
    click.secho("OVERVIEW", fg="cyan", bold=True)
    click.echo("=" * 60)
    click.echo(f"  Users:         {stats.total_users}")
    click.echo(f"  Blood donors:  {stats.total_blood_donors}")
    click.echo(f"  Volunteers:    {stats.total_volunteers}")
    click.echo(f"  Donations:     {stats.total_donations}")
    click.echo(f"  Issue reports: {stats.total_issue_reports}")
    click.echo()

    click.secho("COLLECTIONS:", fg="cyan", bold=True)
    for collection in snapshot.collections:
        suffix = click.style(" [failed]", fg="red") if collection.error else ""
        click.echo(f"  {collection.name:<30} {collection.document_count:>7}{suffix}")
    click.echo()

    click.secho("USERS BY MONTH (all years):", fg="cyan", bold=True)
    echo_histogram(snapshot.monthly_users)
    click.echo()

    click.secho(f"WARDS ({len(snapshot.wards)}):", fg="cyan", bold=True)
    for ward in snapshot.wards:
        click.echo(
            f"  {ward.ward_name or ward.id:<30} {ward.councillor_name:<25} "
            f"users={ward.analytics.users}"
        )
    echo_warnings(snapshot.warnings)


@cli.command("interests")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("--top", type=int, default=None, help="Only show the first N ranked wards")
def interests(output_json, top):
    """Interested-ward counts by ward and district."""
    snapshot = build_snapshot('interests')
    if output_json:
        echo_json(snapshot)
        return

    by_ward = snapshot.by_ward
    click.echo("=" * 60)
    click.secho("INTERESTED WARDS", fg="cyan", bold=True)
    click.echo("=" * 60)
    click.echo(f"  Sign-ups:       {by_ward.total_count}")
    if snapshot.declared_total is not None and snapshot.declared_total != by_ward.total_count:
        click.secho(f"  Declared total: {snapshot.declared_total}", fg="yellow")
    click.echo(f"  Wards:          {by_ward.group_count}")
    click.echo(f"  Districts:      {snapshot.by_district.group_count}")
    click.echo()

    click.secho("TOP WARDS:", fg="cyan", bold=True)
    ranked = by_ward.ranked_top if top is None else by_ward.ranked_top[:top]
    for position, entry in enumerate(ranked, start=1):
        extra = entry.model_extra or {}
        click.echo(f"  {position:>2}. {extra.get('wardName', entry.key):<40} {entry.count:>6}")
    click.echo()

    click.secho("BY DISTRICT:", fg="cyan", bold=True)
    for entry in snapshot.by_district.ranked_top:
        click.echo(f"  {entry.key:<30} {entry.count:>6}")
    echo_warnings(snapshot.warnings)


@cli.command("users")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def users(output_json):
    """Registration and login metrics."""
    snapshot = build_snapshot('users')
    if output_json:
        echo_json(snapshot)
        return

    m = snapshot.metrics
    click.echo("=" * 60)
    click.secho("USERS", fg="cyan", bold=True)
    click.echo("=" * 60)
    click.echo(f"  Total:            {m.total_users}")
    click.echo(f"  Joined today:      {m.current_day}")
    click.echo(f"  Joined this week:  {m.current_week} (last week {m.last_week})")
    click.echo(f"  Joined this month: {m.current_month} (last month {m.last_month})")
    click.echo(f"  Active (30 days):  {m.active_users} / inactive {m.inactive_users}")
    click.echo(f"  Never logged in:   {m.never_logged_in}")
    click.echo(f"  Login rate:        {m.login_rate}%")
    click.echo(f"  Avg logins:        {m.average_login_frequency}")
    click.echo()

    click.secho("USERS BY MONTH:", fg="cyan", bold=True)
    echo_histogram(snapshot.monthly)
    echo_warnings(snapshot.warnings)


@cli.command("collections")
def collections():
    """List Appwrite collections with full document counts."""
    from services.appwrite_client import get_appwrite_client
    from services.upstream import UpstreamError

    client = get_appwrite_client()

    async def count_all():
        listed = await client.alist_collections()
        results = await asyncio.gather(
            *(client.fetch_all_documents(c['$id']) for c in listed),
            return_exceptions=True,
        )
        return listed, results

    try:
        listed, results = asyncio.run(count_all())
    except UpstreamError as e:
        click.secho(f"Error: {e}", fg="red")
        sys.exit(1)

    for collection, result in zip(listed, results):
        name = collection.get('name') or collection['$id']
        if isinstance(result, UpstreamError):
            click.echo(f"  {name:<30} " + click.style(f"failed: {result}", fg="red"))
        elif isinstance(result, BaseException):
            raise result
        else:
            click.echo(f"  {name:<30} {len(result.records):>7}  ({collection['$id']})")


if __name__ == "__main__":
    cli()
