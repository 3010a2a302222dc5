# Overview: Flask CLI command groups for sync, cache inspection, and activity history.

# backend/stocksync/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to stocksync (PowerShell: $env:FLASK_APP="stocksync").
# - Use: python -m flask <group> <command> [options]
#
# Schema:
# - python -m flask db upgrade
#   Apply migrations to the local SQLite cache.
#
# Sync:
# - python -m flask sync run
#   Run one push/pull cycle now and print its result.
# - python -m flask sync status
#   Show reconciler state, queue depth and pull cursors.
# - python -m flask sync pending [--limit 20]
#   List unsynced outbox actions in delivery order.
# - python -m flask sync prune
#   Delete outbox actions already marked synced.
# - python -m flask sync watch
#   Run the background scheduler in the foreground until Ctrl+C.
#
# Local cache:
# - python -m flask cache stats
#   Row counts per cached table.
# - python -m flask cache reset --yes
#   Full local reset (logout): wipe cache, outbox, activity log and cursors.
#
# Activity:
# - python -m flask activity recent --limit 20
#   Print the most recent activity entries.

import time

import click
from flask.cli import with_appcontext

from .container import get_components
from .errors import Fatal


@click.group('sync')
def sync_group():
    """Reconciliation with the remote source of truth."""


@sync_group.command('run')
@with_appcontext
def sync_run():
    """Run one sync cycle (push pending actions, then pull snapshots)."""
    reconciler = get_components().reconciler
    click.echo("START Sync cycle...")
    try:
        result = reconciler.run_cycle(trigger="cli")
    except Fatal as e:
        raise click.ClickException(f"Local store failure: {e}")

    if result.coalesced:
        click.echo("SKIP Another cycle is already running")
        return

    click.echo(f"  Pushed:   {result.actions_synced}")
    click.echo(f"  Pulled:   {result.rows_pulled}")
    click.echo(f"  Pruned:   {result.pruned}")
    click.echo(f"  Attempts: {result.attempts}")
    for rejection in result.rejected:
        click.echo(
            f"  REJECTED action {rejection['action_id']} ({rejection['type']} {rejection['entity_id']}): "
            f"{rejection['reason']} [policy={rejection['policy']}]"
        )
    for error in result.errors:
        click.echo(f"  ERROR {error}")

    if result.success:
        click.echo("PASS Sync complete")
    elif result.cancelled:
        click.echo("WARN Sync cancelled")
    else:
        click.echo("WARN Sync incomplete; pending actions stay queued")


@sync_group.command('status')
@with_appcontext
def sync_status():
    """Show reconciler state, pending count and pull cursors."""
    components = get_components()
    reconciler = components.reconciler

    click.echo(f"State:         {reconciler.state.value}")
    click.echo(f"Pending:       {components.outbox.count_pending()}")
    click.echo(f"Reject policy: {reconciler.policy.reject_policy}")

    cursors = reconciler.cursors.all()
    if not cursors:
        click.echo("Cursors:       (none, next pull is a full snapshot)")
    for c in cursors:
        pulled = c.pulled_at.isoformat() + "Z" if c.pulled_at else "-"
        click.echo(f"  {c.entity_type:12} cursor={c.cursor or '-'} pulled_at={pulled}")


@sync_group.command('pending')
@click.option('--limit', default=20, show_default=True, type=int, help='Maximum actions to list')
@with_appcontext
def sync_pending(limit):
    """List unsynced outbox actions in delivery order."""
    outbox = get_components().outbox
    actions = outbox.list_pending(limit=limit)
    if not actions:
        click.echo("No pending actions")
        return

    click.echo(f"{'ID':>6}  {'TIMESTAMP':>14}  {'TYPE':16} ENTITY")
    for a in actions:
        click.echo(f"{a.id:>6}  {a.timestamp:>14}  {a.action_type.value:16} {a.entity_id}")
    total = outbox.count_pending()
    if total > len(actions):
        click.echo(f"... {total - len(actions)} more")


@sync_group.command('prune')
@with_appcontext
def sync_prune():
    """Delete outbox actions that were already delivered."""
    deleted = get_components().outbox.prune_synced()
    click.echo(f"PASS Pruned {deleted} synced actions")


@sync_group.command('watch')
@with_appcontext
def sync_watch():
    """Run the periodic/connectivity scheduler until interrupted."""
    scheduler = get_components().scheduler
    scheduler.start()
    scheduler.trigger("startup")
    click.echo("WATCH Sync scheduler running; press Ctrl+C to stop")
    try:
        while scheduler.running:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.stop()
    click.echo(f"STOP Scheduler stopped after {scheduler.cycles_run} cycles")


@click.group('cache')
def cache_group():
    """Local entity cache inspection and reset."""


@cache_group.command('stats')
@with_appcontext
def cache_stats():
    """Row counts per cached table plus item totals."""
    components = get_components()
    cache = components.cache

    click.echo(f"Items:        {cache.items.count()} ({len(cache.items.list_active())} active)")
    click.echo(f"Categories:   {cache.categories.count()}")
    click.echo(f"Profiles:     {cache.profiles.count()}")
    click.echo(f"Pending sync: {components.outbox.count_pending()}")

    summary = cache.items.summary()
    click.echo(f"Units:        {summary['total_units']}")
    click.echo(f"Stock value:  {summary['stock_value']:.2f}")
    click.echo(f"Low stock:    {summary['low_stock_count']}")


@cache_group.command('reset')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def cache_reset(yes):
    """
    DANGER: Full local reset, as on logout.

    Unsynced actions are discarded and cannot be recovered.
    """
    components = get_components()
    pending = components.outbox.count_pending()
    if not yes:
        prompt = "WARN This will DELETE the local cache and activity log."
        if pending:
            prompt += f" {pending} unsynced actions will be LOST."
        click.confirm(prompt + " Are you sure?", abort=True)

    counts = components.inventory.reset_local_state(reconciler=components.reconciler)
    for table, deleted in counts.items():
        click.echo(f"  {table}: {deleted} deleted")
    click.echo("PASS Local state reset")


@click.group('activity')
def activity_group():
    """Activity history."""


@activity_group.command('recent')
@click.option('--limit', default=20, show_default=True, type=int, help='Number of entries')
@with_appcontext
def activity_recent(limit):
    """Print the most recent activity entries, newest first."""
    entries = get_components().activity.recent(limit)
    if not entries:
        click.echo("No activity")
        return

    for e in entries:
        when = time.strftime("%Y-%m-%d %H:%M:%S", time.gmtime(e.timestamp / 1000))
        line = f"{when}Z  {e.username:16} {e.action:16} {e.entity_type}:{e.entity_name}"
        if e.details:
            line += f"  ({e.details})"
        click.echo(line)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(sync_group)
    app.cli.add_command(cache_group)
    app.cli.add_command(activity_group)
