#!/usr/bin/env python
"""
Management Script

CLI commands for the database and for running syncs without the HTTP API.

Usage:
    # Flask-Migrate commands
    python manage.py db init
    python manage.py db migrate -m "Add new column"
    python manage.py db upgrade

    # Create tables directly (no migrations)
    python manage.py init-db

    # Run a sync inline and print the report
    python manage.py sync --language en --limit 50

    # Garbage collect nodes not kept alive by a run
    python manage.py collect-garbage --run-id 12

    # Fail runs that stopped sending heartbeats
    python manage.py cleanup-stale
"""
import json
import os
import subprocess
import sys

from flask.cli import with_appcontext
from sqlalchemy.exc import SQLAlchemyError
import click

from etsy_sync import create_app
from etsy_sync.exceptions import SyncAlreadyRunningError, SyncConfigurationError
from etsy_sync.extensions import db

# Create app instance
app = create_app()


@app.cli.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo(click.style('✓ Tables created', fg='green'))


@app.cli.command('db-status')
@with_appcontext
def db_status():
    """Show database connection status and table info."""
    try:
        db.session.execute(db.text('SELECT 1')).fetchone()
        click.echo(click.style('✓ Database connection OK', fg='green'))

        tables = db.inspect(db.engine).get_table_names()
        click.echo('\nTables in database:')
        for table in tables:
            click.echo(f'  - {table}')

    except SQLAlchemyError as e:
        click.echo(click.style(f'✗ Database error: {e}', fg='red'))


@app.cli.command('sync')
@click.option('--language', default=None, help='Listing language code')
@click.option('--limit', type=click.IntRange(1, 100), default=None, help='Listings page size')
@with_appcontext
def sync(language, limit):
    """Run a sync inline and print the report."""
    from etsy_sync.services.sync_service import SyncService

    try:
        run, report = SyncService.run_sync(language=language, limit=limit)
    except (SyncConfigurationError, SyncAlreadyRunningError) as e:
        raise click.ClickException(str(e))

    if report is None:
        click.echo(click.style(f'✗ Run {run.id} failed: {run.error_message}', fg='red'))
        sys.exit(1)

    click.echo(json.dumps(report.to_dict(), indent=2, default=str))
    color = 'green' if report.success else 'yellow'
    click.echo(click.style(
        f'Run {run.id} {run.status}: {len(report.reused)} reused, '
        f'{len(report.rebuilt)} rebuilt, {len(report.failed)} failed, '
        f'{run.collected_nodes} nodes collected',
        fg=color
    ))
    if not report.success:
        sys.exit(1)


@app.cli.command('collect-garbage')
@click.option('--run-id', type=int, default=None, help='Run whose keep-alive marks are used (default: latest completed)')
@with_appcontext
def collect_garbage(run_id):
    """Delete nodes not kept alive by a completed run."""
    from etsy_sync.models import SyncRun
    from etsy_sync.services.sync.node_store import NodeStore

    if run_id is None:
        run = SyncRun.query.filter_by(status='completed').order_by(SyncRun.id.desc()).first()
    else:
        run = db.session.get(SyncRun, run_id)

    if run is None:
        raise click.ClickException('No completed sync run found')
    if run.status != 'completed':
        raise click.ClickException(f'Run {run.id} is {run.status}, only completed runs can be used')

    deleted = NodeStore.collect_garbage(app, run.id)
    click.echo(click.style(f'✓ Deleted {deleted} nodes (run {run.id})', fg='green'))


@app.cli.command('cleanup-stale')
@with_appcontext
def cleanup_stale():
    """Clean up stale sync runs."""
    from etsy_sync.services.sync_service import SyncService
    cleaned = SyncService.cleanup_stale_runs()
    if cleaned > 0:
        click.echo(click.style(f'✓ Cleaned {cleaned} stale runs', fg='green'))
    else:
        click.echo('No stale runs found')


if __name__ == '__main__':
    if len(sys.argv) > 1 and sys.argv[1] == 'db':
        # Use flask db commands
        os.environ['FLASK_APP'] = 'manage.py'
        subprocess.run(['flask'] + sys.argv[1:])
    else:
        with app.app_context():
            app.cli()
