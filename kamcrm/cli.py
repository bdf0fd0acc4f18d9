"""
`flask enrich`: run enrichment batches synchronously from the command line.

    flask --app wsgi enrich leads
    flask --app wsgi enrich accounts
    flask --app wsgi enrich reset lead_enrichment_cron
"""
import json

import click
from flask.cli import AppGroup

from kamcrm.database import get_session
from kamcrm.services.db import reset_job

enrich_cli = AppGroup('enrich', help='Run or manage enrichment batches.')


def _run(kind):
    from kamcrm.pipeline.runner import build_runner
    result = build_runner(kind).run()
    click.echo(json.dumps({
        'status': result.status,
        'processed': result.processed,
        'skipped': result.skipped,
        'errors': result.errors,
    }))
    if result.status == 'skipped':
        click.echo(f"{result.job_name} is already running", err=True)


@enrich_cli.command('leads')
def enrich_leads():
    """Enrich every non-archived lead."""
    _run('lead')


@enrich_cli.command('accounts')
def enrich_accounts():
    """Enrich every active, non-archived account."""
    _run('account')


@enrich_cli.command('reset')
@click.argument('job_name')
def reset(job_name):
    """Clear a stuck 'running' flag."""
    session = get_session()
    try:
        job = reset_job(session, job_name)
        status = job.status if job is not None else None
    finally:
        session.close()
    if status is None:
        raise click.ClickException(f"Unknown job: {job_name}")
    click.echo(f"{job_name}: {status}")
