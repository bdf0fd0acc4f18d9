"""
Logging setup for the web app and the RQ enrichment worker.

configure_logging() is called once from create_app() and from
run_enrichment_job(). LOG_LEVEL picks the level (default INFO), LOG_FORMAT
picks "text" or "json".

Batch runs tag their records with the job name and the entity being
enriched:

    with log_context(job='lead_enrichment_cron'):
        with log_context(entity='Acme Corp (lead-1)'):
            logger.info("Enriched")   # [...] INFO pipeline.runner [lead_enrichment_cron Acme Corp (lead-1)] - Enriched
"""
import json
import logging
import os
import sys
import threading
from contextlib import contextmanager
from datetime import datetime, timezone

_local = threading.local()

CONTEXT_FIELDS = ('job', 'entity')

# Chatty at INFO
_QUIET_LOGGERS = ('urllib3', 'openai', 'httpcore', 'httpx', 'rq.worker')


def current_context() -> dict:
    """Job / entity tags active on this thread (unset ones omitted)."""
    return {f: getattr(_local, f) for f in CONTEXT_FIELDS if getattr(_local, f, None)}


@contextmanager
def log_context(**fields):
    """Tag log records emitted inside the block with job and/or entity."""
    unknown = set(fields) - set(CONTEXT_FIELDS)
    if unknown:
        raise ValueError(f"Unknown log context fields: {sorted(unknown)}")
    previous = {f: getattr(_local, f, None) for f in fields}
    for name, value in fields.items():
        setattr(_local, name, value)
    try:
        yield
    finally:
        for name, value in previous.items():
            setattr(_local, name, value)


class EnrichmentContextFilter(logging.Filter):
    """Copy the thread's job / entity tags onto every record."""

    def filter(self, record):
        ctx = current_context()
        for name in CONTEXT_FIELDS:
            setattr(record, name, ctx.get(name))
        tags = ' '.join(ctx[f] for f in CONTEXT_FIELDS if f in ctx)
        record.context_tag = f' [{tags}]' if tags else ''
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line; job and entity included when set."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value:
                entry[name] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry)


TEXT_FORMAT = '[%(asctime)s] %(levelname)s %(name)s%(context_tag)s - %(message)s'


def configure_logging(app=None):
    """Replace the root handlers with one stderr handler, tagged and formatted per env."""
    level = getattr(logging, os.getenv('LOG_LEVEL', 'INFO').upper(), logging.INFO)
    json_output = os.getenv('LOG_FORMAT', 'text').lower() == 'json'

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(EnrichmentContextFilter())
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        app.logger.setLevel(level)
