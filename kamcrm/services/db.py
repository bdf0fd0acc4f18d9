"""
Persistence helpers for the enrichment pipeline: analysis records and job rows.

Callers pass the session in and own its lifecycle. Every SQLAlchemy failure
is rolled back and re-raised as PersistenceError so the batch runner can
record it against the entity and carry on.
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from kamcrm.errors import PersistenceError
from kamcrm.models.analysis import AnalysisRecord
from kamcrm.models.company import Company
from kamcrm.models.job_status import JobStatus
from kamcrm.models.user import User, DEFAULT_USER_CONTEXT

logger = logging.getLogger('services.db')

ANALYSIS_TYPE = 'enrichment'


def _now():
    return datetime.now(timezone.utc)


@contextmanager
def _wrap(session, action):
    try:
        yield
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(f"{action} failed: {e}") from e


# ── Analysis records ──────────────────────────────────────────────────────────

def latest_success_record(session, entity_type, entity_id, analysis_type=ANALYSIS_TYPE):
    """Most recent successful analysis for an entity, or None."""
    with _wrap(session, 'Reading latest analysis'):
        return session.execute(
            select(AnalysisRecord)
            .where(
                AnalysisRecord.entity_type == entity_type,
                AnalysisRecord.entity_id == entity_id,
                AnalysisRecord.analysis_type == analysis_type,
                AnalysisRecord.status == 'success',
            )
            .order_by(AnalysisRecord.last_refreshed_at.desc())
            .limit(1)
        ).scalar_one_or_none()


def record_success(session, entity_type, entity_id, result, now=None):
    """
    Append a success record for a validated enrichment result.

    result keys: recommendations, pitchNotes, useCase, emailTemplate, score
    (already jittered and clamped). The full dict is kept as raw_output.
    """
    with _wrap(session, 'Writing success record'):
        record = AnalysisRecord(
            entity_type=entity_type,
            entity_id=entity_id,
            analysis_type=ANALYSIS_TYPE,
            status='success',
            raw_output=result,
            score=result.get('score'),
            recommendations=result.get('recommendations'),
            pitch_notes=result.get('pitchNotes'),
            use_case=result.get('useCase'),
            email_template=result.get('emailTemplate'),
            last_refreshed_at=now or _now(),
        )
        session.add(record)
        session.commit()
    return record


def record_error(session, entity_type, entity_id, message, now=None):
    """Append an error record. Error rows never satisfy the freshness gate."""
    with _wrap(session, 'Writing error record'):
        record = AnalysisRecord(
            entity_type=entity_type,
            entity_id=entity_id,
            analysis_type=ANALYSIS_TYPE,
            status='error',
            error_message=str(message)[:2000],
            last_refreshed_at=now or _now(),
        )
        session.add(record)
        session.commit()
    return record


# ── Job status (advisory lock) ───────────────────────────────────────────────

def get_job(session, job_name):
    with _wrap(session, 'Reading job status'):
        return session.get(JobStatus, job_name)


def acquire_job(session, job_name, now=None):
    """
    Mark job_name as running unless it already is.

    Returns False if another run holds the flag. Not atomic: the read and the
    write are separate statements.
    """
    with _wrap(session, 'Acquiring job flag'):
        job = session.get(JobStatus, job_name)
        if job is not None and job.status == 'running':
            return False
        if job is None:
            job = JobStatus(job_name=job_name)
            session.add(job)
        job.status = 'running'
        job.started_at = now or _now()
        job.completed_at = None
        job.processed_count = 0
        job.error_count = 0
        job.error_message = None
        session.commit()
    return True


def finish_job(session, job_name, status, processed=0, errors=0, error_message=None, now=None):
    """Record the terminal state of a run: 'completed' or 'error'."""
    with _wrap(session, 'Finishing job'):
        job = session.get(JobStatus, job_name)
        if job is None:
            job = JobStatus(job_name=job_name)
            session.add(job)
        job.status = status
        job.completed_at = now or _now()
        job.processed_count = processed
        job.error_count = errors
        job.error_message = error_message
        session.commit()
    return job


def reset_job(session, job_name):
    """Clear a stuck 'running' flag left by a killed run. Returns the row or None."""
    with _wrap(session, 'Resetting job'):
        job = session.get(JobStatus, job_name)
        if job is None:
            return None
        if job.status == 'running':
            job.status = 'error'
            job.completed_at = _now()
            job.error_message = 'Manually reset'
            session.commit()
            logger.warning("Job %s manually reset from running", job_name)
    return job


def list_jobs(session):
    with _wrap(session, 'Listing jobs'):
        return session.execute(select(JobStatus).order_by(JobStatus.job_name)).scalars().all()


# ── Prompt context lookups ───────────────────────────────────────────────────

def get_company(session):
    """The seller's company profile (single row), or None."""
    with _wrap(session, 'Reading company'):
        return session.execute(select(Company).limit(1)).scalar_one_or_none()


def get_admin_user(session):
    with _wrap(session, 'Reading admin user'):
        return session.execute(
            select(User).where(User.role == 'admin').order_by(User.created_at).limit(1)
        ).scalar_one_or_none()


def resolve_user_context(session, owner_id=None, fallback=None):
    """
    Owner → admin → built-in default. Returns a {name, email, role} dict.

    fallback, if given, is used instead of a fresh admin lookup.
    """
    if owner_id:
        with _wrap(session, 'Reading owner'):
            owner = session.get(User, owner_id)
        if owner is not None:
            return owner.to_context()
    if fallback is not None:
        return dict(fallback)
    admin = get_admin_user(session)
    if admin is not None:
        return admin.to_context()
    return dict(DEFAULT_USER_CONTEXT)
