"""
Batch runner: enrich every lead or account, one at a time.

Per run:
  acquire the advisory flag → setup (client, entities, company, admin user)
  → for each entity: freshness gate → context → invoke (with backoff)
    → jitter + clamp → append analysis record → pause
  → mark the flag completed (or error if setup failed)

Per-entity failures are recorded as error rows and never stop the batch.
Runs are enqueued on RQ by launch_job() and executed by run_enrichment_job().
"""
import logging
import random
import time

from kamcrm.database import get_session
from kamcrm.errors import PersistenceError
from kamcrm.logging_config import log_context
from kamcrm.pipeline.base import BatchResult, get_adapter
from kamcrm.pipeline.enrichment import EnrichmentInvoker
from kamcrm.pipeline.entities import ADAPTERS
from kamcrm.pipeline.settings import EnrichmentSettings
from kamcrm.services.context import refresh_company_summary
from kamcrm.services.db import (
    latest_success_record, record_success, record_error,
    acquire_job, finish_job, get_job, get_company, resolve_user_context,
)
from kamcrm.services.freshness import check_freshness, hours_since, SKIP
from kamcrm.services.notifications import notify_batch_complete, notify_batch_failed
from kamcrm.services.retry import BackoffRetry

logger = logging.getLogger('pipeline.runner')

JITTER = 3


def clamp_score(score) -> float:
    return max(0.0, min(100.0, float(score)))


def apply_jitter(score, rng) -> float:
    """Shift score by a random integer in [-3, 3], then clamp to [0, 100]."""
    return clamp_score(float(score) + rng.randint(-JITTER, JITTER))


def company_context(session, company):
    """Prompt context for our own company, with the cached website summary."""
    if company is None:
        return None
    ctx = company.to_context()
    try:
        ctx['website_summary'] = refresh_company_summary(session, company)
    except Exception as e:
        logger.warning("Company summary refresh failed: %s", e)
        ctx['website_summary'] = company.website_summary or ''
    return ctx


class BatchRunner:
    """
    Runs one enrichment batch for a single entity kind.

    Collaborators are injected: the adapter (which entities), the invoker
    (which provider), a session factory and a random source for score jitter.
    """

    def __init__(self, adapter, invoker, settings, session_factory=None, rng=None, notify=True):
        self.adapter = adapter
        self.invoker = invoker
        self.settings = settings
        self.session_factory = session_factory or get_session
        self.rng = rng or random.Random()
        self.notify = notify
        self.retry = BackoffRetry(settings.max_retries, settings.base_delay_ms)

    def run(self) -> BatchResult:
        with log_context(job=self.adapter.job_name):
            return self._run()

    def _run(self) -> BatchResult:
        job_name = self.adapter.job_name
        session = self.session_factory()
        try:
            if not acquire_job(session, job_name):
                logger.info("Job %s already running, skipping this trigger", job_name)
                return BatchResult(job_name=job_name, status='skipped')

            try:
                self.invoker.ensure_ready()
                entities = self.adapter.fetch_entities(session)
                company = company_context(session, get_company(session))
                admin_user = resolve_user_context(session)
            except Exception as e:
                logger.error("Job %s setup failed: %s", job_name, e, exc_info=True)
                self._finish(session, job_name, 'error', error_message=str(e))
                if self.notify:
                    notify_batch_failed(job_name, e)
                raise

            result = BatchResult(job_name=job_name, status='completed', total=len(entities))
            logger.info("Job %s started: %d %s(s)", job_name, len(entities), self.adapter.entity_type.lower())

            try:
                for index, entity in enumerate(entities):
                    with log_context(entity=self.adapter.label(entity)):
                        called_provider = self._process(session, entity, company, admin_user, result)
                    is_last = index == len(entities) - 1
                    if called_provider and not is_last and self.settings.delay_between_entities_ms > 0:
                        time.sleep(self.settings.delay_between_entities_ms / 1000.0)
            except BaseException as e:
                logger.error("Job %s aborted: %s", job_name, e, exc_info=True)
                result.status = 'error'
                self._finish(session, job_name, 'error', result.processed, result.errors, str(e))
                if self.notify:
                    notify_batch_failed(job_name, e)
                raise

            self._finish(session, job_name, 'completed', result.processed, result.errors)
            logger.info(
                "Job %s completed: processed=%d skipped=%d errors=%d",
                job_name, result.processed, result.skipped, result.errors,
            )
            if self.notify:
                notify_batch_complete(result)
            return result
        finally:
            session.close()

    def _finish(self, session, job_name, status, processed=0, errors=0, error_message=None):
        try:
            finish_job(session, job_name, status, processed, errors, error_message)
        except PersistenceError:
            logger.error("Could not update job status for %s", job_name, exc_info=True)

    def _process(self, session, entity, company, admin_user, result) -> bool:
        """
        Enrich one entity. Returns True if the provider was called.
        """
        entity_type = self.adapter.entity_type
        label = self.adapter.label(entity)

        try:
            latest = latest_success_record(session, entity_type, entity.id)
        except PersistenceError as e:
            self._record_failure(session, entity, label, e, result)
            return False

        last_refreshed = latest.last_refreshed_at if latest else None
        if check_freshness(last_refreshed, self.settings.freshness_window_hours) == SKIP:
            logger.info("Skipping %s, enriched %.1fh ago", label, hours_since(last_refreshed))
            result.skipped += 1
            return False

        try:
            user = resolve_user_context(session, self.adapter.owner_id(entity), fallback=admin_user)
            try:
                extra = self.adapter.gather_context(session, entity)
            except Exception as e:
                logger.warning("Context gathering failed for %s: %s", label, e)
                extra = {}

            output = self.retry.call(
                self.invoker.invoke,
                entity_type, self.adapter.describe(entity), user, company, extra,
            )
            output['score'] = apply_jitter(output['score'], self.rng)
            record_success(session, entity_type, entity.id, output)
        except Exception as e:
            self._record_failure(session, entity, label, e, result)
            return True

        result.processed += 1
        logger.info("Enriched %s (score=%.0f)", label, output['score'])
        return True

    def _record_failure(self, session, entity, label, error, result):
        result.errors += 1
        result.error_messages.append(f"{label}: {error}")
        logger.error("Enrichment failed for %s: %s", label, error)
        try:
            record_error(session, self.adapter.entity_type, entity.id, str(error))
        except PersistenceError:
            logger.error("Could not write error record for %s", label, exc_info=True)


# ── On-demand (single entity) ────────────────────────────────────────────────

def enrich_single(session, adapter, invoker, settings, entity, force_refresh=False, rng=None):
    """
    Enrich one entity outside a batch. Returns (record, cached).

    A fresh success record is returned as-is unless force_refresh. Failures
    are recorded as an error row and re-raised for the caller to report.
    """
    latest = latest_success_record(session, adapter.entity_type, entity.id)
    if not force_refresh and latest is not None and \
            check_freshness(latest.last_refreshed_at, settings.freshness_window_hours) == SKIP:
        return latest, True

    user = resolve_user_context(session, adapter.owner_id(entity))
    company = company_context(session, get_company(session))
    retry = BackoffRetry(settings.max_retries, settings.base_delay_ms)
    try:
        output = retry.call(
            invoker.invoke,
            adapter.entity_type, adapter.describe(entity), user, company,
            adapter.gather_context(session, entity),
        )
        output['score'] = apply_jitter(output['score'], rng or random.Random())
    except Exception as e:
        try:
            record_error(session, adapter.entity_type, entity.id, str(e))
        except PersistenceError:
            logger.error("Could not write error record for %s", adapter.label(entity), exc_info=True)
        raise
    return record_success(session, adapter.entity_type, entity.id, output), False


# ── RQ entry points ───────────────────────────────────────────────────────────

_queue = None


def _get_queue():
    global _queue
    if _queue is None:
        from kamcrm.extensions import redis_client
        from rq import Queue
        _queue = Queue('enrichment', connection=redis_client)
    return _queue


def build_runner(kind, settings=None, session_factory=None, rng=None):
    """Wire a BatchRunner for 'lead' or 'account' with production collaborators."""
    from kamcrm.extensions import make_openrouter_client
    from kamcrm.services.circuit_breaker import get_breaker

    adapter = get_adapter(ADAPTERS, kind)
    settings = settings or EnrichmentSettings.load()
    invoker = EnrichmentInvoker(
        None, settings,
        breaker=get_breaker('openrouter'),
        client_factory=make_openrouter_client,
    )
    return BatchRunner(adapter, invoker, settings, session_factory=session_factory, rng=rng)


def run_enrichment_job(kind):
    """Worker entry point. Returns the BatchResult as a dict."""
    from kamcrm.logging_config import configure_logging
    configure_logging()
    return build_runner(kind).run().to_dict()


def launch_job(kind):
    """
    Enqueue a batch run for 'lead' or 'account'.

    Returns {'status': 'queued', 'job_id': ...} or {'status': 'skipped'} when
    the advisory flag says a run is already in progress.
    """
    adapter = get_adapter(ADAPTERS, kind)
    session = get_session()
    try:
        job = get_job(session, adapter.job_name)
        if job is not None and job.status == 'running':
            return {'status': 'skipped', 'job_name': adapter.job_name, 'reason': 'already running'}
    finally:
        session.close()

    timeout = 3600 * 6
    rq_job = _get_queue().enqueue(run_enrichment_job, kind, job_timeout=timeout)
    logger.info("Enqueued %s as RQ job %s", adapter.job_name, rq_job.id)
    return {'status': 'queued', 'job_name': adapter.job_name, 'job_id': rq_job.id}
