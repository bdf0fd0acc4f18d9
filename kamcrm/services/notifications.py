"""
Notifications: Slack webhook posts for enrichment batch events.

Notification failure never affects the run.
"""
import logging
import requests

from kamcrm.config import SLACK_WEBHOOK_URL

logger = logging.getLogger('services.notifications')


def _post(blocks):
    requests.post(SLACK_WEBHOOK_URL, json={"blocks": blocks}, timeout=10)


def notify_batch_complete(result):
    """Post a BatchResult summary to Slack."""
    if not SLACK_WEBHOOK_URL:
        return

    try:
        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": f"Enrichment completed: {result.job_name}"},
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Entities:* {result.total}"},
                    {"type": "mrkdwn", "text": f"*Enriched:* {result.processed}"},
                    {"type": "mrkdwn", "text": f"*Fresh (skipped):* {result.skipped}"},
                    {"type": "mrkdwn", "text": f"*Errors:* {result.errors}"},
                ],
            },
        ]
        if result.error_messages:
            blocks.append({
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": f"Last error: {result.error_messages[-1][:300]}"}],
            })
        _post(blocks)
        logger.info("Completion notification sent for %s", result.job_name)
    except Exception:
        logger.error("Failed to send notification for %s", result.job_name, exc_info=True)


def notify_batch_failed(job_name, error):
    """Post a setup/run failure alert to Slack."""
    if not SLACK_WEBHOOK_URL:
        return

    try:
        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": f"Enrichment FAILED: {job_name}"},
            },
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"*Error:* ```{str(error)[:500]}```"},
            },
        ]
        _post(blocks)
        logger.info("Failure notification sent for %s", job_name)
    except Exception:
        logger.error("Failed to send failure notification for %s", job_name, exc_info=True)
