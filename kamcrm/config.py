"""
Centralized configuration: env vars and CRM constants.
"""
import os


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Flask ────────────────────────────────────────────────────────────────────
SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-change-me')

# ── Redis (RQ queue + circuit breakers) ──────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── OpenRouter (OpenAI-compatible chat completions) ─────────────────────────
OPENROUTER_API_KEY = os.getenv('OPENROUTER_API_KEY')
OPENROUTER_BASE_URL = os.getenv('OPENROUTER_BASE_URL', 'https://openrouter.ai/api/v1')
VISION_MODEL = os.getenv('VISION_MODEL', 'google/gemini-flash-1.5')

# ── Search / context providers ───────────────────────────────────────────────
TAVILY_API_KEY = os.getenv('TAVILY_API_KEY')
TAVILY_API_URL = 'https://api.tavily.com'
SERPER_API_KEY = os.getenv('SERPER_API_KEY')
SERPER_API_URL = 'https://google.serper.dev'
EXA_API_KEY = os.getenv('EXA_API_KEY')
EXA_API_URL = 'https://api.exa.ai'

# ── Cron trigger auth ────────────────────────────────────────────────────────
CRON_SECRET = os.getenv('CRON_SECRET')

# ── Slack notifications ──────────────────────────────────────────────────────
SLACK_WEBHOOK_URL = os.getenv('SLACK_WEBHOOK_URL')

# ── SMTP (outreach email) ────────────────────────────────────────────────────
SMTP_HOST = os.getenv('SMTP_HOST')
SMTP_PORT = int(os.getenv('SMTP_PORT', '587'))
SMTP_USER = os.getenv('SMTP_USER')
SMTP_PASS = os.getenv('SMTP_PASS')
SMTP_FROM = os.getenv('SMTP_FROM')

# ── Company website summary cache ────────────────────────────────────────────
COMPANY_SUMMARY_REFRESH_HOURS = int(os.getenv('COMPANY_SUMMARY_REFRESH_HOURS', '168'))

# ── Entity types + job names ─────────────────────────────────────────────────
ENTITY_TYPES = ['Lead', 'Account']

JOB_NAMES = {
    'Lead': 'lead_enrichment_cron',
    'Account': 'account_enrichment_cron',
}

# ── Status values ─────────────────────────────────────────────────────────────
LEAD_STATUSES = [
    'New',
    'Contacted',
    'Qualified',
    'Proposal Sent',
    'Converted to Account',
    'Lost',
]

ACCOUNT_STATUSES = ['Active', 'Inactive']

OPPORTUNITY_STATUSES = [
    'Need Analysis',
    'Negotiation',
    'In Progress',
    'On Hold',
    'Completed',
    'Cancelled',
]

JOB_STATUSES = ['running', 'completed', 'error']
