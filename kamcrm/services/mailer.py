"""
Outreach email over SMTP, used to send AI-drafted email templates.

Connection settings come from SMTP_HOST / SMTP_PORT / SMTP_USER / SMTP_PASS;
the sender defaults to SMTP_USER unless SMTP_FROM is set.
"""
import logging
import smtplib
from email.message import EmailMessage

from kamcrm import config
from kamcrm.errors import ConfigurationError

logger = logging.getLogger('services.mailer')


class EmailDeliveryError(Exception):
    """The SMTP server refused the message or could not be reached."""


def split_template(template: str):
    """
    Split an AI email template into (subject, body).

    Templates start with a 'Subject: ...' line; without one the subject is ''.
    """
    text = (template or '').strip()
    first, _, rest = text.partition('\n')
    if first.lower().startswith('subject:'):
        return first[len('subject:'):].strip(), rest.strip()
    return '', text


def send_email(to: str, subject: str, body: str) -> None:
    """Send a plain-text email. ConfigurationError when SMTP is not set up."""
    if not (config.SMTP_HOST and config.SMTP_PORT and config.SMTP_USER and config.SMTP_PASS):
        raise ConfigurationError("SMTP configuration is missing in environment variables.")

    msg = EmailMessage()
    msg['From'] = config.SMTP_FROM or config.SMTP_USER
    msg['To'] = to
    msg['Subject'] = subject
    msg.set_content(body)

    try:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=30) as smtp:
            smtp.starttls()
            smtp.login(config.SMTP_USER, config.SMTP_PASS)
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Sending email to %s failed: %s", to, e)
        raise EmailDeliveryError(str(e)) from e

    logger.info("Sent email to %s: %s", to, subject)
