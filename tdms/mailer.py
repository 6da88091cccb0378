"""
Outgoing email over SMTP.
"""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from tdms import config

logger = logging.getLogger(__name__)


class MailError(Exception):
    """Raised when a message could not be handed to the SMTP server."""


def is_configured() -> bool:
    return bool(config.SMTP_HOST and config.MAIL_FROM)


def send_email_notification(to: str, subject: str, html: str) -> None:
    """
    Send one HTML message. Raises MailError on any transport failure so callers
    decide whether a failure is fatal.
    """
    if not is_configured():
        raise MailError("SMTP is not configured")
    if not to:
        raise MailError("Missing recipient")

    msg = MIMEMultipart('alternative')
    msg['From'] = config.MAIL_FROM
    msg['To'] = to
    msg['Subject'] = subject
    msg.attach(MIMEText(html, 'html'))

    try:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=30) as server:
            server.starttls()
            if config.SMTP_USER and config.SMTP_PASSWORD:
                server.login(config.SMTP_USER, config.SMTP_PASSWORD)
            server.sendmail(config.MAIL_FROM, [to], msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        raise MailError(f"Failed to send email to {to}: {e}") from e

    logger.info(f"Email sent to {to}: {subject}")
