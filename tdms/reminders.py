"""
Scheduled submission reminders and account notification emails.

Two cron jobs run inside the API process:
- 1st of each month, 08:00: the reporting period (previous month) is open
- 9th of each month, 08:00: the deadline is tomorrow
"""
import logging
from datetime import date
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from tdms import config
from tdms.database import get_db
from tdms.mailer import MailError, send_email_notification
from tdms.templates_config import month_name, render_template

logger = logging.getLogger(__name__)

MONTHLY_REMINDER_DAY = 1
DEADLINE_REMINDER_DAY = 9
REMINDER_HOUR = 8

_scheduler: Optional[BackgroundScheduler] = None


def reporting_period(today: date) -> tuple:
    """(month, year) being reported on: the month before today."""
    if today.month == 1:
        return 12, today.year - 1
    return today.month - 1, today.year


def deadline_label(today: date) -> str:
    """The submission deadline in the current month, e.g. 2024-03-10 11:59 PM."""
    deadline = today.replace(day=config.SUBMISSION_DEADLINE_DAY)
    return f"{deadline.isoformat()} {config.DEADLINE_TIME_LABEL}"


def get_reminder_recipients() -> list:
    """Emails of active, verified accounts."""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            "SELECT email FROM users WHERE is_active = TRUE AND email_verified = TRUE"
        )
        return [row['email'] for row in cursor.fetchall()]


def _send_to_all(subject: str, html: str) -> int:
    try:
        recipients = get_reminder_recipients()
    except Exception as e:
        logger.error(f"Failed to load reminder recipients: {e}")
        return 0

    sent = 0
    for email in recipients:
        try:
            send_email_notification(email, subject, html)
            sent += 1
        except MailError as e:
            logger.error(f"Reminder to {email} failed: {e}")

    logger.info(f"{subject}: sent {sent} of {len(recipients)}")
    return sent


def send_monthly_reminder(today: date = None) -> int:
    """Announce the reporting period. Returns the number of successful sends."""
    today = today or date.today()
    month, year = reporting_period(today)
    period = f"{month_name(month)} {year}"
    html = render_template(
        "emails/monthly_reminder.html",
        period_label=period,
        deadline_label=deadline_label(today),
    )
    return _send_to_all(f"Monthly Report Reminder: {period}", html)


def send_deadline_reminder(today: date = None) -> int:
    """Warn that the deadline is tomorrow. Returns the number of successful sends."""
    today = today or date.today()
    month, year = reporting_period(today)
    period = f"{month_name(month)} {year}"
    html = render_template(
        "emails/deadline_reminder.html",
        period_label=period,
        deadline_label=deadline_label(today),
    )
    return _send_to_all(f"Submission Deadline Tomorrow: {period}", html)


# ── Account notifications ────────────────────────────────────────────

def notify_account_approved(user: dict) -> bool:
    html = render_template(
        "emails/account_approved.html",
        name=user.get('registered_owner') or user.get('email'),
        company_name=user.get('company_name') or '',
        approved_on=date.today(),
    )
    try:
        send_email_notification(user['email'], "Your Account Has Been Approved", html)
        return True
    except MailError as e:
        logger.error(f"Approval notice to {user['email']} failed: {e}")
        return False


def notify_account_declined(user: dict, reason: str = None) -> bool:
    html = render_template(
        "emails/account_declined.html",
        name=user.get('registered_owner') or user.get('email'),
        company_name=user.get('company_name') or '',
        reason=reason,
    )
    try:
        send_email_notification(user['email'], "Account Registration Declined", html)
        return True
    except MailError as e:
        logger.error(f"Decline notice to {user['email']} failed: {e}")
        return False


# ── Scheduler ────────────────────────────────────────────────────────

def start_scheduler() -> BackgroundScheduler:
    """Register both reminder jobs and start the background scheduler."""
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        logger.warning("Reminder scheduler is already running")
        return _scheduler

    scheduler = BackgroundScheduler(timezone=config.SCHEDULER_TIMEZONE)
    scheduler.add_job(
        func=send_monthly_reminder,
        trigger=CronTrigger(day=MONTHLY_REMINDER_DAY, hour=REMINDER_HOUR, minute=0,
                            timezone=config.SCHEDULER_TIMEZONE),
        id="monthly_reminder",
        name="Monthly submission reminder",
        replace_existing=True,
    )
    scheduler.add_job(
        func=send_deadline_reminder,
        trigger=CronTrigger(day=DEADLINE_REMINDER_DAY, hour=REMINDER_HOUR, minute=0,
                            timezone=config.SCHEDULER_TIMEZONE),
        id="deadline_reminder",
        name="Submission deadline reminder",
        replace_existing=True,
    )
    scheduler.start()
    _scheduler = scheduler
    logger.info("Reminder scheduler started")
    return scheduler


def stop_scheduler(wait: bool = False) -> None:
    global _scheduler
    if _scheduler is None:
        return
    if _scheduler.running:
        _scheduler.shutdown(wait=wait)
        logger.info("Reminder scheduler stopped")
    _scheduler = None
