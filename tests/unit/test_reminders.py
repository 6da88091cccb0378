"""
Unit tests for tdms/reminders.py and tdms/mailer.py -- reminder batches and SMTP delivery.
"""
import os
import sys
import smtplib
import pytest
from datetime import date
from unittest.mock import patch, MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from tdms import mailer, reminders
from tdms.mailer import MailError
from tdms.reminders import (
    deadline_label,
    notify_account_approved,
    notify_account_declined,
    reporting_period,
    send_deadline_reminder,
    send_monthly_reminder,
)

pytestmark = pytest.mark.unit

RECIPIENTS = ["a@hotel.test", "b@hotel.test", "c@hotel.test"]


# ── Reporting period ─────────────────────────────────────────────────

class TestReportingPeriod:
    def test_previous_month(self):
        assert reporting_period(date(2024, 3, 1)) == (2, 2024)

    def test_january_reports_december_of_previous_year(self):
        assert reporting_period(date(2024, 1, 1)) == (12, 2023)

    def test_deadline_label(self):
        assert deadline_label(date(2024, 3, 1)) == "2024-03-10 11:59 PM"
        assert deadline_label(date(2024, 3, 9)) == "2024-03-10 11:59 PM"


# ── Reminder batches ─────────────────────────────────────────────────

class TestMonthlyReminder:
    @patch("tdms.reminders.send_email_notification")
    @patch("tdms.reminders.get_reminder_recipients", return_value=RECIPIENTS)
    def test_sends_to_every_recipient(self, mock_recipients, mock_send):
        assert send_monthly_reminder(date(2024, 1, 1)) == 3
        assert mock_send.call_count == 3

        to, subject, html = mock_send.call_args_list[0][0]
        assert to == "a@hotel.test"
        assert "December 2023" in subject
        assert "2024-01-10 11:59 PM" in html

    @patch("tdms.reminders.send_email_notification")
    @patch("tdms.reminders.get_reminder_recipients", return_value=RECIPIENTS)
    def test_one_failure_does_not_stop_the_loop(self, mock_recipients, mock_send):
        mock_send.side_effect = [None, MailError("mailbox full"), None]
        assert send_monthly_reminder(date(2024, 5, 1)) == 2
        assert mock_send.call_count == 3

    @patch("tdms.reminders.send_email_notification")
    @patch("tdms.reminders.get_reminder_recipients", side_effect=RuntimeError("db down"))
    def test_recipient_query_failure_returns_zero(self, mock_recipients, mock_send):
        assert send_monthly_reminder(date(2024, 5, 1)) == 0
        mock_send.assert_not_called()

    @patch("tdms.reminders.send_email_notification")
    @patch("tdms.reminders.get_reminder_recipients", return_value=[])
    def test_no_recipients(self, mock_recipients, mock_send):
        assert send_monthly_reminder(date(2024, 5, 1)) == 0


class TestDeadlineReminder:
    @patch("tdms.reminders.send_email_notification")
    @patch("tdms.reminders.get_reminder_recipients", return_value=RECIPIENTS[:1])
    def test_mentions_tomorrow(self, mock_recipients, mock_send):
        assert send_deadline_reminder(date(2024, 7, 9)) == 1
        _, subject, html = mock_send.call_args[0]
        assert "Deadline Tomorrow" in subject
        assert "June 2024" in subject
        assert "tomorrow, 2024-07-10 11:59 PM" in html


class TestRecipients:
    def test_active_verified_query(self):
        mock_conn = MagicMock()
        mock_cursor = MagicMock()
        mock_cursor.fetchall.return_value = [{"email": "a@hotel.test"}]
        mock_conn.cursor.return_value = mock_cursor
        with patch("tdms.reminders.get_db") as mock_get_db:
            mock_get_db.return_value.__enter__ = MagicMock(return_value=mock_conn)
            mock_get_db.return_value.__exit__ = MagicMock(return_value=False)
            assert reminders.get_reminder_recipients() == ["a@hotel.test"]
        sql = mock_cursor.execute.call_args[0][0]
        assert "is_active = TRUE" in sql
        assert "email_verified = TRUE" in sql


# ── Account notifications ────────────────────────────────────────────

class TestAccountNotifications:
    USER = {"email": "owner@hotel.test", "registered_owner": "Juan", "company_name": "Alona Inn"}

    @patch("tdms.reminders.send_email_notification")
    def test_approved(self, mock_send):
        assert notify_account_approved(self.USER) is True
        to, subject, html = mock_send.call_args[0]
        assert to == "owner@hotel.test"
        assert "Approved" in subject
        assert "Alona Inn" in html

    @patch("tdms.reminders.send_email_notification", side_effect=MailError("smtp down"))
    def test_failure_reported_not_raised(self, mock_send):
        assert notify_account_declined(self.USER, "Missing permit") is False


# ── Scheduler ────────────────────────────────────────────────────────

class TestScheduler:
    @patch("tdms.reminders.BackgroundScheduler")
    def test_registers_both_jobs(self, mock_scheduler_cls):
        scheduler = mock_scheduler_cls.return_value
        scheduler.running = False
        try:
            reminders.start_scheduler()
            job_ids = [call.kwargs["id"] for call in scheduler.add_job.call_args_list]
            assert job_ids == ["monthly_reminder", "deadline_reminder"]
            scheduler.start.assert_called_once()
        finally:
            scheduler.running = True
            reminders.stop_scheduler()
        scheduler.shutdown.assert_called_once()

    def test_stop_without_start_is_noop(self):
        reminders.stop_scheduler()


# ── SMTP transport ───────────────────────────────────────────────────

class TestMailer:
    def test_unconfigured_raises(self, monkeypatch):
        monkeypatch.setattr(mailer.config, "SMTP_HOST", "")
        with pytest.raises(MailError):
            mailer.send_email_notification("a@hotel.test", "s", "<p>x</p>")

    @patch("tdms.mailer.smtplib.SMTP")
    def test_sends_via_smtp(self, mock_smtp, monkeypatch):
        monkeypatch.setattr(mailer.config, "SMTP_HOST", "smtp.test")
        monkeypatch.setattr(mailer.config, "SMTP_USER", "user")
        monkeypatch.setattr(mailer.config, "SMTP_PASSWORD", "pw")
        monkeypatch.setattr(mailer.config, "MAIL_FROM", "noreply@tdms.test")
        server = mock_smtp.return_value.__enter__.return_value

        mailer.send_email_notification("a@hotel.test", "Subject", "<p>x</p>")

        server.starttls.assert_called_once()
        server.login.assert_called_once_with("user", "pw")
        assert server.sendmail.call_args[0][:2] == ("noreply@tdms.test", ["a@hotel.test"])

    @patch("tdms.mailer.smtplib.SMTP")
    def test_smtp_error_wrapped(self, mock_smtp, monkeypatch):
        monkeypatch.setattr(mailer.config, "SMTP_HOST", "smtp.test")
        monkeypatch.setattr(mailer.config, "MAIL_FROM", "noreply@tdms.test")
        mock_smtp.return_value.__enter__.return_value.sendmail.side_effect = smtplib.SMTPException("boom")
        with pytest.raises(MailError):
            mailer.send_email_notification("a@hotel.test", "Subject", "<p>x</p>")
