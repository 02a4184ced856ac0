import smtplib
from datetime import date

import pytest

from wastage_reports import mailer
from wastage_reports.mailer import (
    MailConfigError,
    MailDeliveryError,
    load_mail_settings,
    send_report_email,
)
from wastage_reports.models import PeriodKind, ReportArtifact

ARTIFACT = ReportArtifact(
    "food-wastage-daily-report-2024-03-05.csv",
    "outlet,item_code,item_label,unit,total,color\nOUTLET001,FRIES,French Fries,kg,4,#FFD700",
)
SMTP_ENV = {
    "SMTP_HOST": "smtp.test",
    "SMTP_PORT": "587",
    "SMTP_USER": "user",
    "SMTP_PASS": "pass",
    "SMTP_FROM": "noreply@test.com",
}


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None, context=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.started_tls = False
        self.logged_in = None
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self, context=None):
        self.started_tls = True

    def login(self, user, password):
        self.logged_in = (user, password)

    def send_message(self, msg):
        self.sent.append(msg)


@pytest.fixture(autouse=True)
def smtp_env(monkeypatch):
    for key, value in SMTP_ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.delenv("SMTP_STARTTLS", raising=False)
    monkeypatch.delenv("SMTP_TIMEOUT", raising=False)
    FakeSMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(smtplib, "SMTP_SSL", FakeSMTP)


def test_sends_csv_attachment_with_naming_convention():
    message_id = send_report_email(
        "manager@test.com", PeriodKind.DAILY, ARTIFACT, sent_on=date(2024, 3, 5)
    )

    (smtp,) = FakeSMTP.instances
    assert (smtp.host, smtp.port, smtp.timeout) == ("smtp.test", 587, 30.0)
    assert smtp.started_tls
    assert smtp.logged_in == ("user", "pass")

    (msg,) = smtp.sent
    assert msg["To"] == "manager@test.com"
    assert msg["From"] == "noreply@test.com"
    assert msg["Subject"] == "Food Wastage daily Report (2024-03-05)"
    assert message_id == msg["Message-ID"]
    assert message_id.endswith("@test.com>")

    body, attachment = list(msg.iter_parts())
    assert body.get_content().strip() == "Please find attached the daily report."
    assert attachment.get_content_type() == "text/csv"
    assert attachment.get_filename() == ARTIFACT.filename
    assert attachment.get_payload(decode=True).decode("utf-8") == ARTIFACT.content


def test_implicit_tls_when_starttls_disabled(monkeypatch):
    monkeypatch.setenv("SMTP_STARTTLS", "false")
    monkeypatch.setenv("SMTP_PORT", "465")
    send_report_email("a@b.com", PeriodKind.WEEKLY, ARTIFACT)
    (smtp,) = FakeSMTP.instances
    assert smtp.port == 465
    assert not smtp.started_tls
    assert smtp.sent[0]["Subject"].startswith("Food Wastage weekly Report (")


def test_missing_env_is_reported_by_name(monkeypatch):
    monkeypatch.delenv("SMTP_HOST")
    with pytest.raises(MailConfigError, match="Missing env: SMTP_HOST"):
        send_report_email("a@b.com", PeriodKind.WEEKLY, ARTIFACT)
    assert FakeSMTP.instances == []


def test_empty_env_counts_as_missing(monkeypatch):
    monkeypatch.setenv("SMTP_PASS", "")
    with pytest.raises(MailConfigError, match="Missing env: SMTP_PASS"):
        load_mail_settings()


def test_invalid_port(monkeypatch):
    monkeypatch.setenv("SMTP_PORT", "not-a-port")
    with pytest.raises(MailConfigError, match="SMTP_PORT"):
        load_mail_settings()


def test_settings_are_read_on_every_call(monkeypatch):
    assert load_mail_settings().host == "smtp.test"
    monkeypatch.setenv("SMTP_HOST", "smtp.other")
    assert load_mail_settings().host == "smtp.other"


def test_transport_errors_are_wrapped(monkeypatch):
    def refuse(self, msg):
        raise smtplib.SMTPRecipientsRefused({"a@b.com": (550, b"no")})

    monkeypatch.setattr(FakeSMTP, "send_message", refuse)
    with pytest.raises(MailDeliveryError, match="a@b.com"):
        send_report_email("a@b.com", PeriodKind.MONTHLY, ARTIFACT)


def test_build_message_defaults_to_today():
    msg = mailer.build_message("a@b.com", PeriodKind.MONTHLY, ARTIFACT, "x@y.z")
    assert msg["Subject"] == f"Food Wastage monthly Report ({date.today():%Y-%m-%d})"
