import mailer
from config import get_settings
from mailer import Mailer, render_password_reset


class FakeSMTP:
    instances: list["FakeSMTP"] = []

    def __init__(self, host, port) -> None:
        self.host = host
        self.port = port
        self.logged_in = None
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        return None

    def starttls(self) -> None:
        pass

    def login(self, user, password) -> None:
        self.logged_in = (user, password)

    def send_message(self, msg) -> None:
        self.messages.append(msg)


def test_password_reset_email_renders_link_and_escapes_name() -> None:
    html = render_password_reset(
        "https://app.test/reset-password?token=abc", name="<b>Ana</b>"
    )
    assert 'href="https://app.test/reset-password?token=abc"' in html
    assert "&lt;b&gt;Ana&lt;/b&gt;" in html


def test_mail_is_skipped_without_smtp_host(monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "smtp_host", None)
    FakeSMTP.instances.clear()
    monkeypatch.setattr(mailer.smtplib, "SMTP", FakeSMTP)

    Mailer().send_password_reset("ana@example.com", "https://app.test/r?token=1")
    assert FakeSMTP.instances == []


def test_mail_is_sent_over_smtp(monkeypatch) -> None:
    settings = get_settings()
    monkeypatch.setattr(settings, "smtp_host", "smtp.test")
    monkeypatch.setattr(settings, "smtp_user", "mailer")
    monkeypatch.setattr(settings, "smtp_password", "pw")
    FakeSMTP.instances.clear()
    monkeypatch.setattr(mailer.smtplib, "SMTP", FakeSMTP)

    Mailer().send_password_reset("ana@example.com", "https://app.test/r?token=1", "Ana")
    [smtp] = FakeSMTP.instances
    assert smtp.host == "smtp.test"
    assert smtp.logged_in == ("mailer", "pw")
    [message] = smtp.messages
    assert message["To"] == "ana@example.com"
    assert message["Subject"] == "Password reset"
