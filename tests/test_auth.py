from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from auth import (
    AuthService,
    PasswordResetService,
    issue_session_token,
    read_session_token,
)
from config import get_settings
from database import Base
from errors import AuthenticationError, ValidationError
from schemas import RegisterIn


class FakeMailer:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, object]] = []

    def send_password_reset(self, to, reset_url, name=None) -> None:
        self.sent.append((to, reset_url, name))


def _token_from(url: str) -> str:
    return url.split("token=", 1)[1]


def test_register_and_authenticate() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        auth = AuthService(session)
        user = auth.register(
            RegisterIn(email="Ana@Example.com", password="secret1", name="Ana")
        )
        assert user.email == "ana@example.com"
        assert user.password_hash != "secret1"

        assert auth.authenticate("ANA@example.com", "secret1").id == user.id
        with pytest.raises(AuthenticationError):
            auth.authenticate("ana@example.com", "wrong-pass")
        with pytest.raises(AuthenticationError):
            auth.authenticate("nobody@example.com", "secret1")

        with pytest.raises(ValidationError):
            auth.register(RegisterIn(email="ana@example.com", password="another1"))


def test_register_rejects_short_password() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        with pytest.raises(ValidationError) as excinfo:
            AuthService(session).register(RegisterIn(email="a@b.co", password="12345"))
        assert excinfo.value.details[0]["code"] == "too_short"


def test_session_token_roundtrip_and_tampering() -> None:
    token = issue_session_token(42)
    assert read_session_token(token) == 42

    with pytest.raises(AuthenticationError):
        read_session_token(("x" if token[0] != "x" else "y") + token[1:])
    with pytest.raises(AuthenticationError):
        read_session_token("not-a-token")


def test_session_token_expires(monkeypatch) -> None:
    token = issue_session_token(7)
    monkeypatch.setattr(get_settings(), "session_max_age_hours", -1)
    with pytest.raises(AuthenticationError) as excinfo:
        read_session_token(token)
    assert "expired" in str(excinfo.value)


def test_password_reset_flow() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        AuthService(session).register(
            RegisterIn(email="ana@example.com", password="secret1", name="Ana")
        )
        mailer = FakeMailer()
        resets = PasswordResetService(session, mailer=mailer)
        t0 = datetime(2024, 5, 1, 12, 0)

        resets.request_reset("ANA@example.com", now=t0)
        assert len(mailer.sent) == 1
        to, url, name = mailer.sent[0]
        assert to == "ana@example.com"
        assert name == "Ana"
        assert "/reset-password?token=" in url
        token = _token_from(url)
        assert len(token) == 64

        resets.check_token(token, now=t0 + timedelta(minutes=5))
        resets.reset_password(token, "brand-new", now=t0 + timedelta(minutes=5))
        assert AuthService(session).authenticate("ana@example.com", "brand-new")

        with pytest.raises(ValidationError) as excinfo:
            resets.reset_password(token, "again-new", now=t0 + timedelta(minutes=6))
        assert "already used" in str(excinfo.value)


def test_password_reset_token_expiry_and_replacement() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        AuthService(session).register(
            RegisterIn(email="ana@example.com", password="secret1")
        )
        mailer = FakeMailer()
        resets = PasswordResetService(session, mailer=mailer)
        t0 = datetime(2024, 5, 1, 12, 0)

        resets.request_reset("ana@example.com", now=t0)
        first = _token_from(mailer.sent[-1][1])
        ttl = get_settings().reset_token_ttl_minutes
        with pytest.raises(ValidationError) as excinfo:
            resets.check_token(first, now=t0 + timedelta(minutes=ttl + 1))
        assert "expired" in str(excinfo.value)

        # A newer request invalidates older links.
        resets.request_reset("ana@example.com", now=t0 + timedelta(minutes=1))
        second = _token_from(mailer.sent[-1][1])
        assert second != first
        with pytest.raises(ValidationError):
            resets.check_token(first, now=t0 + timedelta(minutes=2))
        resets.check_token(second, now=t0 + timedelta(minutes=2))

        with pytest.raises(ValidationError):
            resets.check_token("0" * 64)
        with pytest.raises(ValidationError):
            resets.reset_password(second, "123", now=t0 + timedelta(minutes=2))


def test_password_reset_for_unknown_email_is_silent() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        mailer = FakeMailer()
        PasswordResetService(session, mailer=mailer).request_reset("ghost@example.com")
        assert mailer.sent == []
