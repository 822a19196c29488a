import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, Request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from passlib.context import CryptContext
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from config import get_settings
from errors import AuthenticationError, PermissionDenied, ValidationError
from mailer import Mailer
from models import PasswordResetToken, User
from schemas import RegisterIn

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

RESET_REQUESTED_MESSAGE = (
    "If the email exists, you will receive instructions to reset your password."
)


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.session_secret, salt="session-token")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def issue_session_token(user_id: int) -> str:
    return _serializer().dumps({"u": user_id})


def read_session_token(token: str) -> int:
    settings = get_settings()
    try:
        data = _serializer().loads(
            token, max_age=settings.session_max_age_hours * 3600
        )
    except SignatureExpired as exc:
        raise AuthenticationError("Session expired") from exc
    except BadSignature as exc:
        raise AuthenticationError("Invalid session") from exc
    user_id = data.get("u") if isinstance(data, dict) else None
    if not isinstance(user_id, int):
        raise AuthenticationError("Invalid session")
    return user_id


def is_admin(user_id: int) -> bool:
    return user_id in get_settings().admin_user_ids


def _check_password_length(password: str) -> None:
    min_length = get_settings().password_min_length
    if len(password) < min_length:
        raise ValidationError(
            f"Password must be at least {min_length} characters long",
            details=[{"field": "password", "code": "too_short"}],
        )


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def register(self, data: RegisterIn) -> User:
        _check_password_length(data.password)
        email = _normalize_email(data.email)
        if self.session.scalar(select(User).where(User.email == email)):
            raise ValidationError("This email is already registered")
        user = User(
            email=email,
            name=(data.name or "").strip() or None,
            password_hash=hash_password(data.password),
        )
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        logger.info(f"user_registered: user_id={user.id}")
        return user

    def authenticate(self, email: str, password: str) -> User:
        user = self.session.scalar(
            select(User).where(User.email == _normalize_email(email))
        )
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid email or password")
        return user


class PasswordResetService:
    def __init__(self, session: Session, mailer: Optional[Mailer] = None) -> None:
        self.session = session
        self.mailer = mailer or Mailer()
        self.settings = get_settings()

    def request_reset(self, email: str, now: Optional[datetime] = None) -> None:
        now = now or datetime.utcnow()
        user = self.session.scalar(
            select(User).where(User.email == _normalize_email(email))
        )
        # Same outcome either way; registered emails stay indistinguishable.
        if not user:
            logger.info("password_reset_requested: known=false")
            return

        self.session.execute(
            update(PasswordResetToken)
            .where(
                PasswordResetToken.user_id == user.id,
                PasswordResetToken.used_at.is_(None),
            )
            .values(used_at=now)
        )
        token = secrets.token_hex(32)
        self.session.add(
            PasswordResetToken(
                user_id=user.id,
                token=token,
                expires_at=now
                + timedelta(minutes=self.settings.reset_token_ttl_minutes),
            )
        )
        self.session.commit()

        reset_url = f"{self.settings.app_base_url}/reset-password?token={token}"
        self.mailer.send_password_reset(user.email, reset_url, user.name)
        logger.info(f"password_reset_requested: known=true user_id={user.id}")

    def _valid_token(self, token: str, now: datetime) -> PasswordResetToken:
        reset_token = self.session.scalar(
            select(PasswordResetToken).where(PasswordResetToken.token == token)
        )
        if not reset_token:
            raise ValidationError("Invalid or expired token")
        if reset_token.used_at is not None:
            raise ValidationError("This link was already used. Request a new one.")
        if reset_token.expires_at < now:
            raise ValidationError("This link has expired. Request a new one.")
        return reset_token

    def check_token(self, token: str, now: Optional[datetime] = None) -> None:
        self._valid_token(token, now or datetime.utcnow())

    def reset_password(
        self, token: str, password: str, now: Optional[datetime] = None
    ) -> None:
        now = now or datetime.utcnow()
        _check_password_length(password)
        reset_token = self._valid_token(token, now)
        user = self.session.get(User, reset_token.user_id)
        user.password_hash = hash_password(password)
        reset_token.used_at = now
        self.session.commit()
        logger.info(f"password_reset_completed: user_id={user.id}")


SESSION_COOKIE = "session"


def current_user_id(request: Request) -> int:
    """FastAPI dependency: user id from the session cookie or a bearer token."""
    token = request.cookies.get(SESSION_COOKIE)
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
    if not token:
        raise AuthenticationError("Not authenticated")
    return read_session_token(token)


def admin_user_id(user_id: int = Depends(current_user_id)) -> int:
    if not is_admin(user_id):
        raise PermissionDenied("Admin access required")
    return user_id
