"""Account flows behind the ``/auth`` routes.

``AuthService`` takes its collaborators explicitly (database session, email
sender, clock) so each request builds its own instance and tests can pass
doubles. Errors are raised as ``backend.core.errors`` types.
"""

import hashlib
import logging
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable
from urllib.parse import urlencode

import jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.auth import jwt_handler
from backend.auth.passwords import hash_password, verify_password
from backend.core import config
from backend.core.errors import (
    AuthError,
    ConflictError,
    EmailDeliveryError,
    InvalidToken,
    NotFoundError,
    ValidationError,
)
from backend.models.user import User
from backend.services.email_service import EmailNotConfiguredError, EmailSendError

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
RESET_TOKEN_BYTES = 32
RESET_EMAIL_SUBJECT = 'Password Reset'

REQUIRED_FIELDS_MESSAGE = 'All fields are required'
INVALID_CREDENTIALS_MESSAGE = 'Invalid credentials'


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(value: str | None) -> str:
    return (value or '').strip().lower()


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def sanitize_user(user: User) -> dict:
    return {
        'id': user.id,
        'fullName': user.full_name,
        'email': user.email,
        'role': user.role,
        'googleID': user.google_id,
        'createdAt': user.created_at.isoformat() if user.created_at else None,
    }


def build_reset_link(token: str, email: str) -> str:
    query = urlencode({'token': token, 'email': email})
    return f'{config.CLIENT_URL}/reset-password?{query}'


def build_reset_email(reset_link: str, expires_minutes: int) -> str:
    return (
        '<h3>Password Reset Request</h3>'
        '<p>Click the link below to reset your password:</p>'
        f'<a href="{reset_link}">{reset_link}</a>'
        f'<p>This link expires in {expires_minutes} minutes.</p>'
    )


class AuthService:
    def __init__(
        self,
        db: Session,
        email_sender,
        now: Callable[[], datetime] = _utcnow,
        reset_token_ttl: timedelta | None = None,
    ) -> None:
        self.db = db
        self.email_sender = email_sender
        self.now = now
        self.reset_token_ttl = reset_token_ttl or timedelta(minutes=config.RESET_TOKEN_EXPIRES_MINUTES)

    def _find_by_email(self, email: str) -> User | None:
        return self.db.query(User).filter(User.email == email).first()

    def _commit(self, conflict_message: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError(conflict_message) from exc

    def signup(self, full_name: str | None, email: str | None, password: str | None, role: str | None) -> User:
        full_name = (full_name or '').strip()
        role = (role or '').strip()
        email = normalize_email(email)

        if not full_name or not email or not password or not role:
            raise ValidationError(REQUIRED_FIELDS_MESSAGE)
        if not EMAIL_PATTERN.match(email):
            raise ValidationError('Invalid email format')

        if self._find_by_email(email) is not None:
            raise ConflictError('User already exists')

        user = User(
            full_name=full_name,
            email=email,
            hashed_password=hash_password(password),
            role=role,
        )
        self.db.add(user)
        # a concurrent signup can still win the race; the unique index decides
        self._commit('User already exists')
        self.db.refresh(user)

        logger.info('User registered: id=%s', user.id)
        return user

    def login(self, email: str | None, password: str | None) -> User:
        email = normalize_email(email)
        if not email or not password:
            raise ValidationError(REQUIRED_FIELDS_MESSAGE)

        user = self._find_by_email(email)
        if user is None or not verify_password(password, user.hashed_password):
            logger.warning('Failed login attempt')
            raise AuthError(INVALID_CREDENTIALS_MESSAGE)

        return user

    def link_account(self, token: str | None, password: str | None) -> User:
        if not password:
            raise ValidationError('Password is required')
        if not token:
            raise AuthError('Invalid token')

        try:
            email, google_id = jwt_handler.decode_link_token(token)
        except jwt.InvalidTokenError as exc:
            raise AuthError('Invalid token') from exc

        user = self._find_by_email(normalize_email(email))
        if user is None:
            raise NotFoundError('User does not exist')

        if not verify_password(password, user.hashed_password):
            raise AuthError(INVALID_CREDENTIALS_MESSAGE)

        user.google_id = google_id
        self._commit('This external account is already linked to another user')
        self.db.refresh(user)

        logger.info('External account linked: id=%s', user.id)
        return user

    def forgot_password(self, email: str | None) -> str:
        """Store a fresh reset token for ``email`` and mail the reset link.

        Returns the link that was sent. The token is committed before
        delivery, so it stays valid even when sending fails.
        """
        email = normalize_email(email)
        if not email:
            raise ValidationError(REQUIRED_FIELDS_MESSAGE)

        user = self._find_by_email(email)
        if user is None:
            raise NotFoundError('User does not exist')

        token = secrets.token_hex(RESET_TOKEN_BYTES)
        user.reset_password_token = hash_reset_token(token)
        user.reset_password_expires = self.now() + self.reset_token_ttl
        self.db.commit()

        reset_link = build_reset_link(token, email)
        html = build_reset_email(reset_link, int(self.reset_token_ttl.total_seconds() // 60))

        try:
            self.email_sender.send(email, RESET_EMAIL_SUBJECT, html)
        except (EmailNotConfiguredError, EmailSendError) as exc:
            logger.error('Reset email send failed: id=%s error=%s', user.id, exc)
            raise EmailDeliveryError('Failed to send reset email') from exc

        logger.info('Password reset requested: id=%s', user.id)
        return reset_link

    def reset_password(self, token: str | None, email: str | None, new_password: str | None) -> User:
        email = normalize_email(email)
        if not token or not email or not new_password:
            raise ValidationError(REQUIRED_FIELDS_MESSAGE)

        user = self.db.query(User).filter(
            User.email == email,
            User.reset_password_token == hash_reset_token(token),
            User.reset_password_expires > self.now(),
        ).first()
        if user is None:
            raise InvalidToken('Invalid or expired token')

        user.hashed_password = hash_password(new_password)
        user.reset_password_token = None
        user.reset_password_expires = None
        self.db.commit()

        logger.info('Password reset completed: id=%s', user.id)
        return user

    def get_session_user(self, token: str | None) -> User:
        if not token:
            raise AuthError('Not authenticated')

        try:
            payload = jwt_handler.decode_access_token(token)
        except jwt.InvalidTokenError as exc:
            raise AuthError('Invalid session') from exc

        subject = payload.get('sub')
        if not subject:
            raise AuthError('Invalid session')

        # link-account sessions are keyed by the external id, every other flow by the local id
        if payload.get('sub_type') == jwt_handler.SUBJECT_GOOGLE:
            user = self.db.query(User).filter(User.google_id == subject).first()
        elif subject.isdigit():
            user = self.db.query(User).filter(User.id == int(subject)).first()
        else:
            user = None

        if user is None:
            raise AuthError('User not found')
        return user
