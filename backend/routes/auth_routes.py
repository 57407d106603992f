import logging
from contextlib import contextmanager

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth import jwt_handler
from backend.auth.cookies import clear_auth_cookie, set_auth_cookie
from backend.auth.dependencies import get_auth_service, get_current_user
from backend.core.errors import InternalError
from backend.models.user import User
from backend.services.auth_service import AuthService, sanitize_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=['auth'])

INTERNAL_ERROR_MESSAGE = 'Internal server error'


class SignupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    full_name: str | None = Field(default=None, alias='fullName')
    email: str | None = None
    password: str | None = None
    role: str | None = None


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class LinkAccountRequest(BaseModel):
    token: str | None = None
    password: str | None = None


class ForgotPasswordRequest(BaseModel):
    email: str | None = None


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str | None = None
    email: str | None = None
    new_password: str | None = Field(default=None, alias='newPassword')


@contextmanager
def database_errors(db: Session, operation: str):
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('%s failed on a database error', operation)
        raise InternalError(INTERNAL_ERROR_MESSAGE) from exc


@router.post('/signup', status_code=status.HTTP_201_CREATED)
def signup(payload: SignupRequest, response: Response, service: AuthService = Depends(get_auth_service)):
    with database_errors(service.db, 'Signup'):
        user = service.signup(
            full_name=payload.full_name,
            email=payload.email,
            password=payload.password,
            role=payload.role,
        )

    set_auth_cookie(response, user.id)
    return {'message': 'User successfully registered', 'user': sanitize_user(user)}


@router.post('/login')
def login(payload: LoginRequest, response: Response, service: AuthService = Depends(get_auth_service)):
    with database_errors(service.db, 'Login'):
        user = service.login(email=payload.email, password=payload.password)

    set_auth_cookie(response, user.id)
    return {'message': 'User successfully logged in', 'user': sanitize_user(user)}


@router.post('/logout')
def logout(response: Response):
    clear_auth_cookie(response)
    return {'message': 'Logged out successfully'}


@router.post('/link-account')
def link_account(payload: LinkAccountRequest, response: Response, service: AuthService = Depends(get_auth_service)):
    with database_errors(service.db, 'Account linking'):
        user = service.link_account(token=payload.token, password=payload.password)

    # keyed by the external identity, unlike signup/login which use the local id
    set_auth_cookie(response, user.google_id, subject_type=jwt_handler.SUBJECT_GOOGLE)
    return {'message': 'Account linked successfully'}


@router.post('/forgot-password')
def forgot_password(payload: ForgotPasswordRequest, service: AuthService = Depends(get_auth_service)):
    with database_errors(service.db, 'Password reset request'):
        service.forgot_password(email=payload.email)

    return {'message': 'Reset link sent to your email.'}


@router.post('/reset-password')
def reset_password(payload: ResetPasswordRequest, service: AuthService = Depends(get_auth_service)):
    with database_errors(service.db, 'Password reset'):
        service.reset_password(
            token=payload.token,
            email=payload.email,
            new_password=payload.new_password,
        )

    return {'message': 'Password reset successful'}


@router.get('/me')
def me(current_user: User = Depends(get_current_user)):
    return {'user': sanitize_user(current_user)}
