from fastapi import Depends, Request
from sqlalchemy.orm import Session

from backend.auth.cookies import read_auth_cookie
from backend.database import get_db
from backend.models.user import User
from backend.services.auth_service import AuthService
from backend.services.email_service import get_email_sender


def get_auth_service(
    db: Session = Depends(get_db),
    email_sender=Depends(get_email_sender),
) -> AuthService:
    return AuthService(db=db, email_sender=email_sender)


def get_current_user(
    request: Request,
    service: AuthService = Depends(get_auth_service),
) -> User:
    return service.get_session_user(read_auth_cookie(request))
