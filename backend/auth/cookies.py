from fastapi import Request, Response

from backend.auth import jwt_handler
from backend.core import config


def _cookie_attributes() -> dict:
    return {
        "httponly": True,
        "samesite": "lax",
        "secure": config.is_production(),
        "path": "/",
    }


def set_auth_cookie(response: Response, subject, subject_type: str = jwt_handler.SUBJECT_USER) -> None:
    token = jwt_handler.create_access_token(subject=str(subject), subject_type=subject_type)
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=token,
        max_age=config.JWT_EXPIRES_MINUTES * 60,
        **_cookie_attributes(),
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(key=config.SESSION_COOKIE_NAME, **_cookie_attributes())


def read_auth_cookie(request: Request) -> str | None:
    value = request.cookies.get(config.SESSION_COOKIE_NAME)
    if not value:
        return None
    return value.strip() or None
