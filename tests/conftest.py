import os
import re

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret-key-for-the-auth-test-suite')
os.environ.setdefault('CLIENT_URL', 'http://client.test')

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from backend.database import Base, get_db  # noqa: E402
from backend.models.user import User  # noqa: E402
from backend.services.email_service import EmailSendError, get_email_sender  # noqa: E402

RESET_TOKEN_PATTERN = re.compile(r'token=([0-9a-f]{64})')


class FakeEmailSender:
    def __init__(self) -> None:
        self.sent = []
        self.fail = False

    def send(self, to_email: str, subject: str, html: str) -> None:
        if self.fail:
            raise EmailSendError('SMTP email failed: connection refused')
        self.sent.append({'to': to_email, 'subject': subject, 'html': html})

    def last_reset_token(self) -> str:
        match = RESET_TOKEN_PATTERN.search(self.sent[-1]['html'])
        assert match is not None
        return match.group(1)


@pytest.fixture
def db_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=[User.__table__])
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine, tables=[User.__table__])
        engine.dispose()


@pytest.fixture
def db_session(db_engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def client(db_session, email_sender):
    from backend.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
