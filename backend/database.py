from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config


connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(config.DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_user_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _indexed_columns(inspector) -> dict[str, bool]:
    """Map each single-column index or unique constraint on ``users`` to whether it is unique."""
    indexed: dict[str, bool] = {}
    for index in inspector.get_indexes('users'):
        if len(index['column_names']) == 1:
            column_name = index['column_names'][0]
            indexed[column_name] = indexed.get(column_name, False) or bool(index['unique'])
    for constraint in inspector.get_unique_constraints('users'):
        if len(constraint['column_names']) == 1:
            indexed[constraint['column_names'][0]] = True
    return indexed


def migrate_user_table(target: Engine) -> None:
    inspector = inspect(target)

    if 'users' not in inspector.get_table_names():
        return

    existing_columns = {column['name'] for column in inspector.get_columns('users')}
    migration_steps = [
        ('full_name', 'ALTER TABLE users ADD COLUMN full_name VARCHAR'),
        ('google_id', 'ALTER TABLE users ADD COLUMN google_id VARCHAR'),
        ('reset_password_token', 'ALTER TABLE users ADD COLUMN reset_password_token VARCHAR'),
        ('reset_password_expires', 'ALTER TABLE users ADD COLUMN reset_password_expires TIMESTAMP WITH TIME ZONE'),
        ('created_at', 'ALTER TABLE users ADD COLUMN created_at TIMESTAMP WITH TIME ZONE'),
    ]
    index_steps = [
        ('email', True, 'CREATE UNIQUE INDEX IF NOT EXISTS uq_users_email ON users(email)'),
        ('google_id', True, 'CREATE UNIQUE INDEX IF NOT EXISTS uq_users_google_id ON users(google_id)'),
        ('reset_password_token', False, 'CREATE INDEX IF NOT EXISTS idx_users_reset_token ON users(reset_password_token)'),
    ]
    indexed_columns = _indexed_columns(inspector)

    with target.begin() as connection:
        for column_name, statement in migration_steps:
            if column_name not in existing_columns:
                connection.execute(text(statement))
        for column_name, unique, statement in index_steps:
            # a plain index on email or google_id still needs the unique one
            if column_name in indexed_columns and (indexed_columns[column_name] or not unique):
                continue
            connection.execute(text(statement))


def ensure_user_schema() -> None:
    global _user_schema_checked

    if _user_schema_checked:
        return

    with _schema_lock:
        if _user_schema_checked:
            return

        migrate_user_table(engine)
        _user_schema_checked = True
