import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.core.errors import AuthServiceError
from backend.database import engine, ensure_user_schema
from backend.models import user
from backend.routes import auth_routes

logging.basicConfig(level=config.LOG_LEVEL)

config.validate_runtime_config()

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        user.Base.metadata.create_all(bind=engine)
        ensure_user_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.exception_handler(AuthServiceError)
def auth_service_error_handler(request: Request, exc: AuthServiceError):  # noqa: ARG001
    return JSONResponse(status_code=exc.status_code, content={'error': exc.message})


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError):  # noqa: ARG001
    return JSONResponse(status_code=400, content={'error': 'Invalid request payload'})


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception):  # noqa: ARG001
    logger.exception('Unhandled error on %s %s', request.method, request.url.path)
    return JSONResponse(status_code=500, content={'error': 'Internal server error'})


@app.get('/')
def root():
    return {'status': 'Auth API Running'}


app.include_router(auth_routes.router, prefix='/auth')
