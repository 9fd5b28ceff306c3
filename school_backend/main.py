import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from school_backend.auth.gate import authentication_gate
from school_backend.core import config
from school_backend.core.errors import AccountError
from school_backend.database import Base, SessionLocal, engine
from school_backend.models import password_reset_token, school_class, user  # noqa: F401
from school_backend.routes import auth_routes, class_routes, teacher_routes, user_routes
from school_backend.services.bootstrap import ensure_default_admin

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

config.validate_runtime_config()

app = FastAPI(title='School Administration API')
app.state.session_factory = SessionLocal

# Added before CORS so that CORS wraps the gate and 401s carry CORS headers.
app.middleware('http')(authentication_gate)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception('Unhandled error on %s %s', request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={'detail': 'Internal server error.'},
    )


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')
        return

    if not config.BOOTSTRAP_ADMIN:
        return

    db = app.state.session_factory()
    try:
        ensure_default_admin(db)
    except (SQLAlchemyError, AccountError):
        db.rollback()
        logger.exception('Could not create the default administrator.')
    finally:
        db.close()


@app.get('/')
def root():
    return {'status': 'School Administration API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(user_routes.router, prefix='/users')
app.include_router(teacher_routes.router, prefix='/teachers')
app.include_router(class_routes.router, prefix='/classes')
