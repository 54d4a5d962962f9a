import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from sqlalchemy.orm import Session

from portal.auth.passwords import hash_password
from portal.core import config
from portal.database import (
    Base,
    build_engine,
    build_session_factory,
    connect_with_retry,
    ensure_assignment_indexes,
)
from portal.mailer import Mailer
from portal.models import assignment, department, notification, user  # noqa: F401
from portal.rate_limit import limiter, rate_limit_exceeded_handler
from portal.routes import admin_routes, auth_routes, notification_routes, professor_routes, student_routes
from portal.storage import UploadStorage

logger = logging.getLogger(__name__)


def ensure_default_admin(db: Session) -> None:
    email = config.DEFAULT_ADMIN_EMAIL.strip().lower()
    if db.query(user.User).filter(user.User.email == email).first() is not None:
        return

    db.add(
        user.User(
            name='Admin',
            email=email,
            hashed_password=hash_password(config.DEFAULT_ADMIN_PASSWORD),
            role=user.Role.ADMIN.value,
        )
    )
    db.commit()
    logger.info('Default admin %s created', email)


def create_app() -> FastAPI:
    app = FastAPI(title='University Assignment Portal')

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    @app.on_event('startup')
    def initialize_services() -> None:
        config.validate_runtime_config()

        engine = build_engine(config.DATABASE_URL)
        connect_with_retry(engine, config.DB_CONNECT_RETRIES, config.DB_CONNECT_RETRY_DELAY)
        Base.metadata.create_all(bind=engine)
        ensure_assignment_indexes(engine)

        app.state.engine = engine
        app.state.session_factory = build_session_factory(engine)
        app.state.mailer = Mailer.from_config()
        app.state.storage = UploadStorage(config.UPLOAD_DIR, config.MAX_UPLOAD_BYTES)

        db = app.state.session_factory()
        try:
            ensure_default_admin(db)
        finally:
            db.close()

        logger.info('Portal started (env=%s, uploads=%s)', config.APP_ENV, config.UPLOAD_DIR)

    @app.on_event('shutdown')
    def dispose_engine() -> None:
        engine = getattr(app.state, 'engine', None)
        if engine is not None:
            engine.dispose()

    @app.get('/')
    def root():
        return {'status': 'Assignment Portal API Running'}

    app.include_router(auth_routes.router, prefix='/auth')
    app.include_router(student_routes.router, prefix='/student')
    app.include_router(professor_routes.router, prefix='/professor')
    app.include_router(notification_routes.router, prefix='/notifications')
    app.include_router(admin_routes.router, prefix='/admin')

    return app


app = create_app()
