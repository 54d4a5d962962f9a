import logging
import time

from fastapi import HTTPException, Request, status
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )


def connect_with_retry(engine: Engine, retries: int, delay_seconds: float) -> None:
    """Open one connection to prove the database is reachable.

    Tries ``retries + 1`` times in total and re-raises the last error once
    the attempts are exhausted.
    """
    for attempt in range(1, retries + 2):
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            logger.info("Database connected (attempt %s/%s).", attempt, retries + 1)
            return
        except OperationalError:
            logger.warning("Database connection failed (attempt %s/%s).", attempt, retries + 1)
            if attempt > retries:
                raise
            time.sleep(delay_seconds)


def ensure_assignment_indexes(engine: Engine) -> None:
    inspector = inspect(engine)

    if 'assignments' not in inspector.get_table_names():
        return

    with engine.begin() as connection:
        connection.execute(
            text('CREATE INDEX IF NOT EXISTS idx_assignments_owner_created ON assignments(owner_id, created_at)')
        )
        connection.execute(
            text('CREATE INDEX IF NOT EXISTS idx_assignments_reviewer_status ON assignments(reviewer_id, status)')
        )


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def database_unavailable(exc: SQLAlchemyError) -> HTTPException:
    logger.error('Database error: %s', exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail='Database unavailable. Verify DATABASE_URL and database credentials.',
    )
