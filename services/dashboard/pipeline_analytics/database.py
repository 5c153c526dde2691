from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import ProgrammingError, OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator
import os

# Import centralized configuration
from pipeline_analytics.config import settings
from pipeline_analytics.obs.logging import get_logger

logger = get_logger(__name__)

DATABASE_URL = settings.DATABASE_URL
DEBUG_SQL = os.getenv("DEBUG_SQL", "false").lower() == "true"

if DATABASE_URL and DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # SQLite has no server pool; allow the session to hop threads under TestClient
        return {"connect_args": {"check_same_thread": False}}
    # Production-ready connection pool configuration
    return {
        "pool_size": 20,  # Normal connections (adjust based on load)
        "max_overflow": 40,  # Burst capacity
        "pool_timeout": 30,  # Wait 30s for connection before failing
        "pool_recycle": 1800,  # Recycle connections every 30 minutes
        "pool_pre_ping": True,  # Verify connections before use
    }


def configure_sqlite_transactions(target: Engine, immediate: bool = False) -> Engine:
    """
    Hand BEGIN and SAVEPOINT control to SQLAlchemy on a pysqlite engine.

    pysqlite opens its own transactions lazily and silently commits around
    SAVEPOINT, which breaks `begin_nested` rollback. With the driver in
    autocommit mode and an explicit BEGIN per transaction, savepoints nest.
    `immediate` takes the write lock at BEGIN.
    """
    @event.listens_for(target, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE" if immediate else "BEGIN")

    return target


engine = create_engine(DATABASE_URL, echo=DEBUG_SQL, **_engine_kwargs(DATABASE_URL))
if DATABASE_URL.startswith("sqlite"):
    configure_sqlite_transactions(engine)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Yield a request-scoped session. Tenant scoping is explicit in every engine query."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    # Import all models here so that Base knows about them
    from .models import daily_metric, applied_event, team_member, lead  # noqa: F401

    # Catch duplicate index/table errors (common when migrations have already run)
    try:
        Base.metadata.create_all(bind=engine)
    except (ProgrammingError, OperationalError) as e:
        error_msg = str(e.orig) if hasattr(e, 'orig') else str(e)
        if "already exists" not in error_msg.lower() and "duplicate" not in error_msg.lower():
            raise
        logger.info(f"Some indexes/tables already exist (expected if migrations ran): {error_msg[:100]}")
