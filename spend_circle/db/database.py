import logging
import os
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Falls back to a local SQLite file when DATABASE_URL is not set
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./spend_circle.db")


def build_engine(url: str) -> Engine:
    """
    Engine for ``url``.

    SQLite connections are shared across the request threadpool and the feed
    listener threads; an in-memory database additionally needs a single
    static connection or every session would see an empty store.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    options = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    return create_engine(url, **options)


engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db(bind: Engine = None) -> None:
    """Create every ledger table that does not exist yet"""
    from spend_circle.models import circles, debts, expense_claims, settlements, transactions  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Ledger tables ready")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_connection(bind: Engine = None) -> bool:
    try:
        with (bind or engine).connect():
            logger.debug("Database connection successful")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
