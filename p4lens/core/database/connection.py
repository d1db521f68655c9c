# File: p4lens/core/database/connection.py

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from p4lens.core.config.settings import settings
from p4lens.core.database.base import Base

# check_same_thread=False is needed only for SQLite (sessions are used from threadpool workers)
connect_args = {"check_same_thread": False} if "sqlite" in settings.DATABASE_URL else {}

if settings.DATABASE_URL.startswith("sqlite:///"):
    settings.ensure_dirs()

engine = create_engine(
    settings.DATABASE_URL,
    echo=False,
    pool_pre_ping=True,
    connect_args=connect_args
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Dependency for obtaining a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """
    Creates all registered tables.
    Feature models must be imported first so they are attached to Base.metadata.
    """
    import p4lens.features.reconcile.data.sql_models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
