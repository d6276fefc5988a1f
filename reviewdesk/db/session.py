from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from reviewdesk.core.settings import get_settings
from reviewdesk.db.base import Base

_engine = None
_session_factory = None


def get_engine():
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(settings.database_url, pool_pre_ping=True)
    return _engine


def get_session_factory():
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=get_engine(),
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            class_=Session,
        )
    return _session_factory


def init_db() -> None:
    """Create the local store's tables if they do not exist."""
    Base.metadata.create_all(bind=get_engine())
