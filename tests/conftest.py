import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from reviewdesk.db.base import Base
from reviewdesk.review.kinds import QueueKind
from reviewdesk.store.sql_store import SqlQueueStore
from tests.factories import FIXED_NOW, deletion_payload, support_payload


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    engine.dispose()


@pytest.fixture()
def sql_store(session_factory) -> SqlQueueStore:
    return SqlQueueStore(session_factory, clock=lambda: FIXED_NOW)


@pytest.fixture()
def seeded_store(sql_store) -> SqlQueueStore:
    sql_store.add_account("u-1", name="Alice Johnson", email="alice@example.com")
    sql_store.add_account("u-2", name="Carlos Rivera", email="carlos@example.com")
    sql_store.add_item(QueueKind.SUPPORT, support_payload())
    sql_store.add_item(
        QueueKind.SUPPORT,
        {"id": "t-legacy", "name": "Walk-in", "email": "walkin@example.com", "message": "Hello", "status": "new"},
    )
    sql_store.add_item(QueueKind.ACCOUNT_DELETION, deletion_payload())
    return sql_store


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, seeded_store) -> TestClient:
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    monkeypatch.setenv("AUTO_REFRESH_ENABLED", "false")

    from reviewdesk.core.settings import get_settings

    get_settings.cache_clear()

    from reviewdesk.api.main import create_app

    with TestClient(create_app(store=seeded_store)) as test_client:
        yield test_client

    get_settings.cache_clear()
    os.environ.pop("DATABASE_URL", None)
