import os

# Must be set before evidence_engine.core.config is imported
os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_JSON", "false")

import pytest
from sqlalchemy.orm import sessionmaker

from evidence_engine.main import app
from evidence_engine.db.base import Base
from evidence_engine.db.session import engine, get_db

TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="session", autouse=True)
def create_test_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session():
    """
    One outer transaction per test, rolled back at teardown.

    The session joins it in "create_savepoint" mode, so application and helper
    code can call session.commit() freely: each commit only releases a SAVEPOINT.
    """
    connection = engine.connect()
    outer_tx = connection.begin()

    session = TestingSessionLocal(bind=connection, join_transaction_mode="create_savepoint")

    try:
        yield session
    finally:
        session.close()
        outer_tx.rollback()
        connection.close()


@pytest.fixture(autouse=True)
def override_get_db(db_session):
    def _get_db_override():
        yield db_session

    app.dependency_overrides[get_db] = _get_db_override
    yield
    app.dependency_overrides.clear()
