import os

# Must be set before the service modules create their engine
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stock_service import models
from stock_service.database import Base, get_db
from stock_service.main import app

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Fresh in-memory database per test.

    Tables are created before the test and dropped afterwards, so committed
    rows never leak between tests.
    """
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        # 500 responses are part of the contract, don't re-raise them in the test
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def rows(db_session):
    """Return all stored items as plain dicts keyed by (store, sku)."""
    def _rows():
        db_session.expire_all()
        return {
            (item.store, item.sku): {"quantity": item.quantity, "description": item.description}
            for item in db_session.query(models.StockItem).all()
        }
    return _rows
