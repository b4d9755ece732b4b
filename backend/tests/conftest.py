"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app
from api.sync import get_sync_service as get_sync_service_for_sync
from api.webhooks import get_webhook_service
from services.sync_service import SyncService
from services.webhook_service import WebhookService
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import (  # noqa: F401
    contact,
    paypal_settings,
    running_paypal_run,
    stripe_settings,
)
from tests.fixtures.mocks import (
    FixedClock,
    MockGatewayClient,
    MockGatewayRegistry,
    make_record,
)


@pytest.fixture(name="db")
def db_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="clock")
def clock_fixture():
    """A clock pinned to 2024-06-15 12:00 UTC."""
    return FixedClock()


@pytest.fixture(name="mock_gateway_client")
def mock_gateway_client_fixture():
    """A PayPal-shaped mock client with one page of two payments."""
    return MockGatewayClient(
        pages=[
            [
                make_record("PP-1", "alice@example.com", "25.00", name="Alice Smith"),
                make_record("PP-2", "bob@example.com", "40.50", name="Bob Jones"),
            ]
        ]
    )


@pytest.fixture(name="mock_registry")
def mock_registry_fixture(mock_gateway_client):
    """A registry serving the mock client for the paypal source."""
    return MockGatewayRegistry({"paypal": mock_gateway_client})


@pytest.fixture(name="sync_service")
def sync_service_fixture(mock_registry, clock):
    return SyncService(registry_factory=lambda db: mock_registry, clock=clock)


def _override_db(db):
    def override_get_db():
        try:
            yield db
        finally:
            pass

    return override_get_db


@pytest.fixture(name="client")
def client_fixture(db, sync_service, clock):
    """Create a test client with the test database and mocked gateways.

    Webhooks use the real registry over the database gateway settings.
    """

    def override_get_sync_service():
        return sync_service

    def override_get_webhook_service():
        return WebhookService(clock=clock)

    app.dependency_overrides[get_db] = _override_db(db)
    app.dependency_overrides[get_sync_service_for_sync] = override_get_sync_service
    app.dependency_overrides[get_webhook_service] = override_get_webhook_service
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="client_with_failing_sync")
def client_with_failing_sync_fixture(db, clock):
    """Create a test client whose PayPal sync raises an unexpected error."""
    failing_client = MockGatewayClient(fail_on_page=0, failure=RuntimeError("boom"))
    failing_registry = MockGatewayRegistry({"paypal": failing_client})

    def override_get_sync_service():
        return SyncService(registry_factory=lambda db: failing_registry, clock=clock)

    app.dependency_overrides[get_db] = _override_db(db)
    app.dependency_overrides[get_sync_service_for_sync] = override_get_sync_service
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
