"""
Pytest configuration for API tests

Fixtures wiring the donation service over the in-memory repositories and the
fake ledger provider. Endpoint tests run the FastAPI app without its lifespan,
so no MongoDB or Blockfrost connection is needed.
"""

import os

import pytest
from fastapi.testclient import TestClient


os.environ.setdefault("OPERATOR_API_KEY", "test_operator_key")

from edufund_api.dependencies.services import get_donation_service, get_receipt_service  # noqa: E402
from edufund_api.main import app  # noqa: E402
from edufund_api.services.receipt_service import ReceiptService  # noqa: E402
from edufund_api.tests.factories import CardanoAddressFactory, ProjectFactory  # noqa: E402
from edufund_api.tests.mocks import (  # noqa: E402
    FakeLedgerProvider,
    InMemoryRepositories,
    RecordingReceiptNotifier,
    build_service,
)


@pytest.fixture
def recipient_address():
    """Platform address donors pay into"""
    return CardanoAddressFactory.create_testnet_address()


@pytest.fixture
def ledger():
    return FakeLedgerProvider()


@pytest.fixture
def repositories():
    return InMemoryRepositories()


@pytest.fixture
def notifier():
    return RecordingReceiptNotifier()


@pytest.fixture
def service(ledger, repositories, recipient_address, notifier):
    return build_service(ledger, repositories, recipient_address, notifier=notifier)


@pytest.fixture
def receipt_service(ledger, repositories):
    return ReceiptService(ledger, repositories.nfts, timeout=5.0)


@pytest.fixture
def project(repositories):
    """Active project with a 5,000 ADA goal"""
    return repositories.projects.add(ProjectFactory.create())


@pytest.fixture
def client(service, receipt_service):
    """FastAPI test client using the in-memory services"""
    app.dependency_overrides[get_donation_service] = lambda: service
    app.dependency_overrides[get_receipt_service] = lambda: receipt_service
    yield TestClient(app)
    app.dependency_overrides.clear()


# Auth fixtures
@pytest.fixture
def operator_api_key():
    return os.getenv("OPERATOR_API_KEY", "test_operator_key")


@pytest.fixture
def operator_headers(operator_api_key):
    return {"X-API-Key": operator_api_key}
