"""Pytest configuration and fixtures."""

import asyncio
import os
from typing import Optional

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

# Set test environment variables before imports
os.environ["DATABASE_PATH"] = ":memory:"
os.environ["PUBLIC_URL"] = "http://localhost:3000"


def _reset_database_globals():
    import yearsync.database as db_module

    db_module._db_connection = None
    db_module._db_lock = asyncio.Lock()


@pytest_asyncio.fixture
async def test_db():
    """Create a test database."""
    from yearsync.database import close_database, get_database

    _reset_database_globals()

    db = await get_database()

    yield db

    await close_database()
    _reset_database_globals()


class FakeDriveClient:
    """In-memory stand-in for DriveDocumentClient."""

    def __init__(self, document=None):
        self.document = document
        self.read_calls = 0
        self.write_calls = 0
        self.delete_calls = 0
        self.written: list = []
        self.read_error = None
        self.write_error = None
        self.delete_error = None
        self.read_gate: Optional[asyncio.Event] = None
        self.write_gate: Optional[asyncio.Event] = None

    async def read(self):
        from yearsync.sync.drive import DriveResult

        self.read_calls += 1
        if self.read_gate is not None:
            await self.read_gate.wait()
        if self.read_error is not None:
            return DriveResult.fail(self.read_error)
        return DriveResult.ok(self.document)

    async def write(self, document):
        from yearsync.sync.drive import DriveResult

        self.write_calls += 1
        if self.write_gate is not None:
            await self.write_gate.wait()
        if self.write_error is not None:
            return DriveResult.fail(self.write_error)
        self.written.append(document)
        self.document = document
        return DriveResult.ok()

    async def delete(self):
        from yearsync.sync.drive import DriveResult

        self.delete_calls += 1
        if self.delete_error is not None:
            return DriveResult.fail(self.delete_error)
        self.document = None
        return DriveResult.ok()


@pytest.fixture
def stores():
    """Fresh, unpersisted preference stores."""
    from yearsync.preferences import PreferenceStores

    return PreferenceStores()


@pytest.fixture
def auth():
    """Auth state with the drive scope granted."""
    from yearsync.auth import DRIVE_APPDATA_SCOPE, AuthState

    return AuthState("test-token", f"openid email {DRIVE_APPDATA_SCOPE}")


@pytest.fixture
def connectivity():
    from yearsync.sync.connectivity import ConnectivityMonitor

    return ConnectivityMonitor(online=True)


@pytest.fixture
def fake_drive():
    return FakeDriveClient()


@pytest_asyncio.fixture
async def orchestrator(stores, fake_drive, auth, connectivity):
    """Orchestrator with a short debounce wired to in-memory collaborators."""
    from yearsync.sync.orchestrator import SyncOrchestrator

    orch = SyncOrchestrator(stores, fake_drive, auth, connectivity, debounce_seconds=0.05)
    orch.init()

    yield orch

    orch.teardown()
    await orch.wait_for_idle()


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    from yearsync.auth import reset_auth_state
    from yearsync.preferences import reset_preference_stores
    from yearsync.sync.connectivity import reset_connectivity_monitor
    from yearsync.main import app

    _reset_database_globals()
    reset_preference_stores()
    reset_auth_state()
    reset_connectivity_monitor()

    with TestClient(app) as c:
        yield c

    _reset_database_globals()
    reset_preference_stores()
    reset_auth_state()
    reset_connectivity_monitor()
