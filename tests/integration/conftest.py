"""Fixtures for HTTP tests against the full marketplace application.

Sessions are seeded straight into an in-memory session store:

- ``buyer-1`` / ``buyer-2`` are buyers
- ``staff-1`` staffs ``store-1``; ``staff-2`` staffs ``store-2``
- ``admin-1`` is an admin
"""

import pytest
from fastapi.testclient import TestClient
from marketplace.api import create_app
from marketplace.api.auth import Actor, InMemorySessionStore, Role

SESSIONS = {
    "buyer-token": Actor("buyer-1"),
    "other-buyer-token": Actor("buyer-2"),
    "staff-token": Actor("staff-1", Role.STAFF, ("store-1",)),
    "other-staff-token": Actor("staff-2", Role.STAFF, ("store-2",)),
    "admin-token": Actor("admin-1", Role.ADMIN),
}


@pytest.fixture
def session_store():
    store = InMemorySessionStore(ttl_seconds=3600)
    for token, actor in SESSIONS.items():
        store.set(token, actor)
    return store


@pytest.fixture
def client(session_store):
    return TestClient(create_app(session_store=session_store))
