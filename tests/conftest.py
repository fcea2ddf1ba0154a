import os

# Settings are read once at import time
os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")

import pytest

from app.services import store as store_module
from app.services.store import InMemoryStore


@pytest.fixture(autouse=True)
def memory_store(monkeypatch):
    """Every test gets a fresh process-wide store and service singletons."""
    store = InMemoryStore()
    monkeypatch.setattr(store_module, "_store", store)
    monkeypatch.setattr("app.auth.service._auth_service", None)
    monkeypatch.setattr("app.services.server_wallet._server_wallet_service", None)
    monkeypatch.setattr("app.core.funds.executor._fund_movement_executor", None)
    return store
