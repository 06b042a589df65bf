"""
Shared fixtures: an in-memory stand-in for the async Supabase query builder,
a mocked Mercado Pago SDK and a TestClient with dependencies overridden.
"""

import os
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

# Settings are read at import time
os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
os.environ.setdefault("MERCADOPAGO_ACCESS_TOKEN", "TEST-access-token")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ.setdefault("GEMINI_API_KEY", "gemini-test")
os.environ.setdefault("APP_URL", "https://app.example.com/")
os.environ.setdefault("ENABLE_SCHEDULER", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fastapi.testclient import TestClient  # noqa: E402

from nutriplan.api.deps import get_current_user, get_mercadopago_service, get_recipe_ai_service  # noqa: E402
from nutriplan.main import app  # noqa: E402
from nutriplan.schemas.user import AuthenticatedUser  # noqa: E402
from nutriplan.services.mercadopago import MercadoPagoService  # noqa: E402


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.operation = "select"
        self.values = None
        self.filters = []
        self.row_limit = None

    def select(self, *columns):
        self.operation = "select"
        return self

    def insert(self, values):
        self.operation = "insert"
        self.values = values
        return self

    def update(self, values):
        self.operation = "update"
        self.values = values
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def limit(self, count):
        self.row_limit = count
        return self

    async def execute(self):
        rows = self.db.tables.setdefault(self.table, [])
        matched = [row for row in rows if all(row.get(c) == v for c, v in self.filters)]
        self.db.calls.append((self.table, self.operation, self.values, list(self.filters)))

        if self.operation == "insert":
            row = dict(self.values)
            row.setdefault("id", len(rows) + 1)
            rows.append(row)
            return SimpleNamespace(data=[row])

        if self.operation == "update":
            for row in matched:
                row.update(self.values)
            return SimpleNamespace(data=matched)

        data = [dict(row) for row in matched]
        if self.row_limit is not None:
            data = data[:self.row_limit]
        return SimpleNamespace(data=data)


class FakeRPC:
    def __init__(self, data):
        self.data = data

    async def execute(self):
        return SimpleNamespace(data=self.data)


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.calls = []
        self.rpc_results = {}
        self.auth = MagicMock()
        self.auth.get_user = AsyncMock()

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params=None):
        result = self.rpc_results[name]
        if isinstance(result, Exception):
            raise result
        return FakeRPC(result)


@pytest.fixture
def db():
    return FakeSupabase()


@pytest.fixture
def mp_service(db):
    service = MercadoPagoService(db)
    service.sdk = MagicMock()
    return service


@pytest.fixture
def user():
    return AuthenticatedUser(id="user-1", email="cliente@example.com")


@pytest.fixture
def client(mp_service, user):
    app.dependency_overrides[get_mercadopago_service] = lambda: mp_service
    app.dependency_overrides[get_current_user] = lambda: user
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def recipe_client(user):
    service = MagicMock()
    app.dependency_overrides[get_recipe_ai_service] = lambda: service
    app.dependency_overrides[get_current_user] = lambda: user
    yield TestClient(app), service
    app.dependency_overrides.clear()
