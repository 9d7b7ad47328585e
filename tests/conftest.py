"""
Shared fixtures: an in-memory Supabase double, recorded Resend emails,
a dict-backed Redis and HS256 tokens for authenticated requests.
"""

import copy
import os
import time
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

# Settings are read at import time
os.environ.pop("DOPPLER_TOKEN", None)
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["CERT_ENCRYPTION_KEY"] = "11" * 32
os.environ["BASE_URL"] = "https://api.passkit.test"
os.environ["WEB_APP_URL"] = "https://app.passkit.test"
os.environ["RESEND_API_KEY"] = "re_test_key"

import pytest
import resend
from fastapi.testclient import TestClient
from jose import jwt

import database.supabase_client
from app.core.config import settings
from app.main import app
from app.services import cache, certificate_manager, storage
from app.services import email as email_module


# ============================================
# Supabase double
# ============================================

class FakeResponse:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    """Chainable PostgREST query over a list of dict rows."""

    def __init__(self, rows: list[dict]):
        self._rows = rows
        self._op = "select"
        self._payload = None
        self._filters = []
        self._negate = False
        self._count = None
        self._order = []
        self._range = None
        self._limit = None

    # Operations

    def select(self, *columns, count=None):
        self._op = "select"
        self._count = count
        return self

    def insert(self, data):
        self._op = "insert"
        self._payload = data
        return self

    def update(self, data):
        self._op = "update"
        self._payload = data
        return self

    def delete(self):
        self._op = "delete"
        return self

    # Filters

    def _add(self, predicate):
        if self._negate:
            self._negate = False
            self._filters.append(lambda row: not predicate(row))
        else:
            self._filters.append(predicate)
        return self

    @property
    def not_(self):
        self._negate = True
        return self

    def eq(self, column, value):
        return self._add(lambda row: row.get(column) == value)

    def neq(self, column, value):
        return self._add(lambda row: row.get(column) != value)

    def is_(self, column, value):
        expected = {"null": None, "true": True, "false": False}[value]
        return self._add(lambda row: row.get(column) is expected)

    def lt(self, column, value):
        return self._add(lambda row: row.get(column) is not None and row.get(column) < value)

    def contains(self, column, values):
        return self._add(lambda row: all(v in (row.get(column) or []) for v in values))

    def order(self, column, desc=False):
        self._order.append((column, desc))
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def limit(self, n):
        self._limit = n
        return self

    def _matches(self, row):
        return all(predicate(row) for predicate in self._filters)

    def execute(self):
        if self._op == "insert":
            payload = self._payload if isinstance(self._payload, list) else [self._payload]
            created = []
            for item in payload:
                now = datetime.now(timezone.utc).isoformat()
                row = {"id": str(uuid.uuid4()), "created_at": now, "updated_at": now, **copy.deepcopy(item)}
                self._rows.append(row)
                created.append(copy.deepcopy(row))
                time.sleep(0.001)
            return FakeResponse(created)

        matched = [row for row in self._rows if self._matches(row)]

        if self._op == "update":
            for row in matched:
                row.update(copy.deepcopy(self._payload))
            return FakeResponse(copy.deepcopy(matched))

        if self._op == "delete":
            for row in matched:
                self._rows.remove(row)
            return FakeResponse(copy.deepcopy(matched))

        for column, desc in reversed(self._order):
            matched.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
        total = len(matched)
        if self._range:
            matched = matched[self._range[0]:self._range[1] + 1]
        if self._limit is not None:
            matched = matched[:self._limit]
        return FakeResponse(copy.deepcopy(matched), total if self._count else None)


class FakeBucket:
    def __init__(self, name: str, files: dict):
        self.name = name
        self.files = files

    def upload(self, path, file, file_options=None):
        self.files[path] = file
        return {"Key": f"{self.name}/{path}"}

    def get_public_url(self, path):
        return f"https://storage.passkit.test/{self.name}/{path}"

    def remove(self, paths):
        for path in paths:
            self.files.pop(path, None)
        return [{"name": p} for p in paths]

    def download(self, path):
        if path not in self.files:
            raise RuntimeError(f"Object not found: {path}")
        return self.files[path]

    def list(self, folder):
        prefix = folder.rstrip("/") + "/"
        return [{"name": p[len(prefix):]} for p in self.files if p.startswith(prefix) and "/" not in p[len(prefix):]]


class FakeStorage:
    def __init__(self):
        self.buckets: dict[str, dict] = {}

    def from_(self, bucket):
        return FakeBucket(bucket, self.buckets.setdefault(bucket, {}))


class FakeAuthAdmin:
    def __init__(self):
        self.users: list[dict] = []

    def create_user(self, attributes):
        if any(u["email"] == attributes["email"] for u in self.users):
            raise RuntimeError("A user with this email address has already been registered")
        user = {"id": str(uuid.uuid4()), **attributes}
        self.users.append(user)
        return SimpleNamespace(user=SimpleNamespace(id=user["id"], email=user["email"]))

    def delete_user(self, user_id):
        self.users = [u for u in self.users if u["id"] != user_id]


class FakeSupabase:
    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.storage = FakeStorage()
        self.auth = SimpleNamespace(admin=FakeAuthAdmin())

    def table(self, name):
        return FakeQuery(self.tables.setdefault(name, []))

    def rows(self, name) -> list[dict]:
        return self.tables.setdefault(name, [])


class FakeRedis:
    def __init__(self):
        self.values = {}

    def get(self, key):
        return self.values.get(key)

    def setex(self, key, ttl, value):
        self.values[key] = value

    def delete(self, key):
        self.values.pop(key, None)


# ============================================
# Fixtures
# ============================================

@pytest.fixture(autouse=True)
def fake_db(monkeypatch):
    db = FakeSupabase()
    monkeypatch.setattr(database.supabase_client, "get_supabase_client", lambda: db)
    monkeypatch.setattr(storage, "_storage_service", None)
    monkeypatch.setattr(email_module, "_email_service", None)
    monkeypatch.setattr(certificate_manager, "_manager", None)
    return db


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    redis_double = FakeRedis()
    monkeypatch.setattr(cache, "get_redis", lambda: redis_double)
    return redis_double


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Every email handed to Resend, as the params dict."""
    sent = []

    def send(params):
        sent.append(params)
        return {"id": str(uuid.uuid4())}

    monkeypatch.setattr(resend.Emails, "send", send)
    return sent


@pytest.fixture
def client():
    return TestClient(app)


def make_token(auth_id: str, **claims) -> str:
    payload = {
        "sub": auth_id,
        "aud": "authenticated",
        "exp": int(time.time()) + 3600,
        **claims,
    }
    return jwt.encode(payload, settings.supabase_jwt_secret, algorithm="HS256")


@pytest.fixture
def make_account(fake_db):
    """Insert an account row and return (account, auth headers)."""

    def _make(**overrides):
        auth_id = str(uuid.uuid4())
        row = {
            "auth_id": auth_id,
            "name": "Ada Lovelace",
            "email": f"ada-{auth_id[:8]}@example.com",
            "region": "EU",
            "industry": "Retail",
            "business_name": None,
            "tier": "Email_Verified",
            "approval_status": "approved",
            "plan": "free",
            "is_admin": False,
            "pre_launch_checklist": {},
            "production_requested_at": None,
            "production_approved_at": None,
            "production_rejected_at": None,
            "production_rejected_reason": None,
            **overrides,
        }
        account = fake_db.table("accounts").insert(row).execute().data[0]
        headers = {"Authorization": f"Bearer {make_token(auth_id)}"}
        return account, headers

    return _make


@pytest.fixture
def admin(make_account):
    return make_account(name="Grace Admin", email="admin@passkit.test", is_admin=True)
