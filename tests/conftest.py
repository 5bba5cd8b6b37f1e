import copy
import itertools
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError

# Ensure predictable environment variables for tests before importing the app.
BASE_DIR = Path(__file__).resolve().parents[1]

if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("SUPABASE_URL", "https://fake.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import fitprofile.main as main  # noqa: E402  (import after env vars are set)
from fitprofile import supabase_client  # noqa: E402
from fitprofile.schemas.user import AuthUser  # noqa: E402

FAKE_URL = "https://fake.supabase.co"
TEST_TOKEN = "test-token"
OTHER_TOKEN = "other-token"


def _parse(value):
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return value


def _resolve(row, column):
    value = row
    for part in column.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _same(left, right):
    return left == right or (left is not None and right is not None and str(left) == str(right))


class FakeQuery:
    """Records a PostgREST-style builder chain and runs it against in-memory rows."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.action = "select"
        self.columns = "*"
        self.payload = None
        self.filters = []
        self.order_by = None
        self.limit_count = None
        self.is_single = False
        self._negate = False

    def select(self, columns="*"):
        self.columns = columns
        return self

    def insert(self, payload):
        self.action, self.payload = "insert", payload
        return self

    def upsert(self, payload):
        self.action, self.payload = "upsert", payload
        return self

    def update(self, payload):
        self.action, self.payload = "update", payload
        return self

    def delete(self):
        self.action = "delete"
        return self

    def _filter(self, op, column, value):
        self.filters.append((op, column, value, self._negate))
        self._negate = False
        return self

    def eq(self, column, value):
        return self._filter("eq", column, value)

    def in_(self, column, values):
        return self._filter("in", column, list(values))

    def gte(self, column, value):
        return self._filter("gte", column, value)

    def lte(self, column, value):
        return self._filter("lte", column, value)

    def is_(self, column, value):
        return self._filter("is", column, value)

    @property
    def not_(self):
        self._negate = True
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, count):
        self.limit_count = count
        return self

    def single(self):
        self.is_single = True
        return self

    def _matches(self, row):
        for op, column, value, negate in self.filters:
            actual = _resolve(row, column)
            if op == "eq":
                matched = _same(actual, value)
            elif op == "in":
                matched = any(_same(actual, item) for item in value)
            elif op == "is":
                matched = actual is None if value == "null" else actual == value
            elif actual is None:
                matched = False
            elif op == "gte":
                matched = _parse(actual) >= _parse(value)
            else:
                matched = _parse(actual) <= _parse(value)
            if matched == negate:
                return False
        return True

    async def execute(self):
        self.db.calls.append(self)
        failure = self.db.failures.get((self.table, self.action))
        if failure:
            raise failure

        rows = self.db.tables.setdefault(self.table, [])
        if self.action == "insert":
            data = [self.db.add_row(self.table, dict(self.payload))]
        elif self.action == "upsert":
            existing = [row for row in rows if _same(row.get("id"), self.payload.get("id"))]
            if existing:
                existing[0].update(self.payload)
                data = [copy.deepcopy(existing[0])]
            else:
                data = [self.db.add_row(self.table, dict(self.payload))]
        elif self.action == "update":
            data = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    data.append(copy.deepcopy(row))
        elif self.action == "delete":
            data = [row for row in rows if self._matches(row)]
            self.db.tables[self.table] = [row for row in rows if not self._matches(row)]
        else:
            data = [copy.deepcopy(row) for row in rows if self._matches(row)]
            if self.order_by:
                column, desc = self.order_by
                data.sort(key=lambda row: _parse(_resolve(row, column)), reverse=desc)
            if self.limit_count is not None:
                data = data[: self.limit_count]

        if self.is_single:
            if len(data) != 1:
                raise APIError({"code": "PGRST116", "message": "JSON object requested, multiple (or no) rows returned"})
            data = data[0]
        return SimpleNamespace(data=data)


class FakeBucket:
    def __init__(self, storage, name):
        self.storage = storage
        self.name = name

    async def upload(self, path, file, file_options=None):
        if self.storage.upload_error:
            raise self.storage.upload_error
        self.storage.objects[(self.name, path)] = {"data": file, "options": file_options or {}}
        return SimpleNamespace(path=path)

    async def get_public_url(self, path, options=None):
        return f"{FAKE_URL}/storage/v1/object/public/{self.name}/{path}"

    async def create_signed_url(self, path, expires_in, options=None):
        self.storage.signed.append((self.name, path, expires_in))
        if path in self.storage.unsignable:
            raise RuntimeError(f"cannot sign {path}")
        url = f"{FAKE_URL}/storage/v1/object/sign/{self.name}/{path}?token=signed"
        return {"signedURL": url, "signedUrl": url}

    async def remove(self, paths):
        self.storage.removed.append((self.name, list(paths)))
        if self.storage.remove_error:
            raise self.storage.remove_error
        for path in paths:
            self.storage.objects.pop((self.name, path), None)
        return [{"name": path} for path in paths]


class FakeStorage:
    def __init__(self):
        self.objects = {}
        self.signed = []
        self.removed = []
        self.unsignable = set()
        self.upload_error = None
        self.remove_error = None

    def from_(self, name):
        return FakeBucket(self, name)


class FakeAuth:
    """Per-client auth state; the token registry and call logs are shared between spawned clients."""

    def __init__(self, tokens=None, metadata_updates=None, sign_up_calls=None):
        self.tokens = {} if tokens is None else tokens
        self.metadata_updates = [] if metadata_updates is None else metadata_updates
        self.sign_up_calls = [] if sign_up_calls is None else sign_up_calls
        self.session = None
        self.listeners = []
        self.error = None
        self.sign_out_error = None

    def spawn(self):
        auth = FakeAuth(self.tokens, self.metadata_updates, self.sign_up_calls)
        auth.error = self.error
        auth.sign_out_error = self.sign_out_error
        return auth

    def _start_session(self, access_token, user, refresh_token="refresh-token"):
        self.session = SimpleNamespace(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=1_900_000_000,
            user=user,
        )
        return SimpleNamespace(user=user, session=self.session)

    def _auth_response(self, user):
        token = f"token-{user.id}"
        self.tokens[token] = user
        return self._start_session(token, user)

    async def sign_in_with_password(self, credentials):
        if self.error:
            raise self.error
        user = SimpleNamespace(id="user-1", email=credentials["email"], user_metadata={"full_name": "Ana Test"})
        return self._auth_response(user)

    async def sign_up(self, credentials):
        self.sign_up_calls.append(credentials)
        if self.error:
            raise self.error
        metadata = credentials.get("options", {}).get("data", {})
        user = SimpleNamespace(id="user-2", email=credentials["email"], user_metadata=dict(metadata))
        return self._auth_response(user)

    async def sign_out(self, options=None):
        if self.session:
            self.tokens.pop(self.session.access_token, None)
        self.session = None
        if self.sign_out_error:
            raise self.sign_out_error

    async def get_session(self):
        if self.error:
            raise self.error
        return self.session

    async def set_session(self, access_token, refresh_token):
        if access_token not in self.tokens:
            raise RuntimeError("invalid JWT")
        return self._start_session(access_token, self.tokens[access_token], refresh_token)

    def on_auth_state_change(self, callback):
        self.listeners.append(callback)
        return SimpleNamespace(id="sub-1", callback=callback, unsubscribe=lambda: self.listeners.remove(callback))

    def emit(self, event, session=None):
        for callback in list(self.listeners):
            callback(event, session)

    async def get_user(self, jwt=None):
        if jwt not in self.tokens:
            raise RuntimeError("invalid JWT")
        return SimpleNamespace(user=self.tokens[jwt])

    async def update_user(self, attributes):
        self.metadata_updates.append(attributes)
        if not self.session:
            return SimpleNamespace(user=None)
        user = self.session.user
        user.user_metadata.update(attributes.get("data", {}))
        return SimpleNamespace(user=user)


class FakePostgrest:
    def __init__(self):
        self.closed = False

    async def aclose(self):
        self.closed = True


class FakeSupabase:
    """In-memory stand-in for ``supabase.AsyncClient``.

    ``spawn`` returns another client over the same tables and storage with its
    own auth session, mirroring separate clients against one project.
    """

    def __init__(self, parent=None, access_token=None):
        self.access_token = access_token
        self.postgrest = FakePostgrest()
        if parent is None:
            self.tables = {}
            self.failures = {}
            self.calls = []
            self.storage = FakeStorage()
            self.auth = FakeAuth()
            self.spawned = []
            self._ids = itertools.count(1)
        else:
            self.tables = parent.tables
            self.failures = parent.failures
            self.calls = parent.calls
            self.storage = parent.storage
            self.auth = parent.auth.spawn()
            self.spawned = parent.spawned
            self._ids = parent._ids

    def spawn(self, access_token=None):
        client = FakeSupabase(self, access_token)
        self.spawned.append(client)
        return client

    def table(self, name):
        return FakeQuery(self, name)

    def add_row(self, table, row):
        row.setdefault("id", f"{table}-{next(self._ids)}")
        row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        self.tables.setdefault(table, []).append(row)
        return copy.deepcopy(row)

    def calls_for(self, table, action=None):
        return [call for call in self.calls if call.table == table and (action is None or call.action == action)]


def public_photo_url(path, bucket="progress-photos"):
    return f"{FAKE_URL}/storage/v1/object/public/{bucket}/{path}"


@pytest.fixture()
def supabase():
    return FakeSupabase()


@pytest.fixture()
def auth_user():
    return AuthUser(
        id="user-1",
        email="ana@example.com",
        user_metadata={"full_name": "Ana Test", "avatar_url": "https://cdn.example.com/google.png"},
    )


@pytest.fixture()
def image_file(tmp_path):
    path = tmp_path / "progress.jpg"
    path.write_bytes(b"\xff\xd8\xff\xe0fake-jpeg")
    return path


@pytest.fixture()
def client(monkeypatch, supabase, auth_user):
    """Provide a TestClient wired to the in-memory Supabase fake."""
    supabase.auth.tokens[TEST_TOKEN] = SimpleNamespace(
        id=auth_user.id, email=auth_user.email, user_metadata=dict(auth_user.user_metadata)
    )

    async def _fake_client(access_token=None):
        return supabase.spawn(access_token)

    monkeypatch.setattr(supabase_client, "create_supabase_client", _fake_client)

    with TestClient(main.app) as test_client:
        yield test_client


@pytest.fixture()
def auth_headers():
    return {"Authorization": f"Bearer {TEST_TOKEN}"}


@pytest.fixture()
def other_user_headers(supabase):
    supabase.auth.tokens[OTHER_TOKEN] = SimpleNamespace(
        id="user-9", email="bo@example.com", user_metadata={"full_name": "Bo Other"}
    )
    return {"Authorization": f"Bearer {OTHER_TOKEN}"}
