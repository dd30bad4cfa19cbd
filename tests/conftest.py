import os

# Settings are read at import time; pin them before any schooldata import.
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["USE_SELF_HOSTED_API"] = "false"
os.environ["BAAS_URL"] = "https://baas.example.test"
os.environ["BAAS_ANON_KEY"] = "anon-key"

import json
from collections.abc import Iterator
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from schooldata.client.base import (
    DataClient,
    FilterOp,
    Method,
    QueryRequest,
    collapse_single,
)
from schooldata.client.result import Ok, QueryResult
from schooldata.client.storage import MemoryStateStore
from schooldata.context.session import TenantSession
from schooldata.database import get_db
from schooldata.main import app
from schooldata.services.auth import create_access_token

SCHOOL_A = {"id": "11111111-1111-4111-8111-111111111111", "code": "SFXSAI", "name": "Alpha School", "is_active": True}
SCHOOL_B = {"id": "22222222-2222-4222-8222-222222222222", "code": "MABINI", "name": "Beta School", "is_active": True}

YEAR_A_OLD = {
    "id": "a0000000-0000-4000-8000-000000000001",
    "school_id": SCHOOL_A["id"],
    "name": "2023-2024",
    "start_date": "2023-06-01",
    "end_date": "2024-03-31",
    "is_current": False,
    "is_archived": True,
}
YEAR_A_CURRENT = {
    "id": "a0000000-0000-4000-8000-000000000002",
    "school_id": SCHOOL_A["id"],
    "name": "2024-2025",
    "start_date": "2024-06-01",
    "end_date": "2025-03-31",
    "is_current": True,
    "is_archived": False,
}
YEAR_B_CURRENT = {
    "id": "b0000000-0000-4000-8000-000000000001",
    "school_id": SCHOOL_B["id"],
    "name": "2024-2025",
    "start_date": "2024-06-01",
    "end_date": "2025-03-31",
    "is_current": True,
    "is_archived": False,
}


def _matches(row: Dict[str, Any], request: QueryRequest) -> bool:
    for f in request.filters:
        value = row.get(f.column)
        if f.op is FilterOp.EQ and value != f.value:
            return False
        if f.op is FilterOp.NEQ and value == f.value:
            return False
        if f.op is FilterOp.IN and value not in f.value:
            return False
    return True


class FakeBackend(DataClient):
    """In-memory data client that records every request it receives."""

    backend_name = "fake"

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables = {name: [dict(r) for r in rows] for name, rows in (tables or {}).items()}
        self.requests: List[QueryRequest] = []
        self.errors: Dict[str, QueryResult] = {}

    def requests_for(self, table: str) -> List[QueryRequest]:
        return [r for r in self.requests if r.table == table]

    async def execute(self, request: QueryRequest) -> QueryResult:
        self.requests.append(request)
        if request.table in self.errors:
            return self.errors[request.table]

        rows = self.tables.setdefault(request.table, [])
        if request.method is Method.SELECT:
            found = [dict(r) for r in rows if _matches(r, request)]
            if request.order:
                column, ascending = request.order
                found.sort(key=lambda r: r.get(column) or "", reverse=not ascending)
            if request.limit:
                found = found[: request.limit]
            if request.columns != "*":
                wanted = request.columns.split(",")
                found = [{k: r.get(k) for k in wanted} for r in found]
            if request.single:
                return collapse_single(request, found)
            return Ok(found, count=len(found))

        if request.method is Method.INSERT:
            payload = request.payload
            new_rows = payload if isinstance(payload, list) else [payload]
            stored = []
            for row in new_rows:
                row = {"id": f"{request.table}-{len(rows) + 1}", **row}
                rows.append(row)
                stored.append(dict(row))
            if request.single:
                return collapse_single(request, stored)
            return Ok(stored if isinstance(payload, list) else stored[0])

        if request.method is Method.UPDATE:
            updated = []
            for row in rows:
                if _matches(row, request):
                    row.update(request.payload)
                    updated.append(dict(row))
            return Ok(updated, count=len(updated))

        kept = [r for r in rows if not _matches(r, request)]
        removed = len(rows) - len(kept)
        self.tables[request.table] = kept
        return Ok(None, count=removed)


def json_transport(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.MockTransport:
    """MockTransport that also records the requests it served."""

    def record(request: httpx.Request) -> httpx.Response:
        record.calls.append(request)
        return handler(request)

    record.calls = []
    transport = httpx.MockTransport(record)
    transport.calls = record.calls
    return transport


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content) if request.content else None


@pytest.fixture
def store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend(
        {
            "schools": [SCHOOL_A, SCHOOL_B],
            "academic_years": [YEAR_A_OLD, YEAR_A_CURRENT, YEAR_B_CURRENT],
        }
    )


@pytest.fixture
def session(backend: FakeBackend, store: MemoryStateStore) -> TenantSession:
    return TenantSession(backend, store)


# Server-side fakes


class FakeMappings:
    def __init__(self, rows: List[Dict[str, Any]]):
        self._rows = rows

    def all(self) -> List[Dict[str, Any]]:
        return list(self._rows)

    def first(self) -> Optional[Dict[str, Any]]:
        return self._rows[0] if self._rows else None

    def one(self) -> Dict[str, Any]:
        assert len(self._rows) == 1
        return self._rows[0]


class FakeResult:
    def __init__(
        self,
        rows: Optional[List[Dict[str, Any]]] = None,
        rowcount: Optional[int] = None,
        tuples: Optional[List[tuple]] = None,
    ):
        self._rows = rows or []
        self.rowcount = len(self._rows) if rowcount is None else rowcount
        self._tuples = tuples or []

    def mappings(self) -> FakeMappings:
        return FakeMappings(self._rows)

    def first(self) -> Optional[tuple]:
        return self._tuples[0] if self._tuples else None

    def scalar(self) -> Any:
        return 1


class FakeDbSession:
    """Stands in for AsyncSession; answers ``execute`` from a queue of results."""

    def __init__(self):
        self.results: List[Any] = []
        self.executed: List[tuple] = []
        self.added: List[Any] = []
        self.commits = 0
        self.rollbacks = 0

    def queue(self, *results: Any) -> None:
        self.results.extend(results)

    async def execute(self, statement: Any, params: Optional[Dict[str, Any]] = None):
        self.executed.append((str(statement), dict(params or {})))
        if not self.results:
            return FakeResult([])
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def add(self, obj: Any) -> None:
        self.added.append(obj)

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1

    async def close(self) -> None:
        pass


@pytest.fixture
def fake_db() -> FakeDbSession:
    return FakeDbSession()


@pytest.fixture
def client(fake_db: FakeDbSession) -> Iterator[TestClient]:
    async def override_get_db():
        yield fake_db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    token = create_access_token(
        {
            "id": "99999999-9999-4999-8999-999999999999",
            "email": "admin@school.org",
            "role": "admin",
            "full_name": "Admin User",
        }
    )
    return {"Authorization": f"Bearer {token}"}
