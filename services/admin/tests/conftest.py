import copy
import json
import os
from typing import Any, Dict, List, Optional, Set, Tuple

import httpx
import pytest

os.environ.setdefault("SESSION_SECRET", "test-session-secret-0123456789abcdef")
os.environ.setdefault("GATEWAY_URL", "http://gateway.test")
os.environ.setdefault("GATEWAY_API_KEY", "anon-key")

from fastapi.testclient import TestClient  # noqa: E402

from app.application.schemas import SessionInfo  # noqa: E402
from app.auth_local import create_session_token  # noqa: E402
from app.infrastructure.gateway import GatewayClient  # noqa: E402
from app.main import app  # noqa: E402

GATEWAY_URL = "http://gateway.test"
STAFF_EMAIL = "staff@example.com"
STAFF_PASSWORD = "secret"
USER_TOKEN = "user-token"

SEED: Dict[str, List[Dict[str, Any]]] = {
    "orders": [
        {
            "id": "order-1",
            "order_number": "ORD-0001",
            "customer_id": "cust-1",
            "customer_name": "Sara Ali",
            "customer_phone": "0500000001",
            "status": "pending",
            "fabric_price": 3,
            "tailoring_price": 2,
            "extra_costs": 0,
            "tax_amount": 1,
            "total_price": 31,
            "total_pieces": 3,
            "notes": "Deliver before Friday",
            "images": None,
            "created_at": "2026-01-10T09:00:00+00:00",
        },
        {
            "id": "order-2",
            "order_number": "ORD-0002",
            "customer_id": "cust-2",
            "customer_name": "Huda Saleh",
            "customer_phone": "0500000002",
            "status": "completed",
            "fabric_price": 0,
            "tailoring_price": 0,
            "extra_costs": 0,
            "tax_amount": 0,
            "total_price": 100,
            "total_pieces": 1,
            "notes": None,
            "images": None,
            "created_at": "2026-01-12T09:00:00+00:00",
        },
    ],
    "order_items": [
        {
            "id": "item-1",
            "order_id": "order-1",
            "product_name": "Abaya",
            "model": "A-1",
            "size": "M",
            "quantity": 2,
            "meters": 2.5,
            "unit_price": 10,
            "total_price": 20,
            "created_at": "2026-01-10T09:01:00+00:00",
        },
        {
            "id": "item-2",
            "order_id": "order-1",
            "product_name": "Scarf",
            "model": None,
            "size": None,
            "quantity": 1,
            "meters": 0,
            "unit_price": 5,
            "total_price": 5,
            "created_at": "2026-01-10T09:02:00+00:00",
        },
        {
            "id": "item-3",
            "order_id": "order-2",
            "product_name": "Thobe",
            "model": "T-9",
            "size": "L",
            "quantity": 1,
            "meters": 3,
            "unit_price": 100,
            "total_price": 100,
            "created_at": "2026-01-12T09:01:00+00:00",
        },
    ],
    "customers": [
        {"id": "cust-1", "name": "Sara Ali", "phone": "0500000001"},
        {"id": "cust-2", "name": "Huda Saleh", "phone": "0500000002"},
    ],
    "products": [
        {
            "id": "prod-1",
            "name": "Classic Abaya",
            "model": "CA-1",
            "description": "Black crepe",
            "price": 250,
            "fabric_price": 120,
            "tailoring_price": 0,
            "sizes": ["S", "M", "L"],
            "images": [],
            "is_active": True,
            "created_at": "2026-01-02T09:00:00+00:00",
        },
        {
            "id": "prod-2",
            "name": "Winter Thobe",
            "model": "WT-2",
            "description": None,
            "price": 180,
            "fabric_price": None,
            "tailoring_price": 60,
            "sizes": None,
            "images": None,
            "is_active": False,
            "created_at": "2026-01-01T09:00:00+00:00",
        },
    ],
    "profiles": [
        {"id": "profile-1", "user_id": "user-1", "full_name": "Mona Staff", "role": "admin"},
    ],
}


def _encode(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


class FakeGateway:
    """
    In-memory stand-in for the hosted backend, served through
    httpx.MockTransport. Understands the subset of PostgREST the panel
    uses: eq./is.null filters, order, select and single-object mode.
    """

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables = copy.deepcopy(tables if tables is not None else SEED)
        self.requests: List[httpx.Request] = []
        self.failures: Set[Tuple[str, str]] = set()
        self.order_number = "ORD-0003"
        self._sequence = 0

    def fail(self, method: str, table: str) -> None:
        self.failures.add((method, table))

    def writes(self) -> List[Tuple[str, str]]:
        """(method, path) of every non-GET request, in order."""
        return [(r.method, r.url.path) for r in self.requests if r.method != "GET"]

    def rows(self, table: str, **filters: Any) -> List[Dict[str, Any]]:
        return [row for row in self.tables.get(table, []) if all(row.get(k) == v for k, v in filters.items())]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/auth/v1/token":
            return self._token(request)
        if path == "/auth/v1/logout":
            return httpx.Response(204)
        if path == "/rest/v1/":
            return httpx.Response(200, json={})
        if path.startswith("/rest/v1/rpc/"):
            if ("POST", "rpc") in self.failures:
                return self._error()
            return httpx.Response(200, json=self.order_number)

        table = path.rsplit("/", 1)[-1]
        if (request.method, table) in self.failures:
            return self._error()
        rows = self.tables.setdefault(table, [])
        params = request.url.params
        filters = {k: v for k, v in params.items() if k not in ("select", "order")}
        matching = [row for row in rows if self._matches(row, filters)]

        if request.method == "GET":
            return self._select(request, matching)
        if request.method == "POST":
            return self._insert(request, rows, table)
        if request.method == "PATCH":
            values = json.loads(request.content)
            for row in matching:
                row.update(values)
            return httpx.Response(200, json=matching)
        if request.method == "DELETE":
            self.tables[table] = [row for row in rows if row not in matching]
            return httpx.Response(204)
        return httpx.Response(405)

    @staticmethod
    def _error() -> httpx.Response:
        return httpx.Response(500, json={"message": "internal error", "code": "XX000"})

    @staticmethod
    def _matches(row: Dict[str, Any], filters: Dict[str, str]) -> bool:
        for column, expression in filters.items():
            if expression == "is.null":
                if row.get(column) is not None:
                    return False
            elif expression.startswith("eq."):
                if row.get(column) is None or _encode(row.get(column)) != expression[3:]:
                    return False
        return True

    def _select(self, request: httpx.Request, matching: List[Dict[str, Any]]) -> httpx.Response:
        params = request.url.params
        if "order" in params:
            column, direction = params["order"].rsplit(".", 1)
            matching = sorted(matching, key=lambda row: str(row.get(column) or ""), reverse=direction == "desc")
        columns = params.get("select", "*")
        if columns != "*":
            names = columns.split(",")
            matching = [{name: row.get(name) for name in names} for row in matching]
        if request.headers.get("Accept") == "application/vnd.pgrst.object+json":
            if len(matching) != 1:
                return httpx.Response(406, json={
                    "code": "PGRST116",
                    "message": "JSON object requested, multiple (or no) rows returned",
                    "details": f"The result contains {len(matching)} rows",
                })
            return httpx.Response(200, json=matching[0])
        return httpx.Response(200, json=matching)

    def _insert(self, request: httpx.Request, rows: List[Dict[str, Any]], table: str) -> httpx.Response:
        body = json.loads(request.content)
        created = []
        for row in body if isinstance(body, list) else [body]:
            self._sequence += 1
            row = {
                "id": f"{table}-new-{self._sequence}",
                "created_at": f"2026-02-01T00:00:{self._sequence:02d}+00:00",
                **row,
            }
            rows.append(row)
            created.append(row)
        if request.headers.get("Prefer") == "return=representation":
            return httpx.Response(201, json=created)
        return httpx.Response(201)

    def _token(self, request: httpx.Request) -> httpx.Response:
        credentials = json.loads(request.content)
        if credentials.get("email") != STAFF_EMAIL or credentials.get("password") != STAFF_PASSWORD:
            return httpx.Response(400, json={
                "error": "invalid_grant",
                "error_description": "Invalid login credentials",
            })
        return httpx.Response(200, json={
            "access_token": USER_TOKEN,
            "token_type": "bearer",
            "expires_in": 3600,
            "refresh_token": "refresh",
            "user": {"id": "user-1", "email": STAFF_EMAIL},
        })


def make_gateway(fake: FakeGateway, access_token: Optional[str] = None) -> GatewayClient:
    http = httpx.AsyncClient(base_url=GATEWAY_URL, transport=httpx.MockTransport(fake.handler))
    return GatewayClient(http, "anon-key", access_token=access_token)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake():
    return FakeGateway()


@pytest.fixture
def gateway(fake):
    return make_gateway(fake, access_token=USER_TOKEN)


@pytest.fixture
def client(fake):
    app.state.gateway = make_gateway(fake)
    with TestClient(app) as test_client:
        yield test_client
    app.state.gateway = None


@pytest.fixture
def auth_headers():
    session = SessionInfo(
        user_id="user-1",
        email=STAFF_EMAIL,
        full_name="Mona Staff",
        role="admin",
        access_token=USER_TOKEN,
    )
    return {"Authorization": f"Bearer {create_session_token(session)}"}
