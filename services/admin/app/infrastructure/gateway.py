"""
Async client for the hosted backend.

The backend exposes PostgREST-style table endpoints under /rest/v1 and
a GoTrue-style auth API under /auth/v1. Only the operations the panel
needs are wrapped here: filtered/ordered select, insert, update, delete,
remote functions, and password sign-in/sign-out.
"""

import time
from typing import Any, Dict, List, Mapping, Optional, Union

import httpx

from shared.core import get_logger

from app.core_settings import Settings

logger = get_logger(__name__)

REST_PREFIX = "/rest/v1"
AUTH_PREFIX = "/auth/v1"
SINGLE_OBJECT = "application/vnd.pgrst.object+json"

Row = Dict[str, Any]


class GatewayError(Exception):
    """A gateway call failed, either in transport or with an error status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details

    @classmethod
    def from_response(cls, response: httpx.Response) -> "GatewayError":
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            return cls(f"HTTP {response.status_code}: {response.text[:200]}", status_code=response.status_code)
        # PostgREST uses message/code, the auth API error_description/msg/error_code
        message = (
            body.get("message")
            or body.get("error_description")
            or body.get("msg")
            or body.get("error")
            or f"HTTP {response.status_code}"
        )
        code = body.get("code") if isinstance(body.get("code"), str) else body.get("error_code")
        return cls(str(message), status_code=response.status_code, code=code, details=body.get("details"))

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.code:
            parts.append(f"code={self.code}")
        return " ".join(parts)


class AuthError(GatewayError):
    """Sign-in was refused by the gateway."""


def _literal(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{value}"


def build_params(
    columns: Optional[str] = None,
    filters: Optional[Mapping[str, Any]] = None,
    order: Optional[str] = None,
    ascending: bool = True,
) -> Dict[str, str]:
    """Encode a select/filter/order request as PostgREST query parameters."""
    params: Dict[str, str] = {}
    if columns:
        params["select"] = columns
    for column, value in (filters or {}).items():
        params[column] = _literal(value)
    if order:
        params["order"] = f"{order}.{'asc' if ascending else 'desc'}"
    return params


class GatewayClient:
    """
    Table and auth operations against the hosted backend.

    One instance owns the connection pool for the application's lifetime;
    `authorized()` derives per-user clients that share it.
    """

    def __init__(self, http: httpx.AsyncClient, api_key: str, access_token: Optional[str] = None):
        self.http = http
        self.api_key = api_key
        self.access_token = access_token

    def authorized(self, access_token: str) -> "GatewayClient":
        return GatewayClient(self.http, self.api_key, access_token=access_token)

    def _headers(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        json: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Response:
        try:
            response = await self.http.request(
                method, path, params=params, json=json, headers=self._headers(headers)
            )
        except httpx.HTTPError as e:
            raise GatewayError(f"Gateway request failed: {e.__class__.__name__}: {e}") from e
        if response.status_code >= 400:
            raise GatewayError.from_response(response)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Mapping[str, Any]] = None,
        order: Optional[str] = None,
        ascending: bool = True,
        single: bool = False,
    ) -> Union[List[Row], Row]:
        """Read rows; with `single`, exactly one row must match."""
        headers = {"Accept": SINGLE_OBJECT} if single else None
        response = await self._send(
            "GET",
            f"{REST_PREFIX}/{table}",
            params=build_params(columns, filters, order, ascending),
            headers=headers,
        )
        data = self._json(response)
        if single:
            return data
        return data or []

    async def insert(
        self,
        table: str,
        rows: Union[Row, List[Row]],
        returning: bool = True,
    ) -> List[Row]:
        prefer = "return=representation" if returning else "return=minimal"
        response = await self._send(
            "POST", f"{REST_PREFIX}/{table}", json=rows, headers={"Prefer": prefer}
        )
        return self._json(response) or []

    async def update(self, table: str, values: Row, filters: Mapping[str, Any]) -> List[Row]:
        if not filters:
            raise ValueError("update requires at least one filter")
        response = await self._send(
            "PATCH",
            f"{REST_PREFIX}/{table}",
            params=build_params(filters=filters),
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return self._json(response) or []

    async def delete(self, table: str, filters: Mapping[str, Any]) -> None:
        if not filters:
            raise ValueError("delete requires at least one filter")
        await self._send("DELETE", f"{REST_PREFIX}/{table}", params=build_params(filters=filters))

    async def rpc(self, function: str, params: Optional[Row] = None) -> Any:
        response = await self._send("POST", f"{REST_PREFIX}/rpc/{function}", json=params or {})
        return self._json(response)

    async def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        """Password grant; returns the gateway session (tokens, expiry, user)."""
        try:
            response = await self._send(
                "POST",
                f"{AUTH_PREFIX}/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
            )
        except GatewayError as e:
            if e.status_code is not None and 400 <= e.status_code < 500:
                raise AuthError(e.message, status_code=e.status_code, code=e.code) from e
            raise
        return response.json()

    async def sign_out(self) -> None:
        if not self.access_token:
            return
        await self._send("POST", f"{AUTH_PREFIX}/logout")

    async def ping(self) -> float:
        """Round-trip time of a cheap request; raises when unreachable."""
        start = time.perf_counter()
        try:
            response = await self.http.get(f"{REST_PREFIX}/", headers=self._headers())
        except httpx.HTTPError as e:
            raise GatewayError(f"Gateway unreachable: {e}") from e
        if response.status_code >= 500:
            raise GatewayError.from_response(response)
        return time.perf_counter() - start

    async def aclose(self) -> None:
        await self.http.aclose()


def create_gateway(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> GatewayClient:
    http = httpx.AsyncClient(
        base_url=settings.GATEWAY_URL,
        timeout=settings.GATEWAY_TIMEOUT_SEC,
        transport=transport,
    )
    logger.info(f"Gateway client configured for {settings.GATEWAY_URL}")
    return GatewayClient(http, settings.GATEWAY_API_KEY)
