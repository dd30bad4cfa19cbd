"""
Client for the self-hosted REST API (``/api/data/:table``, ``/api/auth/*``).

Filters travel as JSON-encoded ``[column, value]`` pairs in the query string;
every request carries the bearer token obtained from ``/auth/login``.
"""

import json
from typing import Any, List, Optional, Tuple

import httpx
import structlog

from schooldata.client.base import (
    HttpDataClient,
    Method,
    QueryRequest,
    collapse_single,
    decode_json,
    invalid_json_error,
    project_row,
)
from schooldata.client.result import Ok, QueryResult, auth_error, transport_error
from schooldata.client.storage import AUTH_TOKEN_KEY, LocalStateStore

logger = structlog.get_logger()

_HTTP_METHODS = {
    Method.SELECT: "GET",
    Method.INSERT: "POST",
    Method.UPDATE: "PUT",
    Method.DELETE: "DELETE",
}

RECORD_NOT_FOUND = "Record not found"


def _dumps(value: Any) -> str:
    return json.dumps(value, default=str, separators=(",", ":"))


def encode_params(request: QueryRequest) -> List[Tuple[str, str]]:
    """Serialize a request's filters the way the data routes parse them."""
    params: List[Tuple[str, str]] = []
    if request.method is Method.SELECT and request.columns != "*":
        params.append(("select", request.columns))
    for f in request.filters:
        params.append((f.op.value, _dumps([f.column, f.value])))
    if request.order:
        column, ascending = request.order
        params.append(("order", _dumps([column, "asc" if ascending else "desc"])))
    if request.limit:
        params.append(("limit", str(request.limit)))
    return params


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return error.get("message") or json.dumps(error)
        if error:
            return str(error)
        return body.get("detail") or json.dumps(body)
    return str(body)


def _matched_nothing(request: QueryRequest, response: httpx.Response) -> bool:
    """The data routes answer 404 "Record not found" when a PUT/DELETE hits no rows."""
    return (
        response.status_code == 404
        and request.method in (Method.UPDATE, Method.DELETE)
        and _error_message(response) == RECORD_NOT_FOUND
    )


class RestAuth:
    """Token lifecycle against ``/auth/*``."""

    def __init__(self, client: "RestDataClient"):
        self._client = client

    async def sign_in(self, email: str, password: str) -> QueryResult:
        try:
            response = await self._client._request(
                "POST", "/auth/login", json={"email": email, "password": password}
            )
        except httpx.HTTPError as e:
            logger.error("Sign-in request failed", error=str(e))
            return transport_error(f"Network error: {e}")

        if response.status_code != 200:
            message = _error_message(response)
            logger.warning(
                "Sign-in rejected", status_code=response.status_code, message=message
            )
            if response.status_code == 401:
                return auth_error(message)
            return transport_error(message, response.status_code)

        try:
            body = response.json()
        except ValueError:
            return invalid_json_error(response)
        self._client.set_token(body["token"])
        logger.info("Signed in to self-hosted API", user_id=body["user"].get("id"))
        return Ok(body["user"])

    async def sign_out(self) -> QueryResult:
        token = self._client.token
        self._client.set_token(None)
        try:
            await self._client._request(
                "POST", "/auth/logout", headers=self._client.headers(token)
            )
        except httpx.HTTPError as e:
            # The token is already gone locally; the server call is best effort.
            logger.warning("Logout request failed", error=str(e))
        return Ok(None)

    async def get_user(self) -> QueryResult:
        token = self._client.token
        if not token:
            return Ok(None)
        try:
            response = await self._client._request(
                "GET", "/auth/me", headers=self._client.headers(token)
            )
        except httpx.HTTPError as e:
            return transport_error(f"Network error: {e}")
        if response.status_code == 401:
            self._client.set_token(None)
            return auth_error(_error_message(response))
        if response.status_code != 200:
            return transport_error(_error_message(response), response.status_code)
        try:
            body = response.json()
        except ValueError:
            return invalid_json_error(response)
        return Ok(body.get("user"))


class RestDataClient(HttpDataClient):
    backend_name = "self_hosted"

    def __init__(
        self,
        api_url: str,
        store: LocalStateStore,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_url, timeout=timeout, transport=transport)
        self._store = store
        self.auth = RestAuth(self)

    @property
    def token(self) -> Optional[str]:
        return self._store.get(AUTH_TOKEN_KEY)

    def set_token(self, token: Optional[str]) -> None:
        if token:
            self._store.set(AUTH_TOKEN_KEY, token)
        else:
            self._store.remove(AUTH_TOKEN_KEY)

    @staticmethod
    def headers(token: Optional[str]) -> dict:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _perform(self, request: QueryRequest) -> QueryResult:
        token = self.token
        if not token:
            return auth_error(
                "No auth token present; sign in to the self-hosted API first",
                table=request.table,
            )

        body = request.payload
        if request.method is Method.INSERT and isinstance(body, list) and len(body) == 1:
            body = body[0]

        response = await self._request(
            _HTTP_METHODS[request.method],
            f"/data/{request.table}",
            params=encode_params(request),
            json=body if request.method in (Method.INSERT, Method.UPDATE) else None,
            headers=self.headers(token),
        )

        if response.status_code == 401:
            # Don't keep replaying a credential the server has rejected.
            self.set_token(None)
            return auth_error(_error_message(response), table=request.table)
        if _matched_nothing(request, response):
            # Same result the hosted backend gives for a write that matched no rows.
            data = [] if request.method is Method.UPDATE else {"rowCount": 0}
        elif not response.is_success:
            return transport_error(
                _error_message(response), response.status_code, table=request.table
            )
        else:
            try:
                data = decode_json(response)
            except ValueError:
                return invalid_json_error(response, table=request.table)

        if request.method is Method.DELETE:
            count = data.get("rowCount") if isinstance(data, dict) else None
            return Ok(None, count=count)
        if request.method is Method.UPDATE:
            rows = data if isinstance(data, list) else [data]
            if request.single:
                return collapse_single(request, rows)
            return Ok(rows, count=len(rows))
        if request.method is Method.INSERT:
            # Returned shape mirrors the payload shape: row in, row out.
            if isinstance(data, list):
                data = [project_row(row, request.returning) for row in data]
            else:
                data = project_row(data, request.returning)
                if isinstance(request.payload, list):
                    data = [data] if data is not None else []
            return collapse_single(request, data) if request.single else Ok(data)
        if request.single:
            return collapse_single(request, data)
        return Ok(data, count=len(data) if isinstance(data, list) else None)
